import enum
from datetime import datetime
from extensions import db
import bcrypt
from flask_login import UserMixin # For Flask-Login integration (e.g., current_user).
from utils.helpers import isoformat_or_none

class UserRoleEnum(enum.Enum):
    """
    Roles of a dashboard user.

    SUPER_ADMIN operates the platform across tenants, COMPANY_ADMIN manages one
    company (users, settings, billing) and OPERADOR works with campaigns and audits.
    """
    SUPER_ADMIN = 'super_admin'
    COMPANY_ADMIN = 'company_admin'
    OPERADOR = 'operador'

class User(db.Model, UserMixin):
    """
    A person logging into the dashboard.

    Stores credentials (bcrypt hash), the owning company and the role used for
    authorization checks. The `is_active` column overrides UserMixin's property so
    Flask-Login refuses sessions for deactivated users.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=True, index=True) # Null only for platform-level super admins.
    email = db.Column(db.String(255), unique=True, nullable=False, index=True) # Stored lower-case.
    password_hash = db.Column(db.String(128), nullable=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    role = db.Column(db.Enum(UserRoleEnum), nullable=False, default=UserRoleEnum.OPERADOR, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Rows owned by the user are removed with it (user_id is ON DELETE CASCADE as well).
    integrations = db.relationship('Integration', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    campaigns = db.relationship('Campaign', lazy='dynamic', cascade='all, delete-orphan')
    creatives = db.relationship('Creative', lazy='dynamic', cascade='all, delete-orphan')
    policies = db.relationship('Policy', lazy='dynamic', cascade='all, delete-orphan')
    audits = db.relationship('Audit', lazy='dynamic', cascade='all, delete-orphan')
    audit_actions = db.relationship('AuditAction', lazy='dynamic', cascade='all, delete-orphan')
    brand_configurations = db.relationship('BrandConfiguration', lazy='dynamic', cascade='all, delete-orphan')
    content_criteria = db.relationship('ContentCriteria', lazy='dynamic', cascade='all, delete-orphan')
    performance_benchmarks = db.relationship('PerformanceBenchmarks', uselist=False, cascade='all, delete-orphan')

    def set_password(self, password):
        """
        Hashes the provided password and stores it in `password_hash`.

        Args:
            password (str): The plain-text password to hash.
        """
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """
        Verifies a plain-text password against the stored hash.

        Returns:
            bool: True on match. False when no hash is stored.
        """
        if self.password_hash:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        return False

    @property
    def is_super_admin(self):
        return self.role == UserRoleEnum.SUPER_ADMIN

    @property
    def is_company_admin(self):
        return self.role == UserRoleEnum.COMPANY_ADMIN

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part) or None

    def can_access_company(self, company_id):
        """Tenant check: super admins see every company, everyone else only their own."""
        return self.is_super_admin or (company_id is not None and company_id == self.company_id)

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role.value,
            "isActive": self.is_active,
            "lastLoginAt": isoformat_or_none(self.last_login_at),
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role.value})>'
