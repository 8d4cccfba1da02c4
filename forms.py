from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField, IntegerField, DecimalField, FloatField
from wtforms.validators import (DataRequired, Email, EqualTo, Length, Optional, AnyOf, Regexp, URL,
                                NumberRange, InputRequired, ValidationError) # Import standard validators.
from models.user import User, UserRoleEnum # For unique email validation and role choices.
from models.company import Company, CompanyStatusEnum
from models.creative import CreativeTypeEnum
from models.policy import PolicyStatusEnum, PolicyScopeEnum
from models.audit import AuditStatusEnum, AuditActionTypeEnum
from models.platform_settings import PlatformEnum
from utils.helpers import SLUG_PATTERN, HEX_COLOR_PATTERN

ROLE_VALUES = [role.value for role in UserRoleEnum]
PLATFORM_VALUES = [platform.value for platform in PlatformEnum]

class ApiForm(FlaskForm):
    """
    Base for JSON API forms.

    Flask-WTF reads the JSON body of POST/PUT/PATCH requests as form data, so field
    names match the camelCase keys of the payload. CSRF is off: the API is consumed
    by the dashboard frontend with a session cookie and JSON content type.
    """
    class Meta:
        csrf = False

    def provided_fields(self, payload):
        """Fields whose key is present in the JSON payload (used for partial updates)."""
        return [field for field in self if field.name in (payload or {})]

    def validate_provided(self, payload):
        """
        Partial-update validation: runs the validators (inline ones included) of the
        fields present in `payload` only.
        """
        valid = True
        for field in self.provided_fields(payload):
            inline = getattr(self, f'validate_{field.name}', None)
            if not field.validate(self, [inline] if inline else []):
                valid = False
        return valid

def validate_unique_email(form, field):
    """Rejects an email that is already registered (case-insensitive)."""
    if field.data and User.query.filter_by(email=field.data.strip().lower()).first():
        raise ValidationError('That email address is already registered.')

# --- Auth ---

class RegistrationForm(ApiForm):
    """
    Self-service sign-up: creates a trial company and its first company admin.
    """
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address."), validate_unique_email])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required."), Length(min=6, message="Password must be at least 6 characters long.")])
    confirmPassword = PasswordField('Confirm Password', validators=[DataRequired(message="Please confirm your password."), EqualTo('password', message="Passwords must match.")])
    firstName = StringField('First Name', validators=[DataRequired(message="First name is required."), Length(max=100)])
    lastName = StringField('Last Name', validators=[Optional(), Length(max=100)])
    companyName = StringField('Company Name', validators=[DataRequired(message="Company name is required."), Length(max=255)])

class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required.")])
    rememberMe = BooleanField('Remember Me')

# --- Users & companies ---

class UserCreateForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required."), Length(min=6, message="Password must be at least 6 characters long.")])
    role = StringField('Role', validators=[DataRequired(message="Role is required."), AnyOf(ROLE_VALUES, message="Invalid role.")])
    firstName = StringField('First Name', validators=[Optional(), Length(max=100)])
    lastName = StringField('Last Name', validators=[Optional(), Length(max=100)])

class UserUpdateForm(ApiForm):
    firstName = StringField('First Name', validators=[Optional(), Length(max=100)])
    lastName = StringField('Last Name', validators=[Optional(), Length(max=100)])
    role = StringField('Role', validators=[Optional(), AnyOf(ROLE_VALUES, message="Invalid role.")])
    isActive = BooleanField('Active')

class AdminUserForm(UserCreateForm):
    companyId = IntegerField('Company', validators=[Optional()])

class CompanyForm(ApiForm):
    """Fields a company admin may edit on their own company."""
    name = StringField('Name', validators=[DataRequired(message="Company name is required."), Length(max=255)])
    logoUrl = StringField('Logo URL', validators=[Optional(), URL(require_tld=False, message="Invalid logo URL.")])
    primaryColor = StringField('Primary Color', validators=[Optional(), Regexp(HEX_COLOR_PATTERN, message="Color must be in #RRGGBB format.")])
    contactEmail = StringField('Contact Email', validators=[Optional(), Email(message="Invalid email address.")])
    billingEmail = StringField('Billing Email', validators=[Optional(), Email(message="Invalid email address.")])
    taxId = StringField('Tax ID', validators=[Optional(), Length(max=50)])

class AdminCompanyForm(CompanyForm):
    slug = StringField('Slug', validators=[Optional(), Regexp(SLUG_PATTERN, message="Slug may only contain lowercase letters, numbers and hyphens."), Length(max=100)])
    status = StringField('Status', validators=[Optional(), AnyOf([s.value for s in CompanyStatusEnum], message="Invalid status.")])
    planId = IntegerField('Plan', validators=[Optional()])

    editing_id = None # Set to the company's id when the form updates an existing company.

    def validate_slug(self, field):
        if field.data:
            taken = Company.query.filter(Company.slug == field.data, Company.id != self.editing_id).first()
            if taken:
                raise ValidationError('Slug is already in use.')

class PlanForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(message="Plan name is required."), Length(max=100)])
    slug = StringField('Slug', validators=[DataRequired(message="Plan slug is required."), Regexp(SLUG_PATTERN, message="Invalid slug.")])
    price = DecimalField('Price', places=2, validators=[InputRequired(message="Price is required."), NumberRange(min=0)])
    billingCycle = StringField('Billing Cycle', validators=[Optional(), AnyOf(['monthly', 'yearly'], message="Invalid billing cycle.")])
    maxUsers = IntegerField('Max Users', validators=[Optional(), NumberRange(min=1)])
    maxCampaigns = IntegerField('Max Campaigns', validators=[Optional(), NumberRange(min=1)])
    maxAuditsPerMonth = IntegerField('Max Audits', validators=[Optional(), NumberRange(min=1)])
    stripePriceId = StringField('Stripe Price ID', validators=[Optional(), Length(max=100)])
    isActive = BooleanField('Active', default=True)

# --- Platform settings & integrations ---

class PlatformSettingsForm(ApiForm):
    platform = StringField('Platform', validators=[DataRequired(message="Platform is required."), AnyOf(PLATFORM_VALUES, message="Invalid platform.")])
    appId = StringField('App ID', validators=[DataRequired(message="App ID is required."), Length(max=255)])
    appSecret = StringField('App Secret', validators=[Optional(), Length(max=512)])
    redirectUri = StringField('Redirect URI', validators=[Optional(), URL(require_tld=False, message="Invalid redirect URI.")])

class IntegrationForm(ApiForm):
    platform = StringField('Platform', validators=[DataRequired(message="Platform is required."), AnyOf(PLATFORM_VALUES, message="Invalid platform.")])
    accessToken = StringField('Access Token', validators=[DataRequired(message="Access token is required.")])
    refreshToken = StringField('Refresh Token', validators=[Optional()])
    accountId = StringField('Account ID', validators=[DataRequired(message="Account ID is required."), Length(max=255)])
    accountName = StringField('Account Name', validators=[Optional(), Length(max=255)])

class IntegrationUpdateForm(ApiForm):
    accessToken = StringField('Access Token', validators=[Optional()])
    refreshToken = StringField('Refresh Token', validators=[Optional()])
    accountId = StringField('Account ID', validators=[Optional(), Length(max=255)])
    accountName = StringField('Account Name', validators=[Optional(), Length(max=255)])
    status = StringField('Status', validators=[Optional(), AnyOf(['active', 'inactive'], message="Invalid status.")])

# --- Campaigns, ad sets, creatives ---

class CampaignForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(message="Campaign name is required."), Length(max=500)])
    platform = StringField('Platform', validators=[Optional(), AnyOf(PLATFORM_VALUES, message="Invalid platform.")])
    status = StringField('Status', validators=[Optional(), Length(max=50)])
    account = StringField('Account', validators=[Optional(), Length(max=255)])
    objective = StringField('Objective', validators=[Optional(), Length(max=100)])
    budget = DecimalField('Budget', places=2, validators=[Optional(), NumberRange(min=0)])
    integrationId = IntegerField('Integration', validators=[Optional()])
    externalId = StringField('External ID', validators=[Optional(), Length(max=255)])

class AdSetForm(ApiForm):
    campaignId = IntegerField('Campaign', validators=[InputRequired(message="campaignId is required.")])
    name = StringField('Name', validators=[DataRequired(message="Ad set name is required."), Length(max=500)])
    status = StringField('Status', validators=[Optional(), Length(max=50)])
    dailyBudget = DecimalField('Daily Budget', places=2, validators=[Optional(), NumberRange(min=0)])
    lifetimeBudget = DecimalField('Lifetime Budget', places=2, validators=[Optional(), NumberRange(min=0)])
    bidStrategy = StringField('Bid Strategy', validators=[Optional(), Length(max=100)])
    externalId = StringField('External ID', validators=[Optional(), Length(max=255)])

class CreativeForm(ApiForm):
    campaignId = IntegerField('Campaign', validators=[InputRequired(message="campaignId is required.")])
    adSetId = IntegerField('Ad Set', validators=[Optional()])
    name = StringField('Name', validators=[DataRequired(message="Creative name is required."), Length(max=500)])
    type = StringField('Type', validators=[Optional(), AnyOf([t.value for t in CreativeTypeEnum], message="Invalid creative type.")])
    imageUrl = StringField('Image URL', validators=[Optional(), Length(max=2048)])
    videoUrl = StringField('Video URL', validators=[Optional(), Length(max=2048)])
    text = StringField('Text', validators=[Optional()])
    headline = StringField('Headline', validators=[Optional(), Length(max=500)])
    description = StringField('Description', validators=[Optional()])
    callToAction = StringField('Call To Action', validators=[Optional(), Length(max=100)])
    status = StringField('Status', validators=[Optional(), Length(max=50)])
    impressions = IntegerField('Impressions', validators=[Optional(), NumberRange(min=0)])
    clicks = IntegerField('Clicks', validators=[Optional(), NumberRange(min=0)])
    conversions = IntegerField('Conversions', validators=[Optional(), NumberRange(min=0)])
    ctr = DecimalField('CTR', places=2, validators=[Optional(), NumberRange(min=0)])
    cpc = DecimalField('CPC', places=2, validators=[Optional(), NumberRange(min=0)])

class CreativeUpdateForm(CreativeForm):
    campaignId = IntegerField('Campaign', validators=[Optional()])
    name = StringField('Name', validators=[Optional(), Length(max=500)])

# --- Policies & audits ---

class PolicyForm(ApiForm):
    name = StringField('Name', validators=[DataRequired(message="Policy name is required."), Length(max=255)])
    description = StringField('Description', validators=[Optional()])
    status = StringField('Status', validators=[Optional(), AnyOf([s.value for s in PolicyStatusEnum], message="Invalid status.")])
    scope = StringField('Scope', validators=[Optional(), AnyOf([s.value for s in PolicyScopeEnum], message="Invalid scope.")])
    isDefault = BooleanField('Default')

class PolicyUpdateForm(PolicyForm):
    name = StringField('Name', validators=[Optional(), Length(max=255)])

class AuditForm(ApiForm):
    creativeId = IntegerField('Creative', validators=[InputRequired(message="creativeId is required.")])
    policyId = IntegerField('Policy', validators=[Optional()])
    status = StringField('Status', validators=[DataRequired(message="Status is required."), AnyOf([s.value for s in AuditStatusEnum], message="Invalid status.")])
    complianceScore = FloatField('Compliance Score', validators=[Optional(), NumberRange(min=0, max=100)])
    performanceScore = FloatField('Performance Score', validators=[Optional(), NumberRange(min=0, max=100)])

class AuditActionForm(ApiForm):
    auditId = IntegerField('Audit', validators=[InputRequired(message="auditId is required.")])
    action = StringField('Action', validators=[DataRequired(message="Action is required."), AnyOf([a.value for a in AuditActionTypeEnum], message="Invalid action.")])
    notes = StringField('Notes', validators=[Optional()])
