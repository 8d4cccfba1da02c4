# Importing every model registers its table on db.metadata (create_all / Flask-Migrate).
from .company import Company, CompanyStatusEnum, PlanTierEnum
from .user import User, UserRoleEnum
from .subscription_plan import SubscriptionPlan, BillingCycleEnum, SubscriptionStatusEnum
from .platform_settings import PlatformSettings, PlatformEnum
from .integration import Integration, IntegrationStatusEnum, SyncHistory, SyncStatusEnum
from .campaign import Campaign, AdSet
from .creative import Creative, CreativeTypeEnum
from .policy import Policy, PolicyStatusEnum, PolicyScopeEnum
from .brand_settings import BrandConfiguration, ContentCriteria, PerformanceBenchmarks
from .audit import Audit, AuditAction, AuditStatusEnum, AuditActionTypeEnum, AuditActionStatusEnum
from .webhook_event import WebhookEvent
