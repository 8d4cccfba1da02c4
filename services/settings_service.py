"""
The brand settings screen edits four records at once: the brand configuration,
the default policy's rules, the content criteria and the performance benchmarks.
This module builds that combined view and validates and stores updates to it.
"""
from extensions import db
from models.brand_settings import BrandConfiguration, ContentCriteria, PerformanceBenchmarks
from models.policy import Policy, PolicyStatusEnum
from services.audit_service import load_active_brand_config, load_active_criteria, load_benchmarks
from utils.helpers import HEX_COLOR_PATTERN

AUTO_ACTIONS = ('pauseOnViolation', 'sendForReview', 'autoFixMinor')
BENCHMARK_COLUMNS = {
    'ctrMin': 'ctr_min',
    'ctrTarget': 'ctr_target',
    'cpcMax': 'cpc_max',
    'cpcTarget': 'cpc_target',
    'conversionsMin': 'conversions_min',
    'conversionsTarget': 'conversions_target',
}
INTEGER_BENCHMARKS = ('conversionsMin', 'conversionsTarget')

def load_settings_policy(user):
    """The default policy, else the first active one, else any."""
    query = Policy.query.filter_by(user_id=user.id).order_by(Policy.id)
    return (query.filter_by(is_default=True).first()
            or query.filter_by(status=PolicyStatusEnum.ACTIVE).first()
            or query.first())

def build_settings(user):
    brand_config = load_active_brand_config(user)
    policy = load_settings_policy(user)
    criteria = load_active_criteria(user)
    benchmarks = load_benchmarks(user)
    rules = (policy.rules or {}) if policy else {}
    return {
        "brand": {
            "logoUrl": brand_config.logo_url if brand_config else None,
            "primaryColor": brand_config.primary_color if brand_config else None,
            "secondaryColor": brand_config.secondary_color if brand_config else None,
            "accentColor": brand_config.accent_color if brand_config else None,
            "visualGuidelines": brand_config.brand_guidelines if brand_config else None,
        },
        "brandPolicies": {
            "autoApproval": bool(rules.get('autoApproval', False)),
            "autoActions": {name: bool(rules.get(name, False)) for name in AUTO_ACTIONS},
        },
        "validationCriteria": {
            "requiredKeywords": list(criteria.required_keywords or []) if criteria else [],
            "forbiddenTerms": list(criteria.prohibited_keywords or []) if criteria else [],
            "brandRequirements": {
                "requireLogo": bool(criteria.requires_logo) if criteria else False,
                "requireBrandColors": bool(criteria.requires_brand_colors) if criteria else False,
            },
        },
        "performanceBenchmarks": benchmarks.to_dict() if benchmarks else PerformanceBenchmarks().to_dict(),
    }

# --- Validation ---

def _section(payload, key, errors):
    value = payload.get(key)
    if not isinstance(value, dict):
        errors.append({"path": key, "message": "Expected an object"})
        return {}
    return value

def _boolean(section, key, path, errors):
    value = section.get(key)
    if not isinstance(value, bool):
        errors.append({"path": f"{path}.{key}", "message": "Expected a boolean"})
        return False
    return value

def _string_list(section, key, path, errors):
    value = section.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        errors.append({"path": f"{path}.{key}", "message": "Expected a list of strings"})
        return []
    return [item.strip() for item in value if item.strip()]

def validate_settings(payload):
    """
    Checks a settings payload.

    Returns:
        tuple: (clean settings dict, list of {"path", "message"} errors).
    """
    errors = []
    if not isinstance(payload, dict):
        return None, [{"path": "", "message": "Expected an object"}]

    brand_in = _section(payload, 'brand', errors)
    brand = {}
    logo_url = brand_in.get('logoUrl')
    if logo_url is not None and (not isinstance(logo_url, str) or (logo_url and not logo_url.startswith(('http://', 'https://', '/')))):
        errors.append({"path": "brand.logoUrl", "message": "Invalid URL"})
    brand['logoUrl'] = logo_url or None
    for key in ('primaryColor', 'secondaryColor', 'accentColor'):
        color = brand_in.get(key)
        if color and (not isinstance(color, str) or not HEX_COLOR_PATTERN.match(color)):
            errors.append({"path": f"brand.{key}", "message": "Color must be in #RRGGBB format"})
        brand[key] = color or None
    guidelines = brand_in.get('visualGuidelines')
    if guidelines is not None and not isinstance(guidelines, str):
        errors.append({"path": "brand.visualGuidelines", "message": "Expected a string"})
    brand['visualGuidelines'] = guidelines or None

    policies_in = _section(payload, 'brandPolicies', errors)
    auto_actions_in = _section(policies_in, 'autoActions', errors) if policies_in else {}
    brand_policies = {
        "autoApproval": _boolean(policies_in, 'autoApproval', 'brandPolicies', errors),
        "autoActions": {name: _boolean(auto_actions_in, name, 'brandPolicies.autoActions', errors) for name in AUTO_ACTIONS},
    }

    criteria_in = _section(payload, 'validationCriteria', errors)
    requirements_in = _section(criteria_in, 'brandRequirements', errors) if criteria_in else {}
    validation_criteria = {
        "requiredKeywords": _string_list(criteria_in, 'requiredKeywords', 'validationCriteria', errors),
        "forbiddenTerms": _string_list(criteria_in, 'forbiddenTerms', 'validationCriteria', errors),
        "brandRequirements": {
            "requireLogo": _boolean(requirements_in, 'requireLogo', 'validationCriteria.brandRequirements', errors),
            "requireBrandColors": _boolean(requirements_in, 'requireBrandColors', 'validationCriteria.brandRequirements', errors),
        },
    }

    benchmarks_in = _section(payload, 'performanceBenchmarks', errors)
    benchmarks = {}
    for key in BENCHMARK_COLUMNS:
        value = benchmarks_in.get(key)
        if value is None:
            benchmarks[key] = None
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append({"path": f"performanceBenchmarks.{key}", "message": "Expected a number"})
        elif key in INTEGER_BENCHMARKS and not float(value).is_integer():
            errors.append({"path": f"performanceBenchmarks.{key}", "message": "Expected an integer"})
        elif value < 0:
            errors.append({"path": f"performanceBenchmarks.{key}", "message": "Must not be negative"})
        benchmarks[key] = int(value) if key in INTEGER_BENCHMARKS and isinstance(value, (int, float)) else value

    clean = {
        "brand": brand,
        "brandPolicies": brand_policies,
        "validationCriteria": validation_criteria,
        "performanceBenchmarks": benchmarks,
    }
    return clean, errors

# --- Persistence ---

def save_settings(user, settings):
    """
    Upserts the four records behind `settings` (already validated) in the
    current session. The caller commits.
    """
    company_id = user.company_id

    brand_config = load_active_brand_config(user)
    if brand_config is None:
        brand_config = BrandConfiguration(company_id=company_id, user_id=user.id, brand_name="Default Brand", is_active=True)
        db.session.add(brand_config)
    brand = settings["brand"]
    brand_config.logo_url = brand["logoUrl"]
    brand_config.primary_color = brand["primaryColor"]
    brand_config.secondary_color = brand["secondaryColor"]
    brand_config.accent_color = brand["accentColor"]
    brand_config.brand_guidelines = brand["visualGuidelines"]

    rules = {"autoApproval": settings["brandPolicies"]["autoApproval"]}
    rules.update(settings["brandPolicies"]["autoActions"])
    policy = load_settings_policy(user)
    if policy is None:
        policy = Policy(company_id=company_id, user_id=user.id, name="Default Policy",
                        description="Auto-generated default policy for brand settings",
                        status=PolicyStatusEnum.ACTIVE, is_default=True)
        db.session.add(policy)
    policy.rules = {**(policy.rules or {}), **rules} # New dict so the JSON column is flagged dirty.

    criteria = load_active_criteria(user)
    if criteria is None:
        criteria = ContentCriteria(company_id=company_id, user_id=user.id, name="Default Criteria",
                                   description="Auto-generated default validation criteria", is_active=True)
        db.session.add(criteria)
    validation = settings["validationCriteria"]
    criteria.required_keywords = validation["requiredKeywords"]
    criteria.prohibited_keywords = validation["forbiddenTerms"]
    criteria.requires_logo = validation["brandRequirements"]["requireLogo"]
    criteria.requires_brand_colors = validation["brandRequirements"]["requireBrandColors"]

    benchmarks = load_benchmarks(user)
    if benchmarks is None:
        benchmarks = PerformanceBenchmarks(company_id=company_id, user_id=user.id)
        db.session.add(benchmarks)
    for key, column in BENCHMARK_COLUMNS.items():
        setattr(benchmarks, column, settings["performanceBenchmarks"][key])
    return brand_config, policy, criteria, benchmarks
