"""
Rule evaluation of a creative against brand configuration, content criteria,
policy switches and performance benchmarks.

Everything here is pure: inputs are model instances (or None) and plain dicts,
outputs are JSON-ready dicts. Persistence lives in services.audit_service.
"""
import re
from models.audit import AuditStatusEnum
from models.brand_settings import DEFAULT_BENCHMARKS
from models.policy import PolicyScopeEnum
from utils.helpers import to_float

# --- Scoring constants ---
PENALTY_PER_VIOLATION = 15   # Compliance points lost per rule violation.
MAX_STORED_SCORE = 99.99     # Scores are persisted in the 0..99.99 range.
METRIC_SCORE_TARGET = 100    # Metric at or better than target.
METRIC_SCORE_MIN = 70        # Metric between minimum and target.
METRIC_SCORE_BELOW = 30      # Metric below minimum.
HIGH_PERFORMANCE = 80
MEDIUM_PERFORMANCE = 50

CHECK_PASSED = 'passed'
CHECK_WARNING = 'warning'
CHECK_FAILED = 'failed'

# --- Policy selection ---

def select_policy(policies, campaign_id):
    """
    Picks the policy that applies to a creative of `campaign_id`.

    Order: an active campaign-scoped policy listing the campaign, the default global
    policy, any global policy, the first policy. Inactive policies are skipped unless
    nothing else exists.

    Args:
        policies (list[Policy]): Candidate policies of the creative's owner.
        campaign_id (int): Campaign of the creative.

    Returns:
        Policy or None
    """
    if not policies:
        return None
    active = [p for p in policies if p.is_active()] or list(policies)

    for policy in active:
        if policy.covers_campaign(campaign_id):
            return policy
    global_policies = [p for p in active if p.scope == PolicyScopeEnum.GLOBAL]
    for policy in global_policies:
        if policy.is_default:
            return policy
    if global_policies:
        return global_policies[0]
    return active[0]

# --- Compliance ---

def _normalize_terms(values):
    """Cleans a JSON list of terms: strings only, stripped, lower-cased, no blanks or duplicates."""
    terms = []
    for value in values or []:
        if isinstance(value, str):
            term = value.strip().lower()
            if term and term not in terms:
                terms.append(term)
    return terms

def contains_keyword(text_lower, keyword):
    """Whole-word, case-insensitive match (keywords may contain spaces or punctuation)."""
    pattern = r'(?<!\w)' + re.escape(keyword) + r'(?!\w)'
    return re.search(pattern, text_lower) is not None

def analyze_compliance(creative, brand_config=None, criteria=None, policy=None):
    """
    Flat rule-matching pass over the creative's copy and the brand setup.

    Args:
        creative (Creative): Creative being audited.
        brand_config (BrandConfiguration or None): Active brand identity.
        criteria (ContentCriteria or None): Active text rules.
        policy (Policy or None): Supplies requireLogo / requireBrandColors switches.

    Returns:
        dict: {"score", "issues", "recommendations", "analysis"} where `issues` and
              `recommendations` are lists of strings and `analysis` holds the
              logo/colour/text flags plus the keyword breakdown.
    """
    text = creative.combined_text()
    text_lower = text.lower()
    issues, recommendations = [], []
    text_ok = True

    required_keywords = _normalize_terms(criteria.required_keywords if criteria else None)
    prohibited_keywords = _normalize_terms(criteria.prohibited_keywords if criteria else None)
    required_phrases = _normalize_terms(criteria.required_phrases if criteria else None)
    prohibited_phrases = _normalize_terms(criteria.prohibited_phrases if criteria else None)

    required_found = [kw for kw in required_keywords if contains_keyword(text_lower, kw)]
    required_missing = [kw for kw in required_keywords if kw not in required_found]
    prohibited_found = [kw for kw in prohibited_keywords if contains_keyword(text_lower, kw)]

    for keyword in required_missing:
        issues.append(f"Required keyword missing: '{keyword}'")
        recommendations.append(f"Add the required keyword '{keyword}' to the ad copy.")
        text_ok = False
    for keyword in prohibited_found:
        issues.append(f"Prohibited keyword found: '{keyword}'")
        recommendations.append(f"Remove the prohibited keyword '{keyword}'.")
        text_ok = False
    for phrase in required_phrases:
        if phrase not in text_lower:
            issues.append(f"Required phrase missing: '{phrase}'")
            recommendations.append(f"Include the phrase '{phrase}'.")
            text_ok = False
    for phrase in prohibited_phrases:
        if phrase in text_lower:
            issues.append(f"Prohibited phrase found: '{phrase}'")
            recommendations.append(f"Rephrase the copy to avoid '{phrase}'.")
            text_ok = False

    if criteria is not None:
        length = len(text.strip())
        if criteria.min_text_length is not None and length < criteria.min_text_length:
            issues.append(f"Copy too short: {length} characters (minimum {criteria.min_text_length})")
            recommendations.append("Expand the ad copy to meet the minimum length.")
            text_ok = False
        if criteria.max_text_length is not None and length > criteria.max_text_length:
            issues.append(f"Copy too long: {length} characters (maximum {criteria.max_text_length})")
            recommendations.append("Shorten the ad copy to stay within the maximum length.")
            text_ok = False

    requires_logo = bool(criteria and criteria.requires_logo) or bool(policy and policy.rule('requireLogo'))
    requires_colors = bool(criteria and criteria.requires_brand_colors) or bool(policy and policy.rule('requireBrandColors'))

    logo_ok = True
    if requires_logo and not (brand_config and brand_config.logo_url):
        issues.append("Logo required but no brand logo is configured")
        recommendations.append("Upload the brand logo in the brand settings.")
        logo_ok = False

    color_ok = True
    if requires_colors and not (brand_config and brand_config.colors):
        issues.append("Brand colors required but no brand colors are configured")
        recommendations.append("Define the brand colors in the brand settings.")
        color_ok = False

    score = max(0, min(100, 100 - PENALTY_PER_VIOLATION * len(issues)))
    return {
        "score": score,
        "issues": issues,
        "recommendations": recommendations,
        "analysis": {
            "logoCompliance": logo_ok,
            "colorCompliance": color_ok,
            "textCompliance": text_ok,
            "keywordAnalysis": {
                "requiredKeywordsFound": required_found,
                "requiredKeywordsMissing": required_missing,
                "prohibitedKeywordsFound": prohibited_found,
            },
        },
    }

# --- Performance ---

def resolve_benchmarks(benchmarks=None, policy=None):
    """
    Merges default benchmarks, the user's stored benchmarks and the policy's
    performance_thresholds (later wins).

    Args:
        benchmarks (PerformanceBenchmarks or dict or None)
        policy (Policy or None)
    """
    resolved = dict(DEFAULT_BENCHMARKS)
    if benchmarks is not None:
        stored = benchmarks if isinstance(benchmarks, dict) else benchmarks.to_dict()
        resolved.update({k: v for k, v in stored.items() if k in resolved and v is not None})
    if policy is not None and policy.performance_thresholds:
        for key, value in policy.performance_thresholds.items():
            if key in resolved and to_float(value) is not None:
                resolved[key] = to_float(value)
    return resolved

def _score_higher_is_better(value, minimum, target):
    if value >= target:
        return METRIC_SCORE_TARGET
    if value >= minimum:
        return METRIC_SCORE_MIN
    return METRIC_SCORE_BELOW

def _score_lower_is_better(value, maximum, target):
    if value <= target:
        return METRIC_SCORE_TARGET
    if value <= maximum:
        return METRIC_SCORE_MIN
    return METRIC_SCORE_BELOW

def classify_performance(score):
    if score >= HIGH_PERFORMANCE:
        return 'high'
    if score >= MEDIUM_PERFORMANCE:
        return 'medium'
    return 'low'

def analyze_performance(creative, benchmarks):
    """
    Scores CTR, CPC and conversions against the resolved benchmarks.

    Each metric scores 100 at/above target, 70 between minimum and target and 30
    below minimum (inverted for CPC); the result is their mean. Without clicks or a
    recorded CPC the cost benchmark counts as missed.

    Returns:
        dict: {"score", "performance", "recommendations", "metrics"}.
    """
    clicks = creative.clicks or 0
    conversions = creative.conversions or 0
    ctr = creative.effective_ctr
    cpc = to_float(creative.cpc)

    scores, recommendations = [], []

    ctr_score = _score_higher_is_better(ctr, benchmarks['ctrMin'], benchmarks['ctrTarget'])
    scores.append(ctr_score)
    ctr_analysis = f"CTR {ctr:.2f}% (minimum {benchmarks['ctrMin']}%, target {benchmarks['ctrTarget']}%)."
    if ctr_score == METRIC_SCORE_BELOW:
        recommendations.append("CTR is below the minimum: test a stronger headline or visual.")

    conversion_score = _score_higher_is_better(conversions, benchmarks['conversionsMin'], benchmarks['conversionsTarget'])
    scores.append(conversion_score)
    conversion_analysis = f"{conversions} conversions (minimum {benchmarks['conversionsMin']}, target {benchmarks['conversionsTarget']})."
    if conversion_score == METRIC_SCORE_BELOW:
        recommendations.append("Conversions are below the minimum: review the call to action and landing page.")

    if cpc is not None and clicks > 0:
        cpc_score = _score_lower_is_better(cpc, benchmarks['cpcMax'], benchmarks['cpcTarget'])
        cost_efficiency = f"CPC {cpc:.2f} (maximum {benchmarks['cpcMax']}, target {benchmarks['cpcTarget']})."
        if cpc_score == METRIC_SCORE_BELOW:
            recommendations.append("CPC is above the maximum: narrow the targeting or adjust the bid strategy.")
    else:
        cpc_score = METRIC_SCORE_BELOW
        cost_efficiency = f"No cost data (maximum {benchmarks['cpcMax']}, target {benchmarks['cpcTarget']})."
        recommendations.append("No clicks or CPC recorded yet: the cost benchmark is not met.")
    scores.append(cpc_score)

    score = round(sum(scores) / len(scores), 2)
    return {
        "score": score,
        "performance": classify_performance(score),
        "recommendations": recommendations,
        "metrics": {
            "ctrAnalysis": ctr_analysis,
            "conversionAnalysis": conversion_analysis,
            "costEfficiency": cost_efficiency,
        },
    }

# --- Result assembly ---

def clamp_score(value):
    """Clamps a score to 0..99.99 and rounds to 2 decimals."""
    value = to_float(value) or 0.0
    return round(max(0.0, min(MAX_STORED_SCORE, value)), 2)

def determine_status(compliance, performance):
    """
    Maps the two analyses onto an audit status and the structured issue list.

    Returns:
        tuple: (AuditStatusEnum, list of {"type", "description", "severity"}).
    """
    status = AuditStatusEnum.COMPLIANT
    issues = []
    if compliance["issues"]:
        status = AuditStatusEnum.NON_COMPLIANT
        issues.extend({"type": "Compliance Issue", "description": issue, "severity": "high"}
                      for issue in compliance["issues"])
    if performance["performance"] == 'low':
        if status == AuditStatusEnum.COMPLIANT:
            status = AuditStatusEnum.LOW_PERFORMANCE
        issues.append({
            "type": "Performance Issue",
            "description": f"Low performance (score {performance['score']}): {performance['metrics']['ctrAnalysis']}",
            "severity": "medium",
        })
    return status, issues

def build_checks(compliance, performance, brand_config, criteria):
    """Per-area verdicts shown in the audit detail (brand, text content, performance)."""
    analysis = compliance["analysis"]

    if not (analysis["logoCompliance"] and analysis["colorCompliance"]):
        brand = {"status": CHECK_FAILED, "details": "Logo or brand colors requirement not met."}
    elif brand_config is None:
        brand = {"status": CHECK_WARNING, "details": "No brand configuration to check against."}
    else:
        brand = {"status": CHECK_PASSED, "details": "Brand identity requirements met."}

    if not analysis["textCompliance"]:
        text = {"status": CHECK_FAILED, "details": f"{len(compliance['issues'])} text rule violation(s)."}
    elif criteria is None:
        text = {"status": CHECK_WARNING, "details": "No content criteria to check against."}
    else:
        text = {"status": CHECK_PASSED, "details": "Copy follows the content criteria."}

    perf_status = {'high': CHECK_PASSED, 'medium': CHECK_WARNING}.get(performance["performance"], CHECK_FAILED)
    return {
        "brand": brand,
        "text": text,
        "performance": {"status": perf_status, "details": performance["metrics"]["ctrAnalysis"]},
    }

def merge_ai_result(rule_result, ai_result):
    """
    Folds an AI analysis into a rule-based one of the same shape.

    Issues and recommendations are unioned, boolean analysis flags AND-ed and the
    score averaged (an AI result without a score keeps the rule score). Performance is
    reclassified from the merged score. `ai_result` None leaves `rule_result` untouched.
    """
    if not ai_result:
        return rule_result
    merged = dict(rule_result)
    merged["issues"] = rule_result["issues"] + [i for i in ai_result.get("issues", []) if i not in rule_result["issues"]]
    merged["recommendations"] = rule_result["recommendations"] + [
        r for r in ai_result.get("recommendations", []) if r not in rule_result["recommendations"]]
    if ai_result.get("score") is not None:
        merged["score"] = round((rule_result["score"] + ai_result["score"]) / 2, 2)
    if "analysis" in rule_result:
        analysis = dict(rule_result["analysis"])
        for flag in ("logoCompliance", "colorCompliance", "textCompliance"):
            if flag in ai_result.get("analysis", {}):
                analysis[flag] = analysis[flag] and bool(ai_result["analysis"][flag])
        merged["analysis"] = analysis
    if "performance" in rule_result:
        merged["performance"] = classify_performance(merged["score"])
    return merged

def evaluate_creative(creative, policy=None, brand_config=None, criteria=None, benchmarks=None, ai_analyzer=None):
    """
    Full evaluation of one creative.

    Args:
        creative (Creative)
        policy (Policy or None): Policy selected with `select_policy`.
        brand_config (BrandConfiguration or None)
        criteria (ContentCriteria or None)
        benchmarks (PerformanceBenchmarks or dict or None)
        ai_analyzer (services.ai_analysis.CreativeAIAnalyzer or None): Optional enrichment.

    Returns:
        dict: {"status" (AuditStatusEnum), "complianceScore", "performanceScore",
               "issues", "recommendations", "aiAnalysis"}.
    """
    resolved_benchmarks = resolve_benchmarks(benchmarks, policy)
    compliance = analyze_compliance(creative, brand_config, criteria, policy)
    performance = analyze_performance(creative, resolved_benchmarks)
    source = 'rules'

    if ai_analyzer is not None:
        ai_compliance = ai_analyzer.analyze_compliance(creative, brand_config, criteria)
        ai_performance = ai_analyzer.analyze_performance(creative)
        if ai_compliance or ai_performance:
            source = 'rules+ai'
        compliance = merge_ai_result(compliance, ai_compliance)
        performance = merge_ai_result(performance, ai_performance)

    if policy is None and brand_config is None and criteria is None:
        status = AuditStatusEnum.NEEDS_REVIEW
        issues = [{"type": "Configuration", "description": "No policy, brand configuration or content criteria configured.",
                   "severity": "low"}]
    else:
        status, issues = determine_status(compliance, performance)

    auto_approved = bool(policy and policy.should_auto_approve() and status == AuditStatusEnum.COMPLIANT)
    checks = build_checks(compliance, performance, brand_config, criteria)
    summary = (f"{len(compliance['issues'])} compliance issue(s); performance {performance['performance']} "
               f"({performance['score']}). Status: {status.value}.")

    return {
        "status": status,
        "complianceScore": clamp_score(compliance["score"]),
        "performanceScore": clamp_score(performance["score"]),
        "issues": issues,
        "recommendations": compliance["recommendations"] + performance["recommendations"],
        "aiAnalysis": {
            "checks": checks,
            "summary": summary,
            "source": source,
            "autoApproved": auto_approved,
            "compliance": compliance["analysis"],
            "performanceMetrics": performance["metrics"],
            "benchmarks": resolved_benchmarks,
            "brandConfig": brand_config.to_dict() if brand_config else None,
            "contentCriteria": criteria.to_dict() if criteria else None,
            "policyUsed": {"id": policy.id, "name": policy.name} if policy else None,
        },
    }
