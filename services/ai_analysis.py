"""
Optional OpenAI enrichment of creative audits.

Uses chat completions with a JSON response format. Every failure is logged and
reported as None so the rule-based result stands on its own.
"""
import json
from flask import current_app
from openai import OpenAI, OpenAIError

COMPLIANCE_SYSTEM_PROMPT = (
    "You are a brand compliance expert. Analyze ad creatives for compliance issues "
    "and provide actionable recommendations."
)
PERFORMANCE_SYSTEM_PROMPT = (
    "You are a digital marketing performance analyst. Analyze ad performance metrics "
    "and provide actionable optimization recommendations."
)

def _listify(value):
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]

def _score(value):
    """Model score clamped to 0..100, or None when absent or not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return max(0.0, min(100.0, float(value)))
    except (TypeError, ValueError):
        return None

class CreativeAIAnalyzer:
    """
    Wraps the OpenAI client for the two creative analyses.

    Args:
        api_key (str): OpenAI API key.
        model (str): Chat model, 'gpt-4o' by default.
    """

    def __init__(self, api_key, model='gpt-4o'):
        if not api_key:
            raise ValueError("OpenAI API key is required for AI analysis.")
        self.client = OpenAI(api_key=api_key)
        self.model = model

    @classmethod
    def from_app_config(cls):
        """Returns an analyzer when OPENAI_API_KEY is configured, otherwise None."""
        api_key = current_app.config.get('OPENAI_API_KEY')
        if not api_key:
            return None
        return cls(api_key, current_app.config.get('OPENAI_MODEL', 'gpt-4o'))

    def _complete_json(self, system_prompt, user_content):
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            response_format={"type": "json_object"},
        )
        return json.loads(response.choices[0].message.content or '{}')

    @staticmethod
    def build_compliance_prompt(creative, brand_config=None, criteria=None):
        lines = [
            "Analyze this ad creative for brand compliance based on the brand configuration and content criteria below.",
            "",
            "Creative Details:",
            f"- Name: {creative.name}",
            f"- Type: {creative.type.value}",
            f"- Text: {creative.text or 'N/A'}",
            f"- Headline: {creative.headline or 'N/A'}",
            f"- Description: {creative.description or 'N/A'}",
            f"- Call to Action: {creative.call_to_action or 'N/A'}",
        ]
        if brand_config:
            lines += [
                "",
                "Brand Requirements:",
                f"- Brand Name: {brand_config.brand_name}",
                f"- Primary Color: {brand_config.primary_color or 'Not specified'}",
                f"- Secondary Color: {brand_config.secondary_color or 'Not specified'}",
                f"- Accent Color: {brand_config.accent_color or 'Not specified'}",
                f"- Font Family: {brand_config.font_family or 'Not specified'}",
                f"- Brand Guidelines: {brand_config.brand_guidelines or 'Not specified'}",
                f"- Logo: {'provided' if brand_config.logo_url else 'not provided'}",
            ]
        else:
            lines += ["", "No brand configuration found."]
        if criteria:
            lines += [
                "",
                "Content Criteria:",
                f"- Required Keywords: {json.dumps(criteria.required_keywords or [])}",
                f"- Prohibited Keywords: {json.dumps(criteria.prohibited_keywords or [])}",
                f"- Required Phrases: {json.dumps(criteria.required_phrases or [])}",
                f"- Prohibited Phrases: {json.dumps(criteria.prohibited_phrases or [])}",
                f"- Min Text Length: {criteria.min_text_length or 'Not specified'}",
                f"- Max Text Length: {criteria.max_text_length or 'Not specified'}",
                f"- Requires Logo: {'Yes' if criteria.requires_logo else 'No'}",
                f"- Requires Brand Colors: {'Yes' if criteria.requires_brand_colors else 'No'}",
            ]
        else:
            lines += ["", "No content criteria found."]
        lines += [
            "",
            'Respond with JSON: {"score": number 0-100, "issues": [string], "recommendations": [string], '
            '"logoCompliance": boolean, "colorCompliance": boolean, "textCompliance": boolean}',
        ]
        return "\n".join(lines)

    def analyze_compliance(self, creative, brand_config=None, criteria=None):
        """
        Returns {"score", "issues", "recommendations", "analysis"} or None on failure.
        "score" is None when the model did not give a usable one.

        The creative image is attached when it is an http(s) URL, so the model can
        check logo and colours visually.
        """
        prompt = self.build_compliance_prompt(creative, brand_config, criteria)
        content = [{"type": "text", "text": prompt}]
        if creative.image_url and creative.image_url.startswith(('http://', 'https://')):
            content.append({"type": "image_url", "image_url": {"url": creative.image_url}})
        try:
            result = self._complete_json(COMPLIANCE_SYSTEM_PROMPT, content)
        except (OpenAIError, ValueError) as e: # ValueError covers malformed JSON content.
            current_app.logger.error(f"AI compliance analysis failed for creative {creative.id}: {e}", exc_info=True)
            return None
        analysis = {flag: bool(result[flag]) for flag in ("logoCompliance", "colorCompliance", "textCompliance")
                    if flag in result}
        score = _score(result.get("score"))
        return {
            "score": score,
            "issues": _listify(result.get("issues")),
            "recommendations": _listify(result.get("recommendations")),
            "analysis": analysis,
        }

    def analyze_performance(self, creative):
        """Returns {"score", "performance", "recommendations", "metrics"} or None on failure."""
        clicks = creative.clicks or 0
        conversion_rate = (creative.conversions or 0) / max(clicks, 1) * 100
        prompt = "\n".join([
            "Analyze this ad creative's performance:",
            f"- Impressions: {creative.impressions or 0}",
            f"- Clicks: {clicks}",
            f"- Conversions: {creative.conversions or 0}",
            f"- CTR: {creative.effective_ctr:.2f}%",
            f"- CPC: {creative.cpc if creative.cpc is not None else 'N/A'}",
            f"- Conversion Rate: {conversion_rate:.2f}%",
            f"- Type: {creative.type.value}",
            f"- Headline: {creative.headline or 'N/A'}",
            "",
            'Respond with JSON: {"score": number 0-100, "performance": "high|medium|low", '
            '"recommendations": [string], "ctrAnalysis": string, "conversionAnalysis": string, "costEfficiency": string}',
        ])
        try:
            result = self._complete_json(PERFORMANCE_SYSTEM_PROMPT, prompt)
        except (OpenAIError, ValueError) as e:
            current_app.logger.error(f"AI performance analysis failed for creative {creative.id}: {e}", exc_info=True)
            return None
        score = _score(result.get("score"))
        performance = result.get("performance") if result.get("performance") in ('high', 'medium', 'low') else None
        return {
            "score": score,
            "performance": performance,
            "recommendations": _listify(result.get("recommendations")),
            "metrics": {
                "ctrAnalysis": result.get("ctrAnalysis", ""),
                "conversionAnalysis": result.get("conversionAnalysis", ""),
                "costEfficiency": result.get("costEfficiency", ""),
            },
        }
