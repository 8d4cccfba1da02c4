import json
import pytest
from openai import OpenAIError
from models.brand_settings import BrandConfiguration
from models.creative import Creative, CreativeTypeEnum
from services.ai_analysis import CreativeAIAnalyzer

def completion(mocker, content):
    response = mocker.Mock()
    response.choices = [mocker.Mock(message=mocker.Mock(content=content))]
    return response

@pytest.fixture
def analyzer(mocker):
    mocker.patch('services.ai_analysis.OpenAI')
    return CreativeAIAnalyzer('sk-test')

@pytest.fixture
def creative():
    return Creative(id=7, name='Hero', type=CreativeTypeEnum.IMAGE, headline='Summer sale',
                    image_url='https://cdn.example.com/hero.jpg', impressions=1000, clicks=20, conversions=2, cpc=1.2)

def test_from_app_config_without_key(app_context):
    assert CreativeAIAnalyzer.from_app_config() is None

def test_requires_api_key():
    with pytest.raises(ValueError):
        CreativeAIAnalyzer('')

def test_compliance_prompt_mentions_brand():
    brand = BrandConfiguration(brand_name='Acme', primary_color='#112233')
    creative = Creative(name='Hero', type=CreativeTypeEnum.TEXT, text='Buy now')
    prompt = CreativeAIAnalyzer.build_compliance_prompt(creative, brand)
    assert "- Brand Name: Acme" in prompt
    assert "- Logo: not provided" in prompt
    assert "No content criteria found." in prompt

def test_analyze_compliance_parses_json(mocker, app_context, analyzer, creative):
    analyzer.client.chat.completions.create.return_value = completion(mocker, json.dumps({
        "score": 140, "issues": ["Logo too small", ""], "recommendations": ["Enlarge the logo"],
        "logoCompliance": False, "textCompliance": True,
    }))
    result = analyzer.analyze_compliance(creative)

    assert result == {
        "score": 100.0,
        "issues": ["Logo too small"],
        "recommendations": ["Enlarge the logo"],
        "analysis": {"logoCompliance": False, "textCompliance": True},
    }
    content = analyzer.client.chat.completions.create.call_args.kwargs['messages'][1]['content']
    assert content[1] == {"type": "image_url", "image_url": {"url": "https://cdn.example.com/hero.jpg"}}

def test_analyze_compliance_returns_none_on_api_error(app_context, analyzer, creative):
    analyzer.client.chat.completions.create.side_effect = OpenAIError("quota exceeded")
    assert analyzer.analyze_compliance(creative) is None

def test_analyze_performance_handles_bad_json(mocker, app_context, analyzer, creative):
    analyzer.client.chat.completions.create.return_value = completion(mocker, "not json")
    assert analyzer.analyze_performance(creative) is None

def test_analyze_performance_drops_unknown_level(mocker, app_context, analyzer, creative):
    analyzer.client.chat.completions.create.return_value = completion(mocker, json.dumps({
        "score": "65", "performance": "great", "recommendations": "not a list", "ctrAnalysis": "CTR ok"}))
    result = analyzer.analyze_performance(creative)
    assert result["score"] == 65.0
    assert result["performance"] is None
    assert result["recommendations"] == []
    assert result["metrics"]["ctrAnalysis"] == "CTR ok"

@pytest.mark.parametrize('payload', [{}, {"score": None}, {"score": "n/a"}])
def test_missing_score_is_none(mocker, app_context, analyzer, creative, payload):
    analyzer.client.chat.completions.create.return_value = completion(mocker, json.dumps(payload))
    assert analyzer.analyze_performance(creative)["score"] is None
    assert analyzer.analyze_compliance(creative)["score"] is None
