import pytest
from unittest.mock import patch, Mock
import json

from focus_voyage.services.analyzer import GeminiClassifier
from focus_voyage.services.errors import ClassifierError

@pytest.fixture
def classifier():
    """Classifier with the Gemini model mocked out"""
    with patch('google.generativeai.configure'), patch('google.generativeai.GenerativeModel') as mock_model:
        classifier = GeminiClassifier(
            mode="content",
            goal="Finish the thesis",
            task="Write chapter 3",
            related_apps=["overleaf.com"],
            api_key="test-key",
        )
        classifier.model = mock_model.return_value
        yield classifier

def respond(classifier, text):
    response = Mock()
    response.text = text
    classifier.model.generate_content.return_value = response

@pytest.mark.asyncio
async def test_relevant_verdict(classifier):
    respond(classifier, json.dumps({"relevant": True, "confidence": 0.92, "reasoning": "Editing LaTeX"}))

    verdict = await classifier.evaluate(b"jpeg-bytes")

    assert verdict.relevant
    assert verdict.confidence == 0.92
    assert verdict.reasoning == "Editing LaTeX"
    contents = classifier.model.generate_content.call_args.kwargs["contents"]
    assert "Finish the thesis" in contents[0]
    assert contents[1] == {"mime_type": "image/jpeg", "data": b"jpeg-bytes"}

@pytest.mark.asyncio
async def test_fenced_json_is_parsed(classifier):
    respond(classifier, '```json\n{"relevant": false, "confidence": 0.7}\n```')
    verdict = await classifier.evaluate(b"jpeg-bytes")
    assert not verdict.relevant
    assert verdict.confidence == 0.7

@pytest.mark.asyncio
async def test_percent_confidence_is_normalized(classifier):
    respond(classifier, '{"relevant": true, "confidence": 85}')
    verdict = await classifier.evaluate(b"jpeg-bytes")
    assert verdict.confidence == 0.85

@pytest.mark.asyncio
@pytest.mark.parametrize("text", [
    "not json at all",
    '{"confidence": 0.9}',
    "",
])
async def test_bad_responses_raise(classifier, text):
    respond(classifier, text)
    with pytest.raises(ClassifierError):
        await classifier.evaluate(b"jpeg-bytes")

@pytest.mark.asyncio
async def test_api_error_raises_classifier_error(classifier):
    classifier.model.generate_content.side_effect = Exception("API Error")
    with pytest.raises(ClassifierError, match="API Error"):
        await classifier.evaluate(b"jpeg-bytes")

@pytest.mark.asyncio
async def test_empty_snapshot_is_rejected(classifier):
    with pytest.raises(ClassifierError):
        await classifier.evaluate(b"")
    classifier.model.generate_content.assert_not_called()

def test_presence_prompt():
    with patch('google.generativeai.configure'), patch('google.generativeai.GenerativeModel'):
        classifier = GeminiClassifier(mode="presence", task="Write chapter 3", api_key="test-key")
    prompt = classifier.build_prompt()
    assert "webcam" in prompt
    assert "Write chapter 3" in prompt

def test_unknown_mode():
    with pytest.raises(ValueError):
        GeminiClassifier(mode="audio", api_key="test-key")

def test_model_initialization_failure():
    with patch('google.generativeai.configure'), \
            patch('google.generativeai.GenerativeModel', side_effect=Exception("bad model")):
        with pytest.raises(ClassifierError):
            GeminiClassifier(api_key="test-key")
