import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import google.generativeai as genai

from focus_voyage.config.settings import settings
from focus_voyage.models.verdict import Verdict
from focus_voyage.services.errors import ClassifierError

logger = logging.getLogger(__name__)

CONTENT_PROMPT = """
You are a focus coach looking at a screenshot of someone's screen.
Their goal: {goal}
Their current task: {task}
Apps and sites they said they need: {related_apps}

Decide whether what is on screen is relevant to that goal and task.
Reference material, documentation and tools listed above count as relevant.
Social media, entertainment, shopping and unrelated browsing do not.

Respond only with JSON in this format:
{{
    "relevant": true|false,
    "confidence": 0.0-1.0,
    "reasoning": "<one sentence>"
}}
"""

PRESENCE_PROMPT = """
You are looking at a single webcam frame of someone who should be working
at their desk on: {task}

Decide whether a person is visibly present AND facing the screen or work surface.
Someone who is absent, turned away, asleep or clearly using a phone is not.

Respond only with JSON in this format:
{{
    "relevant": true|false,
    "confidence": 0.0-1.0,
    "reasoning": "<one sentence>"
}}
"""


class Classifier(ABC):
    """Judges a snapshot; may be slow and may fail"""

    @abstractmethod
    async def evaluate(self, snapshot: bytes) -> Verdict:
        """Return a verdict for the snapshot or raise ClassifierError"""


class GeminiClassifier(Classifier):
    """Classifier backed by the Gemini vision API.

    ``mode`` selects the prompt: "content" asks whether the screen matches the
    session goal, "presence" asks whether a person is present and facing the
    work surface.
    """

    MODES = ("content", "presence")

    def __init__(
        self,
        mode: str = "content",
        goal: str = "Focus on work",
        task: str = "Current task",
        related_apps: Optional[Sequence[str]] = None,
        model_name: str = settings.GEMINI_MODEL_NAME,
        api_key: Optional[str] = None,
        mime_type: str = "image/jpeg",
    ):
        if mode not in self.MODES:
            raise ValueError(f"Unknown classifier mode: {mode}")
        self.mode = mode
        self.goal = goal
        self.task = task
        self.related_apps: List[str] = list(related_apps or [])
        self.mime_type = mime_type
        self.model = self._initialize_model(model_name, api_key or settings.GEMINI_API_KEY)

    @staticmethod
    def is_configured(api_key: Optional[str] = None) -> bool:
        return bool(api_key or settings.GEMINI_API_KEY)

    def _initialize_model(self, model_name: str, api_key: Optional[str]) -> genai.GenerativeModel:
        """Initialize the Gemini model with configuration"""
        try:
            genai.configure(api_key=api_key)
            return genai.GenerativeModel(
                model_name=model_name,
                generation_config=genai.types.GenerationConfig(
                    temperature=0.1,
                    max_output_tokens=512,
                    candidate_count=1
                )
            )
        except Exception as e:
            logger.error(f"Failed to initialize Gemini model: {e}")
            raise ClassifierError(f"Model initialization failed: {e}")

    def build_prompt(self) -> str:
        if self.mode == "presence":
            return PRESENCE_PROMPT.format(task=self.task)
        return CONTENT_PROMPT.format(
            goal=self.goal,
            task=self.task,
            related_apps=json.dumps(self.related_apps)
        )

    async def evaluate(self, snapshot: bytes) -> Verdict:
        """Send the snapshot to Gemini and parse its verdict

        Args:
            snapshot: Encoded image bytes

        Returns:
            Verdict: Parsed classifier verdict

        Raises:
            ClassifierError: If the request or the parsing fails
        """
        if not snapshot:
            raise ClassifierError("Empty snapshot")
        image_part = {"mime_type": self.mime_type, "data": snapshot}
        try:
            response = await asyncio.to_thread(
                self.model.generate_content,
                contents=[self.build_prompt(), image_part],
                stream=False
            )
        except Exception as e:
            raise ClassifierError(f"Failed to generate verdict: {e}")

        if not response or not response.text:
            raise ClassifierError("Empty response from Gemini")
        return self._parse_response(response.text)

    def _parse_response(self, response_text: str) -> Verdict:
        """Parse the response text into a Verdict"""
        text = response_text.strip()
        if text.startswith('```'):
            text = text.split('```')[1]
        if text.startswith('json'):
            text = text[4:]
        text = text.strip()

        try:
            result = json.loads(text)
        except json.JSONDecodeError as e:
            raise ClassifierError(f"Failed to parse JSON response: {e}")

        if not isinstance(result, dict) or "relevant" not in result:
            raise ClassifierError(f"Missing required field 'relevant' in response: {text[:200]}")

        confidence = result.get("confidence", 0.5)
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = 0.5
        # Some responses use a 0-100 scale
        if confidence > 1.0:
            confidence = confidence / 100
        return Verdict(
            relevant=bool(result["relevant"]),
            confidence=min(1.0, max(0.0, confidence)),
            reasoning=str(result.get("reasoning", ""))
        )
