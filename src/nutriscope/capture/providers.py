"""Transcription and image-analysis collaborators."""

import json
import logging
import re
from typing import Any

from openai import AsyncOpenAI
from pydantic import ValidationError

from ..config import MAX_AUDIO_BYTES, MIN_AUDIO_BYTES
from ..errors import ImageAnalysisError, TranscriptionError
from ..llm import ChatMessage, LLMProvider
from .base import ImageAnalyzer, Transcriber
from .models import ImageAnalysis

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class OpenAITranscriber(Transcriber):
    """Whisper transcription through the OpenAI audio API.

    Hidden design decisions:
    - Audio size limits enforced before upload
    - Upload filename and container format
    - Language hint
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "whisper-1",
        language: str = "en",
        filename: str = "audio.webm"
    ):
        self._client = client
        self._model = model
        self._language = language
        self._filename = filename

    async def transcribe(self, audio: bytes, user_id: str | None = None) -> str:
        if len(audio) < MIN_AUDIO_BYTES:
            raise TranscriptionError(
                f"Audio too short: {len(audio)} bytes",
                user_message="Recording too short. Please try again."
            )
        if len(audio) > MAX_AUDIO_BYTES:
            raise TranscriptionError(
                f"Audio too large: {len(audio)} bytes",
                user_message="Audio file too large (max 25MB)"
            )

        try:
            transcription = await self._client.audio.transcriptions.create(
                model=self._model,
                file=(self._filename, audio),
                language=self._language,
            )
        except Exception as e:
            logger.error("Transcription failed for user %s: %s", user_id, e)
            raise TranscriptionError(f"Transcription failed: {e}") from e

        text = (transcription.text or "").strip()
        if not text:
            raise TranscriptionError(
                "Empty transcription",
                user_message="No speech detected. Please try again."
            )
        return text


def parse_image_analysis(content: str) -> ImageAnalysis:
    """Parse a vision reply, tolerating JSON embedded in prose.

    Raises:
        ImageAnalysisError: If the JSON does not describe a meal image
    """
    parsed: Any = None
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(content)
        if match:
            try:
                parsed = json.loads(match.group(0))
            except json.JSONDecodeError:
                parsed = None

    if not isinstance(parsed, dict):
        return ImageAnalysis(description=content.strip())

    try:
        return ImageAnalysis(
            description=parsed.get("description") or "Meal image",
            estimated_nutrition=parsed.get("estimatedNutrition"),
        )
    except ValidationError as e:
        raise ImageAnalysisError(f"Malformed image analysis: {e}") from e


class LLMImageAnalyzer(ImageAnalyzer):
    """Meal-photo description through a vision-capable LLM provider."""

    def __init__(self, llm: LLMProvider, prompt: str | None = None, max_tokens: int = 500):
        self._llm = llm
        if prompt is None:
            from ..prompts import get_image_analysis_prompt
            prompt = get_image_analysis_prompt()
        self._prompt = prompt
        self._max_tokens = max_tokens

    async def analyze(self, image_url: str) -> ImageAnalysis:
        messages = [ChatMessage(role="user", content=self._prompt, image_url=image_url)]
        try:
            response = await self._llm.chat_completion(
                messages,
                temperature=0.3,
                max_tokens=self._max_tokens,
                json_mode=True,
            )
        except Exception as e:
            raise ImageAnalysisError(f"Image analysis failed: {e}") from e

        if not response.content.strip():
            raise ImageAnalysisError("Empty image analysis reply")
        return parse_image_analysis(response.content)
