"""
Gemini Model Manager - shared Vertex AI model instance.

The classifier needs exactly one text-in/text-out call, so the rest of the
codebase sees Gemini only through GeminiTextGenerator.generate(prompt).
"""

from __future__ import annotations

from functools import lru_cache

from meetq.config import (
    GEMINI_LOCATION,
    GEMINI_MAX_OUTPUT_TOKENS,
    GEMINI_MODEL,
    GEMINI_TEMPERATURE,
    GOOGLE_CLOUD_PROJECT,
)
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import time_block

logger = get_logger(__name__)


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create the shared Gemini model instance.

    Uses @lru_cache so the model is built once per process, on first use.

    Returns:
        GenerativeModel configured with the classification generation settings

    Raises:
        GeminiInitializationError: If model cannot be initialized
    """
    if not GOOGLE_CLOUD_PROJECT:
        raise GeminiInitializationError("GOOGLE_CLOUD_PROJECT not set")

    try:
        import vertexai
        from vertexai.generative_models import GenerationConfig, GenerativeModel

        vertexai.init(project=GOOGLE_CLOUD_PROJECT, location=GEMINI_LOCATION)
        model = GenerativeModel(
            GEMINI_MODEL,
            generation_config=GenerationConfig(
                temperature=GEMINI_TEMPERATURE,
                max_output_tokens=GEMINI_MAX_OUTPUT_TOKENS,
            ),
        )
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    logger.info(
        "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
        GOOGLE_CLOUD_PROJECT,
        GEMINI_LOCATION,
        GEMINI_MODEL,
    )
    return model


def clear_model_cache() -> None:
    """
    Clear the cached model instance.

    Useful for testing or when reconfiguration is needed.
    """
    get_gemini_model.cache_clear()
    logger.info("Cleared Gemini model cache")


class GeminiTextGenerator:
    """Opaque generate(prompt) -> text transport over the shared model."""

    def __init__(self, model=None):
        # None means resolve the shared model lazily on first call
        self._model = model

    def _get_model(self):
        if self._model is None:
            self._model = get_gemini_model()
        return self._model

    def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the first candidate's text.

        Raises:
            GeminiInitializationError: model could not be built
            ValueError: the response carried no text
            Exception: transport errors from the SDK propagate unchanged
        """
        model = self._get_model()
        with time_block("llm.gemini.latency"):
            response = model.generate_content(prompt)

        text = getattr(response, "text", None)
        if not text:
            raise ValueError("No text in Gemini response")
        return text
