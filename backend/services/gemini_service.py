# ========================================
# services/gemini_service.py - Gemini integration
# ========================================

import google.generativeai as genai
from pydantic import BaseModel, ValidationError
from typing import Optional, Type, TypeVar

from config import get_settings
from utils.logger import get_logger

logger = get_logger("GeminiService")

T = TypeVar("T", bound=BaseModel)


class GenerationError(RuntimeError):
    """Generation call failed or returned output of the wrong shape."""


class GeminiService:
    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.model_name = model_name or settings.llm_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        if self.api_key:
            genai.configure(api_key=self.api_key)
            logger.info(f"Gemini service initialized ({self.model_name})")
        else:
            logger.error("Gemini API key not configured")

    def _model(self, system_instruction: Optional[str] = None) -> genai.GenerativeModel:
        if not self.api_key:
            raise GenerationError("LLM service not configured")
        return genai.GenerativeModel(self.model_name, system_instruction=system_instruction)

    async def generate_text(self, prompt: str, temperature: Optional[float] = None) -> str:
        """Generate free text; raises GenerationError when nothing usable comes back."""
        model = self._model()
        try:
            response = await model.generate_content_async(
                prompt,
                generation_config={
                    "temperature": temperature if temperature is not None else self.temperature,
                    "max_output_tokens": self.max_tokens,
                },
            )
        except Exception as e:
            raise GenerationError(f"Gemini generation error: {e}") from e

        try:
            text = response.text
        except ValueError as e:
            # .text raises when the candidate was blocked or empty
            finish = None
            if getattr(response, "candidates", None):
                finish = getattr(response.candidates[0], "finish_reason", None)
            raise GenerationError(f"Gemini returned no text (finish_reason={finish})") from e

        if not text or not text.strip():
            raise GenerationError("Gemini returned an empty response")
        return text

    async def generate_structured(
        self,
        system: str,
        prompt: str,
        schema: Type[T],
        temperature: Optional[float] = None,
    ) -> T:
        """Generate JSON and validate it against `schema`."""
        model = self._model(system_instruction=system)
        try:
            response = await model.generate_content_async(
                prompt,
                generation_config={
                    "temperature": temperature if temperature is not None else self.temperature,
                    "max_output_tokens": self.max_tokens,
                    "response_mime_type": "application/json",
                },
            )
            raw = response.text
        except Exception as e:
            raise GenerationError(f"Gemini structured generation error: {e}") from e

        try:
            return schema.model_validate_json(strip_code_fence(raw))
        except ValidationError as e:
            logger.warning(f"Gemini output failed {schema.__name__} validation: {e.error_count()} error(s)")
            raise GenerationError(f"Invalid {schema.__name__} output") from e


def strip_code_fence(text: str) -> str:
    """Drop ```json fences the model sometimes wraps JSON in."""
    resp = text.strip()
    if resp.startswith("```"):
        resp = resp.strip("`").strip()
        if resp.lower().startswith("json"):
            resp = resp[4:]
    return resp.strip()
