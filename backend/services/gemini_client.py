"""Google Gemini API wrapper with error handling.

Only provider-level errors are translated here: 429/503 become
TransientProviderError, unparseable output becomes MalformedResponseError.
Retrying is the caller's job (see services.retry).
"""

import logging
from typing import Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from config import ProviderConfig
from models.schemas.chunk import RetrievedChunk
from services.errors import ConfigurationError, TransientProviderError
from services.json_repair import extract_json_from_llm
from services.prompt_builder import build_blueprint_prompt, build_evaluation_prompt, build_profile_prompt

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = (429, 503)


class LLMClient(Protocol):
    """What the evaluation and ingestion services need from a provider."""

    async def evaluate(self, blueprint: dict, profile: dict, cv_text: str) -> dict: ...

    async def parse_cv_to_profile(self, cv_text: str, retrieved_chunks: list[RetrievedChunk]) -> dict: ...

    async def parse_jd_to_blueprint(self, job_description: str) -> dict: ...


class GeminiClient:
    def __init__(self, config: ProviderConfig) -> None:
        self.config = config
        self._client: genai.Client | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def get_client(self) -> genai.Client:
        if not self.config.api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")
        if self._client is None:
            self._client = genai.Client(api_key=self.config.api_key)
        return self._client

    async def generate_json(self, prompt: str) -> dict:
        """Send a prompt to Gemini and parse the JSON response."""
        client = self.get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self.config.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.config.temperature,
                    max_output_tokens=self.config.max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as e:
            if e.code in TRANSIENT_STATUS_CODES:
                logger.warning("Gemini API returned %s: %s", e.code, e)
                raise TransientProviderError(str(e), status_code=e.code) from e
            logger.error("Gemini API error: %s", e)
            raise

        return extract_json_from_llm(response.text)

    async def evaluate(self, blueprint: dict, profile: dict, cv_text: str) -> dict:
        prompt = build_evaluation_prompt(blueprint, profile, cv_text)
        logger.debug("Evaluation prompt: %d chars", len(prompt))
        return await self.generate_json(prompt)

    async def parse_cv_to_profile(self, cv_text: str, retrieved_chunks: list[RetrievedChunk]) -> dict:
        prompt = build_profile_prompt(cv_text, retrieved_chunks)
        profile = await self.generate_json(prompt)

        for skill in profile.get("skills") or []:
            if isinstance(skill, dict) and retrieved_chunks and skill.get("chunk_index") is None:
                logger.warning("Skill %r has no chunk citation", skill.get("skill"))
        return profile

    async def parse_jd_to_blueprint(self, job_description: str) -> dict:
        blueprint = await self.generate_json(build_blueprint_prompt(job_description))
        if not blueprint.get("required_skills"):
            logger.warning("Blueprint for %r has no required skills", blueprint.get("role_title"))
        return blueprint
