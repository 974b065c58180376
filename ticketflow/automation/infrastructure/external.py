"""
Automation External Service Adapters
====================================

Adapters for external services used by the automation module.

Implements the ITextExtractor capability on top of the infrastructure
LLM client.
"""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ticketflow.automation.application.ports import ITextExtractor, NullTextExtractor
from ticketflow.config import Settings, settings as default_settings
from ticketflow.core import LLMException
from ticketflow.infrastructure.llm import ILLMClient, build_llm_client
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


EXTRACTION_INSTRUCTION = (
    "Extract a structured ticket draft with fields: problem, environment, "
    "reproduction, impact, userIntent, confidence, evidence. Output JSON only. "
    "Raw input: "
)


class ExtractedDraftPayload(BaseModel):
    """Fields a model may return; anything missing keeps the keyword value."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    problem: Optional[str] = None
    environment: Optional[str] = Field(default=None, max_length=100)
    reproduction: Optional[str] = None
    impact: Optional[str] = Field(default=None, max_length=255)
    user_intent: Optional[str] = Field(default=None, alias="userIntent")
    confidence: Optional[Dict[str, float]] = None
    evidence: Optional[Dict[str, str]] = None

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        """Confidence scores must lie in [0, 1]."""
        if v is None:
            return v
        for name, score in v.items():
            if not 0.0 <= score <= 1.0:
                raise ValueError(f"confidence.{name} must be between 0 and 1")
        return v


def _strip_fences(content: str) -> str:
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if "```" in content:
        return content.split("```")[1].split("```")[0].strip()
    return content.strip()


class LLMTextExtractor(ITextExtractor):
    """
    Text extraction backed by an OpenAI compatible chat model.

    Any failure (call error, non-JSON output, invalid fields) is raised
    as LLMException; DraftBuilder decides how to fall back.
    """

    def __init__(self, llm_client: ILLMClient, config: Optional[Settings] = None):
        config = config or default_settings
        self._llm = llm_client
        self._temperature = config.llm_temperature
        self._max_tokens = config.llm_max_tokens

    async def extract(self, raw_text: str) -> Optional[Dict[str, Any]]:
        """
        Ask the model for draft fields.

        Returns:
            Draft field names mapped to extracted values (only fields the
            model actually returned)

        Raises:
            LLMException: If the call fails or the output is unusable
        """
        messages = [{"role": "user", "content": EXTRACTION_INSTRUCTION + raw_text}]

        response = await self._llm.chat_completion(
            messages=messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            operation="draft_extraction"
        )

        try:
            data = json.loads(_strip_fences(response.content))
        except json.JSONDecodeError as e:
            raise LLMException(f"Failed to parse extraction response: {e}")

        if not isinstance(data, dict):
            raise LLMException("Extraction response is not a JSON object")

        try:
            payload = ExtractedDraftPayload.model_validate(data)
        except ValidationError as e:
            raise LLMException(
                "Extraction response failed validation",
                {"errors": e.errors(include_url=False)}
            )

        return payload.model_dump(exclude_none=True)


def build_text_extractor(config: Optional[Settings] = None) -> ITextExtractor:
    """
    Build the configured text extractor.

    Returns:
        LLMTextExtractor when an LLM client is configured, else NullTextExtractor
    """
    config = config or default_settings
    client = build_llm_client(config)
    if client is None:
        logger.info("Text extraction disabled, drafts use keyword scans only")
        return NullTextExtractor()
    return LLMTextExtractor(client, config)
