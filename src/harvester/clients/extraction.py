"""
Extraction client: turns narrative text into a validated entity collection.

The model is asked for a JSON payload which is validated field by field before
any record is built. Validation failures and provider failures are retried up
to the policy's attempt budget; once exhausted the client returns an empty
collection, so extraction never aborts a search branch.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any

from ..models import EntityCollection, EntityRecord
from .base import (
    ExtractionDegraded,
    RetryPolicy,
    call_with_timeout,
    extract_json_from_text,
)
from .protocol import LLMAdapter

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You extract structured entities from research text.

Respond with ONLY this JSON structure:
{
  "entities": [
    {
      "name": "Canonical entity name",
      "attributes": {"attribute_name": "value"},
      "source": "URL or reference, or null"
    }
  ],
  "completeness_score": 0.0
}

Rules:
- Include only entities of the requested type that the text actually mentions
- Use attribute names in snake_case; omit attributes the text does not state
- completeness_score (0.0 to 1.0) is how fully the text covers entities of this type"""


def _validate_entity(raw: Any, index: int) -> EntityRecord:
    if not isinstance(raw, Mapping):
        raise ExtractionDegraded(f"entities[{index}] is not an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ExtractionDegraded(f"entities[{index}].name must be a non-empty string")

    attributes = raw.get("attributes")
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, Mapping):
        raise ExtractionDegraded(f"entities[{index}].attributes must be an object")
    for key in attributes:
        if not isinstance(key, str) or not key.strip():
            raise ExtractionDegraded(
                f"entities[{index}].attributes has an invalid key: {key!r}"
            )

    source = raw.get("source")
    if source is not None and not isinstance(source, str):
        raise ExtractionDegraded(f"entities[{index}].source must be a string or null")

    return EntityRecord(name=name, attributes=dict(attributes), source=source or None)


def validate_entity_collection(payload: Any, entity_type: str) -> EntityCollection:
    """
    Validate a decoded extraction payload field by field.

    Args:
        payload: Decoded JSON from the model
        entity_type: Entity type that was requested

    Returns:
        EntityCollection built from the payload

    Raises:
        ExtractionDegraded: On the first schema violation
    """
    if not isinstance(payload, Mapping):
        raise ExtractionDegraded("payload is not an object")

    raw_entities = payload.get("entities")
    if not isinstance(raw_entities, list):
        raise ExtractionDegraded("entities must be a list")

    score = payload.get("completeness_score", 0.0)
    if score is None:
        score = 0.0
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ExtractionDegraded("completeness_score must be a number")
    if math.isnan(score) or not 0.0 <= score <= 1.0:
        raise ExtractionDegraded(f"completeness_score out of range: {score}")

    entities = [_validate_entity(raw, i) for i, raw in enumerate(raw_entities)]

    return EntityCollection(
        entities=tuple(entities),
        entity_type=entity_type,
        completeness_score=float(score),
    )


class LLMExtractionClient:
    """ExtractionClient backed by an LLM adapter."""

    def __init__(
        self,
        adapter: LLMAdapter,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float | None = 120.0,
        max_tokens: int = 4096,
    ):
        self.adapter = adapter
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens

    def _build_user_prompt(self, text: str, entity_type: str) -> str:
        return f"""## Entity Type

{entity_type}

## Text

{text}

---

Extract every {entity_type} entity mentioned in the text.
Respond with ONLY the JSON structure specified."""

    async def _extract_once(self, text: str, entity_type: str) -> EntityCollection:
        response = await call_with_timeout(
            self.adapter.complete,
            self.timeout_seconds,
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            user_prompt=self._build_user_prompt(text, entity_type),
            max_tokens=self.max_tokens,
        )

        payload = extract_json_from_text(response.text)
        if payload is None:
            raise ExtractionDegraded(f"no JSON object in response: {response.text[:200]}")

        return validate_entity_collection(payload, entity_type)

    async def extract(self, text: str, entity_type: str) -> EntityCollection:
        """
        Extract entities of one type from text.

        Returns:
            Validated EntityCollection, or an empty one if every attempt failed
        """
        if not text.strip():
            return EntityCollection.empty(entity_type)

        try:
            collection = await self.retry_policy.call(self._extract_once, text, entity_type)
        except Exception as e:
            logger.warning(
                f"Extraction degraded after {self.retry_policy.max_attempts} attempt(s) "
                f"({type(e).__name__}: {e}), returning empty collection"
            )
            return EntityCollection.empty(entity_type)

        logger.debug(
            f"Extracted {len(collection)} {entity_type} entities "
            f"(completeness {collection.completeness_score:.2f})"
        )
        return collection
