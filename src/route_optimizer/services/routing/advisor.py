"""Optimization advisor client and response validation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...config import Settings, settings as default_settings
from .errors import AdvisorFormatError, ProviderError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a logistics and route optimization expert for urban delivery routes. "
    "Always respond with valid JSON only. Optimize the order of locations, not individual orders."
)

RESPONSE_FORMAT = """Return ONLY a JSON object with this exact format:
{
  "optimizedLocationSequence": [0, 1, 2],
  "routingReasoning": "why this sequence is efficient",
  "optimizationInsights": ["short observations about the route"]
}
Every location id must appear exactly once."""


class AdvisorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    optimized_location_sequence: List[int] = Field(alias="optimizedLocationSequence")
    routing_reasoning: Optional[str] = Field(default=None, alias="routingReasoning")
    optimization_insights: List[str] = Field(default_factory=list, alias="optimizationInsights")


@dataclass(slots=True)
class SequenceProposal:
    indices: list[int]
    reasoning: Optional[str] = None
    insights: list[str] = field(default_factory=list)


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_sequence_proposal(raw: str, location_count: int) -> SequenceProposal:
    """Validate an advisor answer against the number of locations sent.

    The sequence must be a permutation of ``range(location_count)``; anything
    else raises AdvisorFormatError so the caller can fall back.
    """
    try:
        response = AdvisorResponse.model_validate_json(_strip_code_fence(raw))
    except ValidationError as exc:
        raise AdvisorFormatError("Advisor response does not match the expected structure", details={"errors": exc.errors()}) from exc

    indices = response.optimized_location_sequence
    out_of_range = [index for index in indices if index < 0 or index >= location_count]
    if out_of_range:
        raise AdvisorFormatError(
            f"Advisor referenced unknown location indices {out_of_range}",
            details={"location_count": location_count},
        )
    if len(set(indices)) != len(indices) or len(indices) != location_count:
        raise AdvisorFormatError(
            "Advisor sequence must visit every location exactly once",
            details={"received": indices, "location_count": location_count},
        )
    return SequenceProposal(
        indices=list(indices),
        reasoning=response.routing_reasoning,
        insights=list(response.optimization_insights),
    )


def build_prompt(scenario: dict[str, Any]) -> str:
    return "\n\n".join(
        [
            "Optimize the visiting order for the following delivery run.",
            f"START LOCATION: {scenario['startLocation']}",
            f"DELIVERY LOCATIONS:\n{json.dumps(scenario['deliveryLocations'], indent=2)}",
            f"CONSTRAINTS:\n{json.dumps(scenario['constraints'], indent=2)}",
            f"OPTIMIZATION GOALS: {', '.join(scenario['optimizationGoals'])}",
            "Account for service time at locations with several orders and plan an efficient return to the start.",
            RESPONSE_FORMAT,
        ]
    )


class OpenAIAdvisor:
    """Optimization advisor backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        config: Settings | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or default_settings
        self.api_key = api_key or self.config.openai_api_key
        if not self.api_key:
            raise ValueError("Advisor API key is not configured.")
        self.base_url = self.config.openai_base_url.rstrip("/")
        self.model = model or self.config.openai_model
        self.timeout = timeout if timeout is not None else self.config.request_timeout_seconds
        self.transport = transport

    def propose_sequence(self, scenario: dict[str, Any]) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(scenario)},
            ],
            "temperature": 0.1,
            "max_tokens": 1500,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        url = f"{self.base_url}/chat/completions"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=body, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"Advisor API error: {exc.response.status_code}",
                code="ADVISOR_REJECTED",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Advisor request failed: {exc}", code="ADVISOR_UNREACHABLE", retryable=True) from exc
        except ValueError as exc:
            raise AdvisorFormatError("Advisor response is not valid JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AdvisorFormatError("Advisor response has no message content") from exc
        if not isinstance(content, str):
            raise AdvisorFormatError("Advisor message content is not text")
        logger.debug(f"Advisor answered with {len(content)} characters")
        return content
