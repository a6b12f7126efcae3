"""
Footprint-tracking OpenAI client wrapper.

Feeds each assistant response through the impact engine without
modifying the response.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from ..core.engine import ClaimRegistry, EstimationOutcome, ImpactEngine

logger = logging.getLogger(__name__)


class FootprintOpenAI:
    """OpenAI client wrapper that records the footprint of each response.

    Each response is claimed by id before it is estimated, so a response
    handed back twice (e.g. by a retrying caller) is only folded once.
    """

    def __init__(self, model: str, engine: ImpactEngine, client: Optional[OpenAI] = None):
        """Initialize the footprint-tracking client.

        Args:
            model: OpenAI model name (required)
            engine: Impact engine that records each response
            client: Pre-configured OpenAI client (defaults to OpenAI())

        Raises:
            ValueError: If model is missing/empty or engine is missing
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if engine is None:
            raise ValueError("engine is required")

        self.model = model
        self.engine = engine
        self.client = client or OpenAI()
        self.claims = ClaimRegistry()
        self.last_outcome: Optional[EstimationOutcome] = None

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs: Any
    ) -> Any:
        """Create a chat completion and record its footprint.

        Args:
            messages: List of message dictionaries (required)
            temperature: Sampling temperature (optional)
            max_tokens: Maximum tokens to generate (optional)
            **kwargs: Additional OpenAI parameters

        Returns:
            OpenAI chat completion response, unchanged

        Raises:
            ValueError: If messages is empty
            OpenAI API errors: Propagated without modification
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )

        self.record_response(response)
        return response

    def record_response(self, response: Any) -> Optional[EstimationOutcome]:
        """Estimate a completion response once; repeated ids are ignored."""
        response_id = getattr(response, "id", None)
        if response_id is not None and not self.claims.claim(response_id):
            logger.debug("Response %s already recorded", response_id)
            return None

        text = "\n".join(
            choice.message.content
            for choice in (response.choices or [])
            if getattr(choice.message, "content", None)
        )
        self.last_outcome = self.engine.observe(text)
        return self.last_outcome
