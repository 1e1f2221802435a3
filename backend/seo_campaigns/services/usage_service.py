"""
Usage Service — append-only token usage ledger for content synthesis calls.

Recording is fire-and-forget: a failed ledger write is logged and never fails the
action that triggered it.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seo_campaigns.models import ApiTokenUsage

logger = logging.getLogger(__name__)

# USD per 1M tokens: (input, output)
MODEL_PRICES: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "claude-sonnet-4-20250514": (3.00, 15.00),
    "claude-3-5-sonnet-20241022": (3.00, 15.00),
    "claude-3-5-haiku-20241022": (0.80, 4.00),
}

# Flat per-image estimate, keyed by image model
IMAGE_PRICES: dict[str, float] = {
    "gpt-image-1": 0.04,
    "dall-e-3": 0.04,
}


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


def estimate_cost(model: str, usage: TokenUsage) -> float:
    """Cost in USD. Unknown models are costed at 0."""
    model = (model or "").split(":", 1)[-1]
    if model in IMAGE_PRICES:
        return IMAGE_PRICES[model]
    prices = MODEL_PRICES.get(model)
    if not prices:
        return 0.0
    input_price, output_price = prices
    cost = usage.prompt_tokens * input_price / 1_000_000 + usage.completion_tokens * output_price / 1_000_000
    return round(cost, 6)


class UsageLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        user_id: Optional[uuid.UUID],
        brand_id: Optional[uuid.UUID],
        service_name: str,
        model_name: str,
        usage: Optional[TokenUsage] = None,
        request_data: Optional[dict] = None,
    ) -> bool:
        """Append one ledger row. Returns False when the write failed."""
        usage = usage or TokenUsage()
        try:
            async with self._session_factory() as session:
                session.add(ApiTokenUsage(
                    user_id=user_id,
                    brand_id=brand_id,
                    service_name=service_name,
                    model_name=model_name,
                    prompt_tokens=usage.prompt_tokens,
                    completion_tokens=usage.completion_tokens,
                    total_tokens=usage.total_tokens,
                    cost_usd=estimate_cost(model_name, usage),
                    request_data=request_data or {},
                ))
                await session.commit()
            return True
        except Exception as e:
            logger.error(f"Failed to log API usage for {service_name}/{model_name}: {e}", exc_info=True)
            return False
