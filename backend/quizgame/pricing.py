from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    input_per_1m: float  # USD per 1M input tokens
    output_per_1m: float  # USD per 1M output tokens


DEFAULT_PRICING: Dict[str, ModelPricing] = {
    "gemini-2.5-flash": ModelPricing(0.30, 2.50),
    "gemini-2.5-pro": ModelPricing(1.25, 10.0),
    "gemini-2.0-flash-lite": ModelPricing(0.075, 0.30),
    "openai/gpt-4o": ModelPricing(2.5, 10.0),
    "anthropic/claude-sonnet-4": ModelPricing(3.0, 15.0),
    "google/gemini-2.0-flash-exp": ModelPricing(0.0, 0.0),
}

PricingEntries = Union[Mapping[str, ModelPricing], Iterable[Tuple[str, ModelPricing]]]


class PricingCache:
    """In-memory model price table with explicit load/invalidate.

    One instance lives on the application state and is handed to whatever
    needs to price a run; nothing here is module-global.
    """

    def __init__(self) -> None:
        self._prices: Dict[str, ModelPricing] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self, entries: PricingEntries) -> int:
        items = entries.items() if isinstance(entries, Mapping) else entries
        self._prices = {model: pricing for model, pricing in items}
        self._loaded = True
        logger.info("Loaded pricing for %d models", len(self._prices))
        return len(self._prices)

    def invalidate(self) -> None:
        self._prices = {}
        self._loaded = False

    def get(self, model: str) -> Optional[ModelPricing]:
        return self._prices.get(model)

    def models(self) -> Dict[str, ModelPricing]:
        return dict(self._prices)

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> Optional[float]:
        pricing = self._prices.get(model)
        if pricing is None:
            logger.warning("No pricing data available for model: %s", model)
            return None
        input_cost = (input_tokens / 1_000_000) * pricing.input_per_1m
        output_cost = (output_tokens / 1_000_000) * pricing.output_per_1m
        return input_cost + output_cost


def format_cost(cost: float) -> str:
    if cost < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"


def parse_pricing_json(raw: str) -> Dict[str, ModelPricing]:
    """Parse ``{"model": {"input_per_1m": x, "output_per_1m": y}}``."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("pricing JSON must be an object keyed by model id")
    table: Dict[str, ModelPricing] = {}
    for model, entry in data.items():
        try:
            table[model] = ModelPricing(float(entry["input_per_1m"]), float(entry["output_per_1m"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid pricing entry for {model}: {exc}") from exc
    return table


def default_entries(raw_json: Optional[str]) -> Dict[str, ModelPricing]:
    if raw_json:
        return parse_pricing_json(raw_json)
    return dict(DEFAULT_PRICING)
