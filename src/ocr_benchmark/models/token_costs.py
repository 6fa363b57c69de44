"""Per-model token prices in USD per 1M tokens."""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

TOKEN_COSTS = {
    # Local models
    "llama3.2": {"input": 0.0, "output": 0.0},
    "llama3.2-vision": {"input": 0.0, "output": 0.0},
    "llava": {"input": 0.0, "output": 0.0},
    "gpt-oss:20b": {"input": 0.0, "output": 0.0},
    "deepseek-r1:8b": {"input": 0.0, "output": 0.0},
    "tesseract": {"input": 0.0, "output": 0.0},

    # OpenAI
    "chatgpt-4o-latest": {"input": 2.5, "output": 10},
    "gpt-4o": {"input": 2.5, "output": 10},
    "gpt-4o-2024-11-20": {"input": 2.5, "output": 10},
    "gpt-4o-mini": {"input": 0.15, "output": 0.6},
    "gpt-4.1": {"input": 2, "output": 8},
    "gpt-4.1-mini": {"input": 0.4, "output": 1.6},
    "gpt-4.1-nano": {"input": 0.1, "output": 0.4},
    "o1": {"input": 15, "output": 60},
    "o1-mini": {"input": 1.1, "output": 4.4},
    "o3-mini": {"input": 1.1, "output": 4.4},
    "o4-mini": {"input": 1.1, "output": 4.4},

    # Google
    "gemini-1.5-pro": {"input": 1.25, "output": 5},
    "gemini-1.5-flash": {"input": 0.075, "output": 0.3},
    "gemini-2.0-flash-001": {"input": 0.1, "output": 0.4},
    "gemini-2.5-pro-preview-05-06": {"input": 1.25, "output": 10},
    "gemini-2.5-flash-preview-04-17": {"input": 0.15, "output": 0.6},
}

# Fine-tuned OpenAI models are billed at a flat rate.
FINETUNED_MODELS = []
FINETUNED_COST = {"input": 3.75, "output": 15.0}


class TokenCostTable:
    """Read-only price table built once at startup."""

    def __init__(self, costs: Mapping[str, Mapping[str, float]], finetuned_models: Iterable[str] = ()):
        combined = {model: MappingProxyType(dict(prices)) for model, prices in costs.items()}
        for model in finetuned_models:
            combined[model] = MappingProxyType(dict(FINETUNED_COST))
        self._costs = MappingProxyType(combined)
        self._warned = set()

    def __contains__(self, model: str) -> bool:
        return model in self._costs

    def price(self, model: str) -> Optional[Mapping[str, float]]:
        return self._costs.get(model)

    def cost(self, model: str, kind: str, tokens: Optional[int]) -> float:
        prices = self._costs.get(model)
        if prices is None:
            if model not in self._warned:
                self._warned.add(model)
                logger.warning("No token price for model '%s', costing it at 0", model)
            return 0.0
        return (prices[kind] * (tokens or 0)) / 1_000_000

    def calculate_cost(self, model: str, input_tokens: Optional[int], output_tokens: Optional[int]):
        input_cost = self.cost(model, "input", input_tokens)
        output_cost = self.cost(model, "output", output_tokens)
        return input_cost, output_cost, input_cost + output_cost


def build_token_cost_table(finetuned_models: Iterable[str] = FINETUNED_MODELS) -> TokenCostTable:
    return TokenCostTable(TOKEN_COSTS, finetuned_models)
