from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from ocr_benchmark.errors import PermanentProviderError
from ocr_benchmark.model_types.models import ExtractionOutcome, OcrOutcome, Usage
from ocr_benchmark.models.token_costs import TokenCostTable, build_token_cost_table


class BaseModelProvider(ABC):
    """Uniform capability interface every OCR/LLM binding implements.

    Bindings raise :class:`ProviderError` subclasses; throttling must surface
    as a retryable error so the runner's retry executor can back off.
    """

    # In-flight call limit for pipelines using this provider; None means the run default.
    max_concurrency: Optional[int] = None

    def __init__(self, model_name: str, token_costs: Optional[TokenCostTable] = None):
        self.model_name = model_name
        self.token_costs = token_costs or build_token_cost_table()

    @abstractmethod
    async def perform_ocr(self, image_url: str) -> OcrOutcome:
        pass

    @abstractmethod
    async def extract_json_from_text(
            self,
            text: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        pass

    @abstractmethod
    async def extract_json_from_image(
            self,
            image_url: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        pass

    def unsupported(self, operation: str) -> PermanentProviderError:
        return PermanentProviderError(
            f"{self.model_name} does not support {operation}",
            provider=self.model_name
        )

    def build_usage(self, duration: float, input_tokens: int = 0, output_tokens: int = 0) -> Usage:
        input_cost, output_cost, total_cost = self.token_costs.calculate_cost(
            self.model_name, input_tokens, output_tokens
        )
        return Usage(
            duration=duration,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            input_cost=input_cost,
            output_cost=output_cost,
            total_cost=total_cost
        )
