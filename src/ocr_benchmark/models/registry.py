import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

from ocr_benchmark.errors import ConfigError
from ocr_benchmark.model_types.models import PipelineConfig
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.gemini_provider import GeminiProvider
from ocr_benchmark.models.model_provider import ModelProvider
from ocr_benchmark.models.ocr_providers import TesseractProvider
from ocr_benchmark.models.openai_provider import OpenAIProvider
from ocr_benchmark.models.token_costs import FINETUNED_MODELS, TokenCostTable, build_token_cost_table

logger = logging.getLogger(__name__)

# Uses the document's ground-truth text as the OCR output.
GROUND_TRUTH_MODEL = "ground-truth"

OLLAMA_MODELS = (
    "llama3.2",
    "llama3.2-vision",
    "llava",
    "gpt-oss:20b",
    "deepseek-r1:8b",
)

OPENAI_MODELS = (
    "chatgpt-4o-latest",
    "gpt-4o-mini",
    "gpt-4o",
    "gpt-4o-2024-11-20",
    "gpt-4.1",
    "gpt-4.1-mini",
    "gpt-4.1-nano",
    "o1",
    "o1-mini",
    "o3-mini",
    "o4-mini",
)

GEMINI_MODELS = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-2.0-flash-001",
    "gemini-2.5-pro-preview-05-06",
    "gemini-2.5-flash-preview-04-17",
)

OCR_MODELS = ("tesseract",)

ProviderFactory = Callable[[str, TokenCostTable], BaseModelProvider]


@dataclass(frozen=True)
class ProviderGroup:
    name: str
    models: Tuple[str, ...]
    factory: ProviderFactory
    ocr_only: bool = False


MODEL_PROVIDERS = (
    ProviderGroup("ollama", OLLAMA_MODELS, ModelProvider),
    ProviderGroup("openai", OPENAI_MODELS, OpenAIProvider),
    ProviderGroup("gemini", GEMINI_MODELS, GeminiProvider),
    ProviderGroup("tesseract", OCR_MODELS, TesseractProvider, ocr_only=True),
)


class ProviderRegistry:
    """Model identifier → provider factory table, fixed at construction.

    Fine-tuned OpenAI models are registered with the OpenAI factory.
    """

    def __init__(
            self,
            groups: Sequence[ProviderGroup] = MODEL_PROVIDERS,
            token_costs: Optional[TokenCostTable] = None,
            finetuned_models: Iterable[str] = FINETUNED_MODELS
    ):
        self.token_costs = token_costs or build_token_cost_table()

        table: Dict[str, ProviderGroup] = {}
        finetuned = ProviderGroup("openai-ft", tuple(finetuned_models), OpenAIProvider)
        for group in list(groups) + [finetuned]:
            for model in group.models:
                if model in table:
                    raise ConfigError(f"Model '{model}' is registered by both {table[model].name} and {group.name}")
                table[model] = group
        self._table = MappingProxyType(table)

    def __contains__(self, model: str) -> bool:
        return model in self._table or model == GROUND_TRUTH_MODEL

    @property
    def models(self) -> Tuple[str, ...]:
        return tuple(self._table)

    def resolve(self, model: str) -> ProviderGroup:
        group = self._table.get(model)
        if group is None:
            raise ConfigError(f"Model '{model}' is not supported. Available models: {sorted(self._table)}")
        return group

    def is_ocr_only(self, model: str) -> bool:
        return model == GROUND_TRUTH_MODEL or self.resolve(model).ocr_only

    def create(self, model: str) -> BaseModelProvider:
        group = self.resolve(model)
        try:
            return group.factory(model, self.token_costs)
        except Exception as e:
            raise ConfigError(f"Could not initialise {group.name} provider for '{model}': {e}") from e

    def validate(self, pipelines: Sequence[PipelineConfig]) -> None:
        """Raise ConfigError for the first pipeline that cannot run."""
        if not pipelines:
            raise ConfigError("No pipelines configured")

        seen: Dict[str, PipelineConfig] = {}
        for config in pipelines:
            if not config.ocr_model:
                raise ConfigError(f"Pipeline {config!r} has no OCR model")
            if config.concurrency is not None and (
                    isinstance(config.concurrency, bool)
                    or not isinstance(config.concurrency, int)
                    or config.concurrency < 1
            ):
                raise ConfigError(f"{config.pipeline_id}: concurrency must be a positive integer, got {config.concurrency!r}")
            if config.pipeline_id in seen:
                raise ConfigError(
                    f"Pipeline id '{config.pipeline_id}' is used by both {seen[config.pipeline_id]!r} and {config!r}"
                )
            seen[config.pipeline_id] = config

            if config.ocr_model != GROUND_TRUTH_MODEL:
                self.resolve(config.ocr_model)

            if config.direct_image_extraction:
                model = config.extraction_model or config.ocr_model
                if self.is_ocr_only(model):
                    raise ConfigError(
                        f"{config.pipeline_id}: direct image extraction is not supported by OCR-only model '{model}'"
                    )
            elif config.extraction_model:
                if self.is_ocr_only(config.extraction_model):
                    raise ConfigError(
                        f"{config.pipeline_id}: cannot use OCR-only model '{config.extraction_model}' for JSON extraction"
                    )
            elif config.ocr_model == GROUND_TRUTH_MODEL:
                raise ConfigError("A ground-truth pipeline needs an extraction model")

    def build_providers(self, pipelines: Sequence[PipelineConfig]) -> Dict[str, BaseModelProvider]:
        """Validate ``pipelines`` and instantiate each provider they need, once."""
        self.validate(pipelines)

        providers: Dict[str, BaseModelProvider] = {}
        for config in pipelines:
            for model in required_models(config):
                if model not in providers:
                    providers[model] = self.create(model)
                    logger.debug("Initialised provider for %s", model)
        return providers


def required_models(config: PipelineConfig) -> Tuple[str, ...]:
    """Models a pipeline calls, in call order; the ground-truth pseudo-model needs no provider."""
    if config.direct_image_extraction:
        return (config.extraction_model or config.ocr_model,)

    models = []
    if config.ocr_model != GROUND_TRUTH_MODEL:
        models.append(config.ocr_model)
    if config.extraction_model and config.extraction_model not in models:
        models.append(config.extraction_model)
    return tuple(models)
