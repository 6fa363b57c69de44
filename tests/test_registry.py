import pytest

from ocr_benchmark.errors import ConfigError
from ocr_benchmark.model_types.models import PipelineConfig
from ocr_benchmark.models.ocr_providers import OCROnlyProvider
from ocr_benchmark.models.openai_provider import OpenAIProvider
from ocr_benchmark.models.registry import (
    GROUND_TRUTH_MODEL,
    ProviderGroup,
    ProviderRegistry,
    required_models,
)
from ocr_benchmark.models.token_costs import build_token_cost_table


class _StubOcr(OCROnlyProvider):

    async def perform_ocr(self, image_url):
        raise NotImplementedError


class _StubLlm(_StubOcr):

    async def extract_json_from_text(self, text, json_schema):
        raise NotImplementedError

    async def extract_json_from_image(self, image_url, json_schema):
        raise NotImplementedError


def _broken_factory(model_name, token_costs):
    raise RuntimeError("OPENAI_API_KEY is not set")


GROUPS = (
    ProviderGroup("local", ("llava", "llama3.2"), _StubLlm),
    ProviderGroup("cloud", ("gpt-4o",), _StubLlm),
    ProviderGroup("tesseract", ("tesseract",), _StubOcr, ocr_only=True),
    ProviderGroup("broken", ("gemini-1.5-pro",), _broken_factory),
)


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(GROUPS, build_token_cost_table(), finetuned_models=["ft:gpt-4o:acme"])


def test_resolve(registry) -> None:
    assert registry.resolve("llava").name == "local"
    assert registry.resolve("ft:gpt-4o:acme").factory is OpenAIProvider
    assert "tesseract" in registry
    assert GROUND_TRUTH_MODEL in registry
    assert "llava" in registry.models


def test_unknown_model(registry) -> None:
    with pytest.raises(ConfigError, match="Model 'gpt-5-ultra' is not supported"):
        registry.resolve("gpt-5-ultra")


def test_duplicate_registration() -> None:
    with pytest.raises(ConfigError, match="registered by both"):
        ProviderRegistry(GROUPS + (ProviderGroup("dup", ("llava",), _StubLlm),), build_token_cost_table())


def test_default_table() -> None:
    registry = ProviderRegistry(token_costs=build_token_cost_table())

    assert registry.is_ocr_only("tesseract")
    assert not registry.is_ocr_only("gpt-4o")
    assert registry.resolve("gemini-2.0-flash-001").name == "gemini"
    assert registry.resolve("llama3.2").name == "ollama"


def test_build_providers_creates_each_model_once(registry) -> None:
    pipelines = [
        PipelineConfig("tesseract", "llava"),
        PipelineConfig("llava", "llava"),
        PipelineConfig("llava", "llava", direct_image_extraction=True),
        PipelineConfig(GROUND_TRUTH_MODEL, "gpt-4o"),
    ]

    providers = registry.build_providers(pipelines)

    assert sorted(providers) == ["gpt-4o", "llava", "tesseract"]
    assert isinstance(providers["tesseract"], _StubOcr)
    assert providers["llava"].model_name == "llava"


def test_construction_failure_is_a_config_error(registry) -> None:
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        registry.build_providers([PipelineConfig("gemini-1.5-pro")])


@pytest.mark.parametrize("pipelines, message", [
    ([], "No pipelines"),
    ([PipelineConfig("")], "no OCR model"),
    ([PipelineConfig("llava", concurrency=0)], "concurrency must be a positive integer"),
    ([PipelineConfig("llava", concurrency="2")], "concurrency must be a positive integer"),
    ([PipelineConfig("gpt-4o"), PipelineConfig("gpt-4o", concurrency=2)], "is used by both"),
    ([PipelineConfig("easyocr", "gpt-4o")], "not supported"),
    ([PipelineConfig("llava", "gpt-5-ultra")], "not supported"),
    ([PipelineConfig("tesseract", "tesseract", direct_image_extraction=True)], "direct image extraction"),
    ([PipelineConfig("llava", "tesseract")], "OCR-only model 'tesseract'"),
    ([PipelineConfig(GROUND_TRUTH_MODEL)], "needs an extraction model"),
])
def test_validate_rejects(registry, pipelines, message) -> None:
    with pytest.raises(ConfigError, match=message):
        registry.validate(pipelines)


def test_validate_accepts(registry) -> None:
    registry.validate([
        PipelineConfig("gpt-4o"),
        PipelineConfig("gpt-4o", "gpt-4o"),
        PipelineConfig("tesseract"),
        PipelineConfig("tesseract", "gpt-4o", concurrency=2),
        PipelineConfig("gpt-4o", "gpt-4o", direct_image_extraction=True),
        PipelineConfig(GROUND_TRUTH_MODEL, "llama3.2"),
    ])


def test_required_models() -> None:
    assert required_models(PipelineConfig("tesseract", "gpt-4o")) == ("tesseract", "gpt-4o")
    assert required_models(PipelineConfig("llava", "llava")) == ("llava",)
    assert required_models(PipelineConfig("llava", "gpt-4o", direct_image_extraction=True)) == ("gpt-4o",)
    assert required_models(PipelineConfig(GROUND_TRUTH_MODEL, "gpt-4o")) == ("gpt-4o",)
