import json

import pytest

from ocr_benchmark.config import MODEL_CONFIGURATIONS, Config, load_model_configurations
from ocr_benchmark.errors import ConfigError
from ocr_benchmark.model_types.models import PipelineConfig
from ocr_benchmark.models.registry import ProviderRegistry
from ocr_benchmark.models.token_costs import build_token_cost_table


def _write(tmp_path, data) -> str:
    path = tmp_path / "pipelines.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_builtin_configurations(monkeypatch) -> None:
    monkeypatch.setattr(Config, "PIPELINES_FILE", None)

    pipelines = load_model_configurations()

    assert pipelines == MODEL_CONFIGURATIONS
    ProviderRegistry(token_costs=build_token_cost_table()).validate(pipelines)


def test_pipelines_file_list(tmp_path) -> None:
    path = _write(tmp_path, [
        {"ocr": "tesseract", "extraction": "gpt-4o-mini"},
        {"ocr": "gpt-4o", "extraction": "gpt-4o", "directImageExtraction": True, "concurrency": 2},
    ])

    assert load_model_configurations(path) == [
        PipelineConfig("tesseract", "gpt-4o-mini"),
        PipelineConfig("gpt-4o", "gpt-4o", direct_image_extraction=True, concurrency=2),
    ]


def test_pipelines_file_object(tmp_path) -> None:
    path = _write(tmp_path, {"models": [{"ocr_model": "tesseract"}]})

    assert load_model_configurations(path) == [PipelineConfig("tesseract")]


def test_pipelines_file_from_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(Config, "PIPELINES_FILE", _write(tmp_path, [{"ocr": "llava"}]))

    assert load_model_configurations() == [PipelineConfig("llava")]


@pytest.mark.parametrize("data", [[], {"models": []}, {"pipelines": [{"ocr": "llava"}]}, [{"extraction": "gpt-4o"}]])
def test_malformed_pipelines_file(tmp_path, data) -> None:
    with pytest.raises(ConfigError):
        load_model_configurations(_write(tmp_path, data))


def test_unreadable_pipelines_file(tmp_path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError, match="Cannot read"):
        load_model_configurations(str(tmp_path / "missing.json"))
    with pytest.raises(ConfigError, match="Cannot read"):
        load_model_configurations(str(broken))


def test_retry_policy_from_config(monkeypatch) -> None:
    monkeypatch.setattr(Config, "MAX_RETRIES", 2)
    monkeypatch.setattr(Config, "RETRY_BASE_DELAY_MS", 100)
    monkeypatch.setattr(Config, "RETRY_MAX_DELAY_MS", 400)

    policy = Config.retry_policy()

    assert (policy.max_retries, policy.base_delay, policy.max_delay) == (2, 100, 400)


@pytest.mark.parametrize("entry, message", [
    ({"ocr": "tesseract", "concurrency": "2"}, "'concurrency' must be an integer"),
    ({"ocr": "tesseract", "concurrency": True}, "'concurrency' must be an integer"),
    ({"ocr": "tesseract", "extraction": "gpt-4o", "directImageExtraction": "false"}, "must be true or false"),
    ({"ocr": ["tesseract"]}, "'ocr' must be a model name"),
    ({"ocr": "tesseract", "extraction": 4}, "'extraction' must be a model name"),
])
def test_wrongly_typed_fields_are_config_errors(tmp_path, entry, message) -> None:
    with pytest.raises(ConfigError, match=message) as excinfo:
        load_model_configurations(_write(tmp_path, [{"ocr": "llava"}, entry]))

    assert "Pipeline #1" in str(excinfo.value)


def test_boolean_direct_flag_is_kept(tmp_path) -> None:
    path = _write(tmp_path, [{"ocr": "tesseract", "extraction": "gpt-4o", "directImageExtraction": False}])

    assert load_model_configurations(path) == [PipelineConfig("tesseract", "gpt-4o")]
