import os
from typing import List, Optional
from dotenv import load_dotenv

from ocr_benchmark.errors import ConfigError
from ocr_benchmark.model_types.models import PipelineConfig
from ocr_benchmark.utils.file_utils import load_json
from ocr_benchmark.utils.retry import RetryPolicy

load_dotenv()


class Config:
    OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
    MAX_CONCURRENT_REQUESTS = int(os.getenv("MAX_CONCURRENT_REQUESTS", "3"))
    REQUEST_TIMEOUT_SECONDS = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "300"))
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "5"))
    RETRY_BASE_DELAY_MS = int(os.getenv("RETRY_BASE_DELAY_MS", "1000"))
    RETRY_MAX_DELAY_MS = int(os.getenv("RETRY_MAX_DELAY_MS", "30000"))
    RESULTS_DIR = os.getenv("RESULTS_DIR", "./results")
    DATA_DIR = os.getenv("DATA_DIR", "./data")
    PIPELINES_FILE = os.getenv("PIPELINES_FILE")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def retry_policy(cls) -> RetryPolicy:
        return RetryPolicy(
            max_retries=cls.MAX_RETRIES,
            base_delay=cls.RETRY_BASE_DELAY_MS,
            max_delay=cls.RETRY_MAX_DELAY_MS
        )


MODEL_CONFIGURATIONS = [
    # Pure LLM models
    PipelineConfig(ocr_model="llava", extraction_model="llava"),
    PipelineConfig(ocr_model="gpt-4o", extraction_model="gpt-4o"),
    PipelineConfig(ocr_model="gemini-2.0-flash-001", extraction_model="gpt-4o"),

    # Tesseract + LLM extraction
    PipelineConfig(ocr_model="tesseract", extraction_model="llama3.2"),
    PipelineConfig(ocr_model="tesseract", extraction_model="gpt-4o-mini"),

    # Ground-truth text, measures extraction alone
    PipelineConfig(ocr_model="ground-truth", extraction_model="gpt-4o"),

    # Direct image extraction with LLMs
    PipelineConfig(ocr_model="llava", extraction_model="llava", direct_image_extraction=True),
    PipelineConfig(ocr_model="gpt-4o", extraction_model="gpt-4o", direct_image_extraction=True),
]


def load_model_configurations(path: Optional[str] = None) -> List[PipelineConfig]:
    """Pipelines from ``path`` (or ``PIPELINES_FILE``), else the built-in list.

    The file holds a JSON list of ``{"ocr", "extraction", "directImageExtraction",
    "concurrency"}`` records, or an object with that list under ``"models"``.
    """
    path = path or Config.PIPELINES_FILE
    if not path:
        return list(MODEL_CONFIGURATIONS)

    try:
        data = load_json(path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read pipeline configuration {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("models")
    if not isinstance(data, list) or not data:
        raise ConfigError(f"{path} must contain a non-empty list of pipelines")

    configs = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or not (entry.get("ocr") or entry.get("ocr_model")):
            raise ConfigError(f"Pipeline #{index} in {path} needs an 'ocr' model: {entry!r}")
        try:
            configs.append(PipelineConfig.from_dict(entry))
        except ConfigError as e:
            raise ConfigError(f"Pipeline #{index} in {path}: {e}") from e
    return configs
