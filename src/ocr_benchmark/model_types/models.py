"""Type definitions for the OCR benchmark."""

from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, List, Tuple, Union
from dataclasses import dataclass
from pydantic import BaseModel, ConfigDict, Field

from ocr_benchmark.errors import ConfigError

PathSegment = Union[int, str]


@dataclass(frozen=True)
class PipelineConfig:
    """One OCR model / extraction model combination under benchmark."""
    ocr_model: str
    extraction_model: Optional[str] = None
    direct_image_extraction: bool = False
    concurrency: Optional[int] = None

    @property
    def pipeline_id(self) -> str:
        name = self.ocr_model
        if self.extraction_model and (self.direct_image_extraction or self.extraction_model != self.ocr_model):
            name += f" → {self.extraction_model}"
        if self.direct_image_extraction:
            name += " (direct)"
        elif not self.extraction_model:
            name += " (ocr only)"
        return name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from a pipelines-file record; wrongly typed fields raise ConfigError."""
        ocr_model = _field(data, "ocr", "ocr_model")
        extraction_model = _field(data, "extraction", "extraction_model")
        direct = _field(data, "directImageExtraction", "direct_image_extraction")
        concurrency = data.get("concurrency")

        if not isinstance(ocr_model, str) or not ocr_model:
            raise ConfigError(f"'ocr' must be a model name, got {ocr_model!r}")
        if extraction_model is not None and not isinstance(extraction_model, str):
            raise ConfigError(f"'extraction' must be a model name, got {extraction_model!r}")
        if direct is not None and not isinstance(direct, bool):
            raise ConfigError(f"'directImageExtraction' must be true or false, got {direct!r}")
        # bool is an int subclass
        if concurrency is not None and (isinstance(concurrency, bool) or not isinstance(concurrency, int)):
            raise ConfigError(f"'concurrency' must be an integer, got {concurrency!r}")

        return cls(
            ocr_model=ocr_model,
            extraction_model=extraction_model or None,
            direct_image_extraction=bool(direct),
            concurrency=concurrency,
        )


def _field(data: Dict[str, Any], name: str, alias: str) -> Any:
    return data[name] if name in data else data.get(alias)


class Usage(BaseModel):
    """Usage statistics for a request. Durations are in milliseconds."""
    model_config = ConfigDict(frozen=True)

    duration: Optional[float] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    input_cost: Optional[float] = None
    output_cost: Optional[float] = None
    total_cost: Optional[float] = None

    def __add__(self, other: "Usage") -> "Usage":
        if not isinstance(other, Usage):
            return NotImplemented

        def _sum(a, b):
            if a is None and b is None:
                return None
            return (a or 0) + (b or 0)

        return Usage(**{
            name: _sum(getattr(self, name), getattr(other, name))
            for name in Usage.model_fields
        })


class TestDocument(BaseModel):
    """A test document with ground truth data."""
    __test__ = False
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = ""
    image_url: str = Field(alias="imageUrl")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    json_schema: Dict[str, Any] = Field(default_factory=dict, alias="jsonSchema")
    true_json: Any = Field(default=None, alias="trueJsonOutput")
    true_markdown: str = Field(default="", alias="trueMarkdownOutput")


class OcrOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    images: List[str] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class ExtractionOutcome(BaseModel):
    """Structured output of an extraction call.

    ``json_value`` holds the parsed value. Bindings that only get free-form
    text back put it in ``raw_response`` and leave the parsing to the runner.
    """
    model_config = ConfigDict(frozen=True)

    json_value: Any = None
    raw_response: Optional[str] = None
    usage: Usage = Field(default_factory=Usage)


class DiffKind(str, Enum):
    MISSING = "missing"
    EXTRA = "extra"
    TYPE_MISMATCH = "type_mismatch"
    VALUE_MISMATCH = "value_mismatch"


class DiffEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Tuple[PathSegment, ...]
    kind: DiffKind
    predicted: Any = None
    expected: Any = None

    @property
    def field(self) -> str:
        return format_path(self.path)


class JsonDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: Tuple[DiffEntry, ...] = ()
    total_fields: int = 0
    mismatched_fields: int = 0


class ScoreReport(BaseModel):
    """Result of running one pipeline on one document."""
    model_config = ConfigDict(frozen=True)

    document_id: str
    pipeline_id: str
    ocr_model: str
    extraction_model: str = ""
    direct_image_extraction: bool = False
    success: bool = True
    json_accuracy: Optional[float] = None
    text_similarity: Optional[float] = None
    diffs: Tuple[DiffEntry, ...] = ()
    predicted_markdown: Optional[str] = None
    predicted_json: Any = None
    parse_strategy: Optional[str] = None
    usage: Usage = Field(default_factory=Usage)
    error: Optional[str] = None


class PipelineSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    pipeline_id: str
    documents: int
    successes: int
    failures: int
    mean_json_accuracy: Optional[float] = None
    mean_text_similarity: Optional[float] = None
    total_cost: float = 0.0
    total_duration: float = 0.0
    mean_duration: float = 0.0


class RunReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    results: Tuple[ScoreReport, ...] = ()
    pipelines: Tuple[PipelineSummary, ...] = ()
    total_cost: float = 0.0
    success_rate: float = 0.0
    # pairs never started because the run was stopped; not part of any statistic
    skipped: int = 0


def format_path(path: Tuple[PathSegment, ...]) -> str:
    rendered = ""
    for segment in path:
        if isinstance(segment, int):
            rendered += f"[{segment}]"
        elif rendered:
            rendered += f".{segment}"
        else:
            rendered = str(segment)
    return rendered or "$"
