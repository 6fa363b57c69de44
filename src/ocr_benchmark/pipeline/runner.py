import logging
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from ocr_benchmark.errors import PermanentProviderError, PipelineFailure, ResponseParseError
from ocr_benchmark.evaluation.json_accuracy import calculate_json_accuracy
from ocr_benchmark.evaluation.text_similarity import calculate_text_similarity
from ocr_benchmark.model_types.models import (
    ExtractionOutcome,
    PipelineConfig,
    ScoreReport,
    TestDocument,
    Usage,
)
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.registry import GROUND_TRUTH_MODEL
from ocr_benchmark.models.token_costs import TokenCostTable, build_token_cost_table
from ocr_benchmark.utils.json_extractor import robust_json_extraction
from ocr_benchmark.utils.retry import RetryPolicy, execute_with_retry

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    PENDING = "pending"
    OCR_IN_PROGRESS = "ocr_in_progress"
    OCR_DONE = "ocr_done"
    OCR_FAILED = "ocr_failed"
    EXTRACTION_IN_PROGRESS = "extraction_in_progress"
    DONE = "done"
    FAILED = "failed"


class _Run:
    """Mutable bookkeeping for one (document, pipeline) pair while it runs."""

    def __init__(self, document: TestDocument, config: PipelineConfig):
        self.document = document
        self.config = config
        self.state = PipelineState.PENDING
        self.usage = Usage()
        self.ocr_text: Optional[str] = None
        self.ocr_performed = False
        self.predicted_json: Any = None
        self.extracted = False
        self.parse_strategy: Optional[str] = None

    def transition(self, state: PipelineState) -> None:
        logger.debug(
            "%s / %s: %s -> %s",
            self.document.id, self.config.pipeline_id, self.state.value, state.value
        )
        self.state = state


class PipelineRunner:
    """Drives one document through one pipeline and scores the outcome.

    Provider calls go through the retry executor. Any error raised along the
    way ends the run in a failed ScoreReport that still carries the usage
    accrued before the failure; nothing propagates to the caller.
    """

    def __init__(self, retry_policy: Optional[RetryPolicy] = None, token_costs: Optional[TokenCostTable] = None):
        self.retry_policy = retry_policy or RetryPolicy()
        self.token_costs = token_costs or build_token_cost_table()

    async def run(
            self,
            document: TestDocument,
            config: PipelineConfig,
            providers: Mapping[str, BaseModelProvider]
    ) -> ScoreReport:
        run = _Run(document, config)

        try:
            if config.direct_image_extraction:
                await self._extract_from_image(run, providers)
            else:
                await self._perform_ocr(run, providers)
                if config.extraction_model:
                    await self._extract_from_text(run, providers)
        except Exception as e:
            if run.state == PipelineState.OCR_IN_PROGRESS:
                run.transition(PipelineState.OCR_FAILED)
            run.transition(PipelineState.FAILED)
            failure = PipelineFailure(document.id, config.pipeline_id, str(e))
            logger.warning("❌ %s", failure)
            return self._failed_report(run, failure.reason)

        run.transition(PipelineState.DONE)
        return self._scored_report(run)

    def _provider(self, providers: Mapping[str, BaseModelProvider], model: str) -> BaseModelProvider:
        provider = providers.get(model)
        if provider is None:
            raise PermanentProviderError(f"No provider initialised for model '{model}'")
        return provider

    def _priced(self, usage: Usage, model: str) -> Usage:
        if usage.total_cost is not None or not (usage.input_tokens or usage.output_tokens):
            return usage
        input_cost, output_cost, total_cost = self.token_costs.calculate_cost(
            model, usage.input_tokens, usage.output_tokens
        )
        return usage.model_copy(update={
            "input_cost": input_cost,
            "output_cost": output_cost,
            "total_cost": total_cost,
        })

    async def _perform_ocr(self, run: _Run, providers: Mapping[str, BaseModelProvider]) -> None:
        model = run.config.ocr_model
        run.transition(PipelineState.OCR_IN_PROGRESS)

        if model == GROUND_TRUTH_MODEL:
            run.ocr_text = run.document.true_markdown
        else:
            provider = self._provider(providers, model)
            outcome = await execute_with_retry(
                lambda: provider.perform_ocr(run.document.image_url),
                self.retry_policy,
                operation_name=f"{model} OCR"
            )
            run.usage = run.usage + self._priced(outcome.usage, model)
            run.ocr_text = outcome.text
            run.ocr_performed = True

        run.transition(PipelineState.OCR_DONE)

    async def _extract_from_text(self, run: _Run, providers: Mapping[str, BaseModelProvider]) -> None:
        model = run.config.extraction_model
        provider = self._provider(providers, model)
        run.transition(PipelineState.EXTRACTION_IN_PROGRESS)

        outcome = await execute_with_retry(
            lambda: provider.extract_json_from_text(run.ocr_text or "", run.document.json_schema),
            self.retry_policy,
            operation_name=f"{model} text extraction"
        )
        self._accept_extraction(run, outcome, model)

    async def _extract_from_image(self, run: _Run, providers: Mapping[str, BaseModelProvider]) -> None:
        model = run.config.extraction_model or run.config.ocr_model
        provider = self._provider(providers, model)
        run.transition(PipelineState.EXTRACTION_IN_PROGRESS)

        outcome = await execute_with_retry(
            lambda: provider.extract_json_from_image(run.document.image_url, run.document.json_schema),
            self.retry_policy,
            operation_name=f"{model} image extraction"
        )
        self._accept_extraction(run, outcome, model)

    def _accept_extraction(self, run: _Run, outcome: ExtractionOutcome, model: str) -> None:
        # Usage is booked before parsing so a malformed answer still shows up in the cost.
        run.usage = run.usage + self._priced(outcome.usage, model)
        run.predicted_json, run.parse_strategy = self._parse(outcome, model)
        run.extracted = True

    def _parse(self, outcome: ExtractionOutcome, model: str) -> Tuple[Any, Optional[str]]:
        if outcome.json_value is not None:
            return outcome.json_value, None
        if not outcome.raw_response:
            raise ResponseParseError(f"{model} returned an empty response", provider=model)
        parsed = robust_json_extraction(outcome.raw_response, provider=model)
        logger.debug("Parsed %s response with %s", model, parsed.strategy)
        return parsed.value, parsed.strategy

    def _base_fields(self, run: _Run) -> dict:
        return {
            "document_id": run.document.id,
            "pipeline_id": run.config.pipeline_id,
            "ocr_model": run.config.ocr_model,
            "extraction_model": run.config.extraction_model or "",
            "direct_image_extraction": run.config.direct_image_extraction,
            "usage": run.usage,
        }

    def _scored_report(self, run: _Run) -> ScoreReport:
        json_accuracy = None
        diffs = ()
        if run.extracted:
            json_accuracy, diff = calculate_json_accuracy(run.document.true_json, run.predicted_json)
            diffs = diff.entries

        text_similarity = None
        if run.ocr_performed:
            text_similarity = calculate_text_similarity(run.ocr_text or "", run.document.true_markdown)

        return ScoreReport(
            **self._base_fields(run),
            success=True,
            json_accuracy=json_accuracy,
            text_similarity=text_similarity,
            diffs=diffs,
            predicted_markdown=run.ocr_text,
            predicted_json=run.predicted_json,
            parse_strategy=run.parse_strategy,
        )

    def _failed_report(self, run: _Run, reason: str) -> ScoreReport:
        return failure_report(run.document, run.config, reason, usage=run.usage, predicted_markdown=run.ocr_text)


def failure_report(
        document: TestDocument,
        config: PipelineConfig,
        reason: str,
        usage: Optional[Usage] = None,
        predicted_markdown: Optional[str] = None
) -> ScoreReport:
    """A failed ScoreReport: zero scores for every metric the pipeline would have produced."""
    runs_ocr = not config.direct_image_extraction and config.ocr_model != GROUND_TRUTH_MODEL
    extracts = config.direct_image_extraction or bool(config.extraction_model)
    return ScoreReport(
        document_id=document.id,
        pipeline_id=config.pipeline_id,
        ocr_model=config.ocr_model,
        extraction_model=config.extraction_model or "",
        direct_image_extraction=config.direct_image_extraction,
        usage=usage or Usage(),
        success=False,
        json_accuracy=0.0 if extracts else None,
        text_similarity=0.0 if runs_ocr else None,
        predicted_markdown=predicted_markdown,
        error=reason,
    )
