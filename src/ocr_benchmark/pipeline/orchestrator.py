import asyncio
import logging
from typing import Callable, List, Mapping, Optional, Sequence

from ocr_benchmark.evaluation.aggregator import ResultAggregator
from ocr_benchmark.model_types.models import PipelineConfig, RunReport, ScoreReport, TestDocument
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.registry import required_models
from ocr_benchmark.pipeline.runner import PipelineRunner, failure_report

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3


class BenchmarkOrchestrator:
    """Runs every document through every pipeline and collects the reports.

    Each pipeline gets its own semaphore, so a slow or fragile provider only
    throttles its own pipelines. A failing pair becomes a failed ScoreReport;
    it never cancels or blocks the others. Retrying is the runner's job.
    """

    def __init__(
            self,
            runner: Optional[PipelineRunner] = None,
            aggregator: Optional[ResultAggregator] = None,
            default_concurrency: int = DEFAULT_CONCURRENCY,
            on_result: Optional[Callable[[ScoreReport], None]] = None
    ):
        self.runner = runner or PipelineRunner()
        self.aggregator = aggregator or ResultAggregator()
        self.default_concurrency = default_concurrency
        self.on_result = on_result
        self._stopping = False

    def stop(self) -> None:
        """Stop starting new pairs; pairs already running finish normally.

        Pairs that never start are left out of the results and counted in
        ``RunReport.skipped``.
        """
        self._stopping = True

    def concurrency_limit(self, config: PipelineConfig, providers: Mapping[str, BaseModelProvider]) -> int:
        if config.concurrency:
            return config.concurrency

        limits = [
            providers[model].max_concurrency
            for model in required_models(config)
            if model in providers and providers[model].max_concurrency
        ]
        return min(limits) if limits else self.default_concurrency

    async def run(
            self,
            documents: Sequence[TestDocument],
            pipelines: Sequence[PipelineConfig],
            providers: Mapping[str, BaseModelProvider]
    ) -> RunReport:
        results: List[ScoreReport] = []
        lock = asyncio.Lock()
        total_tasks = len(documents) * len(pipelines)
        completed_tasks = 0
        skipped = 0

        async def run_pair(document: TestDocument, config: PipelineConfig, semaphore: asyncio.Semaphore):
            nonlocal completed_tasks, skipped

            async with semaphore:
                if self._stopping:
                    async with lock:
                        skipped += 1
                    logger.info("⏭️ %s / %s skipped, benchmark stopping", config.pipeline_id, document.id)
                    return
                try:
                    report = await self.runner.run(document, config, providers)
                except Exception as e:
                    logger.exception("Unexpected error in %s on %s", config.pipeline_id, document.id)
                    report = failure_report(document, config, f"Unexpected error: {e}")

            async with lock:
                results.append(report)
                completed_tasks += 1
                progress = (completed_tasks / total_tasks) * 100
                logger.info(
                    "📊 %s / %s %s | overall progress: %d/%d (%.1f%%)",
                    config.pipeline_id, document.id, "✅" if report.success else "❌",
                    completed_tasks, total_tasks, progress
                )
                if self.on_result is not None:
                    try:
                        self.on_result(report)
                    except Exception:
                        logger.exception("on_result callback failed for %s / %s", config.pipeline_id, document.id)

        tasks = []
        for config in pipelines:
            limit = self.concurrency_limit(config, providers)
            logger.info("🔄 %s: %d documents, concurrency %d", config.pipeline_id, len(documents), limit)
            semaphore = asyncio.Semaphore(limit)
            for document in documents:
                tasks.append(run_pair(document, config, semaphore))

        await asyncio.gather(*tasks)
        if skipped:
            logger.warning("Stopped early: %d of %d pairs were never started", skipped, total_tasks)
        return self.aggregator.aggregate(results, skipped=skipped)
