from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ocr_benchmark.model_types.models import PipelineSummary, RunReport, ScoreReport, Usage
from ocr_benchmark.models.token_costs import TokenCostTable, build_token_cost_table


def safe_mean(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return sum(values) / len(values)


class ResultAggregator:
    """Turns ScoreReports into a RunReport with per-pipeline statistics.

    Usage that arrives with token counts but without cost is priced from the
    token cost table, keyed by the report's extraction model (or OCR model
    for OCR-only pipelines).
    """

    def __init__(self, token_costs: Optional[TokenCostTable] = None):
        self.token_costs = token_costs or build_token_cost_table()

    def _cost(self, report: ScoreReport) -> float:
        usage: Usage = report.usage
        if usage.total_cost is not None:
            return usage.total_cost
        model = report.extraction_model or report.ocr_model
        return self.token_costs.calculate_cost(model, usage.input_tokens, usage.output_tokens)[2]

    def summarize(self, pipeline_id: str, reports: List[ScoreReport]) -> PipelineSummary:
        successes = [r for r in reports if r.success]
        durations = [r.usage.duration or 0.0 for r in reports]
        total_duration = sum(durations)

        return PipelineSummary(
            pipeline_id=pipeline_id,
            documents=len(reports),
            successes=len(successes),
            failures=len(reports) - len(successes),
            mean_json_accuracy=safe_mean(r.json_accuracy for r in successes if r.json_accuracy is not None),
            mean_text_similarity=safe_mean(r.text_similarity for r in successes if r.text_similarity is not None),
            total_cost=sum(self._cost(r) for r in reports),
            total_duration=total_duration,
            mean_duration=total_duration / len(reports) if reports else 0.0,
        )

    def aggregate(
            self,
            reports: Iterable[ScoreReport],
            timestamp: Optional[datetime] = None,
            skipped: int = 0
    ) -> RunReport:
        ordered = sorted(reports, key=lambda r: (r.document_id, r.pipeline_id))

        groups: Dict[str, List[ScoreReport]] = defaultdict(list)
        for report in ordered:
            groups[report.pipeline_id].append(report)

        pipelines = tuple(self.summarize(pipeline_id, groups[pipeline_id]) for pipeline_id in sorted(groups))
        successes = sum(summary.successes for summary in pipelines)

        return RunReport(
            timestamp=timestamp or datetime.now(),
            results=tuple(ordered),
            pipelines=pipelines,
            total_cost=sum(summary.total_cost for summary in pipelines),
            success_rate=successes / len(ordered) if ordered else 0.0,
            skipped=skipped,
        )
