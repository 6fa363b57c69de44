from datetime import datetime

import pytest

from ocr_benchmark.evaluation.aggregator import ResultAggregator, safe_mean
from ocr_benchmark.model_types.models import PipelineConfig, ScoreReport, Usage
from ocr_benchmark.models.token_costs import build_token_cost_table


def _report(document_id, pipeline_id, success=True, json_accuracy=None, text_similarity=None, usage=None, **kwargs):
    return ScoreReport(
        document_id=document_id,
        pipeline_id=pipeline_id,
        ocr_model=kwargs.pop("ocr_model", pipeline_id),
        success=success,
        json_accuracy=json_accuracy,
        text_similarity=text_similarity,
        usage=usage or Usage(),
        **kwargs,
    )


def test_safe_mean() -> None:
    assert safe_mean([]) is None
    assert safe_mean([0.5, 1.0]) == 0.75


def test_groups_by_pipeline_and_orders_results() -> None:
    reports = [
        _report("doc-b", "tesseract", json_accuracy=1.0),
        _report("doc-a", "tesseract", json_accuracy=0.5),
        _report("doc-a", "gpt-4o", json_accuracy=1.0),
    ]

    run = ResultAggregator(build_token_cost_table()).aggregate(reports)

    assert [(r.document_id, r.pipeline_id) for r in run.results] == [
        ("doc-a", "gpt-4o"), ("doc-a", "tesseract"), ("doc-b", "tesseract"),
    ]
    assert [s.pipeline_id for s in run.pipelines] == ["gpt-4o", "tesseract"]
    assert sum(s.documents for s in run.pipelines) == len(run.results)


def test_means_exclude_failures_and_missing_scores() -> None:
    reports = [
        _report("doc-1", "p", json_accuracy=1.0, text_similarity=0.9),
        _report("doc-2", "p", json_accuracy=0.5, text_similarity=None),
        _report("doc-3", "p", success=False, json_accuracy=0.0, text_similarity=0.0, error="boom"),
    ]

    summary = ResultAggregator(build_token_cost_table()).aggregate(reports).pipelines[0]

    assert summary.documents == 3
    assert summary.successes == 2
    assert summary.failures == 1
    assert summary.mean_json_accuracy == pytest.approx(0.75)
    assert summary.mean_text_similarity == pytest.approx(0.9)


def test_metric_absent_for_whole_pipeline() -> None:
    summary = ResultAggregator(build_token_cost_table()).aggregate(
        [_report("doc-1", "tesseract", text_similarity=0.8)]
    ).pipelines[0]

    assert summary.mean_json_accuracy is None
    assert summary.mean_text_similarity == pytest.approx(0.8)


def test_costs_and_durations_include_failed_pairs() -> None:
    reports = [
        _report("doc-1", "p", usage=Usage(duration=1000, total_cost=0.01)),
        _report("doc-2", "p", success=False, usage=Usage(duration=3000, total_cost=0.02)),
    ]

    run = ResultAggregator(build_token_cost_table()).aggregate(reports)
    summary = run.pipelines[0]

    assert summary.total_cost == pytest.approx(0.03)
    assert summary.total_duration == 4000
    assert summary.mean_duration == 2000
    assert run.total_cost == pytest.approx(0.03)
    assert run.success_rate == 0.5


def test_unpriced_tokens_are_costed_by_extraction_model() -> None:
    report = _report(
        "doc-1", "tesseract → gpt-4o-mini",
        ocr_model="tesseract", extraction_model="gpt-4o-mini",
        usage=Usage(input_tokens=1_000_000, output_tokens=1_000_000),
    )

    run = ResultAggregator(build_token_cost_table()).aggregate([report])

    assert run.total_cost == pytest.approx(0.75)


def test_empty_run() -> None:
    timestamp = datetime(2024, 5, 1, 12, 0, 0)

    run = ResultAggregator(build_token_cost_table()).aggregate([], timestamp=timestamp)

    assert run.timestamp == timestamp
    assert run.results == ()
    assert run.pipelines == ()
    assert run.success_rate == 0.0


def test_ocr_only_and_full_pipeline_on_same_model_stay_separate() -> None:
    ocr_only = PipelineConfig("gpt-4o").pipeline_id
    full = PipelineConfig("gpt-4o", "gpt-4o").pipeline_id
    reports = [
        _report("doc-1", ocr_only, ocr_model="gpt-4o", text_similarity=0.2),
        _report("doc-1", full, ocr_model="gpt-4o", extraction_model="gpt-4o", json_accuracy=1.0, text_similarity=1.0),
    ]

    run = ResultAggregator(build_token_cost_table()).aggregate(reports)

    summaries = {s.pipeline_id: s for s in run.pipelines}
    assert len(summaries) == 2
    assert summaries[ocr_only].mean_text_similarity == pytest.approx(0.2)
    assert summaries[ocr_only].mean_json_accuracy is None
    assert summaries[full].mean_text_similarity == pytest.approx(1.0)


def test_skipped_pairs_do_not_count_as_failures() -> None:
    run = ResultAggregator(build_token_cost_table()).aggregate([_report("doc-1", "p")], skipped=3)

    assert run.skipped == 3
    assert run.success_rate == 1.0
    assert run.pipelines[0].failures == 0
