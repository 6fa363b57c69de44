import asyncio
import logging
import os
import sys
from typing import List, Optional, Sequence

from ocr_benchmark.config import Config, load_model_configurations
from ocr_benchmark.errors import ConfigError
from ocr_benchmark.evaluation.aggregator import ResultAggregator
from ocr_benchmark.model_types.models import PipelineConfig, RunReport, TestDocument
from ocr_benchmark.models.registry import ProviderRegistry
from ocr_benchmark.models.token_costs import build_token_cost_table
from ocr_benchmark.pipeline.orchestrator import BenchmarkOrchestrator
from ocr_benchmark.pipeline.runner import PipelineRunner
from ocr_benchmark.utils.data_loader import append_result, load_test_documents, save_results
from ocr_benchmark.utils.file_utils import create_results_folder
from ocr_benchmark.utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def print_configuration_summary(pipelines: Sequence[PipelineConfig]) -> None:
    print("\n🔧 Model Configuration Summary:")
    print("=" * 50)

    ocr_groups = {}
    for config in pipelines:
        ocr_groups.setdefault(config.ocr_model, []).append(config)

    for ocr_model, configs in ocr_groups.items():
        print(f"\n📖 OCR Model: {ocr_model}")
        for config in configs:
            if config.direct_image_extraction:
                print(f"   ➤ Direct image → JSON extraction ({config.extraction_model or ocr_model})")
            elif config.extraction_model:
                print(f"   ➤ OCR → {config.extraction_model} → JSON")
            else:
                print("   ➤ OCR only")

    print(f"\n📊 Total valid configurations: {len(pipelines)}")


def print_run_summary(report: RunReport, documents: List[TestDocument], results_file: str) -> None:
    print("\n" + "=" * 50)
    print("🎉 BENCHMARK COMPLETE!")
    print("=" * 50)
    print(f"📄 Documents processed: {len(documents)}")
    print(f"🔧 Model configurations tested: {len(report.pipelines)}")
    print(f"📊 Total results generated: {len(report.results)}")
    print(f"✅ Success rate: {report.success_rate * 100:.1f}%")
    if report.skipped:
        print(f"⏭️  Skipped (run stopped): {report.skipped}")
    print(f"💰 Total cost: ${report.total_cost:.4f}")
    print(f"💾 Results saved to: {results_file}")

    print("\n📈 Results by pipeline:")
    print("-" * 30)
    for summary in report.pipelines:
        print(f"  {summary.pipeline_id}:")
        if summary.mean_json_accuracy is not None:
            print(f"    JSON accuracy: {summary.mean_json_accuracy:.3f}")
        if summary.mean_text_similarity is not None:
            print(f"    Text similarity: {summary.mean_text_similarity:.3f}")
        print(f"    Success count: {summary.successes}/{summary.documents}")
        print(f"    Avg time: {summary.mean_duration / 1000:.1f}s | Cost: ${summary.total_cost:.4f}")


async def run_benchmark(
        data_dir: Optional[str] = None,
        pipelines_file: Optional[str] = None,
        results_dir: Optional[str] = None
) -> Optional[RunReport]:
    """Load documents and pipelines, run the benchmark and write the run report.

    Configuration problems raise ConfigError before any document is processed.
    """
    print("🚀 Starting LLM OCR Comparison Benchmark")
    print("=" * 50)

    token_costs = build_token_cost_table()
    registry = ProviderRegistry(token_costs=token_costs)

    pipelines = load_model_configurations(pipelines_file)
    providers = registry.build_providers(pipelines)
    print_configuration_summary(pipelines)

    documents = load_test_documents(data_dir or Config.DATA_DIR)
    if not documents:
        print("\n❌ No test documents found!")
        print("Please add JSON files to the data folder with the following structure:")
        print("""{
  "imageUrl": "https://example.com/image.png",
  "metadata": {"language": "EN", "documentType": "receipt"},
  "jsonSchema": {"type": "object", "properties": {...}},
  "trueJsonOutput": {...},
  "trueMarkdownOutput": "..."
}""")
        return None

    print(f"\n📄 Loaded {len(documents)} test documents")

    output_dir = create_results_folder(results_dir or Config.RESULTS_DIR)
    partial_file = os.path.join(output_dir, "results.jsonl")
    print(f"\n📁 Results will be saved to: {output_dir}")

    orchestrator = BenchmarkOrchestrator(
        runner=PipelineRunner(Config.retry_policy(), token_costs),
        aggregator=ResultAggregator(token_costs),
        default_concurrency=Config.MAX_CONCURRENT_REQUESTS,
        on_result=lambda report: append_result(report, partial_file),
    )
    report = await orchestrator.run(documents, pipelines, providers)

    results_file = os.path.join(output_dir, f"benchmark_results_{report.timestamp.strftime('%Y%m%d_%H%M%S')}.json")
    save_results(report, results_file)
    print_run_summary(report, documents, results_file)
    return report


def main() -> int:
    configure_logging(Config.LOG_LEVEL)
    try:
        asyncio.run(run_benchmark())
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        print(f"\n❌ Configuration error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
