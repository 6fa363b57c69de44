"""Data loading utilities."""

import json
import logging
import os
from typing import List

from pydantic import ValidationError

from ocr_benchmark.model_types.models import RunReport, ScoreReport, TestDocument
from ocr_benchmark.utils.file_utils import load_json, save_json

logger = logging.getLogger(__name__)


def load_test_documents(data_dir: str) -> List[TestDocument]:
    """Load test documents from JSON files in the data directory.

    Files that fail to parse are logged and skipped. A document without an
    explicit ``id`` is named after its file.
    """
    documents = []

    if not os.path.exists(data_dir):
        logger.error("Data directory %s does not exist!", data_dir)
        return documents

    json_files = sorted(f for f in os.listdir(data_dir) if f.endswith('.json'))

    if not json_files:
        logger.warning("No JSON files found in %s", data_dir)
        return documents

    for filename in json_files:
        filepath = os.path.join(data_dir, filename)
        try:
            data = load_json(filepath)
            data.setdefault("id", os.path.splitext(filename)[0])
            documents.append(TestDocument.model_validate(data))
            logger.debug("✅ Loaded %s", filename)
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.error("❌ Error loading %s: %s", filename, e)

    return documents


def save_results(report: RunReport, output_path: str) -> None:
    """Save a run report to a JSON file."""
    save_json(report.model_dump(mode="json"), output_path)
    logger.info("📁 Results saved to %s", output_path)


def append_result(report: ScoreReport, output_path: str) -> None:
    """Append one ScoreReport as a JSON line, so completed work survives a crash."""
    with open(output_path, 'a', encoding='utf-8') as f:
        f.write(json.dumps(report.model_dump(mode="json"), ensure_ascii=False) + "\n")
