"""Benchmark OCR and structured-extraction pipelines against ground truth."""

__version__ = "0.1.0"
