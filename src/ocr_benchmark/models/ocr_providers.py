import asyncio
import io
import logging
import time
from typing import Dict, Any, Optional

import pytesseract
from PIL import Image, ImageFilter, ImageOps

from ocr_benchmark.errors import PermanentProviderError
from ocr_benchmark.model_types.models import ExtractionOutcome, OcrOutcome
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.token_costs import TokenCostTable
from ocr_benchmark.utils.file_utils import load_image_bytes

logger = logging.getLogger(__name__)

TESSERACT_CONFIGS = (
    r'--oem 3 --psm 6',
    r'--oem 3 --psm 3',
    r'--oem 3 --psm 4',
)


class OCROnlyProvider(BaseModelProvider):
    """Base class for OCR-only providers that don't support JSON extraction"""

    async def extract_json_from_text(self, text: str, json_schema: Dict[str, Any]) -> ExtractionOutcome:
        raise self.unsupported("JSON extraction from text")

    async def extract_json_from_image(self, image_url: str, json_schema: Dict[str, Any]) -> ExtractionOutcome:
        raise self.unsupported("JSON extraction from images")


class TesseractProvider(OCROnlyProvider):
    """Tesseract OCR provider with enhanced configuration"""

    max_concurrency = 2

    def __init__(self, model_name: str = "tesseract", token_costs: Optional[TokenCostTable] = None):
        super().__init__(model_name, token_costs)
        # Fails here, at startup, when the binary is missing.
        version = pytesseract.get_tesseract_version()
        logger.debug("Tesseract %s detected", version)

    async def perform_ocr(self, image_url: str) -> OcrOutcome:
        start_time = time.time()
        text = await asyncio.to_thread(self._recognize, image_url)
        usage = self.build_usage((time.time() - start_time) * 1000)
        return OcrOutcome(text=self._format_to_markdown(text), usage=usage)

    def _recognize(self, image_url: str) -> str:
        try:
            image = Image.open(io.BytesIO(load_image_bytes(image_url)))
        except OSError as e:
            raise PermanentProviderError(f"Tesseract could not read {image_url}: {e}", provider=self.model_name) from e

        image = self._preprocess_image(image)
        return self._perform_multi_config_ocr(image)

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Preprocess image for better OCR results"""
        if image.mode != 'L':
            image = image.convert('L')
        image = image.filter(ImageFilter.MedianFilter(3))
        return ImageOps.autocontrast(image)

    def _perform_multi_config_ocr(self, image: Image.Image) -> str:
        """Try multiple Tesseract configurations and return the longest result"""
        results = []
        for config in TESSERACT_CONFIGS:
            try:
                text = pytesseract.image_to_string(image, config=config)
            except pytesseract.TesseractError as e:
                logger.debug("Tesseract config %r failed: %s", config, e)
                continue
            if text and text.strip():
                results.append(text)

        if not results:
            return ""
        return max(results, key=len)

    def _format_to_markdown(self, text: str) -> str:
        if not text or not text.strip():
            return ""

        lines = (' '.join(line.split()) for line in text.split('\n'))
        return '\n'.join(line for line in lines if line)
