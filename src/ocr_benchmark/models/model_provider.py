import asyncio
import json
import time
from typing import Dict, Any, Optional

import requests

from ocr_benchmark.config import Config
from ocr_benchmark.errors import PermanentProviderError, TransientProviderError
from ocr_benchmark.model_types.models import ExtractionOutcome, OcrOutcome
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.token_costs import TokenCostTable
from ocr_benchmark.utils.file_utils import encode_image

OCR_PROMPT = """Convert this document to markdown format.

RULES:
- Extract ALL text content from the document
- Preserve the original structure and layout
- Use proper markdown formatting (headers, lists, tables)
- For tables, use markdown table format
- Include all numbers, dates, and details exactly as shown
- Use ☐ for empty checkboxes and ☑ for checked boxes
- Do not add any explanations or comments
- Return only the markdown content"""

TEXT_EXTRACTION_PROMPT = """Extract JSON data from this text. Use the schema provided. Return ONLY JSON, no explanations.

Schema: {schema}

Text: {text}

JSON:"""

IMAGE_EXTRACTION_PROMPT = """Extract JSON data from this image. Use the schema provided. Return ONLY JSON, no explanations.

Schema: {schema}

JSON:"""

THROTTLING_STATUS_CODES = (429, 503)


class ModelProvider(BaseModelProvider):
    """Local LLMs served by Ollama's ``/api/generate`` endpoint."""

    # A single local Ollama server queues requests and times out under parallel load.
    max_concurrency = 1

    def __init__(self, model_name: str, token_costs: Optional[TokenCostTable] = None):
        super().__init__(model_name, token_costs)
        self._setup_client()

    def _setup_client(self):
        self.base_url = Config.OLLAMA_BASE_URL
        self.headers = {"Content-Type": "application/json"}
        self.timeout = Config.REQUEST_TIMEOUT_SECONDS

    def _generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise PermanentProviderError(f"Ollama request failed: {e}", provider=self.model_name) from e

        if response.status_code in THROTTLING_STATUS_CODES:
            raise TransientProviderError(
                f"Ollama throttled the request ({response.status_code})",
                status_code=response.status_code,
                provider=self.model_name
            )
        if not response.ok:
            raise PermanentProviderError(
                f"Ollama error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                provider=self.model_name
            )
        return response.json()

    async def _call(self, payload: Dict[str, Any]):
        start_time = time.time()
        result = await asyncio.to_thread(self._generate, payload)
        duration = (time.time() - start_time) * 1000
        usage = self.build_usage(
            duration,
            input_tokens=result.get("prompt_eval_count", 0),
            output_tokens=result.get("eval_count", 0)
        )
        return result.get("response", ""), usage

    async def perform_ocr(self, image_url: str) -> OcrOutcome:
        image_b64 = await asyncio.to_thread(encode_image, image_url)
        text, usage = await self._call({
            "model": self.model_name,
            "prompt": OCR_PROMPT,
            "images": [image_b64],
            "stream": False
        })
        return OcrOutcome(text=text, usage=usage)

    async def extract_json_from_text(
            self,
            text: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        prompt = TEXT_EXTRACTION_PROMPT.format(schema=json.dumps(json_schema, indent=2), text=text)
        response_text, usage = await self._call({
            "model": self.model_name,
            "prompt": prompt,
            "format": "json",
            "stream": False
        })
        return ExtractionOutcome(raw_response=response_text, usage=usage)

    async def extract_json_from_image(
            self,
            image_url: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        image_b64 = await asyncio.to_thread(encode_image, image_url)
        prompt = IMAGE_EXTRACTION_PROMPT.format(schema=json.dumps(json_schema, indent=2))
        response_text, usage = await self._call({
            "model": self.model_name,
            "prompt": prompt,
            "images": [image_b64],
            "format": "json",
            "stream": False
        })
        return ExtractionOutcome(raw_response=response_text, usage=usage)
