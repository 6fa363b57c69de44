"""OpenAI model provider."""

import asyncio
import json
import time
from typing import Dict, Any, List, Optional

import openai

from ocr_benchmark.config import Config
from ocr_benchmark.errors import PermanentProviderError, ProviderError, TransientProviderError
from ocr_benchmark.model_types.models import ExtractionOutcome, OcrOutcome, Usage
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.token_costs import TokenCostTable
from ocr_benchmark.utils.file_utils import encode_image, guess_mime_type, is_remote

OCR_PROMPT = """Convert the following document to markdown.
Return only the markdown with no explanation text.

RULES:
- Include all information on the page
- Return tables in HTML format
- Use ☐ and ☑ for checkboxes
- Preserve the original layout and structure"""

EXTRACTION_PROMPT = """Extract data from the document based on this JSON schema:

{schema}

Return only valid JSON that matches the schema. If some fields are not found, use null values."""


class OpenAIProvider(BaseModelProvider):
    """OpenAI model provider for GPT models."""

    def __init__(self, model_name: str, token_costs: Optional[TokenCostTable] = None):
        super().__init__(model_name, token_costs)
        self.client = openai.AsyncOpenAI(
            api_key=Config.OPENAI_API_KEY,
            timeout=Config.REQUEST_TIMEOUT_SECONDS,
            max_retries=0
        )

    def _translate_error(self, error: Exception) -> ProviderError:
        if isinstance(error, openai.RateLimitError):
            return TransientProviderError(
                f"OpenAI rate limit: {error}", status_code=429, provider=self.model_name
            )
        status_code = getattr(error, "status_code", None)
        return PermanentProviderError(
            f"OpenAI error: {error}", status_code=status_code, provider=self.model_name
        )

    async def _image_url(self, image_url: str) -> str:
        if is_remote(image_url):
            return image_url
        image_b64 = await asyncio.to_thread(encode_image, image_url)
        return f"data:{guess_mime_type(image_url)};base64,{image_b64}"

    async def _complete(self, messages: List[Dict[str, Any]], json_mode: bool):
        start_time = time.time()
        kwargs = {"response_format": {"type": "json_object"}} if json_mode else {}

        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                max_tokens=4000,
                temperature=0,
                **kwargs
            )
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e

        duration = (time.time() - start_time) * 1000
        usage_data = response.usage
        if usage_data:
            usage = self.build_usage(duration, usage_data.prompt_tokens, usage_data.completion_tokens)
        else:
            usage = Usage(duration=duration)

        return response.choices[0].message.content or "", usage

    async def perform_ocr(self, image_url: str) -> OcrOutcome:
        """Perform OCR using OpenAI vision models."""
        text, usage = await self._complete([
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": OCR_PROMPT},
                    {"type": "image_url", "image_url": {"url": await self._image_url(image_url)}}
                ]
            }
        ], json_mode=False)
        return OcrOutcome(text=text, usage=usage)

    async def extract_json_from_text(
            self,
            text: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        """Extract JSON from text using OpenAI."""
        json_text, usage = await self._complete([
            {"role": "system", "content": EXTRACTION_PROMPT.format(schema=json.dumps(json_schema, indent=2))},
            {"role": "user", "content": text}
        ], json_mode=True)
        return ExtractionOutcome(raw_response=json_text, usage=usage)

    async def extract_json_from_image(
            self,
            image_url: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        """Extract JSON directly from image using OpenAI vision."""
        json_text, usage = await self._complete([
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT.format(schema=json.dumps(json_schema, indent=2))},
                    {"type": "image_url", "image_url": {"url": await self._image_url(image_url)}}
                ]
            }
        ], json_mode=True)
        return ExtractionOutcome(raw_response=json_text, usage=usage)
