import asyncio
import json
import time
from typing import Dict, Any, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ocr_benchmark.config import Config
from ocr_benchmark.errors import PermanentProviderError, TransientProviderError
from ocr_benchmark.model_types.models import ExtractionOutcome, OcrOutcome, Usage
from ocr_benchmark.models.base import BaseModelProvider
from ocr_benchmark.models.token_costs import TokenCostTable
from ocr_benchmark.utils.file_utils import guess_mime_type, load_image_bytes

OCR_PROMPT = """Convert this document to markdown format.

RULES:
- Extract ALL text content from the document
- Preserve the original structure and layout
- Use proper markdown formatting (headers, lists, tables)
- For tables, use markdown table format
- Include all numbers, dates, and details exactly as shown
- Use ☐ for empty checkboxes and ☑ for checked boxes
- Do not add any explanations or comments
- Return only the markdown content

Please convert this document:"""

EXTRACTION_PROMPT = """Extract structured data from the following {source} according to this JSON schema:

{schema}

RULES:
- Return ONLY valid JSON that matches the schema
- If a field is not found, use null
- Ensure all required fields are present
- Use the exact field names from the schema
- Parse numbers as numbers, not strings
- For dates, use the format found in the document
"""


class GeminiProvider(BaseModelProvider):
    def __init__(self, model_name: str, token_costs: Optional[TokenCostTable] = None):
        super().__init__(model_name, token_costs)
        genai.configure(api_key=Config.GOOGLE_API_KEY)

        self.generation_config = {
            "temperature": 0,
            "top_p": 0.95,
            "top_k": 20,
            "max_output_tokens": 4000,
        }

        self.safety_settings = [
            {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
            {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
            {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
            {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
        ]

    def _model(self, json_mode: bool = False) -> "genai.GenerativeModel":
        generation_config = dict(self.generation_config)
        if json_mode:
            generation_config["response_mime_type"] = "application/json"
        return genai.GenerativeModel(
            model_name=self.model_name,
            generation_config=generation_config,
            safety_settings=self.safety_settings
        )

    async def _create_image_part(self, image_url: str) -> Dict[str, Any]:
        image_data = await asyncio.to_thread(load_image_bytes, image_url)
        return {
            'mime_type': guess_mime_type(image_url),
            'data': image_data
        }

    async def _generate(self, contents: List[Any], json_mode: bool = False):
        start_time = time.time()

        try:
            response = await self._model(json_mode).generate_content_async(contents)
            text = response.text
        except google_exceptions.ResourceExhausted as e:
            raise TransientProviderError(
                f"Gemini quota exhausted: {e}", status_code=429, provider=self.model_name
            ) from e
        except google_exceptions.GoogleAPIError as e:
            raise PermanentProviderError(
                f"Gemini error: {e}", status_code=getattr(e, "code", None), provider=self.model_name
            ) from e
        except ValueError as e:
            # response.text raises when the candidate was blocked or empty
            raise PermanentProviderError(f"Gemini returned no text: {e}", provider=self.model_name) from e

        duration = (time.time() - start_time) * 1000
        usage_metadata = response.usage_metadata
        if usage_metadata:
            usage = self.build_usage(
                duration,
                usage_metadata.prompt_token_count,
                usage_metadata.candidates_token_count
            )
        else:
            usage = Usage(duration=duration)
        return text, usage

    async def perform_ocr(self, image_url: str) -> OcrOutcome:
        image_part = await self._create_image_part(image_url)
        text, usage = await self._generate([OCR_PROMPT, image_part])
        return OcrOutcome(text=text, usage=usage)

    async def extract_json_from_text(
            self,
            text: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        prompt = EXTRACTION_PROMPT.format(source="text", schema=json.dumps(json_schema, indent=2))
        prompt += f"\nText to extract from:\n{text}\n\nJSON:"
        response_text, usage = await self._generate([prompt], json_mode=True)
        return ExtractionOutcome(raw_response=response_text, usage=usage)

    async def extract_json_from_image(
            self,
            image_url: str,
            json_schema: Dict[str, Any]
    ) -> ExtractionOutcome:
        image_part = await self._create_image_part(image_url)
        prompt = EXTRACTION_PROMPT.format(source="image", schema=json.dumps(json_schema, indent=2))
        response_text, usage = await self._generate([prompt + "\nJSON:", image_part], json_mode=True)
        return ExtractionOutcome(raw_response=response_text, usage=usage)
