
import json
from dataclasses import dataclass

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..core.errors import ExtractionError
from ..models.receipt import ExtractionResult

SYSTEM_PROMPT = "You are a receipt data extraction expert. Return only valid JSON with exact field names."

EXTRACTION_PROMPT = """
You are an expert receipt data extraction system. Analyze the provided receipt image and extract structured information with high accuracy.

EXTRACTION REQUIREMENTS:
Extract these fields precisely:
- Date: Format as DD/MM/YYYY (convert from any format found)
- Currency: 3-letter ISO code (INR, USD, EUR, etc.)
- Vendor/Store Name: The business name exactly as shown
- Individual Items: List each purchased item with name and cost
- Tax Amount: Total tax/GST amount only (exclude service charges)
- Total Amount: Final amount paid

CRITICAL OUTPUT RULES:
1. Return ONLY valid JSON - no markdown, no explanations, no code blocks
2. Use exact field names as specified in the schema below
3. Convert all monetary values to numbers (remove currency symbols)
4. If any field cannot be determined, use null
5. Ensure the output is a single JSON object

REQUIRED JSON SCHEMA:
{
  "date": "DD/MM/YYYY",
  "currency": "INR",
  "vendor_name": "Store Name",
  "receipt_items": [
    {
      "item_name": "Product Name",
      "item_cost": 99.99
    }
  ],
  "tax": 18.00,
  "total": 117.99
}
"""


@dataclass(frozen=True)
class Valid:
    result: ExtractionResult


@dataclass(frozen=True)
class Invalid:
    reason: str


def parse_extraction_response(text: str | None) -> Valid | Invalid:
    """
    Parse and validate the model's reply.

    The reply is untrusted: anything other than a single JSON object with
    `date`, `vendor_name` and a `receipt_items` list, numeric money fields
    and well-formed date/currency is Invalid. Extra keys are ignored.
    """
    if not text or not text.strip():
        return Invalid("empty response")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        return Invalid(f"response is not valid JSON: {e.msg}")

    if not isinstance(payload, dict):
        return Invalid(f"expected a JSON object, got {type(payload).__name__}")

    for field in ("date", "vendor_name"):
        if not payload.get(field):
            return Invalid(f"missing required field: {field}")
    if not isinstance(payload.get("receipt_items"), list):
        return Invalid("receipt_items must be a list")

    try:
        return Valid(ExtractionResult.model_validate(payload))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return Invalid(f"schema validation failed: {problems}")


class ExtractionClient:
    """
    Single-shot client for a vision-capable chat completions endpoint.

    Uses Azure OpenAI conventions (deployment URL + api-key header) when an
    api version is configured, otherwise OpenAI conventions (bearer token +
    model name).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        deployment: str,
        api_version: str | None = None,
        timeout_seconds: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.deployment = deployment
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds

    def _request(self, image_url: str) -> tuple[str, dict, dict, dict]:
        body = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": EXTRACTION_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                    ],
                },
            ],
            "max_tokens": 2000,
            "temperature": 0.1,
            "response_format": {"type": "json_object"},
        }

        if self.api_version:
            url = f"{self.base_url}/openai/deployments/{self.deployment}/chat/completions"
            return url, {"api-key": self.api_key}, {"api-version": self.api_version}, body

        body["model"] = self.deployment
        url = f"{self.base_url}/chat/completions"
        return url, {"Authorization": f"Bearer {self.api_key}"}, {}, body

    async def extract(self, image_url: str) -> ExtractionResult:
        url, headers, params, body = self._request(image_url)
        logger.info("Requesting receipt extraction", deployment=self.deployment)

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                r = await client.post(url, headers=headers, params=params, json=body)
        except httpx.HTTPError as e:
            raise ExtractionError(f"Extraction request failed: {type(e).__name__}: {e}") from e

        if r.status_code != 200:
            raise ExtractionError(f"Extraction service returned HTTP {r.status_code}: {r.text[:500]}")

        try:
            content = r.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExtractionError(f"Malformed completion envelope: {e!r}") from e

        parsed = parse_extraction_response(content)
        if isinstance(parsed, Invalid):
            logger.warning("Rejected extraction response", reason=parsed.reason)
            raise ExtractionError(f"Failed to parse receipt data: {parsed.reason}")

        result = parsed.result
        logger.info(
            "Successfully extracted receipt data",
            vendor=result.vendor_name,
            items=len(result.receipt_items),
            total=result.total,
        )
        return result


class MockExtractionClient:
    """Fixed demo extraction used when no LLM is configured"""

    async def extract(self, image_url: str) -> ExtractionResult:
        logger.info("Returning mock receipt extraction", image_url=image_url)
        return ExtractionResult(
            date="01/01/2024",
            currency="INR",
            vendor_name="Demo Cafe",
            receipt_items=[{"item_name": "Masala Tea", "item_cost": 20.0}],
            tax=2.0,
            total=22.0,
        )


def create_extraction_client() -> ExtractionClient | MockExtractionClient:
    if settings.llm_base_url and settings.llm_api_key and settings.llm_deployment:
        logger.info(
            "Using vision LLM for receipt extraction",
            endpoint=settings.llm_base_url[:50] + "..." if len(settings.llm_base_url) > 50 else settings.llm_base_url,
        )
        return ExtractionClient(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            deployment=settings.llm_deployment,
            api_version=settings.llm_api_version,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    logger.warning(
        "Vision LLM not configured - using MOCK extraction. "
        "Set LLM_BASE_URL, LLM_API_KEY and LLM_DEPLOYMENT to use real extraction."
    )
    return MockExtractionClient()
