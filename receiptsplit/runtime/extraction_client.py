"""HTTP client for the external receipt extraction services (non-orchestration).

Three calls are exposed, all async and each a single attempt; retries and
fallback decisions live in ``receiptsplit.application.receipts``:

- ``extract_image``: vision model turns the receipt image into structured JSON
- ``detect_text``: plain OCR text detection for the fallback paths
- ``extract_text``: the same structured extraction, from OCR text only
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx

from receiptsplit.runtime.logging import get_logger
from receiptsplit.runtime.settings import Settings

logger = get_logger(__name__)

LARGE_IMAGE_BASE64_CHARS = 6_000_000
VISION_MAX_OUTPUT_TOKENS = 2048
TEXT_MAX_OUTPUT_TOKENS = 1536


class ScanInputError(RuntimeError):
    """Raised before any extraction call when the scan request cannot proceed."""


class ExtractionNotConfigured(ScanInputError):
    """Raised when no extraction service credentials are configured."""


class ExtractionServiceError(RuntimeError):
    """Raised when an extraction service call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(ExtractionServiceError):
    """Raised when the model answers with something that is not a JSON object."""


@dataclass(frozen=True)
class ReceiptImage:
    base64_data: str
    mime_type: str = "image/jpeg"


class ImageSource(Protocol):
    image_base64: str | None
    image_url: str | None
    image_path: str | None
    mime_type: str


class ReceiptExtractor(Protocol):
    async def extract_image(self, image: ReceiptImage) -> dict[str, Any]: ...

    async def detect_text(self, image: ReceiptImage) -> str: ...

    async def extract_text(self, text: str) -> dict[str, Any]: ...


RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "merchant": {"type": "STRING"},
        "date": {"type": "STRING"},
        "time": {"type": "STRING", "nullable": True},
        "lineItems": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "price": {"type": "NUMBER"},
                    "quantity": {"type": "INTEGER", "nullable": True},
                    "category": {
                        "type": "STRING",
                        "nullable": True,
                        "enum": ["coffee", "alcohol", "drink", "food", "dessert", "grocery", "fuel", "other"],
                    },
                },
                "required": ["name", "price"],
            },
        },
        "subtotal": {"type": "NUMBER", "nullable": True},
        "surcharge": {"type": "NUMBER", "nullable": True},
        "total": {"type": "NUMBER"},
    },
    "required": ["merchant", "date", "lineItems", "total"],
}

RECEIPT_PROMPT = """You are a precise receipt parser for a bill-splitting app.

YOUR JOB: Extract only the ordered food/drink/products and the final amounts. Nothing else.

NEVER EXTRACT THESE (skip the entire line):
- Payment: EFTPOS, Visa, Mastercard, PayWave, Contactless, Tap & Go, Cash, Change, Refund, APPROVED, Signature
- Card details: Auth:, Approval:, Reference:, Transaction ID:, Receipt #, Account: ****XXXX, RRN:
- Tax lines: "Incl. GST", "GST $X.XX", "GST Component", "Tax Invoice" header, ABN numbers
- Rounding: "Cash rounding", "Rounding adjustment"
- Loyalty/savings: "You saved", "Member savings", "Points earned", "Rewards", "Member price", "Discount applied"
- Receipt metadata: store address, phone, website, "Thank you", "Guest copy", "Duplicate", "VOID", "NO SALE"
- Order info: table number, seat, server name, order number, docket number, covers, terminal ID
- Duplicate totals: receipts sometimes print TOTAL twice; use only the final/largest value

EXTRACTION RULES:

merchant: The business trading name, usually the largest text at the very top. Never an address, ABN or phone.

date: Output YYYY-MM-DD. Day-first receipts write DD/MM/YYYY; convert carefully ("15/03/2025" -> "2025-03-15").

time: 24-hour HH:MM. Null if absent.

lineItems: EVERY ordered item with a price > 0.
  name: Clean, human-readable name only.
    - Strip leading barcode/article codes: "30482355 KALLAX Shelf 77x147cm" -> "KALLAX Shelf 77x147cm"
    - Strip trailing dot leaders: "Flat White ......... 4.50" -> "Flat White"
    - $0 modifier lines ("No sugar", "Extra ice"): append to the previous item name, never a separate item.
    - Priced modifiers ("+ Extra shot $1.00"): include in the parent name and add to the parent price.
  price: The TOTAL price for the line as printed.
    - "2x Flat White $8.00" -> price=8.00, quantity=2 (do NOT divide)
    - "Flat White $4.50 x 3" -> price=13.50, quantity=3
    - "Unleaded 30.5L @ $1.89/L $57.65" -> name="Unleaded 30.5L", price=57.65
  quantity: Integer > 1 only when EXPLICITLY printed ("2x", "Qty 3", "x 2"). Omit if 1.
    - "Nuggets (6 piece)" is a portion description, not a quantity.
  category: one of coffee, alcohol, drink, food, dessert, grocery, fuel, other.

MULTI-LINE ITEMS: If an item name is on one line and its price alone on the next, merge them into one item.

subtotal: Pre-surcharge item total, only if explicitly labelled "Subtotal" or "Sub-total". Null otherwise.

surcharge: Dollar amount of any merchant-added surcharge (weekend, public holiday, service fee, card fee).
  - "15% weekend surcharge $6.75" -> surcharge=6.75
  - Null if no surcharge.

total: The FINAL amount the customer paid. If printed multiple times, use the last occurrence or the largest
value that is less than double the item sum.

SELF-CHECK: Sum your lineItem prices. If the sum is more than 25% away from subtotal (or total if no
surcharge), you missed items or misread a price; look again before finalising."""


class GeminiReceiptExtractor:
    """Receipt extraction using Gemini structured output and Google Vision OCR."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    async def __aenter__(self) -> GeminiReceiptExtractor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def extract_image(self, image: ReceiptImage) -> dict[str, Any]:
        """Structured extraction straight from the receipt image."""
        if len(image.base64_data) > LARGE_IMAGE_BASE64_CHARS:
            logger.warning(
                "Image is large (%.1fMB base64); extraction may be slow",
                len(image.base64_data) / 1_000_000,
            )
        parts = [
            {"text": RECEIPT_PROMPT},
            {"inlineData": {"mimeType": image.mime_type, "data": image.base64_data}},
        ]
        return await self._generate(parts, VISION_MAX_OUTPUT_TOKENS, self.settings.vision_timeout)

    async def extract_text(self, text: str) -> dict[str, Any]:
        """Structured extraction from OCR text."""
        parts = [{"text": f"{RECEIPT_PROMPT}\n\nRECEIPT TEXT:\n{text}"}]
        return await self._generate(parts, TEXT_MAX_OUTPUT_TOKENS, self.settings.text_timeout)

    async def detect_text(self, image: ReceiptImage) -> str:
        """Run document text detection and return the full text (may be empty)."""
        if not self.settings.vision_api_key:
            raise ExtractionNotConfigured("Text detection requires VISION_API_KEY")

        payload = {
            "requests": [
                {
                    "image": {"content": image.base64_data},
                    "features": [{"type": "DOCUMENT_TEXT_DETECTION", "maxResults": 1}],
                    "imageContext": {"languageHints": ["en"]},
                }
            ]
        }
        data = await self._post_json(
            f"{self.settings.vision_base_url}/images:annotate",
            self.settings.vision_api_key,
            payload,
            self.settings.text_timeout,
            service="Vision",
        )
        responses = data.get("responses") or [{}]
        first = responses[0] if isinstance(responses[0], dict) else {}
        full_text = (first.get("fullTextAnnotation") or {}).get("text")
        if full_text is None:
            annotations = first.get("textAnnotations") or [{}]
            full_text = annotations[0].get("description", "") if isinstance(annotations[0], dict) else ""
        return str(full_text or "")

    async def _generate(self, parts: list[dict[str, Any]], max_output_tokens: int, timeout: float) -> dict[str, Any]:
        if not self.settings.gemini_api_key:
            raise ExtractionNotConfigured("Structured extraction requires GEMINI_API_KEY")

        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": 0,
                "maxOutputTokens": max_output_tokens,
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        data = await self._post_json(
            f"{self.settings.gemini_base_url}/models/{self.settings.gemini_model}:generateContent",
            self.settings.gemini_api_key,
            payload,
            timeout,
            service="Gemini",
        )
        return parse_generated_json(data)

    async def _post_json(
        self,
        url: str,
        api_key: str,
        payload: dict[str, Any],
        timeout: float,
        *,
        service: str,
    ) -> dict[str, Any]:
        start_time = time.time()
        response = await self._client.post(url, params={"key": api_key}, json=payload, timeout=timeout)
        logger.info("%s returned %s in %.2f seconds", service, response.status_code, time.time() - start_time)

        if response.status_code < 200 or response.status_code >= 300:
            # Response bodies may echo receipt contents; keep them out of INFO logs.
            logger.debug("%s error body: %s", service, response.text[:500])
            raise ExtractionServiceError(
                f"{service} API error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"{service} returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"{service} returned a non-object payload")
        return data


def parse_generated_json(data: dict[str, Any]) -> dict[str, Any]:
    """Decode the JSON document embedded in a generateContent response."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = ""
    if not text:
        raise MalformedResponseError("Model returned no content")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Model returned malformed JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Model returned JSON that is not an object")
    return parsed


def create_extractor(settings: Settings, client: httpx.AsyncClient | None = None) -> GeminiReceiptExtractor:
    """Build the default extractor, failing fast when no credentials are configured."""
    if not settings.is_configured:
        raise ExtractionNotConfigured("Receipt extraction is not configured. Set GEMINI_API_KEY or VISION_API_KEY.")
    return GeminiReceiptExtractor(settings, client=client)


def _resolve_local_image(image_path: str, settings: Settings) -> Path:
    if settings.image_dir is None:
        raise ScanInputError("imagePath requires RECEIPTSPLIT_IMAGE_DIR to be configured")
    base = settings.image_dir.resolve()
    candidate = (base / image_path).resolve()
    if not candidate.is_relative_to(base):
        raise ScanInputError(f"imagePath escapes the image directory: {image_path}")
    if not candidate.is_file():
        raise ScanInputError(f"Receipt image not found: {image_path}")
    return candidate


async def resolve_receipt_image(
    request: ImageSource,
    client: httpx.AsyncClient | None,
    settings: Settings,
) -> ReceiptImage:
    """Resolve the scan request's image source into base64 content.

    Sources are tried in order: inline base64, local path, then URL.
    """
    image_base64, image_path, image_url = request.image_base64, request.image_path, request.image_url
    mime_type = request.mime_type or "image/jpeg"
    if image_base64:
        return ReceiptImage(base64_data=image_base64, mime_type=mime_type)

    if image_path:
        path = _resolve_local_image(image_path, settings)
        encoded = base64.b64encode(path.read_bytes()).decode("ascii")
        return ReceiptImage(base64_data=encoded, mime_type=mime_type)

    if image_url:
        try:
            if client is None:
                async with httpx.AsyncClient() as own_client:
                    response = await own_client.get(image_url, timeout=settings.download_timeout)
            else:
                response = await client.get(image_url, timeout=settings.download_timeout)
        except httpx.RequestError as exc:
            logger.error("Failed to download receipt image: %s", exc)
            raise ScanInputError("Failed to download image from URL") from exc
        if response.status_code != 200:
            raise ScanInputError("Failed to download image from URL")
        encoded = base64.b64encode(response.content).decode("ascii")
        return ReceiptImage(base64_data=encoded, mime_type=mime_type)

    raise ScanInputError("No image provided. Please snap or pick a photo.")
