"""Receipt scan workflow orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from receiptsplit.application.receipts.retry import describe_error, retry_with_backoff
from receiptsplit.domain.receipt import Receipt
from receiptsplit.receipt.fallback_parser import parse_receipt_text
from receiptsplit.receipt.money import ZERO
from receiptsplit.receipt.validation import build_receipt
from receiptsplit.runtime import Settings, get_logger, load_settings
from receiptsplit.runtime.extraction_client import (
    ExtractionNotConfigured,
    ReceiptExtractor,
    ReceiptImage,
    ScanInputError,
    resolve_receipt_image,
)

logger = get_logger(__name__)

ScanStatus = Literal["success", "fallback", "failed"]

VISION_METHOD = "gemini-vision"
VISION_CONFIDENCE = 0.95
TEXT_METHOD = "gemini-text"
TEXT_CONFIDENCE = 0.75
UNREADABLE_WARNING = "Could not read the receipt. Try a clearer, well-lit photo."


@dataclass(frozen=True)
class ReceiptScanRequest:
    """Inputs for running receipt scan workflow. One image source is required."""

    image_base64: str | None = None
    image_url: str | None = None
    image_path: str | None = None
    mime_type: str = "image/jpeg"

    @property
    def has_image(self) -> bool:
        return bool(self.image_base64 or self.image_url or self.image_path)


@dataclass(frozen=True)
class ReceiptScanResult:
    """Outcome from receipt scan workflow."""

    status: ScanStatus
    receipt: Receipt
    error: str | None = None


def unreadable_receipt() -> Receipt:
    """The receipt returned when nothing usable could be extracted."""
    return Receipt(
        merchant="Receipt",
        date="",
        total=ZERO,
        line_items=[],
        confidence=0.0,
        method="none",
        validation_warnings=[UNREADABLE_WARNING],
    )


def _stamp(receipt: Receipt, method: str, confidence: float) -> Receipt:
    receipt.method = method
    receipt.confidence = confidence
    return receipt


def _finish(status: ScanStatus, receipt: Receipt, primary_error: Exception | None) -> ReceiptScanResult:
    logger.info(
        "Scan finished: method=%s items=%d total=%s warnings=%d",
        receipt.method,
        len(receipt.line_items),
        receipt.total,
        len(receipt.validation_warnings),
    )
    error = describe_error(primary_error) if primary_error is not None else None
    return ReceiptScanResult(status=status, receipt=receipt, error=error)


async def run_receipt_scan(
    request: ReceiptScanRequest,
    extractor: ReceiptExtractor | None,
    *,
    settings: Settings | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    client: httpx.AsyncClient | None = None,
) -> ReceiptScanResult:
    """
    Run scan flow: resolve image -> structured extraction -> fallbacks.

    Input problems raise ScanInputError before any extraction call. Once
    extraction starts, failures only move the scan to the next fallback:

    1. image extraction (retried on transient errors)
    2. raw text from the primary response, else text detection
    3. text extraction over that text, else the regex parser
    4. the unreadable sentinel receipt
    """
    if not request.has_image:
        raise ScanInputError("No image provided. Please snap or pick a photo.")
    if extractor is None:
        raise ExtractionNotConfigured("Receipt extraction is not configured. Set GEMINI_API_KEY or VISION_API_KEY.")

    settings = settings or load_settings()
    image = await resolve_receipt_image(request, client, settings)

    async def retried(operation: Callable[[], Awaitable[Any]], timeout: float, label: str) -> Any:
        return await retry_with_backoff(
            operation,
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            attempt_timeout=timeout,
            sleep=sleep,
            label=label,
        )

    primary_error: Exception | None = None
    primary: dict[str, Any] | None = None
    try:
        primary = await retried(lambda: extractor.extract_image(image), settings.vision_timeout, "image extraction")
    except Exception as exc:
        primary_error = exc
        logger.warning("Image extraction failed, falling back to text: %s", exc)

    raw_text = ""
    if isinstance(primary, dict):
        raw_text = str(primary.get("rawOcrText") or "")
        receipt = build_receipt(primary, raw_text)
        if receipt is not None:
            return _finish("success", _stamp(receipt, VISION_METHOD, VISION_CONFIDENCE), primary_error)
        logger.info("Image extraction found no line items, falling back to text")

    if not raw_text.strip():
        raw_text = await _detect_text(image, extractor, retried, settings)

    if not raw_text.strip():
        logger.warning("No text detected on receipt")
        return _finish("failed", unreadable_receipt(), primary_error)

    try:
        extracted = await retried(lambda: extractor.extract_text(raw_text), settings.text_timeout, "text extraction")
    except Exception as exc:
        logger.warning("Text extraction failed, using regex parser: %s", exc)
    else:
        receipt = build_receipt(extracted, raw_text)
        if receipt is not None:
            return _finish("fallback", _stamp(receipt, TEXT_METHOD, TEXT_CONFIDENCE), primary_error)
        logger.info("Text extraction found no line items, using regex parser")

    receipt = parse_receipt_text(raw_text)
    if receipt.line_items:
        return _finish("fallback", receipt, primary_error)

    logger.warning("Regex parser found no line items")
    return _finish("failed", unreadable_receipt(), primary_error)


async def _detect_text(
    image: ReceiptImage,
    extractor: ReceiptExtractor,
    retried: Callable[[Callable[[], Awaitable[Any]], float, str], Awaitable[Any]],
    settings: Settings,
) -> str:
    try:
        text = await retried(lambda: extractor.detect_text(image), settings.text_timeout, "text detection")
    except Exception as exc:
        logger.warning("Text detection failed: %s", exc)
        return ""
    return str(text or "")
