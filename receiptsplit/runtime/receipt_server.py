"""FastAPI server that scans receipt photos and settles shared bills."""

from __future__ import annotations

import base64
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from receiptsplit.application.receipts import (
    ReceiptScanRequest,
    describe_error,
    run_receipt_scan,
    run_settle,
)
from receiptsplit.receipt.records import receipt_to_record, split_from_record
from receiptsplit.runtime.extraction_client import ReceiptExtractor, ScanInputError, create_extractor
from receiptsplit.runtime.logging import get_logger
from receiptsplit.runtime.settings import Settings, load_settings

logger = get_logger(__name__)

ExtractorFactory = Callable[[Settings], ReceiptExtractor]


class ScanBody(BaseModel):
    """JSON body of ``POST /ocr-receipt``."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str | None = Field(default=None, alias="imageBase64")
    image_url: str | None = Field(default=None, alias="imageUrl")
    image_path: str | None = Field(default=None, alias="imagePath")
    mime_type: str = Field(default="image/jpeg", alias="mimeType")


class SettleBody(BaseModel):
    """JSON body of ``POST /settle``: a shared split plus optional display currency."""

    model_config = ConfigDict(populate_by_name=True)

    group_name: str = Field(default="", alias="groupName")
    people: list[dict[str, Any]] = Field(default_factory=list)
    payer_id: str = Field(default="", alias="payerId")
    receipt: dict[str, Any] = Field(default_factory=dict)
    currency: str | None = None


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _close(extractor: object) -> None:
    close = getattr(extractor, "aclose", None)
    if close is not None:
        await close()


def create_app(
    settings: Settings | None = None,
    extractor_factory: ExtractorFactory = create_extractor,
) -> FastAPI:
    """Build the HTTP app; settings are loaded from the environment when omitted."""
    app_settings = settings or load_settings()
    app = FastAPI(title="Receipt Split")

    async def scan(request: ReceiptScanRequest) -> JSONResponse:
        try:
            extractor = extractor_factory(app_settings)
        except ScanInputError as exc:
            return _error(str(exc), 400)

        try:
            result = await run_receipt_scan(request, extractor, settings=app_settings)
        except ScanInputError as exc:
            return _error(str(exc), 400)
        except Exception as exc:
            logger.exception("Receipt scan failed")
            return _error(describe_error(exc), 500)
        finally:
            await _close(extractor)

        logger.info("Scan %s via %s", result.status, result.receipt.method)
        return JSONResponse(receipt_to_record(result.receipt))

    @app.post("/ocr-receipt")
    async def ocr_receipt(body: ScanBody) -> JSONResponse:
        """Scan a receipt given inline base64, a URL or a path in the image directory."""
        return await scan(
            ReceiptScanRequest(
                image_base64=body.image_base64,
                image_url=body.image_url,
                image_path=body.image_path,
                mime_type=body.mime_type,
            )
        )

    @app.post("/upload")
    async def upload_receipt(request: Request) -> JSONResponse:
        """Scan a receipt photo sent as a multipart upload."""
        form = await request.form()

        file = None
        for key, value in form.items():
            logger.debug("Form field: key=%r, type=%s", key, type(value))
            if hasattr(value, "read"):
                file = value
                break

        if file is None:
            return _error("No file found in request", 400)

        contents = await file.read()
        if not contents:
            return _error("Uploaded file is empty", 400)

        mime_type = getattr(file, "content_type", None) or "image/jpeg"
        return await scan(
            ReceiptScanRequest(
                image_base64=base64.b64encode(contents).decode("ascii"),
                mime_type=mime_type,
            )
        )

    @app.post("/settle")
    async def settle(body: SettleBody) -> JSONResponse:
        """Compute who owes what for an allocated receipt."""
        try:
            split = split_from_record(body.model_dump(by_alias=True, exclude={"currency"}))
        except ValueError as exc:
            return _error(str(exc), 400)
        result = run_settle(split, currency=body.currency or app_settings.currency)
        return JSONResponse(result.to_record())

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


def serve(host: str = "127.0.0.1", port: int = 8000, settings: Settings | None = None) -> None:
    """Run the HTTP service with uvicorn."""
    import uvicorn

    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    serve()
