"""Receipt command handlers used by the unified CLI."""

import argparse
import asyncio
import base64
import json
import sys
from pathlib import Path

from receiptsplit.domain.receipt import Receipt
from receiptsplit.receipt.categories import category_emoji
from receiptsplit.receipt.money import format_currency
from receiptsplit.receipt.records import receipt_to_record
from receiptsplit.runtime import get_logger, load_settings

logger = get_logger(__name__)


def _print_receipt(receipt: Receipt, currency: str) -> None:
    print("\n" + "=" * 60)
    print("PARSED RECEIPT")
    print("=" * 60)
    print(f"Merchant: {receipt.merchant}")
    print(f"Date: {receipt.date or 'UNKNOWN'}{f' {receipt.time}' if receipt.time else ''}")
    print(f"Total: {format_currency(receipt.total, currency)}")
    if receipt.surcharge:
        print(f"Surcharge: {format_currency(receipt.surcharge, currency)}")
    if receipt.printed_total is not None and receipt.printed_total != receipt.total:
        print(f"Printed total: {format_currency(receipt.printed_total, currency)}")
    print(f"Method: {receipt.method} (confidence {receipt.confidence or 0:.2f})")
    print(f"\nItems ({len(receipt.line_items)}):")
    for i, item in enumerate(receipt.line_items, 1):
        print(f"  {i}. {category_emoji(item)} {item.name} - {format_currency(item.price, currency)}")
    if receipt.validation_warnings:
        print("\nWarnings:")
        for warning in receipt.validation_warnings:
            print(f"  ! {warning}")
    print("=" * 60)


def cmd_scan(args: argparse.Namespace) -> None:
    """Scan a receipt image through the extraction service and print the result."""
    from receiptsplit.application.receipts.scan import ReceiptScanRequest, ReceiptScanResult, run_receipt_scan
    from receiptsplit.runtime.extraction_client import ScanInputError, create_extractor

    image_path = Path(args.image)
    if not image_path.is_file():
        print(f"Error: Receipt file not found: {image_path}")
        sys.exit(1)

    settings = load_settings(args.config)
    request = ReceiptScanRequest(
        image_base64=base64.b64encode(image_path.read_bytes()).decode("ascii"),
        mime_type=args.mime_type,
    )

    async def scan() -> ReceiptScanResult:
        async with create_extractor(settings) as extractor:
            return await run_receipt_scan(request, extractor, settings=settings)

    try:
        result = asyncio.run(scan())
    except ScanInputError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}")
        sys.exit(1)

    if args.json:
        print(json.dumps(receipt_to_record(result.receipt), indent=2, ensure_ascii=False))
    else:
        _print_receipt(result.receipt, settings.currency)
        if result.error:
            print(f"\nNote: {result.error}")

    if result.status == "failed":
        sys.exit(1)


def cmd_parse_text(args: argparse.Namespace) -> None:
    """Parse OCR text offline with the regex parser."""
    from receiptsplit.receipt.fallback_parser import parse_receipt_text

    text_path = Path(args.file)
    if not text_path.is_file():
        print(f"Error: Text file not found: {text_path}")
        sys.exit(1)

    receipt = parse_receipt_text(text_path.read_text(encoding="utf-8"))
    if args.json:
        print(json.dumps(receipt_to_record(receipt), indent=2, ensure_ascii=False))
    else:
        _print_receipt(receipt, args.currency)


def cmd_settle(args: argparse.Namespace) -> None:
    """Print who owes what for an allocated split saved as JSON."""
    from receiptsplit.application.receipts.settle import run_settle
    from receiptsplit.receipt.records import split_from_record

    split_path = Path(args.split)
    try:
        raw = json.loads(split_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        print(f"Error: Split file not found: {split_path}")
        sys.exit(1)
    except json.JSONDecodeError as exc:
        print(f"Error: Split file is not valid JSON: {exc}")
        sys.exit(1)

    if not isinstance(raw, dict):
        print("Error: Split file must contain a JSON object")
        sys.exit(1)

    currency = args.currency or load_settings(args.config).currency
    try:
        split = split_from_record(raw)
    except ValueError as exc:
        print(f"Error: Invalid split file: {exc}")
        sys.exit(1)
    result = run_settle(split, currency=currency)

    if args.json:
        print(json.dumps(result.to_record(), indent=2, ensure_ascii=False))
    else:
        print(result.message)

    if args.owe:
        from receiptsplit.receipt.share import build_owe_message

        payer = split.payer
        prefs = payer.payment_prefs if payer is not None else None
        for entry in result.settlements:
            if entry.is_payer or entry.total_owed <= 0:
                continue
            print(f"{entry.person.name}: {build_owe_message(entry.total_owed, payer, prefs, currency)}")


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI server for receipt scanning and settlement."""
    from receiptsplit.runtime.receipt_server import serve

    print(f"Starting receipt server on {args.host}:{args.port}")
    print(f"Endpoints: http://{args.host}:{args.port}/ocr-receipt | /upload | /settle")
    print("Press Ctrl+C to stop")

    serve(host=args.host, port=args.port, settings=load_settings(args.config))
