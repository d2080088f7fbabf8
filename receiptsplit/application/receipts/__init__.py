"""Receipt workflows."""

from receiptsplit.application.receipts.retry import describe_error, is_transient_error, retry_with_backoff
from receiptsplit.application.receipts.scan import (
    ReceiptScanRequest,
    ReceiptScanResult,
    run_receipt_scan,
    unreadable_receipt,
)
from receiptsplit.application.receipts.settle import SettleResult, run_settle

__all__ = [
    "ReceiptScanRequest",
    "ReceiptScanResult",
    "run_receipt_scan",
    "unreadable_receipt",
    "SettleResult",
    "run_settle",
    "describe_error",
    "is_transient_error",
    "retry_with_backoff",
]
