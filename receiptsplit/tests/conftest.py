"""Shared pytest fixtures for receiptsplit tests."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from typing import Any

import pytest

from receiptsplit.runtime.extraction_client import ReceiptImage


class FakeExtractor:
    """Scripted stand-in for the extraction service.

    Each queue entry is either a value to return or an exception to raise.
    The last entry repeats once the queue is exhausted.
    """

    def __init__(
        self,
        image: list[Any] | None = None,
        text: list[Any] | None = None,
        structured_text: list[Any] | None = None,
    ) -> None:
        self.image_results = list(image or [{}])
        self.text_results = list(text or [""])
        self.structured_text_results = list(structured_text or [{}])
        self.calls: list[str] = []
        self.images: list[ReceiptImage] = []
        self.closed = False

    @staticmethod
    def _next(queue: list[Any]) -> Any:
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result

    async def extract_image(self, image: ReceiptImage) -> dict[str, Any]:
        self.calls.append("extract_image")
        self.images.append(image)
        return self._next(self.image_results)

    async def detect_text(self, image: ReceiptImage) -> str:
        self.calls.append("detect_text")
        return self._next(self.text_results)

    async def extract_text(self, text: str) -> dict[str, Any]:
        self.calls.append("extract_text")
        return self._next(self.structured_text_results)

    async def aclose(self) -> None:
        self.closed = True

    async def __aenter__(self) -> FakeExtractor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


@pytest.fixture
def fake_extractor() -> type[FakeExtractor]:
    return FakeExtractor


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic line item ids: li-1, li-2, ..."""
    counter = itertools.count(1)
    return lambda: f"li-{next(counter)}"


@pytest.fixture
def dinner_payload() -> dict[str, Any]:
    return {
        "merchant": "Bella Cucina",
        "date": "2025-03-15",
        "time": "19:30",
        "lineItems": [
            {"name": "Pasta", "price": 10.0, "category": "food"},
            {"name": "Pizza", "price": 30.0},
        ],
        "total": 40.0,
    }
