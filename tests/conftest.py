"""Pytest configuration and fixtures."""

import asyncio
import io
import os
from collections.abc import Sequence
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Settings are validated at startup; tests never reach the real API
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from app.asset_analyzer.config import get_settings  # noqa: E402
from app.asset_analyzer.main import app  # noqa: E402
from app.asset_analyzer.models import AssetRecord, PageImage, SourceFile  # noqa: E402
from app.asset_analyzer.services.ai import EmptyInputError  # noqa: E402
from app.asset_analyzer.services.pdf_service import DocumentParseError  # noqa: E402
from app.asset_analyzer.services.session_service import (  # noqa: E402
    SessionController,
    get_session_controller,
)

JPEG_STUB = b"\xff\xd8\xff\xe0fake-jpeg"


class FakePDFService:
    """
    Stand-in for PDFService.

    pages maps filename -> page count; delays maps filename -> seconds to
    wait before returning, to simulate out-of-order completion.
    """

    def __init__(
        self,
        pages: dict[str, int] | None = None,
        delays: dict[str, float] | None = None,
        broken: set[str] | None = None,
    ):
        self.pages = pages or {}
        self.delays = delays or {}
        self.broken = broken or set()
        self.calls: list[str] = []

    async def rasterize(self, file_bytes: bytes, source_file: str = "") -> list[PageImage]:
        self.calls.append(source_file)
        await asyncio.sleep(self.delays.get(source_file, 0))
        if source_file in self.broken:
            raise DocumentParseError("Invalid or corrupted PDF file")
        return [
            PageImage(page_number=n, data=JPEG_STUB, source_file=source_file)
            for n in range(1, self.pages.get(source_file, 1) + 1)
        ]


class FakeAIService:
    """Stand-in for AIService returning fixed records or raising."""

    def __init__(self, records: Sequence[AssetRecord] = (), error: Exception | None = None):
        self.records = list(records)
        self.error = error
        self.received: list[list[PageImage]] = []

    async def extract(self, images: Sequence[PageImage]) -> list[AssetRecord]:
        if not images:
            raise EmptyInputError("No images provided for analysis")
        self.received.append(list(images))
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Ensure each test reads settings fresh from the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_assets() -> list[AssetRecord]:
    """Three records across two categories."""
    return [
        AssetRecord(asset_id="B-200", model="Dell OptiPlex 7090", serial_number="SN-2", location="Office B", category="PC"),
        AssetRecord(asset_id="A-100", model="Dell P2419H", serial_number="SN-1", location="Office A", category="Monitor"),
        AssetRecord(asset_id="C-300", model="HP ProDesk 400", serial_number="SN-3", location="Office C", category="PC"),
    ]


@pytest.fixture
def source_files() -> list[SourceFile]:
    return [
        SourceFile(filename="first.pdf", content=b"%PDF-1.4 first"),
        SourceFile(filename="second.pdf", content=b"%PDF-1.4 second"),
    ]


@pytest.fixture
def fake_pdf_service() -> FakePDFService:
    return FakePDFService(pages={"first.pdf": 2, "second.pdf": 1})


@pytest.fixture
def fake_ai_service(sample_assets: list[AssetRecord]) -> FakeAIService:
    return FakeAIService(records=sample_assets)


@pytest.fixture
def controller(fake_pdf_service: FakePDFService, fake_ai_service: FakeAIService) -> SessionController:
    return SessionController(pdf_service=fake_pdf_service, ai_service=fake_ai_service)


@pytest.fixture
def client(controller: SessionController) -> Generator[TestClient, None, None]:
    """Create a test client bound to an isolated session controller."""
    app.dependency_overrides[get_session_controller] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a real two-page PDF for testing.

    Pages are 200x100 points, so rendering at 2x scale gives 400x200 pixels.
    """
    pages = [
        Image.new("RGB", (200, 100), color="white"),
        Image.new("RGB", (200, 100), color="black"),
    ]
    buffer = io.BytesIO()
    pages[0].save(buffer, format="PDF", save_all=True, append_images=pages[1:], resolution=72)
    return buffer.getvalue()


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"
