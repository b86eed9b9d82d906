"""Tests for PDF rasterization service."""

import io
import shutil
import time
from unittest.mock import patch

import pytest
from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
from PIL import Image

from app.asset_analyzer.services.pdf_service import DocumentParseError, PDFService

MODULE = "app.asset_analyzer.services.pdf_service"


def _fake_convert(page_count: int):
    """convert_from_bytes stand-in where later pages finish first."""

    def convert(pdf_bytes, dpi, first_page, last_page):
        time.sleep(0.02 * (page_count - first_page))
        shade = min(255, first_page * 40)
        return [Image.new("RGB", (20, 30), color=(shade, shade, shade))]

    return convert


class TestPDFService:
    """Tests for PDFService class."""

    def test_init_default_values(self):
        """Test PDFService renders at 2x scale with JPEG quality 95 by default."""
        service = PDFService()
        assert service.scale == 2.0
        assert service.jpeg_quality == 95
        assert service.dpi == 144

    def test_init_custom_values(self):
        """Test PDFService accepts custom configuration."""
        service = PDFService(scale=3.0, jpeg_quality=80)
        assert service.dpi == 216
        assert service.jpeg_quality == 80

    def test_page_count_empty_file_raises_error(self):
        """Test that empty file raises DocumentParseError."""
        service = PDFService()
        with pytest.raises(DocumentParseError) as exc_info:
            service.get_page_count(b"")
        assert "Empty" in str(exc_info.value)

    def test_page_count_invalid_pdf_raises_error(self):
        """Test that non-PDF content raises DocumentParseError."""
        service = PDFService()
        with pytest.raises(DocumentParseError) as exc_info:
            service.get_page_count(b"This is not a PDF")
        assert "does not start" in str(exc_info.value)

    def test_page_count_corrupted_pdf_raises_error(self):
        """Test that poppler page count failures become DocumentParseError."""
        service = PDFService()
        with patch(f"{MODULE}.pdfinfo_from_bytes", side_effect=PDFPageCountError("bad xref")):
            with pytest.raises(DocumentParseError):
                service.get_page_count(b"%PDF-1.4 broken")

    def test_page_count_encrypted_pdf_raises_error(self):
        """Test that encrypted documents are rejected."""
        service = PDFService()
        info = {"Pages": 2, "Encrypted": "yes (print:yes copy:no change:no addNotes:no)"}
        with patch(f"{MODULE}.pdfinfo_from_bytes", return_value=info):
            with pytest.raises(DocumentParseError) as exc_info:
                service.get_page_count(b"%PDF-1.7 encrypted")
        assert "Encrypted" in str(exc_info.value)

    def test_image_to_bytes_png(self):
        """Test converting PIL Image to bytes."""
        service = PDFService()
        img = Image.new("RGB", (100, 100), color="red")
        result = service.image_to_bytes(img, format="PNG")

        assert isinstance(result, bytes)
        # PNG magic bytes
        assert result[:4] == b"\x89PNG"

    def test_image_to_bytes_jpeg_converts_alpha(self):
        """Test that RGBA images are flattened before JPEG encoding."""
        service = PDFService()
        img = Image.new("RGBA", (100, 100), color=(0, 0, 255, 128))
        result = service.image_to_bytes(img, format="JPEG", quality=85)

        # JPEG magic bytes
        assert result[:2] == b"\xff\xd8"


class TestRasterize:
    """Tests for concurrent page rasterization."""

    @pytest.mark.asyncio
    async def test_pages_returned_in_page_order(self):
        """Test output is page-ascending even when later pages finish first."""
        service = PDFService()
        with (
            patch(f"{MODULE}.pdfinfo_from_bytes", return_value={"Pages": 4}),
            patch(f"{MODULE}.convert_from_bytes", side_effect=_fake_convert(4)),
        ):
            pages = await service.rasterize(b"%PDF-1.4 four pages", source_file="doc.pdf")

        assert [p.page_number for p in pages] == [1, 2, 3, 4]
        assert all(p.source_file == "doc.pdf" for p in pages)
        assert all(p.mime_type == "image/jpeg" for p in pages)
        assert all(p.data[:2] == b"\xff\xd8" for p in pages)

    @pytest.mark.asyncio
    async def test_each_page_rendered_once_at_scale(self):
        """Test every page is rendered individually at 144 DPI."""
        service = PDFService()
        with (
            patch(f"{MODULE}.pdfinfo_from_bytes", return_value={"Pages": 3}),
            patch(f"{MODULE}.convert_from_bytes", side_effect=_fake_convert(3)) as convert,
        ):
            await service.rasterize(b"%PDF-1.4 three pages")

        rendered = sorted(call.kwargs["first_page"] for call in convert.call_args_list)
        assert rendered == [1, 2, 3]
        assert all(call.kwargs["dpi"] == 144 for call in convert.call_args_list)
        assert all(
            call.kwargs["first_page"] == call.kwargs["last_page"]
            for call in convert.call_args_list
        )

    @pytest.mark.asyncio
    async def test_zero_page_document_returns_empty(self):
        """Test a document without pages yields no images and no error."""
        service = PDFService()
        with (
            patch(f"{MODULE}.pdfinfo_from_bytes", return_value={"Pages": 0}),
            patch(f"{MODULE}.convert_from_bytes") as convert,
        ):
            pages = await service.rasterize(b"%PDF-1.4 empty")

        assert pages == []
        convert.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_bytes_raise_before_rendering(self, invalid_file_bytes: bytes):
        """Test non-PDF bytes fail fast with DocumentParseError."""
        service = PDFService()
        with patch(f"{MODULE}.pdfinfo_from_bytes") as pdfinfo:
            with pytest.raises(DocumentParseError):
                await service.rasterize(invalid_file_bytes)
        pdfinfo.assert_not_called()

    @pytest.mark.asyncio
    async def test_render_failure_raises_parse_error(self):
        """Test poppler syntax errors surface as DocumentParseError."""
        service = PDFService()
        with (
            patch(f"{MODULE}.pdfinfo_from_bytes", return_value={"Pages": 2}),
            patch(f"{MODULE}.convert_from_bytes", side_effect=PDFSyntaxError("bad stream")),
        ):
            with pytest.raises(DocumentParseError) as exc_info:
                await service.rasterize(b"%PDF-1.4 corrupted")
        assert "corrupted" in str(exc_info.value)


@pytest.mark.skipif(shutil.which("pdfinfo") is None, reason="poppler is not installed")
class TestPDFServicePoppler:
    """Tests that render through poppler without patching."""

    @pytest.mark.asyncio
    async def test_rasterize_real_document(self, sample_pdf_bytes: bytes):
        """Test a real PDF renders one 2x-scaled JPEG per page in page order."""
        service = PDFService()

        pages = await service.rasterize(sample_pdf_bytes, source_file="sample.pdf")

        assert [p.page_number for p in pages] == [1, 2]
        assert all(p.source_file == "sample.pdf" for p in pages)
        images = [Image.open(io.BytesIO(p.data)) for p in pages]
        assert all(image.format == "JPEG" for image in images)
        assert all(image.size == (400, 200) for image in images)
        # First page is white, second black
        assert images[0].convert("L").getpixel((200, 100)) > 200
        assert images[1].convert("L").getpixel((200, 100)) < 50
