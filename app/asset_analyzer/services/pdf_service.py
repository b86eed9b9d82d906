"""
PDF rasterization service using pdf2image (poppler).

Renders every page of a PDF document to a JPEG image for AI extraction.
"""

import asyncio
import io
import logging
from typing import BinaryIO

from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from PIL import Image

from ..config import get_settings
from ..models import PageImage

logger = logging.getLogger(__name__)

# PDF user space is 72 points per inch
PDF_POINTS_PER_INCH = 72
DEFAULT_RENDER_SCALE = 2.0
DEFAULT_JPEG_QUALITY = 95


class DocumentParseError(Exception):
    """Raised when a PDF cannot be read, is encrypted, or is corrupted."""

    pass


class PDFService:
    """
    Service for PDF rasterization.

    Uses pdf2image (backed by poppler) to render each page separately so
    pages of one document can render concurrently.
    """

    def __init__(
        self,
        scale: float = DEFAULT_RENDER_SCALE,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ):
        """
        Initialize the PDF service.

        Args:
            scale: Linear render scale relative to the page's native size.
                Higher values improve OCR accuracy at the cost of payload size.
            jpeg_quality: JPEG quality factor (1-100) for encoded pages.
        """
        self.scale = scale
        self.jpeg_quality = jpeg_quality

    @property
    def dpi(self) -> int:
        return round(PDF_POINTS_PER_INCH * self.scale)

    async def rasterize(
        self,
        file_bytes: bytes | BinaryIO,
        source_file: str = "",
    ) -> list[PageImage]:
        """
        Render every page of a PDF to a JPEG page image.

        Pages render concurrently in worker threads; the result is always
        in ascending page order.

        Args:
            file_bytes: PDF file as bytes or file-like object.
            source_file: Filename recorded on each page image.

        Returns:
            One PageImage per page. Empty for a document without pages.

        Raises:
            DocumentParseError: If the document is not a readable, unencrypted PDF.
        """
        pdf_bytes = self._read_pdf_bytes(file_bytes)
        page_count = await asyncio.to_thread(self.get_page_count, pdf_bytes)

        if page_count == 0:
            logger.info("PDF '%s' has no pages", source_file or "<bytes>")
            return []

        logger.info(
            "Rasterizing %d page(s) of '%s' (scale=%.1f, dpi=%d, quality=%d)",
            page_count,
            source_file or "<bytes>",
            self.scale,
            self.dpi,
            self.jpeg_quality,
        )

        pages = await asyncio.gather(
            *(
                asyncio.to_thread(self.render_page, pdf_bytes, page_number, source_file)
                for page_number in range(1, page_count + 1)
            )
        )
        return list(pages)

    def render_page(
        self,
        pdf_bytes: bytes,
        page_number: int,
        source_file: str = "",
    ) -> PageImage:
        """
        Render a single page (1-indexed) to a JPEG PageImage.

        Raises:
            DocumentParseError: If poppler cannot render the page.
        """
        try:
            images = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                first_page=page_number,
                last_page=page_number,
            )
        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise DocumentParseError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e
        except (PDFSyntaxError, PDFPageCountError, PDFPopplerTimeoutError) as e:
            logger.error("Could not render page %d: %s", page_number, e)
            raise DocumentParseError(
                f"Invalid or corrupted PDF file: {e}"
            ) from e
        except Exception as e:
            logger.exception("Unexpected error rendering page %d", page_number)
            raise DocumentParseError(f"PDF rendering failed: {e}") from e

        if not images:
            raise DocumentParseError(f"Page {page_number} could not be rendered")

        data = self.image_to_bytes(images[0], format="JPEG", quality=self.jpeg_quality)
        logger.debug("Rendered page %d (%d bytes)", page_number, len(data))
        return PageImage(page_number=page_number, data=data, source_file=source_file)

    def get_page_count(self, file_bytes: bytes | BinaryIO) -> int:
        """
        Get the total number of pages in a PDF.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            Number of pages in the PDF.

        Raises:
            DocumentParseError: If the PDF is unreadable or encrypted.
        """
        pdf_bytes = self._read_pdf_bytes(file_bytes)

        try:
            info = pdfinfo_from_bytes(pdf_bytes)
        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise DocumentParseError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e
        except PDFPageCountError as e:
            logger.error("Could not get PDF page count: %s", e)
            raise DocumentParseError(
                f"Could not read PDF (corrupted or password protected): {e}"
            ) from e
        except Exception as e:
            logger.error("Could not get page count: %s", e)
            raise DocumentParseError(f"Could not get page count: {e}") from e

        if str(info.get("Encrypted", "no")).strip().lower().startswith("yes"):
            raise DocumentParseError("Encrypted PDF files are not supported")

        return int(info.get("Pages", 0))

    def image_to_bytes(
        self, image: Image.Image, format: str = "JPEG", quality: int = DEFAULT_JPEG_QUALITY
    ) -> bytes:
        """
        Convert a PIL Image to bytes.

        Args:
            image: PIL Image to convert.
            format: Output format (PNG, JPEG, etc.).
            quality: Quality for lossy formats (1-100).

        Returns:
            Image as bytes.
        """
        buffer = io.BytesIO()
        save_kwargs = {"format": format}
        if format.upper() in ("JPEG", "JPG", "WEBP"):
            save_kwargs["quality"] = quality
            # JPEG has no alpha channel or palette
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
        image.save(buffer, **save_kwargs)
        return buffer.getvalue()

    @staticmethod
    def _read_pdf_bytes(file_bytes: bytes | BinaryIO) -> bytes:
        if hasattr(file_bytes, "read"):
            pdf_bytes = file_bytes.read()
        else:
            pdf_bytes = file_bytes

        if not pdf_bytes:
            raise DocumentParseError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise DocumentParseError(
                "Invalid PDF file: does not start with PDF header"
            )
        return pdf_bytes


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        settings = get_settings()
        _pdf_service = PDFService(
            scale=settings.render_scale,
            jpeg_quality=settings.jpeg_quality,
        )
    return _pdf_service
