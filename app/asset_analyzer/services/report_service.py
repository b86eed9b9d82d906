"""
Report rendering service.

Draws the category bar chart (matplotlib) and the asset table (Pillow) into
one flattened image, and embeds that image in a PDF page of the same size.
"""

import io
import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date, datetime

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from matplotlib import font_manager  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402
from PIL import Image, ImageDraw, ImageFont  # noqa: E402

from ..models import AssetField, AssetRecord  # noqa: E402

logger = logging.getLogger(__name__)

REPORT_FILENAME_PREFIX = "asset-analysis-report"

# Base layout in CSS-like pixels; everything is multiplied by the render scale
BASE_WIDTH = 1100
PADDING = 24
CHART_HEIGHT = 320
ROW_HEIGHT = 36
FONT_SIZE = 13
TITLE_FONT_SIZE = 26

BACKGROUND = "#0f172a"
PANEL = "#1e293b"
BORDER = "#334155"
TEXT = "#e2e8f0"
MUTED = "#94a3b8"
ACCENT = "#3b82f6"
ACCENT_EDGE = "#60a5fa"

TABLE_COLUMNS: list[tuple[str, AssetField, float]] = [
    ("Asset ID", AssetField.ASSET_ID, 0.18),
    ("Category", AssetField.CATEGORY, 0.16),
    ("Model / Brand", AssetField.MODEL, 0.24),
    ("Serial Number", AssetField.SERIAL_NUMBER, 0.20),
    ("Location", AssetField.LOCATION, 0.22),
]


class ExportError(Exception):
    """Raised when the report image or PDF cannot be generated."""

    pass


def report_filename(on: date | None = None) -> str:
    """Report filename embedding the export date (YYYY-MM-DD)."""
    on = on or date.today()
    return f"{REPORT_FILENAME_PREFIX}-{on.isoformat()}.pdf"


# =============================================================================
# Chart
# =============================================================================


def _load_font(size: int, font_path: str | None = None) -> ImageFont.ImageFont:
    if font_path:
        return ImageFont.truetype(font_path, size)
    return ImageFont.load_default(size=size)


def _chart_rc(font_path: str | None) -> dict[str, str]:
    """rcParams selecting the report font for chart text."""
    if not font_path:
        return {}
    font_manager.fontManager.addfont(font_path)
    return {"font.family": font_manager.FontProperties(fname=font_path).get_name()}


@contextmanager
def category_chart(
    counts: Mapping[str, int],
    width_px: int,
    height_px: int,
    dpi: int = 100,
    font_path: str | None = None,
) -> Iterator[Figure]:
    """
    Acquire a bar chart figure of asset counts per category.

    The figure is closed when the block exits, including on error, so no
    two chart figures are alive at once. Text uses the font at font_path
    when given, otherwise matplotlib's default.
    """
    with plt.rc_context(_chart_rc(font_path)):
        fig, ax = plt.subplots(figsize=(width_px / dpi, height_px / dpi), dpi=dpi)
        try:
            fig.patch.set_facecolor(BACKGROUND)
            ax.set_facecolor(BACKGROUND)

            labels = list(counts.keys())
            values = list(counts.values())
            ax.bar(labels, values, color=ACCENT, alpha=0.6, edgecolor=ACCENT_EDGE, linewidth=1)

            ax.set_title("Assets by Category", color=TEXT, loc="left")
            ax.tick_params(axis="x", colors="#cbd5e1")
            ax.tick_params(axis="y", colors=MUTED)
            ax.yaxis.get_major_locator().set_params(integer=True)
            ax.set_ylim(bottom=0)
            ax.grid(axis="y", color=BORDER)
            ax.set_axisbelow(True)
            for spine in ax.spines.values():
                spine.set_visible(False)

            fig.tight_layout()
            yield fig
        finally:
            plt.close(fig)


def figure_to_image(fig: Figure) -> Image.Image:
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", facecolor=fig.get_facecolor())
    buffer.seek(0)
    with Image.open(buffer) as image:
        return image.convert("RGB")


# =============================================================================
# Report image
# =============================================================================


def _fit_text(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont, max_width: float) -> str:
    if draw.textlength(text, font=font) <= max_width:
        return text
    while text and draw.textlength(text + "…", font=font) > max_width:
        text = text[:-1]
    return text + "…"


def render_report_image(
    assets: Sequence[AssetRecord],
    counts: Mapping[str, int],
    analyzed_at: datetime | None = None,
    scale: int = 2,
    font_path: str | None = None,
) -> Image.Image:
    """
    Render the results view (summary, chart, table) as a single image.

    Args:
        assets: Records shown in the table, in display order.
        counts: Category counts shown in the chart.
        analyzed_at: Timestamp printed under the title.
        scale: Pixel multiplier for a sharper export.
        font_path: TrueType font for all report text; Pillow's built-in font
            when omitted.

    Returns:
        RGB image of the full report.
    """
    pad = PADDING * scale
    width = BASE_WIDTH * scale
    row_height = ROW_HEIGHT * scale
    chart_height = CHART_HEIGHT * scale
    header_height = (TITLE_FONT_SIZE + FONT_SIZE * 2 + 24) * scale
    table_height = row_height * (len(assets) + 1)
    height = pad + header_height + pad + chart_height + pad + table_height + pad

    title_font = _load_font(TITLE_FONT_SIZE * scale, font_path)
    font = _load_font(FONT_SIZE * scale, font_path)

    image = Image.new("RGB", (width, height), BACKGROUND)
    draw = ImageDraw.Draw(image)

    # Header
    y = pad
    draw.text((pad, y), "Asset Analysis Summary Report", fill=TEXT, font=title_font)
    y += (TITLE_FONT_SIZE + 8) * scale
    if analyzed_at is not None:
        draw.text((pad, y), f"As of: {analyzed_at:%d %B %Y %H:%M}", fill=MUTED, font=font)
    total_text = f"Assets ready for disposal: {len(assets)}"
    total_width = draw.textlength(total_text, font=font)
    draw.rounded_rectangle(
        (width - pad - total_width - 32 * scale, pad, width - pad, pad + 40 * scale),
        radius=8 * scale,
        fill="#1e3a8a",
        outline="#1d4ed8",
    )
    draw.text((width - pad - total_width - 16 * scale, pad + 12 * scale), total_text, fill=TEXT, font=font)

    # Chart
    y = pad + header_height + pad
    with category_chart(counts, width - 2 * pad, chart_height, dpi=100 * scale, font_path=font_path) as fig:
        chart = figure_to_image(fig)
    image.paste(chart.resize((width - 2 * pad, chart_height)), (pad, y))

    # Table
    y += chart_height + pad
    table_width = width - 2 * pad
    column_x = [pad]
    for _, _, share in TABLE_COLUMNS:
        column_x.append(column_x[-1] + int(table_width * share))

    draw.rectangle((pad, y, width - pad, y + row_height), fill=PANEL)
    for index, (header, _, _) in enumerate(TABLE_COLUMNS):
        draw.text((column_x[index] + 12 * scale, y + 10 * scale), header.upper(), fill=MUTED, font=font)
    y += row_height

    for asset in assets:
        draw.line((pad, y, width - pad, y), fill=BORDER, width=scale)
        for index, (_, field, _) in enumerate(TABLE_COLUMNS):
            cell_width = column_x[index + 1] - column_x[index] - 24 * scale
            text = _fit_text(draw, asset.value_of(field), font, cell_width)
            draw.text((column_x[index] + 12 * scale, y + 10 * scale), text, fill=TEXT, font=font)
        y += row_height

    draw.rectangle((pad, pad + header_height + pad + chart_height + pad, width - pad, y), outline=BORDER, width=scale)
    return image


def export_report_pdf(
    assets: Sequence[AssetRecord],
    counts: Mapping[str, int],
    analyzed_at: datetime | None = None,
    scale: int = 2,
    font_path: str | None = None,
) -> bytes:
    """
    Render the report and embed it in a one-page PDF sized to the image.

    Raises:
        ExportError: If there is nothing to export or rendering fails.
    """
    if not assets:
        raise ExportError("No assets to export")

    try:
        image = render_report_image(assets, counts, analyzed_at, scale=scale, font_path=font_path)
        buffer = io.BytesIO()
        # 72 dpi makes one image pixel one PDF point, so the page matches the image
        image.save(buffer, format="PDF", resolution=72.0)
    except Exception as e:
        logger.exception("Report export failed")
        raise ExportError(f"Could not generate the PDF report: {e}") from e

    logger.info(
        "Exported report: %d asset(s), %dx%d px, %d bytes",
        len(assets),
        image.width,
        image.height,
        buffer.tell(),
    )
    return buffer.getvalue()
