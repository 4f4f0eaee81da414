"""Paginated storyboard document rendered with fpdf2.

Layout (A4, millimetres): a title block on the first page, then one
fixed-height section per scene in list order.  Each section shows the
scene label, a fixed-size image slot and the script note.  A new page is
started whenever the space left on the current page is smaller than one
section.
"""

from __future__ import annotations

import base64
import io
import logging
from datetime import datetime

from fpdf import FPDF
from PIL import Image

from .models import StoryboardScene
from .prompt_compiler import parse_data_uri
from .storyboard import scene_label

logger = logging.getLogger(__name__)

PAGE_HEIGHT = 297.0
PAGE_WIDTH = 210.0
MARGIN = 15.0
SCENE_HEIGHT = 90.0
IMAGE_WIDTH = 80.0
IMAGE_HEIGHT = 45.0
TEXT_GAP = 6.0
LINE_HEIGHT = 5.0
MAX_SCRIPT_CHARS = 700
# Script text runs from the image slot top down to the separator rule.
MAX_SCRIPT_LINES = int((SCENE_HEIGHT - 9 - 4) // LINE_HEIGHT)

EMPTY_SCRIPT_TEXT = "No script provided."
EMPTY_IMAGE_TEXT = "No image"
UNRENDERABLE_IMAGE_TEXT = "Image not embeddable"


def _latin1(text: str) -> str:
    # Core PDF fonts only cover latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")


def _decode_image(image_ref: str | None) -> Image.Image | None:
    """Decode a base64 raster data URI into a Pillow image, else ``None``."""
    reference = parse_data_uri(image_ref)
    if reference is None:
        return None
    try:
        image = Image.open(io.BytesIO(base64.b64decode(reference.data)))
        image.load()
    except (ValueError, OSError) as exc:
        logger.debug("Scene image could not be decoded (%s): %s", reference.mime_type, exc)
        return None
    return image.convert("RGB")


def _draw_placeholder(pdf: FPDF, x: float, y: float, text: str) -> None:
    pdf.set_draw_color(170, 170, 170)
    pdf.set_fill_color(240, 240, 240)
    pdf.rect(x, y, IMAGE_WIDTH, IMAGE_HEIGHT, style="DF")
    pdf.set_font("helvetica", size=9)
    pdf.set_text_color(130, 130, 130)
    pdf.set_xy(x, y + IMAGE_HEIGHT / 2 - 3)
    pdf.cell(IMAGE_WIDTH, 6, text, align="C")


def _draw_image(pdf: FPDF, image: Image.Image, x: float, y: float) -> None:
    scale = min(IMAGE_WIDTH / image.width, IMAGE_HEIGHT / image.height)
    width, height = image.width * scale, image.height * scale
    pdf.set_fill_color(20, 20, 20)
    pdf.rect(x, y, IMAGE_WIDTH, IMAGE_HEIGHT, style="F")
    pdf.image(
        image,
        x=x + (IMAGE_WIDTH - width) / 2,
        y=y + (IMAGE_HEIGHT - height) / 2,
        w=width,
        h=height,
    )


def _fit_script(pdf: FPDF, script: str, width: float) -> str:
    """Clip *script* to the wrapped lines that fit in one scene section."""
    lines = pdf.multi_cell(width, LINE_HEIGHT, script, dry_run=True, output="LINES")
    if len(lines) <= MAX_SCRIPT_LINES:
        return script
    kept = lines[:MAX_SCRIPT_LINES]
    last = kept[-1].rstrip()
    kept[-1] = last[: max(len(last) - 3, 0)] + "..."
    return "\n".join(kept)


def _draw_scene(pdf: FPDF, scene: StoryboardScene, index: int, top: float) -> None:
    pdf.set_font("helvetica", style="B", size=11)
    pdf.set_text_color(40, 40, 40)
    pdf.set_xy(MARGIN, top)
    pdf.cell(PAGE_WIDTH - 2 * MARGIN, 7, _latin1(scene_label(scene, index)))

    slot_y = top + 9
    if scene.image_ref:
        image = _decode_image(scene.image_ref)
        if image is not None:
            _draw_image(pdf, image, MARGIN, slot_y)
        else:
            _draw_placeholder(pdf, MARGIN, slot_y, UNRENDERABLE_IMAGE_TEXT)
    else:
        _draw_placeholder(pdf, MARGIN, slot_y, EMPTY_IMAGE_TEXT)

    script = scene.script.strip()
    if len(script) > MAX_SCRIPT_CHARS:
        script = script[: MAX_SCRIPT_CHARS - 3].rstrip() + "..."

    text_x = MARGIN + IMAGE_WIDTH + TEXT_GAP
    text_width = PAGE_WIDTH - MARGIN - text_x
    pdf.set_xy(text_x, slot_y)
    if script:
        pdf.set_font("helvetica", size=10)
        pdf.set_text_color(30, 30, 30)
        pdf.multi_cell(text_width, LINE_HEIGHT, _fit_script(pdf, _latin1(script), text_width))
    else:
        pdf.set_font("helvetica", style="I", size=10)
        pdf.set_text_color(150, 150, 150)
        pdf.multi_cell(text_width, LINE_HEIGHT, EMPTY_SCRIPT_TEXT)

    pdf.set_draw_color(220, 220, 220)
    rule_y = top + SCENE_HEIGHT - 4
    pdf.line(MARGIN, rule_y, PAGE_WIDTH - MARGIN, rule_y)


def render_storyboard_pdf(project_name: str, scenes: list[StoryboardScene]) -> bytes:
    """Render *scenes* into a paginated A4 PDF and return its bytes."""
    pdf = FPDF(unit="mm", format="A4")
    pdf.set_auto_page_break(auto=False)
    pdf.set_title(_latin1(project_name))
    pdf.add_page()

    pdf.set_font("helvetica", style="B", size=18)
    pdf.set_xy(MARGIN, MARGIN)
    pdf.cell(PAGE_WIDTH - 2 * MARGIN, 10, _latin1(project_name))
    pdf.set_font("helvetica", size=9)
    pdf.set_text_color(120, 120, 120)
    pdf.set_xy(MARGIN, MARGIN + 10)
    exported = datetime.now().strftime("%Y-%m-%d %H:%M")
    pdf.cell(PAGE_WIDTH - 2 * MARGIN, 6, f"Storyboard - {len(scenes)} scenes - exported {exported}")

    y = MARGIN + 22
    if not scenes:
        pdf.set_xy(MARGIN, y)
        pdf.cell(PAGE_WIDTH - 2 * MARGIN, 8, "This storyboard has no scenes.")

    for index, scene in enumerate(scenes):
        if y + SCENE_HEIGHT > PAGE_HEIGHT - MARGIN:
            pdf.add_page()
            y = MARGIN
        _draw_scene(pdf, scene, index, y)
        y += SCENE_HEIGHT

    logger.info(
        "Rendered storyboard PDF for '%s' (%d scenes, %d pages).",
        project_name,
        len(scenes),
        pdf.page_no(),
    )
    return bytes(pdf.output())
