"""Image helpers for the ingestion pipeline: document edge crop,
thumbnails and image-to-PDF conversion (Pillow).
"""
from io import BytesIO
from typing import Optional, Tuple

from flask import current_app
from PIL import Image, ImageFilter, ImageOps

# high-pass kernel: strong response on edges, zero on flat regions
EDGE_KERNEL = (-1, -1, -1, -1, 8, -1, -1, -1, -1)
EDGE_THRESHOLD = 128
MIN_EDGE_RATIO = 0.1
THUMBNAIL_SIZE = 200


def _log_exception(msg):
    try:
        current_app.logger.exception(msg)
    except RuntimeError:
        # outside an app context (scripts)
        pass


def find_document_edges(edge_image: Image.Image) -> Optional[Tuple[int, int, int, int]]:
    """Return (left, top, right, bottom) around the edge pixels of a
    thresholded greyscale image, or None when the box is too small to be a
    document.

    The box must span at least 10% of the width horizontally and 10% of the
    height vertically.
    """
    width, height = edge_image.size
    if width < 3 or height < 3:
        return None
    # Pillow's 3x3 filters copy the outermost pixel ring unfiltered
    inner = edge_image.crop((1, 1, width - 1, height - 1))
    box = inner.getbbox()
    if not box:
        return None
    left, top, right, bottom = (v + 1 for v in box)
    if (right - left) < width * MIN_EDGE_RATIO or (bottom - top) < height * MIN_EDGE_RATIO:
        return None
    return left, top, right, bottom


def crop_document_edges(image_bytes: bytes) -> bytes:
    """Crop a photographed document to its detected edges.

    Never raises: on any decoding/processing problem, or when no usable
    bounding box is found, the input bytes are returned unchanged.
    """
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
        edges = (
            ImageOps.autocontrast(image.convert("L"))
            .filter(ImageFilter.Kernel((3, 3), EDGE_KERNEL, scale=1))
            .point(lambda p: 255 if p > EDGE_THRESHOLD else 0)
        )
        box = find_document_edges(edges)
        if not box:
            return image_bytes

        # keep the uploaded format so the stored mime type still matches
        fmt = image.format or "JPEG"
        cropped = image.crop(box)
        out = BytesIO()
        if fmt == "JPEG":
            if cropped.mode not in ("RGB", "L"):
                cropped = cropped.convert("RGB")
            cropped.save(out, format=fmt, quality=90)
        else:
            cropped.save(out, format=fmt)
        return out.getvalue()
    except Exception:
        _log_exception('Error cropping document edges')
        return image_bytes


def create_thumbnail(image_bytes: bytes, size: int = THUMBNAIL_SIZE) -> bytes:
    """JPEG thumbnail fitting inside size x size; never enlarges."""
    image = Image.open(BytesIO(image_bytes))
    # Image.thumbnail keeps aspect ratio and only ever shrinks
    image.thumbnail((size, size))
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    out = BytesIO()
    image.save(out, format="JPEG", quality=80)
    return out.getvalue()


def convert_image_to_pdf(image_bytes: bytes) -> bytes:
    """Single-page PDF with the image at its native pixel size."""
    image = Image.open(BytesIO(image_bytes))
    if image.mode != "RGB":
        image = image.convert("RGB")
    out = BytesIO()
    image.save(out, format="PDF", resolution=72.0)
    return out.getvalue()
