"""Conversion between uploaded documents, data URLs and raw image bytes."""

import base64
import binascii
import logging
import re
from typing import List, Optional, Tuple
import fitz
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=.+-]+)*;base64,", re.IGNORECASE)

PDF_MIME_TYPE = "application/pdf"

# 2.0 = 144 DPI, 2.5 = 180 DPI, 3.0 = 216 DPI
PDF_RENDER_ZOOM = 2.5


def encode_image(image_bytes: bytes, mime_type: str = "image/png") -> str:
    """Encode raw bytes as a base64 data URL."""
    base64_image = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{base64_image}"


def guess_image_type(image_bytes: bytes) -> Tuple[str, str]:
    """Return an upload filename and MIME type from the image's magic bytes."""
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "document.png", "image/png"
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "document.jpg", "image/jpeg"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "document.gif", "image/gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "document.webp", "image/webp"
    return "document", "application/octet-stream"


def split_data_url(payload: str) -> Tuple[Optional[str], str]:
    """
    Strip a data-URL prefix if present.

    Args:
        payload: A data URL or a bare base64 string

    Returns:
        Tuple of (mime type or None, base64 body)
    """
    payload = payload.strip()
    match = _DATA_URL_PREFIX.match(payload)
    if not match:
        return None, payload
    return match.group("mime"), payload[match.end():]


def decode_image(payload: str) -> bytes:
    """
    Decode a data URL (or bare base64 string) to raw bytes.

    Raises:
        ValidationError: If the payload is empty or not valid base64
    """
    _, body = split_data_url(payload)
    if not body:
        raise ValidationError("Image is required")

    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Rejected malformed base64 image payload: {str(e)}")
        raise ValidationError("Image must be a base64-encoded data URL")


def convert_pdf_bytes_to_images(pdf_bytes: bytes) -> List[bytes]:
    """
    Convert PDF bytes to a list of PNG images (one per page) using PyMuPDF.

    Raises:
        ValidationError: If the bytes are not a readable PDF
    """
    try:
        logger.info("Opening PDF with PyMuPDF")
        pdf_document = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        logger.warning(f"Could not open uploaded PDF: {str(e)}")
        raise ValidationError("Uploaded PDF could not be read")

    image_bytes_list = []
    try:
        logger.info(f"Processing {len(pdf_document)} page(s)")
        for page_num in range(len(pdf_document)):
            logger.debug(f"Processing page {page_num + 1}/{len(pdf_document)}")
            page = pdf_document[page_num]
            mat = fitz.Matrix(PDF_RENDER_ZOOM, PDF_RENDER_ZOOM)
            pix = page.get_pixmap(matrix=mat)
            image_bytes_list.append(pix.tobytes("png"))
    finally:
        pdf_document.close()

    if not image_bytes_list:
        raise ValidationError("Uploaded PDF has no pages")

    logger.info(f"Successfully converted PDF to {len(image_bytes_list)} image(s)")
    return image_bytes_list


def decode_document(payload: Optional[str]) -> List[bytes]:
    """
    Decode an uploaded document into the images to OCR, in page order.

    Images decode to a single entry; PDFs are rendered page by page.

    Raises:
        ValidationError: If the payload is missing or malformed
    """
    if not payload or not payload.strip():
        raise ValidationError("Image is required")

    mime_type, _ = split_data_url(payload)
    raw_bytes = decode_image(payload)

    if (mime_type or "").lower() == PDF_MIME_TYPE:
        return convert_pdf_bytes_to_images(raw_bytes)
    return [raw_bytes]
