from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LabelOcrError(RuntimeError):
    pass


def read_label_text(image_bytes: bytes, language_hints: tuple[str, ...] = ("en",)) -> str:
    """Recognised text of a shipping label photo, via Cloud Vision."""
    from google.cloud import vision  # type: ignore[import]

    client = vision.ImageAnnotatorClient()
    response = client.document_text_detection(
        image=vision.Image(content=image_bytes),
        image_context=vision.ImageContext(language_hints=list(language_hints)),
    )
    if response.error.message:
        raise LabelOcrError(f"Label OCR failed: {response.error.message}")

    text = (response.full_text_annotation.text or "").strip()
    logger.info("Label OCR read %d characters", len(text))
    return text
