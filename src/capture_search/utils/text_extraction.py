"""
Text extraction for embedding generation.

Builds the string that gets embedded for a captured item:
- text: the full content, with title and annotation folded in
- image, pdf, audio: a typed label from title or filename, plus annotation
  (no OCR, PDF text extraction or transcription)
"""

import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)

MIN_EMBEDDING_TEXT_LENGTH = 3

# content_type -> (label prefix, placeholder when nothing describes the item)
BINARY_LABELS = {
    "image": ("Image", "Image content (no description provided)"),
    "pdf": ("PDF Document", "PDF document (no description provided)"),
    "audio": ("Audio", "Audio content (no description provided)"),
}

PLACEHOLDER_TEXTS = frozenset(placeholder for _, placeholder in BINARY_LABELS.values())


def _decode(content: Union[str, bytes, None]) -> str:
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def extract_text_for_embedding(
    content_type: str,
    content: Union[str, bytes, None],
    annotation: Optional[str] = None,
    title: Optional[str] = None,
    original_filename: Optional[str] = None,
) -> str:
    """
    Extract text for embedding from content based on its type.

    Args:
        content_type: Type of content (text, image, pdf, audio)
        content: The content itself (text string or raw bytes)
        annotation: User-provided context
        title: Content title
        original_filename: Original filename (for binary content)

    Returns:
        Trimmed text suitable for embedding generation

    Example:
        >>> extract_text_for_embedding("image", b"...", title="Sunset")
        'Image: Sunset'
    """
    logger.debug(
        f"Extracting text for embedding (type={content_type}, "
        f"annotation={bool(annotation)}, title={bool(title)}, "
        f"filename={bool(original_filename)})"
    )

    if content_type == "text":
        extracted = _decode(content)

        # Prepend the title unless the content already contains it
        if title and title.lower() not in extracted.lower():
            extracted = f"{title}\n\n{extracted}"

        if annotation:
            extracted = f"{extracted}\n\nContext: {annotation}"

    elif content_type in BINARY_LABELS:
        label, placeholder = BINARY_LABELS[content_type]
        name = title or original_filename

        if not name and not annotation:
            extracted = placeholder
        else:
            parts = [f"{label}: {name}" if name else label]
            if annotation:
                parts.append(annotation)
            extracted = "\n\n".join(parts)

    else:
        logger.warning(f"Unknown content type for text extraction: {content_type}")
        extracted = annotation or title or "Unknown content"

    extracted = extracted.strip()
    logger.debug(f"Text extraction completed (type={content_type}, length={len(extracted)})")
    return extracted


def validate_embedding_text(text: Optional[str]) -> bool:
    """Check that extracted text is worth sending to the embedding provider."""
    if not text or not text.strip():
        logger.warning("Empty text for embedding")
        return False

    length = len(text.strip())
    if length < MIN_EMBEDDING_TEXT_LENGTH:
        logger.warning(f"Text too short for meaningful embedding (length={length})")
        return False

    return True


def is_placeholder_text(text: str) -> bool:
    """True if text is one of the fixed no-description placeholders."""
    return text.strip() in PLACEHOLDER_TEXTS
