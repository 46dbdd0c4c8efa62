"""
Text Normalization Utilities.

Turns article/essay markup into plain text that a speech provider reads
well. The normalized text is also what gets fingerprinted for storage
keys, so two markups that normalize to the same string share an artifact.

Normalization Steps (clean_text_for_tts):
    1. Strip markup tags
    2. Decode HTML entities (named, decimal, hex); a double-escaped
       ``&amp;lt;`` decodes all the way to ``<``
    3. Collapse whitespace
    4. Collapse runs of terminal punctuation ("!!!" -> "!", "..." -> ".")
    5. Remove symbols that disrupt synthesis (* # @ ~ ` | ^)
    6. Pad parenthesised groups with spaces ("a(b)c" -> "a ( b ) c")
    7. Separate digit runs from following letters ("100kg" -> "100 kg")
    8. Collapse whitespace and trim

Version Tracking:
    NORMALIZE_VERSION changes whenever the steps above change. Fingerprints
    computed with a different version are not comparable.

Example:
    >>> clean_text_for_tts("<p>Hello&nbsp;world!!!</p><p>It weighs 100kg.</p>")
    'Hello world!It weighs 100 kg.'
"""
from __future__ import annotations

import html
import re
from typing import Iterable, Optional

from tts_cache.core.logging import debug, get_logger

_LOG = get_logger("tts-cache.text")

NORMALIZE_VERSION = "v1"

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

# Repeated terminal punctuation collapses to the last character of the run
_PUNCT_RUN_RE = re.compile(r"([!?.])+")

_SYMBOLS_RE = re.compile(r"[*#@~`|^]")

_PAREN_RE = re.compile(r"(\()([^)]*)(\))")

# "100kg" -> "100 kg", "3개" -> "3 개"
_DIGIT_LETTER_RE = re.compile(r"(\d+)([a-zA-Z가-힣]+)")


def strip_html_tags(markup: Optional[str]) -> str:
    """
    Remove tags, decode entities and collapse whitespace.

    No prosody reshaping; suitable for previews and length checks.
    """
    if not markup:
        return ""
    text = _TAG_RE.sub("", markup)
    # Editors double-escape, so &amp; goes first
    text = html.unescape(text.replace("&amp;", "&"))
    return _WS_RE.sub(" ", text).strip()


def clean_text_for_tts(markup: Optional[str]) -> str:
    """
    Normalize markup into synthesis-ready plain text.

    Pure function. Empty or None input gives an empty string.

    Args:
        markup: Raw article HTML or plain text.

    Returns:
        Normalized text, single-spaced and trimmed.
    """
    text = strip_html_tags(markup)
    if not text:
        return ""

    text = _PUNCT_RUN_RE.sub(r"\1", text)
    text = _SYMBOLS_RE.sub("", text)
    text = _PAREN_RE.sub(r" \1 \2 \3 ", text)
    text = _DIGIT_LETTER_RE.sub(r"\1 \2", text)
    text = _WS_RE.sub(" ", text).strip()

    debug(_LOG, "normalized", chars_in=len(markup or ""), chars_out=len(text))
    return text


def should_generate_tts(
    category: Optional[str],
    markup: Optional[str],
    min_chars: int = 50,
    categories: Iterable[str] = ("essay",),
) -> bool:
    """
    Whether content is eligible for (background) audio generation.

    True only for an eligible category whose normalized text has at least
    ``min_chars`` characters.
    """
    if (category or "").strip().lower() not in {c.lower() for c in categories}:
        return False
    return len(clean_text_for_tts(markup)) >= min_chars


def has_text_changed(old_markup: Optional[str], new_markup: Optional[str]) -> bool:
    """Compare two markups by their normalized form (markup-only edits don't count)."""
    return clean_text_for_tts(old_markup) != clean_text_for_tts(new_markup)
