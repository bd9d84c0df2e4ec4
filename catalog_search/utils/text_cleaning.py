from __future__ import annotations

import html
import math
import re
import unicodedata
from typing import Any

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_WHITESPACE = re.compile(r"\s+")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_query(value: Any = "") -> str:
    """Canonicalize free text into a comparable search string.

    - Unicode canonical decomposition (NFD)
    - Drop combining diacritical marks (e.g. "é" -> "e")
    - Collapse whitespace runs to a single space and trim
    - Lower-case

    Never raises: None and values that cannot be turned into text give "".
    """

    if value is None:
        return ""
    try:
        text = value if isinstance(value, str) else str(value)
    except Exception:
        return ""

    text = unicodedata.normalize("NFD", text)
    text = _COMBINING_MARKS.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = text.strip().lower()
    # str.lower() can reintroduce combining marks (U+0130 gains a dot above).
    return _COMBINING_MARKS.sub("", unicodedata.normalize("NFD", text))


def clamp_integer(value: Any, minimum: int, maximum: int, fallback: int) -> int:
    """Parse the leading integer of ``value`` and clamp it to [minimum, maximum].

    Parsing is lenient ("12abc" -> 12, "3.9" -> 3); floats truncate toward zero.
    NaN, infinities and anything without a leading integer yield ``fallback``.
    """

    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return fallback
        # str(1e20) is "1e+20", whose leading digits are not the value.
        parsed = int(value)
    else:
        try:
            match = _LEADING_INT.match(str(value))
        except Exception:
            return fallback
        if not match:
            return fallback
        parsed = int(match.group(1))

    return min(maximum, max(minimum, parsed))


def slugify_text(value: Any) -> str:
    """Build a URL-safe slug: ascii letters/digits separated by single hyphens."""

    text = normalize_query(value)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def clean_text(text: Any) -> str:
    """Clean description-style text.

    - Decode HTML entities (e.g. &agrave; -> à)
    - Strip HTML tags while keeping inner text
    - Simplify Markdown links/bold
    - Normalize whitespace
    """

    if text is None or text == "":
        return ""
    if not isinstance(text, str):
        text = str(text)

    text = html.unescape(text)

    # <a href="...">text</a> -> text
    text = re.sub(r"<[^>]+>", "", text)

    # [Text](url) -> Text
    text = re.sub(r"\[([^\]]+)\]\([^\)]+\)", r"\1", text)

    # **Text** / __Text__ -> Text
    text = re.sub(r"[\*_]{2,}(.*?)[\*_]{2,}", r"\1", text)

    text = _WHITESPACE.sub(" ", text)

    return text.strip()
