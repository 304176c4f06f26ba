"""domainsmith/extractor.py

Best-effort recovery of JSON embedded in a model's free-text answer.

Small local models wrap JSON in prose, Markdown fences, ellipses, trailing
commas, and stray Unicode.  :func:`extract` finds the first balanced
object/array (after an optional marker such as ``SUGGESTIONS:``), scrubs the
usual artefacts, and parses it.  It never raises: on failure the caller gets
the raw text back inside a fallback envelope.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import json
import logging
import re
from typing import Any, Final

# Local Modules
from domainsmith.errors import ResponseParseError

logger = logging.getLogger(__name__)

_FENCE_OPEN: Final[re.Pattern[str]] = re.compile(r"```[a-zA-Z]*")
_ELLIPSIS: Final[re.Pattern[str]] = re.compile(r"\.\.\.|…")
_TRAILING_COMMA: Final[re.Pattern[str]] = re.compile(r",(\s*[}\]])")
_NON_PRINTABLE: Final[re.Pattern[str]] = re.compile(r"[^\x20-\x7E\n\r\t]")

_OPENERS: Final[str] = "{["
_CLOSERS: Final[str] = "}]"


@dataclasses.dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Outcome of :func:`extract`.

    Attributes:
        parsed: True if structured data was recovered.
        value: The recovered object or list (``None`` when not parsed).
        raw_text: The original model text.
        error: Why parsing failed, if it did.
    """

    parsed: bool
    value: Any
    raw_text: str
    error: str | None = None

    @property
    def payload(self) -> Any:
        """The structured value, or the raw text wrapped in the fallback envelope."""
        if self.parsed:
            return self.value
        return fallback_envelope(self.raw_text)


def fallback_envelope(raw_text: str) -> dict[str, Any]:
    return {"message": {"content": raw_text}}


def clean(text: str) -> str:
    """Strip code fences, ellipses, trailing commas, and non-printable characters."""
    text = _FENCE_OPEN.sub("", text)
    text = _ELLIPSIS.sub("", text)
    text = _TRAILING_COMMA.sub(r"\1", text)
    return _NON_PRINTABLE.sub("", text)


def locate(text: str, marker: str | None = None) -> str:
    """Return the first bracket-balanced span after the last *marker*.

    Depth counting does not special-case brackets inside string literals.
    An unbalanced span runs to the end of the text.

    Raises:
        ResponseParseError: If there is no ``{`` or ``[`` to start from.
    """
    start_at = 0
    if marker:
        idx = text.rfind(marker)
        if idx >= 0:
            start_at = idx + len(marker)

    starts = [i for i in (text.find(c, start_at) for c in _OPENERS) if i >= 0]
    if not starts:
        raise ResponseParseError("No JSON object or array found")
    start = min(starts)

    depth = 0
    for pos in range(start, len(text)):
        char = text[pos]
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth == 0:
                return text[start : pos + 1]
    return text[start:]


def parse(text: str, marker: str | None = None) -> Any:
    """Locate, clean, and decode the embedded JSON.

    Raises:
        ResponseParseError: If nothing decodable is found.
    """
    span = clean(locate(text, marker))
    try:
        value = json.loads(span)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"Invalid JSON: {exc.msg} at position {exc.pos}") from exc
    if not isinstance(value, (dict, list)):
        raise ResponseParseError(f"Expected an object or array, got {type(value).__name__}")
    return value


def extract(raw_text: str | None, marker: str | None = None) -> ExtractionResult:
    """Recover structured data from *raw_text*; never raises.

    Args:
        raw_text: The model's final answer.
        marker: Optional token after whose last occurrence the JSON starts.

    Returns:
        An :class:`ExtractionResult`.
    """
    text = raw_text or ""
    try:
        value = parse(text, marker)
    except ResponseParseError as exc:
        logger.warning("[extractor] %s; raw=%r", exc, text[:300])
        return ExtractionResult(parsed=False, value=None, raw_text=text, error=str(exc))
    return ExtractionResult(parsed=True, value=value, raw_text=text)
