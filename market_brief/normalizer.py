"""Raw report clean-up.

Two functions feed everything downstream:

1. ``normalize()`` — whole-report noise removal (HTML line breaks, stray
   code fences, non-breaking spaces, carriage returns, provider credit lines).
2. ``strip_tokens()`` — turns a single markdown line into plain text.

Both are total: any string in, a string out, never an exception.
"""

from __future__ import annotations

import re

# ── Patterns ───────────────────────────────────────────────────────────────────

_BR_TAG = re.compile(r"<br\s*/?>", re.IGNORECASE)
_FENCE = re.compile(r"```")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")

#: Domain of the search-summarisation provider whose credits leak into answers.
PROVIDER_DOMAIN = r"(?:https?://)?(?:www\.)?you\.com"

#: Whole credit lines: "Powered by …", "Summarized by …", "Source: You.com".
_CREDIT_LINE = re.compile(
    r"^[ \t]*(?:[-*•>][ \t]*)*"
    r"(?:(?:powered|summari[sz]ed)[ \t]+by\b"
    rf"|sources?[ \t]*:[ \t]*{PROVIDER_DOMAIN}\b)"
    r"[^\n]*(?:\n|$)",
    re.IGNORECASE | re.MULTILINE,
)

#: Inline provider mentions, e.g. "(via you.com)" or "from www.you.com/search".
_PROVIDER_FRAGMENT = re.compile(
    r"[ \t]*\(?[ \t]*(?:(?:via|from|by)[ \t]+)?"
    rf"{PROVIDER_DOMAIN}\b[^\s)]*[ \t]*\)?",
    re.IGNORECASE,
)

_LEADING_MARKERS = re.compile(r"^[#>*\s|]+")
_EMPHASIS_CHARS = re.compile(r"[*_`]")
_LINK = re.compile(r"\[(.*?)\]\((.*?)\)")
_TRAILING_PIPE = re.compile(r"\s+\|\s*$")
_WHITESPACE = re.compile(r"\s+")


def strip_boilerplate(text: str) -> str:
    """Remove provider credit lines and inline provider mentions.

    Dropping a fragment can expose a credit line (``"you.com Powered by X"``),
    so both passes repeat until nothing changes. Each pass only deletes text.
    """
    while True:
        cleaned = _PROVIDER_FRAGMENT.sub("", _CREDIT_LINE.sub("", text))
        if cleaned == text:
            return cleaned
        text = cleaned


def normalize(raw: str) -> str:
    """Return *raw* with rendering noise and provider credits removed.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``.

    Examples:
        >>> normalize("Line one<br/>Line two\\u00a0here")
        'Line one\\nLine two here'
        >>> normalize("Result\\n\\nPowered by You.com")
        'Result'
    """
    if not raw:
        return ""

    text = _BR_TAG.sub("\n", raw)
    text = _FENCE.sub("\n", text)
    text = text.replace("\u00a0", " ")
    text = text.replace("\r", "")
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    text = strip_boilerplate(text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()


def strip_tokens(line: str) -> str:
    """Reduce one markdown line to human-readable plain text.

    Examples:
        >>> strip_tokens("## **Market** [size](https://x.io) |")
        'Market size'
    """
    text = _LEADING_MARKERS.sub("", line)
    text = _EMPHASIS_CHARS.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = _TRAILING_PIPE.sub("", text)
    text = strip_boilerplate(text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()
