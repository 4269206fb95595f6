"""Markdown → HTML conversion for exported reports.

The converter escapes the entire source first, so no tag or attribute from
the report can survive as markup. The escaped text is then parsed into a
typed tree of block nodes (``Heading``, ``Paragraph``, ``Table``, …) and
serialised in one place by ``render_blocks()``.

Inline formatting runs on already-escaped text in this order: inline code,
bold-italic, bold, italic, then links. Link targets go through
``safe_href()`` which only lets ``http://``, ``https://`` and ``mailto:``
through.

Malformed input never raises; constructs that do not parse (an unmatched
code fence, a table without a separator row) fall through as escaped
paragraph text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

from markupsafe import escape

ALLOWED_SCHEMES: tuple[str, ...] = ("http://", "https://", "mailto:")


def escape_html(text: str) -> str:
    """Escape ``& < > " '`` and return a plain ``str``."""
    return str(escape(text))


def safe_href(url: str) -> str:
    """Return *url* if its scheme is allow-listed, otherwise ``"#"``."""
    candidate = url.strip()
    if candidate.lower().startswith(ALLOWED_SCHEMES):
        return candidate
    return "#"


# ── Inline formatting ──────────────────────────────────────────────────────────

_CITATION = re.compile(r"\[\[\d+\]\]\([^)\s]*\)")
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_BOLD_ITALIC = re.compile(r"\*\*\*(?=\S)(.+?)(?<=\S)\*\*\*")
_BOLD = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*")
_ITALIC = re.compile(r"\*(?=[^\s*])([^*]+?)(?<=\S)\*")
_AUTOLINK = re.compile(r"&lt;(https?://[^\s\x00]+?)&gt;")
_LINK = re.compile(r"\[([^\]\n]+)\]\(([^)\s\x00]+)\)")
_PLACEHOLDER = re.compile("\x00(\\d+)\x00")


def _anchor(href: str, text: str) -> str:
    # A stashed placeholder would expand to markup inside the attribute.
    if "\x00" in href:
        href = "#"
    return (
        f'<a href="{safe_href(href)}" target="_blank" '
        f'rel="noopener noreferrer">{text}</a>'
    )


def render_inline(text: str) -> str:
    """Apply inline formatting to a fragment of *escaped* text."""
    stash: list[str] = []

    def _keep(html: str) -> str:
        stash.append(html)
        return f"\x00{len(stash) - 1}\x00"

    text = _CITATION.sub("", text.replace("\x00", ""))
    text = _INLINE_CODE.sub(lambda m: _keep(f"<code>{m.group(1)}</code>"), text)
    text = _BOLD_ITALIC.sub(r"<strong><em>\1</em></strong>", text)
    text = _BOLD.sub(r"<strong>\1</strong>", text)
    text = _ITALIC.sub(r"<em>\1</em>", text)
    text = _AUTOLINK.sub(lambda m: _keep(_anchor(m.group(1), m.group(1))), text)
    text = _LINK.sub(lambda m: _keep(_anchor(m.group(2), m.group(1))), text)

    # Nested stashes (code inside link text) resolve on later passes.
    while _PLACEHOLDER.search(text):
        text = _PLACEHOLDER.sub(lambda m: stash[int(m.group(1))], text)
    return text


# ── Block nodes ────────────────────────────────────────────────────────────────


@dataclass
class Heading:
    level: int
    text: str

    def render(self) -> str:
        return f"<h{self.level}>{render_inline(self.text)}</h{self.level}>"


@dataclass
class Paragraph:
    lines: list[str] = field(default_factory=list)

    def render(self) -> str:
        return "<p>" + "<br>".join(render_inline(line) for line in self.lines) + "</p>"


@dataclass
class CodeBlock:
    code: str
    language: str = ""

    def render(self) -> str:
        language = self.language if re.fullmatch(r"[\w+-]+", self.language) else "text"
        return f'<pre><code class="language-{language}">{self.code}</code></pre>'


@dataclass
class Rule:
    def render(self) -> str:
        return "<hr>"


@dataclass
class Table:
    header: list[str]
    rows: list[list[str]] = field(default_factory=list)

    def render(self) -> str:
        head = "".join(f"<th>{render_inline(cell)}</th>" for cell in self.header)
        body = "".join(
            "<tr>" + "".join(f"<td>{render_inline(cell)}</td>" for cell in row) + "</tr>"
            for row in self.rows
        )
        return (
            '<div class="table-wrapper"><table>'
            f"<thead><tr>{head}</tr></thead><tbody>{body}</tbody>"
            "</table></div>"
        )


@dataclass
class ListBlock:
    ordered: bool
    items: list[str] = field(default_factory=list)

    def render(self) -> str:
        tag = "ol" if self.ordered else "ul"
        items = "".join(f"<li>{render_inline(item)}</li>" for item in self.items)
        return f"<{tag}>{items}</{tag}>"


@dataclass
class Blockquote:
    lines: list[str] = field(default_factory=list)

    def render(self) -> str:
        inner = "<br>".join(render_inline(line) for line in self.lines)
        return f"<blockquote><p>{inner}</p></blockquote>"


Block = Union[Heading, Paragraph, CodeBlock, Rule, Table, ListBlock, Blockquote]

# ── Block parsing ──────────────────────────────────────────────────────────────

_FENCE_OPEN = re.compile(r"^```\s*([^`\s]*)\s*$")
_FENCE_CLOSE = re.compile(r"^```\s*$")
_HEADING = re.compile(r"^(#{1,4}) (.+)$")
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_TABLE_ROW = re.compile(r"^\|.*\|$")
_TABLE_SEPARATOR = re.compile(r"^\|[\s:|-]*-[\s:|-]*\|$")
_UNORDERED_ITEM = re.compile(r"^[-*+] (.+)$")
_ORDERED_ITEM = re.compile(r"^\d+\. (.+)$")
_QUOTE = re.compile(r"^&gt; ?(.*)$")


def _split_row(row: str) -> list[str]:
    return [cell.strip() for cell in row.strip()[1:-1].split("|")]


def _find_fence_end(lines: list[str], start: int) -> int:
    for index in range(start + 1, len(lines)):
        if _FENCE_CLOSE.match(lines[index].strip()):
            return index
    return -1


def _starts_block(lines: list[str], index: int) -> bool:
    """True when ``lines[index]`` opens something other than a paragraph."""
    line = lines[index].strip()
    if _FENCE_OPEN.match(line) and _find_fence_end(lines, index) != -1:
        return True
    if _is_table_start(lines, index):
        return True
    return bool(
        _HEADING.match(line)
        or _RULE.match(line)
        or _UNORDERED_ITEM.match(line)
        or _ORDERED_ITEM.match(line)
        or _QUOTE.match(line)
    )


def _is_table_start(lines: list[str], index: int) -> bool:
    return (
        index + 1 < len(lines)
        and bool(_TABLE_ROW.match(lines[index].strip()))
        and bool(_TABLE_SEPARATOR.match(lines[index + 1].strip()))
    )


def parse_blocks(escaped: str) -> list[Block]:
    """Parse already-escaped markdown into a flat list of block nodes."""
    lines = escaped.replace("\r", "").split("\n")
    blocks: list[Block] = []
    index = 0

    while index < len(lines):
        line = lines[index].strip()

        if not line:
            index += 1
            continue

        fence = _FENCE_OPEN.match(line)
        if fence:
            end = _find_fence_end(lines, index)
            if end != -1:
                code = "\n".join(lines[index + 1:end]).strip("\n")
                blocks.append(CodeBlock(code=code, language=fence.group(1)))
                index = end + 1
                continue

        heading = _HEADING.match(line)
        if heading:
            blocks.append(Heading(level=len(heading.group(1)), text=heading.group(2).strip()))
            index += 1
            continue

        if _RULE.match(line):
            blocks.append(Rule())
            index += 1
            continue

        if _is_table_start(lines, index):
            table = Table(header=_split_row(line))
            index += 2
            while index < len(lines) and _TABLE_ROW.match(lines[index].strip()):
                table.rows.append(_split_row(lines[index]))
                index += 1
            blocks.append(table)
            continue

        for pattern, ordered in ((_UNORDERED_ITEM, False), (_ORDERED_ITEM, True)):
            if pattern.match(line):
                items = ListBlock(ordered=ordered)
                while index < len(lines):
                    item = pattern.match(lines[index].strip())
                    if not item:
                        break
                    items.items.append(item.group(1))
                    index += 1
                blocks.append(items)
                break
        else:
            quote = _QUOTE.match(line)
            if quote:
                block = Blockquote()
                while index < len(lines):
                    quote = _QUOTE.match(lines[index].strip())
                    if not quote:
                        break
                    block.lines.append(quote.group(1))
                    index += 1
                blocks.append(block)
                continue

            paragraph = Paragraph(lines=[line])
            index += 1
            while (
                index < len(lines)
                and lines[index].strip()
                and not _starts_block(lines, index)
            ):
                paragraph.lines.append(lines[index].strip())
                index += 1
            blocks.append(paragraph)

    return blocks


def render_blocks(blocks: list[Block]) -> str:
    return "\n".join(block.render() for block in blocks)


def markdown_to_html(markdown: str) -> str:
    """Convert report markdown to escaped HTML.

    Examples:
        >>> markdown_to_html("## Hi <b>")
        '<h2>Hi &lt;b&gt;</h2>'
        >>> markdown_to_html("[x](javascript:alert(1))")
        '<p><a href="#" target="_blank" rel="noopener noreferrer">x</a>)</p>'
    """
    if not markdown:
        return ""
    return render_blocks(parse_blocks(escape_html(markdown)))
