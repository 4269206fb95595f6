"""Tests for market_brief/markdown.py — escaped markdown → HTML conversion."""

from __future__ import annotations

from html.parser import HTMLParser

import pytest

from market_brief.markdown import (
    CodeBlock,
    Heading,
    ListBlock,
    Paragraph,
    Table,
    markdown_to_html,
    parse_blocks,
    safe_href,
)

ANCHOR_ATTRS = 'target="_blank" rel="noopener noreferrer"'


class AnchorCollector(HTMLParser):
    """Collects the attribute dict of every ``<a>`` in a fragment."""

    def __init__(self):
        super().__init__()
        self.anchors: list[dict] = []

    def handle_starttag(self, tag, attrs):
        if tag == "a":
            self.anchors.append(dict(attrs))


# ── Escaping ───────────────────────────────────────────────────────────────────


class TestEscaping:
    def test_script_tag_is_escaped(self):
        html = markdown_to_html("<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html

    def test_quotes_are_escaped(self):
        html = markdown_to_html("He said \"hi\" & 'bye'")
        assert html == "<p>He said &#34;hi&#34; &amp; &#39;bye&#39;</p>"

    def test_quote_cannot_break_out_of_href(self):
        html = markdown_to_html('[x](https://a.io/"onmouseover="alert(1))')
        assert 'onmouseover="' not in html

    @pytest.mark.parametrize(
        "text",
        [
            "[t](https://a/<https://b/onmouseover=alert(1)//>)",
            "[t](https://a/`x\" onmouseover=\"alert(1)`)",
            "<https://a/[t](https://b/onmouseover=alert(1))>",
        ],
    )
    def test_nested_link_cannot_inject_attributes(self, text):
        parser = AnchorCollector()
        parser.feed(markdown_to_html(text))
        for attrs in parser.anchors:
            assert set(attrs) == {"href", "target", "rel"}
            assert '"' not in attrs["href"] and "<" not in attrs["href"]

    def test_html_inside_table_cell_escaped(self):
        html = markdown_to_html("| a | b |\n| - | - |\n| <b>x</b> | y |")
        assert "<td>&lt;b&gt;x&lt;/b&gt;</td>" in html

    def test_empty_input(self):
        assert markdown_to_html("") == ""


# ── Links ──────────────────────────────────────────────────────────────────────


class TestLinks:
    def test_javascript_scheme_replaced(self):
        html = markdown_to_html("[x](javascript:alert(1))")
        assert f'<a href="#" {ANCHOR_ATTRS}>x</a>' in html
        assert "javascript:" not in html.split("</a>")[0]

    def test_data_scheme_replaced(self):
        html = markdown_to_html("[x](data:text/html;base64,PHNjcmlwdD4=)")
        assert 'href="#"' in html

    def test_https_link(self):
        html = markdown_to_html("[Acme](https://acme.io)")
        assert html == f'<p><a href="https://acme.io" {ANCHOR_ATTRS}>Acme</a></p>'

    def test_mailto_allowed(self):
        assert 'href="mailto:sales@acme.io"' in markdown_to_html("[mail](mailto:sales@acme.io)")

    def test_autolink(self):
        html = markdown_to_html("<https://acme.io/pricing>")
        assert html == (
            f'<p><a href="https://acme.io/pricing" {ANCHOR_ATTRS}>'
            "https://acme.io/pricing</a></p>"
        )

    def test_citation_markers_removed(self):
        assert "[[1]]" not in markdown_to_html("Growth [[1]](https://x.io) is strong")

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("http://a.io", "http://a.io"),
            ("HTTPS://A.IO", "HTTPS://A.IO"),
            ("mailto:x@y.z", "mailto:x@y.z"),
            ("javascript:alert(1)", "#"),
            ("JavaScript:alert(1)", "#"),
            ("vbscript:msgbox", "#"),
            ("/relative/path", "#"),
            ("", "#"),
        ],
    )
    def test_safe_href(self, url, expected):
        assert safe_href(url) == expected


# ── Block structure ────────────────────────────────────────────────────────────


class TestBlocks:
    def test_heading_levels(self):
        html = markdown_to_html("# A\n## B\n### C\n#### D\n##### E")
        assert html.split("\n") == [
            "<h1>A</h1>",
            "<h2>B</h2>",
            "<h3>C</h3>",
            "<h4>D</h4>",
            "<p>##### E</p>",
        ]

    def test_fenced_code_block(self):
        html = markdown_to_html("```python\nx = 1 < 2\n```")
        assert html == '<pre><code class="language-python">x = 1 &lt; 2</code></pre>'

    def test_fence_without_language(self):
        assert markdown_to_html("```\nplain\n```").startswith('<pre><code class="language-text">')

    def test_unmatched_fence_stays_literal(self):
        html = markdown_to_html("```\nstill text")
        assert "<pre>" not in html
        assert "```" in html

    def test_code_block_content_not_formatted(self):
        html = markdown_to_html("```\n**not bold** [x](javascript:1)\n```")
        assert "<strong>" not in html
        assert "<a " not in html

    def test_inline_code(self):
        assert markdown_to_html("Use `a*b*c` here") == "<p>Use <code>a*b*c</code> here</p>"

    def test_emphasis_order(self):
        html = markdown_to_html("***both*** **bold** *it*")
        assert html == (
            "<p><strong><em>both</em></strong> <strong>bold</strong> <em>it</em></p>"
        )

    @pytest.mark.parametrize("rule", ["---", "***", "_____"])
    def test_horizontal_rules(self, rule):
        assert markdown_to_html(f"a\n\n{rule}\n\nb") == "<p>a</p>\n<hr>\n<p>b</p>"

    def test_table(self):
        html = markdown_to_html(
            "| Plan | Price |\n| --- | :---: |\n| Basic | $10 |\n| Pro | $20 |"
        )
        assert html == (
            '<div class="table-wrapper"><table>'
            "<thead><tr><th>Plan</th><th>Price</th></tr></thead>"
            "<tbody><tr><td>Basic</td><td>$10</td></tr>"
            "<tr><td>Pro</td><td>$20</td></tr></tbody>"
            "</table></div>"
        )

    def test_table_without_separator_is_paragraph(self):
        html = markdown_to_html("| a | b |\n| c | d |")
        assert "<table>" not in html
        assert html.startswith("<p>")

    def test_lists(self):
        html = markdown_to_html("- a\n* b\n\n1. one\n2. two")
        assert html == "<ul><li>a</li><li>b</li></ul>\n<ol><li>one</li><li>two</li></ol>"

    def test_blockquote(self):
        html = markdown_to_html("> quoted\n> twice")
        assert html == "<blockquote><p>quoted<br>twice</p></blockquote>"

    def test_paragraph_keeps_single_newlines(self):
        html = markdown_to_html("line one\nline two\n\nnext")
        assert html == "<p>line one<br>line two</p>\n<p>next</p>"

    def test_list_interrupts_paragraph(self):
        html = markdown_to_html("Intro\n- item")
        assert html == "<p>Intro</p>\n<ul><li>item</li></ul>"

    @pytest.mark.parametrize(
        "text",
        [
            "**unclosed and [broken](",
            "| only | pipes",
            "```\n```\n```",
            "# \n##\n###### deep",
            "\x00 stray NUL \x001\x00",
            "* * *\n-\n1.",
        ],
    )
    def test_malformed_input_never_raises(self, text):
        assert isinstance(markdown_to_html(text), str)


class TestParseBlocks:
    def test_builds_typed_tree(self):
        blocks = parse_blocks(
            "## Title\nbody\n\n- x\n\n| h |\n| - |\n| c |\n\n```sh\nls\n```"
        )
        assert [type(b) for b in blocks] == [Heading, Paragraph, ListBlock, Table, CodeBlock]
        assert blocks[0] == Heading(level=2, text="Title")
        assert blocks[3] == Table(header=["h"], rows=[["c"]])
        assert blocks[4] == CodeBlock(code="ls", language="sh")
