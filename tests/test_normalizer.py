"""Tests for market_brief/normalizer.py — report clean-up and token stripping."""

from __future__ import annotations

import pytest

from market_brief.normalizer import normalize, strip_tokens


# ── normalize ──────────────────────────────────────────────────────────────────


class TestNormalize:
    def test_empty_input_returns_empty(self):
        assert normalize("") == ""

    def test_br_tags_become_newlines(self):
        assert normalize("one<br>two<BR/>three<br />four") == "one\ntwo\nthree\nfour"

    def test_code_fences_removed(self):
        assert normalize("```\ncode\n```") == "code"

    def test_non_breaking_space_replaced(self):
        assert normalize("Acme\u00a0Corp") == "Acme Corp"

    def test_carriage_returns_stripped(self):
        assert normalize("a\r\nb") == "a\nb"

    def test_collapses_blank_runs(self):
        assert normalize("a\n\n\n\n\nb") == "a\n\nb"

    def test_trims_whole_string(self):
        assert normalize("\n\n  hello  \n\n") == "hello"

    def test_removes_powered_by_line(self):
        assert normalize("Market is growing.\n\nPowered by You.com") == "Market is growing."

    def test_removes_summarized_by_line(self):
        text = "Intro\nSummarized by the You.com assistant\nOutro"
        assert normalize(text) == "Intro\nOutro"

    def test_removes_provider_source_credit(self):
        assert normalize("Fact one\nSource: you.com\nFact two") == "Fact one\nFact two"

    def test_removes_inline_provider_mention(self):
        assert normalize("Prices rose 4% (via you.com) this year") == "Prices rose 4% this year"

    def test_keeps_ordinary_source_lines(self):
        assert normalize("Source: Gartner 2024") == "Source: Gartner 2024"

    def test_credit_line_exposed_by_fragment_removal(self):
        assert normalize("you.com Powered by Acme") == ""

    def test_boilerplate_removal_does_not_leave_triple_newlines(self):
        result = normalize("A\n\nPowered by You.com\n\nB")
        assert "\n\n\n" not in result
        assert result == "A\n\nB"

    @pytest.mark.parametrize(
        "raw",
        [
            "## Pricing\n- Starter plan is $29/month<br>\n\n\n\nPowered by you.com",
            "```python\nprint(1)\n```\r\n  Note: fine",
            "  Source: You.com\n\n\n\nBody text (from www.you.com/search)  ",
            "plain",
            "you.com Powered by Acme",
            "Intro\n(via you.com) Summarized by Acme\nOutro",
        ],
    )
    def test_idempotent(self, raw):
        once = normalize(raw)
        assert normalize(once) == once


# ── strip_tokens ───────────────────────────────────────────────────────────────


class TestStripTokens:
    def test_strips_heading_markers(self):
        assert strip_tokens("### Market Overview") == "Market Overview"

    def test_strips_quote_and_pipe_prefix(self):
        assert strip_tokens("> | quoted") == "quoted"

    def test_removes_emphasis_characters(self):
        assert strip_tokens("**Bold** and _under_ and `code`") == "Bold and under and code"

    def test_link_replaced_by_text(self):
        assert strip_tokens("See [Acme](https://acme.io) now") == "See Acme now"

    def test_trailing_pipe_removed(self):
        assert strip_tokens("cell value |") == "cell value"

    def test_collapses_whitespace(self):
        assert strip_tokens("a    b\t\tc") == "a b c"

    def test_strips_residual_provider_credit(self):
        assert strip_tokens("Growth is steady (via you.com)") == "Growth is steady"

    def test_blank_input(self):
        assert strip_tokens("   ") == ""

    def test_leading_hyphen_is_kept(self):
        # Bullet markers are removed by the extractors, not here.
        assert strip_tokens("- item") == "- item"
