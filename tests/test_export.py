"""Tests for market_brief/export.py — standalone HTML document and filenames."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from market_brief.export import download_filename, render_brief_html, render_report_html
from market_brief.extractors import build_brief
from market_brief.models import InsightSection, KeyFact

FIXED_TIME = datetime(2025, 1, 2, 9, 30, tzinfo=timezone.utc)

PAYLOAD = "<script>alert(1)</script>"


def render(**overrides) -> str:
    args = {
        "query": "Acme CRM",
        "key_facts": [KeyFact(label="Founded", value="2015")],
        "pricing_highlights": ["Pro is $99/month"],
        "insight_sections": [InsightSection(title="Competitors", bullets=["Acme leads"])],
        "hero_line": "Acme ships globally.",
        "raw_report": "## Overview\nAcme is a CRM vendor.",
        "generated_at": FIXED_TIME,
    }
    args.update(overrides)
    return render_report_html(**args)


class TestRenderReportHtml:
    def test_is_complete_document(self):
        html = render()
        assert html.startswith("<!DOCTYPE html>")
        assert html.rstrip().endswith("</html>")
        assert "<title>Acme CRM - Market Research Brief</title>" in html

    def test_includes_every_part(self):
        html = render()
        assert "Founded" in html and "2015" in html
        assert "<li>Pro is $99/month</li>" in html
        assert "<h3>Competitors</h3>" in html
        assert "<li>Acme leads</li>" in html
        assert "Acme ships globally." in html
        assert "<h2>Overview</h2>" in html
        assert "January 02, 2025" in html

    @pytest.mark.parametrize(
        "field, value",
        [
            ("query", PAYLOAD),
            ("hero_line", PAYLOAD),
            ("raw_report", PAYLOAD),
            ("pricing_highlights", [PAYLOAD]),
            ("key_facts", [KeyFact(label=PAYLOAD, value=PAYLOAD)]),
            ("insight_sections", [InsightSection(title=PAYLOAD, bullets=[PAYLOAD])]),
        ],
    )
    def test_every_field_is_escaped(self, field, value):
        html = render(**{field: value})
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_attribute_injection_in_bullets_escaped(self):
        html = render(insight_sections=[
            InsightSection(title="T", bullets=["<img src=x onerror=alert(1)>"])
        ])
        assert "<img" not in html

    def test_single_quote_escaped(self):
        assert "Acme&#39;s reach" in render(hero_line="Acme's reach")

    def test_empty_groups_omitted(self):
        html = render(key_facts=[], pricing_highlights=[], insight_sections=[])
        assert "Key facts" not in html
        assert "Pricing highlights" not in html
        assert "insight-card" not in html

    def test_javascript_link_in_report_neutralised(self):
        html = render(raw_report="[click](javascript:alert(document.cookie))")
        assert 'href="javascript:' not in html
        assert 'href="#"' in html

    def test_render_brief_html_matches_parts(self):
        brief = build_brief("Widgets", "## Pricing\n- Basic is $5")
        html = render_brief_html(brief, generated_at=FIXED_TIME)
        assert "<li>Basic is $5</li>" in html
        assert "Widgets - Market Research Brief" in html


class TestDownloadFilename:
    def test_spaces_become_underscores(self):
        assert download_filename("CRM software", "md") == "CRM_software_market_research.md"

    def test_unsafe_characters_removed(self):
        assert download_filename('a/b"c<d>', "html") == "abcd_market_research.html"

    def test_blank_query(self):
        assert download_filename("   ", "md") == "market_research.md"

    def test_truncated(self):
        name = download_filename("x" * 80, "md")
        assert name == "x" * 50 + "_market_research.md"
