"""Standalone HTML export of a market brief.

The document is rendered through a Jinja2 environment with autoescaping
enabled, so the query, hero line, facts, pricing lines and section bullets
are escaped at interpolation. The report body is the one value passed as
``Markup``; ``markdown_to_html()`` has already escaped every character of it.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional, Sequence

from jinja2 import BaseLoader, Environment
from markupsafe import Markup

from market_brief.markdown import markdown_to_html
from market_brief.models import InsightSection, KeyFact, MarketBrief

BRAND_COLOR = "#facc15"

ENV = Environment(
    loader=BaseLoader(),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)

REPORT_STYLES = """
  * { box-sizing: border-box; margin: 0; padding: 0; }
  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
    line-height: 1.6; color: #374151; background: #ffffff; font-size: 14px;
  }
  .report-container { max-width: 800px; margin: 0 auto; padding: 32px 24px; }
  .cover-page { padding: 40px 0 32px; margin-bottom: 24px; border-bottom: 1px solid #e5e7eb; }
  .cover-badge {
    display: inline-block; padding: 6px 12px; border: 1px solid {{ brand }};
    border-radius: 100px; font-size: 11px; font-weight: 600;
    text-transform: uppercase; letter-spacing: 0.1em; margin-bottom: 16px;
  }
  .cover-title { font-size: 28px; font-weight: 700; color: #111827; margin-bottom: 8px; }
  .cover-subtitle { font-size: 16px; color: #6b7280; }
  .facts-grid { display: grid; grid-template-columns: repeat(2, 1fr); gap: 8px; margin: 16px 0; }
  .fact-card { padding: 12px; background: #f9fafb; border: 1px solid #f3f4f6; border-radius: 8px; }
  .fact-label { font-size: 11px; text-transform: uppercase; color: #9ca3af; }
  .fact-value { font-weight: 600; color: #111827; }
  .pricing-list li { color: #065f46; }
  .insight-grid { display: grid; grid-template-columns: repeat(3, 1fr); gap: 12px; margin: 16px 0; }
  h1, h2 { font-size: 18px; font-weight: 700; color: #111827; margin: 24px 0 12px; }
  h3 { font-size: 16px; font-weight: 600; color: #1f2937; margin: 20px 0 8px; }
  h4 { font-size: 14px; font-weight: 600; margin: 16px 0 8px; }
  p { margin-bottom: 8px; }
  ul, ol { margin: 12px 0; padding-left: 16px; }
  li { margin-bottom: 6px; }
  a { color: #2563eb; text-decoration: underline; }
  code { background: #f3f4f6; padding: 2px 6px; border-radius: 4px; font-size: 12px; }
  pre { background: #111827; color: #f3f4f6; padding: 16px; border-radius: 8px; overflow-x: auto; margin: 12px 0; }
  pre code { background: none; padding: 0; color: inherit; }
  blockquote { border-left: 4px solid #93c5fd; padding: 8px 16px; margin: 12px 0; }
  .table-wrapper { overflow-x: auto; margin: 16px 0; border: 1px solid #e5e7eb; border-radius: 8px; }
  table { width: 100%; border-collapse: collapse; }
  th { background: #f9fafb; text-align: left; padding: 10px 16px; border-bottom: 1px solid #e5e7eb; }
  td { padding: 10px 16px; color: #6b7280; border-bottom: 1px solid #f3f4f6; }
  hr { border: none; height: 1px; background: #e5e7eb; margin: 16px 0; }
  .report-footer {
    margin-top: 32px; padding-top: 16px; border-top: 1px solid #e5e7eb;
    display: flex; justify-content: space-between; font-size: 12px; color: #9ca3af;
  }
  @media print {
    .report-container { padding: 0; max-width: none; }
    .facts-grid, .insight-grid { grid-template-columns: 1fr; }
  }
  @page { margin: 0.75in; }
"""

REPORT_TEMPLATE = ENV.from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ query }} - Market Research Brief</title>
  <style>{{ styles }}</style>
</head>
<body>
  <div class="report-container">
    <div class="cover-page">
      <div class="cover-badge">Market Research Brief</div>
      <h1 class="cover-title">{{ query }}</h1>
      <p class="cover-subtitle">{{ hero_line }}</p>
    </div>
{% if key_facts %}
    <h2>Key facts</h2>
    <div class="facts-grid">
{% for fact in key_facts %}
      <div class="fact-card"><div class="fact-label">{{ fact.label }}</div><div class="fact-value">{{ fact.value }}</div></div>
{% endfor %}
    </div>
{% endif %}
{% if pricing_highlights %}
    <h2>Pricing highlights</h2>
    <ul class="pricing-list">
{% for line in pricing_highlights %}
      <li>{{ line }}</li>
{% endfor %}
    </ul>
{% endif %}
{% if insight_sections %}
    <div class="insight-grid">
{% for section in insight_sections %}
      <div class="insight-card">
        <h3>{{ section.title }}</h3>
        <ul>
{% for bullet in section.bullets %}
          <li>{{ bullet }}</li>
{% endfor %}
        </ul>
      </div>
{% endfor %}
    </div>
{% endif %}
    <h2>Full report</h2>
    <div class="content-section">
{{ body }}
    </div>
    <div class="report-footer">
      <span>Market Research Brief</span>
      <span>{{ generated_on }}</span>
    </div>
  </div>
</body>
</html>
"""
)


def render_report_html(
    query: str,
    key_facts: Sequence[KeyFact],
    pricing_highlights: Sequence[str],
    insight_sections: Sequence[InsightSection],
    hero_line: str,
    raw_report: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """Build the downloadable / printable HTML document for a brief.

    Args:
        query: The research query shown as the document title.
        key_facts: Output of ``extract_key_facts()``.
        pricing_highlights: Output of ``extract_pricing_highlights()``.
        insight_sections: Output of ``build_insight_sections()``.
        hero_line: Output of ``select_hero_line()``.
        raw_report: Untouched report text; converted with ``markdown_to_html()``.
        generated_at: Timestamp for the footer (defaults to now, UTC).

    Returns:
        A complete ``<!DOCTYPE html>`` document.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    styles = ENV.from_string(REPORT_STYLES).render(brand=BRAND_COLOR)
    return REPORT_TEMPLATE.render(
        query=query,
        hero_line=hero_line,
        key_facts=key_facts,
        pricing_highlights=pricing_highlights,
        insight_sections=insight_sections,
        body=Markup(markdown_to_html(raw_report or "")),
        styles=Markup(styles),
        generated_on=generated_at.strftime("%B %d, %Y"),
    )


def render_brief_html(brief: MarketBrief, generated_at: Optional[datetime] = None) -> str:
    return render_report_html(
        brief.query,
        brief.key_facts,
        brief.pricing_highlights,
        brief.insight_sections,
        brief.hero_line,
        brief.raw_report,
        generated_at=generated_at,
    )


_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_ ]")


def download_filename(query: str, extension: str) -> str:
    """Return ``<query>_market_research.<extension>`` safe for a download header.

    Examples:
        >>> download_filename("CRM software <2025>", "md")
        'CRM_software_2025_market_research.md'
    """
    stem = _UNSAFE_FILENAME_CHARS.sub("", query).strip()
    stem = re.sub(r"\s+", "_", stem)[:50]
    prefix = f"{stem}_" if stem else ""
    return f"{prefix}market_research.{extension}"
