"""Structured-brief extraction from normalised report text.

Each heuristic lives behind its own function so it can be exercised with
literal fixtures:

- ``extract_key_facts()``          — ``Label: Value`` lines, pricing excluded
- ``extract_pricing_highlights()`` — lines carrying ``$`` or ``%``
- ``build_insight_sections()``     — bullets grouped under the nearest heading
- ``select_hero_line()``           — one representative teaser sentence

``build_brief()`` runs the normaliser once and fans out to all four.
The line heuristics are tuned against typical LLM output; the numeric
limits are collected in ``ExtractionLimits`` so callers can adjust them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from market_brief.models import InsightSection, KeyFact, MarketBrief
from market_brief.normalizer import normalize, strip_tokens

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_SECTION_TITLE = "Insights"
DEFAULT_HERO_LINE = "Fresh insights generated from live sources and product context."


@dataclass(frozen=True)
class ExtractionLimits:
    """Caps and colon-position bounds used by the extractors."""

    key_facts: int = 8
    pricing_highlights: int = 4
    sections: int = 3
    bullets_per_section: int = 5
    #: A ``Label: Value`` colon must sit strictly between these indices.
    colon_min: int = 2
    colon_max: int = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> ExtractionLimits:
        return cls(
            key_facts=settings.key_fact_limit,
            pricing_highlights=settings.pricing_limit,
            sections=settings.section_limit,
            bullets_per_section=settings.bullet_limit,
        )


DEFAULT_LIMITS = ExtractionLimits()

# ── Patterns ───────────────────────────────────────────────────────────────────

_RULE_LINE = re.compile(r"^-{3,}$")
_FACT_BULLET = re.compile(r"^[•\-*\t]+")
_PRICING_BULLET = re.compile(r"^[-•*\s]+")
_SECTION_BULLET = re.compile(r"^(?:[-•*]|[0-9]+\.)\s+")
_HEADING = re.compile(r"^#{1,4}\s+(.*)")
_PRICING_TERMS = re.compile(r"\$|price|pricing|cost", re.IGNORECASE)
_PRICING_SIGNAL = re.compile(r"[$%]")
_PLACEHOLDER_LABEL = re.compile(r"^(?:Aspect|Details)$", re.IGNORECASE)


def _is_skippable(line: str) -> bool:
    """Blank lines, table rows and horizontal rules carry no facts or bullets."""
    return not line or "|" in line or bool(_RULE_LINE.match(line))


# ── Key facts ──────────────────────────────────────────────────────────────────


def extract_key_facts(
    normalized: str,
    limits: ExtractionLimits = DEFAULT_LIMITS,
) -> list[KeyFact]:
    """Pull non-pricing ``Label: Value`` pairs out of *normalized*.

    The colon-position window separates short labels from sentences that
    merely contain a colon (times, URLs, quotations).

    Args:
        normalized: Output of ``normalize()``.
        limits: Caps and colon bounds.

    Returns:
        At most ``limits.key_facts`` facts in first-seen order, with no
        repeated ``(label, value)`` pair and nothing pricing-related.

    Examples:
        >>> extract_key_facts("Founded: 2015\\nPrice: $10")
        [KeyFact(label='Founded', value='2015')]
    """
    facts: list[KeyFact] = []
    seen: set[tuple[str, str]] = set()

    for raw_line in normalized.split("\n"):
        line = raw_line.strip()
        if _is_skippable(line):
            continue

        cleaned = _FACT_BULLET.sub("", line).strip()
        colon = cleaned.find(":")
        if not limits.colon_min < colon < limits.colon_max:
            continue

        label = strip_tokens(cleaned[:colon])
        value = strip_tokens(cleaned[colon + 1:])
        if not label or not value:
            continue
        if _PRICING_TERMS.search(label) or _PRICING_TERMS.search(value):
            continue
        if _PLACEHOLDER_LABEL.match(label):
            continue

        key = (label, value)
        if key in seen:
            continue
        seen.add(key)
        facts.append(KeyFact(label=label, value=value))

    return facts[:limits.key_facts]


# ── Pricing highlights ─────────────────────────────────────────────────────────


def extract_pricing_highlights(
    normalized: str,
    limits: ExtractionLimits = DEFAULT_LIMITS,
) -> list[str]:
    """Return plain-text lines that mention a currency amount or percentage.

    Lines are de-duplicated case-insensitively, first occurrence wins.
    """
    highlights: list[str] = []
    seen: set[str] = set()

    for raw_line in normalized.split("\n"):
        line = _PRICING_BULLET.sub("", strip_tokens(raw_line))
        if not line or "|" in line or not _PRICING_SIGNAL.search(line):
            continue
        key = line.lower()
        if key in seen:
            continue
        seen.add(key)
        highlights.append(line)

    return highlights[:limits.pricing_highlights]


# ── Insight sections ───────────────────────────────────────────────────────────


def _collect_sections(
    lines: list[str],
    seen_bullets: set[str],
) -> list[InsightSection]:
    """Group body lines under the heading that precedes them.

    *seen_bullets* holds lower-cased bullet text already emitted anywhere in
    the report; it is updated in place so a bullet is kept only once.
    """
    sections: list[InsightSection] = []
    current: Optional[InsightSection] = None

    for raw_line in lines:
        line = raw_line.strip()
        if _is_skippable(line):
            continue

        heading = _HEADING.match(line)
        if heading:
            title = strip_tokens(heading.group(1)) or DEFAULT_SECTION_TITLE
            current = InsightSection(title=title)
            sections.append(current)
            continue

        bullet = strip_tokens(_SECTION_BULLET.sub("", line, count=1))
        if current is None:
            current = InsightSection(title=DEFAULT_SECTION_TITLE)
            sections.append(current)
        if not bullet:
            continue
        key = bullet.lower()
        if key not in seen_bullets:
            current.bullets.append(bullet)
            seen_bullets.add(key)

    return sections


def _disambiguate_titles(sections: list[InsightSection]) -> list[InsightSection]:
    """Suffix repeated titles with `` 2``, `` 3``, … (first one stays plain)."""
    seen_titles: set[str] = set()
    renamed: list[InsightSection] = []
    for section in sections:
        title = section.title or DEFAULT_SECTION_TITLE
        if title in seen_titles:
            suffix = 2
            while f"{title} {suffix}" in seen_titles:
                suffix += 1
            title = f"{title} {suffix}"
        seen_titles.add(title)
        renamed.append(section.model_copy(update={"title": title}))
    return renamed


def build_insight_sections(
    normalized: str,
    limits: ExtractionLimits = DEFAULT_LIMITS,
    seen_bullets: Optional[set[str]] = None,
) -> list[InsightSection]:
    """Group the report's bullets under their headings.

    Args:
        normalized: Output of ``normalize()``.
        limits: Section and bullet caps.
        seen_bullets: Optional de-duplication accumulator shared with other
            scans; a fresh set is used when omitted.

    Returns:
        At most ``limits.sections`` non-empty sections of at most
        ``limits.bullets_per_section`` bullets. No bullet (case-insensitive)
        appears twice across the result.
    """
    if not normalized or not normalized.strip():
        return []

    if seen_bullets is None:
        seen_bullets = set()
    sections = _disambiguate_titles(
        _collect_sections(normalized.split("\n"), seen_bullets)
    )

    trimmed = [
        InsightSection(
            title=section.title,
            bullets=[b for b in section.bullets if b][:limits.bullets_per_section],
        )
        for section in sections
    ]
    return [s for s in trimmed if s.bullets][:limits.sections]


# ── Hero line ──────────────────────────────────────────────────────────────────


def select_hero_line(normalized: str) -> str:
    """Pick the first meaningful line as a one-sentence teaser.

    Table headers (``Aspect | …``) and report titles containing
    "Market Research" are skipped.

    Examples:
        >>> select_hero_line("Aspect | Details\\nMarket Research Notes\\nShips globally.")
        'Ships globally.'
    """
    for raw_line in normalized.split("\n"):
        line = raw_line.strip()
        if line and not line.startswith("Aspect") and "Market Research" not in line:
            return strip_tokens(line) or DEFAULT_HERO_LINE
    return DEFAULT_HERO_LINE


# ── Fan-out ────────────────────────────────────────────────────────────────────


def build_brief(
    query: str,
    raw_report: Optional[str],
    limits: ExtractionLimits = DEFAULT_LIMITS,
) -> MarketBrief:
    """Normalise *raw_report* once and derive every part of the brief."""
    normalized = normalize(raw_report or "")
    brief = MarketBrief(
        query=query,
        raw_report=raw_report or "",
        key_facts=extract_key_facts(normalized, limits),
        pricing_highlights=extract_pricing_highlights(normalized, limits),
        insight_sections=build_insight_sections(normalized, limits),
        hero_line=select_hero_line(normalized),
    )
    logger.debug(
        "Built brief query=%r facts=%d pricing=%d sections=%d",
        query,
        len(brief.key_facts),
        len(brief.pricing_highlights),
        len(brief.insight_sections),
    )
    return brief
