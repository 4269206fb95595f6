"""
market-brief core package.

Modules
───────
models      — Pydantic data models (KeyFact, InsightSection, MarketBrief, SavedBrief, …)
normalizer  — raw report clean-up and per-line markdown token stripping
extractors  — key facts, pricing highlights, insight sections, hero line
markdown    — escaped markdown → HTML conversion via a typed block tree
export      — standalone HTML document and download filenames
researcher  — Claude + web_search research pass and search-hit summarisation
briefs      — SQLite-backed saved briefs and share links
"""
