"""
SQLite-backed saved briefs and share links for Market Brief.

Schema
──────
table: market_briefs
  id                 INTEGER PRIMARY KEY AUTOINCREMENT
  query              TEXT NOT NULL
  raw_report         TEXT NOT NULL
  key_facts          TEXT NOT NULL  (JSON list of KeyFact)
  pricing_highlights TEXT NOT NULL  (JSON list of str)
  insight_sections   TEXT NOT NULL  (JSON list of InsightSection)
  hero_line          TEXT
  is_public          INTEGER NOT NULL DEFAULT 0
  share_token        TEXT UNIQUE
  share_password     TEXT           (werkzeug password hash)
  share_expires_at   TEXT           (ISO-8601 UTC)
  share_view_count   INTEGER NOT NULL DEFAULT 0
  created_at         TEXT NOT NULL  (ISO-8601 UTC)
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter
from werkzeug.security import check_password_hash, generate_password_hash

from market_brief.models import InsightSection, KeyFact, MarketBrief, SavedBrief, ShareLink

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "briefs.db"

#: URL-safe alphabet without look-alike characters (no 0/O, 1/l/I).
TOKEN_ALPHABET = "abcdefghijkmnpqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TOKEN_LENGTH = 12

_FACTS = TypeAdapter(list[KeyFact])
_SECTIONS = TypeAdapter(list[InsightSection])

_COLUMNS = (
    "id, query, raw_report, key_facts, pricing_highlights, insight_sections, "
    "hero_line, is_public, share_token, share_password, share_expires_at, "
    "share_view_count, created_at"
)


class ShareLinkExpired(Exception):
    """The share link exists but its expiry time has passed."""


class SharePasswordRequired(PermissionError):
    """The share link is password-protected and no valid password was given."""


def _db_path() -> Path:
    """Return the database file path, honouring a DB_PATH env var if set."""
    env = os.getenv("DB_PATH")
    return Path(env) if env else DEFAULT_DB_PATH


@contextmanager
def _connect():
    """Yield a connected sqlite3.Connection, creating the file/dir if needed."""
    path = _db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Create the market_briefs table if it doesn't exist yet."""
    with _connect() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS market_briefs (
                id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                query              TEXT NOT NULL,
                raw_report         TEXT NOT NULL,
                key_facts          TEXT NOT NULL DEFAULT '[]',
                pricing_highlights TEXT NOT NULL DEFAULT '[]',
                insight_sections   TEXT NOT NULL DEFAULT '[]',
                hero_line          TEXT,
                is_public          INTEGER NOT NULL DEFAULT 0,
                share_token        TEXT UNIQUE,
                share_password     TEXT,
                share_expires_at   TEXT,
                share_view_count   INTEGER NOT NULL DEFAULT 0,
                created_at         TEXT NOT NULL
            )
            """
        )
    logger.info("Brief DB initialised at %s", _db_path())


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_saved(row: sqlite3.Row) -> SavedBrief:
    brief = MarketBrief(
        query=row["query"],
        raw_report=row["raw_report"],
        key_facts=_FACTS.validate_json(row["key_facts"]),
        pricing_highlights=json.loads(row["pricing_highlights"]),
        insight_sections=_SECTIONS.validate_json(row["insight_sections"]),
        hero_line=row["hero_line"] or "",
    )
    return SavedBrief(
        id=row["id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        brief=brief,
        is_public=bool(row["is_public"]),
        share_token=row["share_token"],
        share_expires_at=_parse_time(row["share_expires_at"]),
        share_view_count=row["share_view_count"],
        has_password=row["share_password"] is not None,
    )


def save(brief: MarketBrief) -> int:
    """Persist a brief and return its new row ID."""
    now = datetime.now(timezone.utc).isoformat()

    with _connect() as conn:
        cursor = conn.execute(
            "INSERT INTO market_briefs (query, raw_report, key_facts, "
            "pricing_highlights, insight_sections, hero_line, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                brief.query,
                brief.raw_report,
                _FACTS.dump_json(brief.key_facts).decode(),
                json.dumps(brief.pricing_highlights),
                _SECTIONS.dump_json(brief.insight_sections).decode(),
                brief.hero_line,
                now,
            ),
        )
        row_id = cursor.lastrowid

    logger.info("Saved brief id=%d for query=%r", row_id, brief.query)
    return row_id


def get_all(limit: int = 50) -> list[SavedBrief]:
    """Return the most recent *limit* saved briefs (newest first)."""
    with _connect() as conn:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM market_briefs ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()

    saved: list[SavedBrief] = []
    for row in rows:
        try:
            saved.append(_row_to_saved(row))
        except Exception as exc:
            logger.warning("Skipping corrupt brief id=%d: %s", row["id"], exc)
    return saved


def get_by_id(brief_id: int) -> SavedBrief | None:
    """Fetch a single saved brief by its primary key, or None if not found."""
    with _connect() as conn:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM market_briefs WHERE id = ?", (brief_id,)
        ).fetchone()
    return _row_to_saved(row) if row is not None else None


def delete(brief_id: int) -> bool:
    """Delete a saved brief. Returns False if it did not exist."""
    with _connect() as conn:
        cursor = conn.execute("DELETE FROM market_briefs WHERE id = ?", (brief_id,))
    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("Deleted brief id=%d", brief_id)
    return deleted


# ── Sharing ────────────────────────────────────────────────────────────────


def generate_share_token() -> str:
    """Return a random 12-character token over ``TOKEN_ALPHABET``."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def create_share_link(
    brief_id: int,
    expires_in_days: Optional[int] = None,
    password: Optional[str] = None,
    public: bool = True,
) -> ShareLink | None:
    """Issue a fresh share token for a saved brief.

    Any previous token for the brief is replaced.

    Args:
        brief_id: The saved brief to share.
        expires_in_days: Optional lifetime of the link.
        password: Optional password viewers must supply.
        public: Whether the link is listed as public.

    Returns:
        The new ShareLink, or None if the brief does not exist.
    """
    expires_at = (
        datetime.now(timezone.utc) + timedelta(days=expires_in_days)
        if expires_in_days is not None
        else None
    )
    password_hash = generate_password_hash(password) if password else None

    with _connect() as conn:
        if conn.execute("SELECT 1 FROM market_briefs WHERE id = ?", (brief_id,)).fetchone() is None:
            return None

        token = generate_share_token()
        while conn.execute(
            "SELECT 1 FROM market_briefs WHERE share_token = ?", (token,)
        ).fetchone():
            token = generate_share_token()

        conn.execute(
            "UPDATE market_briefs SET is_public = ?, share_token = ?, "
            "share_password = ?, share_expires_at = ? WHERE id = ?",
            (
                int(public),
                token,
                password_hash,
                expires_at.isoformat() if expires_at else None,
                brief_id,
            ),
        )

    logger.info("Created share link for brief id=%d expires_at=%s", brief_id, expires_at)
    return ShareLink(
        brief_id=brief_id,
        token=token,
        link_type="public" if public else "private",
        expires_at=expires_at,
    )


def get_shared(token: str, password: Optional[str] = None) -> SavedBrief | None:
    """Resolve a share token and count the view.

    Returns:
        The saved brief, or None if no brief carries *token*.

    Raises:
        ShareLinkExpired: If the link's expiry time has passed.
        SharePasswordRequired: If the link has a password and *password*
            is missing or wrong.
    """
    with _connect() as conn:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM market_briefs WHERE share_token = ?", (token,)
        ).fetchone()
        if row is None:
            return None

        expires_at = _parse_time(row["share_expires_at"])
        if expires_at is not None and expires_at < datetime.now(timezone.utc):
            raise ShareLinkExpired("This link has expired")

        stored_hash = row["share_password"]
        if stored_hash is not None and (
            not password or not check_password_hash(stored_hash, password)
        ):
            raise SharePasswordRequired("password_required")

        conn.execute(
            "UPDATE market_briefs SET share_view_count = share_view_count + 1 WHERE id = ?",
            (row["id"],),
        )

    saved = _row_to_saved(row)
    return saved.model_copy(update={"share_view_count": saved.share_view_count + 1})


def revoke_share(brief_id: int) -> bool:
    """Clear the share token of a brief. Returns False if nothing was shared."""
    with _connect() as conn:
        cursor = conn.execute(
            "UPDATE market_briefs SET is_public = 0, share_token = NULL, "
            "share_password = NULL, share_expires_at = NULL "
            "WHERE id = ? AND share_token IS NOT NULL",
            (brief_id,),
        )
    revoked = cursor.rowcount > 0
    if revoked:
        logger.info("Revoked share link for brief id=%d", brief_id)
    return revoked
