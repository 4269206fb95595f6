"""
Flask web server for Market Brief.

Routes
──────
POST   /api/brief                    Build a brief from {query, raw_report} (JSON)
GET    /api/stream?query=...         SSE: stream research + final brief
GET    /api/briefs                   List saved briefs (JSON)
POST   /api/briefs                   Save a brief (JSON)
GET    /api/briefs/<id>              Fetch a saved brief (JSON)
DELETE /api/briefs/<id>              Delete a saved brief (JSON)
POST   /api/briefs/<id>/share        Issue a share link (JSON)
DELETE /api/briefs/<id>/share        Revoke the share link (JSON)
GET    /api/briefs/<id>/export.html  Download the brief as an HTML document
GET    /api/briefs/<id>/export.md    Download the untouched raw report
GET    /share/<token>                Shared brief as an HTML document
"""

from __future__ import annotations

import json
import logging
import os
import sys

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request, stream_with_context
from pydantic import ValidationError

# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from config.settings import Settings
from market_brief import briefs
from market_brief.export import download_filename, render_brief_html
from market_brief.extractors import ExtractionLimits, build_brief
from market_brief.models import MarketBrief, SearchHit
from market_brief.researcher import compose_streamed_report, research_streaming

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = Settings()
limits = ExtractionLimits.from_settings(settings)

app = Flask(__name__)

# Initialise the SQLite database on startup
briefs.init_db()


def _saved_json(saved) -> dict:
    return {
        "id": saved.id,
        "created_at": saved.created_at.isoformat(),
        "share_token": saved.share_token,
        "share_expires_at": saved.share_expires_at.isoformat() if saved.share_expires_at else None,
        "share_view_count": saved.share_view_count,
        "brief": saved.brief.model_dump(),
    }


def _download(body: str, filename: str, mimetype: str) -> Response:
    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Brief extraction ───────────────────────────────────────────────────────

@app.route("/api/brief", methods=["POST"])
def create_brief():
    """Run the extraction pipeline over a raw report."""
    payload = request.get_json(silent=True) or {}
    query = str(payload.get("query", "")).strip()
    if not query:
        return jsonify({"error": "query is required"}), 400
    brief = build_brief(query, str(payload.get("raw_report") or ""), limits)
    return jsonify(brief.model_dump())


# ── Saved briefs API ───────────────────────────────────────────────────────

@app.route("/api/briefs")
def list_briefs():
    """Return the 50 most recent saved briefs as JSON."""
    return jsonify(
        [
            {
                "id": saved.id,
                "query": saved.brief.query,
                "hero_line": saved.brief.hero_line,
                "created_at": saved.created_at.isoformat(),
                "share_token": saved.share_token,
            }
            for saved in briefs.get_all(limit=50)
        ]
    )


@app.route("/api/briefs", methods=["POST"])
def save_brief():
    """Persist a brief computed by /api/brief or /api/stream."""
    try:
        brief = MarketBrief.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return jsonify({"error": "Invalid brief", "details": exc.errors(include_url=False)}), 400
    brief_id = briefs.save(brief)
    return jsonify({"id": brief_id}), 201


@app.route("/api/briefs/<int:brief_id>")
def get_brief(brief_id: int):
    saved = briefs.get_by_id(brief_id)
    if saved is None:
        return jsonify({"error": "Not found"}), 404
    return jsonify(_saved_json(saved))


@app.route("/api/briefs/<int:brief_id>", methods=["DELETE"])
def delete_brief(brief_id: int):
    if not briefs.delete(brief_id):
        return jsonify({"error": "Not found"}), 404
    return jsonify({"deleted": brief_id})


# ── Sharing ────────────────────────────────────────────────────────────────

@app.route("/api/briefs/<int:brief_id>/share", methods=["POST"])
def share_brief(brief_id: int):
    """Issue a share link.

    JSON body (all optional): expires_in_days, password, link_type ("public" | "private").
    """
    payload = request.get_json(silent=True) or {}
    expires = payload.get("expires_in_days")
    try:
        expires_in_days = int(expires) if expires is not None else None
    except (TypeError, ValueError):
        return jsonify({"error": "expires_in_days must be an integer"}), 400

    link = briefs.create_share_link(
        brief_id,
        expires_in_days=expires_in_days,
        password=payload.get("password") or None,
        public=payload.get("link_type", "public") == "public",
    )
    if link is None:
        return jsonify({"error": "Not found"}), 404
    return jsonify(link.model_dump(mode="json")), 201


@app.route("/api/briefs/<int:brief_id>/share", methods=["DELETE"])
def revoke_brief_share(brief_id: int):
    if not briefs.revoke_share(brief_id):
        return jsonify({"error": "Not shared"}), 404
    return jsonify({"revoked": brief_id})


@app.route("/share/<token>")
def view_shared(token: str):
    """Render a shared brief as a standalone HTML document."""
    try:
        saved = briefs.get_shared(token, password=request.args.get("password"))
    except briefs.ShareLinkExpired as exc:
        return jsonify({"error": str(exc)}), 410
    except briefs.SharePasswordRequired as exc:
        return jsonify({"error": str(exc)}), 401
    if saved is None:
        return jsonify({"error": "Brief not found"}), 404
    return Response(render_brief_html(saved.brief, generated_at=saved.created_at), mimetype="text/html")


# ── Export ─────────────────────────────────────────────────────────────────

@app.route("/api/briefs/<int:brief_id>/export.html")
def export_html(brief_id: int):
    saved = briefs.get_by_id(brief_id)
    if saved is None:
        return jsonify({"error": "Not found"}), 404
    return _download(
        render_brief_html(saved.brief, generated_at=saved.created_at),
        download_filename(saved.brief.query, "html"),
        "text/html",
    )


@app.route("/api/briefs/<int:brief_id>/export.md")
def export_markdown(brief_id: int):
    saved = briefs.get_by_id(brief_id)
    if saved is None:
        return jsonify({"error": "Not found"}), 404
    return _download(
        saved.brief.raw_report,
        download_filename(saved.brief.query, "md"),
        "text/markdown",
    )


# ── Research stream ────────────────────────────────────────────────────────

@app.route("/api/stream")
def stream_endpoint():
    """SSE endpoint that streams a full research session.

    Query params:
      query  (required) — the product or market to research

    SSE events emitted:
      {"type": "token",  "text": "..."}       streaming text chunk
      {"type": "source", "data": {...}}        a web source discovered
      {"type": "brief",  "data": {...}}        final MarketBrief JSON
      {"type": "error",  "message": "..."}     on failure
    """
    query = request.args.get("query", "").strip()
    if not query:
        return jsonify({"error": "query param is required"}), 400

    def generate():
        raw_text = ""
        sources: list[SearchHit] = []

        try:
            for event_type, payload in research_streaming(query, settings=settings):
                if event_type == "token":
                    data = json.dumps({"type": "token", "text": payload})
                    yield f"data: {data}\n\n"

                elif event_type == "source":
                    sources.append(payload)
                    data = json.dumps({"type": "source", "data": payload.model_dump()})
                    yield f"data: {data}\n\n"

                elif event_type == "raw_text":
                    raw_text = payload

            report = compose_streamed_report(query, raw_text, sources, settings)
            brief = build_brief(query, report, limits)
            data = json.dumps({"type": "brief", "data": brief.model_dump()})
            yield f"data: {data}\n\n"

        except Exception as exc:
            logger.exception("Research stream error for query=%r", query)
            data = json.dumps({"type": "error", "message": str(exc)})
            yield f"data: {data}\n\n"

        yield "data: [DONE]\n\n"

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app.run(debug=settings.debug, host="0.0.0.0", port=settings.port)
