"""
Statement Ingest — HTTP adapter.

Thin Flask layer over :class:`StatementIngestionPipeline` for the review UI
and the mobile client.  Every response is JSON; extraction failures are
soft (``success: false``) except unreadable uploads, which answer 422.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, request
from werkzeug.utils import secure_filename

from statement_ingest import __version__
from statement_ingest.completion_client import CompletionClient, GeminiCompletionClient
from statement_ingest.confidence import badge_text, describe, score
from statement_ingest.config import PipelineConfig
from statement_ingest.errors import UnreadableSource
from statement_ingest.pipeline import StatementIngestionPipeline

# -------------------------------------------------------
# App Setup
# -------------------------------------------------------

app = Flask(__name__)

app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"csv", "txt", "xlsx", "xlsm", "xls", "pdf"}

# -------------------------------------------------------
# Pipeline Setup
# -------------------------------------------------------

config = PipelineConfig(log_level=logging.INFO)


def build_completion_client(cfg: PipelineConfig) -> Optional[CompletionClient]:
    """Gemini client when an API key is present in the environment."""
    if not os.environ.get(cfg.generative.api_key_env):
        logger.warning(
            "%s not set; generative fallback disabled", cfg.generative.api_key_env
        )
        return None
    return GeminiCompletionClient(cfg.generative)


pipeline = StatementIngestionPipeline(
    config=config,
    completion_client=build_completion_client(config),
)

# -------------------------------------------------------
# Helpers
# -------------------------------------------------------

def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _unit_interval(payload: Dict[str, Any], key: str) -> float:
    value = float(payload.get(key, 0))
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{key} must be between 0 and 1")
    return value


# -------------------------------------------------------
# API
# -------------------------------------------------------

@app.route("/api/parse-statement", methods=["POST"])
def api_parse_statement():
    """Upload one statement file (multipart field ``file``)."""
    if "file" not in request.files:
        return {"success": False, "error": "No file uploaded"}, 400

    file = request.files["file"]

    if file.filename == "":
        return {"success": False, "error": "No file selected"}, 400

    if not allowed_file(file.filename):
        return {
            "success": False,
            "error": f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        }, 400

    filename = secure_filename(file.filename)
    content = file.read()

    result = asyncio.run(pipeline.ingest_bytes(filename, content, file.mimetype))

    status = 422 if result.error_code == UnreadableSource.code else 200
    return result.to_dict(), status


@app.route("/api/parse-sms", methods=["POST"])
def api_parse_sms():
    """Parse one alert message sent as ``{"text": "..."}``."""
    payload = request.get_json(silent=True) or {}
    text = payload.get("text") if isinstance(payload, dict) else None

    if not isinstance(text, str) or not text.strip():
        return {"success": False, "error": "Field 'text' is required"}, 400

    data = asyncio.run(pipeline.parse_sms(text))
    return {"success": True, "data": data.to_dict()}, 200


@app.route("/api/confidence", methods=["POST"])
def api_confidence():
    """Score an insight from ``transaction_count``, ``days_of_data``,
    ``category_consistency`` and ``pattern_strength``."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"success": False, "error": "JSON object body required"}, 400

    try:
        result = score(
            transaction_count=int(payload.get("transaction_count", 0)),
            days_of_data=int(payload.get("days_of_data", 0)),
            category_consistency=_unit_interval(payload, "category_consistency"),
            pattern_strength=_unit_interval(payload, "pattern_strength"),
        )
    except (TypeError, ValueError) as e:
        return {"success": False, "error": str(e)}, 400

    return {
        "success": True,
        "confidence": result.to_dict(),
        "badge": badge_text(result.level),
        "description": describe(result),
    }, 200


@app.route("/api/health", methods=["GET"])
def api_health():
    """Health check endpoint."""
    return {
        "status": "online",
        "version": __version__,
        "generative": pipeline.generative_enabled,
        "endpoints": ["/api/parse-statement", "/api/parse-sms", "/api/confidence"],
    }, 200


# -------------------------------------------------------
# Main
# -------------------------------------------------------

if __name__ == "__main__":
    print("=" * 60)
    print("Statement Ingest Server Running")
    print("http://localhost:5000")
    print("=" * 60)

    app.run(host="0.0.0.0", port=5000, debug=True)
