"""
Tests for the Flask HTTP adapter.
"""

from __future__ import annotations

import datetime as dt
import io
import logging

import pytest
from flask.testing import FlaskClient

import app as app_module
from statement_ingest.config import PipelineConfig
from statement_ingest.pipeline import StatementIngestionPipeline

RENT_CSV = b"Date,Description,Amount\n2024-01-08,Rent,-30917\n"


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> FlaskClient:
    pipeline = StatementIngestionPipeline(
        config=PipelineConfig(log_level=logging.WARNING),
        clock=lambda: dt.date(2025, 1, 1),
    )
    monkeypatch.setattr(app_module, "pipeline", pipeline)
    app_module.app.config["TESTING"] = True
    return app_module.app.test_client()


# ======================================================================
# Statement upload
# ======================================================================

class TestParseStatement:
    def test_csv_upload(self, client: FlaskClient) -> None:
        resp = client.post(
            "/api/parse-statement",
            data={"file": (io.BytesIO(RENT_CSV), "statement.csv")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert body["method"] == "structural"
        assert body["transactions"][0]["category"] == "rent"

    def test_missing_file(self, client: FlaskClient) -> None:
        resp = client.post("/api/parse-statement", data={}, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_bad_extension(self, client: FlaskClient) -> None:
        resp = client.post(
            "/api/parse-statement",
            data={"file": (io.BytesIO(b"x"), "statement.exe")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_unreadable_upload(self, client: FlaskClient) -> None:
        resp = client.post(
            "/api/parse-statement",
            data={"file": (io.BytesIO(b"not a zip"), "statement.xlsx")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 422
        assert resp.get_json()["error_code"] == "unreadable_source"

    def test_soft_failure_is_200(self, client: FlaskClient) -> None:
        resp = client.post(
            "/api/parse-statement",
            data={"file": (io.BytesIO(b"just some words"), "notes.txt")},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        assert resp.get_json()["success"] is False


# ======================================================================
# SMS
# ======================================================================

class TestParseSms:
    def test_parse(self, client: FlaskClient) -> None:
        resp = client.post(
            "/api/parse-sms",
            json={"text": "Rs.450.00 debited from A/c XX1234 on 12-01-24 to VPA swiggy@paytm"},
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["amount"] == 450.0
        assert data["category"] == "food"
        assert data["method"] == "deterministic"

    @pytest.mark.parametrize("payload", [{}, {"text": ""}, {"text": 5}, ["text"]])
    def test_missing_text(self, client: FlaskClient, payload: object) -> None:
        resp = client.post("/api/parse-sms", json=payload)
        assert resp.status_code == 400


# ======================================================================
# Confidence and health
# ======================================================================

class TestConfidence:
    def test_score(self, client: FlaskClient) -> None:
        resp = client.post("/api/confidence", json={
            "transaction_count": 100,
            "days_of_data": 90,
            "category_consistency": 1,
            "pattern_strength": 1,
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["confidence"]["score"] == 100
        assert body["badge"] == "High confidence"

    def test_out_of_range_ratio(self, client: FlaskClient) -> None:
        resp = client.post("/api/confidence", json={"category_consistency": 2})
        assert resp.status_code == 400

    def test_non_object_body(self, client: FlaskClient) -> None:
        resp = client.post("/api/confidence", json=[1, 2])
        assert resp.status_code == 400


class TestHealth:
    def test_health(self, client: FlaskClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "online"
        assert body["generative"] is False
