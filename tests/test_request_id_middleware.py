from __future__ import annotations

import logging

from fastapi.testclient import TestClient

from main import create_app


def test_request_id_added_when_missing():
    app = create_app()
    client = TestClient(app)
    resp = client.get("/health")
    assert resp.status_code == 200, resp.text
    req_id = resp.headers.get("X-Request-ID")
    assert req_id


def test_request_id_echoed_when_present():
    app = create_app()
    client = TestClient(app)
    resp = client.get("/health", headers={"X-Request-ID": "client-request-id"})
    assert resp.status_code == 200, resp.text
    assert resp.headers.get("X-Request-ID") == "client-request-id"


def test_request_log_includes_method_path_status(caplog):
    app = create_app()
    client = TestClient(app)
    caplog.set_level(logging.INFO, logger="tanda.http")
    resp = client.get("/health")
    assert resp.status_code == 200, resp.text
    assert any(
        "http_request" in record.message
        and "method=GET" in record.message
        and "path=/health" in record.message
        and "status=200" in record.message
        and "duration_ms=" in record.message
        for record in caplog.records
    )


def test_operator_code_header_is_masked(caplog):
    app = create_app()
    client = TestClient(app)
    caplog.set_level(logging.INFO, logger="tanda.http")
    client.get("/health", headers={"X-Operator-Code": "123456"})
    messages = [r.message for r in caplog.records if r.name == "tanda.http"]
    assert messages
    assert all("123456" not in m for m in messages)
    assert any("***" in m for m in messages)
