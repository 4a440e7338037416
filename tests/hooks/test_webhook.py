"""Tests for acmesites.hooks.webhook.WebhookHook."""

from __future__ import annotations

import logging

import pytest

from acmesites.hooks.webhook import WebhookHook
from tests.fakes import ScriptedHttp

URL = "https://hooks.example.com/certs"
CONTEXT = {
    "workflow_id": "wf1",
    "site": "rg/app/staging",
    "slot": "staging",
    "dns_names": ["a.example.com", "b.example.com"],
}


@pytest.fixture()
def http(monkeypatch):
    server = ScriptedHttp()
    server.on("POST", URL, 204)
    monkeypatch.setattr("urllib.request.urlopen", server.urlopen)
    return server


class TestConfig:
    @pytest.mark.parametrize("config", [{}, {"url": "ftp://hooks.example.com"}])
    def test_url_required(self, config):
        with pytest.raises(ValueError, match="http"):
            WebhookHook.validate_config(config)

    def test_valid(self):
        WebhookHook.validate_config({"url": URL})


class TestNotices:
    def test_completed(self, http):
        hook = WebhookHook({"url": URL})
        hook.on_workflow_completed(
            {**CONTEXT, "thumbprint": "ABC", "expiration": "2027-01-01T00:00:00+00:00"},
        )
        (req,) = http.sent("POST", URL)
        assert req.get_header("Content-type") == "application/json"
        assert http.json_body(req) == {
            "event": "completed",
            "appName": "app",
            "slotName": "staging",
            "dnsNames": ["a.example.com", "b.example.com"],
            "expirationDate": "2027-01-01T00:00:00+00:00",
            "thumbprint": "ABC",
        }

    def test_failed(self, http):
        hook = WebhookHook({"url": URL})
        hook.on_workflow_failed(
            {**CONTEXT, "step": "order_created", "error": {"detail": "DNS zone(s) are not found"}},
        )
        body = http.json_body(http.sent("POST", URL)[0])
        assert body["event"] == "failed"
        assert body["step"] == "order_created"
        assert body["error"] == "DNS zone(s) are not found"

    def test_delivery_failure_logged(self, monkeypatch, caplog):
        def refuse(req, timeout=None):
            raise OSError("connection refused")

        monkeypatch.setattr("urllib.request.urlopen", refuse)
        with caplog.at_level(logging.ERROR, logger="acmesites.hooks.webhook"):
            WebhookHook({"url": URL}).on_workflow_completed(CONTEXT)
        assert "Failed to deliver webhook" in caplog.text
