"""Completion webhook: POSTs a JSON notice when a certificate is deployed.

Configuration::

    hooks:
      registered:
        - class: acmesites.hooks.webhook.WebhookHook
          events: [workflow.completed, workflow.failed]
          config:
            url: "${WEBHOOK_URL}"
            timeout_seconds: 10
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any

from acmesites.hooks.base import Hook

log = logging.getLogger(__name__)


class WebhookHook(Hook):
    """Posts ``{appName, slotName, expirationDate, dnsNames}`` style notices."""

    def __init__(self, config: dict | None = None) -> None:
        super().__init__(config)
        self._url = self.config["url"]
        self._timeout = self.config.get("timeout_seconds", 10)

    @classmethod
    def validate_config(cls, config: dict) -> None:
        url = config.get("url", "")
        if not url.startswith(("https://", "http://")):
            msg = f"WebhookHook requires an http(s) 'url', got {url!r}"
            raise ValueError(msg)

    def _post(self, payload: dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(
            self._url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout):  # noqa: S310
                pass
        except (urllib.error.URLError, OSError):
            log.exception("Failed to deliver webhook to %s", self._url)

    @staticmethod
    def _site_fields(ctx: dict) -> dict[str, Any]:
        site = ctx.get("site", "")
        return {
            "appName": site.split("/")[1] if site.count("/") >= 1 else site,
            "slotName": ctx.get("slot", "production"),
            "dnsNames": ctx.get("dns_names", []),
        }

    def on_workflow_completed(self, ctx: dict) -> None:
        self._post(
            {
                "event": "completed",
                **self._site_fields(ctx),
                "expirationDate": ctx.get("expiration"),
                "thumbprint": ctx.get("thumbprint"),
            },
        )

    def on_workflow_failed(self, ctx: dict) -> None:
        self._post(
            {
                "event": "failed",
                **self._site_fields(ctx),
                "step": ctx.get("step"),
                "error": (ctx.get("error") or {}).get("detail"),
            },
        )
