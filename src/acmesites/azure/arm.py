"""Azure Resource Manager REST transport shared by the built-in providers.

Authentication is either a pre-issued bearer token (``access_token``)
or the OAuth2 client-credentials grant (``tenant_id``, ``client_id``,
``client_secret``).  Tokens obtained through the grant are cached until
shortly before they expire.

Provider ``config`` keys::

    subscription_id: "00000000-0000-0000-0000-000000000000"
    access_token: "${ARM_TOKEN}"          # or the three keys below
    tenant_id: "..."
    client_id: "..."
    client_secret: "${ARM_CLIENT_SECRET}"
    authority_url: "https://login.microsoftonline.com"
    timeout_seconds: 30
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from acmesites.core.errors import CollaboratorError, is_retryable_status

if TYPE_CHECKING:
    from acmesites.config.settings import EnvironmentSettings

log = logging.getLogger(__name__)

_TOKEN_REFRESH_MARGIN = 300


class ArmClient:
    """JSON-over-HTTPS client for one subscription.

    Parameters
    ----------
    config:
        Provider ``config`` mapping (see module docstring).
    environment:
        Cloud endpoints.
    error_cls:
        :class:`CollaboratorError` subclass raised on failure, so DNS and
        hosting callers see their own error type.
    base_url:
        Endpoint the request paths are relative to; defaults to the
        resource manager.
    scope:
        OAuth2 scope requested by the client-credentials grant.

    """

    def __init__(
        self,
        config: dict[str, Any],
        environment: EnvironmentSettings,
        *,
        error_cls: type[CollaboratorError] = CollaboratorError,
        base_url: str | None = None,
        scope: str | None = None,
    ) -> None:
        if not config.get("subscription_id"):
            msg = "ARM provider config requires 'subscription_id'"
            raise ValueError(msg)
        self._config = config
        self._base_url = (base_url or environment.resource_manager_url).rstrip("/")
        self._scope = scope or f"{environment.resource_manager_url}/.default"
        self._error_cls = error_cls
        self._timeout = config.get("timeout_seconds", 30)
        self._token: str | None = config.get("access_token") or None
        self._token_expires = float("inf") if self._token else 0.0
        self._lock = threading.Lock()

    @property
    def subscription_id(self) -> str:
        return self._config["subscription_id"]

    @property
    def subscription_path(self) -> str:
        return f"/subscriptions/{self.subscription_id}"

    # -- auth ---------------------------------------------------------------

    def _access_token(self) -> str:
        with self._lock:
            if self._token and time.monotonic() < self._token_expires:
                return self._token
            self._token, lifetime = self._client_credentials_token()
            self._token_expires = time.monotonic() + max(lifetime - _TOKEN_REFRESH_MARGIN, 0)
            return self._token

    def _client_credentials_token(self) -> tuple[str, float]:
        required = ("tenant_id", "client_id", "client_secret")
        missing = [k for k in required if not self._config.get(k)]
        if missing:
            msg = f"ARM provider config needs 'access_token' or {', '.join(missing)}"
            raise self._error_cls(msg)
        authority = self._config.get("authority_url", "https://login.microsoftonline.com")
        url = f"{authority.rstrip('/')}/{self._config['tenant_id']}/oauth2/v2.0/token"
        form = urllib.parse.urlencode(
            {
                "grant_type": "client_credentials",
                "client_id": self._config["client_id"],
                "client_secret": self._config["client_secret"],
                "scope": self._scope,
            },
        ).encode("ascii")
        req = urllib.request.Request(url, data=form, method="POST")
        req.add_header("Content-Type", "application/x-www-form-urlencoded")
        body = self._open(req)
        log.debug("Obtained ARM access token for client %s", self._config["client_id"])
        return body["access_token"], float(body.get("expires_in", 3600))

    # -- requests -----------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        *,
        api_version: str,
        body: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        """Send one request; *path* is relative to the client's base URL.

        Returns ``None`` for a 404 when *allow_not_found* is set.
        """
        url = self.url(path, api_version)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Authorization", f"Bearer {self._access_token()}")
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")
        return self._open(req, allow_not_found=allow_not_found)

    def paged(self, path: str, *, api_version: str) -> Iterator[dict[str, Any]]:
        """Yield every item of a collection, following ``nextLink``."""
        page = self.request("GET", path, api_version=api_version) or {}
        while True:
            yield from page.get("value", [])
            next_link = page.get("nextLink")
            if not next_link:
                return
            req = urllib.request.Request(next_link, method="GET")
            req.add_header("Authorization", f"Bearer {self._access_token()}")
            page = self._open(req) or {}

    def url(self, path: str, api_version: str) -> str:
        sep = "&" if "?" in path else "?"
        return f"{self._base_url}{path}{sep}api-version={api_version}"

    def _open(
        self,
        req: urllib.request.Request,
        *,
        allow_not_found: bool = False,
    ) -> Any:  # noqa: ANN401
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            if allow_not_found and exc.code == 404:  # noqa: PLR2004
                return None
            detail = ""
            with contextlib.suppress(Exception):
                detail = exc.read().decode("utf-8", errors="replace")[:500]
            msg = f"{req.get_method()} {req.full_url} returned HTTP {exc.code}: {detail}"
            raise self._error_cls(
                msg,
                retryable=is_retryable_status(exc.code),
                status=exc.code,
                resource=req.full_url,
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach {req.full_url}: {exc}"
            raise self._error_cls(msg, retryable=True, resource=req.full_url) from exc

        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"{req.full_url} returned invalid JSON: {exc}"
            raise self._error_cls(msg, resource=req.full_url) from exc
