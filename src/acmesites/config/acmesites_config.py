"""acmesites configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    AcmeSitesConfig(config_file="/etc/acmesites/config.yaml")

    # 2. Any module retrieves it afterwards
    from acmesites.config import get_config
    cfg = get_config()
    cfg.settings.workflow.max_restarts  # typed access

    # 3. Extension / dynamic access
    cfg.get("dns.config.subscription_id")
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from acmesites.config.settings import AcmeSitesSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_KNOWN_CHALLENGE_TYPES = frozenset({"http-01", "dns-01"})
_BUILTIN_DNS_PROVIDERS = frozenset({"azure"})
_BUILTIN_HOSTING_PROVIDERS = frozenset({"appservice"})

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_MIN_RSA_KEY_SIZE = 2048
_LOCAL_HOSTS = ("localhost", "127.0.0.1", "[::1]")

# Loaded lazily to avoid a config -> hooks import cycle.
_KNOWN_HOOK_EVENTS: frozenset[str] | None = None


def _get_known_hook_events() -> frozenset[str]:
    """Return the known hook event names, loading lazily."""
    global _KNOWN_HOOK_EVENTS  # noqa: PLW0603
    if _KNOWN_HOOK_EVENTS is None:
        from acmesites.hooks.events import KNOWN_EVENTS  # noqa: PLC0415

        _KNOWN_HOOK_EVENTS = KNOWN_EVENTS
    return _KNOWN_HOOK_EVENTS


log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: AcmeSitesConfig | None = None


def get_config() -> AcmeSitesConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`AcmeSitesConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "AcmeSitesConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError:
        msg = f"Configuration file not found: {path}"
        raise ConfigValidationError([msg]) from None
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        msg = f"Cannot parse {path}: {exc}"
        raise ConfigValidationError([msg]) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping at the top level"
        raise ConfigValidationError([msg])
    return data


def _schema_errors(data: dict[str, Any]) -> list[str]:
    schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = jsonschema.Draft202012Validator(schema)
    errors = []
    for err in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        where = ".".join(str(p) for p in err.absolute_path) or "(root)"
        errors.append(f"{where}: {err.message}")
    return errors


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class AcmeSitesConfig:
    """Central configuration for the renewal engine.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.  Loading runs env-var resolution, schema
    validation and :meth:`additional_checks`, in that order.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        global _instance  # noqa: PLW0603

        self._path = Path(config_file)
        self._data = _read_file(self._path)
        # Resolve before schema validation so substituted values are
        # checked against enum constraints.
        _resolve_env_vars(self._data)

        errors = _schema_errors(self._data)
        if errors:
            raise ConfigValidationError(errors)
        self.additional_checks()

        self._data["_source"] = str(self._path)
        self._settings: AcmeSitesSettings = build_settings(self._data)
        _instance = self

    # -- access -------------------------------------------------------------

    @property
    def data(self) -> dict[str, Any]:
        """Raw, env-resolved configuration mapping."""
        return self._data

    @property
    def settings(self) -> AcmeSitesSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def get(self, dot_path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Look up a raw value by ``section.key.subkey`` path."""
        node: Any = self._data
        for part in dot_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation, run after the schema passes."""
        errors: list[str] = []
        warnings: list[str] = []

        acme = self.data.get("acme") or {}
        dns_cfg = self.data.get("dns") or {}
        hosting = self.data.get("hosting") or {}
        workflow = self.data.get("workflow") or {}

        # -- ACME --
        directory_url = acme.get("directory_url", "")
        if directory_url.startswith("http://"):
            host = directory_url[len("http://") :].split("/", 1)[0].rsplit(":", 1)[0]
            if host not in _LOCAL_HOSTS:
                errors.append(
                    f"acme.directory_url must use https (got '{directory_url}')",
                )
        if not acme.get("verify_ssl", True):
            warnings.append(
                "acme.verify_ssl is false; only use this against a local test CA",
            )
        email = acme.get("email", "")
        if email and "@" not in email:
            errors.append(f"acme.email '{email}' is not an e-mail address")

        # -- Providers --
        for section, name, builtins in (
            ("dns", dns_cfg.get("provider", "azure"), _BUILTIN_DNS_PROVIDERS),
            ("hosting", hosting.get("provider", "appservice"), _BUILTIN_HOSTING_PROVIDERS),
        ):
            if name in builtins:
                continue
            if not name.startswith("ext:") or not _CLASS_PATH_RE.match(name[4:]):
                errors.append(
                    f"{section}.provider '{name}' is neither a built-in "
                    f"({', '.join(sorted(builtins))}) nor 'ext:package.module.ClassName'",
                )

        # -- Workflow --
        challenge_type = workflow.get("challenge_type", "dns-01")
        if challenge_type not in _KNOWN_CHALLENGE_TYPES:
            errors.append(
                f"workflow.challenge_type '{challenge_type}' is not one of "
                f"{sorted(_KNOWN_CHALLENGE_TYPES)}",
            )
        key_size = workflow.get("key_size", _MIN_RSA_KEY_SIZE)
        if key_size < _MIN_RSA_KEY_SIZE:
            errors.append(
                f"workflow.key_size ({key_size}) must be >= {_MIN_RSA_KEY_SIZE}",
            )
        poll_budget = workflow.get("poll_attempts", 12) * workflow.get("poll_interval_seconds", 5)
        deadline = workflow.get("run_deadline_seconds", 3600)
        if poll_budget > deadline:
            warnings.append(
                f"workflow poll budget ({poll_budget}s) exceeds "
                f"workflow.run_deadline_seconds ({deadline}s)",
            )

        # -- Hooks --
        hooks = self.data.get("hooks") or {}
        known_events = _get_known_hook_events()
        for idx, entry in enumerate(hooks.get("registered", [])):
            class_path = entry.get("class", "")
            if class_path and not _CLASS_PATH_RE.match(class_path):
                errors.append(
                    f"hooks.registered[{idx}].class '{class_path}' is not a "
                    "valid fully qualified Python class path "
                    "(expected 'package.module.ClassName')",
                )
            for evt in entry.get("events", []):
                if evt not in known_events:
                    errors.append(
                        f"hooks.registered[{idx}].events contains unknown "
                        f"event '{evt}'. Known events: {sorted(known_events)}",
                    )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        return f"<AcmeSitesConfig config_file={self._path}>"
