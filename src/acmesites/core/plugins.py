"""Loader for pluggable collaborator implementations.

A plugin name is either a built-in key (``azure``, ``appservice``) or
``ext:package.module.ClassName`` for a class shipped outside this
package.  Either way the class must subclass the expected base and
implement all of its abstract methods.

Usage::

    from acmesites.core.plugins import load_plugin_class

    cls = load_plugin_class(
        "ext:mycompany.dns.Route53Provider",
        builtins={"azure": ("acmesites.dns.azure", "AzureDnsProvider")},
        base=DnsProvider,
        label="DNS provider",
    )
"""

from __future__ import annotations

import importlib
import logging
from typing import TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class PluginLoadError(Exception):
    """The configured implementation cannot be imported or is unusable."""


def load_plugin_class(
    name: str,
    *,
    builtins: dict[str, tuple[str, str]],
    base: type[T],
    label: str,
) -> type[T]:
    """Resolve *name* to a concrete subclass of *base*.

    Parameters
    ----------
    name:
        Built-in key or ``ext:`` class path.
    builtins:
        Maps built-in keys to ``(module_path, class_name)``.
    base:
        Required base class.
    label:
        Human-readable kind, used in error messages.

    Raises
    ------
    PluginLoadError
        If the class cannot be loaded or does not satisfy *base*.

    """
    if name in builtins:
        mod_path, cls_name = builtins[name]
    elif name.startswith("ext:"):
        mod_path, _, cls_name = name[4:].rpartition(".")
        if not mod_path:
            msg = (
                f"Invalid external {label} '{name}': must be fully "
                "qualified (e.g. 'ext:mypackage.module.ClassName')"
            )
            raise PluginLoadError(msg)
    else:
        msg = (
            f"Unknown {label} '{name}'; built-in options: {sorted(builtins)}. "
            "Use 'ext:mypackage.module.ClassName' for custom implementations."
        )
        raise PluginLoadError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load {label} '{name}': {exc}"
        raise PluginLoadError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, base)):
        msg = f"{label} '{name}' is not a subclass of {base.__name__}"
        raise PluginLoadError(msg)
    missing = sorted(getattr(cls, "__abstractmethods__", ()))
    if missing:
        msg = f"{label} '{name}' does not implement {', '.join(f'{m}()' for m in missing)}"
        raise PluginLoadError(msg)

    log.debug("Resolved %s '%s' to %s.%s", label, name, mod_path, cls_name)
    return cls
