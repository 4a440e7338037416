"""Logging subsystem for acmesites.

Public API::

    from acmesites.logging import configure_logging, workflow_context

    configure_logging(settings.logging)
"""

from acmesites.logging.setup import configure_logging, workflow_context

__all__ = ["configure_logging", "workflow_context"]
