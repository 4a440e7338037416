"""Abstract base class for workflow hooks.

All custom hooks must inherit from :class:`Hook` and override the
event methods they are interested in.  Unimplemented methods are
no-ops by default.

Every context carries ``workflow_id``, ``site`` (``rg/name/slot``),
``slot`` and ``dns_names`` in addition to the keys listed per event.

Usage::

    from acmesites.hooks import Hook

    class ChatOpsHook(Hook):
        def on_workflow_failed(self, ctx: dict) -> None:
            post_to_channel(ctx["error"]["detail"])
"""

from __future__ import annotations

import abc


class Hook(abc.ABC):  # noqa: B024
    """Base class for all workflow hooks.

    Parameters
    ----------
    config:
        Optional passthrough configuration from the hook entry's
        ``config`` dict in the configuration file.

    """

    def __init__(self, config: dict | None = None) -> None:
        self.config = config or {}

    @classmethod
    def validate_config(cls, config: dict) -> None:
        """Validate hook-specific configuration at load time.

        Raise :class:`ValueError` if *config* is not acceptable.
        The default implementation is a no-op.
        """

    # -- Order events -----------------------------------------------------

    def on_order_creation(self, ctx: dict) -> None:
        """Called after an order is created.

        Context keys: ``order_url``, ``challenge_type``.
        """

    def on_order_restart(self, ctx: dict) -> None:
        """Called when an invalid order is abandoned for a new one.

        Context keys: ``order_url``, ``restarts``, ``error``, ``challenge_errors``.
        """

    # -- Certificate events -----------------------------------------------

    def on_certificate_issuance(self, ctx: dict) -> None:
        """Called after the CA issued the certificate.

        Context keys: ``thumbprint``, ``expiration``.
        """

    def on_certificate_deployment(self, ctx: dict) -> None:
        """Called after the certificate is uploaded and bound.

        Context keys: ``thumbprint``, ``expiration``, ``bound_host_names``.
        """

    # -- Workflow events --------------------------------------------------

    def on_workflow_completed(self, ctx: dict) -> None:
        """Called when a workflow completes.

        Context keys: ``thumbprint``, ``expiration``, ``replaced_thumbprint``.
        """

    def on_workflow_failed(self, ctx: dict) -> None:
        """Called when a workflow fails terminally.

        Context keys: ``step``, ``error``.
        """
