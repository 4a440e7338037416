"""Issuance workflow orchestrator.

Drives one domain set from order creation to a bound certificate as an
explicit state machine over :class:`WorkflowStep`.  Every step handler
takes the current :class:`WorkflowState` and returns the next one;
handlers run through :func:`run_with_retry`, and the transition
function (:meth:`Orchestrator._handle_failure`) alone decides between
restart and failure.  The state is checkpointed after every transition
so an interrupted run resumes at the next step.

Usage::

    ctx = IssuanceContext.from_settings(get_config().settings)
    orchestrator = Orchestrator(ctx)
    states = orchestrator.run_batch(requests)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from acmesites.acme.client import AcmeClient
from acmesites.challenge.dns01 import RECORD_PREFIX
from acmesites.challenge.resolver import ChallengeResolver
from acmesites.challenge.verifier import ChallengeVerifier
from acmesites.checkpoint.store import FileCheckpointStore
from acmesites.core.errors import AcmeSitesError, RestartRequiredError
from acmesites.core.outcome import capture
from acmesites.core.state import (
    TERMINAL_STEPS,
    WORKFLOW_TRANSITIONS,
    assert_transition,
    log_transition,
)
from acmesites.core.types import ChallengeType, ErrorKind, OrderStatus, WorkflowStep
from acmesites.dns.records import cleanup_proofs, upsert_proofs
from acmesites.dns.registry import load_dns_provider
from acmesites.dns.resolver import LiveResolver
from acmesites.dns.zones import match_zones, verify_delegation
from acmesites.hooks.registry import HookRegistry
from acmesites.hosting.registry import load_hosting_provider
from acmesites.logging import workflow_context
from acmesites.models.challenge import DnsProof, HttpProof
from acmesites.models.workflow import WorkflowState
from acmesites.services.deployer import Deployer
from acmesites.services.discovery import ENDPOINT_TAG, ISSUER_TAG, IssueRequest
from acmesites.services.finalizer import CertificateFinalizer
from acmesites.services.poller import ValidationPoller
from acmesites.services.retry import Deadline, RetryPolicy, run_with_retry

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import rsa

    from acmesites.checkpoint.store import CheckpointStore
    from acmesites.config.settings import AcmeSitesSettings, WorkflowSettings
    from acmesites.dns.provider import DnsProvider
    from acmesites.dns.resolver import DnsLookup
    from acmesites.hosting.base import HostingProvider
    from acmesites.models.acme import Order
    from acmesites.models.certificate import CertificateBundle
    from acmesites.models.dns import Zone

log = logging.getLogger(__name__)

_S = WorkflowStep

# Steps whose checkpointed order is re-fetched before resuming.
_REFRESH_ON_RESUME = frozenset(
    {_S.ORDER_CREATED, _S.CHALLENGES_PREPARED, _S.CHALLENGES_VERIFIED, _S.CHALLENGES_ANSWERED},
)


@dataclass
class IssuanceContext:
    """Collaborators and settings shared by every workflow of a run."""

    acme: AcmeClient
    dns: DnsProvider
    hosting: HostingProvider
    resolver: DnsLookup
    verifier: ChallengeVerifier
    store: CheckpointStore
    workflow: WorkflowSettings
    hooks: HookRegistry | None = None
    preferred_chain: str | None = None
    issuer_tag: str = "acmesites"
    endpoint: str = ""

    @classmethod
    def from_settings(cls, settings: AcmeSitesSettings) -> IssuanceContext:
        resolver = LiveResolver.from_settings(settings.dns)
        return cls(
            acme=AcmeClient(settings.acme),
            dns=load_dns_provider(settings.dns, settings.environment),
            hosting=load_hosting_provider(settings),
            resolver=resolver,
            verifier=ChallengeVerifier.default(
                resolver,
                http_timeout=settings.acme.timeout_seconds,
            ),
            store=FileCheckpointStore(settings.workflow.checkpoint_dir),
            workflow=settings.workflow,
            hooks=HookRegistry(settings.hooks) if settings.hooks.registered else None,
            preferred_chain=settings.acme.preferred_chain,
            issuer_tag=settings.hosting.issuer_tag,
            endpoint=urlparse(settings.acme.directory_url).hostname or "",
        )


@dataclass
class _Run:
    """Mutable per-workflow execution state; never persisted."""

    state: WorkflowState
    deadline: Deadline
    zones: tuple[Zone, ...] | None = None
    bundle: CertificateBundle | None = None
    cert_key: rsa.RSAPrivateKey | None = None


def _record_names(dns_names: Iterable[str]) -> list[str]:
    return [f"{RECORD_PREFIX}.{name.removeprefix('*.')}" for name in dns_names]


class Orchestrator:
    """Runs issuance workflows over an :class:`IssuanceContext`."""

    def __init__(self, ctx: IssuanceContext) -> None:
        self._ctx = ctx
        settings = ctx.workflow
        self._settings = settings
        self._api = RetryPolicy(settings.api_attempts, settings.api_delay_seconds)
        self._verify_policy = RetryPolicy(settings.verify_attempts, settings.verify_delay_seconds)
        self._poll_policy = RetryPolicy(settings.poll_attempts, settings.poll_interval_seconds)

        self._challenges = ChallengeResolver(ctx.acme, ctx.hosting)
        self._poller = ValidationPoller(ctx.acme)
        self._finalizer = CertificateFinalizer(
            ctx.acme,
            key_size=settings.key_size,
            preferred_chain=ctx.preferred_chain,
            poll=self._poll_policy,
        )
        tags = {ISSUER_TAG: ctx.issuer_tag}
        if ctx.endpoint:
            tags[ENDPOINT_TAG] = ctx.endpoint
        self._deployer = Deployer(ctx.hosting, tags)

        self._steps: dict[WorkflowStep, tuple[Callable[[_Run], WorkflowState], RetryPolicy]] = {
            _S.DISCOVER: (self._create_order, self._api),
            _S.ORDER_CREATED: (self._prepare_challenges, self._api),
            _S.CHALLENGES_PREPARED: (self._verify_challenges, self._verify_policy),
            _S.CHALLENGES_VERIFIED: (self._answer_challenges, self._api),
            _S.CHALLENGES_ANSWERED: (self._poll_validation, self._poll_policy),
            _S.VALIDATION_POLLED: (self._finalize, self._api),
            _S.FINALIZED: (self._deploy, self._api),
            _S.DEPLOYED: (self._cleanup_step, self._api),
            _S.CLEANED_UP: (self._complete, self._api),
        }

    # -- entry points -------------------------------------------------------

    def issue(
        self,
        request: IssueRequest,
        *,
        zones: tuple[Zone, ...] | None = None,
        deadline: Deadline | None = None,
    ) -> WorkflowState:
        """Run *request*, continuing its checkpoint when one is pending."""
        state = WorkflowState.start(
            request.site,
            request.domain_set,
            request.challenge_type,
            replaces=request.replaces,
        )
        existing = self._ctx.store.load(state.workflow_id)
        if existing is not None and existing.step not in TERMINAL_STEPS:
            log.info("Resuming workflow %s at %s", existing.workflow_id, existing.step)
            state = existing
        return self.run(state, zones=zones, deadline=deadline)

    def run(
        self,
        state: WorkflowState,
        *,
        zones: tuple[Zone, ...] | None = None,
        deadline: Deadline | None = None,
    ) -> WorkflowState:
        """Execute *state* step by step until it is completed or failed."""
        run = _Run(
            state=state,
            deadline=deadline or Deadline(self._settings.run_deadline_seconds),
            zones=zones,
        )
        with workflow_context(state.workflow_id, state.site.key):
            if state.step == _S.DISCOVER:
                self._ctx.store.save(state)
            elif state.step in _REFRESH_ON_RESUME:
                outcome = run_with_retry(
                    self._refresh_order,
                    run,
                    policy=self._api,
                    deadline=run.deadline,
                    label=f"refresh order {state.order.url if state.order else '?'}",
                )
                if not outcome.ok:
                    self._handle_failure(run, outcome.error)

            while run.state.step not in TERMINAL_STEPS:
                step = run.state.step
                handler, policy = self._steps[step]
                outcome = run_with_retry(
                    handler,
                    run,
                    policy=policy,
                    deadline=run.deadline,
                    label=f"step {step}",
                )
                if outcome.ok:
                    self._transition(run, outcome.value)
                else:
                    self._handle_failure(run, outcome.error)
        return run.state

    def run_batch(
        self,
        requests: Iterable[IssueRequest],
        *,
        deadline: Deadline | None = None,
    ) -> list[WorkflowState]:
        """Run every request concurrently; one failure never aborts the others."""
        requests = list(requests)
        if not requests:
            return []
        deadline = deadline or Deadline(self._settings.run_deadline_seconds)
        zones = self._batch_zones(ChallengeType.DNS_01 in {r.challenge_type for r in requests})

        def _one(request: IssueRequest) -> WorkflowState:
            try:
                return self.issue(request, zones=zones, deadline=deadline)
            except Exception as exc:
                log.exception(
                    "Workflow for %s on %s crashed",
                    ",".join(request.domain_set),
                    request.site.key,
                )
                state = WorkflowState.start(
                    request.site,
                    request.domain_set,
                    request.challenge_type,
                )
                return state.advance(
                    _S.FAILED,
                    error={
                        "type": type(exc).__name__,
                        "kind": ErrorKind.FATAL.value,
                        "detail": str(exc),
                    },
                )

        with ThreadPoolExecutor(
            max_workers=self._settings.max_parallel,
            thread_name_prefix="acmesites-workflow",
        ) as pool:
            return list(pool.map(_one, requests))

    def resume_all(self, *, deadline: Deadline | None = None) -> list[WorkflowState]:
        """Continue every checkpointed workflow that has not finished."""
        pending = self._ctx.store.list_pending()
        log.info("Resuming %d pending workflow(s)", len(pending))
        return self.run_batch(
            [
                IssueRequest(
                    site=s.site,
                    domain_set=s.domain_set,
                    challenge_type=s.challenge_type,
                    replaces=s.replaces,
                )
                for s in pending
            ],
            deadline=deadline,
        )

    # -- transition function ------------------------------------------------

    def _transition(self, run: _Run, new: WorkflowState, *, reason: str | None = None) -> None:
        assert_transition(run.state.step, new.step, WORKFLOW_TRANSITIONS)
        log_transition(new.workflow_id, run.state.step, new.step, reason=reason)
        run.state = new
        if new.step in TERMINAL_STEPS:
            self._ctx.store.discard(new.workflow_id)
        else:
            self._ctx.store.save(new)

    def _handle_failure(self, run: _Run, error: AcmeSitesError | None) -> None:
        if error is None:
            return
        state = run.state
        if (
            error.kind == ErrorKind.RESTART
            and state.restarts < self._settings.max_restarts
            and _S.ORDER_CREATED in WORKFLOW_TRANSITIONS[state.step]
        ):
            log.warning("Restarting workflow with a new order: %s", error.detail)
            outcome = run_with_retry(
                self._restart,
                run,
                policy=self._api,
                deadline=run.deadline,
                label="new order",
            )
            if outcome.ok:
                self._transition(run, outcome.value, reason=f"restart {state.restarts + 1}")
                self._dispatch(
                    "order.restart",
                    run.state,
                    order_url=run.state.order.url if run.state.order else None,
                    restarts=run.state.restarts,
                    error=error.to_dict(),
                    challenge_errors=getattr(error, "challenge_errors", []),
                )
                return
            error = outcome.error or error
        self._fail(run, error)

    def _restart(self, run: _Run) -> WorkflowState:
        self._cleanup(run)
        order = self._ctx.acme.new_order(run.state.domain_set.dns_names)
        run.bundle = None
        run.cert_key = None
        return run.state.advance(
            _S.ORDER_CREATED,
            order=order,
            challenge_results=(),
            certificate=None,
            restarts=run.state.restarts + 1,
        )

    def _fail(self, run: _Run, error: AcmeSitesError) -> None:
        log.error("Workflow failed at %s (%s): %s", run.state.step, error.kind, error.detail)
        if run.state.step not in (_S.CLEANED_UP, _S.DEPLOYED):
            self._cleanup(run)
        failed_at = run.state.step
        failed = run.state.advance(_S.FAILED, error=error.to_dict())
        self._transition(run, failed, reason=error.kind)
        self._dispatch("workflow.failed", run.state, step=failed_at.value, error=error.to_dict())

    # -- step handlers ------------------------------------------------------

    def _create_order(self, run: _Run) -> WorkflowState:
        state = run.state
        if state.challenge_type == ChallengeType.DNS_01:
            matched = match_zones(_record_names(state.domain_set), self._zones(run))
            verify_delegation(matched.values(), self._ctx.resolver)
        self._ctx.acme.register()
        order = self._ctx.acme.new_order(state.domain_set.dns_names)
        self._dispatch(
            "order.creation",
            state,
            order_url=order.url,
            challenge_type=state.challenge_type.value,
        )
        return state.advance(_S.ORDER_CREATED, order=order)

    def _prepare_challenges(self, run: _Run) -> WorkflowState:
        order = self._refresh_order(run)
        results = tuple(self._challenges.resolve(order, run.state.challenge_type, run.state.site))
        if run.state.challenge_type == ChallengeType.DNS_01:
            upsert_proofs(self._ctx.dns, results, self._zones(run))
        return run.state.advance(_S.CHALLENGES_PREPARED, order=order, challenge_results=results)

    def _verify_challenges(self, run: _Run) -> WorkflowState:
        self._ctx.verifier.verify(run.state.challenge_results, run.state.challenge_type)
        return run.state.advance(_S.CHALLENGES_VERIFIED)

    def _answer_challenges(self, run: _Run) -> WorkflowState:
        for result in run.state.challenge_results:
            self._ctx.acme.answer_challenge(result.url)
        return run.state.advance(_S.CHALLENGES_ANSWERED)

    def _poll_validation(self, run: _Run) -> WorkflowState:
        order = self._poller.check(self._order(run), run.state.challenge_results)
        return run.state.advance(_S.VALIDATION_POLLED, order=order)

    def _finalize(self, run: _Run) -> WorkflowState:
        dns_names = run.state.domain_set.dns_names
        order = self._ctx.acme.get_order(self._order(run).url)
        if order.status == OrderStatus.READY:
            if run.cert_key is None:
                run.cert_key = self._finalizer.new_key()
            order = self._finalizer.submit(order, run.cert_key, dns_names)
        elif run.cert_key is None:
            msg = f"Order {order.url} is {order.status} and its certificate key is lost"
            raise RestartRequiredError(msg, resource=order.url)

        bundle = self._finalizer.collect(order, run.cert_key, dns_names, run.deadline)
        run.bundle = bundle
        self._dispatch(
            "certificate.issuance",
            run.state,
            thumbprint=bundle.thumbprint,
            expiration=bundle.not_after.isoformat(),
        )
        return run.state.advance(_S.FINALIZED, order=order, certificate=bundle.metadata())

    def _deploy(self, run: _Run) -> WorkflowState:
        state = run.state
        if run.bundle is not None:
            self._deployer.upload(state.site, run.bundle)
            thumbprint = run.bundle.thumbprint
        else:
            name = (state.certificate or {}).get("name")
            existing = (
                self._ctx.hosting.get_certificate(state.site.resource_group, name) if name else None
            )
            if existing is None:
                msg = f"Certificate {name} is not in the hosting layer and its key is lost"
                raise RestartRequiredError(msg, resource=name)
            thumbprint = existing.thumbprint

        bound = self._deployer.bind(state.site, state.domain_set.dns_names, thumbprint)
        self._dispatch(
            "certificate.deployment",
            state,
            thumbprint=thumbprint,
            expiration=(state.certificate or {}).get("not_after"),
            bound_host_names=bound,
        )
        return state.advance(_S.DEPLOYED)

    def _cleanup_step(self, run: _Run) -> WorkflowState:
        self._cleanup(run)
        return run.state.advance(_S.CLEANED_UP)

    def _complete(self, run: _Run) -> WorkflowState:
        state = run.state
        certificate = state.certificate or {}
        thumbprint = certificate.get("thumbprint")
        if state.replaces and thumbprint and state.replaces.upper() != thumbprint.upper():
            self._deployer.retire(state.site, state.replaces)
        self._dispatch(
            "workflow.completed",
            state,
            thumbprint=thumbprint,
            expiration=certificate.get("not_after"),
            replaced_thumbprint=state.replaces,
        )
        return state.advance(_S.COMPLETED)

    # -- helpers ------------------------------------------------------------

    def _order(self, run: _Run) -> Order:
        if run.state.order is None:
            msg = f"Workflow {run.state.workflow_id} at {run.state.step} has no order"
            raise AcmeSitesError(msg)
        return run.state.order

    def _refresh_order(self, run: _Run) -> Order:
        order = self._ctx.acme.get_order(self._order(run).url)
        if order.status == OrderStatus.INVALID:
            msg = f"Order {order.url} is invalid"
            raise RestartRequiredError(
                msg,
                challenge_errors=[order.error] if order.error else [],
                resource=order.url,
            )
        return order

    def _zones(self, run: _Run) -> tuple[Zone, ...]:
        if run.zones is None:
            run.zones = tuple(self._ctx.dns.list_zones())
        return run.zones

    def _batch_zones(self, needed: bool) -> tuple[Zone, ...] | None:  # noqa: FBT001
        if not needed:
            return None
        outcome = capture(self._ctx.dns.list_zones)
        if not outcome.ok:
            log.warning("Could not list DNS zones for the batch: %s", outcome.error)
            return None
        return tuple(outcome.value or ())

    def _cleanup(self, run: _Run) -> None:
        """Remove proof records and files; failures are logged, not raised."""
        results = run.state.challenge_results
        if not results:
            return
        dns_results = [r for r in results if isinstance(r.proof, DnsProof)]
        if dns_results:
            try:
                cleanup_proofs(self._ctx.dns, dns_results, self._zones(run))
            except AcmeSitesError:
                log.warning("DNS proof cleanup failed", exc_info=True)
        for result in results:
            if isinstance(result.proof, HttpProof):
                try:
                    self._ctx.hosting.delete_file(run.state.site, result.proof.path)
                except AcmeSitesError:
                    log.warning("Could not delete %s", result.proof.path, exc_info=True)

    def _dispatch(self, event: str, state: WorkflowState, **details: Any) -> None:
        if self._ctx.hooks is not None:
            self._ctx.hooks.notify(event, state, **details)
