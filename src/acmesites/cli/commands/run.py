"""renew / issue / resume subcommands."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acmesites.core.types import ChallengeType, WorkflowStep
from acmesites.models.site import DomainSet, Site
from acmesites.services import IssuanceContext, IssueRequest, Orchestrator, RenewalDiscovery
from acmesites.services.retry import Deadline

if TYPE_CHECKING:
    import argparse

    from acmesites.config import AcmeSitesConfig
    from acmesites.models.workflow import WorkflowState

log = logging.getLogger(__name__)


def run_command(config: AcmeSitesConfig, args: argparse.Namespace) -> bool:
    """Run the selected command; ``True`` when every workflow completed."""
    ctx = IssuanceContext.from_settings(config.settings)
    try:
        orchestrator = Orchestrator(ctx)
        deadline = Deadline(config.settings.workflow.run_deadline_seconds)
        if args.command == "renew":
            states = _renew(config, ctx, orchestrator, deadline)
        elif args.command == "issue":
            states = _issue(config, ctx, orchestrator, deadline, args)
        elif args.command == "resume":
            states = orchestrator.resume_all(deadline=deadline)
        else:
            msg = f"Unknown command {args.command!r}"
            raise ValueError(msg)
    finally:
        if ctx.hooks is not None:
            ctx.hooks.shutdown(wait=True)
    return _report(states)


def _renew(
    config: AcmeSitesConfig,
    ctx: IssuanceContext,
    orchestrator: Orchestrator,
    deadline: Deadline,
) -> list[WorkflowState]:
    settings = config.settings
    discovery = RenewalDiscovery(
        ctx.hosting,
        issuer_tag=ctx.issuer_tag,
        endpoint=ctx.endpoint,
        renew_before_days=settings.workflow.renew_before_days,
        challenge_type=ChallengeType(settings.workflow.challenge_type),
        dns_suffixes=settings.environment.dns_suffixes,
        running_only=settings.hosting.running_sites_only,
    )
    return orchestrator.run_batch(discovery.discover(), deadline=deadline)


def _issue(
    config: AcmeSitesConfig,
    ctx: IssuanceContext,
    orchestrator: Orchestrator,
    deadline: Deadline,
    args: argparse.Namespace,
) -> list[WorkflowState]:
    ref = Site.parse_key(args.site)
    site = ctx.hosting.get_site(ref.resource_group, ref.name, ref.slot)
    challenge_type = ChallengeType(args.challenge or config.settings.workflow.challenge_type)
    request = IssueRequest(
        site=site,
        domain_set=DomainSet.of(args.dns_names),
        challenge_type=challenge_type,
        replaces=_bound_thumbprint(site, args.dns_names),
    )
    return [orchestrator.issue(request, deadline=deadline)]


def _bound_thumbprint(site: Site, dns_names: list[str]) -> str | None:
    """Thumbprint already bound to one of *dns_names*, if any."""
    for name in dns_names:
        thumbprint = site.thumbprint_for(name)
        if thumbprint:
            return thumbprint
    return None


def _report(states: list[WorkflowState]) -> bool:
    completed = [s for s in states if s.step == WorkflowStep.COMPLETED]
    for state in states:
        if state.step != WorkflowStep.COMPLETED:
            log.error(
                "%s on %s did not complete: %s",
                ",".join(state.domain_set),
                state.site.key,
                (state.error or {}).get("detail", state.step),
            )
    log.info("%d of %d workflow(s) completed", len(completed), len(states))
    return len(completed) == len(states)
