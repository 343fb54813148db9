"""Reconciles desired instance slots against persisted instances.

For one instance group the planner decides which existing instance fills
which desired slot, which slots need brand-new instances (and their
indices), which existing instances are obsolete, and which surviving
instance is the bootstrap instance.

Example:
    planner = InstancePlanner(repository)
    plans = planner.plan_job_instances(job, desired, existing, states)
    for plan in plans:
        if plan.changed:
            ...
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from types import TracebackType
from typing import TYPE_CHECKING

from driftplan.config import PlannerConfig
from driftplan.dns import NullDnsManager
from driftplan.observability.logger import logger
from driftplan.observability.logging import setup_logging, teardown_logging
from driftplan.plan import InstancePlan

if TYPE_CHECKING:
    from driftplan.types.core import AgentState
    from driftplan.types.protocols import DnsManager, Instance, InstanceRepository, Logger
    from driftplan.types.spec import (
        DesiredInstance,
        ExistingInstanceRecord,
        InstanceGroup,
        InstanceWithAZ,
    )

__all__ = ["InstancePlanner"]


def _zone_compatible(job: InstanceGroup, existing: InstanceWithAZ) -> bool:
    if not job.availability_zones:
        return existing.az is None
    return existing.az in job.zone_names


def _match(desired: DesiredInstance, candidates: list[InstanceWithAZ]) -> InstanceWithAZ | None:
    """Pick the existing instance that should fill ``desired``.

    ``candidates`` is sorted by index. A candidate holding the requested
    index wins, then the lowest-indexed one in the requested zone, then the
    lowest-indexed one overall.
    """
    if not candidates:
        return None
    if desired.index is not None:
        for candidate in candidates:
            if candidate.model.index == desired.index:
                return candidate
    if desired.az_name is not None:
        for candidate in candidates:
            if candidate.az == desired.az_name:
                return candidate
    return candidates[0]


def _allocate_index(desired: DesiredInstance, taken: set[int]) -> int:
    if desired.index is not None and desired.index >= 0 and desired.index not in taken:
        return desired.index
    index = 0
    while index in taken:
        index += 1
    return index


class InstancePlanner:
    """Builds instance plans for instance groups.

    Args:
        repository: Builds bound instances for new, existing and obsolete slots.
        logger: Log sink, also handed to every repository call.
        config: Flags copied onto every plan (recreate, skip drain, DNS domain).
        dns_manager: DNS record store consulted by plans for DNS drift.

    Used as a context manager, the planner attaches the log sinks described
    by ``config.log`` on entry and removes them on exit::

        with InstancePlanner(repository, config=resolve_config()) as planner:
            plans = planner.plan_job_instances(job, desired, existing, states)
    """

    def __init__(
        self,
        repository: InstanceRepository,
        logger: Logger | None = None,
        *,
        config: PlannerConfig | None = None,
        dns_manager: DnsManager | None = None,
    ) -> None:
        self._repository = repository
        self._log = logger or _default_logger()
        self._config = config or PlannerConfig()
        self._dns_manager = dns_manager or NullDnsManager()
        self._log_handler_ids: list[int] = []

    @property
    def config(self) -> PlannerConfig:
        return self._config

    def __enter__(self) -> InstancePlanner:
        self._log_handler_ids = setup_logging(self._config.log)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._log_handler_ids:
            teardown_logging(self._log_handler_ids)
            self._log_handler_ids = []

    def plan_job_instances(
        self,
        job: InstanceGroup,
        desired_instances: Sequence[DesiredInstance],
        existing_instances: Sequence[InstanceWithAZ],
        states_by_existing_instance: Mapping[ExistingInstanceRecord, AgentState],
    ) -> list[InstancePlan]:
        """Plan every desired slot and existing instance of one instance group.

        Existing instances recorded in a zone the group no longer uses are
        never reused, and their indices are not handed to new slots.

        Returns:
            Existing and new plans in desired-slot order, then obsolete plans
            in input order.
        """
        candidates = sorted(
            (e for e in existing_instances if _zone_compatible(job, e)),
            key=lambda e: e.model.index,
        )
        log = self._log.bind(job=job.name)
        taken = {e.model.index for e in existing_instances}
        assigned: set[int] = set()
        claimed: set[int] = set()

        plans: list[InstancePlan] = []
        for desired in desired_instances:
            match = _match(desired, candidates)
            if match is not None:
                candidates.remove(match)
                claimed.add(id(match))
                index = match.model.index
                # records migrated from several groups may share an index
                if index in assigned:
                    index = _allocate_index(desired, taken)
                    taken.add(index)
                    log.debug(
                        "Index {old} of '{record}' already assigned, using {index}",
                        old=match.model.index,
                        record=match.model,
                        index=index,
                    )
                assigned.add(index)
                desired.assign_index(index)
                state = states_by_existing_instance.get(match.model)
                instance = self._repository.fetch_existing(desired, match.model, state, self._log)
                plans.append(self._build_plan(match.model, desired, instance))
            else:
                index = _allocate_index(desired, taken)
                taken.add(index)
                assigned.add(index)
                desired.assign_index(index)
                instance = self._repository.create(desired, index, self._log)
                plans.append(self._build_plan(None, desired, instance))

        for existing in existing_instances:
            if id(existing) in claimed:
                continue
            instance = self._repository.fetch_obsolete(existing.model, self._log)
            plans.append(self._build_plan(existing.model, None, instance))

        self._elect_bootstrap(job, plans, log)

        log.info(
            "Planned job '{job}': {existing} existing, {new} new, {obsolete} obsolete",
            job=job.name,
            existing=sum(1 for p in plans if p.existing),
            new=sum(1 for p in plans if p.new),
            obsolete=sum(1 for p in plans if p.obsolete),
        )
        return plans

    def plan_obsolete_jobs(
        self,
        jobs: Iterable[InstanceGroup],
        existing_instances: Iterable[ExistingInstanceRecord],
    ) -> list[InstancePlan]:
        """Obsolete plans for records whose instance group left the manifest."""
        known_names: set[str] = set()
        for job in jobs:
            known_names |= job.known_names

        plans: list[InstancePlan] = []
        for record in existing_instances:
            if record.job in known_names:
                continue
            self._log.debug("Instance '{record}' belongs to a removed job", record=record)
            instance = self._repository.fetch_obsolete(record, self._log)
            plans.append(self._build_plan(record, None, instance))
        return plans

    def _build_plan(
        self,
        existing: ExistingInstanceRecord | None,
        desired: DesiredInstance | None,
        instance: Instance,
    ) -> InstancePlan:
        return InstancePlan(
            existing_instance=existing,
            desired_instance=desired,
            instance=instance,
            network_plans=[],
            skip_drain=self._config.skip_drain,
            recreate_deployment=self._config.recreate_deployment,
            logger=self._log,
            dns_manager=self._dns_manager,
            dns_domain=self._config.dns_domain,
        )

    def _elect_bootstrap(self, job: InstanceGroup, plans: list[InstancePlan], log: Logger) -> None:
        candidates = [plan for plan in plans if not plan.obsolete]
        if not candidates:
            log.debug("No surviving instances of job '{job}', no bootstrap assigned", job=job.name)
            return

        claimants = [plan for plan in candidates if plan.instance.bootstrap]
        chosen = min(claimants or candidates, key=lambda plan: plan.desired_instance.index)
        for plan in candidates:
            if plan is chosen:
                plan.desired_instance.mark_as_bootstrap()
            else:
                plan.desired_instance.unmark_as_bootstrap()

        if len(claimants) > 1:
            log.warning(
                "Job '{job}' has {n} bootstrap instances, keeping index {index}",
                job=job.name,
                n=len(claimants),
                index=chosen.desired_instance.index,
            )
        else:
            log.debug(
                "Bootstrap instance for job '{job}' is index {index}",
                job=job.name,
                index=chosen.desired_instance.index,
            )


def _default_logger() -> Logger:
    return logger.bind(component="planner")
