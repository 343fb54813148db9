"""Per-slot instance plan and its change detection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from driftplan.constants import (
    DEFAULT_DNS_DOMAIN,
    JOB_STATE_RUNNING,
    Change,
    InstanceState,
    VirtualState,
)
from driftplan.dns import NullDnsManager
from driftplan.errors import UnboundInstanceModelError
from driftplan.network import Network, NetworkPlan, NetworkReservation, NetworkSettings
from driftplan.observability.logger import logger

if TYPE_CHECKING:
    from driftplan.types.core import CloudProperties
    from driftplan.types.protocols import DnsManager, Instance, Logger
    from driftplan.types.spec import DesiredInstance, ExistingInstanceRecord

__all__ = ["InstancePlan"]


class InstancePlan:
    """Pairs an existing record and a desired slot with the bound instance.

    With both sides present the plan is *existing*; without a desired
    instance it is *obsolete*; without an existing record it is *new*.

    ``changes`` is computed on first access and kept for the life of the
    plan. Read it before calling the network plan mutators, or call
    ``recompute_changes`` afterwards.
    """

    def __init__(
        self,
        *,
        existing_instance: ExistingInstanceRecord | None,
        desired_instance: DesiredInstance | None,
        instance: Instance,
        network_plans: list[NetworkPlan] | None = None,
        skip_drain: bool = False,
        recreate_deployment: bool = False,
        logger: Logger | None = None,
        dns_manager: DnsManager | None = None,
        dns_domain: str = DEFAULT_DNS_DOMAIN,
    ) -> None:
        if existing_instance is None and desired_instance is None:
            raise ValueError("InstancePlan needs an existing instance, a desired instance, or both")
        self._existing_instance = existing_instance
        self._desired_instance = desired_instance
        self._instance = instance
        self.network_plans: list[NetworkPlan] = list(network_plans) if network_plans else []
        self._skip_drain = skip_drain
        self._recreate_deployment = recreate_deployment
        self._log = logger or _default_logger()
        self._dns_manager = dns_manager or NullDnsManager()
        self._dns_domain = dns_domain
        self._changes: frozenset[Change] | None = None

    @property
    def existing_instance(self) -> ExistingInstanceRecord | None:
        return self._existing_instance

    @property
    def desired_instance(self) -> DesiredInstance | None:
        return self._desired_instance

    @property
    def instance(self) -> Instance:
        return self._instance

    @property
    def skip_drain(self) -> bool:
        return self._skip_drain

    @property
    def recreate_deployment(self) -> bool:
        return self._recreate_deployment

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    @property
    def obsolete(self) -> bool:
        return self._desired_instance is None

    @property
    def new(self) -> bool:
        return self._existing_instance is None

    @property
    def existing(self) -> bool:
        return not self.new and not self.obsolete

    @property
    def index(self) -> int | None:
        if self._desired_instance is not None and self._desired_instance.index is not None:
            return self._desired_instance.index
        if self._existing_instance is not None:
            return self._existing_instance.index
        return None

    @property
    def desired_az_name(self) -> str | None:
        return self._desired_instance.az_name if self._desired_instance else None

    # -------------------------------------------------------------------------
    # Changes
    # -------------------------------------------------------------------------

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    @property
    def changes(self) -> frozenset[Change]:
        """Every drift category detected for this slot."""
        if self._changes is None:
            self._changes = self._compute_changes()
        return self._changes

    def recompute_changes(self) -> frozenset[Change]:
        self._changes = None
        return self.changes

    def _compute_changes(self) -> frozenset[Change]:
        checks = (
            (Change.RESTART, self.needs_restart),
            (Change.RECREATE, self.needs_recreate),
            (Change.CLOUD_PROPERTIES, self._instance.cloud_properties_changed),
            (Change.VM_TYPE, self._vm_type_changed),
            (Change.STEMCELL, self._stemcell_changed),
            (Change.ENV, self._env_changed),
            (Change.NETWORK, self.networks_changed),
            (Change.PACKAGES, self._instance.packages_changed),
            (Change.PERSISTENT_DISK, self.persistent_disk_changed),
            (Change.CONFIGURATION, self._instance.configuration_changed),
            (Change.JOB, self._instance.job_changed),
            (Change.STATE, self.state_changed),
            (Change.DNS, self.dns_changed),
            (Change.TRUSTED_CERTS, self._instance.trusted_certs_changed),
        )
        return frozenset(change for change, check in checks if check())

    def needs_restart(self) -> bool:
        if self._desired_instance is None:
            return False
        return self._desired_instance.virtual_state == VirtualState.RESTART

    def needs_recreate(self) -> bool:
        if self._recreate_deployment:
            self._log.debug("needs_recreate: deployment is configured with \"recreate\" state")
            return True
        if self._desired_instance is None:
            return False
        return self._desired_instance.virtual_state == VirtualState.RECREATE

    def needs_shutting_down(self) -> bool:
        if self.obsolete:
            return True
        return (
            self._vm_type_changed()
            or self._stemcell_changed()
            or self._env_changed()
            or self.needs_recreate()
        )

    def persistent_disk_changed(self) -> bool:
        if self._existing_instance is not None and self.obsolete:
            return self._existing_instance.persistent_disk is not None

        disk_type = self._instance.job.persistent_disk_type
        new_disk_size = disk_type.disk_size if disk_type else 0
        new_cloud_properties = dict(disk_type.cloud_properties) if disk_type else {}

        disk_size = self._disk_size()
        if new_disk_size != disk_size:
            self._log_changes("persistent_disk_changed", f"disk size: {disk_size}", f"disk size: {new_disk_size}")
            return True

        cloud_properties = self._disk_cloud_properties()
        if new_disk_size != 0 and new_cloud_properties != cloud_properties:
            self._log_changes("persistent_disk_changed", cloud_properties, new_cloud_properties)
            return True
        return False

    def networks_changed(self) -> bool:
        if not any(plan.desired or plan.obsolete for plan in self.network_plans):
            return False
        previous = {} if self._existing_instance is None else dict(self._existing_instance.apply_spec.networks)
        self._log_changes("networks_changed", previous, self.network_settings().to_dict())
        return True

    def state_changed(self) -> bool:
        desired = self._desired_instance
        if desired is None:
            return False

        existing = self._existing_instance
        if (
            desired.state == InstanceState.DETACHED
            and existing is not None
            and existing.state != InstanceState.DETACHED
        ):
            self._log.debug("Instance '{instance}' needs to be detached", instance=self._instance)
            return True

        state = self._instance.state
        job_state = self._instance.current_job_state
        if (state == InstanceState.STOPPED and job_state == JOB_STATE_RUNNING) or (
            state == InstanceState.STARTED and job_state != JOB_STATE_RUNNING
        ):
            self._log.debug(
                "Instance state is '{state}' and agent reports '{job_state}'",
                state=state,
                job_state=job_state,
            )
            return True
        return False

    def dns_changed(self) -> bool:
        if not self._dns_manager.dns_enabled():
            return False

        for name, ip in self.network_settings().dns_record_info():
            if self._dns_manager.find_dns_record(name, ip) is None:
                self._log.debug(
                    "dns_changed: the requested dns record with name '{name}' and ip '{ip}' was not found",
                    name=name,
                    ip=ip,
                )
                return True
        return False

    def _vm_type_changed(self) -> bool:
        existing = self._existing_instance
        if existing is None:
            return False
        applied = existing.apply_spec.vm_type
        if self._instance.vm_type != applied:
            self._log_changes(
                "vm_type_changed",
                applied.spec if applied else None,
                self._instance.vm_type.spec,
            )
            return True
        return False

    def _stemcell_changed(self) -> bool:
        existing = self._existing_instance
        if existing is None:
            return False
        applied = existing.apply_spec.stemcell
        stemcell = self._instance.stemcell
        if applied is None or stemcell.name != applied.name:
            self._log_changes("stemcell_changed", applied.name if applied else None, stemcell.name)
            return True
        if stemcell.version != applied.version:
            self._log_changes("stemcell_changed", f"version: {applied.version}", f"version: {stemcell.version}")
            return True
        return False

    def _env_changed(self) -> bool:
        existing = self._existing_instance
        if existing is None or existing.env is None:
            return False
        env = self._instance.job.env
        if env != existing.env:
            self._log_changes("env_changed", dict(existing.env.spec), dict(env.spec))
            return True
        return False

    def _bound_model(self) -> ExistingInstanceRecord:
        model = self._instance.model
        if model is None:
            raise UnboundInstanceModelError(self._instance)
        return model

    def _disk_size(self) -> int:
        disk = self._bound_model().persistent_disk
        return disk.size if disk else 0

    def _disk_cloud_properties(self) -> CloudProperties:
        disk = self._bound_model().persistent_disk
        return dict(disk.cloud_properties) if disk else {}

    def _log_changes(self, check: str, old: Any, new: Any) -> None:
        self._log.debug(
            "{check} changed FROM: {old} TO: {new} on instance {instance}",
            check=check,
            old=old,
            new=new,
            instance=self._existing_instance,
        )

    # -------------------------------------------------------------------------
    # Networks
    # -------------------------------------------------------------------------

    def network_settings(self) -> NetworkSettings:
        instance = self._instance
        return NetworkSettings.build(
            job_name=instance.job.name,
            deployment_name=instance.deployment_name,
            default_network=instance.job.default_network,
            reservations=(plan.reservation for plan in self.network_plans if not plan.obsolete),
            current_state=instance.current_state,
            availability_zone=instance.availability_zone,
            index=instance.index,
            uuid=instance.uuid,
            dns_domain=self._dns_domain,
        )

    def network_settings_hash(self) -> dict[str, Any]:
        settings = self.network_settings().to_dict()
        if (self.obsolete or not settings) and self._existing_instance is not None:
            return dict(self._existing_instance.apply_spec.networks)
        return settings

    def network_addresses(self) -> dict[str, dict[str, str]]:
        return self.network_settings().network_addresses()

    def mark_desired_network_plans_as_existing(self) -> None:
        for plan in self.network_plans:
            plan.mark_existing()

    def release_obsolete_network_plans(self) -> None:
        self.network_plans[:] = [plan for plan in self.network_plans if not plan.obsolete]

    def release_all_network_plans(self) -> None:
        self.network_plans.clear()

    def network_plan_for_network(self, network: Network) -> NetworkPlan | None:
        return next((plan for plan in self.network_plans if plan.reservation.network == network), None)

    def find_existing_reservation_for_network(self, network: Network) -> NetworkReservation | None:
        return self._instance.existing_network_reservations.find_for_network(network)

    def __repr__(self) -> str:
        kind = "new" if self.new else "obsolete" if self.obsolete else "existing"
        return f"InstancePlan({kind}, index={self.index}, instance={self._instance!r})"


def _default_logger() -> Logger:
    return logger.bind(component="instance_plan")
