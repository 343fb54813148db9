from __future__ import annotations

import pytest

from driftplan import (
    AvailabilityZone,
    DesiredInstance,
    ExistingInstanceRecord,
    InMemoryDnsManager,
    InstanceGroup,
    InstancePlanner,
    InstanceWithAZ,
    PlannerConfig,
)
from driftplan.observability import LogConfig, logger
from tests.fakes import ExplodingRepository, FakeRepository, RecordingLogger

pytestmark = [pytest.mark.xdist_group("unit")]


def _record(index: int, job: str = "foo-job", **kwargs) -> ExistingInstanceRecord:
    return ExistingInstanceRecord(job=job, index=index, uuid=f"uuid-{job}-{index}", **kwargs)


def _desired(job: InstanceGroup, az: AvailabilityZone | None = None, index: int | None = None) -> DesiredInstance:
    return DesiredInstance(job=job, state="started", deployment="cf", az=az, index=index)


def _non_obsolete_indices(plans) -> list[int]:
    return [p.desired_instance.index for p in plans if not p.obsolete]


class TestPlanJobInstances:
    def test_job_without_azs_reuses_existing_instance_without_az(self, planner, repository, log):
        job = InstanceGroup(name="foo-job")
        record = _record(0)
        desired = _desired(job)
        state = {"foo": "bar"}

        plans = planner.plan_job_instances(job, [desired], [InstanceWithAZ(record, None)], {record: state})

        assert len(plans) == 1
        plan = plans[0]
        assert plan.existing
        assert not plan.new
        assert not plan.obsolete
        assert plan.existing_instance is record
        assert plan.desired_instance is desired
        assert desired.az is None
        assert desired.bootstrap is True
        assert desired.index == 0
        assert repository.calls_to("fetch_existing") == [(desired, record, state, log)]

    def test_creates_existing_plan_for_instance_in_allowed_az(self, planner, repository, job, az, log):
        record = _record(0)
        desired = _desired(job)
        state = {"foo": "bar"}

        plans = planner.plan_job_instances(job, [desired], [InstanceWithAZ(record, az.name)], {record: state})

        assert len(plans) == 1
        assert plans[0].existing
        assert plans[0].existing_instance is record
        assert plans[0].instance.current_state == state
        assert desired.bootstrap is True
        assert repository.calls_to("fetch_existing") == [(desired, record, state, log)]

    def test_creates_new_plan_when_nothing_exists(self, planner, repository, job, log):
        desired = _desired(job)

        plans = planner.plan_job_instances(job, [desired], [], {})

        assert len(plans) == 1
        plan = plans[0]
        assert plan.new
        assert not plan.obsolete
        assert plan.existing_instance is None
        assert plan.desired_instance is desired
        assert desired.index == 0
        assert desired.bootstrap is True
        assert repository.calls_to("create") == [(desired, 0, log)]

    def test_missing_agent_state_is_passed_as_none(self, planner, repository, job, az):
        record = _record(0)

        planner.plan_job_instances(job, [_desired(job)], [InstanceWithAZ(record, az.name)], {})

        (_, _, state, _), = repository.calls_to("fetch_existing")
        assert state is None

    def test_empty_job_yields_no_plans(self, planner, repository, job):
        assert planner.plan_job_instances(job, [], [], {}) == []
        assert repository.calls == []

    def test_plans_new_existing_and_obsolete_instances(self, planner, repository, job, az, undesired_az, log):
        kept = _record(77)
        dropped = _record(0)
        first = _desired(job)
        second = _desired(job, az=az, index=77)
        states = {dropped: {"foo": "bar"}, kept: {"bar": "baz"}}

        plans = planner.plan_job_instances(
            job,
            [first, second],
            [InstanceWithAZ(dropped, undesired_az.name), InstanceWithAZ(kept, az.name)],
            states,
        )

        assert len(plans) == 3
        existing_plan, new_plan, obsolete_plan = plans
        assert existing_plan.existing
        assert existing_plan.existing_instance is kept
        assert existing_plan.desired_instance is first
        assert first.index == 77

        assert new_plan.new
        assert new_plan.desired_instance is second
        assert second.index == 1

        assert obsolete_plan.obsolete
        assert obsolete_plan.desired_instance is None
        assert obsolete_plan.existing_instance is dropped

        assert repository.calls_to("fetch_existing") == [(first, kept, {"bar": "baz"}, log)]
        assert repository.calls_to("create") == [(second, 1, log)]
        assert repository.calls_to("fetch_obsolete") == [(dropped, log)]

    def test_prefers_existing_instance_with_requested_index(self, planner, job, az):
        low = _record(0)
        high = _record(3)
        desired = _desired(job, index=3)

        plans = planner.plan_job_instances(
            job, [desired], [InstanceWithAZ(low, az.name), InstanceWithAZ(high, az.name)], {}
        )

        assert plans[0].existing_instance is high
        assert plans[1].obsolete
        assert plans[1].existing_instance is low

    def test_prefers_existing_instance_in_requested_az(self, planner):
        z1 = AvailabilityZone(name="z1")
        z2 = AvailabilityZone(name="z2")
        job = InstanceGroup(name="foo-job", availability_zones=(z1, z2))
        in_z1 = _record(0)
        in_z2 = _record(1)
        desired = _desired(job, az=z2)

        plans = planner.plan_job_instances(
            job, [desired], [InstanceWithAZ(in_z1, "z1"), InstanceWithAZ(in_z2, "z2")], {}
        )

        assert plans[0].existing_instance is in_z2
        assert desired.index == 1
        assert plans[1].existing_instance is in_z1
        assert plans[1].obsolete

    def test_falls_back_to_lowest_index(self, planner, job, az):
        records = [_record(4), _record(2), _record(9)]
        desired = _desired(job)

        plans = planner.plan_job_instances(job, [desired], [InstanceWithAZ(r, az.name) for r in records], {})

        assert plans[0].existing_instance is records[1]
        assert [p.existing_instance for p in plans[1:]] == [records[0], records[2]]

    def test_requested_index_is_used_for_new_instance_when_free(self, planner, repository, job, log):
        desired = _desired(job, index=5)

        planner.plan_job_instances(job, [desired], [], {})

        assert repository.calls_to("create") == [(desired, 5, log)]
        assert desired.index == 5

    def test_colliding_requested_indices_still_get_unique_indices(self, planner, job):
        first = _desired(job, index=2)
        second = _desired(job, index=2)

        planner.plan_job_instances(job, [first, second], [], {})

        assert first.index == 2
        assert second.index == 0

    def test_obsolete_plans_come_last_in_input_order(self, planner, job, az, undesired_az):
        stale = [_record(5), _record(3)]
        desired = [_desired(job), _desired(job)]

        plans = planner.plan_job_instances(job, desired, [InstanceWithAZ(r, undesired_az.name) for r in stale], {})

        assert [p.new for p in plans] == [True, True, False, False]
        assert [p.existing_instance for p in plans[2:]] == stale
        assert _non_obsolete_indices(plans) == [0, 1]

    def test_repository_failure_propagates(self, job, log):
        planner = InstancePlanner(ExplodingRepository(), log)

        with pytest.raises(RuntimeError, match="cloud unavailable"):
            planner.plan_job_instances(job, [_desired(job)], [], {})

    def test_logs_summary(self, planner, job, log):
        planner.plan_job_instances(job, [_desired(job)], [], {})

        assert "Planned job 'foo-job': 0 existing, 1 new, 0 obsolete" in log.messages("info")
        assert log.extras_of("Planned job") == {"job": "foo-job"}


class TestAzMigration:
    def test_does_not_reuse_index_of_instance_in_removed_az(self, planner, repository, job, undesired_az, log):
        first = _record(0)
        second = _record(1)
        desired = _desired(job)

        plans = planner.plan_job_instances(
            job,
            [desired],
            [InstanceWithAZ(first, undesired_az.name), InstanceWithAZ(second, undesired_az.name)],
            {},
        )

        assert len(plans) == 3
        new_plan, obsolete_plan, another_obsolete_plan = plans
        assert new_plan.new
        assert not new_plan.obsolete
        assert desired.index == 2
        assert repository.calls_to("create") == [(desired, 2, log)]

        assert obsolete_plan.obsolete
        assert not obsolete_plan.new
        assert obsolete_plan.existing_instance is first
        assert another_obsolete_plan.obsolete
        assert another_obsolete_plan.existing_instance is second

    def test_new_indices_start_after_migrated_instances(self, planner, job, undesired_az):
        stale = [_record(i) for i in range(3)]
        desired = [_desired(job) for _ in range(4)]

        plans = planner.plan_job_instances(job, desired, [InstanceWithAZ(r, undesired_az.name) for r in stale], {})

        assert _non_obsolete_indices(plans) == [3, 4, 5, 6]
        assert sum(1 for p in plans if p.obsolete) == 3

    def test_instance_without_az_is_obsolete_once_job_uses_azs(self, planner, job):
        record = _record(0)

        plans = planner.plan_job_instances(job, [_desired(job)], [InstanceWithAZ(record, None)], {})

        assert plans[0].new
        assert plans[1].obsolete
        assert plans[1].existing_instance is record

    def test_migrated_records_sharing_an_index_get_requested_index(self, planner, repository, az):
        job = InstanceGroup(name="etcd", availability_zones=(az,), migrated_from=("etcd_z1", "etcd_z2"))
        z1 = _record(0, job="etcd_z1", bootstrap=True)
        z2 = _record(0, job="etcd_z2", bootstrap=True)
        desired = [_desired(job, az=az, index=0), _desired(job, az=az, index=1)]

        plans = planner.plan_job_instances(job, desired, [InstanceWithAZ(z1, az.name), InstanceWithAZ(z2, az.name)], {})

        assert [p.existing_instance for p in plans] == [z1, z2]
        assert all(p.existing for p in plans)
        assert _non_obsolete_indices(plans) == [0, 1]
        assert repository.calls_to("fetch_existing")[1][0].index == 1
        assert [d.bootstrap for d in desired] == [True, False]

    def test_migrated_records_sharing_an_index_get_lowest_free_index(self, planner, az):
        job = InstanceGroup(name="etcd", availability_zones=(az,), migrated_from=("etcd_z1", "etcd_z2"))
        records = [_record(0, job="etcd_z1"), _record(0, job="etcd_z2"), _record(1, job="etcd_z2")]
        desired = [_desired(job, az=az) for _ in records]

        plans = planner.plan_job_instances(job, desired, [InstanceWithAZ(r, az.name) for r in records], {})

        assert [p.existing_instance for p in plans] == records
        assert _non_obsolete_indices(plans) == [0, 2, 1]


class TestBootstrap:
    def test_keeps_existing_bootstrap_instance(self, planner, job, az):
        record = _record(0, bootstrap=True)
        desired = _desired(job)

        plans = planner.plan_job_instances(job, [desired], [InstanceWithAZ(record, az.name)], {record: {}})

        assert len(plans) == 1
        assert plans[0].instance.bootstrap
        assert desired.bootstrap is True

    def test_bootstrap_stays_on_higher_index(self, planner, job, az):
        low = _record(0)
        high = _record(1, bootstrap=True)
        desired = [_desired(job, index=0), _desired(job, index=1)]

        planner.plan_job_instances(job, desired, [InstanceWithAZ(low, az.name), InstanceWithAZ(high, az.name)], {})

        assert [d.bootstrap for d in desired] == [False, True]

    def test_promotes_lowest_index_when_bootstrap_instance_is_obsolete(self, job, az, undesired_az, log):
        repository = FakeRepository(bootstrap_overrides={1: True})
        planner = InstancePlanner(repository, log)
        old_bootstrap = _record(0, bootstrap=True)
        survivor = _record(1)
        survivor_slot = DesiredInstance(job=job, deployment="cf", az=az, is_existing=True, index=1)
        extra_slot = _desired(job)

        plans = planner.plan_job_instances(
            job,
            [survivor_slot, extra_slot],
            [InstanceWithAZ(old_bootstrap, undesired_az.name), InstanceWithAZ(survivor, az.name)],
            {},
        )

        assert len(plans) == 3
        existing_plan, new_plan, obsolete_plan = plans
        assert obsolete_plan.obsolete
        assert obsolete_plan.existing_instance is old_bootstrap
        assert existing_plan.existing_instance is survivor
        assert survivor_slot.bootstrap is True
        assert extra_slot.bootstrap is False
        assert extra_slot.index == 2

    def test_promotes_lowest_index_without_any_claimant(self, planner, job, az, undesired_az):
        old_bootstrap = _record(0, bootstrap=True)
        survivors = [_record(4), _record(2)]
        desired = [_desired(job, index=4), _desired(job, index=2)]

        planner.plan_job_instances(
            job,
            desired,
            [InstanceWithAZ(old_bootstrap, undesired_az.name), *(InstanceWithAZ(r, az.name) for r in survivors)],
            {},
        )

        assert [d.bootstrap for d in desired] == [False, True]

    def test_several_claimants_keep_only_lowest_index(self, planner, job, az, log):
        first = _record(0, job="foo-job-z1", bootstrap=True)
        second = _record(0, job="foo-job-z2", bootstrap=True)
        desired = [
            DesiredInstance(job=job, deployment="cf", az=az, is_existing=True, index=0),
            DesiredInstance(job=job, deployment="cf", az=az, is_existing=True, index=1),
        ]

        plans = planner.plan_job_instances(
            job, desired, [InstanceWithAZ(first, az.name), InstanceWithAZ(second, az.name)], {}
        )

        assert len(plans) == 2
        assert sorted(_non_obsolete_indices(plans)) == [0, 1]
        bootstrap_plans = [p for p in plans if p.desired_instance.bootstrap]
        assert len(bootstrap_plans) == 1
        assert bootstrap_plans[0].existing_instance is first
        assert bootstrap_plans[0].desired_instance.index == 0
        assert any("2 bootstrap instances" in m for m in log.messages("warning"))

    def test_assigns_lowest_index_when_no_bootstrap_exists(self, planner, job):
        desired = [_desired(job), _desired(job)]

        plans = planner.plan_job_instances(job, desired, [], {})

        assert len(plans) == 2
        assert plans[0].new
        assert plans[0].existing_instance is None
        assert [d.bootstrap for d in desired] == [True, False]

    def test_caller_supplied_bootstrap_flag_is_overridden(self, planner, job):
        desired = [_desired(job), _desired(job)]
        desired[1].bootstrap = True

        planner.plan_job_instances(job, desired, [], {})

        assert [d.bootstrap for d in desired] == [True, False]

    def test_no_bootstrap_when_all_instances_are_obsolete(self, planner, job, undesired_az):
        record = _record(0, bootstrap=True)

        plans = planner.plan_job_instances(job, [], [InstanceWithAZ(record, undesired_az.name)], {record: {}})

        assert len(plans) == 1
        assert plans[0].obsolete
        assert plans[0].desired_instance is None

    def test_exactly_one_bootstrap_across_mixed_pass(self, planner, job, az, undesired_az):
        existing = [
            InstanceWithAZ(_record(0), undesired_az.name),
            InstanceWithAZ(_record(1), az.name),
            InstanceWithAZ(_record(2, bootstrap=True), az.name),
            InstanceWithAZ(_record(3), az.name),
        ]
        desired = [_desired(job) for _ in range(5)]

        plans = planner.plan_job_instances(job, desired, existing, {})

        live = [p for p in plans if not p.obsolete]
        indices = _non_obsolete_indices(plans)
        assert len(indices) == len(set(indices)) == 5
        assert [p.desired_instance.index for p in live if p.desired_instance.bootstrap] == [2]


class TestPlannerConfig:
    def test_flags_are_copied_onto_plans(self, repository, job, log):
        dns = InMemoryDnsManager()
        config = PlannerConfig(recreate_deployment=True, skip_drain=True, dns_domain="internal")
        planner = InstancePlanner(repository, log, config=config, dns_manager=dns)

        (plan,) = planner.plan_job_instances(job, [_desired(job)], [], {})

        assert plan.recreate_deployment is True
        assert plan.skip_drain is True
        assert plan.network_settings().dns_domain == "internal"
        assert plan.network_plans == []

    def test_defaults(self, planner):
        assert planner.config == PlannerConfig()

    def test_context_manager_applies_log_config(self, repository, job, tmp_path):
        path = tmp_path / "driftplan.log"
        config = PlannerConfig(log=LogConfig(level="DEBUG", file=str(path)))

        with InstancePlanner(repository, config=config) as planner:
            planner.plan_job_instances(job, [_desired(job)], [], {})

        text = path.read_text()
        assert "Planned job 'foo-job': 0 existing, 1 new, 0 obsolete" in text
        assert "job=foo-job" in text

    def test_sinks_are_removed_on_exit(self, repository, job, tmp_path):
        path = tmp_path / "driftplan.log"
        config = PlannerConfig(log=LogConfig(level="INFO", file=str(path)))

        with InstancePlanner(repository, config=config) as planner:
            pass
        logger.enable()
        planner.plan_job_instances(job, [_desired(job)], [], {})

        assert path.read_text() == ""

    def test_plain_use_attaches_no_sinks(self, repository, job, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        InstancePlanner(repository).plan_job_instances(job, [_desired(job)], [], {})

        assert not (tmp_path / ".driftplan").exists()


class TestPlanObsoleteJobs:
    def test_returns_plans_for_records_of_removed_jobs(self, planner, repository, job, log):
        kept = _record(0, job="foo-job")
        removed = _record(1, job="bar-job")

        plans = planner.plan_obsolete_jobs([job], [kept, removed])

        assert len(plans) == 1
        plan = plans[0]
        assert plan.obsolete
        assert plan.desired_instance is None
        assert plan.existing_instance is removed
        assert repository.calls_to("fetch_obsolete") == [(removed, log)]

    def test_keeps_input_order(self, planner, job):
        removed = [_record(3, job="b"), _record(0, job="a"), _record(1, job="b")]

        plans = planner.plan_obsolete_jobs([job], removed)

        assert [p.existing_instance for p in plans] == removed

    def test_records_of_migrated_jobs_are_not_obsolete(self, planner, az):
        job = InstanceGroup(name="etcd", availability_zones=(az,), migrated_from=("etcd_z1", "etcd_z2"))
        records = [_record(0, job="etcd_z1"), _record(0, job="etcd_z2"), _record(0, job="gone")]

        plans = planner.plan_obsolete_jobs([job], records)

        assert [p.existing_instance for p in plans] == [records[2]]

    def test_no_jobs_makes_everything_obsolete(self, planner):
        records = [_record(0), _record(1)]

        assert len(planner.plan_obsolete_jobs([], records)) == 2


def test_default_logger_is_used_without_explicit_logger(job):
    repository = FakeRepository()
    planner = InstancePlanner(repository)

    planner.plan_job_instances(job, [_desired(job)], [], {})

    (_, _, logger), = repository.calls_to("create")
    assert logger is not None
    assert not isinstance(logger, RecordingLogger)
