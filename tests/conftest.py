from __future__ import annotations

import pytest

from driftplan import AvailabilityZone, InstanceGroup, InstancePlanner
from tests.fakes import SMALL, UBUNTU, FakeRepository, RecordingLogger


@pytest.fixture
def az() -> AvailabilityZone:
    return AvailabilityZone(name="foo-az")


@pytest.fixture
def undesired_az() -> AvailabilityZone:
    return AvailabilityZone(name="old-az")


@pytest.fixture
def job(az: AvailabilityZone) -> InstanceGroup:
    return InstanceGroup(
        name="foo-job",
        availability_zones=(az,),
        vm_type=SMALL,
        stemcell=UBUNTU,
    )


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def log() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def planner(repository: FakeRepository, log: RecordingLogger) -> InstancePlanner:
    return InstancePlanner(repository, log)
