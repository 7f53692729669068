"""Pytest fixtures for kubemaint tests."""

import logging
import random
from collections.abc import Generator

import pytest
import structlog

from kubemaint.core.config import MaintenanceConfig, RuntimeToggles
from kubemaint.execution.supervisor import OperationSupervisor, ResilienceContext
from tests.helpers import FakeClock, FakeKubectlRunner, RecordingSleep


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset CLI option state, structlog and root handlers around each test."""
    from kubemaint.cli import helpers

    helpers.reset_logging_state()
    helpers.reset_session_state()
    helpers.set_output_level(helpers.OutputLevel.NORMAL)
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_state()
    helpers.reset_session_state()
    helpers.set_output_level(helpers.OutputLevel.NORMAL)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host toggles from leaking into tests."""
    for name in (
        "K8S_MAINTENANCE_DEBUG",
        "DRY_RUN",
        "K8S_MAINTENANCE_DRY_RUN",
        "FORCE_OPERATIONS",
        "K8S_SERVICE_ACCOUNT_TOKEN",
        "KUBEMAINT_CONFIG",
        "KUBEMAINT_LOG_LEVEL",
        "KUBEMAINT_LOG_FILE",
        "KUBEMAINT_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def config() -> MaintenanceConfig:
    return MaintenanceConfig()


@pytest.fixture
def context(config: MaintenanceConfig, clock: FakeClock) -> ResilienceContext:
    """A fresh, initialized resilience context driven by the fake clock."""
    ctx = ResilienceContext.from_config(config, RuntimeToggles(), clock=clock)
    ctx.initialize()
    return ctx


@pytest.fixture
def supervisor(
    context: ResilienceContext, sleeper: RecordingSleep, rng: random.Random
) -> OperationSupervisor:
    return OperationSupervisor(context, sleep=sleeper, rng=rng)


@pytest.fixture
def kubectl_runner() -> FakeKubectlRunner:
    return FakeKubectlRunner()
