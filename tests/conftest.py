"""Shared test fixtures."""

from __future__ import annotations

from concurrent.futures import Executor
from pathlib import Path
from typing import Any

import pytest
from helpers import SECURE_PAYLOAD, ImmediateExecutor, ManualTimers, StubBackend

from tunnelctl.assessment.assessor import SecurityAssessor
from tunnelctl.catalog.loader import load_preset
from tunnelctl.catalog.models import Endpoint, ServerCatalog
from tunnelctl.session.controller import SessionController


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def catalog() -> ServerCatalog:
    return load_preset("us")


@pytest.fixture
def new_york(catalog: ServerCatalog) -> Endpoint:
    return catalog.get("us-ny")


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def backend() -> StubBackend:
    return StubBackend([SECURE_PAYLOAD])


@pytest.fixture
def make_controller(timers: ManualTimers):
    """Factory for controllers wired to the manual clock."""
    created: list[SessionController] = []

    def _make(
        backend: StubBackend | None = None,
        executor: Executor | None = None,
        **kwargs: Any,
    ) -> SessionController:
        assessor = SecurityAssessor(
            backend if backend is not None else StubBackend([SECURE_PAYLOAD]),
            executor=executor or ImmediateExecutor(),
        )
        controller = SessionController(assessor=assessor, timers=timers, **kwargs)
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.close()
