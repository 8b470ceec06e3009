from collections.abc import Iterator
from typing import Any

import pytest
from structlog.testing import capture_logs

from disflow.commands import CommandBuilder, CommandRegistry


@pytest.fixture
def registry() -> CommandRegistry:
    return CommandRegistry()


@pytest.fixture
def builder(registry: CommandRegistry) -> CommandBuilder:
    return CommandBuilder(registry)


@pytest.fixture
def log_events() -> Iterator[list[dict[str, Any]]]:
    with capture_logs() as events:
        yield events
