import random
from datetime import datetime
from pathlib import Path

import pytest

from disflow.resources import load_resources
from disflow.utils import RandomTools, TimeTools

NOW = datetime(2024, 1, 1, 12, 0, 30)


@pytest.fixture
def tools() -> RandomTools:
    return RandomTools(random.Random(1234))


def test_number_is_inclusive(tools: RandomTools) -> None:
    values = {tools.number(1, 3) for _ in range(200)}
    assert values == {1, 2, 3}
    assert 5 <= tools.number(10, 5) <= 10


def test_string_range_and_list(tools: RandomTools) -> None:
    assert {tools.string("A to C") for _ in range(100)} == {"A", "B", "C"}
    assert tools.string("red, green ,blue") in {"red", "green", "blue"}
    assert tools.string("solo") == "solo"


def test_string_rejects_empty_pattern(tools: RandomTools) -> None:
    with pytest.raises(ValueError, match="Invalid pattern"):
        tools.string(" , ")


def test_pick_and_boolean(tools: RandomTools) -> None:
    assert tools.pick(["only"]) == "only"
    assert {tools.boolean() for _ in range(50)} == {True, False}
    with pytest.raises(ValueError):
        tools.pick([])


@pytest.fixture
def clock() -> TimeTools:
    return TimeTools(now=lambda: NOW)


def test_parse_relative(clock: TimeTools) -> None:
    assert clock.parse("+15") == datetime(2024, 1, 1, 12, 15, 30)


def test_parse_absolute_rolls_to_tomorrow(clock: TimeTools) -> None:
    assert clock.parse("13.05") == datetime(2024, 1, 1, 13, 5)
    assert clock.parse("11.30") == datetime(2024, 1, 2, 11, 30)


@pytest.mark.parametrize("value", ["+abc", "25.00", "12.75", "noon", "12:30"])
def test_parse_rejects_bad_input(clock: TimeTools, value: str) -> None:
    with pytest.raises(ValueError):
        clock.parse(value)


def test_format(clock: TimeTools) -> None:
    assert clock.format(datetime(2024, 3, 9, 7, 5)) == "09.03.2024 07:05"


def test_load_resources(tmp_path: Path, log_events) -> None:
    (tmp_path / "vals.toml").write_text('prefix = "!"\n[limits]\nmax = 3\n', encoding="utf-8")
    (tmp_path / "emoji.toml").write_text("ok = \n", encoding="utf-8")

    resources = load_resources(tmp_path)

    assert resources.values == {"prefix": "!", "limits": {"max": 3}}
    assert resources.emoji == {}
    assert any(event["event"] == "resources.malformed" for event in log_events)


def test_load_resources_missing_files(tmp_path: Path) -> None:
    resources = load_resources(tmp_path)
    assert resources.values == {}
    assert resources.emoji == {}
