from __future__ import annotations

import os
from pathlib import Path

import pytest

from chartserver.utils import env


def test_load_dotenv_populates_environment(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    dotenv = tmp_path / ".env"
    dotenv.write_text(
        "CHART_STORAGE_BACKEND=memory\n# comment\nNOT A PAIR\n"
        "CHART_STORAGE_DIR='/srv/charts'\n"
    )

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(env, "_ENV_LOADED", False)
    # setenv first so monkeypatch restores the variables after load_dotenv.
    for name in ("CHART_STORAGE_BACKEND", "CHART_STORAGE_DIR"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

    env.load_dotenv()

    assert os.environ["CHART_STORAGE_BACKEND"] == "memory"
    assert os.environ["CHART_STORAGE_DIR"] == "/srv/charts"


def test_load_dotenv_is_idempotent(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    dotenv = tmp_path / ".env"
    dotenv.write_text("CHART_STORAGE_BACKEND=first\n")

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(env, "_ENV_LOADED", False)
    monkeypatch.setenv("CHART_STORAGE_BACKEND", "existing")

    env.load_dotenv()
    env.load_dotenv()  # Second call should be a no-op.

    assert os.environ["CHART_STORAGE_BACKEND"] == "existing"


def test_parse_line_helpers() -> None:
    assert env._parse_line("KEY=value") == ("KEY", "value")
    assert env._parse_line('KEY="quoted value"') == ("KEY", "quoted value")
    assert env._parse_line("   # comment") is None
    assert env._parse_line("   ") is None
    assert env._parse_line("INVALID") is None


@pytest.mark.parametrize(
    ("raw", "default", "expected"),
    [
        (None, True, True),
        ("", False, False),
        ("yes", False, True),
        ("0", True, False),
        ("off", True, False),
    ],
)
def test_env_flag(
    monkeypatch: pytest.MonkeyPatch,
    raw: str | None,
    default: bool,
    expected: bool,
) -> None:
    if raw is None:
        monkeypatch.delenv("CHART_TEST_FLAG", raising=False)
    else:
        monkeypatch.setenv("CHART_TEST_FLAG", raw)

    assert env.env_flag("CHART_TEST_FLAG", default) is expected


def test_env_str_returns_first_non_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHART_A", "  ")
    monkeypatch.setenv("CHART_B", " value ")

    assert env.env_str("CHART_A", "CHART_B") == "value"
    assert env.env_str("CHART_MISSING") is None
