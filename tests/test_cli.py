"""Tests for the command-line entry point."""
from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from universalequation.__main__ import build_parser, main  # noqa: E402
from universalequation.logging_config import teardown_logging  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    teardown_logging()


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.max_dimensions == 9
    assert args.cycles == 1
    assert args.plot is None


def test_sweep_to_csv(tmp_path):
    path = tmp_path / "energy.csv"
    assert main(["--max-dimensions", "3", "--csv", str(path), "--log-level", "WARNING"]) == 0
    assert len(path.read_text(encoding="utf-8").splitlines()) == 4


def test_two_cycles_append(tmp_path):
    path = tmp_path / "energy.csv"
    assert main(["--max-dimensions", "2", "--cycles", "2", "--csv", str(path), "--log-level", "ERROR"]) == 0
    assert len(path.read_text(encoding="utf-8").splitlines()) == 5


def test_invalid_configuration():
    assert main(["--max-dimensions", "0", "--log-level", "ERROR"]) == 1


def test_invalid_cycles():
    assert main(["--cycles", "0", "--log-level", "ERROR"]) == 2


def test_missing_preset(tmp_path):
    assert main(["--parameters", str(tmp_path / "nope.json"), "--log-level", "ERROR"]) == 1


def test_plot_to_file(tmp_path):
    path = tmp_path / "cycle.png"
    assert main(["--max-dimensions", "2", "--plot", str(path), "--log-level", "ERROR"]) == 0
    assert path.exists()


def test_log_file(tmp_path):
    log_path = tmp_path / "run.log"
    assert main(["--max-dimensions", "1", "--log-file", str(log_path)]) == 0
    assert "D=1: Observable:" in log_path.read_text(encoding="utf-8")
