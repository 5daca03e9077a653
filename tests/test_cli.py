# tests/test_cli.py
from __future__ import annotations

import json
import os
import signal
import sys
import threading
from pathlib import Path

import pytest

from batchrun.cli import commands, run_cli
from batchrun.cli.commands import exit_code
from batchrun.runner import BatchSummary
from batchrun.tasks import CommandTaskFactory


def _py(code: str) -> str:
    exe = str(Path(sys.executable))
    # This returns a shell command string. JSON will escape it safely.
    return f'"{exe}" -c "{code}"'


def _write_json_config(path: Path, batch: dict) -> None:
    path.write_text(json.dumps({"batch": batch}), encoding="utf-8")


def test_show_prints_resolved_config(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    _write_json_config(
        cfg,
        {
            "total": 4,
            "command": "echo {number}",
            "env": {"B": "2", "A": "1"},
            "require_env": ["PAYEE_KEY"],
        },
    )

    code = run_cli(["--config", str(cfg), "show"])
    out = capsys.readouterr().out.splitlines()

    assert code == 0
    assert out == [
        "total: 4",
        "concurrency: 4",
        "command: echo {number}",
        "label: task #{number}",
        "env: A B",
        "working_dir:",
        "require_env: PAYEE_KEY",
        "progress_interval: 0.1",
    ]


def test_run_executes_every_task_and_reports(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    _write_json_config(
        cfg,
        {
            "total": 5,
            "concurrency": 2,
            "command": _py(
                f"open(r'{out_dir}' + '/' + str({{index}}), 'w').write('ok')"
            ),
        },
    )

    code = run_cli(["--config", str(cfg), "run", "--no-progress"])
    out = capsys.readouterr().out

    assert code == 0
    assert sorted(p.name for p in out_dir.iterdir()) == ["0", "1", "2", "3", "4"]
    assert "Total attempted: 5" in out
    assert "Successful: 5" in out
    assert "Failed: 0" in out
    assert "Process aborted" not in out


def test_overrides_change_total_and_concurrency(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    _write_json_config(cfg, {"total": 50, "command": _py("raise SystemExit(0)")})

    code = run_cli(
        ["--config", str(cfg), "run", "--total", "3", "--concurrency", "1", "--no-progress"]
    )
    out = capsys.readouterr().out

    assert code == 0
    assert "Total attempted: 3" in out


def test_progress_bar_is_drawn_by_default(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    _write_json_config(cfg, {"total": 2, "command": _py("raise SystemExit(0)")})

    code = run_cli(["--config", str(cfg), "run"])
    out = capsys.readouterr().out

    assert code == 0
    assert "S: 2, F: 0, IP: 0 | 2/2" in out


def test_run_failure_returns_1(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    _write_json_config(
        cfg,
        {
            "total": 3,
            "concurrency": 1,
            "label": "request-{number}",
            "command": _py(
                "import os, sys; "
                "i = os.environ['BATCHRUN_INDEX']; "
                "sys.stderr.write('denied') if i == '1' else None; "
                "raise SystemExit(5 if i == '1' else 0)"
            ),
        },
    )

    code = run_cli(["--config", str(cfg), "run", "--no-progress"])
    out = capsys.readouterr().out

    assert code == 1
    assert "FAIL request-2: denied" in out
    assert "Successful: 2" in out
    assert "Failed: 1" in out


def test_missing_required_env_returns_2(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("BATCHRUN_TEST_KEY", raising=False)
    cfg = tmp_path / "batchrun.json"
    marker = tmp_path / "ran.txt"
    _write_json_config(
        cfg,
        {
            "total": 2,
            "command": _py(f"open(r'{marker}', 'w').write('x')"),
            "require_env": ["BATCHRUN_TEST_KEY"],
        },
    )

    code = run_cli(["--config", str(cfg), "run", "--no-progress"])
    captured = capsys.readouterr()

    assert code == 2
    assert "BATCHRUN_TEST_KEY" in captured.err
    assert "Batch Summary" not in captured.out
    assert not marker.exists()


def test_invalid_config_path_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    missing = tmp_path / "missing.json"

    code = run_cli(["--config", str(missing), "show"])
    captured = capsys.readouterr()

    assert code == 2
    assert captured.err != ""


def test_exit_codes_follow_summary() -> None:
    clean = BatchSummary(total=2, succeeded=2, failed=0, cancelled=False)
    failed = BatchSummary(total=2, succeeded=1, failed=1, cancelled=False)
    cancelled = BatchSummary(total=2, succeeded=1, failed=0, cancelled=True)
    crashed = BatchSummary(
        total=2, succeeded=0, failed=0, cancelled=True, error=RuntimeError("x")
    )

    assert exit_code(clean) == 0
    assert exit_code(failed) == 1
    assert exit_code(cancelled) == 130
    assert exit_code(crashed) == 1


def test_total_override_with_fixed_label_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    marker = tmp_path / "ran.txt"
    _write_json_config(
        cfg,
        {
            "total": 1,
            "label": "job",
            "command": _py(f"open(r'{marker}', 'a').write('x')"),
        },
    )

    code = run_cli(["--config", str(cfg), "run", "--total", "3", "--no-progress"])
    captured = capsys.readouterr()

    assert code == 2
    assert "job" in captured.err
    assert "Batch Summary" not in captured.out
    assert not marker.exists()


def test_total_override_without_concurrency_runs_everything_at_once(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    _write_json_config(cfg, {"total": 2, "command": _py("raise SystemExit(0)")})

    code = run_cli(["--config", str(cfg), "show"])
    assert code == 0
    assert "concurrency: 2" in capsys.readouterr().out

    config = commands.load_config(cfg).with_overrides(total=6)
    driver = commands.build_driver(config, progress=False)

    assert driver.total == 6
    assert driver.concurrency == 6


def test_interrupt_stops_new_tasks_and_reports_abort(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "batchrun.json"
    _write_json_config(
        cfg,
        {
            "total": 6,
            "concurrency": 2,
            "command": _py("import time; time.sleep(2)"),
        },
    )

    timer = threading.Timer(0.5, os.kill, args=(os.getpid(), signal.SIGINT))
    timer.start()
    try:
        code = run_cli(["--config", str(cfg), "run", "--no-progress"])
    finally:
        timer.cancel()
    out = capsys.readouterr().out

    assert code == 130
    assert "Total attempted: 2" in out
    assert "Successful: 2" in out
    assert "Process aborted. 4 tasks were not attempted." in out
    assert out.count("--- Batch Summary ---") == 1


def test_unexpected_error_is_reported_once(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    class BrokenFactory(CommandTaskFactory):
        def __call__(self, index: int):
            if index == 1:
                raise RuntimeError("descriptor could not be built")
            return super().__call__(index)

    monkeypatch.setattr(commands, "CommandTaskFactory", BrokenFactory)
    cfg = tmp_path / "batchrun.json"
    _write_json_config(
        cfg, {"total": 3, "concurrency": 1, "command": _py("raise SystemExit(0)")}
    )

    code = run_cli(["--config", str(cfg), "run", "--no-progress"])
    out = capsys.readouterr().out

    assert code == 1
    assert out.count("Unexpected error: descriptor could not be built") == 1
    assert "Total attempted: 0" in out
    assert "Process aborted. 3 tasks were not attempted." in out
    assert out.count("--- Batch Summary ---") == 1


def test_sample_config_runs(capsys: pytest.CaptureFixture[str]) -> None:
    sample = Path(__file__).resolve().parents[1] / "batchrun.yml"

    code = run_cli(["--config", str(sample), "run", "--total", "3", "--no-progress"])
    out = capsys.readouterr().out

    assert code == 0
    assert "Successful: 3" in out
