from __future__ import annotations

import io
from contextlib import redirect_stderr
from pathlib import Path

import pytest

from retrykit import cli
from retrykit.errors import ExitCode
from retrykit.policy import RetryPolicy


def test_cli_help_includes_public_commands() -> None:
    help_text = cli.build_parser().format_help()
    assert "intervals" in help_text
    assert "policy" in help_text
    assert "--log-level" in help_text
    assert "--log-file" in help_text


def test_parse_args_reads_interval_options() -> None:
    namespace = cli.parse_args(["intervals", "--strategy", "fibonacci", "--start", "2.5"])
    assert namespace.command == "intervals"
    assert namespace.strategy == "fibonacci"
    assert namespace.start == 2.5


def test_intervals_command_prints_schedule() -> None:
    out = io.StringIO()
    code = cli.main(["intervals", "--strategy", "fibonacci", "--start", "3"], out=out)

    assert code == int(ExitCode.SUCCESS)
    assert out.getvalue().split() == ["3", "5", "8", "13", "21", "34", "55", "89", "144", "233"]


def test_invalid_strategy_returns_error_code() -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main(["intervals", "--strategy", "log"])
    assert code == int(ExitCode.INVALID_ARGS)


def test_invalid_start_is_reported_to_stderr() -> None:
    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(["intervals", "--strategy", "fibonacci", "--start", "0"])

    assert code == int(ExitCode.POLICY_ERROR)
    assert "Error: Invalid backoff start: 0." in stream.getvalue()


def test_missing_command_returns_error_code() -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main([])
    assert code != 0


def test_invalid_log_level_rejected() -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main(["--log-level", "LOUD", "intervals"])
    assert code == int(ExitCode.INVALID_ARGS)


def test_policy_command_prints_loaded_policy(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text("[retry]\nretries = 2\nbackoff = { type = \"linear\", start = 1 }\n", encoding="utf-8")
    out = io.StringIO()

    code = cli.main(["policy", "--config", str(config)], out=out)

    lines = out.getvalue().splitlines()
    assert code == int(ExitCode.SUCCESS)
    assert lines[0] == "retries = 2"
    assert lines[1].startswith("retriable = retrykit.errors.RemoteServerError")
    assert lines[-1] == "backoff_intervals = 1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0"


def test_policy_command_reports_config_errors(tmp_path: Path) -> None:
    config = tmp_path / "config.toml"
    config.write_text("[retry]\nretries = 0\n", encoding="utf-8")
    stream = io.StringIO()

    with redirect_stderr(stream):
        code = cli.main(["policy", "--config", str(config)])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "Error: Invalid retry policy" in stream.getvalue()


def test_unexpected_failure_returns_runtime_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def explode(namespace: object, out: object) -> int:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(cli, "run_command", explode)
    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(["intervals"])

    assert code == int(ExitCode.RUNTIME_ERROR)
    assert "Unexpected runtime failure" in stream.getvalue()


def test_format_policy_without_backoff() -> None:
    lines = cli.format_policy(RetryPolicy(backoff_intervals=None))
    assert lines[-1] == "backoff_intervals = none"
    assert lines[2] == "retry_proc = _noop"


def test_parse_args_collects_module_levels() -> None:
    namespace = cli.parse_args(["--module-level", "retry=debug", "--module-level", "config=ERROR", "intervals"])
    assert namespace.module_level == [("retry", "DEBUG"), ("config", "ERROR")]


@pytest.mark.parametrize("value", ["retry", "gui=DEBUG", "retry=LOUD"])
def test_invalid_module_level_rejected(value: str) -> None:
    with redirect_stderr(io.StringIO()):
        code = cli.main(["--module-level", value, "intervals"])
    assert code == int(ExitCode.INVALID_ARGS)


def test_module_level_shows_debug_lines_of_one_module(tmp_path: Path) -> None:
    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(
            ["--module-level", "config=DEBUG", "policy", "--config", str(tmp_path / "missing.toml")],
            out=io.StringIO(),
        )

    assert code == int(ExitCode.SUCCESS)
    assert "Retry config not found" in stream.getvalue()
    assert "Running command" not in stream.getvalue()


def test_no_log_file_written_without_log_file_option(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    code = cli.main(["intervals"], out=io.StringIO())

    assert code == int(ExitCode.SUCCESS)
    assert list(tmp_path.iterdir()) == []


def test_unexpected_failure_hint_points_at_log_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def explode(namespace: object, out: object) -> int:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(cli, "run_command", explode)
    log_file = tmp_path / "rk.log"
    stream = io.StringIO()
    with redirect_stderr(stream):
        code = cli.main(["--log-file", str(log_file), "intervals"])

    assert code == int(ExitCode.RUNTIME_ERROR)
    assert f"Inspect logs: {log_file}" in stream.getvalue()
    assert "kaboom" in log_file.read_text(encoding="utf-8")
