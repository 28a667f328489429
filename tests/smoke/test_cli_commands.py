"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path
from uuid import uuid4

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing the CLI at a throwaway SQLite database."""
    env = dict(os.environ)
    env["DATABASE_URL"] = f"sqlite:///{tmp_path / 'quizpool.db'}"
    env["LOG_LEVEL"] = "WARNING"
    return env


def run_cli_command(args: list[str], env: dict, timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m quizpool.cli.main'
        env: Process environment
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "quizpool.cli.main", *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def items_file(tmp_path):
    path = tmp_path / "items.json"
    items = [
        {
            "type": "multiple-choice",
            "question": f"Which word means hello? ({i})",
            "correct_answer": "hola",
            "options": ["hola", "adios", "gracias"],
            "difficulty": "beginner",
            "topic": "Greetings",
            "unit_id": "unit-1",
        }
        for i in range(3)
    ]
    path.write_text(json.dumps({"items": items}), encoding="utf-8")
    return path


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli_env):
        code, stdout, stderr = run_cli_command(["--help"], cli_env)

        assert code == 0, f"Help failed: {stderr}"
        for command in ("db", "ingest", "audit", "select", "answer", "stats"):
            assert command in stdout

    def test_select_help(self, cli_env):
        code, stdout, stderr = run_cli_command(["select", "--help"], cli_env)
        assert code == 0, f"Help failed: {stderr}"
        assert "--seed" in stdout


class TestCLICommands:
    """Test commands against a fresh database."""

    def test_ingest_select_and_stats(self, cli_env, items_file):
        code, _, stderr = run_cli_command(["db", "init"], cli_env)
        assert code == 0, f"db init failed: {stderr}"

        code, stdout, stderr = run_cli_command(["ingest", str(items_file)], cli_env)
        assert code == 0, f"ingest failed: {stderr}"
        assert "Inserted" in stdout

        code, stdout, stderr = run_cli_command(["ingest", str(items_file)], cli_env)
        assert code == 0, f"re-ingest failed: {stderr}"
        assert "STOP" in stdout

        # Ingested items are pending, so the quiz is empty with a warning
        code, stdout, stderr = run_cli_command(["select", "--unit", "unit-1", "--seed", "s1"], cli_env)
        assert code == 0, f"select failed: {stderr}"
        assert "Warning" in stdout

        code, stdout, stderr = run_cli_command(["stats", "--unit", "unit-1"], cli_env)
        assert code == 0, f"stats failed: {stderr}"
        assert "Pending" in stdout

    def test_answer_unknown_item(self, cli_env):
        run_cli_command(["db", "init"], cli_env)

        code, stdout, _ = run_cli_command(["answer", "learner-1", str(uuid4()), "--correct"], cli_env)

        assert code == 1
        assert "not found" in stdout

    def test_answer_invalid_id(self, cli_env):
        code, stdout, _ = run_cli_command(["answer", "learner-1", "not-a-uuid", "--wrong"], cli_env)
        assert code == 1
        assert "Not an item id" in stdout

    def test_ingest_missing_file(self, cli_env, tmp_path):
        code, stdout, _ = run_cli_command(["ingest", str(tmp_path / "missing.json")], cli_env)
        assert code == 1
        assert "not found" in stdout

    def test_audit_with_no_items(self, cli_env):
        run_cli_command(["db", "init"], cli_env)

        code, stdout, stderr = run_cli_command(["audit", "--pending-only"], cli_env)

        assert code == 0, f"audit failed: {stderr}"
        assert "No items match" in stdout

    def test_audit_without_judge(self, cli_env):
        cli_env["JUDGE_URL"] = ""
        run_cli_command(["db", "init"], cli_env)

        code, stdout, _ = run_cli_command(["audit"], cli_env)

        assert code == 1
        assert "No judge configured" in stdout
