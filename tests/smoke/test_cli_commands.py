"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from config import Settings
from src.cli.main import app
from src.core.context import EngineContext, reset_engine_context, set_engine_context
from src.core.models import ErrorPattern, MasteryRecord, ProgressData, SM2State
from src.progress.store import PROGRESS_KEY

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command in a subprocess and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m src.cli.main')
        timeout: Maximum time to wait
    """
    result = subprocess.run(
        f"{sys.executable} -m src.cli.main {command}",
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def context(content_files, store):
    """Engine context on an in-memory store and the sample content files."""
    manifest_path, vocabulary_path = content_files
    settings = Settings(manifest_source=str(manifest_path), vocabulary_source=str(vocabulary_path))
    ctx = EngineContext(settings=settings, store=store)
    set_engine_context(ctx)
    yield ctx
    reset_engine_context()


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should list every command."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        for command in ("weaknesses", "calibration", "due", "graph", "migrate", "reset"):
            assert command in stdout

    def test_graph_help(self):
        result = runner.invoke(app, ["graph", "--help"])
        assert result.exit_code == 0
        assert "build" in result.output
        assert "reach" in result.output


class TestAnalysisCommands:
    def test_weaknesses_without_data(self, context):
        result = runner.invoke(app, ["weaknesses"])
        assert result.exit_code == 0
        assert "Keep practicing" in result.output

    def test_weaknesses_with_practice(self, context, store):
        store.save_progress(
            ProgressData(
                word_mastery={
                    "w1": MasteryRecord(error_patterns=[ErrorPattern(type="tashkeel_missing", count=4)]),
                    "w2": MasteryRecord(error_patterns=[ErrorPattern(type="tashkeel_missing", count=2)]),
                }
            )
        )
        result = runner.invoke(app, ["weaknesses", "--practice", "2"])
        assert result.exit_code == 0, result.output
        assert "Focus area: Missing Tashkeel" in result.output
        assert "Pay special attention to the vowel marks" in result.output

    def test_calibration_without_data(self, context):
        result = runner.invoke(app, ["calibration"])
        assert result.exit_code == 0
        assert "Need 10 more ratings" in result.output

    def test_due_empty(self, context):
        result = runner.invoke(app, ["due"])
        assert result.exit_code == 0
        assert "Nothing due for review" in result.output

    def test_due_lists_words(self, context, store):
        store.save_progress(
            ProgressData(word_mastery={"w2": MasteryRecord(strength=30, sm2=SM2State(interval=1, next_review_date=0))})
        )
        result = runner.invoke(app, ["due"])
        assert result.exit_code == 0, result.output
        assert "pen" in result.output

    def test_book(self, context):
        result = runner.invoke(app, ["book", "1"])
        assert result.exit_code == 0, result.output
        assert "Lessons completed" in result.output

    def test_unknown_book(self, context):
        result = runner.invoke(app, ["book", "9"])
        assert result.exit_code == 1
        assert "Book 9 not found" in result.output

    def test_missing_content(self, tmp_path, store):
        settings = Settings(manifest_source=str(tmp_path / "none.json"), vocabulary_source=str(tmp_path / "none.json"))
        set_engine_context(EngineContext(settings=settings, store=store))
        try:
            result = runner.invoke(app, ["due"])
        finally:
            reset_engine_context()
        assert result.exit_code == 1
        assert "Failed to load" in result.output


class TestGraphCommands:
    def test_build_writes_output(self, context, tmp_path):
        output = tmp_path / "out" / "graph.json"
        result = runner.invoke(app, ["graph", "build", "--output", str(output)])

        assert result.exit_code == 0, result.output
        assert "18 edges" in result.output
        assert json.loads(output.read_text(encoding="utf-8"))["version"] == 1

    def test_reach(self, context):
        result = runner.invoke(app, ["graph", "reach", "b1-l03"])
        assert result.exit_code == 0, result.output
        assert "Direct reach: 3" in result.output
        assert "b1-l02" in result.output


class TestStorageCommands:
    def test_migrate_v1(self, context, store):
        store.set_blob(
            PROGRESS_KEY,
            {"version": 1, "wordMastery": {"w1": {"strength": 50, "lastPracticed": "2024-03-01T10:00:00.000Z"}}},
        )
        result = runner.invoke(app, ["migrate"])
        assert result.exit_code == 0, result.output
        assert "(1 records)" in result.output
        assert store.get_blob(PROGRESS_KEY)["version"] == 2

    def test_migrate_v1_record_without_date(self, context, store):
        store.set_blob(PROGRESS_KEY, {"version": 1, "wordMastery": {"w1": {"strength": 50}}})
        result = runner.invoke(app, ["migrate"])
        assert result.exit_code == 0, result.output
        assert "(1 records)" in result.output
        assert "sm2" in store.get_blob(PROGRESS_KEY)["wordMastery"]["w1"]

    def test_migrate_failure_exits_nonzero(self, context, store):
        store.set_blob(PROGRESS_KEY, {"version": 1, "wordMastery": [{"strength": 50}]})
        result = runner.invoke(app, ["migrate"])
        assert result.exit_code == 1
        assert "Migration failed" in result.output
        assert store.get_blob(PROGRESS_KEY)["version"] == 1

    def test_migrate_current(self, context, store):
        store.save_progress(ProgressData())
        result = runner.invoke(app, ["migrate"])
        assert result.exit_code == 0
        assert "already at version 2" in result.output

    def test_reset_confirmed(self, context, store):
        store.save_progress(ProgressData(word_mastery={"w1": MasteryRecord(strength=40)}))
        result = runner.invoke(app, ["reset", "--yes"])
        assert result.exit_code == 0
        assert store.get_blob(PROGRESS_KEY) is None

    def test_reset_declined(self, context, store):
        store.save_progress(ProgressData())
        result = runner.invoke(app, ["reset"], input="n\n")
        assert result.exit_code == 1
        assert store.get_blob(PROGRESS_KEY) is not None
