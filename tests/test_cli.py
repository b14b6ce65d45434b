"""Tests for the intake CLI."""

import json

from typer.testing import CliRunner

from intake.cli import app

runner = CliRunner()


class TestPolicy:
    def test_lists_rows(self):
        result = runner.invoke(app, ["policy"])
        assert result.exit_code == 0
        assert "read_failed" in result.output
        assert "private_repo" in result.output


class TestIngest:
    def test_success(self, tmp_path):
        path = tmp_path / "main.py"
        path.write_text("print('hi')\n")
        config = tmp_path / "config.json"
        config.write_text("{}")

        result = runner.invoke(app, ["ingest", str(path), "--config", str(config)])

        assert result.exit_code == 0
        assert "Upload Complete" in result.output
        assert "main.py" in result.output

    def test_nothing_valid_exits_1(self, tmp_path):
        path = tmp_path / "tool.exe"
        path.write_bytes(b"MZ")
        config = tmp_path / "config.json"
        config.write_text("{}")

        result = runner.invoke(app, ["ingest", str(path), "--config", str(config)])

        assert result.exit_code == 1
        assert "File Validation Error" in result.output

    def test_bad_config(self, tmp_path):
        path = tmp_path / "main.py"
        path.write_text("x = 1\n")
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"chunk_size": 0}))

        result = runner.invoke(app, ["ingest", str(path), "--config", str(config)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestClone:
    def test_shows_recovery_plan(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text("{}")

        result = runner.invoke(
            app, ["clone", "https://github.com/acme/widgets", "--config", str(config)]
        )

        assert result.exit_code == 1
        assert "Recovery plan" in result.output
        assert "file_upload" in result.output
