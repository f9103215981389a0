"""
Tests for the command-line interface.
"""

import json
from unittest.mock import patch
import pytest
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from grading.cli import main


@pytest.fixture
def config_path(tmp_path):
    banks_dir = tmp_path / "banks"
    banks_dir.mkdir()
    (banks_dir / "quiz.json").write_text(json.dumps({
        "id": "quiz",
        "questions": [{"id": 1, "type": "TRUE_FALSE", "points": 1, "correctAnswers": ["TRUE"]}],
    }), encoding="utf-8")

    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "banks_dir": str(banks_dir),
        "database_url": f"sqlite:///{tmp_path / 'grading.db'}",
        "memory_limit_mb": 1024,
    }), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("grading.cli.setup_logging"):
        yield


def run(capsys, *argv):
    code = main(list(argv))
    return code, capsys.readouterr().out


class TestCommands:
    """Test each subcommand."""

    def test_submit_then_show_and_list(self, tmp_path, config_path, capsys):
        payload = tmp_path / "payload.json"
        payload.write_text(json.dumps({
            "examSetId": "quiz",
            "studentInfo": {"firstName": "Ada", "lastName": "Lovelace", "studentId": "S1"},
            "answersWithId": [{"questionId": 1, "answer": "true"}],
        }), encoding="utf-8")

        code, out = run(capsys, "--config", str(config_path), "submit", str(payload))
        result = json.loads(out)
        assert code == 0
        assert result["percentage"] == 100

        code, out = run(capsys, "--config", str(config_path), "show", result["submissionId"])
        assert code == 0
        assert json.loads(out)["answers"][0]["isCorrect"] is True

        code, out = run(capsys, "--config", str(config_path), "list", "--exam-set", "quiz")
        assert code == 0
        assert [s["id"] for s in json.loads(out)["submissions"]] == [result["submissionId"]]

    def test_submit_unknown_exam_set(self, tmp_path, config_path, capsys):
        payload = tmp_path / "payload.json"
        payload.write_text(json.dumps({
            "examSetId": "nope",
            "studentInfo": {"firstName": "A", "lastName": "B", "studentId": "S1"},
            "answersWithId": [],
        }), encoding="utf-8")

        code, out = run(capsys, "--config", str(config_path), "submit", str(payload))

        assert code == 1
        assert json.loads(out) == {"error": "Exam set not found"}

    def test_submit_unreadable_payload(self, tmp_path, config_path, capsys):
        code, out = run(capsys, "--config", str(config_path), "submit", str(tmp_path / "missing.json"))
        assert code == 1
        assert "Cannot read payload" in json.loads(out)["error"]

    def test_run_code(self, tmp_path, config_path, capsys):
        source = tmp_path / "hello.py"
        source.write_text("print('hello')\n", encoding="utf-8")

        code, out = run(capsys, "--config", str(config_path), "run-code", str(source))

        assert code == 0
        assert json.loads(out)["stdout"] == "hello\n"

    def test_show_missing(self, config_path, capsys):
        code, out = run(capsys, "--config", str(config_path), "show", "missing")
        assert code == 1
        assert json.loads(out) == {"error": "Submission not found"}

    def test_sample_config(self, tmp_path, capsys):
        output = tmp_path / "sample.json"
        code, _ = run(capsys, "sample-config", str(output))
        assert code == 0
        assert json.loads(output.read_text(encoding="utf-8"))["language"] == "python"

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert main(["--config", str(path), "list"]) == 1
        assert "[ERROR]" in capsys.readouterr().err
