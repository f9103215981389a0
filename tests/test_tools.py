"""
Tests for the bank administration tools.

Covers key generation, encrypting a validated bank and verifying the result
with the same key the grader would use.
"""

import json
import pytest
from pathlib import Path

# Add tools directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from build_bank import build_bank
from keygen import generate_key
from verify_bank import verify_bank

from grading.bank import BankLoader

BANK = {
    "id": "quiz",
    "title": "Quiz",
    "questions": [
        {"id": 1, "type": "SHORT", "text": "2 + 2?", "points": 1, "correctAnswers": ["4"]},
    ],
}


@pytest.fixture
def bank_source(tmp_path):
    path = tmp_path / "quiz.json"
    path.write_text(json.dumps(BANK), encoding="utf-8")
    return path


class TestKeyFileWorkflow:
    """Test keygen -> build_bank -> verify_bank -> grader load."""

    def test_round_trip(self, tmp_path, bank_source, capsys):
        key_file = tmp_path / "banks.key"
        out_file = tmp_path / "banks" / "quiz.enc"

        generate_key(str(key_file))
        build_bank(str(bank_source), str(out_file), key_file=str(key_file))

        assert out_file.exists()
        assert verify_bank(str(out_file), key_file=str(key_file)) is True
        exam_set = BankLoader(out_file.parent, key_file=key_file).load("quiz")
        assert exam_set.questions[0].correct_answers == ["4"]
        assert "[OK] Bank encrypted" in capsys.readouterr().out

    def test_verify_with_wrong_key(self, tmp_path, bank_source):
        key_file = tmp_path / "banks.key"
        other_key = tmp_path / "other.key"
        out_file = tmp_path / "quiz.enc"
        generate_key(str(key_file))
        generate_key(str(other_key))
        build_bank(str(bank_source), str(out_file), key_file=str(key_file))

        assert verify_bank(str(out_file), key_file=str(other_key)) is False

    def test_build_rejects_invalid_bank(self, tmp_path):
        source = tmp_path / "bad.json"
        source.write_text(json.dumps({"id": "bad", "questions": [
            {"id": 1, "type": "SHORT", "points": 1, "correctAnswers": []},
        ]}), encoding="utf-8")
        key_file = tmp_path / "banks.key"
        generate_key(str(key_file))

        with pytest.raises(SystemExit):
            build_bank(str(source), str(tmp_path / "bad.enc"), key_file=str(key_file))
        assert not (tmp_path / "bad.enc").exists()


class TestVerifyPlaintext:
    """Test verifying unencrypted banks."""

    def test_valid(self, bank_source, capsys):
        assert verify_bank(str(bank_source)) is True
        assert "Questions: 1" in capsys.readouterr().out

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")
        assert verify_bank(str(path)) is False


class TestKeygen:
    """Test key file creation."""

    def test_refuses_to_overwrite(self, tmp_path):
        key_file = tmp_path / "banks.key"
        generate_key(str(key_file))
        original = key_file.read_bytes()

        with pytest.raises(SystemExit):
            generate_key(str(key_file))
        assert key_file.read_bytes() == original

        generate_key(str(key_file), force=True)
        assert key_file.read_bytes() != original
