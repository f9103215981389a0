"""
Question bank loading.

An exam set's bank is a JSON document stored as `<banks_dir>/<id>.json`, or
Fernet-encrypted as `<banks_dir>/<id>.enc`. Encrypted banks that start with a
`SALT` prefix were encrypted with a password-derived key; all others with a
key file.
"""

import base64
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import BankDecryptionError, ExamSetNotFound
from .models import ExamSet, GraderConfig, QuestionType

logger = logging.getLogger(__name__)

SALT_PREFIX = b'SALT'
SALT_LENGTH = 16
KDF_ITERATIONS = 480000
_SAFE_ID = re.compile(r'^[A-Za-z0-9_\-]+$')


def derive_key_from_password(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from a password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    key_material = kdf.derive(password.encode())
    return base64.urlsafe_b64encode(key_material)


def decrypt_bank(data: bytes, key: Optional[bytes] = None, password: Optional[str] = None) -> bytes:
    """
    Decrypt an encrypted bank payload.

    Raises:
        BankDecryptionError: If the needed key or password is missing or wrong
    """
    if data.startswith(SALT_PREFIX):
        if password is None:
            raise BankDecryptionError("Bank was encrypted with a password but none is configured")
        salt = data[len(SALT_PREFIX):len(SALT_PREFIX) + SALT_LENGTH]
        data = data[len(SALT_PREFIX) + SALT_LENGTH:]
        key = derive_key_from_password(password, salt)
    elif key is None:
        raise BankDecryptionError("Bank was encrypted with a key file but none is configured")

    try:
        return Fernet(key).decrypt(data)
    except (InvalidToken, ValueError) as e:
        raise BankDecryptionError("Invalid key/password or corrupted bank file") from e


class BankLoader:
    """Loads exam sets from a directory of bank files."""

    def __init__(
        self,
        banks_dir: Union[str, Path],
        key_file: Optional[Union[str, Path]] = None,
        password: Optional[str] = None
    ):
        self.banks_dir = Path(banks_dir)
        self.key_file = Path(key_file) if key_file else None
        self.password = password

    @staticmethod
    def from_config(config: GraderConfig) -> 'BankLoader':
        return BankLoader(config.banks_dir, config.bank_key_file, config.bank_password)

    def _resolve_bank_path(self, exam_set_id: str) -> Optional[Path]:
        if not exam_set_id or not _SAFE_ID.match(exam_set_id):
            return None
        for suffix in ('.json', '.enc'):
            candidate = self.banks_dir / f"{exam_set_id}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def _read_key(self) -> Optional[bytes]:
        if self.key_file is None:
            return None
        return self.key_file.read_bytes().strip()

    def load(self, exam_set_id: str) -> ExamSet:
        """
        Load the exam set with its questions ordered by id.

        Raises:
            ExamSetNotFound: If no bank file exists for the id
            BankDecryptionError: If an encrypted bank cannot be opened
            ValueError: If the bank is not valid JSON
        """
        bank_path = self._resolve_bank_path(exam_set_id)
        if bank_path is None:
            raise ExamSetNotFound(exam_set_id)

        raw = bank_path.read_bytes()
        if bank_path.suffix == '.enc':
            raw = decrypt_bank(raw, key=self._read_key(), password=self.password)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in bank '{bank_path.name}': {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Bank '{bank_path.name}' must contain a JSON object")
        data.setdefault('id', exam_set_id)
        exam_set = ExamSet.from_dict(data)
        logger.info("BANK_LOADED - exam set %s (%d questions) from %s",
                    exam_set.id, len(exam_set.questions), bank_path.name)
        return exam_set


def encrypt_bank(plaintext: bytes, key: Optional[bytes] = None, password: Optional[str] = None) -> bytes:
    """
    Encrypt a bank payload with a key, or with a password-derived key.

    Password-encrypted output is prefixed with `SALT` and the random salt.
    """
    if password is not None:
        salt = os.urandom(SALT_LENGTH)
        token = Fernet(derive_key_from_password(password, salt)).encrypt(plaintext)
        return SALT_PREFIX + salt + token
    if key is None:
        raise ValueError("Either key or password is required")
    return Fernet(key).encrypt(plaintext)


def validate_bank_data(data: Any) -> Tuple[List[str], List[str]]:
    """
    Check an exam set document against the bank schema.

    Returns:
        Tuple of (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(data, dict):
        return ["Bank must be a JSON object"], warnings
    if 'id' not in data:
        warnings.append("Missing 'id'; the file name will be used")
    questions = data.get('questions')
    if not isinstance(questions, list):
        return errors + ["'questions' must be a list"], warnings

    seen_ids = set()
    for idx, question in enumerate(questions, start=1):
        label = f"Question #{idx}"
        if not isinstance(question, dict):
            errors.append(f"{label}: must be an object")
            continue

        if 'id' not in question:
            errors.append(f"{label}: missing 'id'")
        else:
            label = f"Question {question['id']}"
            if str(question['id']) in seen_ids:
                errors.append(f"{label}: duplicate id")
            seen_ids.add(str(question['id']))

        question_type = QuestionType.from_raw(question.get('type'))
        if question_type is None:
            warnings.append(f"{label}: unrecognized type '{question.get('type')}' is always graded incorrect")

        points = question.get('points', 1)
        if not isinstance(points, int) or isinstance(points, bool) or points <= 0:
            errors.append(f"{label}: points must be a positive integer")

        correct = question.get('correctAnswers') or []
        if question_type is QuestionType.CODEMSA:
            placeholders = question.get('subQuestions') or []
            if len(correct) != len(placeholders):
                errors.append(
                    f"{label}: {len(correct)} correct answers for {len(placeholders)} placeholders"
                )
            for token in placeholders:
                if token and token not in (question.get('text') or ''):
                    warnings.append(f"{label}: placeholder '{token}' does not occur in the template")
        elif question_type is not None and not correct:
            errors.append(f"{label}: correctAnswers must not be empty")

        if question_type is QuestionType.CHOICE and not question.get('options'):
            warnings.append(f"{label}: CHOICE question without options")

    return errors, warnings
