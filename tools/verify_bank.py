#!/usr/bin/env python3
"""
verify_bank.py - Decrypt (if needed) and validate an exam set bank.

Usage:
    python tools/verify_bank.py --bank banks/midterm.json
    python tools/verify_bank.py --bank banks/midterm.enc --key-file banks.key
    python tools/verify_bank.py --bank banks/midterm.enc --password
"""

import argparse
import getpass
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from grading.bank import SALT_PREFIX, decrypt_bank, validate_bank_data
from grading.errors import BankDecryptionError
from grading.models import ExamSet


def verify_bank(bank_file: str, key_file: str = None, use_password: bool = False) -> bool:
    """Return True if the bank opens and passes schema validation."""
    path = Path(bank_file)
    data = path.read_bytes()

    if path.suffix == '.enc':
        password = None
        key = None
        if data.startswith(SALT_PREFIX):
            if not use_password:
                print("[ERROR] This bank was encrypted with a password. Use --password.", file=sys.stderr)
                return False
            password = getpass.getpass("Enter decryption password: ")
        elif key_file:
            key = Path(key_file).read_bytes().strip()
        try:
            data = decrypt_bank(data, key=key, password=password)
        except BankDecryptionError as e:
            print(f"[ERROR] {e}", file=sys.stderr)
            return False
        print("[OK] Bank decrypted")

    try:
        bank_data = json.loads(data)
    except json.JSONDecodeError as e:
        print(f"[ERROR] Invalid JSON: {e}", file=sys.stderr)
        return False

    errors, warnings = validate_bank_data(bank_data)
    for warning in warnings:
        print(f"[WARN] {warning}")
    for err in errors:
        print(f"[ERROR] {err}")
    if errors:
        return False

    bank_data.setdefault('id', path.stem)
    exam_set = ExamSet.from_dict(bank_data)
    total_points = sum(q.points for q in exam_set.questions)
    print(f"\n[OK] {exam_set.id}: {exam_set.title or 'untitled'}")
    print(f"  Questions: {len(exam_set.questions)}, total points: {total_points}")
    for question in exam_set.questions:
        print(f"  - {question.id} [{question.type_name}] {question.points} pt")
    return True


def main():
    parser = argparse.ArgumentParser(description="Validate an exam set bank (.json or .enc).")
    parser.add_argument("--bank", required=True, help="Bank file to verify")
    parser.add_argument("--key-file", help="Fernet key file for key-encrypted banks")
    parser.add_argument("--password", action="store_true", help="Prompt for the bank password")
    args = parser.parse_args()

    sys.exit(0 if verify_bank(args.bank, args.key_file, args.password) else 1)


if __name__ == "__main__":
    main()
