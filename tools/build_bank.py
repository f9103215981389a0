#!/usr/bin/env python3
"""
build_bank.py - Validate and encrypt an exam set bank.

Usage with key file:
    python tools/build_bank.py --in midterm.json --out banks/midterm.enc --key-file banks.key

Usage with password:
    python tools/build_bank.py --in midterm.json --out banks/midterm.enc --password

The output name (without .enc) is the examSetId the grader looks up.
"""

import argparse
import getpass
import hashlib
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from grading.bank import encrypt_bank, validate_bank_data


def build_bank(in_file: str, out_file: str, key_file: str = None, use_password: bool = False) -> None:
    """Encrypt a plaintext exam set bank after validating its schema."""
    try:
        plaintext = Path(in_file).read_bytes()
    except OSError as e:
        print(f"[ERROR] Cannot read input: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        bank_data = json.loads(plaintext)
    except json.JSONDecodeError as e:
        print(f"[ERROR] Invalid JSON in input file: {e}", file=sys.stderr)
        sys.exit(1)

    errors, warnings = validate_bank_data(bank_data)
    for warning in warnings:
        print(f"[WARN] {warning}")
    if errors:
        for err in errors:
            print(f"[ERROR] {err}", file=sys.stderr)
        sys.exit(1)

    print(f"[OK] Input validated: {bank_data.get('title', 'untitled')} "
          f"({len(bank_data['questions'])} questions)")

    if use_password:
        password = getpass.getpass("Enter encryption password: ")
        if password != getpass.getpass("Confirm password: "):
            print("[ERROR] Passwords do not match", file=sys.stderr)
            sys.exit(1)
        if len(password) < 8:
            print("[ERROR] Password must be at least 8 characters", file=sys.stderr)
            sys.exit(1)
        final_data = encrypt_bank(plaintext, password=password)
    else:
        key = Path(key_file).read_bytes().strip()
        final_data = encrypt_bank(plaintext, key=key)

    Path(out_file).parent.mkdir(parents=True, exist_ok=True)
    Path(out_file).write_bytes(final_data)

    print(f"\n[OK] Bank encrypted")
    print(f"  Output: {out_file} ({len(final_data)} bytes)")
    print(f"  Method: {'Password-based' if use_password else 'Key file'}")
    print(f"  SHA256: {hashlib.sha256(final_data).hexdigest()}")


def main():
    parser = argparse.ArgumentParser(
        description="Validate and encrypt an exam set bank.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--in", dest="in_file", required=True, help="Input plaintext JSON bank")
    parser.add_argument("--out", required=True, help="Output encrypted bank (<examSetId>.enc)")
    method = parser.add_mutually_exclusive_group(required=True)
    method.add_argument("--key-file", help="File containing the Fernet key")
    method.add_argument("--password", action="store_true", help="Use password-based encryption")

    args = parser.parse_args()
    build_bank(args.in_file, args.out, args.key_file, args.password)


if __name__ == "__main__":
    main()
