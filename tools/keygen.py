#!/usr/bin/env python3
"""
keygen.py - Create the Fernet key the grader uses for encrypted exam set banks.

Usage:
    python tools/keygen.py --out banks.key
    python tools/keygen.py --out banks.key --force

Set `bank_key_file` in config.json to the generated path.
"""

import argparse
import os
import sys
from pathlib import Path

from cryptography.fernet import Fernet


def generate_key(output_file: str, force: bool = False) -> Path:
    """Write a new key readable only by its owner and return its path."""
    path = Path(output_file)
    if path.exists() and not force:
        print(f"[ERROR] {path} already exists; banks encrypted with it would become unreadable. "
              f"Use --force to replace it.", file=sys.stderr)
        sys.exit(1)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(Fernet.generate_key())
        if os.name == 'posix':
            path.chmod(0o600)
    except OSError as e:
        print(f"[ERROR] Cannot write key: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"[OK] Key written to {path}")
    print(f'  config.json: "bank_key_file": "{path}"')
    return path


def main():
    parser = argparse.ArgumentParser(description="Create a Fernet key for exam set banks.")
    parser.add_argument("--out", required=True, help="Where to write the key")
    parser.add_argument("--force", action="store_true", help="Replace an existing key file")

    args = parser.parse_args()
    generate_key(args.out, args.force)


if __name__ == "__main__":
    main()
