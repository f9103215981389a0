#!/usr/bin/env python3
"""
Exam Grading CLI

Administrator-facing commands for grading submissions, running code in the
sandbox and inspecting stored results. Every command prints JSON.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config_loader import create_sample_config, load_config
from .logging_config import setup_logging
from .service import GradingService


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _read_json(path: str) -> Any:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def cmd_submit(service: GradingService, args) -> int:
    try:
        payload = _read_json(args.payload)
    except (OSError, json.JSONDecodeError) as e:
        _print_json({"error": f"Cannot read payload: {e}"})
        return 1
    body, status = service.submit(payload)
    _print_json(body)
    return 0 if status == 200 else 1


def cmd_run_code(service: GradingService, args) -> int:
    try:
        code = Path(args.file).read_text(encoding='utf-8')
    except OSError as e:
        _print_json({"error": f"Cannot read source file: {e}"})
        return 1
    body, status = service.run_code({"code": code, "language": args.language})
    _print_json(body)
    return 0 if status == 200 and body.get("success") else 1


def cmd_show(service: GradingService, args) -> int:
    body, status = service.get_submission(args.submission_id)
    _print_json(body)
    return 0 if status == 200 else 1


def cmd_list(service: GradingService, args) -> int:
    submissions = service.store.list_submissions(args.exam_set)
    _print_json({"submissions": submissions})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Grade exam submissions and inspect results.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  exam-grader submit payload.json
  exam-grader run-code solution.py
  exam-grader list --exam-set midterm-2024
  exam-grader show 3f0c1b9e-...
  exam-grader sample-config config.json
        """
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.json (default: next to the program)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    submit = subparsers.add_parser("submit", help="Grade and store a submission payload")
    submit.add_argument("payload", help="JSON file with examSetId, studentInfo and answersWithId")
    submit.set_defaults(handler=cmd_submit)

    run_code = subparsers.add_parser("run-code", help="Run a source file in the sandbox")
    run_code.add_argument("file", help="Source file to run")
    run_code.add_argument("--language", default=None, help="Language tag (default: from config)")
    run_code.set_defaults(handler=cmd_run_code)

    show = subparsers.add_parser("show", help="Show one stored submission with its answers")
    show.add_argument("submission_id")
    show.set_defaults(handler=cmd_show)

    list_cmd = subparsers.add_parser("list", help="List stored submissions, newest first")
    list_cmd.add_argument("--exam-set", default=None, help="Only submissions for this exam set")
    list_cmd.set_defaults(handler=cmd_list)

    sample = subparsers.add_parser("sample-config", help="Write a sample config.json")
    sample.add_argument("output", type=Path)

    return parser


def main(argv: Optional[list] = None) -> int:
    """Entry point for the grading CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "sample-config":
        setup_logging()
        create_sample_config(args.output)
        return 0

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_dir)
    service = GradingService.from_config(config)
    return args.handler(service, args)


if __name__ == "__main__":
    sys.exit(main())
