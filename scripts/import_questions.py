#!/usr/bin/env python3
"""
Bulk-import questions from a JSON file into the exam portal over its API.

The file holds a JSON array of question objects using the API field names:
  text, type (multiple_choice|true_false|short_answer), options, correct_answer,
  subject, topic, difficulty (easy|medium|hard), marks

Env vars (loaded from .env if present):
  EXAM_BASE_URL        -> Base URL of the service (default http://localhost:8000)
  EXAM_ADMIN_EMAIL     -> Admin account used for the import
  EXAM_ADMIN_PASSWORD  -> Its password

Usage:
  python scripts/import_questions.py questions.json --subject Physics
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from exam_portal.client import ApiError, ExamPortalClient  # type: ignore

REQUIRED_FIELDS = ("text", "type", "correct_answer", "subject", "topic")


def load_env_from_file(path: str = ".env") -> None:
    """Load KEY=VALUE pairs from a .env file if present and not already set."""

    if not os.path.exists(path):
        return
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = val


def sanitize_question(raw: Dict[str, Any], subject: str | None = None, topic: str | None = None) -> Dict[str, Any]:
    """Normalize one record and fill subject/topic overrides; raises ValueError if unusable."""

    try:
        marks = int(raw.get("marks", 1))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"marks must be an integer, got {raw.get('marks')!r}") from exc

    question = {
        "text": str(raw.get("text", "")).strip(),
        "type": str(raw.get("type", "multiple_choice")).strip().lower(),
        "options": [str(opt).strip() for opt in raw.get("options", []) if str(opt).strip()],
        "correct_answer": str(raw.get("correct_answer", "")).strip(),
        "subject": subject or str(raw.get("subject", "")).strip(),
        "topic": topic or str(raw.get("topic", "")).strip(),
        "difficulty": str(raw.get("difficulty", "medium")).strip().lower(),
        "marks": marks,
    }
    missing = [field for field in REQUIRED_FIELDS if not question[field]]
    if missing:
        raise ValueError(f"missing fields: {', '.join(missing)}")
    if question["type"] == "true_false" and not question["options"]:
        question["options"] = ["true", "false"]
    return question


def main() -> None:
    parser = argparse.ArgumentParser(description="Import questions from a JSON file into the exam portal.")
    parser.add_argument("path", help="JSON file containing an array of questions")
    parser.add_argument("--subject", help="Override the subject of every imported question")
    parser.add_argument("--topic", help="Override the topic of every imported question")
    parser.add_argument("--dry-run", action="store_true", help="Validate the file without calling the API")
    args = parser.parse_args()

    load_env_from_file()

    with open(args.path, "r", encoding="utf-8") as f:
        records: List[Dict[str, Any]] = json.load(f)
    if not isinstance(records, list):
        sys.stderr.write("Expected a JSON array of questions\n")
        sys.exit(1)

    base_url = os.getenv("EXAM_BASE_URL", "http://localhost:8000")
    email = os.getenv("EXAM_ADMIN_EMAIL")
    password = os.getenv("EXAM_ADMIN_PASSWORD")
    if not args.dry_run and not (email and password):
        sys.stderr.write("EXAM_ADMIN_EMAIL and EXAM_ADMIN_PASSWORD are required\n")
        sys.exit(1)

    created_ids: List[str] = []
    failed: List[str] = []

    with ExamPortalClient(base_url=base_url) as client:
        if not args.dry_run:
            client.login(email, password)
        for index, raw in enumerate(records, start=1):
            try:
                question = sanitize_question(raw, subject=args.subject, topic=args.topic)
                if args.dry_run:
                    print(f"[{index:03d}] OK (dry run) {question['text'][:50]}")
                    continue
                created = client.create_question(question)
                created_ids.append(created["question_id"])
                print(f"[{index:03d}] Created question: {created['question_id']}")
            except (ValueError, ApiError) as exc:
                failed.append(f"#{index}: {exc}")
                print(f"[{index:03d}] Failed: {exc}", file=sys.stderr)

    print(f"Done. Created {len(created_ids)} questions. Failed: {len(failed)}")
    if failed:
        print("Failures:", *failed, sep="\n- ")


if __name__ == "__main__":
    main()
