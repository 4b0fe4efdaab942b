#!/usr/bin/env python3
"""Log hygiene gate for runtime code under src/.

Fails if:
- print( is used in runtime code
- A logger call mentions message text, prompts, descriptions or raw
  participant numbers without passing them through a redaction helper

Logger calls usually span several lines, so the whole call (up to the
matching closing parenthesis) is inspected, not just its first line.

Usage:
    python scripts/check_log_hygiene.py
"""

from __future__ import annotations

import re
import sys
from pathlib import Path

# Expressions that carry personal data in this codebase
SENSITIVE_KEYWORDS = (
    ".content",
    "prompt",
    ".description",
    "participant_id",
    "sender_name",
    "payload",
)

PRINT_PATTERN = re.compile(r"^\s*print\s*\(")

LOGGER_CALL_PATTERN = re.compile(
    r"\b(?:logger|log)\.(?:debug|info|warning|error|critical|exception)\s*\("
)

REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
    "mask_participant",
)


def _call_text(source: str, start: int) -> str:
    """Text of the call whose opening parenthesis ends at ``start``."""
    depth = 1
    i = start
    while i < len(source) and depth:
        if source[i] == "(":
            depth += 1
        elif source[i] == ")":
            depth -= 1
        i += 1
    return source[start:i]


def check_source(source: str, filename: str = "<source>") -> list[str]:
    """Check one module's source. Returns a list of error messages."""
    errors: list[str] = []

    for lineno, line in enumerate(source.splitlines(), start=1):
        if PRINT_PATTERN.search(line):
            errors.append(f"{filename}:{lineno}: print() not allowed in runtime code")

    for match in LOGGER_CALL_PATTERN.finditer(source):
        call = _call_text(source, match.end())
        if any(rp in call for rp in REDACTION_PATTERNS):
            continue
        for keyword in SENSITIVE_KEYWORDS:
            if keyword in call:
                lineno = source.count("\n", 0, match.start()) + 1
                errors.append(
                    f"{filename}:{lineno}: logger call with '{keyword}' "
                    "must use redaction (safe_log_context/mask_participant)"
                )
    return errors


def check_tree(src_dir: Path) -> list[str]:
    errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        errors.extend(check_source(pyfile.read_text(encoding="utf-8"), str(pyfile)))
    return errors


def main() -> int:
    src_dir = Path(__file__).resolve().parent.parent / "src"
    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    errors = check_tree(src_dir)
    if errors:
        sys.stderr.write("Log hygiene gate FAILED:\n")
        for err in errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Log hygiene gate PASSED\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
