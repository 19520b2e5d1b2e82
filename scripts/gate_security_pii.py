#!/usr/bin/env python3
"""Gate G2: PII check for runtime source files.

Fails if:
- print( found in runtime code (src/**, except operator scripts under operations/)
- A logger call mentions occupant or requester personal data without redaction

A logger call is inspected as a whole statement, so ``extra=`` blocks
spread over several lines are covered.

Usage:
    python scripts/gate_security_pii.py
"""

import re
import sys
from pathlib import Path

# Personal data that must only reach logs through safe_log_context/redact_value
SENSITIVE_KEYWORDS = (
    "identifier",
    "nik",
    "phone",
    "email",
    "occupant.name",
    "requester.name",
    "companion",
    "scanned_input",
    "request.json",
    "body",
)

PRINT_PATTERN = re.compile(r"\bprint\s*\(")

LOGGER_CALL_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\("
)

REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
)

# Operator scripts report to stdout
PRINT_ALLOWED_DIRS = ("operations",)


def _call_text(lines: list[str], start: int) -> str:
    """Text of the call starting at ``lines[start]``, up to its closing paren."""
    depth = 0
    parts: list[str] = []
    for line in lines[start:]:
        code = line.split("#")[0]
        parts.append(code)
        depth += code.count("(") - code.count(")")
        if depth <= 0:
            break
    return "\n".join(parts)


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    errors = []
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []

    allow_print = any(part in PRINT_ALLOWED_DIRS for part in filepath.parts)
    lines = content.splitlines()

    for index, line in enumerate(lines):
        lineno = index + 1
        code_part = line.split("#")[0]
        if not code_part.strip():
            continue

        if not allow_print and PRINT_PATTERN.search(code_part):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

        if LOGGER_CALL_PATTERN.search(code_part):
            call = _call_text(lines, index)
            if any(rp in call for rp in REDACTION_PATTERNS):
                continue
            call_lower = call.lower()
            for keyword in SENSITIVE_KEYWORDS:
                if re.search(rf"\b{re.escape(keyword)}\b", call_lower):
                    errors.append(
                        f"{filepath}:{lineno}: logger call with '{keyword}' "
                        "must use redaction (safe_log_context/redact_value)"
                    )

    return errors


def main() -> int:
    """Run gate check on src directory."""
    src_dir = Path("src")

    if not src_dir.exists():
        src_dir = Path(__file__).parent.parent / "src"

    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("Gate G2 FAILED - PII violations found:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Gate G2 PASSED - No PII violations found\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
