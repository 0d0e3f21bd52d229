"""
Generable — JSON Auto-Correction

Fast, deterministic repairs for the defects local models most often put in
their JSON. No retry loops here: if the repaired text still fails to parse,
the decoder reports it and the retry controller decides what happens next.

Passes run in a fixed order:
  1. Strip a single leading/trailing markdown fence, then trim
  2. Remove trailing commas before } or ]
  3. Single-quoted strings -> double-quoted strings
  4. Quote bare identifier keys

The quote and key passes are heuristics. A single quote inside a string
that is itself single-quoted (e.g. 'it's') is mis-corrected; callers treat
the output as a best effort, not a guaranteed repair.
"""

from __future__ import annotations

import re

# Any language tag, e.g. ```json or ```python
_LEADING_FENCE = re.compile(r"^```[\w+-]*")
_TRAILING_FENCE = re.compile(r"```$")
_TRAILING_COMMA = re.compile(r"(?:,\s*)+([}\]])")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")

# Passes shift each other's string-delimiter parity, so the pipeline is
# repeated until it reaches a fixpoint.
_MAX_ROUNDS = 8


def correct(text: str) -> str:
    """Run every correction pass over `text`. Idempotent."""
    current = text
    for _ in range(_MAX_ROUNDS):
        corrected = _run_passes(current)
        if corrected == current:
            break
        current = corrected
    return current


def _run_passes(text: str) -> str:
    corrected = strip_fences(text)
    corrected = remove_trailing_commas(corrected)
    corrected = convert_single_quotes(corrected)
    corrected = quote_bare_keys(corrected)
    return corrected


def strip_fences(text: str) -> str:
    stripped = text.strip()
    stripped = _LEADING_FENCE.sub("", stripped, count=1)
    stripped = _TRAILING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def remove_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def convert_single_quotes(text: str) -> str:
    """
    Replace single-quote delimiters with double quotes, leaving anything
    inside an already double-quoted string untouched.
    """
    out: list[str] = []
    in_double = False
    escaped = False
    for ch in text:
        if escaped:
            out.append(ch)
            escaped = False
            continue
        if ch == "\\":
            out.append(ch)
            escaped = True
            continue
        if ch == '"':
            in_double = not in_double
            out.append(ch)
        elif ch == "'" and not in_double:
            out.append('"')
        else:
            out.append(ch)
    return "".join(out)


def quote_bare_keys(text: str) -> str:
    """`{key: 1}` -> `{"key": 1}`. Only identifier-shaped tokens before a colon."""
    return _UNQUOTED_KEY.sub(r'\1"\2"\3', text)


def complete_partial(text: str) -> str:
    """
    Best-effort closing of a truncated JSON document for mid-stream previews.

    Closes an open string, drops one dangling comma, then appends the
    missing `]` and `}`. Never used for the terminal parse.
    """
    result = text.strip()
    braces = 0
    brackets = 0
    in_string = False
    escaped = False

    for ch in result:
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_string:
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            braces += 1
        elif ch == "}":
            braces -= 1
        elif ch == "[":
            brackets += 1
        elif ch == "]":
            brackets -= 1

    if in_string:
        result += '"'

    result = result.rstrip()
    if result.endswith(","):
        result = result[:-1]

    result += "]" * max(0, brackets)
    result += "}" * max(0, braces)
    return result
