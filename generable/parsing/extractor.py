"""
Generable — Raw JSON Extraction

Locates the most plausible JSON payload inside free-form model output.

Priority:
  1. The first markdown code block (```json ... ``` or ``` ... ```)
  2. The span from the first `{` to the last `}`

A candidate is accepted when it parses as-is or after auto-correction
(so `Sure! {'a': 'b'}` still yields `{'a': 'b'}`); the uncorrected text is
returned and correction is left to the decoder. Absence is a normal
outcome: these functions return None, they never raise.
"""

from __future__ import annotations

import json
import re

import structlog

from generable.parsing.corrector import correct

logger = structlog.get_logger()

_CODE_BLOCK = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```", re.IGNORECASE)


def extract(text: str) -> str | None:
    """Return the embedded JSON text, or None if nothing parseable is found."""
    if not text:
        return None

    fenced = extract_from_code_block(text)
    if fenced is not None:
        return fenced

    return extract_raw_object(text)


def extract_from_code_block(text: str) -> str | None:
    match = _CODE_BLOCK.search(text)
    if match is None:
        return None

    candidate = match.group(1).strip()
    if not candidate:
        return None

    if not is_parseable(candidate):
        logger.debug("json_code_block_unparseable", preview=candidate[:80])
        return None
    return candidate


def extract_raw_object(text: str) -> str | None:
    start_idx = text.find("{")
    end_idx = text.rfind("}")
    if start_idx < 0 or end_idx <= start_idx:
        return None

    candidate = text[start_idx : end_idx + 1]
    if not is_parseable(candidate):
        logger.debug("json_raw_object_unparseable", preview=candidate[:80])
        return None
    return candidate


def is_valid_json(text: str) -> bool:
    """Strict check: does `text` parse as JSON with no repair?"""
    try:
        json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False
    return True


def is_parseable(text: str) -> bool:
    """Does `text` parse as JSON, directly or after auto-correction?"""
    return is_valid_json(text) or is_valid_json(correct(text))
