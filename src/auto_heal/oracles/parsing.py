"""Parsing of oracle replies."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from auto_heal.ledger.models import DiscoveredIssue
from auto_heal.oracles.exceptions import OracleResponseError

logger = logging.getLogger(__name__)

# Working directories the sandbox and common CI runners use
CONTAINER_PREFIXES = ("/app/", "/workspace/", "/github/workspace/")

_FENCE_LINE = re.compile(r"^\s*```[\w+-]*\s*$")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence lines from a reply.

    Args:
        text: Raw model reply

    Returns:
        Reply without fence lines
    """
    if "```" not in text:
        return text
    lines = [line for line in text.splitlines() if not _FENCE_LINE.match(line)]
    return "\n".join(lines).strip("\n")


def _strip_container_prefix(path: Any) -> Any:
    if not isinstance(path, str):
        return path
    for prefix in CONTAINER_PREFIXES:
        if path.startswith(prefix):
            return path[len(prefix):]
    return path


def parse_diagnosis(text: str) -> list[DiscoveredIssue]:
    """Parse the diagnostic oracle's JSON reply.

    Entries that fail validation (absolute or dependency paths, unknown
    kinds, missing fields) are dropped with a warning. A reply that is not
    JSON yields no findings.

    Args:
        text: Raw model reply

    Returns:
        Valid findings, in reply order
    """
    cleaned = strip_code_fences(text).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Diagnostic reply is not valid JSON: {e}")
        return []

    raw_issues = data.get("issues", []) if isinstance(data, dict) else data
    if not isinstance(raw_issues, list):
        logger.error(f"Diagnostic reply has no issue list: {type(raw_issues).__name__}")
        return []

    issues: list[DiscoveredIssue] = []
    for raw in raw_issues:
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed finding: {raw!r}")
            continue
        payload = dict(raw)
        payload["file"] = _strip_container_prefix(payload.get("file"))
        # Replies use "type"; the ledger calls it "kind"
        payload.setdefault("kind", payload.get("type"))
        try:
            issues.append(DiscoveredIssue.model_validate(payload))
        except (ValidationError, ValueError) as e:
            logger.warning(f"Ignoring invalid finding {raw!r}: {e}")

    return issues


def parse_repair(text: str) -> str:
    """Extract file content from the repair oracle's reply.

    Args:
        text: Raw model reply

    Returns:
        Replacement file content, ending with a newline

    Raises:
        OracleResponseError: If the reply is empty
    """
    content = strip_code_fences(text)
    if not content.strip():
        raise OracleResponseError("Repair oracle returned empty content")
    if not content.endswith("\n"):
        content += "\n"
    return content
