"""Prompt templates for the oracles."""

from auto_heal.ledger.models import Issue, IssueKind

KIND_NAMES = " | ".join(kind.value for kind in IssueKind)


def create_diagnosis_prompt(output: str, source_hints: list[str]) -> str:
    """Create a prompt asking for the defects behind a failing run.

    Args:
        output: Test/build output (already bounded)
        source_hints: Repository-relative source paths

    Returns:
        Formatted prompt for the diagnostic oracle
    """
    prompt_parts = [
        "You are a CI/CD diagnostic agent. Analyze the failing test output and identify issues "
        "in the SOURCE CODE.",
        "",
        "**Rules:**",
        "1. Tests fail because SOURCE CODE has bugs. Point at the SOURCE FILES, not the test files.",
        "2. Only point at a test file if the test itself has an obvious error with no corresponding source issue.",
        '3. "file" MUST be a path relative to the repository root (e.g. "src/calculator.py"). '
        'Never absolute paths such as "/app/...".',
        f'4. "type" MUST be one of: {KIND_NAMES}',
        '5. "line" is the line number in the source file where the bug is, or 0 if unknown.',
        "6. Include EVERY distinct error coming from user source code.",
        "7. Ignore dependency directories (node_modules, site-packages), install logs and system paths.",
        "",
    ]

    if source_hints:
        prompt_parts.append("**Source files in this repository:**")
        prompt_parts.extend(source_hints)
        prompt_parts.append("")

    prompt_parts.extend([
        "Return ONLY this JSON:",
        '{ "issues": [ { "description": "...", "file": "src/...", "type": "...", "line": 0 } ] }',
        "",
        "**Test/Build Output:**",
        output,
    ])

    return "\n".join(prompt_parts)


def create_repair_prompt(issue: Issue, file_content: str, test_output_snippet: str) -> str:
    """Create a prompt asking for the fixed content of one file.

    Args:
        issue: Issue to fix
        file_content: Current content of the file
        test_output_snippet: Failing output, for context only

    Returns:
        Formatted prompt for the repair oracle
    """
    prompt_parts = [
        "You are an expert software engineer. Fix the specific bug in the source file described below.",
        "",
        "**Bug Details:**",
        f"- File: {issue.file}",
        f"- Type: {issue.kind.value}",
        f"- Line: {issue.line or 'unknown'}",
        f"- Description: {issue.description}",
        "",
    ]

    if test_output_snippet:
        prompt_parts.extend([
            "**Failing Test Output (for context only, do NOT edit test files):**",
            "```",
            test_output_snippet,
            "```",
            "",
        ])

    prompt_parts.extend([
        f'**Current content of "{issue.file}":**',
        "```",
        file_content,
        "```",
        "",
        "**Instructions:**",
        "1. Fix ONLY the specific bug described above. Do NOT change any other logic.",
        "2. Do NOT modify test files, only the source/implementation file.",
        f'3. Return the COMPLETE corrected content of "{issue.file}" and nothing else.',
        "4. No explanation, no markdown fences, just the raw corrected code.",
    ])

    return "\n".join(prompt_parts)
