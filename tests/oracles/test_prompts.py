"""Tests for oracle prompts."""

from auto_heal.ledger import Issue, IssueKind
from auto_heal.oracles import create_diagnosis_prompt, create_repair_prompt


class TestDiagnosisPrompt:
    """Tests for create_diagnosis_prompt."""

    def test_contains_output_and_hints(self) -> None:
        """Test that the output and source hints are included."""
        prompt = create_diagnosis_prompt("E   NameError: name 'x' is not defined", ["src/a.py", "src/b.py"])

        assert "NameError: name 'x' is not defined" in prompt
        assert "src/a.py\nsrc/b.py" in prompt
        assert '"issues"' in prompt

    def test_lists_every_kind(self) -> None:
        """Test that the closed kind set is spelled out."""
        prompt = create_diagnosis_prompt("boom", [])

        for kind in IssueKind:
            assert kind.value in prompt

    def test_no_hints_section_without_hints(self) -> None:
        """Test that the hint header is omitted when there are no hints."""
        assert "Source files in this repository" not in create_diagnosis_prompt("boom", [])


class TestRepairPrompt:
    """Tests for create_repair_prompt."""

    def test_contains_issue_and_content(self) -> None:
        """Test that the bug details and file content are included."""
        issue = Issue(file="src/a.py", kind=IssueKind.SYNTAX, line=8, description="missing colon")

        prompt = create_repair_prompt(issue, "def f()\n    pass\n", "SyntaxError: expected ':'")

        assert "- File: src/a.py" in prompt
        assert "- Type: SYNTAX" in prompt
        assert "- Line: 8" in prompt
        assert "missing colon" in prompt
        assert "def f()\n    pass" in prompt
        assert "SyntaxError: expected ':'" in prompt

    def test_unknown_line(self) -> None:
        """Test the wording for line 0."""
        issue = Issue(file="a.py", kind=IssueKind.LOGIC, line=0, description="wrong sum")

        prompt = create_repair_prompt(issue, "x = 1\n", "")

        assert "- Line: unknown" in prompt
        assert "Failing Test Output" not in prompt
