"""Source-level checks for the interpreter versions declared in pyproject.toml."""

import re
from pathlib import Path

import pytest

PACKAGE_DIR = Path(__file__).resolve().parent.parent / "lucalendar"

_F_STRING_RE = re.compile(r"""\b[rR]?[fF][rR]?("|')(.*?)(?<!\\)\1""")
_EXPRESSION_RE = re.compile(r"\{([^{}]*)\}")


def _source_files():
    return sorted(PACKAGE_DIR.rglob("*.py"))


@pytest.mark.parametrize("path", _source_files(), ids=lambda p: str(p.relative_to(PACKAGE_DIR)))
def test_no_backslash_in_f_string_expressions(path):
    """Python < 3.12 rejects backslashes inside f-string replacement fields."""
    offending = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        for literal in _F_STRING_RE.finditer(line):
            if any("\\" in expr for expr in _EXPRESSION_RE.findall(literal.group(2))):
                offending.append(f"{path.name}:{lineno}")
    assert offending == []
