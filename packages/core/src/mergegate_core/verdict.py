"""Reviewer verdicts and the parser for free-text reviewer output.

Reviewer output is free text that must contain a line such as::

    VERDICT: FAIL
    ISSUE: Token compared with ==
    SEVERITY: BLOCKING
    LOCATION: src/auth.py:42
    DETAILS: Use hmac.compare_digest

The first well-formed ``VERDICT:`` line is authoritative. A line that names
several outcomes (an echoed template such as ``VERDICT: [PASS or FAIL]``) is
skipped; any other malformed marker fails the parse. Text around the marker
is ignored for parsing but kept in ``raw`` for display.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

from mergegate_core.errors import VerdictParseError

_VERDICT_RE = re.compile(r"^VERDICT:\s*(?:\[\s*([A-Za-z_]+)\s*\]|([A-Za-z_]+))(?:\s+\([^)]*\))?\s*$")
_OUTCOME_WORD_RE = re.compile(r"\b(?:PASS|FAIL|SAFE_TO_MERGE|BLOCK_MERGE)\b", re.IGNORECASE)
_FIELD_RE = re.compile(r"^(ISSUE|SEVERITY|LOCATION|DETAILS|SOURCE|STATUS):\s*(.*)$")


class Outcome(enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    SAFE_TO_MERGE = "SAFE_TO_MERGE"
    BLOCK_MERGE = "BLOCK_MERGE"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.FAIL, Outcome.BLOCK_MERGE)


COMMIT_OUTCOMES = frozenset({Outcome.PASS, Outcome.FAIL})
MERGE_OUTCOMES = frozenset({Outcome.SAFE_TO_MERGE, Outcome.BLOCK_MERGE})


class Severity(enum.Enum):
    BLOCKING = "BLOCKING"
    WARNING = "WARNING"


@dataclass(frozen=True)
class Issue:
    description: str
    severity: Severity
    location: str = ""
    details: str = ""
    source: str = ""
    status: str = ""

    def render(self) -> str:
        parts = [f"[{self.severity.value}] {self.description}"]
        if self.location:
            parts.append(f"  at {self.location}")
        if self.source:
            parts.append(f"  source: {self.source}")
        if self.details:
            parts.append(f"  {self.details}")
        return "\n".join(parts)


@dataclass(frozen=True)
class ReviewVerdict:
    outcome: Outcome
    issues: tuple[Issue, ...] = ()
    source: str = ""
    raw: str = ""
    cached: bool = False

    @property
    def has_blocking(self) -> bool:
        return any(i.severity == Severity.BLOCKING for i in self.issues)

    @property
    def blocking_issues(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == Severity.BLOCKING]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @classmethod
    def cached_pass(cls, source: str) -> ReviewVerdict:
        return cls(outcome=Outcome.PASS, source=source, raw="VERDICT: PASS (cached)", cached=True)


def _parse_issues(lines: list[str], default_severity: Severity) -> tuple[Issue, ...]:
    issues: list[Issue] = []
    current: dict[str, str] | None = None
    last_field: str | None = None

    def flush():
        if current is not None:
            issues.append(_build_issue(current, default_severity))

    for line in lines:
        stripped = line.strip()
        match = _FIELD_RE.match(stripped)
        if match:
            name, value = match.group(1), match.group(2).strip()
            if name == "ISSUE":
                flush()
                current = {"ISSUE": value}
            elif current is not None:
                current[name] = value
            last_field = name
        elif current is not None and last_field == "DETAILS" and stripped:
            current["DETAILS"] = f"{current.get('DETAILS', '')}\n{stripped}".strip()
        elif not stripped:
            last_field = None
    flush()
    return tuple(issues)


def _build_issue(fields: dict[str, str], default_severity: Severity) -> Issue:
    try:
        severity = Severity(fields.get("SEVERITY", "").strip("[]* ").upper())
    except ValueError:
        severity = default_severity
    return Issue(
        description=fields.get("ISSUE", ""),
        severity=severity,
        location=fields.get("LOCATION", ""),
        details=fields.get("DETAILS", ""),
        source=fields.get("SOURCE", ""),
        status=fields.get("STATUS", ""),
    )


def parse_verdict(text: str, source: str = "", allowed: frozenset[Outcome] = COMMIT_OUTCOMES) -> ReviewVerdict:
    """Parse reviewer output into a ReviewVerdict.

    Raises VerdictParseError when there is no usable marker line, when the
    first one is malformed, or when it carries a value outside ``allowed``.
    An empty or unparseable response is never treated as an implicit pass.
    """
    if not text or not text.strip():
        raise VerdictParseError("Empty response from reviewer", source=source, raw=text or "")

    lines = text.splitlines()
    saw_template = False
    for index, line in enumerate(lines):
        if not line.startswith("VERDICT:"):
            continue
        if len({w.upper() for w in _OUTCOME_WORD_RE.findall(line)}) > 1:
            saw_template = True
            continue  # echoed template
        match = _VERDICT_RE.match(line.rstrip())
        value = (match.group(1) or match.group(2)).upper() if match else ""
        try:
            outcome = Outcome(value)
        except ValueError:
            raise VerdictParseError(f"Unexpected verdict format: {line.strip()}", source=source, raw=text)
        if outcome not in allowed:
            raise VerdictParseError(f"Verdict {outcome.value} is not valid here", source=source, raw=text)

        default_severity = Severity.BLOCKING if outcome == Outcome.BLOCK_MERGE else Severity.WARNING
        issues = _parse_issues(lines[index + 1 :], default_severity) if outcome.is_failure else ()
        return ReviewVerdict(outcome=outcome, issues=issues, source=source, raw=text)

    if saw_template:
        raise VerdictParseError("Only a template VERDICT line was found", source=source, raw=text)
    raise VerdictParseError("No 'VERDICT:' line found", source=source, raw=text)
