"""Hosting-platform records as the gate sees them.

Decoupled from PyGithub so gate logic and tests never touch SDK objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Review states that change a reviewer's standing on a PR. COMMENTED and
# PENDING reviews never supersede an earlier decision.
STATE_BEARING_REVIEW_STATES = frozenset({"APPROVED", "CHANGES_REQUESTED", "DISMISSED"})


@dataclass(frozen=True)
class Review:
    author: str
    state: str  # "APPROVED" | "CHANGES_REQUESTED" | "COMMENTED" | "DISMISSED" | "PENDING"
    submitted_at: datetime | None = None
    body: str = ""


@dataclass(frozen=True)
class Comment:
    author: str
    body: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class StatusCheck:
    name: str
    status: str  # "COMPLETED" | "IN_PROGRESS" | "QUEUED" | "PENDING"
    conclusion: str | None = None  # "SUCCESS" | "FAILURE" | "NEUTRAL" | "SKIPPED" | ... ; None while pending

    def render(self) -> str:
        return f"- {self.name}: {self.status} ({self.conclusion or 'pending'})"


@dataclass(frozen=True)
class InlineComment:
    id: int
    path: str
    line: int | None
    author: str
    body: str
    outdated: bool = False

    def render(self) -> str:
        where = f"{self.path}:{self.line}" if self.line else self.path
        return f"- [{self.author}] {where}: {self.body.strip()}"


@dataclass
class PRRecord:
    number: int
    title: str
    state: str
    review_decision: str | None = None  # "APPROVED" | "CHANGES_REQUESTED" | "REVIEW_REQUIRED" | None
    reviews: list[Review] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    # None means the token could not read checks, not that there are none.
    status_checks: list[StatusCheck] | None = None
    head_sha: str = ""
