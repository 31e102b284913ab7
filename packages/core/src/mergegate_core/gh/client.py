"""Hosting-platform client.

HostingClient is the seam the pre-merge gate talks to; GithubHostingClient
implements it on PyGithub. Diagnostics go to logging only, so every return
value is structured data even when the platform emits warnings.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from github import Github, GithubException

from mergegate_core.diff import Diff
from mergegate_core.errors import HostingError
from mergegate_core.gh.models import Comment, InlineComment, PRRecord, Review, StatusCheck

logger = logging.getLogger(__name__)

PR_FIELDS = ("reviews", "comments", "review_decision", "status_checks")
# Fine-grained personal access tokens cannot read the Checks API.
PR_FIELDS_FALLBACK = ("reviews", "comments", "review_decision")

_PAT_DENIAL = "not accessible by personal access token"

_STATUS_STATE_TO_CONCLUSION = {
    "success": "SUCCESS",
    "failure": "FAILURE",
    "error": "ERROR",
}

_PR_GRAPHQL = """
query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      reviewDecision
      reviewThreads(first: 100) {
        nodes {
          isResolved
          comments(first: 100) { nodes { databaseId } }
        }
      }
    }
  }
}
"""


class HostingClient(ABC):
    """Read/write access to a pull request's review surface."""

    @abstractmethod
    def fetch_pr(self, number: int, fields: Iterable[str] = PR_FIELDS) -> PRRecord:
        """Fetch PR metadata; retry once without status checks on a token denial."""

    @abstractmethod
    def fetch_diff(self, number: int) -> Diff:
        pass

    @abstractmethod
    def post_comment(self, number: int, body: str) -> None:
        pass

    @abstractmethod
    def create_issue(self, title: str, body: str) -> int:
        pass

    @abstractmethod
    def list_inline_comments(self, number: int) -> list[InlineComment]:
        pass

    @abstractmethod
    def query_thread_resolution(self, number: int) -> set[int]:
        """Return the ids of inline comments that belong to resolved threads."""

    @abstractmethod
    def find_pr_for_branch(self, branch: str) -> int | None:
        pass


def active_inline_comments(client: HostingClient, number: int) -> list[InlineComment]:
    """Inline comments still worth a reviewer's attention.

    Outdated comments (code changed since) and comments in resolved threads
    are dropped before anything reaches a reviewer.
    """
    comments = client.list_inline_comments(number)
    current = [c for c in comments if not c.outdated]
    if len(current) != len(comments):
        logger.info("Filtered %d outdated inline comment(s)", len(comments) - len(current))

    try:
        resolved = client.query_thread_resolution(number)
    except HostingError as e:
        logger.warning("Could not query thread resolution; keeping all current comments: %s", e)
        resolved = set()
    active = [c for c in current if c.id not in resolved]
    if len(active) != len(current):
        logger.info("Filtering %d resolved comment(s)", len(current) - len(active))
    return active


def _is_pat_denial(e: GithubException) -> bool:
    return e.status == 403 and _PAT_DENIAL in str(e.data or e).lower()


def _upper(value: str | None) -> str | None:
    return value.upper() if value else None


class GithubHostingClient(HostingClient):
    def __init__(self, repo_name: str, token: str | None = None, gh: Github | None = None):
        self.repo_name = repo_name
        self._gh = gh if gh is not None else Github(token)
        self._repo = None

    @property
    def repo(self):
        if self._repo is None:
            try:
                self._repo = self._gh.get_repo(self.repo_name)
            except GithubException as e:
                raise HostingError(f"Could not open repository {self.repo_name}: {e}") from e
        return self._repo

    def _pull(self, number: int):
        try:
            return self.repo.get_pull(number)
        except GithubException as e:
            raise HostingError(f"Failed to fetch PR #{number}: {e}") from e

    # ------------------------------------------------------------------ #
    # GraphQL                                                             #
    # ------------------------------------------------------------------ #

    def _graphql_pr(self, number: int) -> dict:
        owner, _, name = self.repo_name.partition("/")
        try:
            _, payload = self._gh.requester.requestJsonAndCheck(
                "POST",
                "/graphql",
                input={"query": _PR_GRAPHQL, "variables": {"owner": owner, "name": name, "number": number}},
            )
        except GithubException as e:
            raise HostingError(f"GraphQL query for PR #{number} failed: {e}") from e
        if payload.get("errors"):
            logger.warning("GraphQL returned errors for PR #%d: %s", number, payload["errors"])
        repository = (payload.get("data") or {}).get("repository") or {}
        return repository.get("pullRequest") or {}

    # ------------------------------------------------------------------ #
    # HostingClient                                                       #
    # ------------------------------------------------------------------ #

    def fetch_pr(self, number: int, fields: Iterable[str] = PR_FIELDS) -> PRRecord:
        fields = tuple(fields)
        pr = self._pull(number)
        try:
            return self._build_record(pr, fields)
        except GithubException as e:
            if "status_checks" in fields and _is_pat_denial(e):
                logger.warning("Status checks not accessible; retrying without them")
                try:
                    return self._build_record(pr, PR_FIELDS_FALLBACK)
                except GithubException as retry_error:
                    raise HostingError(f"Failed to fetch PR #{number}: {retry_error}") from retry_error
            raise HostingError(f"Failed to fetch PR #{number}: {e}") from e

    def _build_record(self, pr, fields: tuple[str, ...]) -> PRRecord:
        record = PRRecord(number=pr.number, title=pr.title or "", state=(pr.state or "").upper(), head_sha=pr.head.sha)
        if "reviews" in fields:
            record.reviews = [
                Review(
                    author=r.user.login if r.user else "",
                    state=(r.state or "").upper(),
                    submitted_at=r.submitted_at,
                    body=r.body or "",
                )
                for r in pr.get_reviews()
            ]
        if "comments" in fields:
            record.comments = [
                Comment(author=c.user.login if c.user else "", body=c.body or "", created_at=c.created_at)
                for c in pr.get_issue_comments()
            ]
        if "review_decision" in fields:
            try:
                record.review_decision = self._graphql_pr(pr.number).get("reviewDecision")
            except HostingError as e:
                # Per-review records are still checked without the aggregate.
                logger.warning("Could not read review decision: %s", e)
        if "status_checks" in fields:
            record.status_checks = self._status_checks(pr.head.sha)
        return record

    def _status_checks(self, sha: str) -> list[StatusCheck]:
        commit = self.repo.get_commit(sha)
        checks = [
            StatusCheck(name=run.name, status=(run.status or "").upper(), conclusion=_upper(run.conclusion))
            for run in commit.get_check_runs()
        ]
        for status in commit.get_combined_status().statuses:
            conclusion = _STATUS_STATE_TO_CONCLUSION.get(status.state)
            checks.append(
                StatusCheck(name=status.context, status="COMPLETED" if conclusion else "PENDING", conclusion=conclusion)
            )
        return checks

    def fetch_diff(self, number: int) -> Diff:
        pr = self._pull(number)
        try:
            return Diff.from_files(sorted(pr.get_files(), key=lambda f: f.filename))
        except GithubException as e:
            raise HostingError(f"Could not fetch diff for PR #{number}: {e}") from e

    def post_comment(self, number: int, body: str) -> None:
        try:
            self._pull(number).create_issue_comment(body)
        except GithubException as e:
            raise HostingError(f"Could not comment on PR #{number}: {e}") from e

    def create_issue(self, title: str, body: str) -> int:
        try:
            return self.repo.create_issue(title=title, body=body).number
        except GithubException as e:
            raise HostingError(f"Could not create issue: {e}") from e

    def list_inline_comments(self, number: int) -> list[InlineComment]:
        try:
            return [
                InlineComment(
                    id=c.id,
                    path=c.path,
                    line=c.line if c.line is not None else c.original_line,
                    author=c.user.login if c.user else "",
                    body=c.body or "",
                    # The REST API nulls position once the commented line is gone.
                    outdated=c.position is None,
                )
                for c in self._pull(number).get_review_comments()
            ]
        except GithubException as e:
            raise HostingError(f"Could not fetch inline comments for PR #{number}: {e}") from e

    def query_thread_resolution(self, number: int) -> set[int]:
        threads = (self._graphql_pr(number).get("reviewThreads") or {}).get("nodes") or []
        resolved = set()
        for thread in threads:
            if thread.get("isResolved"):
                for comment in (thread.get("comments") or {}).get("nodes") or []:
                    if comment.get("databaseId") is not None:
                        resolved.add(int(comment["databaseId"]))
        return resolved

    def find_pr_for_branch(self, branch: str) -> int | None:
        owner = self.repo_name.split("/", 1)[0]
        try:
            pulls = self.repo.get_pulls(state="open", head=f"{owner}:{branch}")
            for pr in pulls:
                return pr.number
        except GithubException as e:
            raise HostingError(f"Could not look up PR for branch {branch}: {e}") from e
        return None
