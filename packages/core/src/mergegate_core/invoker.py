"""Bounded, cached invocation of an external reviewer.

One call, no retries: a human retries by re-running the gate. Error policy
(fail-open or fail-closed) belongs to the caller; the invoker only classifies
what happened into the error taxonomy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mergegate_core.errors import InvocationTimeout, ProcessFailure, VerdictParseError
from mergegate_core.providers.base import ReviewerTimeout
from mergegate_core.verdict import COMMIT_OUTCOMES, Outcome, ReviewVerdict, parse_verdict

if TYPE_CHECKING:
    from mergegate_core.providers.base import BaseReviewer
    from mergegate_store.base import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120


class AgentInvoker:
    def __init__(self, reviewer: BaseReviewer, cache: CacheStore, timeout: float = DEFAULT_TIMEOUT):
        self.reviewer = reviewer
        self.cache = cache
        self.timeout = timeout

    def invoke(
        self,
        agent: str | None,
        prompt: str,
        cache_key: str | None = None,
        allowed: frozenset[Outcome] = COMMIT_OUTCOMES,
    ) -> ReviewVerdict:
        """Return the reviewer's verdict for prompt.

        A cache hit on cache_key returns a synthetic PASS without running the
        reviewer. Only a PASS is ever written back. cache_key=None bypasses
        the cache in both directions.

        Raises InvocationTimeout, ProcessFailure or VerdictParseError.
        """
        source = agent or "reviewer"

        if cache_key is not None and self.cache.get(cache_key) is not None:
            logger.info("%s: cached PASS", source)
            return ReviewVerdict.cached_pass(source)

        logger.info("Running %s...", source)
        try:
            result = self.reviewer.review(agent, prompt, self.timeout)
        except ReviewerTimeout as e:
            logger.error("%s timed out after %ss", source, self.timeout)
            raise InvocationTimeout(source, self.timeout, e.output) from e

        if result.returncode != 0:
            logger.error("%s exited with error code %d", source, result.returncode)
            raise ProcessFailure(source, result.returncode, result.output)

        try:
            verdict = parse_verdict(result.output, source=source, allowed=allowed)
        except VerdictParseError:
            logger.error("Could not parse %s verdict", source)
            raise

        if verdict.outcome == Outcome.PASS and cache_key is not None:
            self.cache.put(cache_key, Outcome.PASS.value)
        return verdict
