from __future__ import annotations

import hashlib


def normalize(text: str) -> str:
    """Canonicalise diff text so cosmetic noise does not change the key.

    CRLF becomes LF, trailing whitespace is stripped per line and trailing
    blank lines are dropped.
    """
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).rstrip("\n")


def fingerprint(text: str, *, path: str | None = None, agent: str | None = None) -> str:
    """Return a SHA-256 content fingerprint for text.

    path and agent are folded in so identical text in two files, or the same
    diff judged by two reviewers, never share a cache entry.
    """
    digest = hashlib.sha256()
    for part in (agent or "", path or ""):
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    digest.update(normalize(text).encode("utf-8"))
    return digest.hexdigest()
