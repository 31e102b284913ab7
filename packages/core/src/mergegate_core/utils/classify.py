"""Path and content classification used by both review paths.

Every predicate here is a pure function of its inputs: no I/O, no git calls.
The commented-on category is driven by a path set supplied by the caller.
"""

from __future__ import annotations

import enum
import fnmatch
import logging
import re
from typing import Iterable

logger = logging.getLogger(__name__)


class FileCategory(enum.Enum):
    SECURITY_CRITICAL = "security-critical"
    DATA = "data"
    COMMENTED = "commented"
    CODE = "code"


SECURITY_KEYWORDS = (
    "auth",
    "oauth",
    "jwt",
    "password",
    "session",
    "login",
    "register",
    "payment",
    "billing",
    "stripe",
    "paypal",
    "checkout",
    "transaction",
    "db",
    "database",
    "model",
    "migration",
    "schema",
    "security",
    "crypto",
    "encryption",
    "secret",
    "vault",
)

# Matched against the basename. pnpm-lock.yaml is listed explicitly because
# *.yaml is not a data pattern in general.
DATA_FILE_PATTERNS = (
    "pnpm-lock.yaml",
    "*-lock.json",
    "*.lock",
    "*.min.js",
    "*.min.css",
    "*.bundle.js",
    "*.generated.*",
    "*.json",
)

LOCKFILE_NAMES = {
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "Gemfile.lock",
    "Cargo.lock",
    "composer.lock",
}

DOCUMENTATION_EXTENSIONS = (".md",)

# Secrets, auth, payment, raw SQL, dynamic execution and environment access.
_SCRUTINY_CONTENT_RE = re.compile(
    r"API_KEY|SECRET_KEY|PRIVATE_KEY|ACCESS_TOKEN|REFRESH_TOKEN|BEARER|PASSWORD"
    r"|bcrypt|argon2|pbkdf2|authenticate|authorize|isAdmin|hasRole"
    r"|stripe|paypal|braintree|credit.?card|payment.?intent"
    r"|DROP TABLE|CREATE TABLE|ALTER TABLE|execute\("
    r"|encrypt|decrypt|nonce|cipher"
    r"|eval\(|exec\(|system\(|shell_exec|child_process|subprocess|dangerouslySetInnerHTML"
    r"|process\.env|import\.meta\.env|getenv|os\.environ",
    re.IGNORECASE,
)
_SCRUTINY_EXTENSIONS = (".sql", ".env", ".key", ".pem", ".crt", ".p12", ".pfx", ".jks")
_SCRUTINY_LINE_COUNT = 200


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def is_security_critical(path: str) -> bool:
    lowered = path.lower()
    return any(keyword in lowered for keyword in SECURITY_KEYWORDS)


def is_data_file(path: str) -> bool:
    name = _basename(path)
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in DATA_FILE_PATTERNS)


def has_inline_comments(path: str, commented_paths: Iterable[str]) -> bool:
    return path in set(commented_paths)


def is_lockfile(path: str) -> bool:
    return _basename(path) in LOCKFILE_NAMES


def is_documentation_file(path: str) -> bool:
    return path.lower().endswith(DOCUMENTATION_EXTENSIONS)


def classify(path: str, commented_paths: Iterable[str] = ()) -> set[FileCategory]:
    """Return every category path falls into.

    A path may match several predicates; CODE is returned only when none of
    the others match.
    """
    categories = set()
    if is_security_critical(path):
        categories.add(FileCategory.SECURITY_CRITICAL)
    if has_inline_comments(path, commented_paths):
        categories.add(FileCategory.COMMENTED)
    if is_data_file(path):
        categories.add(FileCategory.DATA)
    return categories or {FileCategory.CODE}


def primary_category(path: str, commented_paths: Iterable[str] = ()) -> FileCategory:
    """Resolve overlapping categories to the one that drives diff handling.

    Security-critical wins over everything so that a sensitive JSON file is
    never downgraded to a summary.
    """
    categories = classify(path, commented_paths)
    for category in (FileCategory.SECURITY_CRITICAL, FileCategory.COMMENTED, FileCategory.DATA):
        if category in categories:
            return category
    return FileCategory.CODE


def needs_elevated_scrutiny(paths: Iterable[str], diff_text: str) -> bool:
    """Heuristic flag for changes that deserve a closer adversarial look.

    Informational only: the adversarial reviewer runs on every commit either
    way, this just changes what gets logged.
    """
    paths = list(paths)
    if any(is_security_critical(p) for p in paths):
        return True
    if any(p.lower().endswith(_SCRUTINY_EXTENSIONS) for p in paths):
        return True
    if _SCRUTINY_CONTENT_RE.search(diff_text):
        return True
    return diff_text.count("\n") + 1 > _SCRUTINY_LINE_COUNT
