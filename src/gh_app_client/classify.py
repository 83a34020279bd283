"""Turn overloaded GitHub API errors into semantic outcomes.

Some endpoints report a valid-but-empty state as an error. The branch
protection endpoint, for example, answers ``404 Branch not protected`` for a
branch that simply has no rules. Each such case is listed in
``SEMANTIC_EMPTY_RULES`` as an exact (status, message) pair for one resource;
everything else stays a failure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .client import Client
from .errors import ApiError

BRANCH_PROTECTION = "branch_protection"
BRANCH_NOT_PROTECTED_MESSAGE = "Branch not protected"


@dataclass(frozen=True)
class SemanticEmptyRule:
    resource: str
    status_code: int
    message: str
    reason: str

    def matches(self, resource: str, error: ApiError) -> bool:
        return (
            resource == self.resource
            and error.status_code == self.status_code
            and error.message == self.message
        )


SEMANTIC_EMPTY_RULES: Tuple[SemanticEmptyRule, ...] = (
    SemanticEmptyRule(
        resource=BRANCH_PROTECTION,
        status_code=404,
        message=BRANCH_NOT_PROTECTED_MESSAGE,
        reason="branch has no protection rules",
    ),
)


@dataclass(frozen=True)
class Success:
    payload: Any


@dataclass(frozen=True)
class EmptyBySemanticRule:
    reason: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failure:
    status_code: int
    message: str
    documentation_url: Optional[str] = None


ApiOutcome = Union[Success, EmptyBySemanticRule, Failure]


def classify_error(error: ApiError, resource: str) -> Union[EmptyBySemanticRule, Failure]:
    """Classify an API error raised while fetching ``resource``."""

    if not isinstance(error, ApiError):
        raise TypeError(f"Only API errors can be classified, got {type(error).__name__}")

    for rule in SEMANTIC_EMPTY_RULES:
        if rule.matches(resource, error):
            return EmptyBySemanticRule(reason=rule.reason)
    return Failure(error.status_code, error.message, error.documentation_url)


def fetch_branch_protection(client: Client, owner: str, repo: str, branch: str) -> ApiOutcome:
    """Fetch branch protection rules as an :data:`ApiOutcome`.

    Transport and token errors are not API outcomes and propagate unchanged.
    """

    try:
        payload = client.get_branch_protection(owner, repo, branch)
    except ApiError as exc:
        return classify_error(exc, BRANCH_PROTECTION)
    return Success(payload)


def get_branch_protection_rules(client: Client, owner: str, repo: str, branch: str) -> bytes:
    """Return the branch protection rules serialized as JSON.

    An unprotected branch yields ``b"{}"``. Any other API error is re-raised.
    """

    try:
        payload = client.get_branch_protection(owner, repo, branch)
    except ApiError as exc:
        outcome = classify_error(exc, BRANCH_PROTECTION)
        if isinstance(outcome, Failure):
            raise
        payload = outcome.payload
    return json.dumps(payload).encode("utf-8")
