"""Helper utilities for determining the review state of a pull request from the reviews submitted on it
and the reviews currently requested.

This covers
- collapsing all reviews by one reviewer into a single, current state per reviewer,
- extracting the users whose review is requested,
- classifying a PR as needing review, awaiting changes or ready to merge,
- describing each reviewer's relation to a PR (for display, and whether their action is pending).
"""

from enum import Enum, auto, unique
from typing import Iterable, List, NamedTuple

from pr_data import Identity, NameRegistry, ReviewSubmission


# The state of a review, as reported by github.
# NB. The order of the variants matters: it is the precedence order used when a reviewer
# submitted several reviews on the same PR, from highest to lowest.
@unique
class ReviewState(Enum):
    ChangesRequested = auto()
    Approved = auto()
    Commented = auto()
    Dismissed = auto()
    Pending = auto()
    # Any state github reports which we do not know about.
    Other = auto()

    @staticmethod
    def from_string(s: str):  # -> ReviewState
        return {
            "CHANGES_REQUESTED": ReviewState.ChangesRequested,
            "APPROVED": ReviewState.Approved,
            "COMMENTED": ReviewState.Commented,
            "DISMISSED": ReviewState.Dismissed,
            "PENDING": ReviewState.Pending,
        }.get(s, ReviewState.Other)

    # Higher means more significant: a review in a more significant state is never overridden.
    def precedence(self) -> int:
        return len(ReviewState) - self.value

    def outranks(self, other) -> bool:
        return self.precedence() > other.precedence()


# How each review state is shown on the generated page.
# Unknown states are shown as their lower-cased github name instead.
review_state_labels: dict[ReviewState, str] = {
    ReviewState.Approved: "approved",
    ReviewState.ChangesRequested: "requested changes",
    ReviewState.Commented: "commented",
    ReviewState.Dismissed: "dismissed",
    ReviewState.Pending: "pending",
}

# A reviewer in one of these states still has to act on a PR (e.g., re-review after changes).
PENDING_STATES = [ReviewState.Commented, ReviewState.ChangesRequested, ReviewState.Pending]


# The current state of a single reviewer on a PR: this is the most significant review they submitted.
class ResolvedReviewer(NamedTuple):
    login: str
    name: str | None
    state: ReviewState
    # The state as github reported it, e.g. "APPROVED".
    raw_state: str

    def label(self) -> str:
        return review_state_labels.get(self.state, self.raw_state.lower())


# Describes the current status of a pull request in terms of the categories we care about.
class PRStatus(Enum):
    # This PR does not have enough approvals yet, and nobody requested changes.
    NeedsReview = "needs_review"
    # Some reviewer requested changes, and this PR does not have enough approvals.
    ChangesRequested = "changes_requested"
    # This PR has at least the required number of approvals.
    ReadyToMerge = "ready_to_merge"

    # Keep this in sync with the definition above.
    def to_str(self) -> str:
        return {
            PRStatus.NeedsReview: "Needs Review",
            PRStatus.ChangesRequested: "Changes Requested",
            PRStatus.ReadyToMerge: "Ready to Merge",
        }[self]

    @staticmethod
    def tryFrom_str(value: str):  # -> PRStatus | None
        return {status.value: status for status in PRStatus}.get(value)


# Collapse all reviews on a PR into one state per reviewer.
# Reviews by the PR author |author_login| are ignored; pass `None` if the author is unknown.
# For each reviewer, their most significant review wins: a later review never replaces
# an earlier one of the same or higher precedence.
# Any full names on the reviews are recorded in |names|.
# Reviewers are returned in the order of their first review.
def resolve_review_states(
    reviews: Iterable[ReviewSubmission], author_login: str | None, names: NameRegistry
) -> dict[str, ResolvedReviewer]:
    resolved: dict[str, ResolvedReviewer] = dict()
    for review in reviews:
        if not review.login or review.login == author_login:
            continue
        names.record(review.login, review.name)
        state = ReviewState.from_string(review.state)
        current = resolved.get(review.login)
        if current is None or state.outranks(current.state):
            resolved[review.login] = ResolvedReviewer(review.login, review.name, state, review.state)
    return resolved


# Return the github handles of all users whose review is requested, without duplicates
# and in the order given. Any full names are recorded in |names|.
def requested_reviewer_logins(requested: Iterable[Identity], names: NameRegistry) -> List[str]:
    logins: List[str] = []
    for reviewer in requested:
        names.record_identity(reviewer)
        if reviewer.login not in logins:
            logins.append(reviewer.login)
    return logins


def approving_reviewers(resolved: dict[str, ResolvedReviewer]) -> List[str]:
    return [login for (login, reviewer) in resolved.items() if reviewer.state == ReviewState.Approved]


def determine_pr_status(resolved: dict[str, ResolvedReviewer], required_approvals: int) -> PRStatus:
    """Determine a PR's status from the resolved state of each of its reviewers.

    Having enough approvals takes precedence over requested changes: the requested changes
    might come from a different reviewer, and are not checked for being outdated."""
    if len(approving_reviewers(resolved)) >= required_approvals:
        return PRStatus.ReadyToMerge
    elif any(reviewer.state == ReviewState.ChangesRequested for reviewer in resolved.values()):
        return PRStatus.ChangesRequested
    return PRStatus.NeedsReview


# Whether |login|'s action on this PR is still pending: this is the case if their review was requested,
# but they have not reviewed yet, or if their current review state is not final (see |PENDING_STATES|).
# Approvals, dismissed reviews and unknown states do not count as pending.
def is_pending(login: str, requested: List[str], resolved: dict[str, ResolvedReviewer]) -> bool:
    reviewer = resolved.get(login)
    if reviewer is None:
        return login in requested
    return reviewer.state in PENDING_STATES


# Describe each reviewer's relation to a PR, such as "alice (requested)" or "bob (approved)".
# Requested reviewers who have not reviewed yet come first, followed by everybody who reviewed.
def reviewer_annotations(requested: List[str], resolved: dict[str, ResolvedReviewer]) -> List[str]:
    annotations = [f"{login} (requested)" for login in requested if login not in resolved]
    annotations.extend(f"{login} ({reviewer.label()})" for (login, reviewer) in resolved.items())
    return annotations
