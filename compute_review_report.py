#!/usr/bin/env python3

"""
This file contains the code for computing the review report from a list of open PRs:
for every reviewer, the PRs they are involved in (and how many of these await their action),
for every author, the PRs they opened, and the list of PRs which are ready to merge.

This is pure computation: reading the input data and writing the generated page is done in |dashboard.py|.
"""

from datetime import datetime, timezone
from functools import reduce
from typing import Any, Iterable, List, NamedTuple

from classify_pr_state import (PRStatus, ResolvedReviewer, approving_reviewers, determine_pr_status, is_pending,
                               requested_reviewer_logins, resolve_review_states, reviewer_annotations)
from derived_fields import AgeSeverity, age_in_days, age_severity, extract_ticket_references
from pr_data import NameRegistry, PullRequest


# Number of approvals required to merge a PR (repository rule).
DEFAULT_REQUIRED_APPROVALS = 3


# The settings the review report depends on.
class ReportSettings(NamedTuple):
    # PRs with at least this many approving reviews are ready to merge.
    required_approvals: int
    # The time used for computing each PR's age.
    now: datetime

    @staticmethod
    def default():
        return ReportSettings(DEFAULT_REQUIRED_APPROVALS, datetime.now(timezone.utc))


# Information about a PR, as listed in the PR list of its author
# (and in the list of PRs which are ready to merge).
class AuthorPRSummary(NamedTuple):
    number: int
    title: str
    # The author's github handle
    author: str
    is_draft: bool
    created_at: datetime
    days_open: int
    age_severity: AgeSeverity
    # Ticket references mentioned in the title
    tickets: List[str]
    # Each reviewer's relation to this PR, e.g. "alice (requested), bob (approved)"
    reviewers: str
    # The number of approving reviews
    approvals: int
    status: PRStatus


# Information about a PR, as listed in the PR list of one of its reviewers.
class ReviewerPRSummary(NamedTuple):
    number: int
    title: str
    author: str
    is_draft: bool
    created_at: datetime
    days_open: int
    age_severity: AgeSeverity
    tickets: List[str]
    reviewers: str
    approvals: int
    status: PRStatus
    # True if and only if this reviewer still has to act on this PR.
    is_pending: bool

    @staticmethod
    def for_reviewer(summary: AuthorPRSummary, is_pending: bool):
        return ReviewerPRSummary(*summary, is_pending)


# All PRs a reviewer is involved in: every PR they are requested on or have reviewed.
class ReviewerAggregate(NamedTuple):
    # The number of PRs awaiting this reviewer's action.
    pending: int
    # At most one entry per PR. After the report is computed, PRs awaiting this reviewer come first.
    pr_details: List[ReviewerPRSummary]


class AuthorAggregate(NamedTuple):
    count: int
    pr_details: List[AuthorPRSummary]


class ReadyToMergeEntry(NamedTuple):
    summary: AuthorPRSummary
    # The github handles of all approving reviewers
    approved_by: List[str]


# The complete review report: this is all the generated page displays.
class ReviewReport(NamedTuple):
    reviewers: dict[str, ReviewerAggregate]
    authors: dict[str, AuthorAggregate]
    ready_to_merge: List[ReadyToMergeEntry]
    # Full names of all users, where known.
    names: dict[str, str]
    total_prs: int
    required_approvals: int
    generated_at: datetime


# Everything collected while processing PRs one at a time.
# |add_pr| updates this in place; |finish| returns the final (sorted) report.
class ReportAccumulator:
    def __init__(self, settings: ReportSettings) -> None:
        self.settings = settings
        self.reviewers: dict[str, ReviewerAggregate] = dict()
        self.authors: dict[str, AuthorAggregate] = dict()
        self.ready_to_merge: List[ReadyToMergeEntry] = []
        self.names = NameRegistry()
        self.total_prs = 0

    def add_pr(self, pr: PullRequest):  # -> ReportAccumulator
        self.names.record_identity(pr.author)
        # Self-reviews are ignored; if the author is unknown, no review is.
        author_login = pr.author.login if pr.author is not None else None
        resolved = resolve_review_states(pr.reviews, author_login, self.names)
        requested = requested_reviewer_logins(pr.requested_reviewers, self.names)

        summary = self._summarise(pr, requested, resolved)
        for login in dict.fromkeys(requested + list(resolved)):
            self._add_to_reviewer(login, ReviewerPRSummary.for_reviewer(summary, is_pending(login, requested, resolved)))

        current = self.authors.get(summary.author, AuthorAggregate(0, []))
        self.authors[summary.author] = AuthorAggregate(current.count + 1, current.pr_details + [summary])
        if summary.status == PRStatus.ReadyToMerge:
            self.ready_to_merge.append(ReadyToMergeEntry(summary, approving_reviewers(resolved)))
        self.total_prs += 1
        return self

    def _summarise(self, pr: PullRequest, requested: List[str], resolved: dict[str, ResolvedReviewer]) -> AuthorPRSummary:
        days = age_in_days(pr.created_at, self.settings.now)
        return AuthorPRSummary(
            pr.number, pr.title, pr.author_login, pr.is_draft, pr.created_at, days, age_severity(days),
            extract_ticket_references(pr.title), ", ".join(reviewer_annotations(requested, resolved)),
            len(approving_reviewers(resolved)), determine_pr_status(resolved, self.settings.required_approvals),
        )

    # Add a PR to a reviewer's list, unless it is listed there already:
    # the first entry for a given PR wins (and only that entry counts towards the pending reviews).
    def _add_to_reviewer(self, login: str, summary: ReviewerPRSummary) -> None:
        current = self.reviewers.get(login, ReviewerAggregate(0, []))
        if any(detail.number == summary.number for detail in current.pr_details):
            return
        pending = current.pending + 1 if summary.is_pending else current.pending
        self.reviewers[login] = ReviewerAggregate(pending, current.pr_details + [summary])

    def finish(self) -> ReviewReport:
        # Python's sort is stable, so PRs with the same key keep their input order.
        reviewers = {
            login: ReviewerAggregate(agg.pending, sorted(agg.pr_details, key=lambda pr: not pr.is_pending))
            for (login, agg) in self.reviewers.items()
        }
        authors = {
            login: AuthorAggregate(agg.count, sorted(agg.pr_details, key=lambda pr: pr.days_open, reverse=True))
            for (login, agg) in self.authors.items()
        }
        ready = sorted(self.ready_to_merge, key=lambda entry: entry.summary.days_open, reverse=True)
        return ReviewReport(
            reviewers, authors, ready, self.names.as_dict(), self.total_prs,
            self.settings.required_approvals, self.settings.now,
        )


def compute_review_report(prs: Iterable[PullRequest], settings: ReportSettings | None = None) -> ReviewReport:
    """Compute the review report for a list of PRs, processed in the given order.
    If |settings| are omitted, three approvals are required and PR ages are measured from the current time."""
    if settings is None:
        settings = ReportSettings.default()
    return reduce(ReportAccumulator.add_pr, prs, ReportAccumulator(settings)).finish()


### Converting the report to plain JSON data ###
# The field names follow the ones used by the page generator in the PR review report github action.


def _summary_to_json(summary: AuthorPRSummary | ReviewerPRSummary) -> dict[str, Any]:
    result = {
        "number": summary.number,
        "title": summary.title,
        "author": summary.author,
        "isDraft": summary.is_draft,
        "createdAt": summary.created_at.isoformat(),
        "daysOpen": summary.days_open,
        "daysOpenColor": summary.age_severity.color,
        "ageSeverity": summary.age_severity.to_str(),
        "tickets": list(summary.tickets),
        "reviewers": summary.reviewers,
        "approvals": summary.approvals,
        "status": summary.status.value,
    }
    if isinstance(summary, ReviewerPRSummary):
        result["isPending"] = summary.is_pending
    return result


def report_to_json(report: ReviewReport) -> dict[str, Any]:
    return {
        "generatedAt": report.generated_at.isoformat(),
        "requiredApprovals": report.required_approvals,
        "totalPRs": report.total_prs,
        "reviewers": {
            login: {"pending": agg.pending, "prDetails": [_summary_to_json(pr) for pr in agg.pr_details]}
            for (login, agg) in report.reviewers.items()
        },
        "authors": {
            login: {"count": agg.count, "prDetails": [_summary_to_json(pr) for pr in agg.pr_details]}
            for (login, agg) in report.authors.items()
        },
        "readyToMerge": [
            dict(_summary_to_json(entry.summary), approvedBy=list(entry.approved_by)) for entry in report.ready_to_merge
        ],
        "reviewerNames": dict(report.names),
    }
