#!/usr/bin/env python3

"""
This file contains the canonical description of a pull request, as used by the review report,
and the code for extracting these from the snapshot of open PRs returned by github's GraphQL API.

All defaulting of missing data happens here: the later stages never see missing collections.
"""

import sys
from datetime import datetime
from typing import List, NamedTuple

from dateutil import parser, tz


# Shown in place of a PR author's github handle, if github does not tell us the author.
UNKNOWN_AUTHOR_LOGIN = "Unknown"


class InvalidInputError(ValueError):
    """The snapshot of open PRs does not have the expected shape: nothing can be reported."""
    pass


# A github user: their handle, and their full name (if github knows it).
class Identity(NamedTuple):
    login: str
    name: str | None = None


# A single review event on a PR: a reviewer can submit any number of these.
class ReviewSubmission(NamedTuple):
    login: str
    # The review state as reported by github, such as "APPROVED" or "COMMENTED".
    state: str
    name: str | None = None


# All information about a single open PR which the review report needs.
class PullRequest(NamedTuple):
    number: int
    title: str
    # `None` if github did not report the author, e.g. for deleted accounts.
    author: Identity | None
    created_at: datetime
    is_draft: bool
    # Individual users whose review is currently requested, in github's order.
    # Requests for a team are not tracked.
    requested_reviewers: List[Identity]
    # All reviews submitted on this PR, in github's order.
    reviews: List[ReviewSubmission]

    @property
    def author_login(self) -> str:
        return self.author.login if self.author is not None else UNKNOWN_AUTHOR_LOGIN


class NameRegistry:
    """The best known full name for each github handle, collected from all PRs processed so far.

    Names are recorded whenever some PR, review or review request carries one;
    the last recorded name wins (github reports the same name for a user throughout a snapshot)."""

    def __init__(self) -> None:
        self._names: dict[str, str] = dict()

    def record(self, login: str, name: str | None) -> None:
        if login and name:
            self._names[login] = name

    def record_identity(self, identity: Identity | None) -> None:
        if identity is not None:
            self.record(identity.login, identity.name)

    def name_of(self, login: str) -> str | None:
        return self._names.get(login)

    def as_dict(self) -> dict[str, str]:
        return dict(self._names)

    def __contains__(self, login: str) -> bool:
        return login in self._names

    def __len__(self) -> int:
        return len(self._names)


def _identity(node: dict | None) -> Identity | None:
    """Extract a user from an 'author' or 'requestedReviewer' node; return `None` for anything without a login."""
    if not isinstance(node, dict) or not node.get("login"):
        return None
    if not isinstance(node["login"], str):
        raise InvalidInputError(f"expected a github handle, found {node['login']!r}")
    name = node.get("name")
    return Identity(node["login"], name if isinstance(name, str) and name else None)


# Return the nodes of a GraphQL connection such as 'reviews', or an empty list if it is missing.
def _nodes(connection: dict | None) -> List[dict]:
    if not isinstance(connection, dict):
        return []
    return [node for node in (connection.get("nodes") or []) if isinstance(node, dict)]


# Return the string field |key| of |node|, or "" if it is missing or null.
def _string_field(node: dict, key: str, number: int) -> str:
    value = node.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInputError(f"pull request {number}: expected a string for '{key}', found {value!r}")
    return value


# Parse a PR's creation time; timestamps without a time zone are interpreted as UTC.
def _creation_time(value, number: int) -> datetime:
    if not isinstance(value, str):
        raise InvalidInputError(f"pull request {number} has an invalid creation date {value!r}")
    try:
        created = parser.isoparse(value)
    except ValueError as e:
        raise InvalidInputError(f"pull request {number} has an invalid creation date {value!r}: {e}")
    return created if created.tzinfo is not None else created.replace(tzinfo=tz.tzutc())


def _extract_pr(entry: dict) -> PullRequest:
    number = entry["number"]
    if not isinstance(number, int) or isinstance(number, bool):
        raise InvalidInputError(f"expected a pull request number, found {number!r}")
    author = _identity(entry.get("author"))
    if author is None:
        print(
            f'warning: missing author information for PR {number}, its author entry is {entry.get("author")}; '
            f'listing it as authored by "{UNKNOWN_AUTHOR_LOGIN}"',
            file=sys.stderr,
        )
    requested = []
    for request in _nodes(entry.get("reviewRequests")):
        # Team requests only carry a name and no login: skip them.
        reviewer = _identity(request.get("requestedReviewer"))
        if reviewer is not None:
            requested.append(reviewer)
    reviews = []
    for review in _nodes(entry.get("reviews")):
        reviewer = _identity(review.get("author"))
        if reviewer is None:
            continue
        reviews.append(ReviewSubmission(reviewer.login, _string_field(review, "state", number), reviewer.name))
    return PullRequest(
        number, _string_field(entry, "title", number), author, _creation_time(entry["createdAt"], number),
        bool(entry.get("isDraft")), requested, reviews,
    )


# Extract all PRs from the GraphQL response |data|, in the order given there.
# Raise an |InvalidInputError| if |data| does not contain a list of PRs, or some PR is malformed:
# it lacks its number or creation date, or one of its fields has the wrong type.
def extract_prs(data: dict) -> List[PullRequest]:
    try:
        nodes = data["data"]["repository"]["pullRequests"]["nodes"]
    except (KeyError, TypeError):
        raise InvalidInputError("the input contains no list of pull requests at data.repository.pullRequests.nodes")
    if not isinstance(nodes, list):
        raise InvalidInputError(f"data.repository.pullRequests.nodes should be a list, found {type(nodes).__name__}")
    prs = []
    for (i, entry) in enumerate(nodes):
        if not isinstance(entry, dict) or "number" not in entry or "createdAt" not in entry:
            raise InvalidInputError(f"pull request entry {i} lacks a number or creation date: {entry}")
        prs.append(_extract_pr(entry))
    return prs
