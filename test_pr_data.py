#!/usr/bin/env python3

"""
Unit tests for extracting PRs from github's GraphQL answer, in `pr_data.py`.
"""

from datetime import datetime, timedelta

from dateutil import tz

from pr_data import (UNKNOWN_AUTHOR_LOGIN, Identity, InvalidInputError, NameRegistry, PullRequest, ReviewSubmission,
                     extract_prs)


def wrap(nodes) -> dict:
    return {"data": {"repository": {"pullRequests": {"nodes": nodes}}}}


FULL_ENTRY = {
    "number": 1234,
    "title": "OCMUI-42: Add a cluster filter",
    "createdAt": "2024-10-01T08:30:00Z",
    "isDraft": False,
    "author": {"login": "alice", "name": "Alice Liddell"},
    "reviewRequests": {"nodes": [
        {"requestedReviewer": {"login": "bob", "name": "Bob"}},
        # A team: this only has a name.
        {"requestedReviewer": {"name": "ui-reviewers"}},
        {"requestedReviewer": None},
        {"requestedReviewer": {"login": "carol"}},
    ]},
    "reviews": {"nodes": [
        {"state": "COMMENTED", "author": {"login": "dave", "name": "Dave"}},
        {"state": "APPROVED", "author": None},
        {"state": "APPROVED", "author": {"login": "dave"}},
    ]},
}


def test_extract_full_entry() -> None:
    [pr] = extract_prs(wrap([FULL_ENTRY]))
    expected = PullRequest(
        1234, "OCMUI-42: Add a cluster filter", Identity("alice", "Alice Liddell"),
        datetime(2024, 10, 1, 8, 30, tzinfo=tz.tzutc()), False,
        [Identity("bob", "Bob"), Identity("carol")],
        [ReviewSubmission("dave", "COMMENTED", "Dave"), ReviewSubmission("dave", "APPROVED")],
    )
    assert pr == expected, f"expected {expected}, got {pr}"
    assert pr.author_login == "alice"


def test_extract_keeps_order() -> None:
    entries = [dict(FULL_ENTRY, number=n) for n in [5, 3, 9]]
    assert [pr.number for pr in extract_prs(wrap(entries))] == [5, 3, 9]
    assert extract_prs(wrap([])) == []


def test_extract_missing_fields() -> None:
    entry = {"number": 7, "title": "Bump a dependency", "createdAt": "2024-10-02T00:00:00Z", "isDraft": True}
    [pr] = extract_prs(wrap([entry]))
    assert pr.author is None
    assert pr.author_login == UNKNOWN_AUTHOR_LOGIN
    assert pr.is_draft
    assert pr.requested_reviewers == []
    assert pr.reviews == []

    # Collections which are present, but empty or null.
    entry = dict(entry, author=None, reviewRequests=None, reviews={"nodes": None})
    [pr] = extract_prs(wrap([entry]))
    assert pr.author is None and pr.requested_reviewers == [] and pr.reviews == []

    # An author without a login is as good as none.
    [pr] = extract_prs(wrap([dict(entry, author={})]))
    assert pr.author_login == UNKNOWN_AUTHOR_LOGIN
    # Missing title or draft flag.
    [pr] = extract_prs(wrap([{"number": 8, "createdAt": "2024-10-02T00:00:00Z"}]))
    assert pr.title == "" and not pr.is_draft


def test_extract_empty_name() -> None:
    entry = dict(FULL_ENTRY, author={"login": "alice", "name": ""}, reviews={"nodes": [{"state": None, "author": {"login": "bob"}}]})
    [pr] = extract_prs(wrap([entry]))
    assert pr.author == Identity("alice", None)
    assert pr.reviews == [ReviewSubmission("bob", "", None)]


def test_extract_invalid_input() -> None:
    def check_invalid(data) -> None:
        try:
            extract_prs(data)
        except InvalidInputError:
            return
        assert False, f"expected an error when extracting PRs from {data}"

    check_invalid({})
    check_invalid({"data": None})
    check_invalid({"data": {"repository": None}})
    check_invalid({"data": {"repository": {"pullRequests": {}}}})
    check_invalid(wrap(None))
    check_invalid(wrap({"number": 1}))
    check_invalid(wrap([{"title": "no number", "createdAt": "2024-10-02T00:00:00Z"}]))
    check_invalid(wrap([{"number": 1}]))
    check_invalid(wrap([{"number": 1, "createdAt": "yesterday"}]))
    check_invalid(wrap(["not a PR"]))


def test_invalid_input_is_value_error() -> None:
    assert issubclass(InvalidInputError, ValueError)


def test_name_registry() -> None:
    names = NameRegistry()
    assert len(names) == 0
    names.record("alice", "Alice")
    names.record("bob", None)
    names.record("carol", "")
    names.record_identity(Identity("dave", "Dave"))
    names.record_identity(None)
    assert names.as_dict() == {"alice": "Alice", "dave": "Dave"}
    assert "alice" in names and "bob" not in names
    # The last recorded name wins; a missing name does not erase a known one.
    names.record("alice", "Alice L.")
    names.record("alice", None)
    assert names.name_of("alice") == "Alice L."
    assert names.name_of("bob") is None
    # The returned dictionary is a copy.
    names.as_dict()["erin"] = "Erin"
    assert "erin" not in names


def test_extract_timestamp_without_offset() -> None:
    [pr] = extract_prs(wrap([{"number": 1, "title": "t", "createdAt": "2024-10-10T00:00:00"}]))
    assert pr.created_at == datetime(2024, 10, 10, tzinfo=tz.tzutc()), f"expected a creation time in UTC, got {pr.created_at}"
    # Explicit offsets are kept.
    [pr] = extract_prs(wrap([{"number": 1, "createdAt": "2024-10-10T02:00:00+02:00"}]))
    assert pr.created_at == datetime(2024, 10, 10, tzinfo=tz.tzutc())
    assert pr.created_at.utcoffset() == timedelta(hours=2)


def test_extract_wrong_field_types() -> None:
    def check_invalid(entry: dict, expected_message: str) -> None:
        try:
            extract_prs(wrap([entry]))
        except InvalidInputError as e:
            assert expected_message in str(e), f"expected an error mentioning {expected_message!r}, got {e}"
            return
        assert False, f"expected an error when extracting the PR {entry}"

    entry = {"number": 3, "title": "Add a filter", "createdAt": "2024-10-02T00:00:00Z"}
    check_invalid(dict(entry, title=42), "expected a string for 'title', found 42")
    check_invalid(dict(entry, number="3"), "expected a pull request number, found '3'")
    check_invalid(dict(entry, number=True), "expected a pull request number")
    check_invalid(dict(entry, createdAt=20241002), "invalid creation date 20241002")
    check_invalid(dict(entry, reviews={"nodes": [{"state": 1, "author": {"login": "bob"}}]}), "expected a string for 'state', found 1")
    check_invalid(dict(entry, author={"login": ["alice"]}), "expected a github handle")
    # Names which are not strings are ignored.
    [pr] = extract_prs(wrap([dict(entry, author={"login": "alice", "name": 7})]))
    assert pr.author == Identity("alice", None)


if __name__ == '__main__':
    test_extract_full_entry()
    test_extract_keeps_order()
    test_extract_missing_fields()
    test_extract_empty_name()
    test_extract_invalid_input()
    test_invalid_input_is_value_error()
    test_name_registry()
    test_extract_timestamp_without_offset()
    test_extract_wrong_field_types()
