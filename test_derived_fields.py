#!/usr/bin/env python3

"""
Unit tests for the PR fields computed on each run, in `derived_fields.py`.
"""

from datetime import datetime, timedelta

from dateutil import tz

from derived_fields import AgeSeverity, age_in_days, age_severity, extract_ticket_references


def october(n: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(2024, 10, n, hour, minute, tzinfo=tz.tzutc())


def test_age_in_days() -> None:
    def check(created: datetime, now: datetime, expected: int) -> None:
        actual = age_in_days(created, now)
        assert actual == expected, f"expected a PR created {created} to be {expected} days old on {now}, got {actual}"

    check(october(1), october(1), 0)
    check(october(1), october(1, 23, 59), 0)
    check(october(1), october(2), 1)
    check(october(1, 12), october(3, 11, 59), 1)
    check(october(1, 12), october(3, 12), 2)
    check(october(1), october(31), 30)
    # Rounding down, also for PRs "created" after the reference time.
    check(october(2), october(1, 12), -1)
    # Time zones are taken into account.
    created = datetime(2024, 10, 1, 23, 0, tzinfo=tz.tzoffset(None, -2 * 3600))
    check(created, october(2, 1), 0)
    check(created, october(3, 1), 1)


def test_age_severity_boundaries() -> None:
    expected = {
        0: AgeSeverity.Normal,
        1: AgeSeverity.Normal,
        2: AgeSeverity.Normal,
        3: AgeSeverity.Medium,
        4: AgeSeverity.Medium,
        5: AgeSeverity.High,
        6: AgeSeverity.High,
        7: AgeSeverity.Severe,
        30: AgeSeverity.Severe,
        -1: AgeSeverity.Normal,
    }
    for (days, severity) in expected.items():
        actual = age_severity(days)
        assert actual == severity, f"expected age {days} to have severity {severity}, got {actual}"


def test_age_severity_colors() -> None:
    assert AgeSeverity.Normal.color == "#d4d4d4"
    assert AgeSeverity.Medium.color == "yellow"
    assert AgeSeverity.High.color == "orange"
    assert AgeSeverity.Severe.color == "red"
    assert [s.to_str() for s in AgeSeverity] == ["normal", "medium", "high", "severe"]


def test_age_and_severity_together() -> None:
    now = october(20, 9)
    for (days, severity) in [(2, AgeSeverity.Normal), (3, AgeSeverity.Medium), (6, AgeSeverity.High), (7, AgeSeverity.Severe)]:
        created = now - timedelta(days=days, hours=1)
        assert age_severity(age_in_days(created, now)) == severity


def test_extract_ticket_references() -> None:
    def check(title: str | None, expected: list[str]) -> None:
        actual = extract_ticket_references(title)
        assert actual == expected, f"expected tickets {expected} in title {title!r}, got {actual}"

    check("Fix OCMUI-42 and OCMUI-42 again, also OCMUI-7", ["OCMUI-42", "OCMUI-7"])
    check("Refactor the cluster list", [])
    check("", [])
    check(None, [])
    check("[OCMUI-1234] Add a button", ["OCMUI-1234"])
    check("OCMUI-2, HAC-1: two projects", ["OCMUI-2", "HAC-1"])
    check("OCMUI-12,OCMUI-11", ["OCMUI-12", "OCMUI-11"])
    check("Project codes may contain digits: RHCLOUD2-9", ["RHCLOUD2-9"])
    # Matching is case-sensitive, and needs a project code and a number.
    check("fix ocmui-42", [])
    check("Ocmui-42", [])
    check("OCMUI-", [])
    check("OCMUI 42", [])
    # Single letters are not project codes.
    check("Part A-1 of the plan", [])


if __name__ == '__main__':
    test_age_in_days()
    test_age_severity_boundaries()
    test_age_severity_colors()
    test_age_and_severity_together()
    test_extract_ticket_references()
