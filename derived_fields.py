#!/usr/bin/env python3

"""
Fields of a PR which are computed afresh on each run, rather than read from github's data:
- how many days a PR has been open (this depends on the current time),
- how urgent this age is (used for colouring the age on the generated page),
- the issue tracker tickets mentioned in a PR's title.
"""

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import List


def age_in_days(created_at: datetime, now: datetime) -> int:
    """The number of full days between |created_at| and |now|, rounded down.

    NB. github reports times with second precision, so this agrees with a millisecond-based computation."""
    return (now - created_at) // timedelta(days=1)


# How long a PR has been open, in broad categories.
# Each variant's value is the colour its age is displayed in.
class AgeSeverity(Enum):
    Normal = "#d4d4d4"
    Medium = "yellow"
    High = "orange"
    Severe = "red"

    @property
    def color(self) -> str:
        return self.value

    def to_str(self) -> str:
        return self.name.lower()


# Open for more than six days is severe, more than four days high, more than two days medium.
# Exactly two, four or six days fall into the lower category.
def age_severity(days: int) -> AgeSeverity:
    if days > 6:
        return AgeSeverity.Severe
    elif days > 4:
        return AgeSeverity.High
    elif days > 2:
        return AgeSeverity.Medium
    return AgeSeverity.Normal


# A reference to a ticket in an issue tracker, such as OCMUI-123:
# an upper-case project code (starting with a letter) and the ticket number.
TICKET_REFERENCE = re.compile(r"\b[A-Z][A-Z0-9]+-[0-9]+\b")


# Return all ticket references in a PR title, in order of their first occurrence and without duplicates.
def extract_ticket_references(title: str | None) -> List[str]:
    if not title:
        return []
    tickets: List[str] = []
    for match in TICKET_REFERENCE.findall(title):
        if match not in tickets:
            tickets.append(match)
    return tickets
