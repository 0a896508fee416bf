#!/usr/bin/env python3

"""
This file contains various utility functions, which are needed in several otherwise unrelated scripts.
Currently, this contains the following
- a function to print diagnostics to standard error,
- a function to parse the JSON snapshot of open PRs (with error handling),
- a function to format a |relativedelta|
"""

import json
import sys
from dateutil import relativedelta


def eprint(val):
    print(val, file=sys.stderr)


# Parse the JSON file 'name' with the snapshot of open PRs. Return the parsed file if successful,
# and an error message describing what went wrong otherwise.
def parse_json_file(name: str) -> dict | str:
    data = None
    try:
        with open(name, "r") as fi:
            try:
                data = json.load(fi)
            except json.decoder.JSONDecodeError as e:
                return f"error: the file {name} is invalid JSON: {e}"
    except OSError as e:
        return f"error: could not read the file {name}: {e.strerror}"
    if not isinstance(data, dict):
        return f"error: the file {name} does not contain a JSON object"
    if "errors" in data:
        return f"error: the data in {name} is incomplete, github returned errors: {data['errors']}"
    elif "data" not in data:
        return f"error: the data in {name} is incomplete (perhaps a time out downloading it)"
    return data


def format_delta(delta: relativedelta.relativedelta) -> str:
    def pluralize(n: int, s: str) -> str:
        return f"{n} {s}" if n == 1 else f"{n} {s}s"
    if delta.years > 0:
        return pluralize(delta.years, "year")
    elif delta.months > 0:
        return pluralize(delta.months, "month")
    elif delta.days > 0:
        return pluralize(delta.days, "day")
    elif delta.hours > 0:
        return pluralize(delta.hours, "hour")
    elif delta.minutes > 0:
        return pluralize(delta.minutes, "minute")
    else:
        return pluralize(delta.seconds, "second")
