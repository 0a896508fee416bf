#!/usr/bin/env python3

# This script reads a snapshot of a repository's open pull requests (the JSON answer of github's GraphQL API)
# and writes an HTML page summarising their review status: for each reviewer, the PRs awaiting their review,
# the PRs which are ready to merge and the open PRs of each author.
# Optionally, the underlying data is also written out as JSON.
#
# Typical usage, in CI: dashboard.py pr_review_report.json --owner some-org --name some-repo --output-dir webpage

import argparse
import html
import json
import os
import sys
from datetime import datetime, timezone
from os import makedirs, path
from typing import List, NamedTuple

from dateutil import parser, relativedelta, tz

from classify_pr_state import PRStatus
from compute_review_report import (DEFAULT_REQUIRED_APPROVALS, AuthorPRSummary, ReportSettings, ReviewerPRSummary,
                                   ReviewReport, compute_review_report, report_to_json)
from derived_fields import AgeSeverity
from pr_data import UNKNOWN_AUTHOR_LOGIN, InvalidInputError, PullRequest, extract_prs
from util import eprint, format_delta, parse_json_file


### Reading the input file passed to this script ###


# Read the snapshot of open PRs in the file |name|.
# Raise an |InvalidInputError| if the file cannot be read or does not have the expected shape.
def read_input_file(name: str) -> List[PullRequest]:
    data = parse_json_file(name)
    if isinstance(data, str):
        raise InvalidInputError(data)
    prs = extract_prs(data)
    if not prs:
        eprint(f"warning: the file {name} contains no open pull requests")
    return prs


# Settings for how the generated page links to github and the issue tracker.
class PageSettings(NamedTuple):
    # The repository's owner and name, e.g. "RedHatInsights" and "uhc-portal".
    # If either is missing, PRs are not linked.
    owner: str | None
    name: str | None
    # URL prefix of the issue tracker: appending a ticket reference yields the ticket's URL.
    ticket_url: str | None

    @staticmethod
    def default():
        return PageSettings(None, None, None)

    def repository(self) -> str | None:
        return f"{self.owner}/{self.name}" if self.owner and self.name else None


### Helper methods: writing HTML code for various parts of the generated webpage ###


def _escape(text: str) -> str:
    return html.escape(text, quote=True)


# Determine HTML code for writing a table header with entries 'entries'.
# base_indent is the indentation of the <table> tag; we add two additional space per additional level.
def _write_table_header(entries: List[str], base_indent: str) -> str:
    indent = base_indent + "  "
    body = f"\n{indent}".join([f"<th>{entry}</th>" for entry in entries])
    return f"{base_indent}<thead>\n{base_indent}<tr>\n{indent}{body}\n{base_indent}</tr>\n{base_indent}</thead>\n"


# Determine HTML code for writing a single table row with entries 'entries' and indentation 'indent'.
# |attributes| are added to the <tr> tag verbatim, e.g. ' data-status="ready_to_merge"'.
def _write_table_row(entries: List[str], base_indent: str, attributes: str = "") -> str:
    indent = base_indent + "  "
    body = f"\n{indent}".join([f"<td>{entry}</td>" for entry in entries])
    return f"{base_indent}<tr{attributes}>\n{indent}{body}\n{base_indent}</tr>\n"


# Write the code for a h2 heading linking to itself, with id |id|, title |title|,
# and optional tooltip |tooltip| (implemented as an <a title> attribute).
def _make_h2(id: str, title: str, tooltip=None) -> str:
    if tooltip:
        return f'<h2 id="{id}"><a href="#{id}" title="{_escape(tooltip)}">{title}</a></h2>'
    return f'<h2 id="{id}"><a href="#{id}">{title}</a></h2>'


def infer_pr_url(settings: PageSettings, number: int) -> str | None:
    repository = settings.repository()
    return f"https://github.com/{repository}/pull/{number}" if repository else None


# An HTML link to a PR, showing its title. Without a known repository, just show the title.
def title_link(title: str, url: str | None, is_draft: bool = False) -> str:
    draft = " <span class='draft'>(draft)</span>" if is_draft else ""
    if url is None:
        return f"{_escape(title)}{draft}"
    return f"<a href='{_escape(url)}' title='{_escape(title)}'>{_escape(title)}</a>{draft}"


# An HTML link to a GitHub user profile
def user_link(login: str, details: str | None = None) -> str:
    url = f"https://github.com/{login}"
    title = f" title='{_escape(details)}'" if details else ""
    return f"<a href='{_escape(url)}'{title}>{_escape(login)}</a>"


# The author of a PR: github does not always tell us who this is, so do not link to the placeholder.
def author_link(login: str, details: str | None = None) -> str:
    return _escape(login) if login == UNKNOWN_AUTHOR_LOGIN else user_link(login, details)


def ticket_links(tickets: List[str], ticket_url: str | None) -> str:
    if ticket_url is None:
        return ", ".join(_escape(ticket) for ticket in tickets)
    return ", ".join(f"<a href='{_escape(ticket_url + ticket)}'>{_escape(ticket)}</a>" for ticket in tickets)


# The number of days a PR has been open, coloured by how urgent this is.
# A tooltip shows the exact creation date.
def _days_open(summary: AuthorPRSummary | ReviewerPRSummary, now: datetime) -> str:
    tooltip = f"opened {summary.created_at.strftime('%Y-%m-%d %H:%M')} ({format_delta(relativedelta.relativedelta(now, summary.created_at))} ago)"
    return f'<span style="color: {summary.age_severity.color};" title="{_escape(tooltip)}">{summary.days_open}</span>'


def _status(status: PRStatus) -> str:
    css_class = status.value.replace("_", "-")
    return f'<span class="{css_class}">{status.to_str()}</span>'


# The table cells describing a single PR; keep this in sync with |PR_TABLE_HEADINGS|.
def _pr_cells(pr: AuthorPRSummary | ReviewerPRSummary, report: ReviewReport, settings: PageSettings) -> List[str]:
    return [
        title_link(pr.title, infer_pr_url(settings, pr.number), pr.is_draft),
        ticket_links(pr.tickets, settings.ticket_url),
        author_link(pr.author, report.names.get(pr.author)),
        _escape(pr.reviewers),
        _days_open(pr, report.generated_at),
        f"{pr.approvals}/{report.required_approvals}",
        _status(pr.status),
    ]


# Compute the table rows for a list of PRs.
def _compute_pr_entries(
    prs: List[AuthorPRSummary] | List[ReviewerPRSummary], report: ReviewReport, settings: PageSettings, base_indent: str
) -> str:
    result = ""
    for pr in prs:
        entries = _pr_cells(pr, report, settings)
        attributes = f' class="pr-detail-row" data-status="{pr.status.value}"'
        if isinstance(pr, ReviewerPRSummary):
            attributes += f' data-pending="{str(pr.is_pending).lower()}"'
        result += _write_table_row(entries, base_indent, attributes)
    return result


PR_TABLE_HEADINGS = [
    "PR", "Tickets", "Author", "Reviewers",
    '<a title="number of days this PR has been open"># Days</a>',
    '<a title="number of approving reviews, out of the number required"># Approvals</a>',
    "Status",
]


def _pr_table(
    prs: List[AuthorPRSummary] | List[ReviewerPRSummary], report: ReviewReport, settings: PageSettings, base_indent: str
) -> str:
    head = _write_table_header(PR_TABLE_HEADINGS, base_indent + "  ")
    body = _compute_pr_entries(prs, report, settings, base_indent + "  ")
    return f'{base_indent}<table class="pr-table">\n{head}{body}{base_indent}</table>'


# Format a user as "Full Name (login)" if their full name is known, and as their github handle otherwise.
def display_name(report: ReviewReport, login: str) -> str:
    name = report.names.get(login)
    return _escape(f"{name} ({login})" if name else login)


### The individual sections of the generated page ###


def write_reviewer_section(report: ReviewReport, settings: PageSettings) -> str:
    title = _make_h2("reviewers", "Pending reviews by reviewer",
        "all PRs each user is requested to review or has reviewed; PRs awaiting their action are listed first")
    if not report.reviewers:
        return f"{title}\nThere are currently <b>no</b> reviewers on any open PR.\n"
    rows = ""
    for (login, agg) in report.reviewers.items():
        badge = f' <span class="pending-badge">{agg.pending}</span>' if agg.pending > 0 else ""
        rows += f'    <tr class="reviewer-row" data-reviewer="{_escape(login)}">\n'
        rows += f"      <td>{display_name(report, login)}{badge}</td>\n"
        rows += f'      <td><span class="pending-count">{agg.pending}</span></td>\n'
        rows += "    </tr>\n"
        rows += f'    <tr class="reviewer-row pr-row-table" data-reviewer="{_escape(login)}">\n'
        rows += f'      <td colspan="2">\n{_pr_table(agg.pr_details, report, settings, "        ")}\n      </td>\n'
        rows += "    </tr>\n"
    head = _write_table_header(["Reviewer", "# Reviews Requested (Pending)"], "    ")
    return f'{title}\n  <table class="reviewer-table">\n{head}{rows}  </table>'


def write_ready_to_merge_section(report: ReviewReport, settings: PageSettings) -> str:
    title = _make_h2("ready-to-merge", f'Ready to merge <span class="merge-badge">{len(report.ready_to_merge)}</span>',
        f"PRs with at least {report.required_approvals} approving reviews, oldest first")
    if not report.ready_to_merge:
        return f"{title}\nThere are currently <b>no</b> PRs which are ready to merge.\n"
    headings = PR_TABLE_HEADINGS + ["Approved by"]
    rows = ""
    for entry in report.ready_to_merge:
        pr = entry.summary
        entries = _pr_cells(pr, report, settings)
        entries.append(", ".join(user_link(login, report.names.get(login)) for login in entry.approved_by))
        rows += _write_table_row(entries, "    ", f' data-status="{pr.status.value}"')
    return f'{title}\n  <table class="pr-table">\n{_write_table_header(headings, "    ")}{rows}  </table>'


def write_author_section(report: ReviewReport, settings: PageSettings) -> str:
    title = _make_h2("authors", "Open PRs by author", "all open PRs of each author, oldest first")
    if not report.authors:
        return f"{title}\nThere are currently <b>no</b> open PRs.\n"
    parts = [title]
    for (login, agg) in report.authors.items():
        parts.append(f'  <h3 id="author-{_escape(login)}">{display_name(report, login)}: {agg.count} open PR(s)</h3>')
        parts.append(_pr_table(agg.pr_details, report, settings, "  "))
    return "\n".join(parts)


# Explain the status categories, the marking of pending reviews and the colours of the "# Days" column.
def write_legend(report: ReviewReport) -> str:
    statuses = {
        PRStatus.NeedsReview: "this PR needs more reviews before it can be merged",
        PRStatus.ChangesRequested: "this PR needs code changes based on review feedback",
        PRStatus.ReadyToMerge: f"this PR has all required approvals ({report.required_approvals}) and can be merged",
    }
    ages = {
        AgeSeverity.Normal: "at most 2 days",
        AgeSeverity.Medium: "3 or 4 days",
        AgeSeverity.High: "5 or 6 days",
        AgeSeverity.Severe: "a week or more",
    }
    items = [f"    <li>{_status(status)}: {description}</li>" for (status, description) in statuses.items()]
    items.append('    <li>a <span class="pending-badge">number</span> next to a reviewer counts the PRs awaiting their action; '
        "these rows are marked by an orange left border</li>")
    days = ", ".join(f'<span style="color: {severity.color};">{description}</span>' for (severity, description) in ages.items())
    items.append(f"    <li>the number of days a PR has been open is coloured by age: {days}</li>")
    body = "\n".join(items)
    return f'<details id="legend">\n  <summary>Legend</summary>\n  <ul>\n{body}\n  </ul>\n</details>'


# Write the body of the review report page.
def write_report_page(report: ReviewReport, settings: PageSettings) -> str:
    repository = settings.repository()
    heading = f'<span class="repo-title">{_escape(repository)}</span> Open PRs' if repository else "Open PRs"
    updated = report.generated_at.astimezone(tz.tzutc()).strftime("%B %d, %Y at %H:%M UTC")
    ready = len(report.ready_to_merge)
    summary = (f"<p>There are <b>{report.total_prs}</b> open PRs; <b>{ready}</b> of these "
        f"{'is' if ready == 1 else 'are'} ready to merge ({report.required_approvals} approvals required).</p>")
    sections = [
        f'<h1>{heading} <span id="lastUpdated" class="last-updated" data-utc="{report.generated_at.isoformat()}">Last updated: {updated}</span></h1>',
        summary,
        write_legend(report),
        write_reviewer_section(report, settings),
        write_ready_to_merge_section(report, settings),
        write_author_section(report, settings),
    ]
    return "\n".join(sections)


### Writing the actual output files ###

HTML_HEADER = """
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<meta name="referrer" content="no-referrer">
<title>{title}</title>
<style>
  .needs-review {{ color: #ff9800; }}
  .changes-requested {{ color: #f44336; }}
  .ready-to-merge {{ color: #4caf50; }}
  tr[data-pending="true"] {{ border-left: 4px solid #ff9800; }}
</style>
<base target="_blank">
</head>
<body>
""".strip()


# Write a webpage with body |body| to the file |outfile|.
def write_webpage(body: str, outfile: str, title: str = "Open PRs") -> None:
    with open(outfile, "w", encoding="utf-8") as fi:
        print(f"{HTML_HEADER.format(title=_escape(title))}\n{body}\n</body>\n</html>", file=fi)


def write_json(report: ReviewReport, outfile: str) -> None:
    with open(outfile, "w", encoding="utf-8") as fi:
        json.dump(report_to_json(report), fi, indent=2)
        fi.write("\n")


### Command-line handling ###


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {number}")
    return number


# Parse an ISO 8601 timestamp; timestamps without a time zone are interpreted as UTC.
def _timestamp(value: str) -> datetime:
    try:
        time = parser.isoparse(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an ISO 8601 timestamp, got {value!r}")
    return time if time.tzinfo is not None else time.replace(tzinfo=tz.tzutc())


# Most options can also be set through environment variables, which the CI wrapper of this script uses.
def parse_arguments(argv: List[str] | None = None, environ: dict[str, str] | None = None) -> argparse.Namespace:
    env = os.environ if environ is None else environ
    arg_parser = argparse.ArgumentParser(description="Generate an HTML report of the review status of a repository's open pull requests.")
    arg_parser.add_argument(
        "input", nargs="?", default=env.get("PR_REPORT_PATH", "./pr_review_report.json"),
        help="JSON file with github's GraphQL answer listing the open PRs (default: $PR_REPORT_PATH or ./pr_review_report.json)",
    )
    arg_parser.add_argument("-o", "--output-dir", default="webpage", help="directory to write index.html to (default: webpage)")
    arg_parser.add_argument("--owner", default=env.get("PROJECT_OWNER"), help="repository owner, used for linking PRs (default: $PROJECT_OWNER)")
    arg_parser.add_argument("--name", default=env.get("PROJECT_NAME"), help="repository name, used for linking PRs (default: $PROJECT_NAME)")
    arg_parser.add_argument(
        "--required-approvals", type=_positive_int,
        default=env.get("REQUIRED_APPROVALS", str(DEFAULT_REQUIRED_APPROVALS)),
        help=f"number of approving reviews a PR needs to be ready to merge (default: $REQUIRED_APPROVALS or {DEFAULT_REQUIRED_APPROVALS})",
    )
    arg_parser.add_argument("--now", type=_timestamp, default=None, help="ISO 8601 time to compute PR ages from (default: the current time)")
    arg_parser.add_argument(
        "--ticket-url", default=env.get("TICKET_BASE_URL"),
        help="URL prefix for linking ticket references such as OCMUI-123 (default: $TICKET_BASE_URL; unlinked if unset)",
    )
    arg_parser.add_argument("--json", action="store_true", help="also write the report data to report.json")
    return arg_parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_arguments(argv)
    try:
        prs = read_input_file(args.input)
    except InvalidInputError as e:
        message = str(e)
        eprint(message if message.startswith("error:") else f"error: {message}")
        sys.exit(1)
    settings = ReportSettings(args.required_approvals, args.now or datetime.now(timezone.utc))
    report = compute_review_report(prs, settings)
    page_settings = PageSettings(args.owner, args.name, args.ticket_url)

    makedirs(args.output_dir, exist_ok=True)
    outfile = path.join(args.output_dir, "index.html")
    title = f"{page_settings.repository()} Open PRs" if page_settings.repository() else "Open PRs"
    write_webpage(write_report_page(report, page_settings), outfile, title)
    eprint(f"info: wrote the review report for {report.total_prs} PR(s) to {outfile}")
    if args.json:
        json_file = path.join(args.output_dir, "report.json")
        write_json(report, json_file)
        eprint(f"info: wrote the report data to {json_file}")


if __name__ == "__main__":
    main()
