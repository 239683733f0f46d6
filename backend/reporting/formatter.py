"""Sprint report formatting: status summary, tab table and HTML email body."""

from html import escape
from dataclasses import dataclass
from typing import Dict, List, Sequence

from mcp_tools.tools.jira_client import Issue

TABLE_HEADER = "Issue\tTitle\tAssignee\tStatus"
ROW_COLORS = ("#ffffff", "#f9fafc")
FOOTER = "This is an automated update from the Jira Sprint Board."

_CELL = "border: 1px solid #dfe1e6; padding: 12px 16px;"
_HEAD_CELL = f"{_CELL} text-align: left; font-weight: 600; color: #172b4d;"


@dataclass(frozen=True)
class Report:
    """Derived view of one set of issues."""
    summary_text: str
    table: str
    html: str


def count_by_status(issues: Sequence[Issue]) -> Dict[str, int]:
    """Issue counts per status, keyed in order of first occurrence."""
    counts: Dict[str, int] = {}
    for issue in issues:
        counts[issue.status] = counts.get(issue.status, 0) + 1
    return counts


def format_summary(issues: Sequence[Issue]) -> str:
    lines = [f"Total issues: {len(issues)}", "Issues by Status:"]
    for status, count in count_by_status(issues).items():
        lines.append(f"{status}: {count} issues")
    return "\n".join(lines)


def format_table(issues: Sequence[Issue]) -> str:
    rows = [TABLE_HEADER]
    rows.extend(
        f"{issue.key}\t{issue.summary}\t{issue.assignee}\t{issue.status}"
        for issue in issues
    )
    return "\n".join(rows)


def _html_row(index: int, issue: Issue, browse_url: str) -> str:
    background = ROW_COLORS[index % 2]
    key = escape(issue.key)
    return (
        f'<tr style="background-color: {background}; border-bottom: 1px solid #dfe1e6;">'
        f'<td style="{_CELL}"><a href="{escape(browse_url)}/{key}" '
        f'style="color: #0052cc; text-decoration: none; font-weight: 500;">{key}</a></td>'
        f'<td style="{_CELL} color: #172b4d;">{escape(issue.summary)}</td>'
        f'<td style="{_CELL} color: #42526e;">{escape(issue.assignee)}</td>'
        f'<td style="{_CELL} color: #42526e;">{escape(issue.status)}</td>'
        "</tr>"
    )


def format_html(issues: Sequence[Issue], summary_text: str, browse_url: str, title: str = "Sprint Update") -> str:
    rows: List[str] = [_html_row(index, issue, browse_url) for index, issue in enumerate(issues)]
    headers = "".join(
        f'<th style="{_HEAD_CELL}">{name}</th>' for name in TABLE_HEADER.split("\t")
    )
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{escape(title)}</title>
</head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #333; max-width: 1000px; margin: 0 auto; padding: 20px; background-color: #f8f9fa;">
<div style="background: #0052cc; color: white; padding: 30px; border-radius: 8px 8px 0 0;">
<h1 style="margin: 0; font-size: 28px;">{escape(title)}</h1>
</div>
<div style="background: white; border-radius: 0 0 8px 8px; padding: 30px;">
<h2 style="color: #172b4d; font-size: 20px;">Summary</h2>
<pre style="background-color: #f4f5f7; padding: 20px; border-left: 4px solid #0052cc; white-space: pre-wrap; color: #42526e;">{escape(summary_text)}</pre>
<p style="color: #42526e;">Below is the current status of all issues in the active sprint:</p>
<h2 style="color: #0052cc; font-size: 18px;">Active Sprint Issues</h2>
<table style="width: 100%; border-collapse: collapse; font-size: 14px;">
<thead><tr style="background-color: #f4f5f7;">{headers}</tr></thead>
<tbody>
{chr(10).join(rows)}
</tbody>
</table>
</div>
<p style="text-align: center; color: #6b778c; font-size: 12px;">{FOOTER}</p>
</body>
</html>
"""


def format_issues(issues: Sequence[Issue], browse_url: str = "", title: str = "Sprint Update") -> Report:
    """Build the Report for an ordered sequence of issues. No I/O."""
    summary_text = format_summary(issues)
    return Report(
        summary_text=summary_text,
        table=format_table(issues),
        html=format_html(issues, summary_text, browse_url, title),
    )


def format_plain_text(report: Report, title: str = "Sprint Update") -> str:
    """Plain-text alternative for the email body."""
    return (
        f"{title}\n\nSummary\n{report.summary_text}\n\n"
        "Below is the current status of all issues in the active sprint:\n"
        f"Active Sprint Issues\n{report.table}\n\n{FOOTER}"
    )
