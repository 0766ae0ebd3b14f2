"""RSS 2.0 and embeddable HTML renderings of archived issues."""

import html
import xml.etree.ElementTree as ET
from datetime import datetime, time, timezone
from email.utils import format_datetime

from .database.models import DBIssue


def _pub_date(issue: DBIssue) -> str:
    """RFC 822 date for an issue (midnight UTC on its issue date)."""
    moment = datetime.combine(issue.issue_date, time.min, tzinfo=timezone.utc)
    return format_datetime(moment)


def generate_rss(
    issues: list[DBIssue],
    title: str = "Newsletter Archive",
    link: str = "http://localhost",
    description: str = "Archived newsletter issues",
) -> str:
    """
    Generate an RSS 2.0 document for the given issues.

    Items are ordered newest first regardless of input order.

    Args:
        issues: Issues to include
        title: Channel title
        link: Channel link (the site serving the archive)
        description: Channel description

    Returns:
        RSS XML string
    """
    root = ET.Element("rss", version="2.0")
    channel = ET.SubElement(root, "channel")
    ET.SubElement(channel, "title").text = title
    ET.SubElement(channel, "link").text = link
    ET.SubElement(channel, "description").text = description

    ordered = sorted(issues, key=lambda i: (i.issue_date, i.id), reverse=True)
    if ordered:
        ET.SubElement(channel, "lastBuildDate").text = _pub_date(ordered[0])

    for issue in ordered:
        _add_item(channel, issue)

    # Generate XML string with declaration
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(
        root, encoding="unicode"
    )


def _add_item(channel: ET.Element, issue: DBIssue) -> None:
    """Add an item element for one issue."""
    item = ET.SubElement(channel, "item")
    ET.SubElement(item, "title").text = issue.title
    ET.SubElement(item, "link").text = issue.url
    ET.SubElement(item, "guid", isPermaLink="true").text = issue.url
    ET.SubElement(item, "pubDate").text = _pub_date(issue)
    if issue.description:
        ET.SubElement(item, "description").text = issue.description
    if issue.thumbnail:
        ET.SubElement(item, "enclosure", url=issue.thumbnail, type="image/jpeg", length="0")


def generate_embed(issues: list[DBIssue], limit: int = 5, title: str = "Latest Newsletters") -> str:
    """
    Generate a self-contained HTML fragment listing the latest issues.

    All text is escaped; links open in a new tab so the fragment can be
    dropped into third-party pages.
    """
    ordered = sorted(issues, key=lambda i: (i.issue_date, i.id), reverse=True)[:limit]

    parts = [
        '<div class="newsletter-embed">',
        f"<h3>{html.escape(title)}</h3>",
    ]
    if not ordered:
        parts.append("<p>No newsletters yet.</p>")
    else:
        parts.append("<ul>")
        for issue in ordered:
            parts.append("<li>")
            if issue.thumbnail:
                parts.append(
                    f'<img src="{html.escape(issue.thumbnail)}" alt="" loading="lazy">'
                )
            parts.append(
                f'<a href="{html.escape(issue.url)}" target="_blank" rel="noopener">'
                f"{html.escape(issue.title)}</a>"
            )
            parts.append(
                f'<time datetime="{issue.issue_date.isoformat()}">'
                f"{issue.issue_date:%B} {issue.issue_date.day}, {issue.issue_date.year}</time>"
            )
            if issue.description:
                parts.append(f"<p>{html.escape(issue.description)}</p>")
            parts.append("</li>")
        parts.append("</ul>")
    parts.append("</div>")

    return "\n".join(parts)
