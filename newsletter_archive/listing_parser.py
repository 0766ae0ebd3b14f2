"""
Listing Parser - Turn the archive index page into candidate issue stubs.

Selection rules:
- Only <a> elements whose href points at an issue page (`/archive?id=...`,
  relative or absolute) are considered.
- The text of the link's enclosing element must read
  "<Month> <Day>, <Year> - <Title>", e.g. "March 21, 2017 - Spring Update".
- Entries that don't match, or whose date isn't a real calendar date, are
  logged and skipped.

The upstream markup is not under our control, so these rules are kept
narrow and in one place.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .exceptions import EmptyListingError

logger = logging.getLogger(__name__)

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
}

# Common abbreviations ("Mar", "Sept")
MONTH_ABBREVIATIONS = {name[:3]: num for name, num in MONTHS.items()}
MONTH_ABBREVIATIONS["sept"] = 9

EXCERPT_LENGTH = 500


@dataclass
class CandidateStub:
    """A parsed-but-unpersisted issue from the archive listing."""
    title: str
    date_text: str
    issue_date: str  # ISO YYYY-MM-DD
    url: str


def parse_issue_date(date_text: str) -> str | None:
    """
    Parse "March 21, 2017" into "2017-03-21".

    Returns None for unknown month names or impossible dates.
    """
    match = re.fullmatch(r"([A-Za-z]+)\.? (\d{1,2}), (\d{4})", date_text.strip())
    if not match:
        return None

    month_name, day, year = match.groups()
    month_key = month_name.lower()
    month = MONTHS.get(month_key) or MONTH_ABBREVIATIONS.get(month_key)
    if month is None:
        return None

    try:
        return date(int(year), month, int(day)).isoformat()
    except ValueError:
        return None


class ListingParser:
    """Parses the archive listing page into CandidateStubs."""

    LINK_PATTERN = re.compile(r"(?:^|/)archive\?id=")
    ENTRY_PATTERN = re.compile(r"^([A-Za-z]+\.? \d{1,2}, \d{4}) - (.+)$")

    def __init__(self, base_url: str):
        self.base_url = base_url

    def parse(self, html: str) -> list[CandidateStub]:
        """
        Extract candidates in document order.

        Raises:
            EmptyListingError: If no candidates could be extracted
        """
        excerpt = (html or "")[:EXCERPT_LENGTH]
        if not html or not html.strip():
            raise EmptyListingError("Archive listing page was empty", excerpt=excerpt)

        soup = BeautifulSoup(html, "html.parser")
        links = [a for a in soup.find_all("a", href=True) if self.LINK_PATTERN.search(a["href"])]
        logger.info(f"Found {len(links)} newsletter links")

        candidates: list[CandidateStub] = []
        seen_urls: set[str] = set()

        for link in links:
            candidate = self._parse_link(link)
            if candidate is None:
                continue
            if candidate.url in seen_urls:
                logger.debug(f"Skipping duplicate listing entry: {candidate.url}")
                continue
            seen_urls.add(candidate.url)
            candidates.append(candidate)

        if not candidates:
            logger.error(
                f"No newsletters found in HTML. First {EXCERPT_LENGTH} chars of response: {excerpt}"
            )
            raise EmptyListingError("No newsletters found in the archive", excerpt=excerpt)

        return candidates

    def _parse_link(self, link) -> CandidateStub | None:
        container = link.parent or link
        text = " ".join(container.get_text(" ", strip=True).split())

        match = self.ENTRY_PATTERN.match(text)
        if not match:
            logger.warning(f"Skipping listing entry with unexpected text: {text!r}")
            return None

        date_text, title = match.groups()
        issue_date = parse_issue_date(date_text)
        if issue_date is None:
            logger.warning(f"Skipping listing entry with unparseable date: {date_text!r}")
            return None

        return CandidateStub(
            title=title.strip(),
            date_text=date_text,
            issue_date=issue_date,
            url=urljoin(self.base_url, link["href"]),
        )


def parse_listing(html: str, base_url: str) -> list[CandidateStub]:
    """Convenience function to parse a listing page."""
    return ListingParser(base_url).parse(html)
