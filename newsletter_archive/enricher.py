"""
Detail Enricher - Fetch an issue's own page and extract thumbnail and text.

Extraction rules:
- content: visible text of <body> (whole document if there is no body).
  Every run of whitespace, newlines and tabs included, becomes a single
  space and the ends are trimmed, so stored content is one line of prose
  rather than the page text as laid out. Script/style/noscript/template
  text is not visible and is dropped.
- thumbnail: the src of the *second* <img> in document order. The first
  image is the platform masthead/logo, not issue content. Fewer than two
  images means no thumbnail.

Failures never propagate: a broken page degrades to has_details=False so
the rest of the batch keeps going.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .exceptions import ChallengeDetected, DetailExtractionFailure, NetworkError
from .fetcher import HtmlFetcher, RetryPolicy, fetch_with_retry

logger = logging.getLogger(__name__)

DESCRIPTION_LENGTH = 200
THUMBNAIL_IMAGE_INDEX = 1

INVISIBLE_TAGS = ["script", "style", "noscript", "template", "head"]


@dataclass
class IssueDetails:
    """Result of enriching a single issue page."""
    thumbnail: str | None = None
    content: str | None = None
    has_details: bool = False


def derive_description(content: str | None) -> str | None:
    """First 200 characters of content followed by an ellipsis, or None."""
    if not content:
        return None
    return content[:DESCRIPTION_LENGTH] + "..."


def extract_details(url: str, html: str) -> IssueDetails:
    """
    Extract thumbnail and content from an issue page.

    Raises:
        DetailExtractionFailure: If the page yields no visible text
    """
    soup = BeautifulSoup(html, "html.parser")

    images = soup.find_all("img")
    thumbnail = None
    if len(images) > THUMBNAIL_IMAGE_INDEX:
        src = images[THUMBNAIL_IMAGE_INDEX].get("src")
        if src and src.strip():
            thumbnail = urljoin(url, src.strip())

    root = soup.body or soup
    for tag in root.find_all(INVISIBLE_TAGS):
        tag.decompose()
    content = " ".join(root.get_text(" ", strip=True).split())

    if not content:
        raise DetailExtractionFailure(f"No visible text on {url}")

    return IssueDetails(thumbnail=thumbnail, content=content, has_details=True)


class DetailEnricher:
    """
    Fetches issue pages one at a time and extracts their details.

    Meant to be awaited sequentially per issue; the upstream penalizes
    concurrent requests.
    """

    def __init__(
        self,
        fetcher: HtmlFetcher,
        timeout: float = 15,
        policy: RetryPolicy | None = None,
    ):
        self.fetcher = fetcher
        self.timeout = timeout
        self.policy = policy or RetryPolicy()

    async def enrich_issue(self, url: str) -> IssueDetails:
        """Fetch and extract details for one issue. Never raises for extraction failures."""
        try:
            html = await fetch_with_retry(
                self.fetcher, url, timeout=self.timeout, policy=self.policy
            )
        except ChallengeDetected:
            logger.warning(f"Bot challenge persisted for {url}, leaving details empty")
            return IssueDetails()
        except NetworkError as e:
            logger.warning(f"Error scraping newsletter content: {e}")
            return IssueDetails()

        try:
            return extract_details(url, html)
        except DetailExtractionFailure as e:
            logger.warning(str(e))
            return IssueDetails()
        except Exception as e:
            logger.warning(f"Failed to parse issue page {url}: {e}")
            return IssueDetails()
