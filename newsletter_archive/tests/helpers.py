"""
Shared test doubles and HTML builders.
"""

from newsletter_archive.exceptions import DispatchFailure, NetworkError
from newsletter_archive.fetcher import RetryPolicy

ARCHIVE_URL = "https://archive.test/public/archives?a=abc"
BASE_URL = "https://archive.test"

# No waiting between retries in tests
FAST_POLICY = RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, challenge_delay=0)


def issue_url(issue_id) -> str:
    return f"{BASE_URL}/archive?id={issue_id}"


def issue_page(body_text: str, images: int = 2) -> str:
    """Build an issue page with a masthead image followed by content images."""
    imgs = "".join(
        f'<img src="/images/{"logo" if n == 0 else f"photo{n}"}.png">' for n in range(images)
    )
    return f"<html><head><title>Issue</title></head><body>{imgs}<p>{body_text}</p></body></html>"


def listing_page(entries: list[tuple[str, str]]) -> str:
    """Build an archive listing from (issue id, "Month D, YYYY - Title") pairs."""
    items = "".join(
        f'<li><a href="/archive?id={issue_id}">{text}</a></li>' for issue_id, text in entries
    )
    return f"<html><body><h1>Archive</h1><ul>{items}</ul></body></html>"


class FakeFetcher:
    """
    Stand-in for HtmlFetcher serving canned pages by URL.

    A page value may be a string (returned), an exception instance (raised),
    or a list of those consumed one per request (the last one repeats).
    """

    def __init__(self, pages: dict | None = None):
        self.pages = dict(pages or {})
        self.requests: list[str] = []

    async def fetch_page(self, url, headers=None, timeout=None):
        self.requests.append(url)
        page = self.pages.get(url)
        if isinstance(page, list):
            page = page.pop(0) if len(page) > 1 else page[0]
        if page is None:
            raise NetworkError(url, "HTTP 404", status=404)
        if isinstance(page, BaseException):
            raise page
        return page


class FakeTransport:
    """Push transport that records sends and fails for chosen endpoints."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.sent: list[tuple[str, str]] = []

    async def send(self, endpoint, auth, p256dh, payload):
        if endpoint in self.failing:
            raise DispatchFailure(endpoint, "410 Gone", status=410)
        self.sent.append((endpoint, payload))
