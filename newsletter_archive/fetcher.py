"""
HTML Fetcher - Retrieve archive and issue pages from the upstream platform.

Handles:
- HTTP GET with browser-like headers and per-request timeouts
- Classification of failures into NetworkError (retryable or not)
- Detection of anti-bot challenge pages (ChallengeDetected)
- Bounded tenacity retries driven by an explicit RetryPolicy

The fetcher itself never retries; `fetch_with_retry` layers the policy on top.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from .exceptions import ChallengeDetected, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_CHALLENGE_MARKER = "AwsWafIntegration.checkForceRefresh"

# Statuses worth another attempt; everything else non-2xx is final
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class HtmlFetcher:
    """Fetches raw HTML pages with browser-like headers."""

    def __init__(
        self,
        timeout: float = 15,
        user_agent: str | None = None,
        challenge_marker: str = DEFAULT_CHALLENGE_MARKER,
    ):
        self.timeout = timeout
        self.challenge_marker = challenge_marker
        self.user_agent = user_agent or (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        )
        self.headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    async def fetch_page(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Fetch a page and return its body as text.

        Args:
            url: Absolute URL to fetch
            headers: Extra headers merged over the browser defaults
            timeout: Total request timeout in seconds (defaults to self.timeout)

        Raises:
            NetworkError: On timeout, connection failure, or non-2xx status
            ChallengeDetected: If the body is an anti-bot interstitial
        """
        request_headers = {**self.headers, **(headers or {})}
        total = timeout if timeout is not None else self.timeout

        try:
            async with aiohttp.ClientSession(headers=request_headers) as session:
                async with session.get(
                    url,
                    timeout=aiohttp.ClientTimeout(total=total),
                    allow_redirects=True
                ) as resp:
                    status = resp.status
                    html = await resp.text(errors="replace")
        except asyncio.TimeoutError as e:
            raise NetworkError(url, f"Timed out after {total}s", retryable=True) from e
        except aiohttp.ClientConnectionError as e:
            raise NetworkError(url, f"Connection error: {e}", retryable=True) from e
        except aiohttp.ClientError as e:
            raise NetworkError(url, f"Request failed: {e}") from e

        # WAF interstitials often arrive with 403/405, so check the body first
        if self.is_challenge(html):
            raise ChallengeDetected(url)

        if not 200 <= status < 300:
            raise NetworkError(
                url,
                f"HTTP {status}",
                status=status,
                retryable=status in RETRYABLE_STATUSES,
            )

        return html

    def is_challenge(self, html: str) -> bool:
        """Check if a response body is a bot-challenge page."""
        return bool(self.challenge_marker) and self.challenge_marker in html


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy for upstream fetches.

    Network retries back off exponentially from `base_delay`, doubling per
    attempt and never exceeding `max_delay`. Challenge pages get at most
    `challenge_retries` re-fetches after a fixed `challenge_delay`.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 1.0
    challenge_retries: int = 1
    challenge_delay: float = 1.0

    def network_wait(self) -> wait_exponential:
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay)

    def challenge_wait(self) -> wait_fixed:
        return wait_fixed(self.challenge_delay)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, NetworkError) and error.retryable


async def fetch_with_retry(
    fetcher: HtmlFetcher,
    url: str,
    timeout: float | None = None,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """
    Fetch a page, retrying transient failures according to `policy`.

    Raises the last NetworkError or ChallengeDetected once the policy is
    exhausted. Non-retryable network errors propagate immediately.
    """
    policy = policy or RetryPolicy()

    challenge_retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.challenge_retries + 1),
        wait=policy.challenge_wait(),
        retry=retry_if_exception_type(ChallengeDetected),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
    async for challenge_attempt in challenge_retrying:
        with challenge_attempt:
            network_retrying = AsyncRetrying(
                stop=stop_after_attempt(policy.max_attempts),
                wait=policy.network_wait(),
                retry=retry_if_exception(_is_transient),
                sleep=sleep,
                before_sleep=before_sleep_log(logger, logging.INFO),
                reraise=True,
            )
            async for attempt in network_retrying:
                with attempt:
                    html = await fetcher.fetch_page(url, timeout=timeout)
    return html
