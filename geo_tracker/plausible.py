"""
Plausible Analytics Integration
===============================

Sends custom events to Plausible through the Events API.

Plausible treats traffic from datacenter IPs (CI runners included) as
bot traffic and silently drops it. Events therefore carry a browser-like
User-Agent and a synthetic X-Forwarded-For derived from the current date.
That address is only a workaround for the bot filter, never an identity.

Documentation: https://plausible.io/docs/events-api
"""

import asyncio
import hashlib
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional
import aiohttp
import structlog

from .config import DEFAULT_PLAUSIBLE_ENDPOINT

logger = structlog.get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; GeoTracker/1.0; +https://github.com/aboydnw/ds-geo-tracker)"

TIMEOUT_SECONDS = 10.0
MAX_RETRIES = 1
RETRY_DELAY_SECONDS = 2.0


def generate_daily_ip(day: date) -> str:
    """
    Derive a stable IPv4 address from a calendar day.

    Plausible hashes IP + User-Agent into a visitor id, so the same day
    always maps to the same "visitor" and each new day to a new one.
    Octets avoid reserved ranges:
        first: 11-99 (skips 0/8, 10/8, 127/8 and 100.64/10)
        last:  1-254 (skips network and broadcast)
    """
    digest = hashlib.sha256(f"geo-tracker-{day.isoformat()}".encode()).digest()
    a = digest[0] % 89 + 11
    b = digest[1]
    c = digest[2]
    d = digest[3] % 254 + 1
    return f"{a}.{b}.{c}.{d}"


def is_transient_status(status: int) -> bool:
    """5xx and 429 are worth one more try"""
    return status >= 500 or status == 429


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class PlausibleClient:
    """Deliver measurement events to Plausible with one retry on transient failures"""

    def __init__(
        self,
        domain: str,
        endpoint: str = DEFAULT_PLAUSIBLE_ENDPOINT,
        timeout: float = TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        today: Callable[[], date] = _utc_today,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            domain: Plausible site domain (e.g. "geo.developmentseed.org")
            endpoint: Events API URL
            timeout: Seconds before an attempt is aborted
            max_retries: Extra attempts after a transient failure
            retry_delay: Seconds to wait before retrying
            today: Returns the current date, used for the synthetic IP
            sleep: Awaitable sleep, replaceable in tests
        """
        self.domain = domain
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._today = today
        self._sleep = sleep
        self.logger = logger.bind(component="PlausibleClient")

    @property
    def is_configured(self) -> bool:
        return bool(self.domain)

    def default_url(self) -> str:
        return f"https://{self.domain}/"

    def build_payload(
        self,
        event_name: str,
        props: Optional[dict[str, str]] = None,
        referrer: Optional[str] = None,
        url: Optional[str] = None,
    ) -> dict:
        payload = {
            "name": event_name,
            "url": url or self.default_url(),
            "domain": self.domain,
            "props": dict(props or {}),
        }
        # Populates the Sources report
        if referrer:
            payload["referrer"] = referrer
        return payload

    def build_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-Forwarded-For": generate_daily_ip(self._today()),
        }

    async def send_event(
        self,
        event_name: str,
        props: Optional[dict[str, str]] = None,
        referrer: Optional[str] = None,
        url: Optional[str] = None,
    ) -> bool:
        """
        Send a custom event.

        Args:
            event_name: Event name (e.g. "LLM_Prominence")
            props: String-valued custom properties
            referrer: Referrer URL, shown as the event's source
            url: Page URL on the tracker domain, shown in Top Pages

        Returns:
            True if Plausible accepted the event (HTTP 202), False otherwise
        """
        if not self.is_configured:
            self.logger.error("plausible_domain_not_configured", event_name=event_name)
            return False

        payload = self.build_payload(event_name, props, referrer=referrer, url=url)
        headers = self.build_headers()
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        attempt = 0
        while True:
            try:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.post(self.endpoint, json=payload, headers=headers) as response:
                        status = response.status

                if status == 202:
                    self.logger.info("event_sent", event_name=event_name, attempt=attempt + 1)
                    return True

                reason = f"HTTP {status}"
                transient = is_transient_status(status)

            except asyncio.TimeoutError:
                reason = f"timed out after {self.timeout}s"
                transient = True
            except aiohttp.ClientError as e:
                reason = str(e) or e.__class__.__name__
                transient = True
            except Exception as e:
                self.logger.error("event_send_error", event_name=event_name, error=str(e))
                return False

            if transient and attempt < self.max_retries:
                attempt += 1
                self.logger.warning(
                    "event_send_retry",
                    event_name=event_name,
                    reason=reason,
                    attempt=attempt,
                    delay=self.retry_delay,
                )
                await self._sleep(self.retry_delay)
                continue

            self.logger.error(
                "event_send_failed",
                event_name=event_name,
                reason=reason,
                attempts=attempt + 1,
            )
            return False
