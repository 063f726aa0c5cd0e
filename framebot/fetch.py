import logging
from typing import Optional

import requests

from framebot.errors import FetchError

logger = logging.getLogger(__name__)


class AttachmentFetcher:
    """Downloads attachment bytes. Slack private file URLs need the bot token."""

    def __init__(self, token: Optional[str] = None, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    def fetch_bytes(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Failed to download {url}: {e}") from e

        content_type = response.headers.get('Content-Type', '')
        # Slack answers an unauthorised file request with its HTML login page.
        if content_type.startswith('text/html'):
            raise FetchError(f"Expected image data from {url}, got {content_type}")

        logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content
