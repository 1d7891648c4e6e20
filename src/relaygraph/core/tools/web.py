"""Web page fetching tool.

Fetches a page over HTTP and reduces the HTML to its visible text so the
model receives readable content instead of markup. Scripts, styles and
other non-content elements are dropped; whitespace is collapsed.
"""

import re
from html.parser import HTMLParser
from typing import ClassVar, List

import aiohttp
from mirascope.core import BaseTool
from pydantic import Field

from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.TOOLS)

_SKIPPED_TAGS = {"script", "style", "noscript", "template", "svg", "head"}


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self.parts: List[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag):
        if tag in _SKIPPED_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data):
        if not self._skip_depth and data.strip():
            self.parts.append(data.strip())


def html_to_text(html: str) -> str:
    """Visible text of an HTML document, whitespace-collapsed."""
    parser = _TextExtractor()
    parser.feed(html)
    parser.close()
    return re.sub(r"\s+", " ", " ".join(parser.parts)).strip()


class FetchPageTool(BaseTool):
    """Fetch a web page and return its visible text.

    Attributes:
        url: Absolute http(s) URL of the page to fetch

    Example:
        ```python
        tool = FetchPageTool(url="https://example.com")
        text = await tool.call()
        ```
    """

    max_chars: ClassVar[int] = 8000
    timeout_seconds: ClassVar[float] = 20.0

    url: str = Field(
        ...,
        description="Absolute URL of the web page to fetch (e.g. 'https://example.com/about')"
    )

    async def call(self) -> str:
        """Fetch the page.

        Returns:
            str: Page text, truncated to `max_chars`

        Raises:
            ValueError: If the URL is not http(s)
            Exception: If the request fails or returns a non-200 status
        """
        if not self.url.startswith(("http://", "https://")):
            raise ValueError(f"Unsupported URL '{self.url}': only http and https are allowed")

        logger.info(f"Fetching {self.url}")
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.url) as response:
                    if response.status != 200:
                        raise Exception(f"Failed to fetch page: HTTP {response.status}")
                    html = await response.text()
        except aiohttp.ClientError as e:
            logger.error(f"HTTP error fetching {self.url}: {e}")
            raise Exception(f"Failed to fetch page: {e}")

        text = html_to_text(html)
        if len(text) > self.max_chars:
            text = text[:self.max_chars] + " [truncated]"
        logger.debug(f"Fetched {len(text)} characters from {self.url}")
        return text
