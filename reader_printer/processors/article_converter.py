"""
Article conversion for reader-printer.

Fetches an article's source resource, classifies it by content type and
produces a local PDF, either by saving the body of an existing PDF or by
rendering the webpage.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import requests

from ..config import get_config
from ..exceptions import ConversionFailed
from .percollate_runner import PercollateRunner

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = 'application/pdf'


def is_pdf(content_type: Optional[str]) -> bool:
    """Check whether a Content-Type header denotes a PDF document."""
    return bool(content_type) and PDF_CONTENT_TYPE in content_type.lower()


class ArticleConverter:
    """
    Fetch-and-classify boundary plus the two ways of producing a PDF.
    """

    def __init__(self, renderer: Optional[PercollateRunner] = None,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[int] = None, config=None):
        """
        Initialize the converter.

        Args:
            renderer: Webpage renderer (PercollateRunner from config if None)
            session: HTTP session used to fetch resources
            timeout: Request timeout in seconds
            config: Config instance (global config if None)
        """
        config = config if config is not None else get_config()
        reader_config = config.get_reader_config()

        self.renderer = renderer if renderer is not None else PercollateRunner(config=config)
        self.timeout = timeout or reader_config.get('timeout', 30)

        self.session = session if session is not None else requests.Session()
        self.session.headers.update({
            'User-Agent': reader_config.get('user_agent', 'reader-printer/1.0.0'),
            'Accept': 'text/html,application/xhtml+xml,application/pdf;q=0.9,*/*;q=0.8',
        })

    def resolve(self, resource_address: str) -> Tuple[str, Optional[bytes]]:
        """
        Retrieve a resource and report its content type.

        Args:
            resource_address: http(s) URL of the article

        Returns:
            Tuple of (content_type, body). ``body`` is only read for PDFs;
            for anything else it is None and the page is rendered later.

        Raises:
            ConversionFailed: If the resource cannot be retrieved
        """
        try:
            response = self.session.get(resource_address, timeout=self.timeout, stream=True)
        except requests.exceptions.RequestException as e:
            raise ConversionFailed(f"Could not fetch {resource_address}: {e}") from e

        try:
            if not response.ok:
                raise ConversionFailed(
                    f"Fetching {resource_address} failed with status {response.status_code}")

            content_type = response.headers.get('content-type', '')
            logger.info("Content type: %s", content_type or 'unknown')

            if not is_pdf(content_type):
                return content_type, None

            try:
                return content_type, response.content
            except requests.exceptions.RequestException as e:
                raise ConversionFailed(f"Download of {resource_address} failed: {e}") from e
        finally:
            response.close()

    def write_pdf(self, body: bytes, path: Union[str, Path]) -> Path:
        """Save a downloaded PDF body to ``path``."""
        if not body:
            raise ConversionFailed("PDF response body is empty")
        path = Path(path)
        try:
            with open(path, 'wb') as f:
                f.write(body)
        except OSError as e:
            raise ConversionFailed(f"Could not write PDF to {path}: {e}") from e
        logger.info("PDF downloaded successfully (%d bytes)", len(body))
        return path

    def render_webpage(self, url: str, path: Union[str, Path]) -> Path:
        """Render a webpage to ``path`` with the external renderer."""
        logger.info("Article is webpage, converting to PDF...")
        output = self.renderer.render(url, path)
        logger.info("PDF generated successfully")
        return output

    def convert(self, url: str, path: Union[str, Path]) -> str:
        """
        Produce a PDF for ``url`` at ``path``.

        Returns:
            The resolved content type

        Raises:
            ConversionFailed: If fetching or rendering fails
        """
        content_type, body = self.resolve(url)
        if body is not None:
            logger.info("Article is PDF, downloading directly...")
            self.write_pdf(body, path)
        else:
            self.render_webpage(url, path)
        return content_type
