"""
Readwise Reader list API client.

Fetches every document updated after a watermark, following the
server-issued page cursor until the last page.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import requests

from ..config import get_config
from ..exceptions import RateLimited, SourceUnavailable
from ..models import Document
from ..utils import format_timestamp

logger = logging.getLogger(__name__)


class ReaderAPI:
    """
    Paginated client over the Reader ``/list/`` endpoint.

    Only knows how to fetch pages for a filter and cursor; deduplication
    and processing belong to the pipeline.
    """

    def __init__(self, access_token: str, base_url: Optional[str] = None,
                 timeout: Optional[int] = None, user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None, config=None):
        """
        Initialize the API client.

        Args:
            access_token: Reader access token
            base_url: API root (uses config default if None)
            timeout: Request timeout in seconds (uses config default if None)
            user_agent: User agent string (uses config default if None)
            session: Pre-built requests session, mainly for tests
            config: Config instance (global config if None)
        """
        config = config if config is not None else get_config()
        reader_config = config.get_reader_config()

        self.access_token = access_token
        self.base_url = (base_url or reader_config.get('base_url', 'https://readwise.io/api/v3')).rstrip('/')
        self.auth_url = reader_config.get('auth_url', 'https://readwise.io/api/v2/auth/')
        self.timeout = timeout or reader_config.get('timeout', 30)
        self.user_agent = user_agent or reader_config.get('user_agent', 'reader-printer/1.0.0')

        self.session = session if session is not None else requests.Session()
        self.session.headers.update({
            'Authorization': f'Token {self.access_token}',
            'Content-Type': 'application/json',
            'User-Agent': self.user_agent,
        })

    def fetch_updated_since(self, timestamp: Union[datetime, str],
                            location: Optional[str] = None,
                            category: Optional[str] = None,
                            with_html_content: bool = False) -> List[Document]:
        """
        Fetch all documents updated after ``timestamp``.

        Args:
            timestamp: Watermark; documents updated strictly after it are returned
            location: Optional location filter (new, later, shortlist, archive, feed)
            category: Optional category filter (article, email, rss, pdf, ...)
            with_html_content: Ask the API to include document HTML

        Returns:
            Documents from every page, in page order

        Raises:
            RateLimited: On HTTP 429
            SourceUnavailable: On any other failure
        """
        updated_after = timestamp if isinstance(timestamp, str) else format_timestamp(timestamp)
        documents: List[Document] = []
        cursor: Optional[str] = None
        page = 0

        while True:
            page += 1
            params = self._build_params(cursor, updated_after, location, category, with_html_content)
            data = self._get_page(params)

            results = data.get('results') or []
            documents.extend(_parse_documents(results))
            logger.debug("Page %d returned %d documents", page, len(results))

            cursor = data.get('nextPageCursor')
            if not cursor:
                break

        logger.info("Fetched %d documents updated after %s (%d page%s)",
                    len(documents), updated_after, page, '' if page == 1 else 's')
        return documents

    def validate_token(self) -> bool:
        """
        Check the access token against the auth endpoint.

        Returns:
            True if the token is accepted (HTTP 204)
        """
        try:
            response = self.session.get(self.auth_url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SourceUnavailable(None, str(e)) from e
        return response.status_code == 204

    def _build_params(self, cursor: Optional[str], updated_after: Optional[str],
                      location: Optional[str], category: Optional[str],
                      with_html_content: bool) -> Dict[str, str]:
        params = {}
        if cursor:
            params['pageCursor'] = cursor
        if updated_after:
            params['updatedAfter'] = updated_after
        if location:
            params['location'] = location
        if category:
            params['category'] = category
        if with_html_content:
            params['withHtmlContent'] = 'true'
        return params

    def _get_page(self, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}/list/"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SourceUnavailable(None, str(e)) from e

        if response.status_code == 429:
            raise RateLimited(_parse_retry_after(response.headers.get('Retry-After')))
        if not response.ok:
            raise SourceUnavailable(response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise SourceUnavailable(response.status_code, "response is not valid JSON") from e
        if not isinstance(data, dict):
            raise SourceUnavailable(response.status_code, "unexpected response shape")
        return data


def _parse_documents(results: Any) -> List[Document]:
    if not isinstance(results, list):
        raise SourceUnavailable(200, "unexpected response shape")
    try:
        return [Document.from_dict(item) for item in results]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise SourceUnavailable(200, f"malformed document in response: {e!r}") from e


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
