"""
BookStack REST API client.

This module provides a client wrapper for the BookStack REST API,
handling authentication, transport retries, pagination, and the
shelf, book, chapter, page and attachment operations used by the
migration. Every call passes through the shared RetryPolicy.
"""

import logging
import os
from itertools import count
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .retry_policy import RetryPolicy

logger = logging.getLogger('confluence_bookstack_migrator.importers.bookstack_client')


class BookStackClient:
    """BookStack REST API client with a shared retry policy."""

    DEFAULT_TIMEOUT = 30
    DEFAULT_CONNECTION_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5
    PAGE_SIZE = 100

    def __init__(
        self,
        base_url: str,
        token_id: str,
        token_secret: str,
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        connection_retries: int = DEFAULT_CONNECTION_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize BookStack client.

        Args:
            base_url: BookStack instance base URL
            token_id: API token ID
            token_secret: API token secret
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            connection_retries: Transport-level retries for connection errors
            retry_backoff_factor: Backoff factor for transport retries
            retry_policy: Policy applied to every API call
            session: Pre-built session (tests)
        """
        self.base_url = base_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Token {token_id}:{token_secret}',
            'Accept': 'application/json'
        })

        # Status codes are left to the retry policy; urllib3 only retries
        # connection and read failures.
        retry_strategy = Retry(
            total=connection_retries,
            connect=connection_retries,
            read=connection_retries,
            status=0,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[],
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized BookStack client for {self.base_url}")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make one HTTP request.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: API endpoint path
            params: Query parameters
            json: JSON payload for POST/PUT requests
            data: Form fields for multipart uploads
            files: Files for multipart uploads

        Returns:
            JSON response as dictionary

        Raises:
            requests.RequestException: For HTTP errors
        """
        url = f"{self.base_url}/api{endpoint}"

        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                data=data,
                files=files,
                verify=self.verify_ssl,
                timeout=self.timeout
            )

            logger.debug(f"Response status: {response.status_code}")

            response.raise_for_status()

            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

        except requests.RequestException as e:
            status = getattr(getattr(e, 'response', None), 'status_code', None)
            if status == 429:
                logger.debug(f"Rate limited: {method} {url}")
            else:
                logger.error(f"Request failed: {method} {url} - {str(e)}")
                if getattr(e, 'response', None) is not None:
                    logger.error(f"Response: {e.response.text}")
            raise

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Make a request under the retry policy."""
        return self.retry_policy.execute(
            self._make_request, method, endpoint, context=f"{method} {endpoint}", **kwargs
        )

    def _list_all(self, endpoint: str, page_size: int = PAGE_SIZE) -> List[Dict[str, Any]]:
        """Collect every item of an offset/count paginated list endpoint."""
        items: List[Dict[str, Any]] = []
        offset = 0
        while True:
            response = self._request('GET', endpoint, params={'offset': offset, 'count': page_size})
            batch = response.get('data', [])
            items.extend(batch)
            if len(batch) < page_size:
                break
            offset += page_size
        logger.debug(f"Listed {len(items)} items from {endpoint}")
        return items

    def create_shelf(self, name: str, description: str = "", books: Optional[List[int]] = None) -> Dict[str, Any]:
        """Create a new shelf."""
        data = {'name': name, 'description': description}
        if books:
            data['books'] = list(books)
        return self._request('POST', '/shelves', json=data)

    def get_shelf(self, shelf_id: int) -> Dict[str, Any]:
        """Get shelf by ID."""
        return self._request('GET', f'/shelves/{shelf_id}')

    def list_shelves(self) -> List[Dict[str, Any]]:
        """List all shelves."""
        return self._list_all('/shelves')

    def update_shelf(self, shelf_id: int, **kwargs) -> Dict[str, Any]:
        """Update shelf properties (``books`` replaces the shelf's book list)."""
        return self._request('PUT', f'/shelves/{shelf_id}', json=kwargs)

    def delete_shelf(self, shelf_id: int) -> Dict[str, Any]:
        return self._request('DELETE', f'/shelves/{shelf_id}')

    def create_book(self, name: str, description: str = "") -> Dict[str, Any]:
        """Create a new book."""
        data = {'name': name, 'description': description}
        return self._request('POST', '/books', json=data)

    def get_book(self, book_id: int) -> Dict[str, Any]:
        """Get book by ID."""
        return self._request('GET', f'/books/{book_id}')

    def delete_book(self, book_id: int) -> Dict[str, Any]:
        return self._request('DELETE', f'/books/{book_id}')

    def create_chapter(self, book_id: int, name: str, description: str = "") -> Dict[str, Any]:
        """Create a new chapter in a book."""
        data = {
            'book_id': book_id,
            'name': name,
            'description': description
        }
        return self._request('POST', '/chapters', json=data)

    def create_page(
        self,
        name: str,
        html: str,
        book_id: Optional[int] = None,
        chapter_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Create a new page in a book or chapter."""
        if book_id is None and chapter_id is None:
            raise ValueError("create_page requires book_id or chapter_id")

        data = {'name': name, 'html': html}
        if chapter_id is not None:
            data['chapter_id'] = chapter_id
        else:
            data['book_id'] = book_id

        return self._request('POST', '/pages', json=data)

    def get_page(self, page_id: int) -> Dict[str, Any]:
        """Get page by ID."""
        return self._request('GET', f'/pages/{page_id}')

    def update_page(self, page_id: int, **kwargs) -> Dict[str, Any]:
        """Update page properties."""
        return self._request('PUT', f'/pages/{page_id}', json=kwargs)

    def list_pages(self) -> List[Dict[str, Any]]:
        """List all pages."""
        return self._list_all('/pages')

    def list_attachments(self) -> List[Dict[str, Any]]:
        """List all attachments."""
        return self._list_all('/attachments')

    def create_attachment(self, uploaded_to: int, name: str, file_path: str) -> Dict[str, Any]:
        """
        Upload a file as an attachment of a page.

        The file is reopened on every attempt so a retried upload sends the
        full content again.

        Args:
            uploaded_to: ID of the page to attach the file to
            name: Display name of the attachment
            file_path: Path of the file on disk

        Returns:
            Upload response with attachment details
        """
        def upload() -> Dict[str, Any]:
            with open(file_path, 'rb') as f:
                return self._make_request(
                    'POST',
                    '/attachments',
                    data={'name': name, 'uploaded_to': uploaded_to},
                    files={'file': (os.path.basename(file_path), f)}
                )

        return self.retry_policy.execute(upload, context=f"upload {name}")

    @classmethod
    def from_config(cls, config: Dict[str, Any], retry_policy: Optional[RetryPolicy] = None) -> 'BookStackClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'bookstack' section
            retry_policy: Policy to share; built from the 'retry' section if omitted

        Returns:
            Configured BookStackClient instance
        """
        bookstack_config = config.get('bookstack', {})
        advanced_config = config.get('advanced', {})

        return cls(
            base_url=bookstack_config.get('base_url'),
            token_id=bookstack_config.get('token_id'),
            token_secret=bookstack_config.get('token_secret'),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            connection_retries=advanced_config.get('connection_retries', cls.DEFAULT_CONNECTION_RETRIES),
            retry_policy=retry_policy or RetryPolicy.from_config(config)
        )


class DryRunBookStackClient:
    """Stands in for BookStackClient in dry runs: logs each call and returns synthetic ids."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.bookstack_client')
        self._ids = count(1)
        self.calls: List[Dict[str, Any]] = []

    def _record(self, operation: str, **kwargs) -> Dict[str, Any]:
        new_id = next(self._ids)
        self.calls.append({'operation': operation, **kwargs})
        summary = kwargs.get('name') or kwargs.get('shelf_id') or ''
        self.logger.info(f"[DRY RUN] Would {operation.replace('_', ' ')}: {summary}")
        return {'id': new_id, **{k: v for k, v in kwargs.items() if k != 'html'}}

    def create_shelf(self, name: str, description: str = "", books: Optional[List[int]] = None) -> Dict[str, Any]:
        return self._record('create_shelf', name=name, books=list(books or []))

    def update_shelf(self, shelf_id: int, **kwargs) -> Dict[str, Any]:
        return self._record('update_shelf', shelf_id=shelf_id, **kwargs)

    def create_book(self, name: str, description: str = "") -> Dict[str, Any]:
        return self._record('create_book', name=name)

    def create_chapter(self, book_id: int, name: str, description: str = "") -> Dict[str, Any]:
        return self._record('create_chapter', name=name, book_id=book_id)

    def create_page(
        self,
        name: str,
        html: str,
        book_id: Optional[int] = None,
        chapter_id: Optional[int] = None
    ) -> Dict[str, Any]:
        return self._record('create_page', name=name, book_id=book_id, chapter_id=chapter_id)


__all__ = ['BookStackClient', 'DryRunBookStackClient']
