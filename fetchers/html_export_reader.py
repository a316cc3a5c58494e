"""HTML export reader: loads export documents, breadcrumb chains and titles."""

import logging
import os
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from models import Breadcrumb, ExportDocument
from .base_fetcher import BaseFetcher, ExportSetupError

logger = logging.getLogger('confluence_bookstack_migrator.fetcher.html')

TITLE_SEPARATOR = ' : '


def extract_title(soup: BeautifulSoup, default: str = '') -> str:
    """
    Read a document title from ``#title-text``.

    Exported titles are prefixed with the space name ("ITDocs : Backups");
    only the part after the separator is kept.
    """
    element = soup.find(id='title-text')
    if element is None:
        return default
    title = element.get_text().strip()
    if TITLE_SEPARATOR in title:
        title = title.split(TITLE_SEPARATOR)[1].strip()
    return title


def extract_breadcrumbs(soup: BeautifulSoup) -> Optional[List[Breadcrumb]]:
    """Return the breadcrumb chain, or None when the document has no ``#breadcrumbs``."""
    container = soup.find(id='breadcrumbs')
    if container is None:
        return None

    breadcrumbs = []
    for item in container.find_all('li'):
        anchor = item.find('a')
        if anchor is None:
            breadcrumbs.append(Breadcrumb(label=item.get_text().strip(), href=None))
        else:
            breadcrumbs.append(Breadcrumb(
                label=anchor.get_text().strip(),
                href=anchor.get('href')
            ))
    return breadcrumbs


class HtmlExportReader(BaseFetcher):
    """Reads a directory of exported HTML documents."""

    def __init__(self, config: Dict[str, Any], logger=None):
        """
        Initialize HTML export reader with configuration.

        Args:
            config: Configuration dictionary with export.path / export.folder
            logger: Logger instance (optional)
        """
        super().__init__(config, logger or logging.getLogger('confluence_bookstack_migrator.fetcher.html'))
        self._title_cache: Dict[str, Optional[str]] = {}
        self._breadcrumb_cache: Dict[str, Optional[List[Breadcrumb]]] = {}

    def validate_source(self) -> None:
        if not os.path.isdir(self.export_dir):
            raise ExportSetupError(f"Export directory not found: {self.export_dir}")

    def file_path(self, filename: str) -> str:
        return os.path.join(self.export_dir, filename)

    def exists(self, filename: Optional[str]) -> bool:
        return bool(filename) and os.path.isfile(self.file_path(filename))

    def list_documents(self) -> List[str]:
        """List HTML filenames in the export directory, sorted by name."""
        self.validate_source()
        filenames = sorted(
            name for name in os.listdir(self.export_dir)
            if name.endswith('.html') and os.path.isfile(self.file_path(name))
        )
        self.logger.info(f"Found {len(filenames)} HTML files in {self.export_dir}")
        return filenames

    def read_html(self, filename: str) -> str:
        with open(self.file_path(filename), 'r', encoding='utf-8', errors='ignore') as f:
            return f.read()

    def read_soup(self, filename: str) -> BeautifulSoup:
        """Parse a document into a fresh BeautifulSoup tree."""
        return BeautifulSoup(self.read_html(filename), 'lxml')

    def read_document(self, filename: str) -> ExportDocument:
        """
        Load one export document with its breadcrumb chain.

        Args:
            filename: Document filename relative to the export directory

        Returns:
            ExportDocument; ``has_breadcrumbs`` is False when the document
            carries no breadcrumb element
        """
        content = self.read_html(filename)
        soup = BeautifulSoup(content, 'lxml')
        breadcrumbs = extract_breadcrumbs(soup)

        self._breadcrumb_cache[filename] = breadcrumbs
        if filename not in self._title_cache:
            self._title_cache[filename] = extract_title(soup) or None

        return ExportDocument(
            filename=filename,
            breadcrumbs=breadcrumbs or [],
            content=content,
            has_breadcrumbs=breadcrumbs is not None
        )

    def iter_documents(self) -> Iterator[ExportDocument]:
        for filename in self.list_documents():
            yield self.read_document(filename)

    def get_title(self, filename: str) -> Optional[str]:
        """
        Title of a document, read lazily and cached.

        Returns None when the file does not exist or has no title element.
        """
        if filename not in self._title_cache:
            if not self.exists(filename):
                self._title_cache[filename] = None
            else:
                self._title_cache[filename] = extract_title(self.read_soup(filename)) or None
        return self._title_cache[filename]

    def get_breadcrumbs(self, filename: str) -> Optional[List[Breadcrumb]]:
        """Breadcrumb chain of a document, read lazily and cached."""
        if filename not in self._breadcrumb_cache:
            if not self.exists(filename):
                self._breadcrumb_cache[filename] = None
            else:
                self._breadcrumb_cache[filename] = extract_breadcrumbs(self.read_soup(filename))
        return self._breadcrumb_cache[filename]

    def clear_cache(self) -> None:
        self._title_cache.clear()
        self._breadcrumb_cache.clear()


__all__ = ['HtmlExportReader', 'extract_title', 'extract_breadcrumbs', 'TITLE_SEPARATOR']
