"""HTML cleaner for removing export chrome before a document body is migrated."""

import logging
from typing import List

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger('confluence_bookstack_migrator.converters.htmlcleaner')


class HtmlCleaner:
    """Removes export-specific markup that must not reach the destination pages."""

    # UI sections that list every attachment version; stripped before the
    # attachment scan so superseded files are never collected.
    STALE_SECTION_CLASSES = [
        'footer-body',
        'plugin_attachments_upload_container',
        'download-all-link'
    ]

    def __init__(self, logger: logging.Logger = None):
        """Initialize HTML cleaner with optional logger."""
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.converters.htmlcleaner')

    def clean(self, soup: BeautifulSoup, keep_breadcrumbs: bool = False) -> BeautifulSoup:
        """
        Main entry point to clean an export document.

        Args:
            soup: BeautifulSoup object with export HTML
            keep_breadcrumbs: Leave ``#breadcrumbs`` in place

        Returns:
            Cleaned BeautifulSoup object
        """
        self.remove_title_heading(soup)
        removed = self.strip_stale_sections(soup)
        if not keep_breadcrumbs:
            self.remove_breadcrumbs(soup)

        self.logger.debug(f"HTML cleaning completed ({removed} stale sections removed)")
        return soup

    def remove_title_heading(self, soup: BeautifulSoup) -> None:
        heading = soup.find(id='title-heading')
        if heading is not None:
            heading.decompose()

    def remove_breadcrumbs(self, soup: BeautifulSoup) -> None:
        breadcrumbs = soup.find(id='breadcrumbs')
        if breadcrumbs is not None:
            breadcrumbs.decompose()

    def strip_stale_sections(self, soup: BeautifulSoup) -> int:
        """
        Remove the attachments listing and download-all UI.

        The ``#attachments`` heading sits inside a ``.pageSection`` container;
        the whole container goes, or just the heading when there is none.

        Returns:
            Number of elements removed
        """
        removed = 0

        attachments_heading = soup.find(id='attachments')
        if attachments_heading is not None:
            section = self._closest(attachments_heading, 'pageSection')
            (section or attachments_heading).decompose()
            removed += 1

        for class_name in self.STALE_SECTION_CLASSES:
            for element in soup.find_all(class_=class_name):
                element.decompose()
                removed += 1

        return removed

    @staticmethod
    def _closest(element: Tag, class_name: str) -> Tag:
        """Return ``element`` or its nearest ancestor carrying ``class_name``."""
        if class_name in (element.get('class') or []):
            return element
        return element.find_parent(class_=class_name)

    @staticmethod
    def serialize_body(soup: BeautifulSoup) -> str:
        """Inner HTML of ``<body>``, or the whole tree for fragments."""
        if soup.body is not None:
            return soup.body.decode_contents().strip()
        return str(soup).strip()


def find_anchors(soup: BeautifulSoup) -> List[Tag]:
    return soup.find_all('a', href=True)


__all__ = ['HtmlCleaner', 'find_anchors']
