"""
BookStack importer for XML exports.

The XML export carries explicit parent references, so no breadcrumb
inference is needed:

- depth 0: the shelf (the root whose title contains the configured
  marker, else the first root)
- depth 1: books, each with a "_General" page holding its own body
- depth 2: pages inside the book

Deeper pages are flattened into their depth-1 book.
"""

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from tqdm import tqdm

from config_loader import get_nested
from converters.storage_format_converter import StorageFormatConverter
from models import AttachmentRef, EntityKind, XmlEntities, XmlPage
from .bookstack_importer import GENERAL_PAGE_NAME


class XmlImporter:
    """Creates an XML export's page tree in BookStack."""

    def __init__(
        self,
        config: Dict[str, Any],
        client,
        reader,
        entities: XmlEntities,
        context,
        converter: Optional[StorageFormatConverter] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize XML importer.

        Args:
            config: Configuration dictionary
            client: BookStackClient (or DryRunBookStackClient)
            reader: XmlExportReader used to locate attachment files
            entities: Objects extracted from entities.xml
            context: MigrationContext of the current run
            converter: Storage format converter (built on the reader if omitted)
            logger: Optional logger instance
            sleep: Sleep function used for pacing
        """
        self.config = config
        self.client = client
        self.reader = reader
        self.entities = entities
        self.context = context
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.xml')
        self.sleep = sleep
        self.converter = converter or StorageFormatConverter(
            find_attachment_file=self.find_attachment_file, logger=self.logger
        )

        self.shelf_marker = str(get_nested(config, 'export.shelf_marker', 'home')).lower()
        self.page_delay = get_nested(config, 'migration.page_delay', 0.6)
        self.entity_delay = get_nested(config, 'migration.entity_delay', 0.1)

    @property
    def summary(self):
        return self.context.summary

    def find_attachment_file(self, page_id: str, filename: str) -> Optional[str]:
        """Path of a page's attachment by title, when the file was exported."""
        for attachment in self.entities.attachments_for(page_id):
            if attachment.title == filename:
                path = self.reader.attachment_file_path(attachment)
                if os.path.isfile(path):
                    return path
        return None

    def build_attachment_records(self) -> int:
        """
        Record every attachment whose file exists, keyed by its container page id.

        Returns:
            Number of attachments recorded
        """
        added = 0
        missing = 0
        for attachment in self.entities.attachments.values():
            if not os.path.isfile(self.reader.attachment_file_path(attachment)):
                missing += 1
                continue
            ref = AttachmentRef(name=attachment.title, href=attachment.relative_path)
            if self.context.attachments.add(attachment.container_id, ref):
                added += 1

        self.logger.info(f"Mapped {added} attachments with files ({missing} without a file on disk)")
        return added

    def select_main_root(self, roots: List[XmlPage]) -> XmlPage:
        for root in roots:
            if self.shelf_marker and self.shelf_marker in root.title.lower():
                return root
        return roots[0]

    def _descendants(self, book: XmlPage) -> List[XmlPage]:
        """Every page below a book in depth-first order; deeper levels are flattened."""
        pages = []
        pending: List[Tuple[XmlPage, int]] = [(child, 2) for child in reversed(self.entities.children_of(book.id))]
        while pending:
            page, depth = pending.pop()
            if depth > 2:
                self.logger.warning(
                    f"Page '{page.title}' is nested {depth} levels deep; flattening it into book '{book.title}'"
                )
            pages.append(page)
            pending.extend((child, depth + 1) for child in reversed(self.entities.children_of(page.id)))
        return pages

    def _html_for(self, page: XmlPage) -> str:
        return self.converter.convert(self.entities.body_for(page), page.id)

    def run(self):
        """
        Create the shelf, its books and their pages.

        Returns:
            The run's RunSummary
        """
        progress = self.context.progress
        roots = self.entities.children_of(None)
        if not roots:
            self.logger.warning("No root page found in the XML export; nothing to import")
            progress.warning('xml', "No root page found")
            return self.summary

        main = self.select_main_root(roots)
        for root in roots:
            if root is not main:
                self.logger.warning(f"Ignoring additional root page '{root.title}' ({root.id})")

        try:
            shelf = self.client.create_shelf(name=main.title)
        except Exception as e:
            self.logger.error(f"Failed to create shelf {main.title}: {str(e)}")
            self.summary.record_failed(EntityKind.SHELF, main.title, str(e))
            progress.error('shelves', f"Failed to create shelf: {main.title}")
            return self.summary
        self.context.id_mapping.add(EntityKind.SHELF, main.id, shelf['id'])
        self.summary.record_created(EntityKind.SHELF)
        self.logger.info(f"Created shelf: {main.title} (ID: {shelf['id']})")

        books = self.entities.children_of(main.id)
        book_ids = []
        progress.start('books', f"Creating {len(books)} books...", current=0, total=len(books))

        iterator = tqdm(books, desc="Creating books", unit='book') if self._should_show_progress() and books else books
        for index, book in enumerate(iterator):
            if self.context.cancelled:
                self._skip_remaining(books[index:])
                break
            if index > 0 and self.entity_delay:
                self.sleep(self.entity_delay)

            book_id = self._create_book(book)
            if book_id is not None:
                book_ids.append(book_id)
                self._create_pages(book, book_id)

            progress.progress(
                'books', f"Processed {book.title}", current=index + 1, total=len(books),
                counters=self.context.counters()
            )

        if book_ids:
            try:
                self.client.update_shelf(shelf['id'], books=book_ids)
            except Exception as e:
                self.logger.error(f"Failed to put books on shelf {main.title}: {str(e)}")
                self.summary.record_failed(EntityKind.SHELF, f"{main.title} book assignment", str(e))

        progress.complete('books', "Finished XML import", counters=self.context.counters())
        return self.summary

    def _should_show_progress(self) -> bool:
        return bool(get_nested(self.config, 'advanced.progress_bars', True))

    def _create_book(self, book: XmlPage) -> Optional[int]:
        try:
            created = self.client.create_book(name=book.title)
        except Exception as e:
            self.logger.error(f"Failed to create book {book.title}: {str(e)}")
            self.summary.record_failed(EntityKind.BOOK, book.title, str(e))
            for page in self._descendants(book):
                self.summary.record_failed(EntityKind.PAGE, page.title, f"parent book {book.title} not created")
            return None

        self.context.id_mapping.add(EntityKind.BOOK, book.id, created['id'])
        self.summary.record_created(EntityKind.BOOK)

        try:
            general = self.client.create_page(
                name=GENERAL_PAGE_NAME, html=self._html_for(book) or '<p></p>', book_id=created['id']
            )
            self.context.id_mapping.add(EntityKind.PAGE, book.id, general['id'])
        except Exception as e:
            self.logger.error(f"Failed to create general page for {book.title}: {str(e)}")
            self.summary.record_failed(EntityKind.PAGE, f"{book.title} ({GENERAL_PAGE_NAME})", str(e))

        return created['id']

    def _create_pages(self, book: XmlPage, book_id: int) -> None:
        pages = self._descendants(book)
        for index, page in enumerate(pages):
            if self.context.cancelled:
                for remaining in pages[index:]:
                    self.summary.record_skipped(EntityKind.PAGE, remaining.title)
                self.summary.cancelled = True
                return
            if index > 0 and self.page_delay:
                self.sleep(self.page_delay)
            try:
                created = self.client.create_page(
                    name=page.title, html=self._html_for(page) or '<p></p>', book_id=book_id
                )
            except Exception as e:
                self.logger.error(f"Failed to create page {page.title}: {str(e)}")
                self.summary.record_failed(EntityKind.PAGE, page.title, str(e))
                continue
            self.context.id_mapping.add(EntityKind.PAGE, page.id, created['id'])
            self.summary.record_created(EntityKind.PAGE)

    def _skip_remaining(self, books: List[XmlPage]) -> None:
        for book in books:
            self.summary.record_skipped(EntityKind.BOOK, book.title)
            for page in self._descendants(book):
                self.summary.record_skipped(EntityKind.PAGE, page.title)
        self.summary.cancelled = True
        self.logger.warning(f"Cancelled: {len(books)} books not started")
        self.context.progress.warning('books', f"Cancelled with {len(books)} books remaining")


__all__ = ['XmlImporter']
