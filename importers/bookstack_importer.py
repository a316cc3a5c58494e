"""
BookStack importer for classified HTML exports.

Creates remote entities in dependency order:

1. shelves, each with a "<title>: Home" book carrying the shelf body
2. books, each with a "_General" page carrying the book body
3. shelf/book association
4. chapters, each with a "_General" page carrying the chapter body
5. standalone pages (directly under a book)
6. chapter pages

Every item is created on its own. A failing item is recorded as not
created and the run continues; lookups of missing parents are recorded the
same way. Cancellation is checked between items.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from tqdm import tqdm

from config_loader import get_nested
from models import ClassifiedExport, EntityKind, RewrittenDocument, previous_id_from_filename

GENERAL_PAGE_NAME = '_General'
HOME_BOOK_SUFFIX = ': Home'
SHELF_HREF_MARKER = 'Home_'
BOOK_INDEX = 2
CHAPTER_INDEX = 3


class ParentNotFoundError(LookupError):
    """The remote parent of a document was never created."""
    pass


class ShelfCreationError(RuntimeError):
    """A shelf failed after its home book was already created."""
    pass


class BookStackImporter:
    """Creates the classified export in BookStack."""

    def __init__(
        self,
        config: Dict[str, Any],
        client,
        reader,
        classified: ClassifiedExport,
        documents: Dict[str, RewrittenDocument],
        context,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize BookStack importer.

        Args:
            config: Configuration dictionary
            client: BookStackClient (or DryRunBookStackClient)
            reader: HtmlExportReader for breadcrumb and title lookups
            classified: Partitions produced by the topology classifier
            documents: Rewritten documents keyed by filename
            context: MigrationContext of the current run
            logger: Optional logger instance
            sleep: Sleep function used for pacing
        """
        self.config = config
        self.client = client
        self.reader = reader
        self.classified = classified
        self.documents = documents
        self.context = context
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.bookstack')
        self.sleep = sleep

        self.page_delay = get_nested(config, 'migration.page_delay', 0.6)
        self.entity_delay = get_nested(config, 'migration.entity_delay', 0.1)

    @property
    def id_mapping(self):
        return self.context.id_mapping

    @property
    def summary(self):
        return self.context.summary

    def run(self):
        """
        Create every classified entity.

        Returns:
            The run's RunSummary
        """
        self.logger.info(f"Starting BookStack import for {self.context.export_id} (dry_run={self.context.dry_run})")

        self._run_stage('shelves', EntityKind.SHELF, self.classified.shelves, self._create_shelf, self.entity_delay)
        self._run_stage('books', EntityKind.BOOK, self.classified.books, self._create_book, self.entity_delay)
        self._assign_books_to_shelves()
        self._run_stage(
            'chapters', EntityKind.CHAPTER, self.classified.chapter_filenames, self._create_chapter, self.entity_delay
        )
        self._run_stage(
            'standalone pages', EntityKind.PAGE, self.classified.pages_belong_to_book,
            self._create_standalone_page, self.page_delay
        )
        self._run_stage(
            'chapter pages', EntityKind.PAGE, self._chapter_page_order(),
            self._create_chapter_page, self.page_delay
        )

        self._log_import_summary()
        return self.summary

    def _chapter_page_order(self) -> List[str]:
        """Chapter pages grouped by chapter, in chapter creation order."""
        ordered = []
        for entry in self.classified.chapters.values():
            ordered.extend(entry.page_filenames)
        return ordered

    def _run_stage(
        self,
        phase: str,
        kind: EntityKind,
        filenames: List[str],
        handler: Callable[[str], None],
        delay: float
    ) -> None:
        """
        Create one level of the hierarchy, one item at a time.

        Items remaining after a cancellation are recorded as skipped.
        """
        total = len(filenames)
        progress = self.context.progress
        progress.start(phase, f"Creating {total} {phase}...", current=0, total=total)

        for index, filename in enumerate(self._iterate(filenames, phase)):
            if self.context.cancelled:
                self._skip_remaining(phase, kind, filenames[index:])
                return

            if index > 0 and delay:
                self.sleep(delay)

            try:
                handler(filename)
            except ParentNotFoundError as e:
                self.logger.warning(f"Skipping {filename}: {e}")
                self.summary.record_failed(kind, filename, str(e))
                progress.warning(phase, f"Skipped {filename}: {e}")
            except Exception as e:
                self.logger.error(f"Failed to create {kind.value} {filename}: {str(e)}")
                self.summary.record_failed(kind, filename, str(e))
                progress.error(phase, f"Failed to create {kind.value}: {filename}")

            progress.progress(
                phase, f"Processed {filename}", current=index + 1, total=total,
                counters=self.context.counters()
            )

        progress.complete(phase, f"Finished {phase}", counters=self.context.counters())

    def _skip_remaining(self, phase: str, kind: EntityKind, filenames: Iterable[str]) -> None:
        skipped = list(filenames)
        for filename in skipped:
            self.summary.record_skipped(kind, filename)
        self.summary.cancelled = True
        self.logger.warning(f"Cancelled: {len(skipped)} {phase} not started")
        self.context.progress.warning(phase, f"Cancelled with {len(skipped)} {phase} remaining")

    def _iterate(self, items: List[str], desc: str):
        if self._should_show_progress() and items:
            return tqdm(items, desc=f"Creating {desc}", unit='item')
        return items

    def _should_show_progress(self) -> bool:
        """Check if progress bars should be shown."""
        return bool(get_nested(self.config, 'advanced.progress_bars', True))

    @staticmethod
    def _key(filename: str) -> str:
        return previous_id_from_filename(filename) or filename

    def _document(self, filename: str) -> RewrittenDocument:
        document = self.documents.get(filename)
        if document is None:
            raise ParentNotFoundError(f"document {filename} was not found in the export")
        return document

    def _breadcrumb_href(self, filename: str, index: int) -> Optional[str]:
        breadcrumbs = self.reader.get_breadcrumbs(filename) or []
        return breadcrumbs[index].href if len(breadcrumbs) > index else None

    def _create_general_page(self, filename: str, html: str, book_id: int = None, chapter_id: int = None) -> None:
        """Create the "_General" page holding a container's own body; failures are recorded, not raised."""
        try:
            page = self.client.create_page(
                name=GENERAL_PAGE_NAME, html=html or '<p></p>', book_id=book_id, chapter_id=chapter_id
            )
        except Exception as e:
            self.logger.error(f"Failed to create general page for {filename}: {str(e)}")
            self.summary.record_failed(EntityKind.PAGE, f"{filename} ({GENERAL_PAGE_NAME})", str(e))
            return
        self.id_mapping.add(EntityKind.PAGE, self._key(filename), page['id'])

    def _shelf_title(self, filename: str, document: RewrittenDocument) -> str:
        breadcrumbs = self.reader.get_breadcrumbs(filename) or []
        if breadcrumbs and breadcrumbs[0].label:
            return breadcrumbs[0].label
        return document.title

    def _create_shelf(self, filename: str) -> None:
        document = self._document(filename)
        title = self._shelf_title(filename, document)
        key = self._key(filename)

        self.logger.info(f"Creating shelf: {title}")
        home_book = self.client.create_book(name=f"{title}{HOME_BOOK_SUFFIX}")
        self.id_mapping.add(EntityKind.BOOK, key, home_book['id'])
        self.summary.record_created(EntityKind.BOOK)

        self._create_general_page(filename, document.html, book_id=home_book['id'])

        try:
            shelf = self.client.create_shelf(name=title, books=[home_book['id']])
        except Exception as e:
            raise ShelfCreationError(
                f"{e}; home book {home_book['id']} was created but is not on any shelf"
            ) from e
        self.id_mapping.add(EntityKind.SHELF, key, shelf['id'])
        self.id_mapping.assign_book_to_shelf(home_book['id'], shelf['id'])
        self.summary.record_created(EntityKind.SHELF)
        self.logger.info(f"Created shelf: {title} (ID: {shelf['id']})")

    def _find_parent_shelf(self, filename: str) -> Optional[int]:
        """Shelf id named by the book's breadcrumbs; the last matching crumb wins."""
        shelves = set(self.classified.shelves)
        shelf_id = None
        for crumb in self.reader.get_breadcrumbs(filename) or []:
            href = crumb.href
            if not href:
                continue
            if SHELF_HREF_MARKER in href or href in shelves:
                candidate = self.id_mapping.get(EntityKind.SHELF, previous_id_from_filename(href))
                if candidate is not None:
                    shelf_id = candidate
        return shelf_id

    def _create_book(self, filename: str) -> None:
        document = self._document(filename)
        shelf_id = self._find_parent_shelf(filename)
        if shelf_id is None:
            raise ParentNotFoundError(f"no parent shelf found for book {document.title}")

        self.logger.info(f"Creating book: {document.title}")
        book = self.client.create_book(name=document.title)
        self.id_mapping.add(EntityKind.BOOK, self._key(filename), book['id'])
        self.id_mapping.assign_book_to_shelf(book['id'], shelf_id)
        self.summary.record_created(EntityKind.BOOK)

        self._create_general_page(filename, document.html, book_id=book['id'])

    def _assign_books_to_shelves(self) -> None:
        """Put every created book on its shelf, one update per shelf; runs even after a cancellation."""
        for shelf_id, book_ids in self.id_mapping.books_by_shelf().items():
            try:
                self.client.update_shelf(shelf_id, books=book_ids)
                self.logger.debug(f"Updated shelf {shelf_id} with {len(book_ids)} books")
            except Exception as e:
                self.logger.error(f"Failed to put books on shelf {shelf_id}: {str(e)}")
                self.summary.record_failed(
                    EntityKind.SHELF, f"shelf {shelf_id} book assignment", str(e)
                )

    def _create_chapter(self, filename: str) -> None:
        entry = self.classified.chapters[filename]
        book_id = self.id_mapping.get(EntityKind.BOOK, entry.book_previous_id)
        if book_id is None:
            raise ParentNotFoundError(f"missing parent book {entry.book_previous_id}")

        document = self._document(filename)
        self.logger.info(f"Creating chapter: {document.title}")
        chapter = self.client.create_chapter(book_id=book_id, name=document.title)
        self.id_mapping.add(EntityKind.CHAPTER, self._key(filename), chapter['id'])
        self.summary.record_created(EntityKind.CHAPTER)

        self._create_general_page(filename, document.html, chapter_id=chapter['id'])

    def _create_page(self, filename: str, book_id: int = None, chapter_id: int = None) -> None:
        document = self._document(filename)
        self.logger.info(f"Creating page: {document.title}")
        page = self.client.create_page(
            name=document.title, html=document.html or '<p></p>', book_id=book_id, chapter_id=chapter_id
        )
        self.id_mapping.add(EntityKind.PAGE, self._key(filename), page['id'])
        self.summary.record_created(EntityKind.PAGE)

    def _create_standalone_page(self, filename: str) -> None:
        book_href = self._breadcrumb_href(filename, BOOK_INDEX)
        book_id = self.id_mapping.get(EntityKind.BOOK, previous_id_from_filename(book_href))
        if book_id is None:
            raise ParentNotFoundError(f"missing parent book {book_href}")
        self._create_page(filename, book_id=book_id)

    def _create_chapter_page(self, filename: str) -> None:
        chapter_href = self._breadcrumb_href(filename, CHAPTER_INDEX)
        chapter_id = self.id_mapping.get(EntityKind.CHAPTER, previous_id_from_filename(chapter_href))
        if chapter_id is None:
            raise ParentNotFoundError(f"missing parent chapter {chapter_href}")
        self._create_page(filename, chapter_id=chapter_id)

    def _log_import_summary(self) -> None:
        """Log import summary statistics."""
        self.logger.info("=" * 60)
        self.logger.info(f"BOOKSTACK IMPORT SUMMARY (Dry Run: {self.context.dry_run})")
        self.logger.info("=" * 60)
        for kind in EntityKind:
            entity = self.summary.entities[kind]
            self.logger.info(
                f"{kind.value.capitalize()}s created: {entity.created}, "
                f"not created: {len(entity.not_created)}, skipped: {len(entity.skipped)}"
            )
        if self.summary.cancelled:
            self.logger.warning("Import was cancelled before completion")
        self.logger.info("=" * 60)


__all__ = ['BookStackImporter', 'ParentNotFoundError', 'GENERAL_PAGE_NAME']
