"""
Topology classifier for HTML exports.

HTML exports carry no explicit parent/child metadata. The only structural
signal is the breadcrumb chain rendered into each document, so the hierarchy
is inferred from its depth:

- 1 entry: shelf
- 2 entries: book
- 4 or more entries: page; breadcrumb[3] is its chapter
- 3 entries: either a chapter or a page directly under a book

A depth-3 document is a chapter only when some deeper document names it as
breadcrumb[3]. That cannot be known until every document has been seen, so
depth-3 documents are held back and resolved in a second pass.
"""

import logging
from typing import Iterable, List, Optional

from models import ChapterEntry, ClassifiedExport, ExportDocument, previous_id_from_filename
from .base_fetcher import ClassificationPreconditionError

logger = logging.getLogger('confluence_bookstack_migrator.fetcher.classifier')

CHAPTER_INDEX = 3
BOOK_INDEX = 2


class TopologyClassifier:
    """Partitions export documents into shelves, books, chapters and pages."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.fetcher.classifier')
        self.reset()

    def reset(self) -> None:
        """Discard all scanned state."""
        self._result = ClassifiedExport()
        self._deferred: List[str] = []
        self._deep_branches: List[List[Optional[str]]] = []
        self._seen: set = set()
        self._scan_complete = False
        self.stats = {
            'documents': 0,
            'with_breadcrumbs': 0,
            'without_breadcrumbs': 0,
            'deferred': 0
        }

    def add_document(self, document: ExportDocument) -> None:
        """
        Record one document during the scan pass.

        Args:
            document: Export document with its breadcrumb chain

        Raises:
            ClassificationPreconditionError: If the scan was already completed
        """
        if self._scan_complete:
            raise ClassificationPreconditionError(
                f"Cannot add {document.filename}: scan already completed, call reset() first"
            )

        if document.filename in self._seen:
            self.logger.debug(f"Ignoring duplicate document: {document.filename}")
            return
        self._seen.add(document.filename)
        self.stats['documents'] += 1

        if not document.has_breadcrumbs:
            self.stats['without_breadcrumbs'] += 1
            self._result.skipped.append(document.filename)
            self.logger.warning(f"No breadcrumbs in file, skipping: {document.filename}")
            return

        self.stats['with_breadcrumbs'] += 1
        depth = document.depth

        if depth == 1:
            self._result.shelves.append(document.filename)
        elif depth == 2:
            self._result.books.append(document.filename)
        elif depth == 3:
            self._deferred.append(document.filename)
            self.stats['deferred'] += 1
        elif depth >= 4:
            branch = [crumb.href for crumb in document.breadcrumbs]
            self._deep_branches.append(branch)
            self._result.pages_belong_to_chapter.append(document.filename)
            self._record_chapter_page(branch, document.filename)
        else:
            self._result.skipped.append(document.filename)
            self.logger.warning(f"Empty breadcrumb chain, skipping: {document.filename}")

    def _record_chapter_page(self, branch: List[Optional[str]], page_filename: str) -> None:
        chapter_filename = branch[CHAPTER_INDEX]
        if not chapter_filename:
            self.logger.warning(f"Breadcrumb[3] has no link, cannot place page: {page_filename}")
            self._result.pages_belong_to_chapter.remove(page_filename)
            self._result.skipped.append(page_filename)
            return

        entry = self._result.chapters.get(chapter_filename)
        if entry is None:
            entry = ChapterEntry(
                chapter_filename=chapter_filename,
                chapter_previous_id=previous_id_from_filename(chapter_filename),
                book_previous_id=previous_id_from_filename(branch[BOOK_INDEX])
            )
            self._result.chapters[chapter_filename] = entry
        entry.page_filenames.append(page_filename)

    def mark_scan_complete(self) -> None:
        """Declare that every document of the export has been added."""
        self._scan_complete = True

    def resolve(self) -> ClassifiedExport:
        """
        Resolve deferred depth-3 documents and return the partitions.

        Raises:
            ClassificationPreconditionError: If called before the scan completed
        """
        if not self._scan_complete:
            raise ClassificationPreconditionError(
                "Classification requires a complete scan of the export before resolution"
            )

        result = ClassifiedExport(
            shelves=list(self._result.shelves),
            books=list(self._result.books),
            chapters=dict(self._result.chapters),
            pages_belong_to_chapter=list(self._result.pages_belong_to_chapter),
            skipped=list(self._result.skipped)
        )

        referenced = {
            branch[CHAPTER_INDEX] for branch in self._deep_branches if branch[CHAPTER_INDEX]
        }
        for filename in self._deferred:
            if filename not in referenced:
                result.pages_belong_to_book.append(filename)

        for chapter_filename in result.chapters:
            if chapter_filename not in self._deferred:
                self.logger.warning(
                    f"Chapter {chapter_filename} is referenced by pages but was not found "
                    f"as a depth-3 document in the export"
                )

        self.logger.info(
            f"Classified {self.stats['documents']} files: "
            f"{len(result.shelves)} shelves, {len(result.books)} books, "
            f"{len(result.chapters)} chapters, {len(result.pages_belong_to_chapter)} chapter pages, "
            f"{len(result.pages_belong_to_book)} standalone pages, {len(result.skipped)} skipped"
        )
        return result

    def classify(self, documents: Iterable[ExportDocument]) -> ClassifiedExport:
        """
        Run both passes over a complete document set.

        Each call starts from a clean state, so classifying an unchanged
        export twice yields identical partitions.
        """
        self.reset()
        for document in documents:
            self.add_document(document)
        self.mark_scan_complete()
        return self.resolve()


__all__ = ['TopologyClassifier']
