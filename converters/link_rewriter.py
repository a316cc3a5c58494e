"""
Link and attachment rewriter for HTML export documents.

Internal anchors point at sibling ``*.html`` files. Once the export is
classified, each target's hierarchy level is known and the anchor can be
rewritten to the destination URL shape:

- shelf: ``/shelves/<slug>``
- book: ``/books/<slug>``
- chapter: ``/books/<book-slug>/chapter/<slug>``
- page: ``/books/<book-slug>/page/<slug>``

Slugs come from the *target* document's title, read lazily. Attachment
anchors are left in place and collected for the owning page instead.
"""

import logging
import os
import re
from typing import Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag
from slugify import slugify

from fetchers.html_export_reader import extract_title
from models import (
    AttachmentRef,
    ClassifiedExport,
    NodeType,
    PendingLink,
    RewrittenDocument,
    previous_id_from_filename
)
from .html_cleaner import HtmlCleaner, find_anchors
from .image_embedder import ImageEmbedder

logger = logging.getLogger('confluence_bookstack_migrator.converters.link_rewriter')

SLUG_REMOVE_PATTERN = re.compile(r"[*+~.()'\"!:@]")
LOCAL_ATTACHMENT_PREFIX = 'attachments/'
SERVER_ATTACHMENT_MARKER = '/download/attachments/'
BOOK_INDEX = 2


def make_slug(title: str) -> str:
    """Destination slug for a title: ``* + ~ . ( ) ' " ! : @`` dropped, then slugified."""
    return slugify(SLUG_REMOVE_PATTERN.sub('', title or ''))


def is_internal_link(href: Optional[str]) -> bool:
    """An href pointing at another document of the export."""
    if not href:
        return False
    if href.startswith(('http://', 'https://')):
        return False
    return href.endswith('.html')


def is_attachment_link(href: Optional[str]) -> bool:
    if not href:
        return False
    return href.startswith(LOCAL_ATTACHMENT_PREFIX) or SERVER_ATTACHMENT_MARKER in href


def attachment_from_anchor(anchor: Tag, page_id: str) -> Optional[AttachmentRef]:
    """
    Normalize an attachment anchor to a local export path and display name.

    Two forms occur:

    - ``attachments/<pageId>/<attId>.<ext>``: used as is, named by link text
    - ``/download/attachments/<pageId>/<name>?...``: mapped through
      ``data-linked-resource-id`` to ``attachments/<pageId>/<attId>.<ext>``,
      named by ``data-linked-resource-default-alias``

    Returns None when the anchor cannot be mapped to a file.
    """
    href = anchor.get('href') or ''
    text = anchor.get_text().strip()

    if href.startswith(LOCAL_ATTACHMENT_PREFIX):
        name = text or os.path.basename(href.split('?', 1)[0])
        return AttachmentRef(name=name, href=href)

    if SERVER_ATTACHMENT_MARKER in href:
        attachment_id = anchor.get('data-linked-resource-id')
        if not attachment_id:
            return None
        alias = anchor.get('data-linked-resource-default-alias') or ''
        extension = '.' + alias.rsplit('.', 1)[-1] if '.' in alias else ''
        return AttachmentRef(
            name=alias or text,
            href=f"{LOCAL_ATTACHMENT_PREFIX}{page_id}/{attachment_id}{extension}"
        )

    return None


class LinkRewriter:
    """
    Rewrites internal links of classified export documents.

    The rewriter needs the classifier's partitions to know what a target
    filename will become, so it runs only after classification has resolved.
    """

    def __init__(
        self,
        reader,
        classified: ClassifiedExport,
        cleaner: Optional[HtmlCleaner] = None,
        embedder: Optional[ImageEmbedder] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the link rewriter.

        Args:
            reader: HtmlExportReader for the export being migrated
            classified: Partitions produced by the topology classifier
            cleaner: HtmlCleaner instance (created if not given)
            embedder: ImageEmbedder instance (created for the export dir if not given)
            logger: Logger instance
        """
        self.reader = reader
        self.classified = classified
        self.cleaner = cleaner or HtmlCleaner()
        self.embedder = embedder or ImageEmbedder(reader.export_dir)
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.converters.link_rewriter')

        self._link_cache: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        self.stats = {
            'documents': 0,
            'links_rewritten': 0,
            'links_unresolved': 0,
            'attachments_found': 0,
            'images_embedded': 0
        }

    def slug_for(self, filename: Optional[str]) -> Optional[str]:
        """Slug from the target document's title, None when it has no title."""
        if not filename:
            return None
        title = self.reader.get_title(filename)
        if not title:
            return None
        return make_slug(title) or None

    def resolve_link(self, href: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Compute the destination path for an internal href.

        Returns:
            ``(path, None)`` on success or ``(None, reason)`` when the target
            type or its slug cannot be determined
        """
        if href in self._link_cache:
            return self._link_cache[href]

        node_type = self.classified.type_of(href)
        path, reason = None, None

        if node_type is None:
            reason = 'could not find link type'
        elif node_type in (NodeType.SHELF, NodeType.BOOK):
            slug = self.slug_for(href)
            if slug is None:
                reason = f'no title in target {node_type.value}'
            else:
                prefix = 'shelves' if node_type == NodeType.SHELF else 'books'
                path = f"/{prefix}/{slug}"
        else:
            breadcrumbs = self.reader.get_breadcrumbs(href) or []
            book_filename = breadcrumbs[BOOK_INDEX].href if len(breadcrumbs) > BOOK_INDEX else None
            book_slug = self.slug_for(book_filename)
            slug = self.slug_for(href)
            if book_slug is None or slug is None:
                reason = f'no parent book or title for target {node_type.value}'
            else:
                path = f"/books/{book_slug}/{node_type.value}/{slug}"

        self._link_cache[href] = (path, reason)
        return path, reason

    def rewrite_soup(self, filename: str, soup: BeautifulSoup) -> RewrittenDocument:
        """
        Rewrite one parsed document in place.

        Order matters: stale attachment listings are stripped before anchors
        are scanned so only attachments referenced by the body are collected.
        """
        title = extract_title(soup, default=filename)
        page_id = previous_id_from_filename(filename)

        embedded = self.embedder.embed(soup)
        self.cleaner.clean(soup)

        attachments: List[AttachmentRef] = []
        unresolved: List[PendingLink] = []

        for anchor in find_anchors(soup):
            href = anchor.get('href')

            if is_internal_link(href):
                path, reason = self.resolve_link(href)
                if path:
                    anchor['href'] = path
                    self.stats['links_rewritten'] += 1
                else:
                    unresolved.append(PendingLink(filename, href, reason or 'unresolved'))
                    self.stats['links_unresolved'] += 1
                    self.logger.warning(f"Unresolved link in {filename}: {href} ({reason})")
                continue

            if is_attachment_link(href):
                if page_id is None:
                    self.logger.warning(
                        f"Attachment link in {filename} ignored, filename has no numeric id: {href}"
                    )
                    continue
                ref = attachment_from_anchor(anchor, page_id)
                if ref is None:
                    self.logger.debug(f"Attachment link without resource id in {filename}: {href}")
                    continue
                attachments.append(ref)

        self.stats['documents'] += 1
        self.stats['attachments_found'] += len(attachments)
        self.stats['images_embedded'] += len(embedded)

        return RewrittenDocument(
            filename=filename,
            title=title,
            html=self.cleaner.serialize_body(soup),
            attachments=attachments,
            unresolved_links=unresolved,
            embedded_images=embedded
        )

    def rewrite(self, filename: str) -> RewrittenDocument:
        """Read and rewrite one document of the export."""
        return self.rewrite_soup(filename, self.reader.read_soup(filename))

    def rewrite_all(self, filenames: Iterable[str]) -> Dict[str, RewrittenDocument]:
        """Rewrite every given document, keyed by filename."""
        results = {}
        for filename in filenames:
            results[filename] = self.rewrite(filename)

        self.logger.info(
            f"Rewrote {self.stats['links_rewritten']} links in {self.stats['documents']} documents "
            f"({self.stats['links_unresolved']} unresolved, {self.stats['attachments_found']} "
            f"attachment references, {self.stats['images_embedded']} images embedded)"
        )
        return results


__all__ = [
    'LinkRewriter',
    'make_slug',
    'is_internal_link',
    'is_attachment_link',
    'attachment_from_anchor'
]
