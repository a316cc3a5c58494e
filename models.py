"""Data models for the Confluence export to BookStack migration pipeline."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger('confluence_bookstack_migrator')

PREVIOUS_ID_PATTERN = re.compile(r'_(\d+)\.html$')


class NodeType(Enum):
    """Destination hierarchy level inferred for an export document."""
    SHELF = "shelf"
    BOOK = "book"
    CHAPTER = "chapter"
    PAGE = "page"


class EntityKind(Enum):
    """Remote entity kinds tracked by the id mapping and the run summary."""
    SHELF = "shelf"
    BOOK = "book"
    CHAPTER = "chapter"
    PAGE = "page"


class ExportVariant(Enum):
    """Supported export formats."""
    HTML = "html"
    XML = "xml"


def previous_id_from_filename(filename: Optional[str]) -> Optional[str]:
    """
    Extract the legacy numeric id from an export filename.

    ``Page-Title_12345.html`` -> ``"12345"``. Filenames without the
    ``_<digits>.html`` suffix yield None.
    """
    if not filename:
        return None
    match = PREVIOUS_ID_PATTERN.search(filename)
    return match.group(1) if match else None


@dataclass(frozen=True)
class Breadcrumb:
    """One entry of a document's breadcrumb chain."""

    label: str
    href: Optional[str]


@dataclass
class ExportDocument:
    """A single HTML document read from an export directory."""

    filename: str
    breadcrumbs: List[Breadcrumb]
    content: str
    has_breadcrumbs: bool = True

    @property
    def depth(self) -> int:
        """Number of breadcrumb entries."""
        return len(self.breadcrumbs)

    @property
    def previous_id(self) -> Optional[str]:
        return previous_id_from_filename(self.filename)

    def breadcrumb_href(self, index: int) -> Optional[str]:
        """Return the href at ``index`` of the chain, or None when out of range."""
        if 0 <= index < len(self.breadcrumbs):
            return self.breadcrumbs[index].href
        return None


@dataclass
class ClassifiedNode:
    """A document placed in the shelf/book/chapter/page hierarchy."""

    type: NodeType
    filename: str
    previous_id: Optional[str]
    parent_filenames: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'filename': self.filename,
            'previous_id': self.previous_id,
            'parent_filenames': list(self.parent_filenames)
        }


@dataclass
class ChapterEntry:
    """A chapter together with the pages that name it as breadcrumb[3]."""

    chapter_filename: str
    chapter_previous_id: Optional[str]
    book_previous_id: Optional[str]
    page_filenames: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chapter_filename': self.chapter_filename,
            'chapter_previous_id': self.chapter_previous_id,
            'book_previous_id': self.book_previous_id,
            'page_filenames': list(self.page_filenames)
        }


@dataclass
class ClassifiedExport:
    """Partitions produced by the topology classifier."""

    shelves: List[str] = field(default_factory=list)
    books: List[str] = field(default_factory=list)
    chapters: Dict[str, ChapterEntry] = field(default_factory=dict)
    pages_belong_to_chapter: List[str] = field(default_factory=list)
    pages_belong_to_book: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def chapter_filenames(self) -> List[str]:
        return list(self.chapters.keys())

    @property
    def all_pages(self) -> List[str]:
        return self.pages_belong_to_chapter + self.pages_belong_to_book

    def type_of(self, filename: str) -> Optional[NodeType]:
        """Resolve the hierarchy level of a filename, None when unknown."""
        if filename in self.shelves:
            return NodeType.SHELF
        if filename in self.books:
            return NodeType.BOOK
        if filename in self.chapters:
            return NodeType.CHAPTER
        if filename in self.pages_belong_to_chapter or filename in self.pages_belong_to_book:
            return NodeType.PAGE
        return None

    def nodes(self) -> List[ClassifiedNode]:
        """Flatten the partitions into ClassifiedNode records."""
        nodes = [
            ClassifiedNode(NodeType.SHELF, fn, previous_id_from_filename(fn))
            for fn in self.shelves
        ]
        nodes.extend(
            ClassifiedNode(NodeType.BOOK, fn, previous_id_from_filename(fn))
            for fn in self.books
        )
        for chapter in self.chapters.values():
            nodes.append(ClassifiedNode(
                NodeType.CHAPTER,
                chapter.chapter_filename,
                chapter.chapter_previous_id
            ))
            for page_filename in chapter.page_filenames:
                nodes.append(ClassifiedNode(
                    NodeType.PAGE,
                    page_filename,
                    previous_id_from_filename(page_filename),
                    parent_filenames=[chapter.chapter_filename]
                ))
        nodes.extend(
            ClassifiedNode(NodeType.PAGE, fn, previous_id_from_filename(fn))
            for fn in self.pages_belong_to_book
        )
        return nodes

    def get_statistics(self) -> Dict[str, int]:
        return {
            'shelves': len(self.shelves),
            'books': len(self.books),
            'chapters': len(self.chapters),
            'chapter_pages': len(self.pages_belong_to_chapter),
            'standalone_pages': len(self.pages_belong_to_book),
            'skipped': len(self.skipped)
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'shelves': list(self.shelves),
            'books': list(self.books),
            'chapters': {key: entry.to_dict() for key, entry in self.chapters.items()},
            'pages_belong_to_chapter': list(self.pages_belong_to_chapter),
            'pages_belong_to_book': list(self.pages_belong_to_book),
            'skipped': list(self.skipped)
        }


@dataclass(frozen=True)
class AttachmentRef:
    """A single attachment file referenced by a source page."""

    name: str
    href: str

    def to_dict(self) -> Dict[str, str]:
        return {'name': self.name, 'href': self.href}


@dataclass
class AttachmentRecord:
    """
    Attachments belonging to one source page, keyed by the page's previousId.

    ``new_page_id`` stays None until the page's creation call succeeds and is
    assigned exactly once afterwards.
    """

    previous_id: str
    attachments: List[AttachmentRef] = field(default_factory=list)
    new_page_id: Optional[int] = None

    def has_href(self, href: str) -> bool:
        return any(ref.href == href for ref in self.attachments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'attachments': [ref.to_dict() for ref in self.attachments],
            'new_page_id': self.new_page_id
        }

    @classmethod
    def from_dict(cls, previous_id: str, data: Dict[str, Any]) -> 'AttachmentRecord':
        return cls(
            previous_id=previous_id,
            attachments=[
                AttachmentRef(name=item.get('name', ''), href=item['href'])
                for item in data.get('attachments', [])
            ],
            new_page_id=data.get('new_page_id')
        )


@dataclass
class PendingLink:
    """An internal anchor whose target type could not be resolved."""

    source_filename: str
    href: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'source_filename': self.source_filename,
            'href': self.href,
            'reason': self.reason
        }


@dataclass
class RewrittenDocument:
    """Output of the link rewriter for one document."""

    filename: str
    title: str
    html: str
    attachments: List[AttachmentRef] = field(default_factory=list)
    unresolved_links: List[PendingLink] = field(default_factory=list)
    embedded_images: List[str] = field(default_factory=list)


@dataclass
class XmlPage:
    """A Page object extracted from an XML export."""

    id: str
    title: str
    body_content_id: str = ''
    parent_id: Optional[str] = None
    content_status: str = 'current'


@dataclass
class XmlBodyContent:
    """A BodyContent object holding a page body in storage format."""

    id: str
    body: str
    content_id: str = ''


@dataclass
class XmlAttachment:
    """An Attachment object; its file lives at ``attachments/<container>/<id>/<version>``."""

    id: str
    title: str
    container_id: str
    version: str = '1'
    content_status: str = 'current'

    @property
    def relative_path(self) -> str:
        return f"attachments/{self.container_id}/{self.id}/{self.version}"


@dataclass
class XmlEntities:
    """Every current object extracted from one ``entities.xml``."""

    pages: Dict[str, XmlPage] = field(default_factory=dict)
    body_contents: Dict[str, XmlBodyContent] = field(default_factory=dict)
    attachments: Dict[str, XmlAttachment] = field(default_factory=dict)

    def body_for(self, page: XmlPage) -> str:
        """Storage-format body of a page, empty when none was exported."""
        body = self.body_contents.get(page.body_content_id) if page.body_content_id else None
        if body is not None:
            return body.body
        for candidate in self.body_contents.values():
            if candidate.content_id == page.id:
                return candidate.body
        return ''

    def attachments_for(self, page_id: str) -> List[XmlAttachment]:
        return [att for att in self.attachments.values() if att.container_id == page_id]

    def children_of(self, parent_id: Optional[str]) -> List[XmlPage]:
        return [page for page in self.pages.values() if page.parent_id == parent_id]

    def get_statistics(self) -> Dict[str, int]:
        return {
            'pages': len(self.pages),
            'body_contents': len(self.body_contents),
            'attachments': len(self.attachments)
        }


@dataclass
class FailedItem:
    """An entity that was not created, with the reason."""

    name: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {'name': self.name, 'reason': self.reason}


@dataclass
class EntitySummary:
    """Created / not-created / skipped bookkeeping for one entity kind."""

    created: int = 0
    not_created: List[FailedItem] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'created': self.created,
            'not_created': [item.to_dict() for item in self.not_created],
            'skipped': list(self.skipped)
        }


@dataclass
class RunSummary:
    """Per-run outcome of the creation stage."""

    export_id: str
    entities: Dict[EntityKind, EntitySummary] = field(
        default_factory=lambda: {kind: EntitySummary() for kind in EntityKind}
    )
    cancelled: bool = False
    unresolved_links: List[PendingLink] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: Optional[str] = None

    def record_created(self, kind: EntityKind) -> None:
        self.entities[kind].created += 1

    def record_failed(self, kind: EntityKind, name: str, reason: str) -> None:
        self.entities[kind].not_created.append(FailedItem(name=name, reason=reason))

    def record_skipped(self, kind: EntityKind, name: str) -> None:
        self.entities[kind].skipped.append(name)

    def created(self, kind: EntityKind) -> int:
        return self.entities[kind].created

    def has_failures(self) -> bool:
        return any(summary.not_created for summary in self.entities.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'export_id': self.export_id,
            'entities': {kind.value: summary.to_dict() for kind, summary in self.entities.items()},
            'cancelled': self.cancelled,
            'unresolved_links': [link.to_dict() for link in self.unresolved_links],
            'started_at': self.started_at,
            'finished_at': self.finished_at
        }


@dataclass
class ProgressEvent:
    """Structured progress notification for any UI layer."""

    phase: str
    message: str
    current: Optional[int] = None
    total: Optional[int] = None
    counters: Dict[str, int] = field(default_factory=dict)
    level: str = 'info'

    @property
    def percent(self) -> Optional[int]:
        if self.current is None or not self.total:
            return None
        return round(self.current / self.total * 100)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'phase': self.phase,
            'message': self.message,
            'level': self.level,
            'counters': dict(self.counters)
        }
        if self.current is not None and self.total is not None:
            data['current'] = self.current
            data['total'] = self.total
            data['percent'] = self.percent
        return data


__all__ = [
    'NodeType',
    'EntityKind',
    'ExportVariant',
    'previous_id_from_filename',
    'Breadcrumb',
    'ExportDocument',
    'ClassifiedNode',
    'ChapterEntry',
    'ClassifiedExport',
    'AttachmentRef',
    'AttachmentRecord',
    'PendingLink',
    'RewrittenDocument',
    'XmlPage',
    'XmlBodyContent',
    'XmlAttachment',
    'XmlEntities',
    'FailedItem',
    'EntitySummary',
    'RunSummary',
    'ProgressEvent'
]
