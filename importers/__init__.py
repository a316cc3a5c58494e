"""Import package for Confluence export to BookStack migration.

This package creates the classified export in BookStack through its REST API.

Package Structure:
- retry_policy: Shared backoff policy for rate-limited API calls
- bookstack_client: REST API client for BookStack operations (plus a dry-run stand-in)
- id_mapping_tracker: Tracks export previousId to BookStack ID mappings
- attachment_store: Attachment records and the per-export attachment manifest
- bookstack_importer: Creates shelves, books, chapters and pages from an HTML export
- xml_importer: Creates the page tree of an XML export
- attachment_uploader: Uploads attachments and resolves attachment links afterwards
- shelf_remover: Deletes a shelf with its books

Configuration Referenced:
- bookstack.*: BookStack API settings and authentication
- migration.*: Pacing, dry run and upload limits
- retry.*: Backoff settings for HTTP 429 responses
- advanced.*: Timeouts, SSL and progress bars
"""

from .retry_policy import RetryPolicy, is_rate_limited
from .bookstack_client import BookStackClient, DryRunBookStackClient
from .id_mapping_tracker import IdMappingTracker, IdMappingConflictError
from .attachment_store import AttachmentReconciler, AttachmentManifest
from .bookstack_importer import BookStackImporter, ParentNotFoundError
from .xml_importer import XmlImporter
from .attachment_uploader import AttachmentUploader, AttachmentLinkFixer
from .shelf_remover import ShelfRemover, ShelfNameMismatchError

__all__ = [
    'RetryPolicy',
    'is_rate_limited',
    'BookStackClient',
    'DryRunBookStackClient',
    'IdMappingTracker',
    'IdMappingConflictError',
    'AttachmentReconciler',
    'AttachmentManifest',
    'BookStackImporter',
    'ParentNotFoundError',
    'XmlImporter',
    'AttachmentUploader',
    'AttachmentLinkFixer',
    'ShelfRemover',
    'ShelfNameMismatchError'
]
