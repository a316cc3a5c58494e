"""
Migration orchestrator for coordinating the complete migration pipeline.

This module provides the central coordinator that sequences all migration phases:
Validate → Classify → Rewrite → Create → Reconcile attachments. The upload,
link fixing and shelf deletion stages run on their own, reading what the
import stage persisted.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from config_loader import ConfigLoader, get_nested
from converters import LinkRewriter
from fetchers import ExportSetupError, HtmlExportReader, TopologyClassifier, XmlExportReader
from importers import (
    AttachmentLinkFixer,
    AttachmentManifest,
    AttachmentUploader,
    BookStackClient,
    BookStackImporter,
    DryRunBookStackClient,
    ShelfRemover,
    XmlImporter
)
from logger import log_section
from models import ClassifiedExport, RewrittenDocument, RunSummary, previous_id_from_filename
from .progress import ProgressReporter
from .run_context import CancellationToken, MigrationContext

logger = logging.getLogger('confluence_bookstack_migrator.orchestrator')


class MigrationOrchestrator:
    """Central coordinator sequencing the migration stages of one export."""

    def __init__(
        self,
        config: Dict[str, Any],
        logger: Optional[logging.Logger] = None,
        client=None,
        progress: Optional[ProgressReporter] = None,
        cancellation: Optional[CancellationToken] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Configuration dictionary (defaults already applied)
            logger: Optional logger instance
            client: BookStack client to use instead of one built from config
            progress: Progress reporter shared with the caller's UI
            cancellation: Token a caller can use to stop the run between items
            sleep: Sleep function used for pacing
        """
        self.config = config
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.orchestrator')
        self.client = client
        self.progress = progress or ProgressReporter()
        self.cancellation = cancellation or CancellationToken()
        self.sleep = sleep

        self.logger.info(
            f"MigrationOrchestrator initialized with mode: {self.mode}, dry_run: {self.dry_run}"
        )

    @property
    def mode(self) -> str:
        return get_nested(self.config, 'migration.mode', 'html')

    @property
    def dry_run(self) -> bool:
        return bool(get_nested(self.config, 'migration.dry_run', False))

    @property
    def manifest(self) -> AttachmentManifest:
        return AttachmentManifest(get_nested(self.config, 'export.manifest_path', './attachment_manifest.json'))

    def cancel(self) -> None:
        """Stop the running import before its next item."""
        self.logger.warning("Cancellation requested")
        self.cancellation.cancel()

    def _validate_setup(self, require_remote: bool) -> None:
        """
        Check configuration before any remote call.

        Raises:
            ExportSetupError: If the configuration is unusable
        """
        try:
            ConfigLoader.validate(self.config, require_remote=require_remote)
        except ValueError as e:
            raise ExportSetupError(f"Invalid configuration: {e}") from e

    def _build_client(self, dry_run: bool = False):
        if self.client is not None:
            return self.client
        if dry_run:
            return DryRunBookStackClient()
        return BookStackClient.from_config(self.config)

    def _new_context(self, export_id: str) -> MigrationContext:
        return MigrationContext(
            config=self.config,
            export_id=export_id,
            progress=self.progress,
            cancellation=self.cancellation
        )

    def run(self) -> RunSummary:
        """Run the import for the configured export mode."""
        if self.mode == 'xml':
            return self.run_xml_import()
        return self.run_html_import()

    def classify(self, reader: Optional[HtmlExportReader] = None) -> Tuple[HtmlExportReader, ClassifiedExport]:
        """
        Scan an HTML export and partition its documents.

        Raises:
            ExportSetupError: If the export directory does not exist
        """
        reader = reader or HtmlExportReader(self.config)
        reader.validate_source()

        self.progress.start('classify', f"Classifying documents in {reader.export_dir}")
        classified = TopologyClassifier().classify(reader.iter_documents())
        self.progress.complete('classify', "Classification finished", counters=classified.get_statistics())
        return reader, classified

    def sort(self) -> ClassifiedExport:
        """Classification only; nothing is written anywhere."""
        self._validate_setup(require_remote=False)
        log_section("Classifying export")
        _, classified = self.classify()
        return classified

    def _rewrite(
        self,
        reader: HtmlExportReader,
        classified: ClassifiedExport,
        context: MigrationContext
    ) -> Dict[str, RewrittenDocument]:
        filenames = [node.filename for node in classified.nodes() if reader.exists(node.filename)]
        self.progress.start('rewrite', f"Rewriting links in {len(filenames)} documents", total=len(filenames))

        rewriter = LinkRewriter(reader, classified)
        documents = rewriter.rewrite_all(filenames)

        for filename, document in documents.items():
            key = previous_id_from_filename(filename) or filename
            context.attachments.add_content_refs(key, document.attachments)
            context.summary.unresolved_links.extend(document.unresolved_links)

        self.progress.complete('rewrite', "Links rewritten", counters=dict(rewriter.stats))
        return documents

    def run_html_import(self) -> RunSummary:
        """
        Migrate an HTML export.

        Raises:
            ExportSetupError: Before any remote call when config or export is unusable
        """
        self._validate_setup(require_remote=not self.dry_run)
        reader = HtmlExportReader(self.config)
        reader.validate_source()

        log_section(f"Importing HTML export {reader.export_id}")
        context = self._new_context(reader.export_id)

        reader, classified = self.classify(reader)
        documents = self._rewrite(reader, classified, context)

        log_section("Creating BookStack content")
        importer = BookStackImporter(
            self.config, self._build_client(context.dry_run), reader, classified, documents, context,
            sleep=self.sleep
        )
        summary = importer.run()

        log_section("Reconciling attachments")
        context.attachments.scan_filesystem(reader.attachments_dir)
        self._finish_attachments(context)

        summary.finished_at = datetime.now(timezone.utc).isoformat()
        return summary

    def run_xml_import(self) -> RunSummary:
        """
        Migrate an XML export.

        Raises:
            ExportSetupError: Before any remote call when config, export folder or entities.xml is missing
        """
        self._validate_setup(require_remote=not self.dry_run)
        reader = XmlExportReader(self.config)
        reader.validate_source()

        log_section(f"Importing XML export {reader.export_id}")
        context = self._new_context(reader.export_id)
        entities = reader.read_entities()

        importer = XmlImporter(
            self.config, self._build_client(context.dry_run), reader, entities, context, sleep=self.sleep
        )
        importer.build_attachment_records()
        summary = importer.run()

        log_section("Reconciling attachments")
        self._finish_attachments(context)

        summary.finished_at = datetime.now(timezone.utc).isoformat()
        return summary

    def _finish_attachments(self, context: MigrationContext) -> None:
        context.attachments.backfill(context.id_mapping)
        self.manifest.save(context.export_id, context.attachments)
        self.progress.complete(
            'attachments', "Attachment records saved", counters=context.attachments.get_statistics()
        )

    def _load_records(self, reader):
        records = self.manifest.load(reader.export_id)
        if records is None:
            raise ExportSetupError(
                f"No attachment records for {reader.export_id} in {self.manifest.path}; run the import first"
            )
        return records

    def upload_attachments(self) -> Dict[str, Any]:
        """Upload the attachments recorded for the configured export."""
        self._validate_setup(require_remote=not self.dry_run)
        reader = HtmlExportReader(self.config)
        records = self._load_records(reader)

        log_section(f"Uploading attachments for {reader.export_id}")
        uploader = AttachmentUploader(
            self.config, self._build_client(self.dry_run), reader.export_dir, sleep=self.sleep
        )
        if self.dry_run:
            queue, skipped = uploader.collect_uploads(records)
            self.logger.info(f"[DRY RUN] Would upload {len(queue)} attachments")
            return {'uploaded': 0, 'failed': 0, 'queued': len(queue), 'skipped': skipped, 'failures': []}

        self.progress.start('attachments', "Uploading attachments")
        stats = uploader.upload(records)
        self.progress.complete(
            'attachments', f"Uploaded {stats['uploaded']} attachments",
            counters={'uploaded': stats['uploaded'], 'failed': stats['failed']}
        )
        return stats

    def fix_attachment_links(self) -> Dict[str, Any]:
        """Point attachment links of every remote page at the uploaded attachments."""
        self._validate_setup(require_remote=True)
        reader = HtmlExportReader(self.config)
        records = self._load_records(reader)

        log_section(f"Fixing attachment links for {reader.export_id}")
        if self.dry_run:
            self.logger.info("[DRY RUN] Skipping attachment link fixing; it only updates existing pages")
            return {'pages_checked': 0, 'pages_updated': 0, 'links_fixed': 0, 'not_found': []}

        self.progress.start('links', "Fixing attachment links")
        stats = AttachmentLinkFixer(self.config, self._build_client(), sleep=self.sleep).run(records)
        self.progress.complete(
            'links', f"Fixed {stats['links_fixed']} attachment links in {stats['pages_updated']} pages"
        )
        return stats

    def list_shelves(self) -> List[Dict[str, Any]]:
        self._validate_setup(require_remote=True)
        return ShelfRemover(self._build_client()).list_shelves()

    def delete_shelf(self, shelf_id: int, confirm_name: str) -> Dict[str, Any]:
        """Delete a shelf and its books once ``confirm_name`` matches the shelf name."""
        self._validate_setup(require_remote=True)
        log_section(f"Deleting shelf {shelf_id}")
        return ShelfRemover(self._build_client()).delete(shelf_id, confirm_name, dry_run=self.dry_run)


__all__ = ['MigrationOrchestrator']
