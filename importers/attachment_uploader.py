"""
Attachment upload and attachment link resolution.

Both stages run after the pages exist remotely and read their input from
the attachment manifest:

- AttachmentUploader sends every recorded file to the page it belongs to
- AttachmentLinkFixer rewrites ``attachments/<pageId>/...`` hrefs and
  ``[ATTACHMENT:name]`` placeholders in page bodies to ``/attachments/<id>``
"""

import logging
import os
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from tqdm import tqdm

from config_loader import get_nested
from logger import ProgressTracker
from .attachment_store import AttachmentReconciler

ATTACHMENT_PATH_PATTERN = re.compile(r'href=["\'](attachments/\d+/[^"\']+)["\']', re.IGNORECASE)
PLACEHOLDER_PATTERN = re.compile(
    r'href=["\'](?:\[|%5[Bb]|&#91;|&#x5[Bb];)ATTACHMENT:([^\]"\']+?)(?:\]|%5[Dd]|&#93;|&#x5[Dd];)["\']',
    re.IGNORECASE
)
PAGE_MARKERS = ('attachments/', 'ATTACHMENT:', '%5BATTACHMENT', '&#91;ATTACHMENT')


class AttachmentUploader:
    """Uploads the files of an attachment manifest entry."""

    def __init__(
        self,
        config: Dict[str, Any],
        client,
        export_dir: str,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the attachment uploader.

        Args:
            config: Configuration dictionary
            client: BookStackClient instance
            export_dir: Export folder the manifest hrefs are relative to
            logger: Optional logger instance
            sleep: Sleep function used for pacing
        """
        self.config = config
        self.client = client
        self.export_dir = export_dir
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.attachment_uploader')
        self.sleep = sleep

        self.max_upload_size = get_nested(config, 'migration.max_upload_size', 50 * 1024 * 1024)
        self.delay = get_nested(config, 'migration.entity_delay', 0.1)

    def _should_show_progress(self) -> bool:
        return bool(get_nested(self.config, 'advanced.progress_bars', True))

    def collect_uploads(self, reconciler: AttachmentReconciler) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """
        Build the upload queue.

        Returns:
            (queue of ``{uploaded_to, name, file_path}``, skip counters)
        """
        queue = []
        skipped = {'no_page': 0, 'missing': 0, 'too_large': 0}

        for previous_id, record in reconciler.records.items():
            if record.new_page_id is None:
                skipped['no_page'] += len(record.attachments)
                continue

            for ref in record.attachments:
                file_path = os.path.join(self.export_dir, *ref.href.split('/'))
                if not os.path.isfile(file_path):
                    self.logger.warning(f"File not found: {file_path}")
                    skipped['missing'] += 1
                    continue

                size = os.path.getsize(file_path)
                if size > self.max_upload_size:
                    self.logger.warning(
                        f"Skipping large file ({round(size / 1024 / 1024)}MB): {ref.name}"
                    )
                    skipped['too_large'] += 1
                    continue

                queue.append({'uploaded_to': record.new_page_id, 'name': ref.name, 'file_path': file_path})

        if skipped['no_page']:
            self.logger.warning(f"Skipped {skipped['no_page']} attachments of pages that were not created")
        return queue, skipped

    def upload(self, reconciler: AttachmentReconciler) -> Dict[str, Any]:
        """
        Upload every eligible attachment, one at a time.

        Returns:
            Statistics with uploaded/failed counts, skip counters and failures
        """
        queue, skipped = self.collect_uploads(reconciler)
        self.logger.info(f"Starting upload of {len(queue)} attachments...")

        stats = {'uploaded': 0, 'failed': 0, 'skipped': skipped, 'failures': []}
        items = tqdm(queue, desc="Uploading attachments", unit='file') if self._should_show_progress() and queue else queue

        with ProgressTracker(len(queue), "attachments") as tracker:
            for index, item in enumerate(items):
                if index > 0 and self.delay:
                    self.sleep(self.delay)
                try:
                    self.client.create_attachment(
                        uploaded_to=item['uploaded_to'], name=item['name'], file_path=item['file_path']
                    )
                    stats['uploaded'] += 1
                    tracker.increment(success=True)
                except Exception as e:
                    stats['failed'] += 1
                    stats['failures'].append({'name': item['name'], 'error': str(e)})
                    tracker.increment(success=False)
                    self.logger.error(f"Failed to upload {item['name']}: {str(e)}")

        self.logger.info(f"Uploaded {stats['uploaded']} attachments, {stats['failed']} failed")
        return stats


class AttachmentLinkFixer:
    """Points attachment links in page bodies at the uploaded attachments."""

    def __init__(
        self,
        config: Dict[str, Any],
        client,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.client = client
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.link_fixer')
        self.sleep = sleep
        self.delay = get_nested(config, 'retry.base_delay', 0.3)

    @staticmethod
    def build_path_map(reconciler: AttachmentReconciler) -> Dict[str, Tuple[str, Optional[int]]]:
        """Relative href -> (attachment name, new page id)."""
        path_map = {}
        for record in reconciler.records.values():
            for ref in record.attachments:
                path_map[ref.href] = (ref.name, record.new_page_id)
        return path_map

    @staticmethod
    def build_lookup(attachments: List[Dict[str, Any]]) -> Dict[str, int]:
        """``"<page id>:<lowercased name>"`` -> attachment id."""
        return {
            f"{attachment['uploaded_to']}:{attachment['name'].lower()}": attachment['id']
            for attachment in attachments
        }

    @staticmethod
    def _find_placeholder_target(filename: str, lookup: Dict[str, int], page_id: Optional[int]) -> Optional[int]:
        decoded = unquote(filename).strip()
        wanted = decoded.lower()

        if page_id is not None:
            attachment_id = lookup.get(f"{page_id}:{wanted}")
            if attachment_id is not None:
                return attachment_id

        for key, attachment_id in lookup.items():
            if key.split(':', 1)[1] == wanted:
                return attachment_id

        for key, attachment_id in lookup.items():
            if unquote(key.split(':', 1)[1]) == wanted:
                return attachment_id
        return None

    def fix_html(
        self,
        html: str,
        path_map: Dict[str, Tuple[str, Optional[int]]],
        lookup: Dict[str, int],
        page_id: Optional[int] = None
    ) -> Tuple[str, int, List[Dict[str, Any]]]:
        """
        Rewrite attachment links of one page body.

        Returns:
            (updated html, number of replacements, unmatched links)
        """
        replacements = 0
        not_found = []

        def replace_path(match):
            nonlocal replacements
            old_path = match.group(1)
            mapping = path_map.get(old_path) or path_map.get(unquote(old_path))
            if mapping is None:
                not_found.append({'path': old_path, 'reason': 'no mapping found'})
                return match.group(0)

            name, new_page_id = mapping
            attachment_id = lookup.get(f"{new_page_id}:{name.lower()}")
            if attachment_id is None:
                not_found.append({'path': old_path, 'reason': 'no attachment found in BookStack'})
                return match.group(0)

            replacements += 1
            return f'href="/attachments/{attachment_id}"'

        def replace_placeholder(match):
            nonlocal replacements
            attachment_id = self._find_placeholder_target(match.group(1), lookup, page_id)
            if attachment_id is None:
                not_found.append({'path': match.group(1), 'reason': 'placeholder not matched'})
                return match.group(0)

            replacements += 1
            return f'href="/attachments/{attachment_id}"'

        updated = ATTACHMENT_PATH_PATTERN.sub(replace_path, html)
        updated = PLACEHOLDER_PATTERN.sub(replace_placeholder, updated)
        return updated, replacements, not_found

    def run(self, reconciler: AttachmentReconciler) -> Dict[str, Any]:
        """
        Fix attachment links on every remote page.

        Returns:
            Statistics: pages checked/updated, links fixed, unmatched links
        """
        stats = {'pages_checked': 0, 'pages_updated': 0, 'links_fixed': 0, 'not_found': []}

        path_map = self.build_path_map(reconciler)
        if not path_map:
            self.logger.warning("No attachment path mappings found; nothing to fix")
            return stats
        self.logger.info(f"Built path mapping with {len(path_map)} entries")

        lookup = self.build_lookup(self.client.list_attachments())
        pages = self.client.list_pages()
        self.logger.info(f"Checking {len(pages)} pages against {len(lookup)} attachments")

        for page in pages:
            stats['pages_checked'] += 1
            try:
                details = self.client.get_page(page['id'])
                html = details.get('html') or ''
                if not any(marker in html for marker in PAGE_MARKERS):
                    continue

                updated, replacements, not_found = self.fix_html(html, path_map, lookup, page['id'])
                stats['not_found'].extend(not_found)

                if replacements and updated != html:
                    # book_id or chapter_id in the payload would move the page
                    self.client.update_page(page['id'], html=updated, name=details.get('name'))
                    stats['pages_updated'] += 1
                    stats['links_fixed'] += replacements
                    self.logger.info(f"Updated \"{page.get('name')}\": {replacements} links fixed")
                elif not_found:
                    self.logger.warning(f"\"{page.get('name')}\": {len(not_found)} links not matched")

                if self.delay:
                    self.sleep(self.delay)
            except Exception as e:
                self.logger.error(f"Error processing page \"{page.get('name')}\": {str(e)}")

        self.logger.info(
            f"Pages checked: {stats['pages_checked']}, updated: {stats['pages_updated']}, "
            f"links fixed: {stats['links_fixed']}, not matched: {len(stats['not_found'])}"
        )
        return stats


__all__ = ['AttachmentUploader', 'AttachmentLinkFixer']
