"""
Attachment records and the attachment manifest.

Two producers write into the same page-keyed records:

1. the content scan done while rewriting links (attachments actually linked
   from a page body), and
2. a filesystem scan of ``attachments/<pageId>/<file>`` that picks up every
   file never linked from the body.

Records are keyed by the source page's previousId and deduplicated by the
relative href; the first writer's display name wins. Once pages exist
remotely each record receives its new page id, exactly once. The result is
persisted per export id for the independent upload stage.
"""

import json
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from models import AttachmentRecord, AttachmentRef, EntityKind
from .id_mapping_tracker import IdMappingConflictError, IdMappingTracker

logger = logging.getLogger('confluence_bookstack_migrator.importers.attachments')


class AttachmentReconciler:
    """Page-keyed attachment records merged from content and filesystem scans."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.attachments')
        self._records: Dict[str, AttachmentRecord] = {}

    def _record(self, previous_id: str) -> AttachmentRecord:
        record = self._records.get(previous_id)
        if record is None:
            record = AttachmentRecord(previous_id=previous_id)
            self._records[previous_id] = record
        return record

    def add(self, previous_id: str, ref: AttachmentRef) -> bool:
        """
        Add one attachment reference unless its href is already recorded.

        Returns:
            True if the reference was added
        """
        record = self._record(previous_id)
        if record.has_href(ref.href):
            return False
        record.attachments.append(ref)
        return True

    def add_content_refs(self, previous_id: str, refs: Iterable[AttachmentRef]) -> int:
        """Record attachments found in a page body. Returns the number added."""
        added = sum(1 for ref in refs if self.add(previous_id, ref))
        if added:
            self.logger.debug(f"Recorded {added} linked attachments for page {previous_id}")
        return added

    def scan_filesystem(self, attachments_dir: str) -> int:
        """
        Walk ``attachments/<pageId>/<file>`` and record every file not yet present.

        Nested directories below a page folder are not descended into.

        Returns:
            Number of references added
        """
        if not os.path.isdir(attachments_dir):
            self.logger.info(f"No attachments folder found at {attachments_dir}")
            return 0

        added = 0
        for page_id in sorted(os.listdir(attachments_dir)):
            page_dir = os.path.join(attachments_dir, page_id)
            if not os.path.isdir(page_dir):
                continue
            for filename in sorted(os.listdir(page_dir)):
                if not os.path.isfile(os.path.join(page_dir, filename)):
                    continue
                ref = AttachmentRef(name=filename, href=f"attachments/{page_id}/{filename}")
                if self.add(page_id, ref):
                    added += 1

        self.logger.info(f"Filesystem scan added {added} attachments not linked from content")
        return added

    def set_new_page_id(self, previous_id: str, new_page_id: int) -> None:
        """
        Assign the remote page id of a record.

        Raises:
            IdMappingConflictError: If the record already holds a different id
        """
        record = self._record(previous_id)
        if record.new_page_id is None:
            record.new_page_id = new_page_id
        elif record.new_page_id != new_page_id:
            raise IdMappingConflictError(
                f"Attachment record {previous_id} already bound to page {record.new_page_id}, "
                f"refusing {new_page_id}"
            )

    def backfill(self, id_mapping: IdMappingTracker) -> int:
        """
        Set ``new_page_id`` from the page id mapping for every record still unset.

        Records whose page was never created keep ``new_page_id`` unset.

        Returns:
            Number of records updated
        """
        updated = 0
        for previous_id, record in self._records.items():
            if record.new_page_id is not None:
                continue
            page_id = id_mapping.get(EntityKind.PAGE, previous_id)
            if page_id is not None:
                record.new_page_id = page_id
                updated += 1

        unmatched = sum(1 for record in self._records.values() if record.new_page_id is None)
        self.logger.info(
            f"Backfilled {updated} attachment records with page ids ({unmatched} without a created page)"
        )
        return updated

    def get(self, previous_id: str) -> Optional[AttachmentRecord]:
        return self._records.get(previous_id)

    @property
    def records(self) -> Dict[str, AttachmentRecord]:
        return self._records

    def total_attachments(self) -> int:
        return sum(len(record.attachments) for record in self._records.values())

    def get_statistics(self) -> Dict[str, int]:
        return {
            'pages': len(self._records),
            'attachments': self.total_attachments(),
            'pages_without_new_id': sum(
                1 for record in self._records.values() if record.new_page_id is None
            )
        }

    def to_dict(self) -> Dict[str, Any]:
        return {previous_id: record.to_dict() for previous_id, record in self._records.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], logger: Optional[logging.Logger] = None) -> 'AttachmentReconciler':
        reconciler = cls(logger=logger)
        for previous_id, record_data in data.items():
            reconciler._records[previous_id] = AttachmentRecord.from_dict(previous_id, record_data)
        return reconciler


class AttachmentManifest:
    """JSON file holding attachment records for every export id."""

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.attachments')

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Attachment manifest {self.path} must contain a JSON object")
        return data

    def export_ids(self) -> List[str]:
        return list(self._read_all().keys())

    def save(self, export_id: str, reconciler: AttachmentReconciler) -> None:
        """
        Write the records of one export, fully replacing any previous entry for it.

        Entries for other export ids are preserved.
        """
        data = self._read_all()
        data[export_id] = reconciler.to_dict()

        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

        stats = reconciler.get_statistics()
        self.logger.info(
            f"Saved attachment records for {export_id}: {stats['pages']} pages, "
            f"{stats['attachments']} files -> {self.path}"
        )

    def load(self, export_id: str) -> Optional[AttachmentReconciler]:
        """Records of one export, or None when the manifest has no entry for it."""
        data = self._read_all()
        if export_id not in data:
            return None
        return AttachmentReconciler.from_dict(data[export_id], logger=self.logger)


__all__ = ['AttachmentReconciler', 'AttachmentManifest']
