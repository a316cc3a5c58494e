"""Run-scoped state threaded through every migration stage."""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from config_loader import get_nested
from importers.attachment_store import AttachmentReconciler
from importers.id_mapping_tracker import IdMappingTracker
from models import EntityKind, RunSummary
from .progress import ProgressReporter

COUNTER_NAMES = {
    EntityKind.SHELF: 'shelves',
    EntityKind.BOOK: 'books',
    EntityKind.CHAPTER: 'chapters',
    EntityKind.PAGE: 'pages'
}


class CancellationToken:
    """
    Cooperative cancellation flag.

    Stages check it between items; a call already in flight always finishes.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class MigrationContext:
    """Everything one migration run reads and writes, with no shared global state."""

    config: Dict[str, Any]
    export_id: str
    id_mapping: IdMappingTracker = field(default_factory=IdMappingTracker)
    attachments: AttachmentReconciler = field(default_factory=AttachmentReconciler)
    progress: ProgressReporter = field(default_factory=ProgressReporter)
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    summary: Optional[RunSummary] = None

    def __post_init__(self):
        if self.summary is None:
            self.summary = RunSummary(export_id=self.export_id)

    @property
    def dry_run(self) -> bool:
        return bool(get_nested(self.config, 'migration.dry_run', False))

    @property
    def cancelled(self) -> bool:
        return self.cancellation.is_cancelled

    def counters(self) -> Dict[str, int]:
        """Created counts per entity kind, for progress events."""
        return {
            COUNTER_NAMES[kind]: entity.created
            for kind, entity in self.summary.entities.items()
        }


__all__ = ['CancellationToken', 'MigrationContext']
