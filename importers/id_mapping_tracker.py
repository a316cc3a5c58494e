"""
ID mapping tracker for export to BookStack import.

This module tracks the mapping between legacy export ids (the numeric
previousId suffix of each export filename) and the ids BookStack assigns,
separately for every entity kind. Mappings are append-only.
"""

import logging
from typing import Dict, Optional

from fetchers.base_fetcher import MigrationError
from models import EntityKind


class IdMappingConflictError(MigrationError):
    """An existing mapping was about to be overwritten with a different id."""
    pass


class IdMappingTracker:
    """Append-only ``previousId -> remote id`` table per entity kind."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize ID mapping tracker.

        Args:
            logger: Optional logger instance (defaults to module logger)
        """
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.id_mapping')

        self._mappings: Dict[EntityKind, Dict[str, int]] = {kind: {} for kind in EntityKind}

        # Book id -> shelf id, used for the shelf/book association step
        self._book_shelves: Dict[int, int] = {}

        self.logger.debug("Initialized IdMappingTracker")

    def add(self, kind: EntityKind, previous_id: str, remote_id: int) -> None:
        """
        Store a mapping.

        Re-adding the same pair is a no-op.

        Args:
            kind: Entity kind
            previous_id: Legacy id from the export
            remote_id: Id returned by BookStack

        Raises:
            IdMappingConflictError: If ``previous_id`` already maps to another id
        """
        table = self._mappings[kind]
        existing = table.get(previous_id)
        if existing is not None:
            if existing != remote_id:
                raise IdMappingConflictError(
                    f"{kind.value} {previous_id} already mapped to {existing}, refusing {remote_id}"
                )
            return

        table[previous_id] = remote_id
        self.logger.debug(f"Mapping added: {kind.value} {previous_id} -> {remote_id}")

    def get(self, kind: EntityKind, previous_id: Optional[str]) -> Optional[int]:
        """
        Get the BookStack id for a legacy id.

        Returns:
            Remote id or None if not mapped
        """
        if previous_id is None:
            return None
        return self._mappings[kind].get(previous_id)

    def exists(self, kind: EntityKind, previous_id: Optional[str]) -> bool:
        return previous_id is not None and previous_id in self._mappings[kind]

    def items(self, kind: EntityKind) -> Dict[str, int]:
        """Copy of every mapping of one kind."""
        return dict(self._mappings[kind])

    def assign_book_to_shelf(self, book_id: int, shelf_id: int) -> None:
        """Remember which shelf a created book belongs to (first assignment wins)."""
        self._book_shelves.setdefault(book_id, shelf_id)

    def books_by_shelf(self) -> Dict[int, list]:
        """Shelf id -> ordered list of book ids, in creation order."""
        grouped: Dict[int, list] = {}
        for book_id, shelf_id in self._book_shelves.items():
            grouped.setdefault(shelf_id, []).append(book_id)
        return grouped

    def get_statistics(self) -> Dict[str, int]:
        """
        Get mapping statistics.

        Returns:
            Dict with counts of mapped items by kind
        """
        return {kind.value: len(table) for kind, table in self._mappings.items()}


__all__ = ['IdMappingTracker', 'IdMappingConflictError']
