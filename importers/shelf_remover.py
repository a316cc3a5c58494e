"""Deletes a shelf and every book on it, the cleanup step after a failed run."""

import logging
from typing import Any, Dict, List, Optional


class ShelfNameMismatchError(ValueError):
    """The confirmation name does not match the shelf being deleted."""
    pass


class ShelfRemover:
    """Removes one shelf together with its books (and so their chapters and pages)."""

    def __init__(self, client, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.shelf_remover')

    def list_shelves(self) -> List[Dict[str, Any]]:
        return self.client.list_shelves()

    def delete(self, shelf_id: int, confirm_name: str, dry_run: bool = False) -> Dict[str, Any]:
        """
        Delete a shelf after checking its name.

        Args:
            shelf_id: Id of the shelf to delete
            confirm_name: Must equal the shelf's name exactly
            dry_run: Only report what would be deleted

        Returns:
            Dict with the shelf name, deleted book ids and failed book ids

        Raises:
            ShelfNameMismatchError: If ``confirm_name`` differs from the shelf name
        """
        shelf = self.client.get_shelf(shelf_id)
        name = shelf.get('name', '')
        if confirm_name != name:
            raise ShelfNameMismatchError(
                f"Shelf {shelf_id} is named '{name}', not '{confirm_name}'. Deletion cancelled."
            )

        books = shelf.get('books') or []
        result = {'shelf': name, 'deleted_books': [], 'failed_books': [], 'dry_run': dry_run}
        if dry_run:
            self.logger.info(f"[DRY RUN] Would delete shelf '{name}' with {len(books)} books")
            return result

        self.logger.warning(f"Deleting shelf '{name}' with {len(books)} books")
        for book in books:
            try:
                self.client.delete_book(book['id'])
                result['deleted_books'].append(book['id'])
                self.logger.info(f"Deleted book {book.get('name', book['id'])}")
            except Exception as e:
                result['failed_books'].append(book['id'])
                self.logger.error(f"Error deleting book {book['id']}: {str(e)}")

        self.client.delete_shelf(shelf_id)
        self.logger.info(f"Deleted shelf '{name}'")
        return result


__all__ = ['ShelfRemover', 'ShelfNameMismatchError']
