"""Abstract base fetcher interface and the migration error taxonomy."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from config_loader import get_nested


class MigrationError(Exception):
    """Base exception for migration errors."""
    pass


class ExportSetupError(MigrationError):
    """The export cannot be read; raised before any remote call is made."""
    pass


class ClassificationPreconditionError(MigrationError):
    """Classification was resolved before the full document set was scanned."""
    pass


class BaseFetcher(ABC):
    """Abstract base class for export readers."""

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.fetcher')

    @property
    def export_id(self) -> str:
        """Identifier of the export, the folder name under ``export.path``."""
        folder = get_nested(self.config, 'export.folder')
        if folder:
            return str(folder)
        return os.path.basename(os.path.normpath(get_nested(self.config, 'export.path', '.')))

    @property
    def export_dir(self) -> str:
        """Directory holding the export documents and the attachments tree."""
        root = get_nested(self.config, 'export.path', '.')
        folder = get_nested(self.config, 'export.folder')
        return os.path.join(root, folder) if folder else root

    @property
    def attachments_dir(self) -> str:
        return os.path.join(self.export_dir, 'attachments')

    @abstractmethod
    def validate_source(self) -> None:
        """
        Check that the export exists and is readable.

        Raises:
            ExportSetupError: If the export cannot be used
        """
        pass

    def _log_progress(self, message: str, level: str = 'info') -> None:
        """
        Log progress message at specified level.

        Args:
            message: Message to log
            level: Log level (debug, info, warning, error)
        """
        log_method = getattr(self.logger, level, self.logger.info)
        log_method(message)
