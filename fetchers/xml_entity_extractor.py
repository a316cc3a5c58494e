"""
Object extraction for XML (``entities.xml``) exports.

The dump is a long, flat list of ``<object class="..." package="...">``
records with a fixed per-class shape. ``RegexEntityExtractor`` reads them
with patterns; anything implementing ``EntityExtractor`` can take its place.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from models import XmlAttachment, XmlBodyContent, XmlEntities, XmlPage
from .base_fetcher import BaseFetcher, ExportSetupError

logger = logging.getLogger('confluence_bookstack_migrator.fetcher.xml')

ENTITIES_FILENAME = 'entities.xml'
CURRENT_STATUS = 'current'


class EntityExtractor(ABC):
    """Turns the text of an ``entities.xml`` into typed records."""

    @abstractmethod
    def extract(self, xml_content: str) -> XmlEntities:
        """
        Extract current Page, BodyContent and Attachment objects.

        Args:
            xml_content: Full text of the XML dump

        Returns:
            XmlEntities with drafts and trashed content excluded
        """
        pass


class RegexEntityExtractor(EntityExtractor):
    """Pattern-based extractor for the flat per-object layout of the dump."""

    PAGE_OBJECT = re.compile(
        r'<object class="Page" package="com\.atlassian\.confluence\.pages">([\s\S]*?)</object>'
    )
    BODY_OBJECT = re.compile(
        r'<object class="BodyContent" package="com\.atlassian\.confluence\.core">([\s\S]*?)</object>'
    )
    ATTACHMENT_OBJECT = re.compile(
        r'<object class="Attachment" package="com\.atlassian\.confluence\.pages">([\s\S]*?)</object>'
    )

    ID = re.compile(r'<id name="id">(\d+)</id>')
    TITLE = re.compile(r'<property name="title"><!\[CDATA\[(.*?)\]\]></property>')
    STATUS = re.compile(r'<property name="contentStatus"><!\[CDATA\[(.*?)\]\]></property>')
    PAGE_BODY = re.compile(r'<element class="BodyContent"[^>]*><id name="id">(\d+)</id>')
    PAGE_PARENT = re.compile(r'<property name="parent" class="Page"[^>]*><id name="id">(\d+)</id>')
    BODY = re.compile(r'<property name="body"><!\[CDATA\[([\s\S]*?)\]\]></property>')
    BODY_CONTENT = re.compile(
        r'<property name="content" class="(?:Page|BlogPost)"[^>]*><id name="id">(\d+)</id>'
    )
    CONTAINER = re.compile(
        r'<property name="containerContent" class="(?:Page|BlogPost)"[^>]*><id name="id">(\d+)</id>'
    )
    VERSION = re.compile(r'<property name="version">(\d+)</property>')

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.fetcher.xml')

    @staticmethod
    def _group(pattern: re.Pattern, text: str) -> Optional[str]:
        match = pattern.search(text)
        return match.group(1) if match else None

    def extract(self, xml_content: str) -> XmlEntities:
        entities = XmlEntities()
        excluded = 0

        for match in self.PAGE_OBJECT.finditer(xml_content):
            block = match.group(1)
            page_id = self._group(self.ID, block)
            title = self._group(self.TITLE, block)
            if not page_id or title is None:
                continue

            status = self._group(self.STATUS, block) or CURRENT_STATUS
            if status != CURRENT_STATUS:
                excluded += 1
                continue

            entities.pages[page_id] = XmlPage(
                id=page_id,
                title=title,
                body_content_id=self._group(self.PAGE_BODY, block) or '',
                parent_id=self._group(self.PAGE_PARENT, block),
                content_status=status
            )

        for match in self.BODY_OBJECT.finditer(xml_content):
            block = match.group(1)
            body_id = self._group(self.ID, block)
            body = self._group(self.BODY, block)
            if not body_id or body is None:
                continue
            entities.body_contents[body_id] = XmlBodyContent(
                id=body_id,
                body=body,
                content_id=self._group(self.BODY_CONTENT, block) or ''
            )

        for match in self.ATTACHMENT_OBJECT.finditer(xml_content):
            block = match.group(1)
            attachment_id = self._group(self.ID, block)
            title = self._group(self.TITLE, block)
            container_id = self._group(self.CONTAINER, block)
            if not attachment_id or title is None or not container_id:
                continue

            status = self._group(self.STATUS, block) or CURRENT_STATUS
            if status != CURRENT_STATUS:
                excluded += 1
                continue

            entities.attachments[attachment_id] = XmlAttachment(
                id=attachment_id,
                title=title,
                container_id=container_id,
                version=self._group(self.VERSION, block) or '1',
                content_status=status
            )

        self.logger.info(
            f"Extracted {len(entities.pages)} current pages, {len(entities.body_contents)} body contents, "
            f"{len(entities.attachments)} current attachments ({excluded} non-current objects excluded)"
        )
        return entities


class XmlExportReader(BaseFetcher):
    """Reads the ``entities.xml`` of an XML export."""

    def __init__(
        self,
        config: Dict[str, Any],
        extractor: Optional[EntityExtractor] = None,
        logger=None
    ):
        super().__init__(config, logger or logging.getLogger('confluence_bookstack_migrator.fetcher.xml'))
        self.extractor = extractor or RegexEntityExtractor(logger=self.logger)

    @property
    def entities_path(self) -> str:
        return os.path.join(self.export_dir, ENTITIES_FILENAME)

    def validate_source(self) -> None:
        if not os.path.isdir(self.export_dir):
            raise ExportSetupError(f"Export directory not found: {self.export_dir}")
        if not os.path.isfile(self.entities_path):
            raise ExportSetupError(
                f"{ENTITIES_FILENAME} not found at {self.entities_path}. "
                f"This importer is for XML exports; use the html mode for HTML exports."
            )

    def read_entities(self) -> XmlEntities:
        self.validate_source()
        self._log_progress(f"Reading {self.entities_path}")
        with open(self.entities_path, 'r', encoding='utf-8', errors='ignore') as f:
            xml_content = f.read()
        return self.extractor.extract(xml_content)

    def attachment_file_path(self, attachment: XmlAttachment) -> str:
        return os.path.join(self.export_dir, *attachment.relative_path.split('/'))


__all__ = [
    'EntityExtractor',
    'RegexEntityExtractor',
    'XmlExportReader',
    'ENTITIES_FILENAME'
]
