"""Converts storage-format page bodies from XML exports to plain HTML."""

import html
import logging
import os
import re
from typing import Callable, Optional

from .image_embedder import to_data_uri

logger = logging.getLogger('confluence_bookstack_migrator.converters.storage')

ATTACHMENT_PLACEHOLDER = '[ATTACHMENT:{name}]'


def attachment_placeholder(name: str) -> str:
    """Href marker resolved by the link fixer once the attachment is uploaded."""
    return ATTACHMENT_PLACEHOLDER.format(name=name)


class StorageFormatConverter:
    """
    Rewrites ``ac:``/``ri:`` markup into HTML.

    - ``ac:image`` becomes an ``<img>`` with embedded data, or a
      ``[Image: name]`` paragraph when the file is missing
    - ``view-file`` and ``widget`` macros become attachment download links
    - ``ac:link`` to an attachment becomes a placeholder anchor
    - remaining structured macros are dropped, other ``ac:``/``ri:`` tags
      are unwrapped
    """

    IMAGE = re.compile(
        r'<ac:image[^>]*>[\s\S]*?<ri:attachment ri:filename="([^"]+)"[^>]*/>[\s\S]*?</ac:image>'
    )
    FILE_MACRO = re.compile(
        r'<ac:structured-macro[^>]*ac:name="(?:view-file|widget)"[^>]*>'
        r'[\s\S]*?<ri:attachment ri:filename="([^"]+)"[^>]*/>[\s\S]*?</ac:structured-macro>'
    )
    LINK_WITH_BODY = re.compile(
        r'<ac:link[^>]*>[\s\S]*?<ri:attachment ri:filename="([^"]+)"[^>]*/>[\s\S]*?'
        r'<ac:plain-text-link-body><!\[CDATA\[([^\]]*)\]\]></ac:plain-text-link-body>[\s\S]*?</ac:link>'
    )
    LINK = re.compile(
        r'<ac:link[^>]*>[\s\S]*?<ri:attachment ri:filename="([^"]+)"[^>]*/>[\s\S]*?</ac:link>'
    )
    STRUCTURED_MACRO = re.compile(r'<ac:structured-macro[^>]*>[\s\S]*?</ac:structured-macro>')
    AC_TAG = re.compile(r'</?ac:[^>]+>')
    RI_TAG = re.compile(r'</?ri:[^>]+>')

    def __init__(
        self,
        find_attachment_file: Optional[Callable[[str, str], Optional[str]]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            find_attachment_file: ``(page_id, filename) -> path`` lookup for image
                files; images are never embedded when omitted
            logger: Optional logger instance
        """
        self.find_attachment_file = find_attachment_file
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.converters.storage')

    def _image(self, page_id: str, filename: str) -> str:
        path = self.find_attachment_file(page_id, filename) if self.find_attachment_file else None
        if path and os.path.isfile(path):
            try:
                data_uri = to_data_uri(path, filename)
                return f'<img src="{data_uri}" alt="{html.escape(filename)}" />'
            except OSError as e:
                self.logger.warning(f"Could not read image {path}: {e}")
        self.logger.debug(f"Image not found for page {page_id}: {filename}")
        return f'<p>[Image: {filename}]</p>'

    @staticmethod
    def _download_link(filename: str) -> str:
        return f'<p>\U0001F4CE <a href="{attachment_placeholder(filename)}">{filename}</a></p>'

    def convert(self, storage: str, page_id: str) -> str:
        """
        Convert one storage-format body.

        Args:
            storage: Body in storage format
            page_id: Id of the page owning the body (used to find images)

        Returns:
            HTML string
        """
        if not storage:
            return ''

        result = self.IMAGE.sub(lambda m: self._image(page_id, m.group(1)), storage)
        result = self.FILE_MACRO.sub(lambda m: self._download_link(m.group(1)), result)
        result = self.LINK_WITH_BODY.sub(
            lambda m: f'<a href="{attachment_placeholder(m.group(1))}">{m.group(2) or m.group(1)}</a>',
            result
        )
        result = self.LINK.sub(
            lambda m: f'<a href="{attachment_placeholder(m.group(1))}">{m.group(1)}</a>',
            result
        )
        result = self.STRUCTURED_MACRO.sub('', result)
        result = self.AC_TAG.sub('', result)
        result = self.RI_TAG.sub('', result)
        return result


__all__ = ['StorageFormatConverter', 'attachment_placeholder', 'ATTACHMENT_PLACEHOLDER']
