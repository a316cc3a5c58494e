"""Inline local images as base64 data URIs so page bodies need no upload round-trip."""

import base64
import logging
import mimetypes
import os
from typing import List, Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup

logger = logging.getLogger('confluence_bookstack_migrator.converters.images')

DEFAULT_IMAGE_MIME = 'image/png'


def to_data_uri(file_path: str, filename: Optional[str] = None) -> str:
    """
    Read a file and encode it as a ``data:`` URI.

    Args:
        file_path: Path of the image on disk
        filename: Name used for MIME detection (defaults to the path)

    Returns:
        ``data:<mime>;base64,<payload>``
    """
    mime_type, _ = mimetypes.guess_type(filename or file_path)
    if not mime_type or not mime_type.startswith('image/'):
        mime_type = DEFAULT_IMAGE_MIME

    with open(file_path, 'rb') as f:
        encoded = base64.b64encode(f.read()).decode('ascii')

    return f"data:{mime_type};base64,{encoded}"


class ImageEmbedder:
    """Replaces local ``<img src>`` references with embedded data."""

    def __init__(self, base_dir: str, logger: Optional[logging.Logger] = None):
        """
        Args:
            base_dir: Directory relative image sources are resolved against
            logger: Optional logger instance
        """
        self.base_dir = base_dir
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.converters.images')

    def _local_path(self, src: str) -> Optional[str]:
        if not src or src.startswith(('data:', 'http://', 'https://', '//')):
            return None
        relative = unquote(src.split('?', 1)[0])
        path = os.path.join(self.base_dir, relative)
        return path if os.path.isfile(path) else None

    def embed(self, soup: BeautifulSoup) -> List[str]:
        """
        Embed every local image that exists on disk.

        Images whose file is missing keep their original source.

        Returns:
            The original ``src`` values that were replaced
        """
        replaced = []
        for img in soup.find_all('img'):
            src = img.get('src')
            path = self._local_path(src)
            if path is None:
                continue
            try:
                img['src'] = to_data_uri(path)
            except OSError as e:
                self.logger.warning(f"Could not read image {path}: {e}")
                continue
            replaced.append(src)

        if replaced:
            self.logger.debug(f"Embedded {len(replaced)} images")
        return replaced


__all__ = ['ImageEmbedder', 'to_data_uri']
