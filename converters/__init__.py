"""Converters package for cleaning export HTML, rewriting links and converting storage format."""

from .html_cleaner import HtmlCleaner
from .image_embedder import ImageEmbedder, to_data_uri
from .link_rewriter import LinkRewriter, make_slug
from .storage_format_converter import StorageFormatConverter, attachment_placeholder

__all__ = [
    'HtmlCleaner',
    'ImageEmbedder',
    'LinkRewriter',
    'StorageFormatConverter',
    'attachment_placeholder',
    'make_slug',
    'to_data_uri'
]
