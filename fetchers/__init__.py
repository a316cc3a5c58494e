"""Fetchers package for reading HTML and XML exports and inferring their topology."""

from .base_fetcher import (
    BaseFetcher,
    ClassificationPreconditionError,
    ExportSetupError,
    MigrationError
)
from .html_export_reader import HtmlExportReader
from .topology_classifier import TopologyClassifier
from .xml_entity_extractor import EntityExtractor, RegexEntityExtractor, XmlExportReader


__all__ = [
    'BaseFetcher',
    'MigrationError',
    'ExportSetupError',
    'ClassificationPreconditionError',
    'HtmlExportReader',
    'TopologyClassifier',
    'EntityExtractor',
    'RegexEntityExtractor',
    'XmlExportReader'
]
