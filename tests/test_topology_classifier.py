"""Tests for breadcrumb-based hierarchy inference."""

import unittest

import pytest

from fetchers import ClassificationPreconditionError, HtmlExportReader, TopologyClassifier
from models import Breadcrumb, ExportDocument, NodeType


def make_document(filename, hrefs, has_breadcrumbs=True):
    breadcrumbs = [Breadcrumb(label=href or '', href=href) for href in hrefs]
    return ExportDocument(filename=filename, breadcrumbs=breadcrumbs, content='', has_breadcrumbs=has_breadcrumbs)


class TestDepthRules(unittest.TestCase):
    def setUp(self):
        self.classifier = TopologyClassifier()

    def test_depth_one_and_two(self):
        """One breadcrumb is a shelf, two are a book."""
        result = self.classifier.classify([
            make_document('Home_1.html', ['index.html']),
            make_document('Book_2.html', ['index.html', 'Home_1.html']),
        ])
        self.assertEqual(result.shelves, ['Home_1.html'])
        self.assertEqual(result.books, ['Book_2.html'])

    def test_depth_three_referenced_is_chapter(self):
        result = self.classifier.classify([
            make_document('Chapter_3.html', ['index.html', 'Home_1.html', 'Book_2.html']),
            make_document('Page_4.html', ['index.html', 'Home_1.html', 'Book_2.html', 'Chapter_3.html']),
        ])
        self.assertIn('Chapter_3.html', result.chapters)
        self.assertEqual(result.chapters['Chapter_3.html'].page_filenames, ['Page_4.html'])
        self.assertEqual(result.chapters['Chapter_3.html'].book_previous_id, '2')
        self.assertEqual(result.pages_belong_to_chapter, ['Page_4.html'])
        self.assertEqual(result.pages_belong_to_book, [])

    def test_depth_three_unreferenced_is_standalone_page(self):
        result = self.classifier.classify([
            make_document('Lonely_3.html', ['index.html', 'Home_1.html', 'Book_2.html']),
        ])
        self.assertEqual(result.pages_belong_to_book, ['Lonely_3.html'])
        self.assertEqual(result.chapters, {})

    def test_chapter_decided_regardless_of_order(self):
        """A deep page seen after its chapter still makes it a chapter."""
        documents = [
            make_document('Page_4.html', ['index.html', 'Home_1.html', 'Book_2.html', 'Chapter_3.html']),
            make_document('Chapter_3.html', ['index.html', 'Home_1.html', 'Book_2.html']),
        ]
        forward = TopologyClassifier().classify(documents)
        backward = TopologyClassifier().classify(list(reversed(documents)))
        self.assertEqual(set(forward.chapters), {'Chapter_3.html'})
        self.assertEqual(set(backward.chapters), {'Chapter_3.html'})

    def test_every_file_lands_in_exactly_one_partition(self):
        documents = [
            make_document('Home_1.html', ['index.html']),
            make_document('Book_2.html', ['index.html', 'Home_1.html']),
            make_document('Chapter_3.html', ['index.html', 'Home_1.html', 'Book_2.html']),
            make_document('Page_4.html', ['index.html', 'Home_1.html', 'Book_2.html']),
            make_document('Page_5.html', ['index.html', 'Home_1.html', 'Book_2.html', 'Chapter_3.html']),
            make_document('Loose_6.html', [], has_breadcrumbs=False),
        ]
        result = self.classifier.classify(documents)
        partitions = (
            result.shelves + result.books + result.chapter_filenames
            + result.pages_belong_to_chapter + result.pages_belong_to_book + result.skipped
        )
        self.assertEqual(sorted(partitions), sorted(d.filename for d in documents))

    def test_missing_breadcrumbs_skipped(self):
        result = self.classifier.classify([make_document('Loose_6.html', [], has_breadcrumbs=False)])
        self.assertEqual(result.skipped, ['Loose_6.html'])
        self.assertEqual(result.type_of('Loose_6.html'), None)

    def test_classify_is_idempotent(self):
        documents = [
            make_document('Home_1.html', ['index.html']),
            make_document('Chapter_3.html', ['index.html', 'Home_1.html', 'Book_2.html']),
            make_document('Page_5.html', ['index.html', 'Home_1.html', 'Book_2.html', 'Chapter_3.html']),
        ]
        first = self.classifier.classify(documents)
        second = self.classifier.classify(documents)
        self.assertEqual(first.to_dict(), second.to_dict())


class TestScanPrecondition(unittest.TestCase):
    def test_resolve_before_scan_complete_raises(self):
        classifier = TopologyClassifier()
        classifier.add_document(make_document('Home_1.html', ['index.html']))
        with self.assertRaises(ClassificationPreconditionError):
            classifier.resolve()

    def test_add_after_scan_complete_raises(self):
        classifier = TopologyClassifier()
        classifier.mark_scan_complete()
        with self.assertRaises(ClassificationPreconditionError):
            classifier.add_document(make_document('Home_1.html', ['index.html']))

    def test_streaming_scan(self):
        classifier = TopologyClassifier()
        classifier.add_document(make_document('Chapter_3.html', ['index.html', 'Home_1.html', 'Book_2.html']))
        classifier.add_document(
            make_document('Page_4.html', ['index.html', 'Home_1.html', 'Book_2.html', 'Chapter_3.html'])
        )
        classifier.mark_scan_complete()
        self.assertEqual(classifier.resolve().chapter_filenames, ['Chapter_3.html'])


class TestExportOnDisk:
    """Classification of a real export directory."""

    @pytest.mark.usefixtures('sample_export')
    def test_five_document_export(self, config):
        reader = HtmlExportReader(config)
        result = TopologyClassifier().classify(reader.iter_documents())

        assert result.shelves == ['Home_1.html']
        assert result.books == ['Backups_2.html']
        assert result.chapter_filenames == ['Nightly-Jobs_3.html']
        assert result.pages_belong_to_chapter == ['Cron-Setup_5.html']
        assert result.pages_belong_to_book == ['Restore-Guide_4.html']
        assert result.type_of('Cron-Setup_5.html') == NodeType.PAGE

    def test_document_without_breadcrumbs(self, config, write_doc):
        write_doc('Orphan_7.html', 'Orphan', None)
        reader = HtmlExportReader(config)
        result = TopologyClassifier().classify(reader.iter_documents())
        assert result.skipped == ['Orphan_7.html']

    def test_reader_title_strips_space_prefix(self, config, write_doc):
        write_doc('Backups_2.html', 'Backups', [('ITDocs', 'index.html'), ('Home', 'Home_1.html')])
        reader = HtmlExportReader(config)
        assert reader.get_title('Backups_2.html') == 'Backups'
        assert reader.read_document('Backups_2.html').depth == 2
