"""Tests for link rewriting, attachment collection and body cleanup."""

import unittest

import pytest
from bs4 import BeautifulSoup

from converters import HtmlCleaner, LinkRewriter, make_slug
from converters.link_rewriter import attachment_from_anchor
from fetchers import HtmlExportReader, TopologyClassifier
from models import AttachmentRef

from conftest import BOOK, SHELF, SPACE


def rewriter_for(config):
    reader = HtmlExportReader(config)
    classified = TopologyClassifier().classify(reader.iter_documents())
    return LinkRewriter(reader, classified)


class TestSlugs(unittest.TestCase):
    def test_punctuation_removed_before_slugify(self):
        self.assertEqual(make_slug("Backups"), 'backups')
        self.assertEqual(make_slug("What's new? (v1.2)"), 'whats-new-v12')
        self.assertEqual(make_slug("user@host: setup!"), 'userhost-setup')

    def test_empty_title(self):
        self.assertEqual(make_slug(''), '')


class TestAttachmentAnchors(unittest.TestCase):
    def anchor(self, html):
        return BeautifulSoup(html, 'lxml').find('a')

    def test_local_attachment_path(self):
        ref = attachment_from_anchor(self.anchor('<a href="attachments/4/10.pdf">manual.pdf</a>'), '4')
        self.assertEqual(ref, AttachmentRef(name='manual.pdf', href='attachments/4/10.pdf'))

    def test_server_download_link_uses_resource_id(self):
        html = (
            '<a href="/download/attachments/4/Manual.pdf?version=1&amp;api=v2" '
            'data-linked-resource-id="10" data-linked-resource-default-alias="Manual.pdf">Manual</a>'
        )
        ref = attachment_from_anchor(self.anchor(html), '4')
        self.assertEqual(ref, AttachmentRef(name='Manual.pdf', href='attachments/4/10.pdf'))

    def test_server_download_link_without_resource_id(self):
        ref = attachment_from_anchor(self.anchor('<a href="/download/attachments/4/x.pdf">x</a>'), '4')
        self.assertIsNone(ref)


class TestHtmlCleaner(unittest.TestCase):
    def test_stale_sections_removed(self):
        html = """<body>
        <div id="main-content"><p>Body</p></div>
        <div class="pageSection group"><h2 id="attachments" class="pageSectionTitle">Attachments:</h2>
          <a href="attachments/4/old.pdf">old.pdf</a></div>
        <div class="plugin_attachments_upload_container">upload</div>
        <a class="download-all-link" href="/download/all_attachments?pageId=4">all</a>
        <div id="footer"><section class="footer-body">footer</section></div>
        </body>"""
        soup = BeautifulSoup(html, 'lxml')
        removed = HtmlCleaner().strip_stale_sections(soup)

        self.assertEqual(removed, 4)
        self.assertIsNone(soup.find(id='attachments'))
        self.assertEqual(soup.find_all('a', href='attachments/4/old.pdf'), [])
        self.assertIn('Body', soup.get_text())

    def test_serialize_body_inner_html(self):
        soup = BeautifulSoup('<html><body><p>x</p></body></html>', 'lxml')
        self.assertEqual(HtmlCleaner.serialize_body(soup), '<p>x</p>')


@pytest.mark.usefixtures('sample_export')
class TestLinkRewriter:
    def test_book_link_rewritten(self, config):
        document = rewriter_for(config).rewrite('Restore-Guide_4.html')
        soup = BeautifulSoup(document.html, 'lxml')
        assert soup.find('a', string='backups')['href'] == '/books/backups'

    def test_page_link_uses_book_slug(self, config):
        document = rewriter_for(config).rewrite('Restore-Guide_4.html')
        soup = BeautifulSoup(document.html, 'lxml')
        assert soup.find('a', string='cron')['href'] == '/books/backups/page/cron-setup'

    def test_chapter_link(self, config, write_doc):
        write_doc('Index_8.html', 'Index', [SPACE, SHELF, BOOK], '<a href="Nightly-Jobs_3.html">jobs</a>')
        document = rewriter_for(config).rewrite('Index_8.html')
        assert 'href="/books/backups/chapter/nightly-jobs"' in document.html

    def test_unresolved_link_left_unchanged_and_recorded(self, config, caplog):
        with caplog.at_level('WARNING'):
            document = rewriter_for(config).rewrite('Restore-Guide_4.html')

        assert 'href="Missing_99.html"' in document.html
        assert [link.href for link in document.unresolved_links] == ['Missing_99.html']
        assert document.unresolved_links[0].source_filename == 'Restore-Guide_4.html'
        assert 'Missing_99.html' in caplog.text

    def test_repeated_unresolved_link_keeps_reason(self, config, write_doc):
        write_doc('Index_8.html', 'Index', [SPACE, SHELF, BOOK], '<a href="Missing_99.html">again</a>')
        rewriter = rewriter_for(config)

        first = rewriter.rewrite('Restore-Guide_4.html')
        second = rewriter.rewrite('Index_8.html')

        assert first.unresolved_links[0].reason == 'could not find link type'
        assert second.unresolved_links[0].reason == 'could not find link type'
        assert rewriter.resolve_link('Missing_99.html') == (None, 'could not find link type')

    def test_attachment_collected_not_rewritten(self, config):
        document = rewriter_for(config).rewrite('Restore-Guide_4.html')
        assert document.attachments == [AttachmentRef(name='manual.pdf', href='attachments/4/10.pdf')]
        assert 'href="attachments/4/10.pdf"' in document.html

    def test_title_and_breadcrumbs_removed_from_body(self, config):
        document = rewriter_for(config).rewrite('Cron-Setup_5.html')
        assert document.title == 'Cron Setup'
        assert 'breadcrumbs' not in document.html
        assert 'title-heading' not in document.html
        assert 'crontab -e' in document.html

    def test_stale_attachment_listing_not_collected(self, config, write_doc):
        body = (
            '<p>Text</p>'
            '<div class="pageSection group"><h2 id="attachments">Attachments:</h2>'
            '<a href="attachments/9/1.pdf">old.pdf</a></div>'
        )
        write_doc('Notes_9.html', 'Notes', [SPACE, SHELF, BOOK], body)
        document = rewriter_for(config).rewrite('Notes_9.html')
        assert document.attachments == []
        assert 'old.pdf' not in document.html

    def test_local_image_embedded(self, config, write_doc, write_attachment):
        write_attachment(12, 'diagram.png', b'\x89PNG\r\n')
        write_doc('Pics_12.html', 'Pics', [SPACE, SHELF, BOOK], '<img src="attachments/12/diagram.png">')
        document = rewriter_for(config).rewrite('Pics_12.html')
        assert document.embedded_images == ['attachments/12/diagram.png']
        assert 'src="data:image/png;base64,' in document.html

    def test_rewrite_all_keys_by_filename(self, config):
        rewriter = rewriter_for(config)
        documents = rewriter.rewrite_all(['Home_1.html', 'Backups_2.html'])
        assert set(documents) == {'Home_1.html', 'Backups_2.html'}
        assert rewriter.stats['documents'] == 2
