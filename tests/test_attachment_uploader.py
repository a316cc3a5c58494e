"""Tests for attachment upload, attachment link fixing and shelf removal."""

import unittest

import pytest

from importers import (
    AttachmentLinkFixer,
    AttachmentReconciler,
    AttachmentUploader,
    ShelfNameMismatchError,
    ShelfRemover
)
from importers.attachment_uploader import PAGE_MARKERS
from models import AttachmentRef

from conftest import FakeBookStackClient


def reconciler_with(records):
    reconciler = AttachmentReconciler()
    for previous_id, (new_page_id, refs) in records.items():
        for name, href in refs:
            reconciler.add(previous_id, AttachmentRef(name, href))
        if new_page_id is not None:
            reconciler.set_new_page_id(previous_id, new_page_id)
    return reconciler


class TestAttachmentUploader:
    def test_skip_counters(self, config, export_dir, write_attachment):
        write_attachment(4, '10.pdf', b'small')
        write_attachment(4, 'big.bin', b'x' * 64)
        write_attachment(5, '12.txt', b'orphan')
        config['migration']['max_upload_size'] = 32

        reconciler = reconciler_with({
            '4': (9, [('manual.pdf', 'attachments/4/10.pdf'),
                      ('big.bin', 'attachments/4/big.bin'),
                      ('gone.pdf', 'attachments/4/gone.pdf')]),
            '5': (None, [('12.txt', 'attachments/5/12.txt')]),
        })
        client = FakeBookStackClient()

        stats = AttachmentUploader(config, client, str(export_dir)).upload(reconciler)

        assert stats['uploaded'] == 1
        assert stats['failed'] == 0
        assert stats['skipped'] == {'no_page': 1, 'missing': 1, 'too_large': 1}
        upload = client.operations('create_attachment')[0]
        assert (upload['uploaded_to'], upload['name']) == (9, 'manual.pdf')
        assert upload['file_path'] == str(export_dir / 'attachments' / '4' / '10.pdf')

    def test_failed_upload_recorded(self, config, export_dir, write_attachment):
        write_attachment(4, '10.pdf')
        write_attachment(4, '11.pdf')
        reconciler = reconciler_with({
            '4': (9, [('manual.pdf', 'attachments/4/10.pdf'), ('guide.pdf', 'attachments/4/11.pdf')]),
        })
        client = FakeBookStackClient(fail_names={'manual.pdf'})

        stats = AttachmentUploader(config, client, str(export_dir)).upload(reconciler)

        assert stats['uploaded'] == 1
        assert stats['failed'] == 1
        assert stats['failures'][0]['name'] == 'manual.pdf'


class TestAttachmentLinkFixer(unittest.TestCase):
    def setUp(self):
        self.fixer = AttachmentLinkFixer({'retry': {'base_delay': 0}}, client=None)
        self.lookup = AttachmentLinkFixer.build_lookup([
            {'id': 50, 'uploaded_to': 9, 'name': 'Manual.pdf'},
            {'id': 51, 'uploaded_to': 12, 'name': 'manual.pdf'},
            {'id': 52, 'uploaded_to': 12, 'name': 'my notes.txt'},
        ])

    def test_relative_path_rewritten(self):
        path_map = AttachmentLinkFixer.build_path_map(
            reconciler_with({'4': (9, [('Manual.pdf', 'attachments/4/10.pdf')])})
        )
        html, count, not_found = self.fixer.fix_html(
            '<a href="attachments/4/10.pdf">m</a><a href="attachments/4/77.pdf">x</a>', path_map, self.lookup
        )
        self.assertEqual(html, '<a href="/attachments/50">m</a><a href="attachments/4/77.pdf">x</a>')
        self.assertEqual(count, 1)
        self.assertEqual(not_found, [{'path': 'attachments/4/77.pdf', 'reason': 'no mapping found'}])

    def test_placeholder_forms(self):
        html = (
            '<a href="[ATTACHMENT:my notes.txt]">a</a>'
            '<a href="%5BATTACHMENT:my%20notes.txt%5D">b</a>'
            '<a href="&#91;ATTACHMENT:my notes.txt&#93;">c</a>'
        )
        updated, count, not_found = self.fixer.fix_html(html, {}, self.lookup)
        self.assertEqual(count, 3)
        self.assertEqual(updated.count('href="/attachments/52"'), 3)
        self.assertEqual(not_found, [])

    def test_placeholder_prefers_current_page(self):
        updated, _, _ = self.fixer.fix_html('<a href="[ATTACHMENT:manual.pdf]">m</a>', {}, self.lookup, page_id=12)
        self.assertIn('href="/attachments/51"', updated)

    def test_unmatched_placeholder_left_alone(self):
        html = '<a href="[ATTACHMENT:nothing.zip]">n</a>'
        updated, count, not_found = self.fixer.fix_html(html, {}, self.lookup)
        self.assertEqual((updated, count), (html, 0))
        self.assertEqual(not_found[0]['reason'], 'placeholder not matched')


class TestLinkFixerRun:
    def test_updates_only_pages_with_markers(self, config):
        client = FakeBookStackClient()
        plain = client.create_page('Plain', '<p>nothing</p>', book_id=1)
        linked = client.create_page('Linked', '<a href="[ATTACHMENT:a.pdf]">a</a>', book_id=1)
        client.create_attachment(linked['id'], 'a.pdf', '/tmp/a.pdf')
        reconciler = reconciler_with({'4': (linked['id'], [('a.pdf', 'attachments/4/1.pdf')])})

        stats = AttachmentLinkFixer(config, client).run(reconciler)

        assert stats == {'pages_checked': 2, 'pages_updated': 1, 'links_fixed': 1, 'not_found': []}
        assert client.pages[linked['id']]['html'] == '<a href="/attachments/3">a</a>'
        assert client.pages[plain['id']]['html'] == '<p>nothing</p>'

    def test_chapter_page_stays_in_its_chapter(self, config):
        client = FakeBookStackClient()
        page = client.create_page('Cron Setup', '<a href="attachments/5/12.txt">c</a>', book_id=4, chapter_id=7)
        client.create_attachment(page['id'], 'crontab.txt', '/tmp/crontab.txt')
        reconciler = reconciler_with({'5': (page['id'], [('crontab.txt', 'attachments/5/12.txt')])})

        stats = AttachmentLinkFixer(config, client).run(reconciler)

        assert stats['pages_updated'] == 1
        update = client.operations('update_page')[0]
        assert 'book_id' not in update
        assert 'chapter_id' not in update
        assert client.pages[page['id']]['chapter_id'] == 7
        assert client.pages[page['id']]['html'] == '<a href="/attachments/2">c</a>'

    def test_nothing_recorded(self, config):
        client = FakeBookStackClient()
        stats = AttachmentLinkFixer(config, client).run(AttachmentReconciler())
        assert stats['pages_checked'] == 0
        assert client.calls == []


class TestShelfRemover(unittest.TestCase):
    def setUp(self):
        self.client = FakeBookStackClient()
        self.client.shelves[3] = {'id': 3, 'name': 'ITDocs', 'books': [{'id': 1, 'name': 'ITDocs: Home'},
                                                                        {'id': 4, 'name': 'Backups'}]}
        self.remover = ShelfRemover(self.client)

    def test_name_mismatch_deletes_nothing(self):
        with self.assertRaises(ShelfNameMismatchError):
            self.remover.delete(3, 'itdocs')
        self.assertEqual(self.client.deleted, [])

    def test_dry_run(self):
        result = self.remover.delete(3, 'ITDocs', dry_run=True)
        self.assertTrue(result['dry_run'])
        self.assertEqual(self.client.deleted, [])

    def test_books_deleted_before_shelf(self):
        result = self.remover.delete(3, 'ITDocs')
        self.assertEqual(self.client.deleted, [('book', 1), ('book', 4), ('shelf', 3)])
        self.assertEqual(result['deleted_books'], [1, 4])
        self.assertEqual(result['failed_books'], [])


@pytest.mark.parametrize('href', ['attachments/4/10.pdf', '[ATTACHMENT:x]'])
def test_page_markers_detected(href):
    assert any(marker in f'<a href="{href}">' for marker in PAGE_MARKERS)
