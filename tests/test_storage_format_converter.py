import os
import tempfile
import unittest

from converters import StorageFormatConverter, attachment_placeholder


class TestStorageFormatConverter(unittest.TestCase):

    def setUp(self):
        self.lookups = []

        def find(page_id, filename):
            self.lookups.append((page_id, filename))
            return None

        self.converter = StorageFormatConverter(find_attachment_file=find)

    def test_missing_image_becomes_placeholder_paragraph(self):
        storage = '<ac:image ac:height="250"><ri:attachment ri:filename="arch.png" /></ac:image>'
        self.assertEqual(self.converter.convert(storage, '42'), '<p>[Image: arch.png]</p>')
        self.assertEqual(self.lookups, [('42', 'arch.png')])

    def test_existing_image_embedded(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'arch.png')
            with open(path, 'wb') as f:
                f.write(b'\x89PNG')
            converter = StorageFormatConverter(find_attachment_file=lambda page_id, name: path)
            html = converter.convert(
                '<ac:image><ri:attachment ri:filename="arch.png" /></ac:image>', '42'
            )
        self.assertTrue(html.startswith('<img src="data:image/png;base64,'))
        self.assertIn('alt="arch.png"', html)

    def test_view_file_macro_becomes_download_link(self):
        storage = (
            '<ac:structured-macro ac:name="view-file" ac:schema-version="1">'
            '<ac:parameter ac:name="name"><ri:attachment ri:filename="report.pdf" /></ac:parameter>'
            '</ac:structured-macro>'
        )
        html = self.converter.convert(storage, '42')
        self.assertIn('<a href="[ATTACHMENT:report.pdf]">report.pdf</a>', html)

    def test_attachment_link_with_body(self):
        storage = (
            '<ac:link><ri:attachment ri:filename="notes.txt" />'
            '<ac:plain-text-link-body><![CDATA[the notes]]></ac:plain-text-link-body></ac:link>'
        )
        self.assertEqual(
            self.converter.convert(storage, '42'),
            '<a href="[ATTACHMENT:notes.txt]">the notes</a>'
        )

    def test_attachment_link_without_body(self):
        storage = '<ac:link><ri:attachment ri:filename="notes.txt" /></ac:link>'
        self.assertEqual(
            self.converter.convert(storage, '42'),
            '<a href="[ATTACHMENT:notes.txt]">notes.txt</a>'
        )

    def test_other_macros_removed_and_tags_unwrapped(self):
        storage = (
            '<p>Intro</p>'
            '<ac:structured-macro ac:name="toc"><ac:parameter ac:name="x">1</ac:parameter></ac:structured-macro>'
            '<ac:rich-text-body><p>Kept</p></ac:rich-text-body>'
        )
        self.assertEqual(self.converter.convert(storage, '42'), '<p>Intro</p><p>Kept</p>')

    def test_empty_body(self):
        self.assertEqual(self.converter.convert('', '42'), '')

    def test_placeholder_format(self):
        self.assertEqual(attachment_placeholder('a b.pdf'), '[ATTACHMENT:a b.pdf]')


if __name__ == '__main__':
    unittest.main()
