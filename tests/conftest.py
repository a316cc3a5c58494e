"""Shared fixtures: on-disk HTML exports and an in-memory BookStack client."""

from itertools import count

import pytest
import requests

from config_loader import ConfigLoader

EXPORT_FOLDER = 'ITDocs'


def build_document(title, breadcrumbs, body='', space=EXPORT_FOLDER):
    """Render an export document the way the HTML export lays pages out."""
    if breadcrumbs is None:
        crumb_html = ''
    else:
        items = ''.join(f'<li><a href="{href}">{label}</a></li>' for label, href in breadcrumbs)
        crumb_html = f'<div id="breadcrumb-section"><ol id="breadcrumbs">{items}</ol></div>'

    return f"""<!DOCTYPE html>
<html>
<head><title>{space} : {title}</title></head>
<body>
<div id="page">
<div id="main-header">
{crumb_html}
<h1 id="title-heading" class="pagetitle"><span id="title-text">{space} : {title}</span></h1>
</div>
<div id="content" class="view"><div id="main-content" class="wiki-content group">{body}</div></div>
</div>
</body>
</html>"""


class FakeBookStackClient:
    """Records every call and hands out sequential ids."""

    def __init__(self, fail_names=None, on_create_page=None, on_create_book=None):
        self._ids = count(1)
        self.calls = []
        self.fail_names = set(fail_names or [])
        self.on_create_page = on_create_page
        self.on_create_book = on_create_book
        self.pages = {}
        self.attachments = []
        self.shelves = {}
        self.deleted = []

    def _record(self, operation, **kwargs):
        if kwargs.get('name') in self.fail_names:
            raise requests.HTTPError(f"500 Server Error: {operation} {kwargs.get('name')}")
        self.calls.append({'operation': operation, **kwargs})
        return {'id': next(self._ids), **kwargs}

    def operations(self, operation):
        return [call for call in self.calls if call['operation'] == operation]

    def create_shelf(self, name, description='', books=None):
        return self._record('create_shelf', name=name, books=list(books or []))

    def update_shelf(self, shelf_id, **kwargs):
        return self._record('update_shelf', shelf_id=shelf_id, **kwargs)

    def create_book(self, name, description=''):
        book = self._record('create_book', name=name)
        if self.on_create_book:
            self.on_create_book(name)
        return book

    def create_chapter(self, book_id, name, description=''):
        return self._record('create_chapter', name=name, book_id=book_id)

    def create_page(self, name, html, book_id=None, chapter_id=None):
        page = self._record('create_page', name=name, html=html, book_id=book_id, chapter_id=chapter_id)
        self.pages[page['id']] = {'name': name, 'html': html, 'book_id': book_id, 'chapter_id': chapter_id}
        if self.on_create_page:
            self.on_create_page(name)
        return page

    def create_attachment(self, uploaded_to, name, file_path):
        attachment = self._record('create_attachment', uploaded_to=uploaded_to, name=name, file_path=file_path)
        self.attachments.append({'id': attachment['id'], 'uploaded_to': uploaded_to, 'name': name})
        return attachment

    def list_attachments(self):
        return list(self.attachments)

    def list_pages(self):
        return [{'id': page_id, 'name': page['name']} for page_id, page in self.pages.items()]

    def get_page(self, page_id):
        return dict(self.pages[page_id], id=page_id)

    def update_page(self, page_id, **kwargs):
        self.calls.append({'operation': 'update_page', 'page_id': page_id, **kwargs})
        if 'book_id' in kwargs and 'chapter_id' not in kwargs:
            # BookStack treats a bare book_id as a move to the book root
            kwargs['chapter_id'] = None
        self.pages[page_id].update(kwargs)
        return dict(self.pages[page_id], id=page_id)

    def get_shelf(self, shelf_id):
        return self.shelves[shelf_id]

    def delete_book(self, book_id):
        self.deleted.append(('book', book_id))
        return {}

    def delete_shelf(self, shelf_id):
        self.deleted.append(('shelf', shelf_id))
        return {}


@pytest.fixture
def export_root(tmp_path):
    root = tmp_path / 'exports'
    (root / EXPORT_FOLDER).mkdir(parents=True)
    return root


@pytest.fixture
def export_dir(export_root):
    return export_root / EXPORT_FOLDER


@pytest.fixture
def config(tmp_path, export_root):
    return ConfigLoader.apply_defaults({
        'bookstack': {
            'base_url': 'https://wiki.example.com',
            'token_id': 'token-id',
            'token_secret': 'token-secret'
        },
        'export': {
            'path': str(export_root),
            'folder': EXPORT_FOLDER,
            'manifest_path': str(tmp_path / 'attachment_manifest.json')
        },
        'migration': {
            'page_delay': 0,
            'entity_delay': 0
        },
        'retry': {
            'base_delay': 0
        },
        'advanced': {
            'progress_bars': False
        }
    })


@pytest.fixture
def write_doc(export_dir):
    """Write one export document; returns its path."""
    def write(filename, title, breadcrumbs, body=''):
        path = export_dir / filename
        path.write_text(build_document(title, breadcrumbs, body), encoding='utf-8')
        return path
    return write


@pytest.fixture
def write_attachment(export_dir):
    def write(page_id, filename, content=b'data'):
        folder = export_dir / 'attachments' / str(page_id)
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / filename
        path.write_bytes(content)
        return path
    return write


SPACE = ('ITDocs', 'index.html')
SHELF = ('Home', 'Home_1.html')
BOOK = ('Backups', 'Backups_2.html')
CHAPTER = ('Nightly Jobs', 'Nightly-Jobs_3.html')


@pytest.fixture
def sample_export(write_doc, write_attachment):
    """
    Five documents covering every hierarchy level:

    Home_1 (shelf) > Backups_2 (book) > Nightly-Jobs_3 (chapter) > Cron-Setup_5 (page)
    and Restore-Guide_4, a page directly under the book.
    """
    write_doc('Home_1.html', 'Home', [SPACE], '<p>Welcome to IT</p>')
    write_doc('Backups_2.html', 'Backups', [SPACE, SHELF], '<p>All about backups</p>')
    write_doc('Nightly-Jobs_3.html', 'Nightly Jobs', [SPACE, SHELF, BOOK], '<p>Nightly jobs</p>')
    write_doc(
        'Restore-Guide_4.html',
        'Restore Guide',
        [SPACE, SHELF, BOOK],
        '<p>See <a href="Backups_2.html">backups</a> and <a href="Cron-Setup_5.html">cron</a>.</p>'
        '<p><a href="Missing_99.html">gone</a></p>'
        '<p><a href="attachments/4/10.pdf">manual.pdf</a></p>'
    )
    write_doc('Cron-Setup_5.html', 'Cron Setup', [SPACE, SHELF, BOOK, CHAPTER], '<p>crontab -e</p>')
    write_attachment(4, '10.pdf', b'%PDF-1.4')
    write_attachment(4, '11.png', b'\x89PNG')
