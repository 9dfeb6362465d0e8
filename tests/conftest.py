import re

import pytest

from dermo_admin.config import Config
from dermo_admin.main import create_app
from dermo_admin.repositories import build_memory_backend
from dermo_admin.request_logger import reset_stats


ADMIN_EMAIL = 'admin@test.local'
ADMIN_PASSWORD = 'secreto'

CSRF_RE = re.compile(r'name="csrf_token" value="([0-9a-f]+)"')


@pytest.fixture
def config():
    return Config(
        secret_key='test-secret',
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        products_per_page=2,
        testing=True,
    )


@pytest.fixture
def backend(config):
    return build_memory_backend(config)


@pytest.fixture
def app(config, backend):
    reset_stats()
    return create_app(config, backend)


@pytest.fixture
def state(app):
    return app.extensions['dermo_admin']


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def login(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
    """Inicia sesión leyendo el token CSRF de la página de login."""
    page = client.get('/login')
    assert page.status_code == 200
    match = CSRF_RE.search(page.get_data(as_text=True))
    assert match, 'no csrf token in login page'
    token = match.group(1)
    return client.post('/login', data={
        'email': email, 'password': password, 'csrf_token': token,
    }, follow_redirects=True), token


@pytest.fixture
def token(client):
    response, csrf = login(client)
    assert 'Bienvenido' in response.get_data(as_text=True)
    return csrf


# ==============================================================================
# CLIENTE SUPABASE FALSO
# ==============================================================================
# Reproduce la interfaz encadenada del cliente (table().select().eq()...
# .execute()) sobre listas de diccionarios en memoria.

class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = 'select'
        self.payload = None
        self.filters = []
        self.order_by = None
        self.max_rows = None

    def select(self, columns='*'):
        self.action = 'select'
        return self

    def insert(self, row):
        self.action, self.payload = 'insert', row
        return self

    def update(self, row):
        self.action, self.payload = 'update', row
        return self

    def delete(self):
        self.action = 'delete'
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self, row):
        return all(str(row.get(col)) == str(val) for col, val in self.filters)

    def execute(self):
        db = self.db
        if db.fail_next:
            db.fail_next = False
            from postgrest.exceptions import APIError
            raise APIError({'message': 'servicio no disponible', 'code': '503'})

        rows = db.tables.setdefault(self.table, [])
        db.calls.append((self.table, self.action, dict(self.filters)))
        if self.action == 'insert':
            row = dict(self.payload)
            db.next_id += 1
            row.setdefault('id', str(db.next_id))
            rows.append(row)
            return FakeResponse([dict(row)])
        matched = [row for row in rows if self._matches(row)]
        if self.action == 'update':
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])
        if self.action == 'delete':
            db.tables[self.table] = [row for row in rows if row not in matched]
            return FakeResponse([dict(row) for row in matched])
        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: str(r.get(column) or ''), reverse=desc)
        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        return FakeResponse([dict(row) for row in matched])


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        self.storage.files[path] = file
        return {'path': path}

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.storage.files.pop(path, None)
        return paths


class FakeStorage:
    def __init__(self):
        self.files = {}

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeUser:
    def __init__(self, email):
        self.email = email


class FakeAuthResponse:
    def __init__(self, email):
        self.user = FakeUser(email)


class FakeAuth:
    def __init__(self, users):
        self.users = users
        self.signed_out = False

    def sign_in_with_password(self, credentials):
        if self.users.get(credentials['email']) != credentials['password']:
            raise ValueError('Invalid login credentials')
        return FakeAuthResponse(credentials['email'])

    def sign_out(self):
        self.signed_out = True


class FakeSupabaseClient:
    def __init__(self, tables=None):
        self.tables = tables or {}
        self.calls = []
        self.next_id = 100
        self.fail_next = False
        self.storage = FakeStorage()
        self.auth = FakeAuth({ADMIN_EMAIL: ADMIN_PASSWORD})

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabaseClient({
        'products': [{
            'id': '10', 'product_id': 'a1', 'title': 'Gel Limpiador', 'regular_price': 80,
            'offer_price': 60, 'categories': ['Cuidado Facial'], 'subcategories': [],
            'brand': 'CeraVe', 'label': None, 'track_stock': True, 'stock': 4,
            'status': 'Activo', 'image_1': 'https://cdn.test/gel.jpg', 'image_2': None,
            'created_at': '2024-05-01T10:00:00Z',
        }],
        'orders': [],
        'order_statuses': [
            {'id': '1', 'name': 'Pendiente', 'color': '#f59e0b'},
            {'id': '5', 'name': 'Cancelado', 'color': '#ef4444'},
        ],
        'categories': [{'id': '1', 'name': 'Cuidado Facial'}],
        'subcategories': [],
        'brands': [{'id': '1', 'name': 'CeraVe'}],
        'labels': [],
        'product_carousel_states': [],
        'store_settings': [{'id': 'default', 'hide_out_of_stock': False}],
        'product_images': [],
    })
