import io

from conftest import login
from dermo_admin.errors import RepositoryError


# ==============================================================================
# SESIÓN Y SEGURIDAD
# ==============================================================================

def test_protected_pages_redirect_to_login(client):
    for path in ('/', '/products', '/orders', '/settings'):
        response = client.get(path)
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/login')


def test_login_with_wrong_password(client):
    response, _ = login(client, password='mala')
    assert 'Correo o contraseña incorrectos' in response.get_data(as_text=True)
    assert client.get('/products').status_code == 302


def test_login_and_logout(client, token):
    assert client.get('/products').status_code == 200
    response = client.get('/logout', follow_redirects=True)
    assert 'Sesión cerrada' in response.get_data(as_text=True)
    assert client.get('/products').status_code == 302


def test_post_without_csrf_token_is_rejected(client, token, state):
    response = client.post('/products/1/delete', follow_redirects=True)
    assert 'Sesión expirada' in response.get_data(as_text=True)
    assert state.find_product('1') is not None


def test_unknown_route_renders_not_found(client, token):
    response = client.get('/no-existe')
    assert response.status_code == 404
    assert 'no existe' in response.get_data(as_text=True)


def test_security_headers(client):
    response = client.get('/login')
    assert response.headers['X-Frame-Options'] == 'DENY'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'


# ==============================================================================
# PRODUCTOS
# ==============================================================================

def test_products_list_paginates_and_searches(client, token):
    page = client.get('/products').get_data(as_text=True)
    assert 'Página 1 de 2' in page
    found = client.get('/products?q=effaclar').get_data(as_text=True)
    assert 'Effaclar Duo+ Crema' in found
    assert 'Sensibio' not in found


def test_create_product_route(client, token, state):
    response = client.post('/products/new', data={
        'csrf_token': token, 'name': 'Serum', 'price': '70', 'stock': '3',
        'track_stock': 'on', 'categories': ['Cuidado Facial'],
    })
    assert response.status_code == 302
    product = next(p for p in state.products if p.name == 'Serum')
    assert product.track_stock and product.stock == 3


def test_create_product_route_shows_validation_error(client, token, state):
    response = client.post('/products/new', data={'csrf_token': token, 'name': 'Serum', 'price': '0'})
    assert response.status_code == 400
    assert 'mayor a 0' in response.get_data(as_text=True)
    assert len(state.products) == 3


def test_duplicate_and_delete_routes(client, token, state):
    client.post('/products/1/duplicate', data={'csrf_token': token})
    assert any(p.name.endswith('(Copia)') for p in state.products)
    client.post('/products/1/delete', data={'csrf_token': token})
    assert state.find_product('1') is None


def test_bulk_update_route(client, token, state):
    response = client.post('/products/bulk-update', data={
        'csrf_token': token, 'product_ids': ['1', '2'], 'status': 'Inactivo', 'price': '',
    }, follow_redirects=True)
    assert '2 productos actualizados' in response.get_data(as_text=True)
    assert state.find_product('1').status.value == 'Inactivo'
    assert state.find_product('1').price == 185.5


def test_delete_all_requires_confirmation(client, token, state):
    client.post('/products/delete-all', data={'csrf_token': token})
    assert len(state.products) == 3
    client.post('/products/delete-all', data={'csrf_token': token, 'confirm': 'ELIMINAR'})
    assert state.products == []


def test_csv_import_route(client, token, state):
    csv_bytes = 'nombre,precio\nAceite,30\nBálsamo,45\n'.encode('utf-8')
    response = client.post('/products/import', data={
        'csrf_token': token, 'file': (io.BytesIO(csv_bytes), 'productos.csv'),
    }, content_type='multipart/form-data', follow_redirects=True)
    assert '2 productos importados' in response.get_data(as_text=True)
    assert len(state.products) == 5


def test_image_upload_and_removal(client, token, state):
    client.post('/products/3/images', data={
        'csrf_token': token, 'image': (io.BytesIO(b'png-bytes'), 'foto.png', 'image/png'),
    }, content_type='multipart/form-data')
    images = state.find_product('3').images
    assert len(images) == 2
    client.post('/products/3/images/delete', data={'csrf_token': token, 'url': images[1]})
    assert state.find_product('3').images == images[:1]


def test_hide_out_of_stock_preference(client, token, state):
    assert 'Crema Hidratante Facial' in client.get('/products?sort=name').get_data(as_text=True)
    response = client.post('/settings/toggle-hide-out-of-stock', data={'csrf_token': token})
    assert 'hide_out_of_stock=1' in ' '.join(response.headers.getlist('Set-Cookie'))
    assert state.backend.settings.get_settings().hide_out_of_stock is True
    page = client.get('/products?sort=-stock').get_data(as_text=True)
    assert 'Crema Hidratante Facial' not in page


def test_toggle_dark_mode(client, token):
    response = client.post('/settings/toggle-dark-mode', data={'csrf_token': token})
    assert 'theme=dark' in ' '.join(response.headers.getlist('Set-Cookie'))
    assert 'class="dark"' in client.get('/settings').get_data(as_text=True)


def test_available_stock_api(client, token):
    data = client.get('/api/products/1/available-stock').get_json()
    assert data == {'ok': True, 'product_id': '1', 'available': 25, 'unlimited': False}
    editing = client.get('/api/products/1/available-stock?order_id=ORD-001').get_json()
    assert editing['available'] == 27
    assert client.get('/api/products/nope/available-stock').status_code == 404


# ==============================================================================
# PEDIDOS
# ==============================================================================

def test_create_order_route_updates_stock(client, token, state):
    response = client.post('/orders/new', data={
        'csrf_token': token,
        'product_id': ['1', '2', '3'],
        'quantity': ['2', '0', ''],
        'status': 'Pendiente',
        'discount': '10',
        'customer_name': 'Ana',
    }, follow_redirects=True)
    assert 'Pedido ORD-1003 creado' in response.get_data(as_text=True)
    assert state.find_product('1').stock == 23
    order = state.orders[0]
    assert order.customer_name == 'Ana'
    assert order.total == 185.5 * 2 - 10


def test_create_order_route_reports_insufficient_stock(client, token, state):
    response = client.post('/orders/new', data={
        'csrf_token': token, 'product_id': ['2'], 'quantity': ['99'],
    })
    assert response.status_code == 400
    assert 'Stock insuficiente' in response.get_data(as_text=True)
    assert len(state.orders) == 3


def test_order_status_and_delete_routes(client, token, state):
    client.post('/orders/ORD-001/status', data={'csrf_token': token, 'status': 'Cancelado'})
    assert state.find_product('1').stock == 27
    client.post('/orders/ORD-001/delete', data={'csrf_token': token})
    assert all(o.id != 'ORD-001' for o in state.orders)
    assert state.find_product('1').stock == 27


def test_edit_order_route(client, token, state):
    assert client.get('/orders/ORD-001/edit').status_code == 200
    client.post('/orders/ORD-001/edit', data={
        'csrf_token': token, 'product_id': ['1'], 'quantity': ['4'], 'status': 'Procesando',
    })
    assert state.find_product('1').stock == 23
    assert state.find_product('2').stock == 16


def test_orders_list_filters_by_status(client, token):
    page = client.get('/orders?status=Enviado').get_data(as_text=True)
    assert 'ORD-1001' in page
    assert 'ORD-1000' not in page


# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================

def test_settings_catalog_routes(client, token, state):
    client.post('/settings/brands', data={'csrf_token': token, 'name': 'Vichy'})
    brand = next(b for b in state.catalogs['brands'] if b.name == 'Vichy')
    client.post(f'/settings/brands/{brand.id}/rename', data={'csrf_token': token, 'name': 'Vichy Labs'})
    assert any(b.name == 'Vichy Labs' for b in state.catalogs['brands'])
    client.post(f'/settings/brands/{brand.id}/delete', data={'csrf_token': token})
    assert all(b.id != brand.id for b in state.catalogs['brands'])


def test_deleting_category_from_settings_removes_subcategories(client, token, state):
    client.post('/settings/categories/1/delete', data={'csrf_token': token})
    assert all(s.category_id != '1' for s in state.catalogs['subcategories'])


def test_duplicate_catalog_item_flashes_error(client, token, state):
    response = client.post('/settings/brands', data={'csrf_token': token, 'name': 'cerave'},
                           follow_redirects=True)
    assert 'ya existe' in response.get_data(as_text=True)
    assert len(state.catalogs['brands']) == 5


def test_removing_seeded_image_keeps_cache_in_sync(client, token, state):
    url = state.find_product('1').images[0]
    response = client.post('/products/1/images/delete', data={'csrf_token': token, 'url': url},
                           follow_redirects=True)
    assert 'Imagen eliminada' in response.get_data(as_text=True)
    assert state.backend.products.get('1').images == []
    assert state.find_product('1').images == []


def _failing_list_all():
    raise RepositoryError('servicio caído')


def test_delete_all_reports_repository_error(client, token, state, monkeypatch):
    monkeypatch.setattr(state.backend.products, 'list_all', _failing_list_all)
    response = client.post('/products/delete-all', data={'csrf_token': token, 'confirm': 'ELIMINAR'},
                           follow_redirects=True)
    assert response.status_code == 200
    assert 'servicio caído' in response.get_data(as_text=True)
    assert len(state.backend.products) == 3
    assert len(state.products) == 3


def test_import_keeps_result_when_refresh_fails(client, token, state, monkeypatch):
    monkeypatch.setattr(state.backend.products, 'list_all', _failing_list_all)
    response = client.post('/products/import', data={
        'csrf_token': token, 'file': (io.BytesIO('nombre,precio\nAceite,30\n'.encode('utf-8')), 'p.csv'),
    }, content_type='multipart/form-data')
    assert response.status_code == 302
    assert len(state.backend.products) == 4

    monkeypatch.undo()
    page = client.get('/products?q=aceite').get_data(as_text=True)
    assert '1 productos importados' in page
    assert 'Aceite' in page
    assert len(state.products) == 4


def test_cancelled_status_cannot_be_deleted_from_settings(client, token, state):
    response = client.post('/settings/order_statuses/5/delete', data={'csrf_token': token},
                           follow_redirects=True)
    assert 'no se puede modificar' in response.get_data(as_text=True)
    assert any(s.name == 'Cancelado' for s in state.catalogs['order_statuses'])
