import pytest

from dermo_admin.errors import NotFoundError, ValidationError
from dermo_admin.models import Product, ProductStatus
from dermo_admin.services.product_service import ProductService, paginate


@pytest.fixture
def service(backend):
    return ProductService(backend.products)


def test_create_product_requires_name_and_positive_price(service):
    with pytest.raises(ValidationError):
        service.create_product({'name': '  ', 'price': '10'})
    with pytest.raises(ValidationError):
        service.create_product({'name': 'Serum', 'price': '0'})
    with pytest.raises(ValidationError):
        service.create_product({'name': 'Serum', 'price': 'abc'})


@pytest.mark.parametrize('field, value', [
    ('price', 'inf'),
    ('price', 'nan'),
    ('sale_price', '1e999'),
    ('stock', 'inf'),
    ('stock', 'nan'),
])
def test_create_product_rejects_non_finite_numbers(service, field, value):
    data = {'name': 'Serum', 'price': '10', field: value}
    with pytest.raises(ValidationError):
        service.create_product(data)


def test_create_product_normalizes_form_values(service):
    product = service.create_product({
        'name': ' Serum Vitamina C ',
        'price': '150,5',
        'sale_price': '',
        'categories': ['Cuidado Facial', ''],
        'track_stock': True,
        'stock': '7',
        'status': 'inactivo',
    })
    assert product.id
    assert product.name == 'Serum Vitamina C'
    assert product.price == 150.5
    assert product.sale_price is None
    assert product.categories == ['Cuidado Facial']
    assert product.stock == 7
    assert product.status == ProductStatus.INACTIVO
    assert product.created_at is not None


def test_update_product_keeps_unsent_fields(service):
    updated = service.update_product('2', {'price': '130'})
    assert updated.price == 130.0
    assert updated.sale_price == 99.0
    assert updated.brand == 'Bioderma'


def test_duplicate_product_copies_fields_with_suffix(service):
    copy = service.duplicate_product('1')
    original = service.get_product('1')
    assert copy.id != original.id
    assert copy.name == 'Effaclar Duo+ Crema (Copia)'
    assert copy.price == original.price
    assert copy.images == original.images
    assert copy.created_at > original.created_at
    assert len(service.list_products()) == 4


def test_delete_unknown_product_raises(service):
    with pytest.raises(NotFoundError):
        service.delete_product('nope')


def test_bulk_update_only_touches_allowed_fields(service):
    result = service.bulk_update_products(['1', '2', 'missing'], {
        'status': 'Inactivo',
        'name': 'Ignorado',
    })
    assert result.succeeded == 2
    assert result.failed == 1
    assert 'missing' in result.errors[0]
    for product_id in ('1', '2'):
        product = service.get_product(product_id)
        assert product.status == ProductStatus.INACTIVO
        assert product.name != 'Ignorado'


def test_bulk_update_without_valid_fields_is_rejected(service):
    with pytest.raises(ValidationError):
        service.bulk_update_products(['1'], {'name': 'x'})


def test_delete_all_products(service):
    result = service.delete_all_products()
    assert result.succeeded == 3
    assert result.failed == 0
    assert service.list_products() == []


# ==============================================================================
# LISTADO
# ==============================================================================

def test_hide_out_of_stock_only_hides_tracked_products():
    products = [
        Product(id='a', name='A', price=1, track_stock=True, stock=0),
        Product(id='b', name='B', price=1, track_stock=False, stock=0),
        Product(id='c', name='C', price=1, track_stock=True, stock=2),
    ]
    visible = ProductService.filter_products(products, hide_out_of_stock=True)
    assert [p.id for p in visible] == ['b', 'c']
    assert len(ProductService.filter_products(products)) == 3


def test_filters_ignore_case_and_accents(service):
    products = service.list_products()
    assert [p.id for p in ProductService.filter_products(products, query='SENSIBIO')] == ['2']
    assert [p.id for p in ProductService.filter_products(products, brand='cerave')] == ['3']
    assert len(ProductService.filter_products(products, category='cuidado facial')) == 3
    assert [p.id for p in ProductService.filter_products(products, status='Agotado')] == ['3']
    assert [p.id for p in ProductService.filter_products(products, label='nuevo')] == ['2']


def test_sort_by_effective_price(service):
    products = ProductService.sort_products(service.list_products(), 'price')
    assert [p.id for p in products] == ['3', '2', '1']
    assert [p.id for p in ProductService.sort_products(products, 'newest')] == ['2', '3', '1']


def test_paginate_clamps_page_number():
    page = paginate(list(range(5)), page=9, per_page=2)
    assert page.page == 3
    assert page.items == [4]
    assert page.pages == 3
    assert page.has_prev and not page.has_next
