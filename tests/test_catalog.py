import pytest

from dermo_admin.errors import NotFoundError, ValidationError
from dermo_admin.models import CarouselType, DEFAULT_COLOR
from dermo_admin.services.catalog_service import CatalogService, parse_color


@pytest.fixture
def service(backend):
    return CatalogService({
        'categories': backend.categories,
        'subcategories': backend.subcategories,
        'brands': backend.brands,
        'labels': backend.labels,
        'order_statuses': backend.order_statuses,
        'carousel_states': backend.carousel_states,
    })


def test_create_brand(service):
    brand = service.create_item('brands', {'name': ' Vichy '})
    assert brand.name == 'Vichy'
    assert 'Vichy' in [b.name for b in service.list_items('brands')]


def test_duplicate_names_are_rejected_ignoring_case_and_accents(service):
    with pytest.raises(ValidationError):
        service.create_item('brands', {'name': 'AVENE'})
    with pytest.raises(ValidationError):
        service.create_item('categories', {'name': '   '})


def test_subcategory_needs_existing_parent(service):
    with pytest.raises(ValidationError):
        service.create_item('subcategories', {'name': 'Tónicos', 'category_id': '99'})
    sub = service.create_item('subcategories', {'name': 'Tónicos', 'category_id': '1'})
    assert sub.category_id == '1'
    assert sub in service.list_subcategories('1')


def test_same_subcategory_name_allowed_under_other_category(service):
    service.create_item('subcategories', {'name': 'Limpiadores', 'category_id': '2'})
    with pytest.raises(ValidationError):
        service.create_item('subcategories', {'name': 'limpiadores', 'category_id': '1'})


def test_deleting_category_deletes_its_subcategories(service):
    service.delete_item('categories', '1')
    remaining = service.list_items('subcategories')
    assert all(s.category_id != '1' for s in remaining)
    assert len(remaining) == 4


def test_rename_keeps_id_and_checks_duplicates(service):
    renamed = service.rename_item('brands', '5', 'Eucerin Pro')
    assert renamed.id == '5'
    assert renamed.name == 'Eucerin Pro'
    with pytest.raises(ValidationError):
        service.rename_item('brands', '5', 'CeraVe')
    with pytest.raises(NotFoundError):
        service.rename_item('brands', '404', 'X')


def test_labels_and_carousel_states_take_colors(service):
    label = service.create_item('labels', {'name': 'Vegano', 'color': '22C55E'})
    assert label.color == '#22c55e'
    state = service.create_item('carousel_states', {'name': 'Hero', 'type': 'banner'})
    assert state.type == CarouselType.BANNER
    assert state.color == DEFAULT_COLOR
    with pytest.raises(ValidationError):
        service.create_item('carousel_states', {'name': 'Lateral', 'type': 'popup'})


def test_parse_color_rejects_invalid_values():
    assert parse_color('') == DEFAULT_COLOR
    with pytest.raises(ValidationError):
        parse_color('rojo')


def test_unknown_kind(service):
    with pytest.raises(NotFoundError):
        service.create_item('colores', {'name': 'x'})


def test_cancelled_order_status_is_protected(service):
    with pytest.raises(ValidationError):
        service.rename_item('order_statuses', '5', 'Anulado')
    with pytest.raises(ValidationError):
        service.delete_item('order_statuses', '5')
    assert 'Cancelado' in [s.name for s in service.list_items('order_statuses')]
    service.delete_item('order_statuses', '2')
    assert len(service.list_items('order_statuses')) == 4


def test_delete_unknown_item_raises(service):
    with pytest.raises(NotFoundError):
        service.delete_item('brands', '404')
