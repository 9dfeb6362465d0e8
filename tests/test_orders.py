import pytest

from dermo_admin.errors import InsufficientStockError, NotFoundError, ValidationError
from dermo_admin.models import Order, OrderItem, Product
from dermo_admin.services.order_service import (
    OrderService,
    available_stock,
    calculate_totals,
    status_holds_stock,
)


@pytest.fixture
def service(backend):
    return OrderService(backend.orders, backend.products, backend.order_statuses)


def stock_of(backend, product_id):
    return backend.products.get(product_id).stock


# ==============================================================================
# TOTALES
# ==============================================================================

def test_totals_apply_sale_price_and_manual_discount():
    products = {
        'a': Product(id='a', name='A', price=120.0, sale_price=99.0),
        'b': Product(id='b', name='B', price=50.0),
    }
    items = [
        OrderItem(product_id='a', name='A', quantity=2, price=120.0),
        OrderItem(product_id='b', name='B', quantity=3, price=50.0),
    ]
    totals = calculate_totals(items, products, discount=10)
    assert totals.subtotal == 390.0
    assert totals.product_discounts == 42.0
    assert totals.discount == 10.0
    assert totals.total == 338.0


def test_sale_discount_uses_current_regular_price():
    products = {'a': Product(id='a', name='A', price=130.0, sale_price=99.0)}
    items = [OrderItem(product_id='a', name='A', quantity=1, price=120.0)]
    totals = calculate_totals(items, products)
    assert totals.subtotal == 120.0
    assert totals.product_discounts == 31.0
    assert totals.total == 89.0


def test_manual_discount_can_make_total_negative():
    products = {'b': Product(id='b', name='B', price=50.0)}
    items = [OrderItem(product_id='b', name='B', quantity=1, price=50.0)]
    assert calculate_totals(items, products, discount=80).total == -30.0


def test_only_cancelled_releases_stock():
    assert not status_holds_stock('Cancelado')
    for name in ('Pendiente', 'Procesando', 'Enviado', 'Entregado', 'Otro'):
        assert status_holds_stock(name)


def test_available_stock_counts_units_held_by_the_same_order():
    product = Product(id='p', name='P', price=10, track_stock=True, stock=2)
    order = Order(id='o', order_number='ORD-1', status='Pendiente',
                  items=[OrderItem(product_id='p', name='P', quantity=3, price=10)])
    assert available_stock(product) == 2
    assert available_stock(product, order) == 5
    cancelled = order.copy(status='Cancelado')
    assert available_stock(product, cancelled) == 2


def test_available_stock_is_unlimited_without_tracking():
    product = Product(id='p', name='P', price=10, track_stock=False, stock=0)
    assert available_stock(product) is None


# ==============================================================================
# ALTA
# ==============================================================================

def test_create_order_deducts_stock_and_numbers_sequentially(service, backend):
    order = service.create_order(
        [{'product_id': '1', 'quantity': 3}, {'product_id': '2', 'quantity': 2}],
        status_name='Pendiente',
        discount='5',
    )
    assert order.order_number == 'ORD-1003'
    assert order.status_id == '1'
    assert order.subtotal == 185.5 * 3 + 120.0 * 2
    assert order.product_discounts == 42.0
    assert order.total == order.subtotal - order.product_discounts - order.discount
    assert order.customer_name == 'Cliente Administrador'
    assert stock_of(backend, '1') == 22
    assert stock_of(backend, '2') == 13


def test_create_cancelled_order_keeps_stock(service, backend):
    service.create_order([{'product_id': '1', 'quantity': 30}], status_name='Cancelado')
    assert stock_of(backend, '1') == 25


def test_create_order_rejects_quantity_above_stock(service, backend):
    with pytest.raises(InsufficientStockError) as exc_info:
        service.create_order([{'product_id': '2', 'quantity': 16}])
    assert exc_info.value.available == 15
    assert 'Disponible: 15' in str(exc_info.value)
    assert stock_of(backend, '2') == 15
    assert len(backend.orders) == 3


@pytest.mark.parametrize('items', [[], [{'product_id': '1', 'quantity': 0}]])
def test_create_order_validates_items(service, items):
    with pytest.raises(ValidationError):
        service.create_order(items)


def test_create_order_rejects_unknown_status(service):
    with pytest.raises(ValidationError):
        service.create_order([{'product_id': '1', 'quantity': 1}], status_name='Perdido')


def test_untracked_products_are_never_adjusted(service, backend):
    product = backend.products.get('1').copy(track_stock=False, stock=0)
    backend.products.update(product)
    service.create_order([{'product_id': '1', 'quantity': 50}])
    assert stock_of(backend, '1') == 0


# ==============================================================================
# EDICIÓN Y ESTADOS
# ==============================================================================

def test_increasing_quantity_deducts_only_the_difference(service, backend):
    service.update_order('ORD-001', [{'product_id': '1', 'quantity': 5},
                                     {'product_id': '2', 'quantity': 1}])
    assert stock_of(backend, '1') == 22
    assert stock_of(backend, '2') == 15


def test_removing_an_item_returns_its_stock(service, backend):
    updated = service.update_order('ORD-001', [{'product_id': '1', 'quantity': 2}])
    assert [i.product_id for i in updated.items] == ['1']
    assert stock_of(backend, '2') == 16


def test_edit_can_use_stock_held_by_the_order(service, backend):
    # ORD-002 retiene 3 unidades del producto 3, que tiene stock 0
    updated = service.update_order('ORD-002', [{'product_id': '3', 'quantity': 3}])
    assert updated.items[0].quantity == 3
    with pytest.raises(InsufficientStockError):
        service.update_order('ORD-002', [{'product_id': '3', 'quantity': 4}])


def test_cancel_then_reactivate_round_trips_stock(service, backend):
    cancelled = service.update_order_status('ORD-001', 'Cancelado')
    assert cancelled.status == 'Cancelado'
    assert stock_of(backend, '1') == 27
    assert stock_of(backend, '2') == 16

    service.update_order_status('ORD-001', 'Procesando')
    assert stock_of(backend, '1') == 25
    assert stock_of(backend, '2') == 15


def test_status_change_between_holding_states_keeps_stock(service, backend):
    service.update_order_status('ORD-001', 'Enviado')
    assert stock_of(backend, '1') == 25


def test_reactivation_is_validated_against_current_stock(service, backend):
    service.update_order_status('ORD-001', 'Cancelado')
    backend.products.update(backend.products.get('1').copy(stock=0))
    with pytest.raises(InsufficientStockError):
        service.update_order_status('ORD-001', 'Pendiente')


def test_order_can_consume_all_remaining_stock(service, backend):
    service.create_order([{'product_id': '1', 'quantity': 5}])
    backend.products.update(backend.products.get('1').copy(stock=1))
    order = service.list_orders()[0]
    service.update_order(order.id, [{'product_id': '1', 'quantity': 6}])
    assert stock_of(backend, '1') == 0


def test_delete_order_returns_held_stock(service, backend):
    service.delete_order('ORD-001')
    assert stock_of(backend, '1') == 27
    assert stock_of(backend, '2') == 16
    with pytest.raises(NotFoundError):
        service.get_order('ORD-001')


def test_delete_cancelled_order_leaves_stock(service, backend):
    service.update_order_status('ORD-001', 'Cancelado')
    service.delete_order('ORD-001')
    assert stock_of(backend, '1') == 27


def test_unknown_status_id_resolves_to_pending(service, backend):
    order = backend.orders.get('ORD-003')
    backend.orders.update(order.copy(status_id='99'))
    assert service.get_order('ORD-003').status == 'Pendiente'


# ==============================================================================
# LISTADO
# ==============================================================================

def test_filter_orders_by_status_and_text(service):
    orders = service.list_orders()
    assert [o.order_number for o in OrderService.filter_orders(orders, status='enviado')] == ['ORD-1001']
    assert len(OrderService.filter_orders(orders, query='1002')) == 1


def test_sort_orders_by_total():
    orders = [Order(id=str(i), order_number=f'ORD-{i}', total=t) for i, t in enumerate([5, 1, 3])]
    assert [o.total for o in OrderService.sort_orders(orders, '-total')] == [5, 3, 1]
