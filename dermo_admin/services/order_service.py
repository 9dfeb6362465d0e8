# ==============================================================================
# SERVICIO DE PEDIDOS
# ==============================================================================
# Cálculo de totales y reconciliación de stock.
#
# Regla central: un pedido "retiene" stock mientras su estado NO sea
# Cancelado. Al crear, editar, cambiar de estado o borrar un pedido, el
# stock de cada producto se ajusta por la diferencia entre lo que retenía
# la versión anterior y lo que retiene la nueva.
#
#   delta(producto) = retenido(original) - retenido(nuevo)
#   stock_nuevo     = max(0, stock_actual + delta)
#
# Sólo se tocan productos con track_stock = True.
# ==============================================================================

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from dermo_admin.errors import InsufficientStockError, NotFoundError, ValidationError
from dermo_admin.models import (
    CANCELLED_STATUS,
    DEFAULT_ORDER_STATUS,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    utcnow,
)
from dermo_admin.repositories.interfaces import IEntityRepository
from dermo_admin.request_logger import profile_function
from dermo_admin.services.product_service import normalize_text


logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = 'ORD-'
FIRST_ORDER_NUMBER = 1000
DEFAULT_CUSTOMER_NAME = 'Cliente Administrador'

CUSTOMER_FIELDS = ('customer_name', 'customer_phone', 'customer_email',
                   'customer_address', 'notes', 'payment_method')

ORDER_SORT_KEYS = {
    'newest': (lambda o: o.created_at.timestamp() if o.created_at else 0, True),
    'oldest': (lambda o: o.created_at.timestamp() if o.created_at else 0, False),
    'total': (lambda o: o.total, False),
    '-total': (lambda o: o.total, True),
}


@dataclass
class OrderTotals:
    """Importes de un pedido. total = subtotal - product_discounts - discount"""
    subtotal: float
    product_discounts: float
    discount: float
    total: float


def status_holds_stock(status_name: str) -> bool:
    """Todo estado distinto de Cancelado retiene stock."""
    return status_name != CANCELLED_STATUS


def held_quantities(order: Optional[Order]) -> Dict[str, int]:
    """Unidades retenidas por producto (vacío si no hay pedido o está cancelado)."""
    if order is None or not order.holds_stock:
        return {}
    return order.quantities()


def calculate_totals(
    items: Iterable[OrderItem],
    products: Dict[str, Product],
    discount: float = 0.0
) -> OrderTotals:
    """
    Calcula los importes de un pedido.

    Args:
        items: Líneas del pedido (price = precio regular unitario)
        products: Productos actuales por ID; el descuento por oferta usa su
            precio regular y su precio de oferta actuales
        discount: Descuento manual fijo (no se valida contra el subtotal)

    Returns:
        OrderTotals
    """
    subtotal = 0.0
    product_discounts = 0.0
    for item in items:
        subtotal += item.price * item.quantity
        product = products.get(item.product_id)
        if product is not None and product.has_sale_price:
            product_discounts += (product.price - product.sale_price) * item.quantity

    discount = float(discount or 0)
    subtotal = round(subtotal, 2)
    product_discounts = round(product_discounts, 2)
    return OrderTotals(
        subtotal=subtotal,
        product_discounts=product_discounts,
        discount=discount,
        total=round(subtotal - product_discounts - discount, 2),
    )


def available_stock(product: Product, original_order: Optional[Order] = None) -> Optional[int]:
    """
    Unidades que se pueden pedir de un producto.

    Al editar un pedido, lo que ese mismo pedido ya retiene vuelve a estar
    disponible.

    Returns:
        None si el producto no controla stock (ilimitado)
    """
    if not product.track_stock:
        return None
    return product.stock + held_quantities(original_order).get(product.id, 0)


def build_item(product: Product, quantity: int) -> OrderItem:
    """Línea de pedido con el precio regular y la imagen principal."""
    return OrderItem(
        product_id=product.id,
        name=product.name,
        image=product.main_image,
        quantity=quantity,
        price=product.price,
        subtotal=round(product.price * quantity, 2),
    )


def parse_discount(value: Any) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    try:
        return round(float(str(value).replace(',', '.')), 2)
    except ValueError:
        raise ValidationError("El descuento no es un número válido.")


def order_number_value(order_number: str) -> Optional[int]:
    match = re.search(r'(\d+)$', order_number or '')
    return int(match.group(1)) if match else None


class OrderService:
    """
    Servicio para gestión de pedidos.

    Responsabilidades:
    - Alta, edición, cambio de estado y borrado de pedidos
    - Validación de cantidades contra el stock disponible
    - Ajuste de stock de productos según el estado del pedido
    - Filtro y orden del listado
    """

    def __init__(
        self,
        order_repo: IEntityRepository,
        product_repo: IEntityRepository,
        status_repo: IEntityRepository
    ):
        """
        Args:
            order_repo: Repositorio de pedidos
            product_repo: Repositorio de productos (stock)
            status_repo: Repositorio de estados de pedido
        """
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.status_repo = status_repo
        # Serializa lectura-validación-escritura del stock dentro del proceso
        self._stock_lock = threading.Lock()

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_orders(self) -> List[Order]:
        """Pedidos con el nombre de estado resuelto desde su status_id."""
        statuses = {s.id: s.name for s in self.status_repo.list_all()}
        orders = self.order_repo.list_all()
        for order in orders:
            if order.status_id:
                order.status = statuses.get(order.status_id, DEFAULT_ORDER_STATUS)
        return orders

    def get_order(self, order_id: str) -> Order:
        order = self.order_repo.get(order_id)
        if order is None:
            raise NotFoundError("Pedido no encontrado.")
        if order.status_id:
            status = self.status_repo.get(order.status_id)
            order.status = status.name if status else DEFAULT_ORDER_STATUS
        return order

    def resolve_status(self, status_name: Optional[str]) -> OrderStatus:
        """
        Busca un estado por nombre (sin distinguir mayúsculas).

        Raises:
            ValidationError: si el estado no existe
        """
        wanted = normalize_text(status_name or DEFAULT_ORDER_STATUS)
        for status in self.status_repo.list_all():
            if normalize_text(status.name) == wanted:
                return status
        raise ValidationError(f"Estado de pedido desconocido: {status_name}")

    def next_order_number(self) -> str:
        numbers = [order_number_value(o.order_number) for o in self.order_repo.list_all()]
        numbers = [n for n in numbers if n is not None]
        next_value = max(numbers) + 1 if numbers else FIRST_ORDER_NUMBER
        return f"{ORDER_NUMBER_PREFIX}{max(next_value, FIRST_ORDER_NUMBER)}"

    def available_stock_for(self, product_id: str, order_id: str = None) -> Optional[int]:
        """Stock disponible de un producto, opcionalmente editando un pedido."""
        product = self.product_repo.get(product_id)
        if product is None:
            raise NotFoundError("Producto no encontrado.")
        original = self.get_order(order_id) if order_id else None
        return available_stock(product, original)

    # =========================================================================
    # OPERACIONES DE PEDIDOS
    # =========================================================================

    @profile_function(name="Crear pedido")
    def create_order(
        self,
        items: Iterable[Dict[str, Any]],
        status_name: str = None,
        discount: Any = 0,
        **customer
    ) -> Order:
        """
        Crea un pedido y, si su estado retiene stock, lo descuenta.

        Args:
            items: [{'product_id': ..., 'quantity': ...}, ...]
            status_name: Estado inicial (por defecto Pendiente)
            discount: Descuento manual fijo
            **customer: customer_name, customer_phone, notes, etc.

        Raises:
            ValidationError: pedido vacío, estado o producto inexistente
            InsufficientStockError: cantidad mayor a la disponible
        """
        status = self.resolve_status(status_name)
        requested = self._parse_items(items)

        with self._stock_lock:
            products = self._fresh_products(requested)
            new_held = self._held_if(requested, status.name)
            self._check_available(requested, products, status.name, original=None)

            order_items = [build_item(products[pid], qty) for pid, qty in requested]
            totals = calculate_totals(order_items, products, parse_discount(discount))
            now = utcnow()
            order = Order(
                id='',
                order_number=self.next_order_number(),
                items=order_items,
                status=status.name,
                status_id=status.id,
                created_at=now,
                updated_at=now,
                **self._customer_fields(customer),
            )
            self._apply_totals(order, totals)
            created = self.order_repo.create(order)
            created.status = status.name
            self._reconcile({}, new_held)

        logger.info("Pedido %s creado (%s, total %.2f)", created.order_number, status.name, created.total)
        return created

    @profile_function(name="Guardar pedido")
    def update_order(
        self,
        order_id: str,
        items: Iterable[Dict[str, Any]] = None,
        status_name: str = None,
        discount: Any = None,
        **customer
    ) -> Order:
        """
        Edita un pedido y ajusta el stock por la diferencia de unidades
        retenidas entre la versión original y la nueva.

        Los argumentos en None conservan el valor original.
        """
        with self._stock_lock:
            original = self.get_order(order_id)
            status = self.resolve_status(status_name or original.status)
            if items is None:
                requested = list(original.quantities().items())
            else:
                requested = self._parse_items(items)

            products = self._fresh_products(requested)
            self._check_available(requested, products, status.name, original=original)

            previous_items = {i.product_id: i for i in original.items}
            order_items = []
            for pid, qty in requested:
                # Se conserva el precio pactado de las líneas existentes
                if pid in previous_items:
                    order_items.append(previous_items[pid].with_quantity(qty))
                else:
                    order_items.append(build_item(products[pid], qty))

            new_discount = original.discount if discount is None else parse_discount(discount)
            totals = calculate_totals(order_items, products, new_discount)
            changes = self._customer_fields(customer, partial=True)
            order = original.copy(
                items=order_items,
                status=status.name,
                status_id=status.id,
                updated_at=utcnow(),
                **changes,
            )
            self._apply_totals(order, totals)
            updated = self.order_repo.update(order)
            updated.status = status.name
            self._reconcile(held_quantities(original), self._held_if(requested, status.name))

        logger.info("Pedido %s actualizado (%s → %s)", updated.order_number, original.status, status.name)
        return updated

    def update_order_status(self, order_id: str, status_name: str) -> Order:
        """Cambia sólo el estado; cancelar devuelve el stock y reactivar lo reserva."""
        return self.update_order(order_id, status_name=status_name)

    def delete_order(self, order_id: str) -> None:
        """Borra un pedido y devuelve el stock que retenía."""
        with self._stock_lock:
            original = self.get_order(order_id)
            if not self.order_repo.delete(order_id):
                raise NotFoundError("Pedido no encontrado.")
            self._reconcile(held_quantities(original), {})
        logger.info("Pedido %s eliminado", original.order_number)

    # =========================================================================
    # LISTADO
    # =========================================================================

    @staticmethod
    def filter_orders(orders: Iterable[Order], query: str = '', status: str = '') -> List[Order]:
        needle = normalize_text(query)
        result = []
        for order in orders:
            if status and normalize_text(order.status) != normalize_text(status):
                continue
            if needle:
                haystack = ' '.join([order.order_number, order.customer_name or '',
                                     order.customer_phone or '', order.customer_email or ''])
                if needle not in normalize_text(haystack):
                    continue
            result.append(order)
        return result

    @staticmethod
    def sort_orders(orders: Iterable[Order], sort_key: str = 'newest') -> List[Order]:
        key, reverse = ORDER_SORT_KEYS.get(sort_key or 'newest', ORDER_SORT_KEYS['newest'])
        return sorted(orders, key=key, reverse=reverse)

    # =========================================================================
    # AUXILIARES
    # =========================================================================

    @staticmethod
    def _parse_items(items: Iterable[Any]) -> List[tuple]:
        """
        Normaliza las líneas a [(product_id, cantidad)], sumando repetidos
        y conservando el orden de aparición.
        """
        merged: Dict[str, int] = {}
        for item in items or []:
            if isinstance(item, OrderItem):
                product_id, quantity = item.product_id, item.quantity
            else:
                product_id, quantity = item.get('product_id'), item.get('quantity', 1)
            if not product_id:
                continue
            try:
                quantity = int(quantity)
            except (TypeError, ValueError):
                raise ValidationError("La cantidad debe ser un número entero.")
            if quantity < 1:
                raise ValidationError("La cantidad mínima por producto es 1.")
            merged[str(product_id)] = merged.get(str(product_id), 0) + quantity

        if not merged:
            raise ValidationError("El pedido debe tener al menos un producto.")
        return list(merged.items())

    def _fresh_products(self, requested: List[tuple]) -> Dict[str, Product]:
        products = {}
        for product_id, _ in requested:
            product = self.product_repo.get(product_id)
            if product is None:
                raise ValidationError(f"Producto {product_id} no encontrado.")
            products[product_id] = product
        return products

    @staticmethod
    def _held_if(requested: List[tuple], status_name: str) -> Dict[str, int]:
        return dict(requested) if status_holds_stock(status_name) else {}

    @staticmethod
    def _check_available(
        requested: List[tuple],
        products: Dict[str, Product],
        status_name: str,
        original: Optional[Order]
    ) -> None:
        if not status_holds_stock(status_name):
            return
        for product_id, quantity in requested:
            product = products[product_id]
            available = available_stock(product, original)
            if available is not None and quantity > available:
                raise InsufficientStockError(product.name, quantity, available)

    def _reconcile(self, original_held: Dict[str, int], new_held: Dict[str, int]) -> None:
        """
        Aplica delta = retenido(original) - retenido(nuevo) al stock actual.
        Sin rollback: si falla a mitad, el error se registra y se propaga.
        """
        for product_id in dict.fromkeys(list(original_held) + list(new_held)):
            delta = original_held.get(product_id, 0) - new_held.get(product_id, 0)
            if delta == 0:
                continue
            product = self.product_repo.get(product_id)
            if product is None or not product.track_stock:
                continue
            new_stock = max(0, product.stock + delta)
            try:
                self.product_repo.update(product.copy(stock=new_stock))
            except Exception:
                logger.exception("Error ajustando stock de %s (delta %+d)", product_id, delta)
                raise
            logger.debug("Stock de %s: %d → %d", product.name, product.stock, new_stock)

    @staticmethod
    def _customer_fields(customer: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        fields = {}
        for key in CUSTOMER_FIELDS:
            if key not in customer:
                continue
            value = customer[key]
            value = value.strip() if isinstance(value, str) else value
            fields[key] = value if value else (None if key not in ('customer_name', 'customer_phone') else '')
        if not partial and not fields.get('customer_name'):
            fields['customer_name'] = DEFAULT_CUSTOMER_NAME
        return fields

    @staticmethod
    def _apply_totals(order: Order, totals: OrderTotals) -> None:
        order.subtotal = totals.subtotal
        order.product_discounts = totals.product_discounts
        order.discount = totals.discount
        order.total = totals.total
