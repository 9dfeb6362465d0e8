# ==============================================================================
# SERVICIO DE PRODUCTOS
# ==============================================================================
# Centraliza toda la lógica de negocio relacionada con el catálogo:
# validación de formularios, duplicado, operaciones masivas y las vistas
# filtradas/ordenadas/paginadas del listado.
# ==============================================================================

import logging
import math
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from dermo_admin.errors import DermoAdminError, NotFoundError, ValidationError
from dermo_admin.models import Product, ProductStatus, utcnow
from dermo_admin.repositories.interfaces import IEntityRepository
from dermo_admin.request_logger import profile_function


logger = logging.getLogger(__name__)

COPY_SUFFIX = ' (Copia)'

# Campos que la edición múltiple puede modificar
BULK_FIELDS = frozenset([
    'price', 'sale_price', 'categories', 'subcategories', 'brand', 'label',
    'carousel_state', 'status', 'track_stock', 'stock',
])

SORT_KEYS = {
    'name': (lambda p: p.name.lower(), False),
    '-name': (lambda p: p.name.lower(), True),
    'price': (lambda p: p.effective_price, False),
    '-price': (lambda p: p.effective_price, True),
    'stock': (lambda p: p.stock, False),
    '-stock': (lambda p: p.stock, True),
    'newest': (lambda p: p.created_at.timestamp() if p.created_at else 0, True),
    'oldest': (lambda p: p.created_at.timestamp() if p.created_at else 0, False),
}


def normalize_text(value: Any) -> str:
    """Minúsculas y sin acentos, para búsquedas y comparación de nombres."""
    text = unicodedata.normalize('NFKD', str(value or '').strip().lower())
    return ''.join(c for c in text if not unicodedata.combining(c))


def parse_price(value: Any, field_name: str = 'precio') -> Optional[float]:
    """Convierte texto de formulario en precio; vacío → None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        price = float(str(value).replace(',', '.'))
    except ValueError:
        raise ValidationError(f"El {field_name} no es un número válido.")
    if not math.isfinite(price):
        raise ValidationError(f"El {field_name} no es un número válido.")
    return round(price, 2)


def parse_stock(value: Any) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("El stock debe ser un número entero.")


def as_list(value: Any) -> List[str]:
    """Acepta lista o texto separado por comas/punto y coma."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.replace(';', ',').split(',')
    return [str(v).strip() for v in value if str(v).strip()]


# ==============================================================================
# RESULTADOS
# ==============================================================================

@dataclass
class BulkResult:
    """Resultado agregado de una operación masiva secuencial."""
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)


@dataclass
class Page:
    """Página de un listado."""
    items: List[Any]
    page: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


def paginate(items: Sequence[Any], page: int = 1, per_page: int = 12) -> Page:
    """
    Corta una lista en memoria. Páginas fuera de rango se ajustan al
    límite más cercano.
    """
    per_page = max(1, int(per_page or 1))
    total = len(items)
    pages = max(1, math.ceil(total / per_page))
    page = min(max(1, int(page or 1)), pages)
    start = (page - 1) * per_page
    return Page(items=list(items[start:start + per_page]), page=page, per_page=per_page, total=total)


class ProductService:
    """
    Servicio para gestión de productos.

    Responsabilidades:
    - CRUD de productos con validación
    - Duplicado de productos
    - Borrado y edición masivos
    - Filtro, orden y paginación del listado
    """

    def __init__(self, product_repo: IEntityRepository):
        """
        Args:
            product_repo: Repositorio de productos
        """
        self.product_repo = product_repo

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_products(self) -> List[Product]:
        return self.product_repo.list_all()

    def get_product(self, product_id: str) -> Product:
        """
        Obtiene un producto por su ID.

        Raises:
            NotFoundError: si no existe
        """
        product = self.product_repo.get(product_id)
        if product is None:
            raise NotFoundError("Producto no encontrado.")
        return product

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def build_product(self, data: Dict[str, Any], base: Product = None) -> Product:
        """
        Construye un producto validado a partir de datos de formulario.

        Args:
            data: Campos enviados (nombres del modelo)
            base: Producto existente sobre el que se aplican los cambios

        Raises:
            ValidationError: nombre vacío o precio <= 0
        """
        product = base.copy() if base else Product(id='', name='')

        name = str(data.get('name', product.name) or '').strip()
        if not name:
            raise ValidationError("El nombre del producto es obligatorio.")

        price = parse_price(data.get('price', product.price))
        if not price or price <= 0:
            raise ValidationError("El precio del producto es obligatorio y debe ser mayor a 0.")

        sale_price = parse_price(data.get('sale_price', product.sale_price), 'precio de oferta')
        if sale_price is not None and sale_price <= 0:
            sale_price = None

        product.name = name
        product.price = price
        product.sale_price = sale_price
        for key in ('categories', 'subcategories', 'images'):
            if key in data:
                setattr(product, key, as_list(data[key]))
        for key in ('brand', 'label', 'carousel_state', 'short_description',
                    'long_description', 'usage', 'ingredients'):
            if key in data:
                setattr(product, key, str(data[key] or '').strip())
        if 'track_stock' in data:
            product.track_stock = _to_bool(data['track_stock'])
        if 'stock' in data:
            product.stock = parse_stock(data['stock'])
        if 'status' in data:
            product.status = ProductStatus.parse(data['status'])
        return product

    # =========================================================================
    # OPERACIONES DE PRODUCTOS
    # =========================================================================

    @profile_function(name="Crear producto")
    def create_product(self, data: Dict[str, Any]) -> Product:
        product = self.build_product(data)
        created = self.product_repo.create(product)
        logger.info("Producto creado: %s (%s)", created.name, created.id)
        return created

    @profile_function(name="Actualizar producto")
    def update_product(self, product_id: str, data: Dict[str, Any]) -> Product:
        current = self.get_product(product_id)
        product = self.build_product(data, base=current)
        updated = self.product_repo.update(product)
        logger.info("Producto actualizado: %s (%s)", updated.name, updated.id)
        return updated

    def save_product(self, product: Product) -> Product:
        """Persiste un producto ya construido (usado por imágenes y stock)."""
        return self.product_repo.update(product)

    def delete_product(self, product_id: str) -> None:
        if not self.product_repo.delete(product_id):
            raise NotFoundError("Producto no encontrado.")
        logger.info("Producto eliminado: %s", product_id)

    def duplicate_product(self, product_id: str) -> Product:
        """
        Crea una copia con nuevo ID y el nombre con sufijo " (Copia)".
        El resto de campos se copian tal cual; los timestamps son nuevos.
        """
        original = self.get_product(product_id)
        now = utcnow()
        clone = original.copy(
            id='',
            name=f"{original.name}{COPY_SUFFIX}",
            created_at=now,
            updated_at=now,
        )
        created = self.product_repo.create(clone)
        logger.info("Producto %s duplicado como %s", product_id, created.id)
        return created

    # =========================================================================
    # OPERACIONES MASIVAS
    # =========================================================================
    # Se ejecutan en secuencia y sin rollback: un fallo parcial deja el
    # catálogo mezclado y sólo se informa el conteo agregado.

    def delete_all_products(self, product_ids: Iterable[str] = None) -> BulkResult:
        """
        Elimina todos los productos (o los IDs indicados), uno por uno.
        """
        ids = list(product_ids) if product_ids is not None else [p.id for p in self.list_products()]
        result = BulkResult()
        for product_id in ids:
            try:
                if self.product_repo.delete(product_id):
                    result.succeeded += 1
                else:
                    result.record_failure(f"{product_id}: no encontrado")
            except DermoAdminError as exc:
                logger.warning("No se pudo eliminar %s: %s", product_id, exc)
                result.record_failure(f"{product_id}: {exc}")
        logger.info("Borrado masivo: %d ok, %d fallidos", result.succeeded, result.failed)
        return result

    def bulk_update_products(self, product_ids: Iterable[str], updates: Dict[str, Any]) -> BulkResult:
        """
        Aplica los mismos cambios a varios productos.

        Args:
            product_ids: IDs a modificar
            updates: Campos a cambiar (sólo BULK_FIELDS; el resto se ignora)
        """
        filtered = {k: v for k, v in updates.items() if k in BULK_FIELDS}
        if not filtered:
            raise ValidationError("No hay campos válidos para actualizar.")

        result = BulkResult()
        for product_id in product_ids:
            try:
                current = self.get_product(product_id)
                self.product_repo.update(self.build_product(filtered, base=current))
                result.succeeded += 1
            except DermoAdminError as exc:
                logger.warning("No se pudo actualizar %s: %s", product_id, exc)
                result.record_failure(f"{product_id}: {exc}")
        logger.info("Edición masiva: %d ok, %d fallidos", result.succeeded, result.failed)
        return result

    # =========================================================================
    # LISTADO: FILTRO, ORDEN, PAGINACIÓN
    # =========================================================================

    @staticmethod
    def filter_products(
        products: Iterable[Product],
        query: str = '',
        category: str = '',
        brand: str = '',
        status: str = '',
        label: str = '',
        hide_out_of_stock: bool = False
    ) -> List[Product]:
        """
        Filtra en memoria.

        hide_out_of_stock excluye sólo productos que controlan stock y
        están en cero; los productos sin control de stock siempre se ven.
        """
        needle = normalize_text(query)
        checks: List[Callable[[Product], bool]] = []
        if needle:
            checks.append(lambda p: needle in normalize_text(p.name) or needle in normalize_text(p.brand))
        if category:
            wanted = normalize_text(category)
            checks.append(lambda p: wanted in (normalize_text(c) for c in p.categories))
        if brand:
            checks.append(lambda p: normalize_text(p.brand) == normalize_text(brand))
        if status:
            checks.append(lambda p: p.status == ProductStatus.parse(status))
        if label:
            checks.append(lambda p: normalize_text(p.label) == normalize_text(label))
        if hide_out_of_stock:
            checks.append(lambda p: not p.is_out_of_stock)
        return [p for p in products if all(check(p) for check in checks)]

    @staticmethod
    def sort_products(products: Iterable[Product], sort_key: str = 'newest') -> List[Product]:
        key, reverse = SORT_KEYS.get(sort_key or 'newest', SORT_KEYS['newest'])
        return sorted(products, key=key, reverse=reverse)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'on', 'yes', 'si', 'sí', 'x')
