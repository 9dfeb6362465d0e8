# ==============================================================================
# BACKEND SUPABASE - Tablas, storage y autenticación remotos
# ==============================================================================
# Implementa las interfaces de interfaces.py sobre el cliente oficial
# `supabase` (PostgREST + Storage + Auth).
#
# Cada tabla se describe con un nombre, una columna de orden y dos
# funciones de mapeo (fila → entidad, entidad → fila). Los errores del
# cliente se convierten en RepositoryError con un mensaje legible.
# ==============================================================================

import logging
import uuid
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar
from urllib.parse import urlparse

import httpx
from postgrest.exceptions import APIError

from dermo_admin.errors import AuthenticationError, NotFoundError, RepositoryError
from dermo_admin.models import (
    Brand,
    CarouselType,
    Category,
    Label,
    MAX_PRODUCT_IMAGES,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductCarouselState,
    ProductStatus,
    StoreSettings,
    StoredImage,
    Subcategory,
    DEFAULT_COLOR,
    DEFAULT_ORDER_STATUS,
    utcnow,
)
from dermo_admin.models.entities import parse_datetime
from dermo_admin.repositories.base import unique_storage_name


logger = logging.getLogger(__name__)

T = TypeVar('T')

# Errores de transporte/servidor que se traducen a RepositoryError
CLIENT_ERRORS = (APIError, httpx.HTTPError)


def _api_message(exc: Exception) -> str:
    return getattr(exc, 'message', None) or str(exc)


# ==============================================================================
# MAPEO FILA <-> ENTIDAD
# ==============================================================================

def product_from_row(row: Dict[str, Any]) -> Product:
    images = [row.get(f'image_{i}') for i in range(1, MAX_PRODUCT_IMAGES + 1)]
    offer = row.get('offer_price')
    return Product(
        id=str(row['id']),
        name=row.get('title') or '',
        price=float(row.get('regular_price') or 0),
        sale_price=float(offer) if offer else None,
        categories=list(row.get('categories') or []),
        subcategories=list(row.get('subcategories') or []),
        brand=row.get('brand') or '',
        label=row.get('label') or '',
        carousel_state=row.get('carousel_state') or '',
        short_description=row.get('short_description') or '',
        long_description=row.get('long_description') or '',
        usage=row.get('usage_instructions') or '',
        ingredients=row.get('ingredients') or '',
        images=[img for img in images if img],
        track_stock=bool(row.get('track_stock')),
        stock=int(row.get('stock') or 0),
        status=ProductStatus.parse(row.get('status')),
        created_at=parse_datetime(row.get('created_at')),
        updated_at=parse_datetime(row.get('updated_at') or row.get('created_at')),
    )


def product_to_row(product: Product) -> Dict[str, Any]:
    images = list(product.images)[:MAX_PRODUCT_IMAGES]
    row = {
        'title': product.name or None,
        'regular_price': product.price or None,
        'offer_price': product.sale_price or None,
        'long_description': product.long_description or None,
        'short_description': product.short_description or None,
        'usage_instructions': product.usage or None,
        'ingredients': product.ingredients or None,
        'brand': product.brand or None,
        'label': product.label or None,
        'carousel_state': product.carousel_state or None,
        'categories': list(product.categories),
        'subcategories': list(product.subcategories),
        'track_stock': bool(product.track_stock),
        'stock': int(product.stock or 0),
        'status': product.status.value,
    }
    for i in range(MAX_PRODUCT_IMAGES):
        row[f'image_{i + 1}'] = images[i] if i < len(images) else None
    if not product.id:
        row['product_id'] = str(uuid.uuid4())
    return row


def order_from_row(row: Dict[str, Any]) -> Order:
    # El nombre del estado se resuelve en OrderService con la tabla order_statuses
    return Order(
        id=str(row['id']),
        order_number=row.get('order_number') or '',
        customer_name=row.get('customer_name') or '',
        customer_phone=row.get('customer_phone') or '',
        customer_email=row.get('customer_email'),
        customer_address=row.get('customer_address'),
        items=[OrderItem.from_dict(i) for i in row.get('items') or []],
        subtotal=float(row.get('subtotal') or 0),
        discount=float(row.get('discount') or 0),
        product_discounts=float(row.get('product_discounts') or 0),
        total=float(row.get('total') or 0),
        status=DEFAULT_ORDER_STATUS,
        status_id=str(row.get('status_id') or ''),
        notes=row.get('notes'),
        payment_method=row.get('payment_method'),
        created_at=parse_datetime(row.get('created_at')),
        updated_at=parse_datetime(row.get('updated_at')),
    )


def order_to_row(order: Order) -> Dict[str, Any]:
    now = utcnow().isoformat()
    row = {
        'order_number': order.order_number,
        'customer_name': order.customer_name,
        'customer_phone': order.customer_phone,
        'customer_email': order.customer_email,
        'customer_address': order.customer_address,
        'items': [i.to_dict() for i in order.items],
        'subtotal': order.subtotal,
        'discount': order.discount,
        'product_discounts': order.product_discounts,
        'total': order.total,
        'status_id': order.status_id or None,
        'notes': order.notes,
        'payment_method': order.payment_method,
        'updated_at': now,
    }
    if not order.id:
        row['created_at'] = order.created_at.isoformat() if order.created_at else now
    return row


def category_from_row(row):
    return Category(id=str(row['id']), name=row.get('name') or '')


def subcategory_from_row(row):
    return Subcategory(id=str(row['id']), name=row.get('name') or '', category_id=str(row.get('category_id') or ''))


def brand_from_row(row):
    return Brand(id=str(row['id']), name=row.get('name') or '')


def label_from_row(row):
    return Label(id=str(row['id']), name=row.get('name') or '', color=row.get('color') or DEFAULT_COLOR)


def order_status_from_row(row):
    return OrderStatus(id=str(row['id']), name=row.get('name') or '', color=row.get('color') or DEFAULT_COLOR)


def carousel_state_from_row(row):
    try:
        kind = CarouselType(row.get('type') or CarouselType.CAROUSEL.value)
    except ValueError:
        kind = CarouselType.CAROUSEL
    return ProductCarouselState(id=str(row['id']), name=row.get('name') or '', type=kind, color=row.get('color') or DEFAULT_COLOR)


def _lookup_to_row(entity) -> Dict[str, Any]:
    row = entity.to_dict()
    row.pop('id', None)
    return row


# ==============================================================================
# TABLA GENÉRICA
# ==============================================================================

class SupabaseRepository(Generic[T]):
    """
    Repositorio CRUD sobre una tabla de Supabase.

    Attributes:
        table: Nombre de la tabla
        order_column: Columna de ordenamiento de list_all()
        descending: Orden descendente
    """

    def __init__(
        self,
        client,
        table: str,
        from_row: Callable[[Dict[str, Any]], T],
        to_row: Callable[[T], Dict[str, Any]] = _lookup_to_row,
        order_column: str = 'name',
        descending: bool = False
    ):
        self.client = client
        self.table = table
        self.from_row = from_row
        self.to_row = to_row
        self.order_column = order_column
        self.descending = descending

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except CLIENT_ERRORS as exc:
            logger.error("Error en %s (%s): %s", self.table, action, exc)
            raise RepositoryError(f"No se pudo {action}: {_api_message(exc)}") from exc

    def list_all(self) -> List[T]:
        query = (
            self.client.table(self.table)
            .select('*')
            .order(self.order_column, desc=self.descending)
        )
        response = self._execute(query, f"obtener {self.table}")
        return [self.from_row(row) for row in response.data or []]

    def get(self, entity_id: str) -> Optional[T]:
        query = self.client.table(self.table).select('*').eq('id', entity_id).limit(1)
        response = self._execute(query, f"obtener {self.table}/{entity_id}")
        rows = response.data or []
        return self.from_row(rows[0]) if rows else None

    def create(self, entity: T) -> T:
        query = self.client.table(self.table).insert(self.to_row(entity))
        response = self._execute(query, f"crear en {self.table}")
        rows = response.data or []
        if not rows:
            raise RepositoryError(f"No se pudo crear en {self.table}: respuesta vacía")
        return self.from_row(rows[0])

    def update(self, entity: T) -> T:
        entity_id = getattr(entity, 'id')
        query = self.client.table(self.table).update(self.to_row(entity)).eq('id', entity_id)
        response = self._execute(query, f"actualizar {self.table}/{entity_id}")
        rows = response.data or []
        if not rows:
            raise NotFoundError(f"Registro {entity_id} no encontrado en {self.table}")
        return self.from_row(rows[0])

    def delete(self, entity_id: str) -> bool:
        query = self.client.table(self.table).delete().eq('id', entity_id)
        response = self._execute(query, f"eliminar {self.table}/{entity_id}")
        return bool(response.data)


# ==============================================================================
# AJUSTES, IMÁGENES Y AUTENTICACIÓN
# ==============================================================================

class SupabaseSettingsRepository:
    """Tabla store_settings: una única fila."""

    TABLE = 'store_settings'

    def __init__(self, client):
        self.client = client

    def _row(self) -> Dict[str, Any]:
        try:
            response = self.client.table(self.TABLE).select('*').limit(1).execute()
        except CLIENT_ERRORS as exc:
            raise RepositoryError(f"No se pudo obtener los ajustes: {_api_message(exc)}") from exc
        rows = response.data or []
        if not rows:
            raise NotFoundError("La tabla store_settings está vacía")
        return rows[0]

    @staticmethod
    def _to_settings(row: Dict[str, Any]) -> StoreSettings:
        return StoreSettings(
            id=str(row['id']),
            hide_out_of_stock=bool(row.get('hide_out_of_stock')),
            updated_at=parse_datetime(row.get('updated_at')),
        )

    def get_settings(self) -> StoreSettings:
        return self._to_settings(self._row())

    def update_settings(self, hide_out_of_stock: bool) -> StoreSettings:
        current = self._row()
        updates = {
            'hide_out_of_stock': bool(hide_out_of_stock),
            'updated_at': utcnow().isoformat(),
        }
        try:
            response = (
                self.client.table(self.TABLE)
                .update(updates)
                .eq('id', current['id'])
                .execute()
            )
        except CLIENT_ERRORS as exc:
            raise RepositoryError(f"No se pudo actualizar los ajustes: {_api_message(exc)}") from exc
        rows = response.data or [dict(current, **updates)]
        return self._to_settings(rows[0])


class SupabaseImageStorage:
    """
    Bucket de Supabase Storage.

    Las imágenes subidas se registran en la tabla product_images
    (url, storage_path, product_id) para poder borrarlas después.
    """

    TABLE = 'product_images'

    def __init__(self, client, bucket: str = 'product-images'):
        self.client = client
        self.bucket = bucket

    def upload(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        product_id: Optional[str] = None
    ) -> StoredImage:
        path = unique_storage_name(filename)
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(
                path=path,
                file=content,
                file_options={
                    'content-type': content_type,
                    'cache-control': '3600',
                    'upsert': 'false',
                },
            )
            url = bucket.get_public_url(path)
        except Exception as exc:
            # storage3 cambia la jerarquía de excepciones entre versiones
            logger.exception("Error subiendo imagen %s", filename)
            raise RepositoryError("No se pudo subir la imagen.") from exc

        record = {'url': url, 'storage_path': path, 'product_id': product_id}
        try:
            self.client.table(self.TABLE).insert(record).execute()
        except CLIENT_ERRORS as exc:
            # La imagen ya está subida; sin registro se borra por nombre de archivo
            logger.warning("No se pudo registrar la imagen %s: %s", path, exc)
        return StoredImage(url=url, path=path, product_id=product_id)

    def _storage_path(self, url: str) -> str:
        try:
            response = (
                self.client.table(self.TABLE)
                .select('storage_path')
                .eq('url', url)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            if rows and rows[0].get('storage_path'):
                return rows[0]['storage_path']
        except CLIENT_ERRORS as exc:
            logger.warning("No se pudo consultar product_images para %s: %s", url, exc)
        return urlparse(url).path.rsplit('/', 1)[-1]

    def delete(self, url: str) -> None:
        path = self._storage_path(url)
        try:
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:
            logger.exception("Error borrando imagen %s", url)
            raise RepositoryError("No se pudo borrar la imagen.") from exc
        try:
            self.client.table(self.TABLE).delete().eq('url', url).execute()
        except CLIENT_ERRORS as exc:
            logger.warning("No se pudo borrar el registro de %s: %s", url, exc)


class SupabaseAuthGateway:
    """Autenticación con correo y contraseña de Supabase Auth."""

    def __init__(self, client):
        self.client = client

    def sign_in(self, email: str, password: str) -> str:
        try:
            response = self.client.auth.sign_in_with_password(
                {'email': email, 'password': password}
            )
        except Exception as exc:
            logger.info("Inicio de sesión rechazado para %s: %s", email, exc)
            raise AuthenticationError("Correo o contraseña incorrectos.") from exc
        user = getattr(response, 'user', None)
        if user is None:
            raise AuthenticationError("Correo o contraseña incorrectos.")
        return getattr(user, 'email', None) or email

    def sign_out(self) -> None:
        try:
            self.client.auth.sign_out()
        except Exception as exc:
            logger.warning("Error cerrando sesión en Supabase: %s", exc)


# ==============================================================================
# CONSTRUCCIÓN
# ==============================================================================

def build_supabase_backend(config, client=None):
    """
    Construye el backend remoto.

    Args:
        config: Config con SUPABASE_URL/SUPABASE_KEY
        client: Cliente ya creado (pruebas); si es None se crea uno

    Returns:
        Backend con las implementaciones Supabase
    """
    from dermo_admin.repositories.backend import Backend

    if client is None:
        from supabase import create_client
        client = create_client(config.supabase_url, config.supabase_key)
        logger.info("Conectado a Supabase en %s", config.supabase_url)

    return Backend(
        products=SupabaseRepository(
            client, 'products', product_from_row, product_to_row,
            order_column='created_at', descending=True,
        ),
        orders=SupabaseRepository(
            client, 'orders', order_from_row, order_to_row,
            order_column='created_at', descending=True,
        ),
        categories=SupabaseRepository(client, 'categories', category_from_row),
        subcategories=SupabaseRepository(client, 'subcategories', subcategory_from_row),
        brands=SupabaseRepository(client, 'brands', brand_from_row),
        labels=SupabaseRepository(client, 'labels', label_from_row),
        order_statuses=SupabaseRepository(client, 'order_statuses', order_status_from_row),
        carousel_states=SupabaseRepository(client, 'product_carousel_states', carousel_state_from_row),
        settings=SupabaseSettingsRepository(client),
        images=SupabaseImageStorage(client, config.supabase_bucket),
        auth=SupabaseAuthGateway(client),
        remote=True,
    )
