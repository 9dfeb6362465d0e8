# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia
# (memoria o Supabase). El mapeo a filas remotas vive en los repositorios.
# ==============================================================================

from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any
from enum import Enum
from datetime import datetime, timezone


# ==============================================================================
# ENUMERACIONES Y CONSTANTES
# ==============================================================================

class ProductStatus(str, Enum):
    """Estados de publicación de un producto."""
    ACTIVO = "Activo"
    INACTIVO = "Inactivo"
    AGOTADO = "Agotado"

    @classmethod
    def parse(cls, value: Any, default: 'ProductStatus' = None) -> 'ProductStatus':
        """Convierte texto libre en estado; si no coincide devuelve el default."""
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        for status in cls:
            if status.value.lower() == text:
                return status
        return default or cls.ACTIVO


class CarouselType(str, Enum):
    """Tipos de ubicación de marketing en la tienda pública."""
    CAROUSEL = "carousel"
    BANNER = "banner"


# Único estado de pedido que NO retiene stock
CANCELLED_STATUS = "Cancelado"

# Estado asumido cuando un pedido remoto apunta a un status_id desconocido
DEFAULT_ORDER_STATUS = "Pendiente"

DEFAULT_COLOR = "#6b7280"

# El backend remoto guarda las imágenes en columnas image_1..image_7
MAX_PRODUCT_IMAGES = 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    # Python < 3.11 no acepta el sufijo "Z"
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo.

    Las categorías, subcategorías, marca y etiqueta se guardan por NOMBRE
    (texto libre), no como claves foráneas.

    Attributes:
        id: Identificador único
        name: Nombre visible
        price: Precio regular
        sale_price: Precio de oferta (None si no hay oferta)
        categories: Nombres de categorías
        subcategories: Nombres de subcategorías
        brand: Marca
        label: Etiqueta (Nuevo, Bestseller, ...)
        carousel_state: Carrusel/banner donde aparece en la tienda
        short_description: Descripción corta
        long_description: Descripción larga
        usage: Modo de uso
        ingredients: Ingredientes
        images: URLs de imágenes en orden de presentación
        track_stock: Si True, los pedidos descuentan stock
        stock: Unidades en inventario
        status: Estado de publicación
    """
    id: str
    name: str
    price: float = 0.0
    sale_price: Optional[float] = None
    categories: List[str] = field(default_factory=list)
    subcategories: List[str] = field(default_factory=list)
    brand: str = ''
    label: str = ''
    carousel_state: str = ''
    short_description: str = ''
    long_description: str = ''
    usage: str = ''
    ingredients: str = ''
    images: List[str] = field(default_factory=list)
    track_stock: bool = False
    stock: int = 0
    status: ProductStatus = ProductStatus.ACTIVO
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_sale_price(self) -> bool:
        """True si el producto tiene un precio de oferta vigente."""
        return bool(self.sale_price)

    @property
    def effective_price(self) -> float:
        """Precio al que se vende (oferta si existe)."""
        return self.sale_price if self.has_sale_price else self.price

    @property
    def is_out_of_stock(self) -> bool:
        """Agotado sólo si controla stock y no le quedan unidades."""
        return self.track_stock and self.stock <= 0

    @property
    def main_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    def copy(self, **changes) -> 'Product':
        """Copia con listas independientes."""
        changes.setdefault('categories', list(self.categories))
        changes.setdefault('subcategories', list(self.subcategories))
        changes.setdefault('images', list(self.images))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario (JSON/plantillas)."""
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'sale_price': self.sale_price,
            'categories': list(self.categories),
            'subcategories': list(self.subcategories),
            'brand': self.brand,
            'label': self.label,
            'carousel_state': self.carousel_state,
            'short_description': self.short_description,
            'long_description': self.long_description,
            'usage': self.usage,
            'ingredients': self.ingredients,
            'images': list(self.images),
            'track_stock': self.track_stock,
            'stock': self.stock,
            'status': self.status.value,
            'created_at': _format_datetime(self.created_at),
            'updated_at': _format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde diccionario."""
        sale_price = data.get('sale_price')
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            price=float(data.get('price') or 0),
            sale_price=float(sale_price) if sale_price not in (None, '') else None,
            categories=list(data.get('categories') or []),
            subcategories=list(data.get('subcategories') or []),
            brand=data.get('brand') or '',
            label=data.get('label') or '',
            carousel_state=data.get('carousel_state') or '',
            short_description=data.get('short_description') or '',
            long_description=data.get('long_description') or '',
            usage=data.get('usage') or '',
            ingredients=data.get('ingredients') or '',
            images=list(data.get('images') or []),
            track_stock=bool(data.get('track_stock', False)),
            stock=int(data.get('stock') or 0),
            status=ProductStatus.parse(data.get('status')),
            created_at=parse_datetime(data.get('created_at')),
            updated_at=parse_datetime(data.get('updated_at')),
        )


@dataclass
class Category:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name}


@dataclass
class Subcategory:
    """Subcategoría; category_id referencia a la categoría padre."""
    id: str
    name: str
    category_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'category_id': self.category_id}


@dataclass
class Brand:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name}


@dataclass
class Label:
    """Etiqueta de producto (en la interfaz: "Propiedad")."""
    id: str
    name: str
    color: str = DEFAULT_COLOR

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'color': self.color}


@dataclass
class ProductCarouselState:
    id: str
    name: str
    type: CarouselType = CarouselType.CAROUSEL
    color: str = DEFAULT_COLOR

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'type': self.type.value, 'color': self.color}


# ==============================================================================
# PEDIDOS
# ==============================================================================

@dataclass
class OrderStatus:
    id: str
    name: str
    color: str = DEFAULT_COLOR

    @property
    def holds_stock(self) -> bool:
        return self.name != CANCELLED_STATUS

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'color': self.color}


@dataclass
class OrderItem:
    """
    Línea de pedido.

    Attributes:
        product_id: Producto referenciado
        name: Nombre del producto al momento del pedido
        image: Imagen principal al momento del pedido
        quantity: Unidades pedidas
        price: Precio unitario regular
        subtotal: price × quantity
    """
    product_id: str
    name: str
    quantity: int = 1
    price: float = 0.0
    image: Optional[str] = None
    subtotal: float = 0.0

    def __post_init__(self):
        if not self.subtotal:
            self.subtotal = round(self.price * self.quantity, 2)

    def with_quantity(self, quantity: int) -> 'OrderItem':
        return replace(self, quantity=quantity, subtotal=round(self.price * quantity, 2))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'image': self.image,
            'quantity': self.quantity,
            'price': self.price,
            'subtotal': self.subtotal,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderItem':
        return cls(
            product_id=str(data.get('product_id', '')),
            name=data.get('name', ''),
            image=data.get('image'),
            quantity=int(data.get('quantity') or 0),
            price=float(data.get('price') or 0),
            subtotal=float(data.get('subtotal') or 0),
        )


@dataclass
class Order:
    """
    Pedido de un cliente.

    Invariante: total == subtotal - product_discounts - discount
    """
    id: str
    order_number: str
    items: List[OrderItem] = field(default_factory=list)
    customer_name: str = ''
    customer_phone: str = ''
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    subtotal: float = 0.0
    discount: float = 0.0
    product_discounts: float = 0.0
    total: float = 0.0
    status: str = DEFAULT_ORDER_STATUS
    status_id: str = ''
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def holds_stock(self) -> bool:
        """Todo estado distinto de Cancelado mantiene el stock reservado."""
        return self.status != CANCELLED_STATUS

    def quantities(self) -> Dict[str, int]:
        """Cantidad pedida por producto (suma ítems repetidos)."""
        result: Dict[str, int] = {}
        for item in self.items:
            result[item.product_id] = result.get(item.product_id, 0) + item.quantity
        return result

    def copy(self, **changes) -> 'Order':
        changes.setdefault('items', [replace(i) for i in self.items])
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'order_number': self.order_number,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_email': self.customer_email,
            'customer_address': self.customer_address,
            'items': [i.to_dict() for i in self.items],
            'subtotal': self.subtotal,
            'discount': self.discount,
            'product_discounts': self.product_discounts,
            'total': self.total,
            'status': self.status,
            'status_id': self.status_id,
            'notes': self.notes,
            'payment_method': self.payment_method,
            'created_at': _format_datetime(self.created_at),
            'updated_at': _format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Order':
        return cls(
            id=str(data.get('id', '')),
            order_number=data.get('order_number', ''),
            items=[OrderItem.from_dict(i) for i in data.get('items') or []],
            customer_name=data.get('customer_name') or '',
            customer_phone=data.get('customer_phone') or '',
            customer_email=data.get('customer_email'),
            customer_address=data.get('customer_address'),
            subtotal=float(data.get('subtotal') or 0),
            discount=float(data.get('discount') or 0),
            product_discounts=float(data.get('product_discounts') or 0),
            total=float(data.get('total') or 0),
            status=data.get('status') or DEFAULT_ORDER_STATUS,
            status_id=str(data.get('status_id') or ''),
            notes=data.get('notes'),
            payment_method=data.get('payment_method'),
            created_at=parse_datetime(data.get('created_at')),
            updated_at=parse_datetime(data.get('updated_at')),
        )


# ==============================================================================
# AJUSTES E IMÁGENES
# ==============================================================================

@dataclass
class StoreSettings:
    """Fila única de ajustes que lee la tienda pública."""
    id: str = 'default'
    hide_out_of_stock: bool = False
    updated_at: Optional[datetime] = None


@dataclass
class StoredImage:
    """Imagen subida: URL pública + ruta dentro del bucket (para borrarla)."""
    url: str
    path: str
    product_id: Optional[str] = None
