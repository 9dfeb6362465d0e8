# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Son independientes del mecanismo de persistencia (memoria o Supabase).
# ==============================================================================

from .entities import (
    # Catálogo
    Product,
    ProductStatus,
    Category,
    Subcategory,
    Brand,
    Label,
    ProductCarouselState,
    CarouselType,

    # Pedidos
    Order,
    OrderItem,
    OrderStatus,

    # Ajustes e imágenes
    StoreSettings,
    StoredImage,

    # Constantes
    CANCELLED_STATUS,
    DEFAULT_ORDER_STATUS,
    DEFAULT_COLOR,
    MAX_PRODUCT_IMAGES,
    utcnow,
)

__all__ = [
    'Product',
    'ProductStatus',
    'Category',
    'Subcategory',
    'Brand',
    'Label',
    'ProductCarouselState',
    'CarouselType',
    'Order',
    'OrderItem',
    'OrderStatus',
    'StoreSettings',
    'StoredImage',
    'CANCELLED_STATUS',
    'DEFAULT_ORDER_STATUS',
    'DEFAULT_COLOR',
    'MAX_PRODUCT_IMAGES',
    'utcnow',
]
