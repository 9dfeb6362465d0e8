# ==============================================================================
# DATOS DE RESPALDO
# ==============================================================================
# Conjunto inicial para el almacenamiento en memoria (Supabase no
# configurado). Cada llamada devuelve objetos nuevos.
# ==============================================================================

from datetime import datetime, timezone
from typing import Dict, List

from dermo_admin.models import (
    Brand,
    CarouselType,
    Category,
    Label,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductCarouselState,
    ProductStatus,
    Subcategory,
)


def _date(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def seed_categories() -> List[Category]:
    return [
        Category(id="1", name="Cuidado Facial"),
        Category(id="2", name="Cuidado Corporal"),
        Category(id="3", name="Protección Solar"),
        Category(id="4", name="Anti-Edad"),
    ]


def seed_subcategories() -> List[Subcategory]:
    return [
        Subcategory(id="1", name="Limpiadores", category_id="1"),
        Subcategory(id="2", name="Hidratantes", category_id="1"),
        Subcategory(id="3", name="Serums", category_id="1"),
        Subcategory(id="4", name="Cremas Corporales", category_id="2"),
        Subcategory(id="5", name="Exfoliantes", category_id="2"),
        Subcategory(id="6", name="Protector SPF 50+", category_id="3"),
        Subcategory(id="7", name="Cremas Antiarrugas", category_id="4"),
    ]


def seed_brands() -> List[Brand]:
    return [
        Brand(id="1", name="La Roche-Posay"),
        Brand(id="2", name="Bioderma"),
        Brand(id="3", name="CeraVe"),
        Brand(id="4", name="Avène"),
        Brand(id="5", name="Eucerin"),
    ]


def seed_labels() -> List[Label]:
    return [
        Label(id="1", name="Nuevo", color="#22c55e"),
        Label(id="2", name="Bestseller", color="#3b82f6"),
        Label(id="3", name="Oferta", color="#ef4444"),
        Label(id="4", name="Agotado", color="#6b7280"),
    ]


def seed_order_statuses() -> List[OrderStatus]:
    return [
        OrderStatus(id="1", name="Pendiente", color="#f59e0b"),
        OrderStatus(id="2", name="Procesando", color="#3b82f6"),
        OrderStatus(id="3", name="Enviado", color="#8b5cf6"),
        OrderStatus(id="4", name="Entregado", color="#22c55e"),
        OrderStatus(id="5", name="Cancelado", color="#ef4444"),
    ]


def seed_carousel_states() -> List[ProductCarouselState]:
    return [
        ProductCarouselState(id="1", name="Destacados", type=CarouselType.CAROUSEL, color="#3b82f6"),
        ProductCarouselState(id="2", name="Banner principal", type=CarouselType.BANNER, color="#f59e0b"),
    ]


def seed_products() -> List[Product]:
    return [
        Product(
            id="1",
            name="Effaclar Duo+ Crema",
            price=185.5,
            categories=["Cuidado Facial"],
            subcategories=["Hidratantes"],
            brand="La Roche-Posay",
            label="Bestseller",
            short_description="Tratamiento corrector para imperfecciones",
            long_description=(
                "Effaclar Duo (+) es un tratamiento corrector desobstruyente "
                "anti-imperfecciones anti-marcas. Corrige las imperfecciones "
                "severas y previene su reaparición."
            ),
            usage="Aplicar por la mañana y/o por la noche sobre el rostro limpio.",
            ingredients="Aqua, Glycerin, Dimethicone, Isocetyl Stearate, Niacinamide...",
            images=["https://images.unsplash.com/photo-1556228720-195a672e8a03?w=400"],
            track_stock=True,
            stock=25,
            status=ProductStatus.ACTIVO,
            created_at=_date(2024, 1, 15),
            updated_at=_date(2024, 1, 15),
        ),
        Product(
            id="2",
            name="Sensibio H2O Agua Micelar",
            price=120.0,
            sale_price=99.0,
            categories=["Cuidado Facial"],
            subcategories=["Limpiadores"],
            brand="Bioderma",
            label="Nuevo",
            short_description="Agua micelar desmaquillante para pieles sensibles",
            long_description=(
                "La primera y única agua dermatológica micelar perfectamente "
                "compatible con la piel. Limpia, desmaquilla y calma la piel."
            ),
            usage="Empapar un disco de algodón y limpiar el rostro, ojos y labios.",
            ingredients="Aqua, PEG-6 Caprylic/Capric Glycerides, Fructooligosaccharides...",
            images=["https://images.unsplash.com/photo-1570194065650-d99fb4b38b15?w=400"],
            track_stock=True,
            stock=15,
            status=ProductStatus.ACTIVO,
            created_at=_date(2024, 2, 1),
            updated_at=_date(2024, 2, 1),
        ),
        Product(
            id="3",
            name="Crema Hidratante Facial",
            price=95.0,
            categories=["Cuidado Facial"],
            subcategories=["Hidratantes"],
            brand="CeraVe",
            label="Oferta",
            short_description="Hidratación 24h con ceramidas esenciales",
            long_description=(
                "Crema hidratante desarrollada con dermatólogos para pieles secas "
                "a muy secas. Contiene 3 ceramidas esenciales y ácido hialurónico."
            ),
            usage="Aplicar sobre el rostro y cuerpo según sea necesario.",
            ingredients="Aqua, Glycerin, Cetearyl Alcohol, Caprylic/Capric Triglyceride...",
            images=["https://images.unsplash.com/photo-1611930022073-b7a4ba5fcccd?w=400"],
            track_stock=True,
            stock=0,
            status=ProductStatus.AGOTADO,
            created_at=_date(2024, 1, 20),
            updated_at=_date(2024, 1, 25),
        ),
    ]


def _item(product_id: str, name: str, quantity: int, price: float) -> OrderItem:
    return OrderItem(product_id=product_id, name=name, quantity=quantity, price=price)


def seed_orders() -> List[Order]:
    return [
        Order(
            id="ORD-001",
            order_number="ORD-1000",
            customer_name="Cliente Administrador",
            customer_phone="N/A",
            items=[
                _item("1", "Effaclar Duo+ Crema", 2, 185.5),
                _item("2", "Sensibio H2O Agua Micelar", 1, 120.0),
            ],
            subtotal=491.0,
            discount=0.0,
            product_discounts=21.0,
            total=470.0,
            status="Pendiente",
            status_id="1",
            created_at=_date(2024, 3, 1),
            updated_at=_date(2024, 3, 1),
        ),
        Order(
            id="ORD-002",
            order_number="ORD-1001",
            customer_name="Cliente Administrador",
            customer_phone="N/A",
            items=[_item("3", "Crema Hidratante Facial", 3, 95.0)],
            subtotal=285.0,
            discount=28.5,
            product_discounts=0.0,
            total=256.5,
            status="Enviado",
            status_id="3",
            created_at=_date(2024, 2, 28),
            updated_at=_date(2024, 3, 2),
        ),
        Order(
            id="ORD-003",
            order_number="ORD-1002",
            customer_name="Cliente Administrador",
            customer_phone="N/A",
            items=[_item("1", "Effaclar Duo+ Crema", 1, 185.5)],
            subtotal=185.5,
            discount=0.0,
            product_discounts=0.0,
            total=185.5,
            status="Entregado",
            status_id="4",
            created_at=_date(2024, 2, 25),
            updated_at=_date(2024, 3, 1),
        ),
    ]


def seed_all() -> Dict[str, list]:
    """Todas las tablas, indexadas por nombre de tabla remota."""
    return {
        'products': seed_products(),
        'orders': seed_orders(),
        'categories': seed_categories(),
        'subcategories': seed_subcategories(),
        'brands': seed_brands(),
        'labels': seed_labels(),
        'order_statuses': seed_order_statuses(),
        'product_carousel_states': seed_carousel_states(),
    }
