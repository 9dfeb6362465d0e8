# ==============================================================================
# IMPORTACIÓN DE PRODUCTOS DESDE CSV
# ==============================================================================
# Formato esperado:
#   - Primera línea: cabecera (nombres en español o inglés, sin importar
#     mayúsculas ni acentos)
#   - Cada línea no vacía siguiente: un producto
#   - Separador: coma, SIN soporte de comillas (un valor con comas rompe
#     la fila)
#   - Listas (categorías, imágenes...): separadas por ";" o "|"
# ==============================================================================

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from dermo_admin.errors import DermoAdminError
from dermo_admin.models import Product, ProductStatus
from dermo_admin.repositories.interfaces import IEntityRepository
from dermo_admin.request_logger import profile_function
from dermo_admin.services.product_service import normalize_text


logger = logging.getLogger(__name__)

DEFAULT_NAME = 'Producto sin nombre'

# campo del modelo → alias aceptados en la cabecera (ya normalizados)
COLUMN_ALIASES = {
    'name': ('name', 'nombre', 'title', 'titulo', 'producto'),
    'price': ('price', 'precio', 'regular_price', 'precio_regular'),
    'sale_price': ('sale_price', 'precio_oferta', 'offer_price', 'oferta'),
    'categories': ('category', 'categories', 'categoria', 'categorias'),
    'subcategories': ('subcategory', 'subcategories', 'subcategoria', 'subcategorias'),
    'brand': ('brand', 'marca'),
    'label': ('label', 'etiqueta', 'propiedad'),
    'carousel_state': ('carousel_state', 'carrusel', 'carousel'),
    'stock': ('stock', 'cantidad', 'inventario'),
    'track_stock': ('track_stock', 'controlar_stock', 'control_stock'),
    'status': ('status', 'estado'),
    'images': ('images', 'image', 'imagenes', 'imagen'),
    'short_description': ('short_description', 'descripcion_corta'),
    'long_description': ('long_description', 'description', 'descripcion', 'descripcion_larga'),
    'usage': ('usage', 'uso', 'modo_de_uso', 'usage_instructions'),
    'ingredients': ('ingredients', 'ingredientes'),
}

LIST_FIELDS = ('categories', 'subcategories', 'images')
TRUE_VALUES = ('1', 'true', 'si', 'yes', 'x', 'verdadero')


@dataclass
class ImportResult:
    """Resultado de una importación."""
    created: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


def _header_key(value: str) -> str:
    return re.sub(r'[\s\-]+', '_', normalize_text(value))


def map_header(header_line: str) -> Dict[int, str]:
    """
    Relaciona cada columna de la cabecera con un campo del modelo.
    Columnas desconocidas se ignoran.

    Returns:
        {índice_columna: campo}
    """
    lookup = {alias: name for name, aliases in COLUMN_ALIASES.items() for alias in aliases}
    mapping = {}
    for index, column in enumerate(header_line.split(',')):
        field_name = lookup.get(_header_key(column))
        if field_name and field_name not in mapping.values():
            mapping[index] = field_name
    return mapping


def _number(value: str, default=0.0) -> float:
    """Convierte un texto en número; nan, inf o desbordes toman el valor por defecto."""
    try:
        result = float(value.replace('$', '').strip())
    except ValueError:
        return default
    return result if math.isfinite(result) else default


def row_to_product(values: List[str], mapping: Dict[int, str]) -> Product:
    """
    Construye un producto con una fila ya dividida. Los valores ausentes o
    no numéricos toman el valor por defecto; nunca lanza por datos.
    """
    raw: Dict[str, str] = {}
    for index, field_name in mapping.items():
        if index < len(values):
            raw[field_name] = values[index].strip()

    sale_price = _number(raw['sale_price'], None) if raw.get('sale_price') else None
    product = Product(
        id='',
        name=raw.get('name') or DEFAULT_NAME,
        price=_number(raw.get('price', '')),
        sale_price=sale_price if sale_price else None,
        stock=max(0, int(_number(raw.get('stock', ''), 0))),
        track_stock=raw.get('track_stock', '').lower() in TRUE_VALUES,
        status=ProductStatus.parse(raw.get('status'), ProductStatus.ACTIVO),
    )
    for field_name in LIST_FIELDS:
        if raw.get(field_name):
            setattr(product, field_name, [v.strip() for v in re.split(r'[;|]', raw[field_name]) if v.strip()])
    for field_name in ('brand', 'label', 'carousel_state', 'short_description',
                       'long_description', 'usage', 'ingredients'):
        if raw.get(field_name):
            setattr(product, field_name, raw[field_name])
    return product


class CsvImportService:
    """Alta masiva de productos a partir de texto CSV."""

    def __init__(self, product_repo: IEntityRepository):
        self.product_repo = product_repo

    def parse(self, text: str) -> List[Product]:
        """Convierte el CSV en productos sin persistirlos."""
        lines = [line for line in (text or '').splitlines() if line.strip()]
        if not lines:
            return []
        mapping = map_header(lines[0])
        return [row_to_product(line.split(','), mapping) for line in lines[1:]]

    @profile_function(name="Importar CSV")
    def import_products(self, text: str) -> ImportResult:
        """
        Crea un producto por cada fila de datos, en secuencia.

        Un fallo en una fila no detiene las siguientes; se cuenta y se
        registra en el resultado.
        """
        result = ImportResult()
        for row_number, product in enumerate(self.parse(text), start=2):
            try:
                self.product_repo.create(product)
                result.created += 1
            except DermoAdminError as exc:
                logger.warning("Fila %d no importada: %s", row_number, exc)
                result.failed += 1
                result.errors.append(f"Fila {row_number}: {exc}")
        logger.info("Importación CSV: %d creados, %d fallidos", result.created, result.failed)
        return result
