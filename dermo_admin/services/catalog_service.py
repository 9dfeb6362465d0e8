# ==============================================================================
# SERVICIO DE CATÁLOGOS AUXILIARES
# ==============================================================================
# Categorías, subcategorías, marcas, etiquetas, estados de pedido y estados
# de carrusel. Todos comparten el mismo ciclo de vida (crear, renombrar,
# borrar) y las mismas reglas de nombre.
# ==============================================================================

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List

from dermo_admin.errors import NotFoundError, ValidationError
from dermo_admin.models import (
    Brand,
    CANCELLED_STATUS,
    CarouselType,
    Category,
    DEFAULT_COLOR,
    Label,
    OrderStatus,
    ProductCarouselState,
    Subcategory,
)
from dermo_admin.repositories.interfaces import IEntityRepository
from dermo_admin.services.product_service import normalize_text


logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')

# Nombre visible de cada catálogo (mensajes flash)
KIND_LABELS = {
    'categories': 'Categoría',
    'subcategories': 'Subcategoría',
    'brands': 'Marca',
    'labels': 'Propiedad',
    'order_statuses': 'Estado de pedido',
    'carousel_states': 'Estado de carrusel',
}


def parse_color(value: Any) -> str:
    """Color hex #rrggbb; vacío → color por defecto."""
    text = str(value or '').strip()
    if not text:
        return DEFAULT_COLOR
    if not text.startswith('#'):
        text = f"#{text}"
    if not HEX_COLOR.match(text):
        raise ValidationError(f"Color inválido: {value}")
    return text.lower()


class CatalogService:
    """
    Servicio para los catálogos editables desde Configuración.

    Cada catálogo se identifica por un "kind" (ver KIND_LABELS).
    """

    def __init__(self, repos: Dict[str, IEntityRepository]):
        """
        Args:
            repos: Repositorio por kind
        """
        self.repos = repos

    def _repo(self, kind: str) -> IEntityRepository:
        try:
            return self.repos[kind]
        except KeyError:
            raise NotFoundError(f"Catálogo desconocido: {kind}")

    def list_items(self, kind: str) -> List[Any]:
        return self._repo(kind).list_all()

    def list_subcategories(self, category_id: str) -> List[Subcategory]:
        return [s for s in self.list_items('subcategories') if s.category_id == category_id]

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def _clean_name(self, kind: str, name: Any) -> str:
        clean = str(name or '').strip()
        if not clean:
            raise ValidationError(f"El nombre de {KIND_LABELS[kind].lower()} es obligatorio.")
        return clean

    def _check_duplicate(self, kind: str, name: str, exclude_id: str = None, category_id: str = None):
        """
        Sin duplicados (sin distinguir mayúsculas ni acentos). Las
        subcategorías sólo se comparan dentro de su categoría.
        """
        wanted = normalize_text(name)
        for item in self.list_items(kind):
            if item.id == exclude_id:
                continue
            if category_id is not None and item.category_id != category_id:
                continue
            if normalize_text(item.name) == wanted:
                raise ValidationError(f"{KIND_LABELS[kind]} \"{name}\" ya existe.")

    @staticmethod
    def _check_protected(kind: str, item: Any) -> None:
        """El estado Cancelado no se renombra ni se borra."""
        if kind == 'order_statuses' and normalize_text(item.name) == normalize_text(CANCELLED_STATUS):
            raise ValidationError(f"El estado \"{CANCELLED_STATUS}\" no se puede modificar.")

    # =========================================================================
    # OPERACIONES
    # =========================================================================

    def create_item(self, kind: str, data: Dict[str, Any]) -> Any:
        """
        Crea un elemento de catálogo.

        Args:
            kind: Catálogo destino
            data: name y, según el catálogo, color, type o category_id

        Raises:
            ValidationError: nombre vacío o repetido, color inválido,
                categoría padre inexistente
        """
        repo = self._repo(kind)
        name = self._clean_name(kind, data.get('name'))

        if kind == 'subcategories':
            category_id = str(data.get('category_id') or '')
            if not category_id or self._repo('categories').get(category_id) is None:
                raise ValidationError("La subcategoría necesita una categoría existente.")
            self._check_duplicate(kind, name, category_id=category_id)
            entity = Subcategory(id='', name=name, category_id=category_id)
        else:
            self._check_duplicate(kind, name)
            entity = self._build(kind, name, data)

        created = repo.create(entity)
        logger.info("Alta en %s: %s", kind, created.name)
        return created

    @staticmethod
    def _build(kind: str, name: str, data: Dict[str, Any]) -> Any:
        if kind == 'categories':
            return Category(id='', name=name)
        if kind == 'brands':
            return Brand(id='', name=name)
        if kind == 'labels':
            return Label(id='', name=name, color=parse_color(data.get('color')))
        if kind == 'order_statuses':
            return OrderStatus(id='', name=name, color=parse_color(data.get('color')))
        try:
            carousel_type = CarouselType(str(data.get('type') or CarouselType.CAROUSEL.value).lower())
        except ValueError:
            raise ValidationError("El tipo debe ser carousel o banner.")
        return ProductCarouselState(id='', name=name, type=carousel_type, color=parse_color(data.get('color')))

    def rename_item(self, kind: str, item_id: str, new_name: str) -> Any:
        repo = self._repo(kind)
        current = repo.get(item_id)
        if current is None:
            raise NotFoundError(f"{KIND_LABELS[kind]}: elemento no encontrado.")
        self._check_protected(kind, current)
        name = self._clean_name(kind, new_name)
        category_id = current.category_id if kind == 'subcategories' else None
        self._check_duplicate(kind, name, exclude_id=current.id, category_id=category_id)
        updated = repo.update(replace(current, name=name))
        logger.info("Renombrado en %s: %s → %s", kind, current.name, name)
        return updated

    def delete_item(self, kind: str, item_id: str) -> None:
        """
        Borra un elemento. Borrar una categoría borra también sus
        subcategorías.
        """
        repo = self._repo(kind)
        current = repo.get(item_id)
        if current is None:
            raise NotFoundError(f"{KIND_LABELS[kind]}: elemento no encontrado.")
        self._check_protected(kind, current)
        if kind == 'categories':
            for sub in self.list_subcategories(item_id):
                self._repo('subcategories').delete(sub.id)
        if not repo.delete(item_id):
            raise NotFoundError(f"{KIND_LABELS[kind]}: elemento no encontrado.")
        logger.info("Baja en %s: %s", kind, item_id)
