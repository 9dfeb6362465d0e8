# ==============================================================================
# ESTADO DE LA APLICACIÓN - Servicios + modelos de lectura en caché
# ==============================================================================
# Un AppState por aplicación Flask (app.extensions["dermo_admin"]), no un
# singleton global: cada create_app() (y cada prueba) tiene el suyo.
#
# Las vistas leen de las cachés. Las mutaciones pasan por los servicios y
# sólo tocan la caché cuando el servicio terminó bien; si falla, la caché
# conserva su último valor bueno y la excepción sube a la ruta.
# ==============================================================================

import logging
import threading
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from dermo_admin.errors import RepositoryError
from dermo_admin.models import Order, Product
from dermo_admin.repositories import Backend
from dermo_admin.services import (
    AuthService,
    BulkResult,
    CatalogService,
    CsvImportService,
    ImageService,
    ImportResult,
    OrderService,
    ProductService,
    SettingsService,
)


logger = logging.getLogger(__name__)

CATALOG_KINDS = ('categories', 'subcategories', 'brands', 'labels',
                 'order_statuses', 'carousel_states')


class AppState:
    """
    Contenedor de servicios y cachés de lectura.

    Uso:
        state = AppState(backend, config)
        state.load()
        products = state.products
    """

    def __init__(self, backend: Backend, config):
        """
        Args:
            backend: Repositorios elegidos por build_backend()
            config: Config de la aplicación
        """
        self.backend = backend
        self.config = config
        self._lock = threading.RLock()

        # Servicios (lazy loading)
        self._product_service: Optional[ProductService] = None
        self._order_service: Optional[OrderService] = None
        self._catalog_service: Optional[CatalogService] = None
        self._csv_import_service: Optional[CsvImportService] = None
        self._image_service: Optional[ImageService] = None
        self._settings_service: Optional[SettingsService] = None
        self._auth_service: Optional[AuthService] = None

        # Cachés
        self.products: List[Product] = []
        self.orders: List[Order] = []
        self.catalogs: Dict[str, List[Any]] = {kind: [] for kind in CATALOG_KINDS}
        self.loaded = False

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def product_service(self) -> ProductService:
        if self._product_service is None:
            self._product_service = ProductService(self.backend.products)
        return self._product_service

    @property
    def order_service(self) -> OrderService:
        if self._order_service is None:
            self._order_service = OrderService(
                self.backend.orders, self.backend.products, self.backend.order_statuses
            )
        return self._order_service

    @property
    def catalog_service(self) -> CatalogService:
        if self._catalog_service is None:
            self._catalog_service = CatalogService({
                kind: getattr(self.backend, kind) for kind in CATALOG_KINDS
            })
        return self._catalog_service

    @property
    def csv_import_service(self) -> CsvImportService:
        if self._csv_import_service is None:
            self._csv_import_service = CsvImportService(self.backend.products)
        return self._csv_import_service

    @property
    def image_service(self) -> ImageService:
        if self._image_service is None:
            self._image_service = ImageService(self.backend.images, self.config.max_image_bytes)
        return self._image_service

    @property
    def settings_service(self) -> SettingsService:
        if self._settings_service is None:
            self._settings_service = SettingsService(self.backend.settings)
        return self._settings_service

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            self._auth_service = AuthService(self.backend.auth)
        return self._auth_service

    # =========================================================================
    # CARGA
    # =========================================================================

    def load(self) -> None:
        """Llena todas las cachés desde el backend."""
        with self._lock:
            self.reload_products()
            self.reload_orders()
            for kind in CATALOG_KINDS:
                self.reload_catalog(kind)
            self.loaded = True
        logger.info(
            "Datos cargados (%s): %d productos, %d pedidos",
            'supabase' if self.backend.remote else 'memoria', len(self.products), len(self.orders)
        )

    def ensure_loaded(self) -> None:
        if not self.loaded:
            self.load()

    def reload_products(self) -> None:
        self.products = self.product_service.list_products()

    def reload_orders(self) -> None:
        self.orders = self.order_service.list_orders()

    def reload_catalog(self, kind: str) -> None:
        self.catalogs[kind] = self.catalog_service.list_items(kind)

    def _refresh(self, *reloads: Callable[[], None]) -> None:
        """
        Recarga cachés después de una mutación ya guardada. Si la lectura
        falla la mutación sigue siendo válida: se registra el error y la
        próxima petición vuelve a cargar todo.
        """
        with self._lock:
            try:
                for reload in reloads:
                    reload()
            except RepositoryError as exc:
                logger.error("No se pudo refrescar la caché: %s", exc)
                self.loaded = False

    def find_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    # =========================================================================
    # PRODUCTOS
    # =========================================================================

    def _replace_product(self, product: Product) -> None:
        self.products = [product if p.id == product.id else p for p in self.products]

    def create_product(self, data: Dict[str, Any]) -> Product:
        product = self.product_service.create_product(data)
        with self._lock:
            self.products = [product] + self.products
        return product

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Product:
        product = self.product_service.update_product(product_id, data)
        with self._lock:
            self._replace_product(product)
        return product

    def duplicate_product(self, product_id: str) -> Product:
        product = self.product_service.duplicate_product(product_id)
        with self._lock:
            self.products = [product] + self.products
        return product

    def delete_product(self, product_id: str) -> None:
        self.product_service.delete_product(product_id)
        with self._lock:
            self.products = [p for p in self.products if p.id != product_id]

    def bulk_update_products(self, product_ids: List[str], updates: Dict[str, Any]) -> BulkResult:
        result = self.product_service.bulk_update_products(product_ids, updates)
        self._refresh(self.reload_products)
        return result

    def delete_all_products(self) -> BulkResult:
        result = self.product_service.delete_all_products()
        self._refresh(self.reload_products)
        return result

    def import_products(self, text: str) -> ImportResult:
        result = self.csv_import_service.import_products(text)
        self._refresh(self.reload_products)
        return result

    def add_product_image(self, product_id: str, filename: str, content: bytes, content_type: str) -> str:
        product = self.product_service.get_product(product_id)
        url = self.image_service.upload_image(filename, content, content_type, product=product)
        saved = self.product_service.save_product(product.copy(images=product.images + [url]))
        with self._lock:
            self._replace_product(saved)
        return url

    def remove_product_image(self, product_id: str, url: str) -> None:
        product = self.product_service.get_product(product_id)
        saved = self.product_service.save_product(
            product.copy(images=[image for image in product.images if image != url])
        )
        with self._lock:
            self._replace_product(saved)
        self.image_service.delete_image(url)

    # =========================================================================
    # PEDIDOS (cambian el stock: se recargan pedidos y productos)
    # =========================================================================

    def _after_order_change(self) -> None:
        self._refresh(self.reload_orders, self.reload_products)

    def create_order(self, items, status_name=None, discount=0, **customer) -> Order:
        order = self.order_service.create_order(items, status_name, discount, **customer)
        self._after_order_change()
        return order

    def update_order(self, order_id: str, items=None, status_name=None, discount=None, **customer) -> Order:
        order = self.order_service.update_order(order_id, items, status_name, discount, **customer)
        self._after_order_change()
        return order

    def update_order_status(self, order_id: str, status_name: str) -> Order:
        order = self.order_service.update_order_status(order_id, status_name)
        self._after_order_change()
        return order

    def delete_order(self, order_id: str) -> None:
        self.order_service.delete_order(order_id)
        self._after_order_change()

    # =========================================================================
    # CATÁLOGOS
    # =========================================================================

    def create_catalog_item(self, kind: str, data: Dict[str, Any]) -> Any:
        item = self.catalog_service.create_item(kind, data)
        self._refresh(partial(self.reload_catalog, kind))
        return item

    def rename_catalog_item(self, kind: str, item_id: str, name: str) -> Any:
        item = self.catalog_service.rename_item(kind, item_id, name)
        self._refresh(partial(self.reload_catalog, kind))
        return item

    def delete_catalog_item(self, kind: str, item_id: str) -> None:
        self.catalog_service.delete_item(kind, item_id)
        reloads = [partial(self.reload_catalog, kind)]
        if kind == 'categories':
            reloads.append(partial(self.reload_catalog, 'subcategories'))
        self._refresh(*reloads)
