# ==============================================================================
# BACKEND EN MEMORIA
# ==============================================================================
# Implementaciones usadas cuando Supabase no está configurado. Los cambios
# se aplican de forma directa y síncrona y se pierden al reiniciar.
# ==============================================================================

import logging
import threading
from typing import Dict, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from dermo_admin.errors import AuthenticationError, NotFoundError
from dermo_admin.models import StoreSettings, StoredImage, utcnow
from dermo_admin.repositories.base import MemoryRepository, unique_storage_name
from dermo_admin.repositories import seed_data


logger = logging.getLogger(__name__)

MEMORY_URL_PREFIX = 'memory://'


class MemorySettingsRepository:
    """Fila única de ajustes en memoria."""

    def __init__(self, settings: StoreSettings = None):
        self._lock = threading.Lock()
        self._settings = settings or StoreSettings()

    def get_settings(self) -> StoreSettings:
        with self._lock:
            return StoreSettings(
                id=self._settings.id,
                hide_out_of_stock=self._settings.hide_out_of_stock,
                updated_at=self._settings.updated_at,
            )

    def update_settings(self, hide_out_of_stock: bool) -> StoreSettings:
        with self._lock:
            self._settings.hide_out_of_stock = bool(hide_out_of_stock)
            self._settings.updated_at = utcnow()
        return self.get_settings()


class MemoryImageStorage:
    """Guarda el contenido de las imágenes en un diccionario."""

    def __init__(self, bucket: str = 'product-images'):
        self.bucket = bucket
        self._files: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def upload(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        product_id: Optional[str] = None
    ) -> StoredImage:
        path = unique_storage_name(filename)
        with self._lock:
            self._files[path] = content
        url = f"{MEMORY_URL_PREFIX}{self.bucket}/{path}"
        return StoredImage(url=url, path=path, product_id=product_id)

    def delete(self, url: str) -> None:
        # URLs externas (datos sembrados, enlaces): sólo se quitan del producto
        if not url.startswith(MEMORY_URL_PREFIX):
            logger.debug("Imagen externa %s: no hay archivo que borrar", url)
            return
        path = url.rsplit('/', 1)[-1]
        with self._lock:
            if self._files.pop(path, None) is None:
                raise NotFoundError(f"Imagen {url} no encontrada")

    def exists(self, url: str) -> bool:
        with self._lock:
            return url.rsplit('/', 1)[-1] in self._files


class MemoryAuthGateway:
    """
    Autenticación local contra un único usuario configurado.

    La contraseña se guarda como hash (werkzeug), nunca en texto plano.
    """

    def __init__(self, email: str, password: str):
        self.email = email.strip().lower()
        self._password_hash = generate_password_hash(password)

    def sign_in(self, email: str, password: str) -> str:
        if email.strip().lower() != self.email or not check_password_hash(self._password_hash, password):
            raise AuthenticationError("Correo o contraseña incorrectos.")
        return self.email

    def sign_out(self) -> None:
        pass


def _by_name(entity):
    return entity.name.lower()


def _by_created(entity):
    return entity.created_at or utcnow()


def build_memory_backend(config):
    """
    Construye el backend en memoria sembrado con los datos de respaldo.

    Args:
        config: Config de la aplicación

    Returns:
        Backend con todas las implementaciones en memoria
    """
    # Importación local: backend.py importa este módulo
    from dermo_admin.repositories.backend import Backend

    data = seed_data.seed_all()
    logger.info("Supabase no configurado: usando almacenamiento en memoria")
    return Backend(
        products=MemoryRepository(data['products'], order_by=_by_created, descending=True),
        orders=MemoryRepository(data['orders'], order_by=_by_created, descending=True),
        categories=MemoryRepository(data['categories'], order_by=_by_name),
        subcategories=MemoryRepository(data['subcategories'], order_by=_by_name),
        brands=MemoryRepository(data['brands'], order_by=_by_name),
        labels=MemoryRepository(data['labels'], order_by=_by_name),
        order_statuses=MemoryRepository(data['order_statuses'], order_by=_by_name),
        carousel_states=MemoryRepository(data['product_carousel_states'], order_by=_by_name),
        settings=MemorySettingsRepository(),
        images=MemoryImageStorage(config.supabase_bucket),
        auth=MemoryAuthGateway(config.admin_email, config.admin_password),
        remote=False,
    )
