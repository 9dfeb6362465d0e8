# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que deben cumplir los dos backends de almacenamiento:
#
# 1. MEMORIA   (memory_repository.py)   → sin Supabase configurado
# 2. SUPABASE  (supabase_repository.py) → tablas + storage remotos
#
# Los servicios dependen de estas interfaces, NO de implementaciones
# concretas. La elección del backend ocurre una sola vez en build_backend().
#
# ==============================================================================

from typing import List, Optional, Protocol, TypeVar, runtime_checkable

from dermo_admin.models import StoreSettings, StoredImage


T = TypeVar('T')


@runtime_checkable
class IEntityRepository(Protocol[T]):
    """
    Interfaz CRUD para una tabla de entidades identificadas por `id`.
    Usado por: productos, pedidos, categorías, subcategorías, marcas,
    etiquetas, estados de pedido y estados de carrusel.
    """

    def list_all(self) -> List[T]:
        """Obtiene todos los registros en el orden por defecto de la tabla."""
        ...

    def get(self, entity_id: str) -> Optional[T]:
        """Obtiene un registro por ID (None si no existe)."""
        ...

    def create(self, entity: T) -> T:
        """Inserta un registro y devuelve la versión persistida (con id)."""
        ...

    def update(self, entity: T) -> T:
        """Reemplaza un registro existente y devuelve la versión persistida."""
        ...

    def delete(self, entity_id: str) -> bool:
        """Elimina un registro. True si existía."""
        ...


@runtime_checkable
class ISettingsRepository(Protocol):
    """Fila única de ajustes de la tienda (tabla store_settings)."""

    def get_settings(self) -> StoreSettings:
        ...

    def update_settings(self, hide_out_of_stock: bool) -> StoreSettings:
        ...


@runtime_checkable
class IImageStorage(Protocol):
    """Almacenamiento de binarios de imagen; sólo se guarda la URL pública."""

    def upload(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        product_id: Optional[str] = None
    ) -> StoredImage:
        """Sube el archivo con un nombre único y devuelve URL + ruta."""
        ...

    def delete(self, url: str) -> None:
        """Borra el archivo asociado a una URL pública."""
        ...


@runtime_checkable
class IAuthGateway(Protocol):
    """Proveedor de autenticación externo."""

    def sign_in(self, email: str, password: str) -> str:
        """Valida credenciales y devuelve el identificador del usuario."""
        ...

    def sign_out(self) -> None:
        ...
