# ==============================================================================
# SELECCIÓN DE BACKEND
# ==============================================================================
# Se decide UNA vez al arrancar: Supabase si hay credenciales, memoria si no.
# El resto de la aplicación sólo ve las interfaces agrupadas en Backend.
# ==============================================================================

from dataclasses import dataclass

from dermo_admin.repositories.interfaces import (
    IAuthGateway,
    IEntityRepository,
    IImageStorage,
    ISettingsRepository,
)


@dataclass
class Backend:
    """Conjunto de repositorios de un backend de almacenamiento."""
    products: IEntityRepository
    orders: IEntityRepository
    categories: IEntityRepository
    subcategories: IEntityRepository
    brands: IEntityRepository
    labels: IEntityRepository
    order_statuses: IEntityRepository
    carousel_states: IEntityRepository
    settings: ISettingsRepository
    images: IImageStorage
    auth: IAuthGateway
    remote: bool = False


def build_backend(config, client=None) -> Backend:
    """
    Elige la implementación según la configuración.

    Args:
        config: Config de la aplicación
        client: Cliente Supabase ya construido (opcional, para pruebas)
    """
    if client is not None or config.supabase_configured:
        from dermo_admin.repositories.supabase_repository import build_supabase_backend
        return build_supabase_backend(config, client)

    from dermo_admin.repositories.memory import build_memory_backend
    return build_memory_backend(config)
