# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia.
#
# ESTRUCTURA:
# ├── interfaces.py          → Protocolos (contratos comunes)
# ├── base.py                → Tabla genérica en memoria
# ├── memory.py              → Backend en memoria (sin Supabase)
# ├── seed_data.py           → Datos de respaldo del backend en memoria
# ├── supabase_repository.py → Backend Supabase (tablas, storage, auth)
# └── backend.py             → Backend + build_backend()
#
# Los services NO conocen la implementación: dependen de las interfaces.
# ==============================================================================

from dermo_admin.repositories.interfaces import (
    IEntityRepository,
    ISettingsRepository,
    IImageStorage,
    IAuthGateway,
)
from dermo_admin.repositories.base import MemoryRepository
from dermo_admin.repositories.memory import (
    MemorySettingsRepository,
    MemoryImageStorage,
    MemoryAuthGateway,
    build_memory_backend,
)
from dermo_admin.repositories.backend import Backend, build_backend

__all__ = [
    # Interfaces
    'IEntityRepository',
    'ISettingsRepository',
    'IImageStorage',
    'IAuthGateway',

    # Memoria
    'MemoryRepository',
    'MemorySettingsRepository',
    'MemoryImageStorage',
    'MemoryAuthGateway',
    'build_memory_backend',

    # Selección
    'Backend',
    'build_backend',
]
