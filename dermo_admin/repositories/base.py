# ==============================================================================
# REPOSITORIO BASE - Tabla en memoria
# ==============================================================================

import copy
import os
import random
import string
import threading
import time
import uuid
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from dermo_admin.errors import NotFoundError
from dermo_admin.models import utcnow


T = TypeVar('T')


def new_id() -> str:
    """Identificador para registros creados sin backend remoto."""
    return uuid.uuid4().hex


def unique_storage_name(filename: str) -> str:
    """
    Genera un nombre único para un archivo subido conservando la extensión.

    Formato: "<milisegundos>-<aleatorio>.<ext>"
    """
    ext = os.path.splitext(filename or '')[1].lstrip('.').lower() or 'bin'
    token = ''.join(random.choices(string.ascii_lowercase + string.digits, k=11))
    return f"{int(time.time() * 1000)}-{token}.{ext}"


class MemoryRepository(Generic[T]):
    """
    Tabla en memoria indexada por `entity.id`.

    Se usa cuando Supabase no está configurado. Todas las lecturas y
    escrituras devuelven copias para que el llamador no pueda alterar el
    almacenamiento sin pasar por update().

    Concurrencia: un único RLock por tabla protege las operaciones.
    """

    def __init__(
        self,
        records: Iterable[T] = (),
        order_by: Callable[[T], Any] = None,
        descending: bool = False
    ):
        """
        Args:
            records: Registros iniciales (datos de respaldo)
            order_by: Clave de ordenamiento de list_all()
            descending: Orden descendente
        """
        self._lock = threading.RLock()
        self._data: Dict[str, T] = {}
        self._order_by = order_by
        self._descending = descending
        for record in records:
            self._data[str(record.id)] = copy.deepcopy(record)

    def list_all(self) -> List[T]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._data.values()]
        if self._order_by is not None:
            records.sort(key=self._order_by, reverse=self._descending)
        return records

    def get(self, entity_id: str) -> Optional[T]:
        with self._lock:
            record = self._data.get(str(entity_id))
            return copy.deepcopy(record) if record is not None else None

    def create(self, entity: T) -> T:
        record = copy.deepcopy(entity)
        if not getattr(record, 'id', None):
            record.id = new_id()
        now = utcnow()
        if hasattr(record, 'created_at') and record.created_at is None:
            record.created_at = now
        if hasattr(record, 'updated_at') and record.updated_at is None:
            record.updated_at = now
        with self._lock:
            self._data[str(record.id)] = record
        return copy.deepcopy(record)

    def update(self, entity: T) -> T:
        record = copy.deepcopy(entity)
        with self._lock:
            if str(record.id) not in self._data:
                raise NotFoundError(f"Registro {record.id} no encontrado")
            if hasattr(record, 'updated_at'):
                record.updated_at = utcnow()
            self._data[str(record.id)] = record
        return copy.deepcopy(record)

    def delete(self, entity_id: str) -> bool:
        with self._lock:
            return self._data.pop(str(entity_id), None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
