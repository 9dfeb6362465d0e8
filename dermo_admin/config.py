# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================
# Toda la configuración se lee de variables de entorno (o de un archivo .env
# en el directorio de trabajo). Si SUPABASE_URL y SUPABASE_KEY no están
# definidas la aplicación arranca con el almacenamiento en memoria.
# ==============================================================================

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from dermo_admin.errors import ConfigurationError


DEFAULT_BUCKET = 'product-images'
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'si', 'sí', 'on')


def _to_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value not in (None, '') else default
    except ValueError:
        raise ConfigurationError(f"Valor entero inválido en configuración: {value!r}")


@dataclass
class Config:
    """
    Configuración de la aplicación.

    Attributes:
        secret_key: Clave para firmar la sesión de Flask
        supabase_url: URL del proyecto Supabase (vacío = modo memoria)
        supabase_key: Clave anónima/servicio de Supabase
        supabase_bucket: Bucket de almacenamiento para imágenes
        admin_email: Usuario del modo memoria
        admin_password: Contraseña del modo memoria
        log_level: Nivel de logging
        log_dir: Carpeta para logs en archivo (vacío = sólo consola)
        products_per_page: Tamaño de página del listado de productos
        orders_per_page: Tamaño de página del listado de pedidos
        max_image_bytes: Tamaño máximo de imagen subida
        testing: Modo pruebas (Flask TESTING)
    """
    secret_key: str = 'dev-secret-change-me'
    supabase_url: str = ''
    supabase_key: str = ''
    supabase_bucket: str = DEFAULT_BUCKET
    admin_email: str = 'admin@tienda.local'
    admin_password: str = 'admin'
    log_level: str = 'INFO'
    log_dir: str = ''
    products_per_page: int = 12
    orders_per_page: int = 20
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    testing: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def supabase_configured(self) -> bool:
        """True si hay credenciales para el backend remoto."""
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None, dotenv: bool = True) -> 'Config':
        """
        Construye la configuración desde variables de entorno.

        Args:
            environ: Diccionario de entorno (por defecto os.environ)
            dotenv: Si True carga primero el archivo .env
        """
        if dotenv and environ is None:
            load_dotenv()
        env = os.environ if environ is None else environ

        return cls(
            secret_key=env.get('SECRET_KEY', cls.secret_key),
            supabase_url=env.get('SUPABASE_URL', '').strip(),
            supabase_key=env.get('SUPABASE_KEY', '').strip(),
            supabase_bucket=env.get('SUPABASE_BUCKET', DEFAULT_BUCKET),
            admin_email=env.get('ADMIN_EMAIL', cls.admin_email),
            admin_password=env.get('ADMIN_PASSWORD', cls.admin_password),
            log_level=env.get('LOG_LEVEL', 'INFO').upper(),
            log_dir=env.get('LOG_DIR', ''),
            products_per_page=_to_int(env.get('PRODUCTS_PER_PAGE'), 12),
            orders_per_page=_to_int(env.get('ORDERS_PER_PAGE'), 20),
            max_image_bytes=_to_int(env.get('MAX_IMAGE_BYTES'), DEFAULT_MAX_IMAGE_BYTES),
            testing=_to_bool(env.get('TESTING')),
        )

    def flask_settings(self) -> Dict[str, Any]:
        """Valores que se copian a app.config."""
        return {
            'SECRET_KEY': self.secret_key,
            'TESTING': self.testing,
            'MAX_CONTENT_LENGTH': self.max_image_bytes + 1024 * 1024,
            **self.extra,
        }
