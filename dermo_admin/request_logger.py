# ==============================================================================
# LOGGING Y PROFILING DE RUTAS
# ==============================================================================
# Configura el logging de la aplicación y mide el tiempo de cada petición
# sin afectar la experiencia del usuario.
#
# - Logger "dermo_admin"              → mensajes de la aplicación
# - Logger "dermo_admin.performance"  → tiempos de rutas y funciones
#
# Con LOG_DIR definido se escriben además archivos rotativos en esa carpeta.
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from functools import wraps
from logging.handlers import RotatingFileHandler

from flask import g, request, session


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

perf_logger = logging.getLogger('dermo_admin.performance')

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    # Autenticación
    'POST /login': 'Iniciar sesión',
    'GET /logout': 'Cerrar sesión',

    # Productos
    'GET /products': 'Ver productos',
    'POST /products/new': 'Crear producto',
    'POST /products/<product_id>/edit': 'Editar producto',
    'POST /products/<product_id>/duplicate': 'Duplicar producto',
    'POST /products/<product_id>/delete': 'Eliminar producto',
    'POST /products/bulk-update': 'Edición múltiple de productos',
    'POST /products/delete-all': 'Eliminar todos los productos',
    'POST /products/import': 'Importar productos CSV',
    'POST /products/<product_id>/images': 'Subir imagen',

    # Pedidos
    'GET /orders': 'Ver pedidos',
    'POST /orders/new': 'Crear pedido',
    'POST /orders/<order_id>/edit': 'Editar pedido',
    'POST /orders/<order_id>/status': 'Cambiar estado de pedido',
    'POST /orders/<order_id>/delete': 'Eliminar pedido',

    # Configuración
    'GET /settings': 'Ver configuración',
}


# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZACIÓN DEL LOGGING
# ═══════════════════════════════════════════════════════════════════════════

def configure_logging(level: str = 'INFO', log_dir: str = '') -> None:
    """
    Configura el logger raíz de la aplicación.

    Args:
        level: Nivel de logging (DEBUG, INFO, WARNING...)
        log_dir: Carpeta para archivos rotativos (vacío = sólo consola)
    """
    app_logger = logging.getLogger('dermo_admin')
    app_logger.setLevel(level)

    if not any(isinstance(h, logging.StreamHandler) for h in app_logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(console)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        _add_file_handler(app_logger, os.path.join(log_dir, 'app.log'))
        _add_file_handler(perf_logger, os.path.join(log_dir, 'performance.log'))


def _add_file_handler(target: logging.Logger, path: str) -> None:
    for handler in target.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == os.path.abspath(path):
            return
    handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=5, encoding='utf-8')
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    target.addHandler(handler)


def _get_route_name(method, path, rule=None):
    """
    Obtiene nombre legible para una ruta.
    Intenta con la regla de Flask y luego con la ruta; si no, la ruta raw.
    """
    for candidate in (rule, path):
        if candidate and f"{method} {candidate}" in ROUTE_NAMES:
            return ROUTE_NAMES[f"{method} {candidate}"]
    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_request_logging(app):
    """
    Inicializa logging + profiling en una app Flask.
    Registra hooks before_request y after_request.
    """
    @app.before_request
    def _start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        if not hasattr(g, 'start_time') or request.path.startswith('/static'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        action = _get_route_name(request.method, request.path, rule)
        user = session.get('user') or 'anónimo'

        if elapsed >= THRESHOLD_CRITICAL:
            level = logging.ERROR
        elif elapsed >= THRESHOLD_WARNING:
            level = logging.WARNING
        else:
            level = logging.DEBUG
        perf_logger.log(
            level, "%s | %s | %s %s | %d | %.0f ms",
            action, user, request.method, request.path, response.status_code, elapsed
        )
        return response


# ═══════════════════════════════════════════════════════════════════════════
# DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Guardar pedido")
        def update_order():
            ...
    """
    def decorator(fn):
        func_name = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    stats['max_time'] = max(stats['max_time'], elapsed_ms)
                if elapsed_ms >= THRESHOLD_WARNING:
                    severity = 'CRÍTICO' if elapsed_ms >= THRESHOLD_CRITICAL else 'LENTO'
                    perf_logger.warning("[%s] %s: %.0f ms", severity, func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()
