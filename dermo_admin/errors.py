# ==============================================================================
# EXCEPCIONES DEL DOMINIO
# ==============================================================================
# Los servicios lanzan estas excepciones; las rutas las capturan, las
# registran en el log y las muestran al usuario como mensaje flash.
# ==============================================================================


class DermoAdminError(Exception):
    """Error base de la aplicación. El mensaje es apto para mostrar al usuario."""
    pass


class ValidationError(DermoAdminError):
    """Datos de formulario inválidos (nombre vacío, precio <= 0, etc.)."""
    pass


class NotFoundError(DermoAdminError):
    """La entidad solicitada no existe."""
    pass


class InsufficientStockError(ValidationError):
    """Se pidió más cantidad de la disponible para un producto."""

    def __init__(self, product_name: str, requested: int, available: int):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Stock insuficiente para {product_name}. "
            f"Solicitado: {requested}, Disponible: {available}"
        )


class RepositoryError(DermoAdminError):
    """Falla del almacenamiento (red, validación remota, etc.)."""
    pass


class AuthenticationError(DermoAdminError):
    """Credenciales rechazadas por el proveedor de autenticación."""
    pass


class ConfigurationError(DermoAdminError):
    """Configuración incompleta o inconsistente."""
    pass
