# ==============================================================================
# SERVICIO DE AUTENTICACIÓN
# ==============================================================================

import logging

from dermo_admin.errors import AuthenticationError, ValidationError
from dermo_admin.repositories.interfaces import IAuthGateway


logger = logging.getLogger(__name__)


class AuthService:
    """Inicio y cierre de sesión delegados en el proveedor configurado."""

    def __init__(self, gateway: IAuthGateway):
        self.gateway = gateway

    def login(self, email: str, password: str) -> str:
        """
        Valida credenciales.

        Returns:
            Identificador del usuario autenticado

        Raises:
            ValidationError: correo o contraseña vacíos
            AuthenticationError: credenciales rechazadas
        """
        email = (email or '').strip()
        if not email or not password:
            raise ValidationError("Ingrese correo y contraseña.")
        try:
            user = self.gateway.sign_in(email, password)
        except AuthenticationError:
            logger.warning("Inicio de sesión rechazado para %s", email)
            raise
        logger.info("Sesión iniciada: %s", user)
        return user

    def logout(self, user: str = None) -> None:
        self.gateway.sign_out()
        logger.info("Sesión cerrada: %s", user or 'anónimo')
