# ==============================================================================
# SERVICIO DE AJUSTES Y PREFERENCIAS
# ==============================================================================
# - Preferencias de interfaz (modo oscuro, ocultar agotados): cookies
#   del navegador, leídas en cada petición.
# - Ajuste de tienda (store_settings): fila única que lee la tienda
#   pública; se sincroniza al alternar "ocultar agotados".
# ==============================================================================

import logging
from dataclasses import dataclass
from typing import Mapping

from dermo_admin.models import StoreSettings
from dermo_admin.repositories.interfaces import ISettingsRepository


logger = logging.getLogger(__name__)

THEME_COOKIE = 'theme'
HIDE_OUT_OF_STOCK_COOKIE = 'hide_out_of_stock'
COOKIE_MAX_AGE = 365 * 24 * 60 * 60


@dataclass
class Preferences:
    dark_mode: bool = False
    hide_out_of_stock: bool = False

    def cookies(self) -> dict:
        """Valores a escribir en las cookies."""
        return {
            THEME_COOKIE: 'dark' if self.dark_mode else 'light',
            HIDE_OUT_OF_STOCK_COOKIE: '1' if self.hide_out_of_stock else '0',
        }


class SettingsService:
    """Preferencias de interfaz y ajustes de la tienda."""

    def __init__(self, settings_repo: ISettingsRepository):
        self.settings_repo = settings_repo

    @staticmethod
    def read_preferences(cookies: Mapping[str, str]) -> Preferences:
        return Preferences(
            dark_mode=cookies.get(THEME_COOKIE) == 'dark',
            hide_out_of_stock=cookies.get(HIDE_OUT_OF_STOCK_COOKIE) == '1',
        )

    def toggle_dark_mode(self, cookies: Mapping[str, str]) -> Preferences:
        prefs = self.read_preferences(cookies)
        prefs.dark_mode = not prefs.dark_mode
        return prefs

    def toggle_hide_out_of_stock(self, cookies: Mapping[str, str]) -> Preferences:
        """
        Alterna la preferencia y la replica en store_settings.

        Raises:
            RepositoryError: si falla la escritura remota (la cookie no cambia)
        """
        prefs = self.read_preferences(cookies)
        prefs.hide_out_of_stock = not prefs.hide_out_of_stock
        self.settings_repo.update_settings(prefs.hide_out_of_stock)
        logger.info("Ocultar agotados: %s", 'sí' if prefs.hide_out_of_stock else 'no')
        return prefs

    def get_store_settings(self) -> StoreSettings:
        return self.settings_repo.get_settings()
