# ==============================================================================
# SERVICIOS - Lógica de negocio
# ==============================================================================

from dermo_admin.services.auth_service import AuthService
from dermo_admin.services.catalog_service import CatalogService, KIND_LABELS
from dermo_admin.services.csv_import_service import CsvImportService, ImportResult
from dermo_admin.services.image_service import ImageService
from dermo_admin.services.order_service import OrderService, OrderTotals, calculate_totals
from dermo_admin.services.product_service import BulkResult, Page, ProductService, paginate
from dermo_admin.services.settings_service import Preferences, SettingsService

__all__ = [
    'AuthService',
    'BulkResult',
    'CatalogService',
    'CsvImportService',
    'ImageService',
    'ImportResult',
    'KIND_LABELS',
    'OrderService',
    'OrderTotals',
    'Page',
    'Preferences',
    'ProductService',
    'SettingsService',
    'calculate_totals',
    'paginate',
]
