# ==============================================================================
# dermo_admin - Panel administrativo de la tienda dermo-cosmética
# ==============================================================================
# Catálogo de productos, pedidos con ajuste de stock, catálogos auxiliares
# e importación CSV, sobre Supabase o almacenamiento en memoria.
# ==============================================================================

__version__ = '1.0.0'
