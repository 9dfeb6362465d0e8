# ==============================================================================
# SERVICIO DE IMÁGENES
# ==============================================================================

import logging
from typing import Optional

from dermo_admin.errors import ValidationError
from dermo_admin.models import MAX_PRODUCT_IMAGES, Product
from dermo_admin.repositories.interfaces import IImageStorage


logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/webp', 'image/gif')
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class ImageService:
    """Valida y sube imágenes de productos; sólo se guarda la URL pública."""

    def __init__(self, storage: IImageStorage, max_bytes: int = MAX_IMAGE_BYTES):
        self.storage = storage
        self.max_bytes = max_bytes

    def validate(self, filename: str, content: bytes, content_type: str) -> None:
        """
        Raises:
            ValidationError: tipo no permitido, archivo vacío o muy grande
        """
        if (content_type or '').lower() not in ALLOWED_CONTENT_TYPES:
            raise ValidationError("Tipo de archivo no válido. Use JPG, PNG, WEBP o GIF.")
        if not content:
            raise ValidationError(f"El archivo {filename} está vacío.")
        if len(content) > self.max_bytes:
            limit_mb = self.max_bytes / (1024 * 1024)
            raise ValidationError(f"La imagen supera el tamaño máximo de {limit_mb:.0f} MB.")

    def upload_image(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        product: Optional[Product] = None
    ) -> str:
        """
        Sube una imagen y devuelve su URL pública.

        Args:
            product: Si se indica, se verifica el máximo de imágenes por producto
        """
        self.validate(filename, content, content_type)
        if product is not None and len(product.images) >= MAX_PRODUCT_IMAGES:
            raise ValidationError(f"Un producto admite como máximo {MAX_PRODUCT_IMAGES} imágenes.")
        stored = self.storage.upload(filename, content, content_type,
                                     product_id=product.id if product else None)
        logger.info("Imagen subida: %s", stored.url)
        return stored.url

    def delete_image(self, url: str) -> None:
        self.storage.delete(url)
        logger.info("Imagen eliminada: %s", url)
