from __future__ import annotations

import logging
import uuid

import httpx

from almacen.core.config import get_settings
from almacen.core.errors import DependencyError, ValidationError


logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def public_url(bucket: str, path: str) -> str:
    settings = get_settings()
    if not settings.storage_url:
        return f"local://{bucket}/{path}"
    return f"{settings.storage_url.rstrip('/')}/storage/v1/object/public/{bucket}/{path}"


def path_from_url(bucket: str, url: str) -> str | None:
    marker = f"{bucket}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    return url[idx + len(marker):]


async def upload_image(bucket: str, owner_prefix: str, content: bytes, content_type: str) -> str:
    if not content:
        raise ValidationError("Imagen vacia")
    if len(content) > MAX_IMAGE_BYTES:
        raise ValidationError("La imagen supera el tamano permitido")
    extension = ALLOWED_CONTENT_TYPES.get(content_type)
    if not extension:
        raise ValidationError("Formato de imagen no soportado")

    path = f"{owner_prefix}/{uuid.uuid4()}.{extension}"
    settings = get_settings()
    if not settings.storage_url:
        logger.info("Storage not configured, simulated upload to %s/%s", bucket, path)
        return public_url(bucket, path)

    url = f"{settings.storage_url.rstrip('/')}/storage/v1/object/{bucket}/{path}"
    headers = {"Authorization": f"Bearer {settings.storage_api_key}", "Content-Type": content_type}
    try:
        async with httpx.AsyncClient(timeout=15) as client:
            response = await client.post(url, content=content, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise DependencyError("Servicio de almacenamiento no disponible") from exc
    return public_url(bucket, path)


async def delete_image(bucket: str, image_url: str) -> bool:
    """Revoke a stored image. Failures are logged and reported as False."""
    if not image_url:
        return False
    path = path_from_url(bucket, image_url)
    if not path:
        return False

    settings = get_settings()
    if not settings.storage_url:
        return True

    url = f"{settings.storage_url.rstrip('/')}/storage/v1/object/{bucket}"
    headers = {"Authorization": f"Bearer {settings.storage_api_key}"}
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.request("DELETE", url, json={"prefixes": [path]}, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Could not delete image %s from %s: %s", path, bucket, exc)
        return False
    return True
