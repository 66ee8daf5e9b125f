import logging
import uuid
from pathlib import Path
from starlette.concurrency import run_in_threadpool

from storefront.domain.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
MAX_IMAGE_SIZE = 5 * 1024 * 1024


class LocalImageStorage:
    """Хранит загруженные изображения на диске и отдаёт URL вида /uploads/<uuid><ext>"""

    def __init__(self, upload_dir: str, url_prefix: str = "/uploads"):
        self._upload_dir = Path(upload_dir)
        self._url_prefix = url_prefix.rstrip("/") + "/"
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    async def save(self, filename: str, content_type: str, data: bytes) -> str:
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError("Неверный тип файла. Разрешены только JPEG, JPG, PNG и WEBP.")
        if len(data) > MAX_IMAGE_SIZE:
            raise ValidationError("Размер файла превышает 5MB")

        stored_name = f"{uuid.uuid4()}{Path(filename).suffix.lower()}"
        await run_in_threadpool((self._upload_dir / stored_name).write_bytes, data)
        logger.info(f"Изображение сохранено: {stored_name}")
        return f"{self._url_prefix}{stored_name}"

    async def delete(self, url: str) -> None:
        # Внешние URL не трогаем
        if not url or not url.startswith(self._url_prefix):
            return

        name = Path(url[len(self._url_prefix):]).name
        path = self._upload_dir / name
        await run_in_threadpool(path.unlink, missing_ok=True)
        logger.info(f"Изображение удалено: {name}")
