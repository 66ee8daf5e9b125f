import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, ValidationError as SchemaValidationError
from typing import Optional

from storefront.domain.models import Product, Requester
from storefront.domain.exceptions import ValidationError, ProductNotFoundError
from storefront.domain.policies import ensure_admin
from storefront.application.interfaces import ImageStorage

logger = logging.getLogger(__name__)


class ImageUpload(BaseModel):
    filename: str
    content_type: str
    data: bytes


class ProductFilterDTO(BaseModel):
    category: Optional[str] = None
    featured: Optional[bool] = None
    search: Optional[str] = None


class ProductDataDTO(BaseModel):
    """Поля товара; в update None означает «не менять»"""
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    sizes: Optional[list[str]] = None
    colors: Optional[list[str]] = None
    featured: Optional[bool] = None
    image_url: Optional[str] = None


def _build_product(**fields) -> Product:
    try:
        return Product(**fields)
    except SchemaValidationError as e:
        raise ValidationError(f"Некорректные данные товара: {e.error_count()} ошибок") from e


class ListProductsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, filters: ProductFilterDTO) -> list[Product]:
        async with self._uow() as uow:
            return await uow.products.find(
                category=filters.category,
                featured=filters.featured,
                search=filters.search
            )


class GetProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(product_id)
            return product


class CreateProductUseCase:
    def __init__(self, unit_of_work, image_storage: ImageStorage):
        self._uow = unit_of_work
        self._images = image_storage

    async def __call__(
        self, requester: Requester, data: ProductDataDTO, image: Optional[ImageUpload] = None
    ) -> Product:
        ensure_admin(requester)
        if not data.name or not data.category or data.price is None:
            raise ValidationError("Необходимо указать название, категорию и цену")

        if image:
            image_url = await self._images.save(image.filename, image.content_type, image.data)
        elif data.image_url:
            image_url = data.image_url
        else:
            raise ValidationError("Необходимо загрузить изображение или указать его URL")

        now = datetime.now(timezone.utc)
        try:
            product = _build_product(
                id=str(uuid.uuid4()),
                name=data.name,
                description=data.description or "",
                price=data.price,
                category=data.category,
                image_url=image_url,
                stock=data.stock or 0,
                sizes=data.sizes or [],
                colors=data.colors or [],
                featured=bool(data.featured),
                created_at=now,
                updated_at=now
            )
            async with self._uow() as uow:
                await uow.products.create(product)
                await uow.commit()
        except Exception:
            # Загруженный файл без товара не нужен
            if image:
                await self._images.delete(image_url)
            raise

        logger.info(f"Товар создан: {product.id} ({product.name})")
        return product


class UpdateProductUseCase:
    def __init__(self, unit_of_work, image_storage: ImageStorage):
        self._uow = unit_of_work
        self._images = image_storage

    async def __call__(
        self,
        requester: Requester,
        product_id: str,
        data: ProductDataDTO,
        image: Optional[ImageUpload] = None
    ) -> Product:
        ensure_admin(requester)

        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(product_id)

            old_image_url = product.image_url
            if image:
                image_url = await self._images.save(image.filename, image.content_type, image.data)
            elif data.image_url:
                image_url = data.image_url
            else:
                image_url = old_image_url

            try:
                # Только явно заданные поля: остаток без stock в запросе не трогаем
                changes = data.model_dump(exclude_none=True, exclude={"image_url"})
                changes["image_url"] = image_url
                changes["updated_at"] = datetime.now(timezone.utc)
                merged = _build_product(**{**product.model_dump(), **changes})

                await uow.products.update(product_id, merged.model_dump(include=set(changes)))
                updated = await uow.products.get_by_id(product_id)
                if not updated:
                    raise ProductNotFoundError(product_id)
                await uow.commit()
            except Exception:
                # Новый файл без сохранённого товара не нужен
                if image:
                    await self._images.delete(image_url)
                raise

        if image and old_image_url and old_image_url != image_url:
            await self._images.delete(old_image_url)

        logger.info(f"Товар обновлён: {product_id}")
        return updated


class DeleteProductUseCase:
    def __init__(self, unit_of_work, image_storage: ImageStorage):
        self._uow = unit_of_work
        self._images = image_storage

    async def __call__(self, requester: Requester, product_id: str) -> None:
        ensure_admin(requester)

        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(product_id)
            await uow.products.delete(product_id)
            await uow.commit()

        if product.image_url:
            await self._images.delete(product.image_url)
        logger.info(f"Товар удалён: {product_id}")
