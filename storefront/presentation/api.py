import json
import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from storefront.database import AsyncSessionLocal
from storefront.presentation.auth import get_current_user, require_admin
from storefront.presentation.schemas import (
    CreateOrderRequest, CancelOrderRequest, UpdateOrderStatusRequest, OrderResponse,
    ProductResponse, CreatePaymentOrderRequest, VerifyPaymentRequest, VerifyPaymentResponse,
    MessageResponse, ErrorResponse
)
from storefront.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.update_order_status import UpdateOrderStatusUseCase
from storefront.application.get_order import GetOrderUseCase, ListOrdersUseCase
from storefront.application.process_payment import (
    CreatePaymentOrderUseCase, CreatePaymentOrderDTO, VerifyPaymentUseCase, VerifyPaymentDTO
)
from storefront.application.catalog import (
    ListProductsUseCase, GetProductUseCase, CreateProductUseCase, UpdateProductUseCase,
    DeleteProductUseCase, ProductFilterDTO, ProductDataDTO, ImageUpload
)
from storefront.domain.models import Requester
from storefront.domain.exceptions import (
    ValidationError, NotFoundError, ForbiddenError, InsufficientStockError,
    InvalidStateError, VerificationFailedError, UnexpectedError
)
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.http_clients import HTTPPaymentGatewayClient
from storefront.infrastructure.image_storage import LocalImageStorage, MAX_IMAGE_SIZE
from storefront.config import settings

logger = logging.getLogger(__name__)

products_router = APIRouter(prefix="/products", tags=["products"])
orders_router = APIRouter(prefix="/orders", tags=["orders"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# Фабрики зависимостей
def get_unit_of_work() -> UnitOfWork:
    return UnitOfWork(AsyncSessionLocal)


@lru_cache
def get_image_storage() -> LocalImageStorage:
    return LocalImageStorage(settings.UPLOADS_DIR)


def get_payment_gateway() -> HTTPPaymentGatewayClient:
    return HTTPPaymentGatewayClient(
        settings.PAYMENT_GATEWAY_BASE_URL,
        settings.PAYMENT_GATEWAY_KEY_ID,
        settings.PAYMENT_GATEWAY_KEY_SECRET
    )


def get_verify_payment_use_case(uow: UnitOfWork = Depends(get_unit_of_work)) -> VerifyPaymentUseCase:
    return VerifyPaymentUseCase(
        uow, settings.PAYMENT_GATEWAY_KEY_SECRET, settings.PAYMENT_GATEWAY_NAME
    )


def server_error(e: Exception) -> HTTPException:
    logger.error(f"Ошибка сервера: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Ошибка сервера: {str(e)}")


# ---------- Products ----------

def _parse_list(value: Optional[str]) -> Optional[list[str]]:
    if value is None or value == "":
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        # Допускаем простой список через запятую
        parsed = [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(parsed, list):
        raise ValidationError("Ожидается список значений")
    return [str(v) for v in parsed]


def _parse_product_form(
    name: Optional[str],
    description: Optional[str],
    price: Optional[str],
    category: Optional[str],
    stock: Optional[str],
    sizes: Optional[str],
    colors: Optional[str],
    featured: Optional[str],
    image_url: Optional[str],
) -> ProductDataDTO:
    try:
        parsed_price = Decimal(price) if price not in (None, "") else None
        parsed_stock = int(stock) if stock not in (None, "") else None
    except (InvalidOperation, ValueError):
        raise ValidationError("Цена и остаток должны быть числами")
    return ProductDataDTO(
        name=name or None,
        description=description,
        price=parsed_price,
        category=category or None,
        stock=parsed_stock,
        sizes=_parse_list(sizes),
        colors=_parse_list(colors),
        featured=(featured == "true") if featured is not None else None,
        image_url=image_url or None
    )


async def _read_upload(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    if image is None or not image.filename:
        return None
    # Читаем не больше лимита плюс один байт, чтобы не держать в памяти большой файл
    data = await image.read(MAX_IMAGE_SIZE + 1)
    if len(data) > MAX_IMAGE_SIZE:
        raise ValidationError("Размер файла превышает 5MB")
    return ImageUpload(
        filename=image.filename,
        content_type=image.content_type or "",
        data=data
    )


@products_router.get("", response_model=list[ProductResponse])
async def list_products(
    category: Optional[str] = None,
    featured: Optional[str] = None,
    search: Optional[str] = None,
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Каталог с фильтрами по категории, избранным и названию"""
    try:
        filters = ProductFilterDTO(category=category, featured=featured == "true", search=search)
        products = await ListProductsUseCase(uow)(filters)
        return [ProductResponse.from_domain(p) for p in products]
    except Exception as e:
        raise server_error(e)


@products_router.get("/{product_id}", response_model=ProductResponse, responses=ERROR_RESPONSES)
async def get_product(product_id: str, uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        product = await GetProductUseCase(uow)(product_id)
        return ProductResponse.from_domain(product)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise server_error(e)


@products_router.post(
    "",
    response_model=ProductResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_product(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    stock: Optional[str] = Form(None),
    sizes: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    featured: Optional[str] = Form(None),
    imageUrl: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    requester: Requester = Depends(require_admin),
    uow: UnitOfWork = Depends(get_unit_of_work),
    storage: LocalImageStorage = Depends(get_image_storage)
):
    """Создать товар (только администратор)"""
    try:
        data = _parse_product_form(
            name, description, price, category, stock, sizes, colors, featured, imageUrl
        )
        product = await CreateProductUseCase(uow, storage)(requester, data, await _read_upload(image))
        return ProductResponse.from_domain(product)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        raise server_error(e)


@products_router.put("/{product_id}", response_model=ProductResponse, responses=ERROR_RESPONSES)
async def update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    stock: Optional[str] = Form(None),
    sizes: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    featured: Optional[str] = Form(None),
    imageUrl: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    requester: Requester = Depends(require_admin),
    uow: UnitOfWork = Depends(get_unit_of_work),
    storage: LocalImageStorage = Depends(get_image_storage)
):
    """Обновить товар (только администратор)"""
    try:
        data = _parse_product_form(
            name, description, price, category, stock, sizes, colors, featured, imageUrl
        )
        product = await UpdateProductUseCase(uow, storage)(
            requester, product_id, data, await _read_upload(image)
        )
        return ProductResponse.from_domain(product)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise server_error(e)


@products_router.delete("/{product_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_product(
    product_id: str,
    requester: Requester = Depends(require_admin),
    uow: UnitOfWork = Depends(get_unit_of_work),
    storage: LocalImageStorage = Depends(get_image_storage)
):
    """Удалить товар вместе с изображением (только администратор)"""
    try:
        await DeleteProductUseCase(uow, storage)(requester, product_id)
        return MessageResponse(message="Товар удалён")
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise server_error(e)


# ---------- Orders ----------

@orders_router.get("", response_model=list[OrderResponse], responses=ERROR_RESPONSES)
async def list_orders(
    requester: Requester = Depends(require_admin),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Все заказы (только администратор)"""
    try:
        orders = await ListOrdersUseCase(uow)()
        return [OrderResponse.from_domain(o) for o in orders]
    except Exception as e:
        raise server_error(e)


@orders_router.get("/my-orders", response_model=list[OrderResponse])
async def list_my_orders(
    requester: Requester = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    try:
        orders = await ListOrdersUseCase(uow)(user_id=requester.id)
        return [OrderResponse.from_domain(o) for o in orders]
    except Exception as e:
        raise server_error(e)


@orders_router.get("/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    requester: Requester = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Получить заказ по ID (владелец или администратор)"""
    try:
        order = await GetOrderUseCase(uow)(requester, order_id)
        return OrderResponse.from_domain(order)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        raise server_error(e)


@orders_router.post(
    "",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    requester: Requester = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Создать новый заказ"""
    try:
        dto = CreateOrderDTO(
            items=[
                OrderLineDTO(
                    product_id=line.product,
                    quantity=line.quantity,
                    size=line.size,
                    color=line.color
                )
                for line in request.items
            ],
            shipping_address=request.shipping_address,
            payment_method=request.payment_method
        )
        order = await CreateOrderUseCase(uow, settings.PAYMENT_GATEWAY_NAME)(requester, dto)
        return OrderResponse.from_domain(order)

    except (ValidationError, InsufficientStockError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise server_error(e)


@orders_router.put("/{order_id}/status", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    requester: Requester = Depends(require_admin),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Сменить статус заказа (только администратор)"""
    try:
        order = await UpdateOrderStatusUseCase(uow)(order_id, request.status, request.reason)
        return OrderResponse.from_domain(order)
    except InvalidStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise server_error(e)


@orders_router.put("/{order_id}/cancel", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    requester: Requester = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work)
):
    """Отменить заказ с возвратом товара на склад"""
    try:
        order = await CancelOrderUseCase(uow)(requester, order_id, request.reason)
        return OrderResponse.from_domain(order)
    except (ValidationError, InvalidStateError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise server_error(e)


# ---------- Payments ----------

@payments_router.post("/create-order", responses=ERROR_RESPONSES)
async def create_payment_order(
    request: CreatePaymentOrderRequest,
    requester: Requester = Depends(get_current_user),
    gateway: HTTPPaymentGatewayClient = Depends(get_payment_gateway)
):
    """Создать заказ в платёжном шлюзе"""
    try:
        dto = CreatePaymentOrderDTO(
            amount=request.amount or Decimal("0"),
            currency=request.currency,
            receipt=request.receipt
        )
        return await CreatePaymentOrderUseCase(gateway)(dto)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UnexpectedError as e:
        raise HTTPException(status_code=500, detail=f"Ошибка платежа: {str(e)}")
    except Exception as e:
        raise server_error(e)


@payments_router.post("/verify", response_model=VerifyPaymentResponse, responses=ERROR_RESPONSES)
async def verify_payment(
    request: VerifyPaymentRequest,
    requester: Requester = Depends(get_current_user),
    use_case: VerifyPaymentUseCase = Depends(get_verify_payment_use_case)
):
    """Проверка подписи платежа и обновление заказа"""
    try:
        dto = VerifyPaymentDTO(
            gateway_order_id=request.razorpay_order_id or "",
            gateway_payment_id=request.razorpay_payment_id or "",
            signature=request.razorpay_signature or "",
            order_id=request.order_id
        )
        return VerifyPaymentResponse(**await use_case(dto))
    except (ValidationError, VerificationFailedError, InvalidStateError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise server_error(e)
