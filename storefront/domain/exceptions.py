class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class NotFoundError(DomainException):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Товар не найден: {product_id}")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Заказ не найден: {order_id}")


class ForbiddenError(DomainException):
    pass


class InsufficientStockError(DomainException):
    def __init__(self, product_name: str, available: int, required: int):
        self.product_name = product_name
        self.available = available
        self.required = required
        super().__init__(
            f"Недостаточно товара {product_name}. Доступно: {available}, требуется: {required}"
        )


class InvalidStateError(DomainException):
    pass


class VerificationFailedError(DomainException):
    pass


class UnexpectedError(DomainException):
    pass


class PaymentGatewayError(UnexpectedError):
    pass
