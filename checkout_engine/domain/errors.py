# checkout_engine/domain/errors.py


class CheckoutError(Exception):
    """
    Bazowy błąd domeny.
    code trafia do odpowiedzi HTTP jako error.code, status_code jako status.
    """

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidRequestError(CheckoutError):
    code = "invalid_request"
    status_code = 400


class NotFoundError(CheckoutError):
    code = "not_found"
    status_code = 404


class ConflictError(CheckoutError):
    code = "conflict"
    status_code = 409


class InsufficientInventoryError(CheckoutError):
    code = "insufficient_inventory"
    status_code = 409

    def __init__(self, sku: str):
        super().__init__(f"Insufficient inventory for SKU: {sku}")
        self.sku = sku

    def to_dict(self) -> dict:
        return {**super().to_dict(), "sku": self.sku}


class PaymentGatewayError(InvalidRequestError):
    code = "payment_gateway_error"

    def __init__(self, message: str = "Payment processing error. Please try again."):
        super().__init__(message)
