# backend/errors.py
"""Domain errors raised by services and translated to JSON responses in main.py."""
from typing import Any, Dict, Optional


class ShopError(Exception):
    status_code = 500
    code: Optional[str] = None
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None, **extra: Any):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        # Extra fields end up in the response body as camelCase keys (product_id -> productId)
        self.extra: Dict[str, Any] = {k: v for k, v in extra.items() if v is not None}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.code:
            body["code"] = self.code
        body.update({_camel(k): v for k, v in self.extra.items()})
        return body


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class InvalidInput(ShopError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(ShopError):
    status_code = 401
    default_message = "Could not validate credentials"


class Forbidden(ShopError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ShopError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class OutOfStock(ShopError):
    status_code = 409
    code = "OUT_OF_STOCK"
    default_message = "Out of stock"


class Conflict(ShopError):
    status_code = 409
    default_message = "Conflict"


class InvalidState(ShopError):
    status_code = 400
    default_message = "Invalid state"


class UpstreamFailure(ShopError):
    status_code = 500
    default_message = "Upstream service failure"


class SignatureInvalid(ShopError):
    status_code = 400
    default_message = "Webhook signature verification failed"
