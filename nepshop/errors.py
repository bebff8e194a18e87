import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ShopError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class CartEmptyError(ShopError):
    def __init__(self):
        super().__init__("Cart is empty")


class InsufficientStockError(ShopError):
    """Raised when one or more cart lines ask for more than is in stock.

    ``products`` holds the names of the offending products so the message
    can list all of them at once.
    """

    def __init__(self, products):
        self.products = list(products)
        super().__init__(f"Insufficient stock for {', '.join(self.products)}")


def error_response(status_code, message):
    return JSONResponse(status_code=status_code, content={"error": message})


def _format_validation_error(exc):
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "form"))
    return f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        response = error_response(exc.status_code, exc.detail)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, _format_validation_error(exc))

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error")
