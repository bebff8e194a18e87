"""
Request bodies accepted by the JSON endpoints.

Product create/update take multipart form fields instead, see
``nepshop.routers.products``.
"""

from typing import Optional

from pydantic import BaseModel, Field

from nepshop.models import OrderStatus, PaymentMethod


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None


class CategoryRequest(BaseModel):
    name: Optional[str] = None


class CartAddRequest(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class CartUpdateRequest(BaseModel):
    quantity: int = Field(..., ge=1)


class CheckoutRequest(BaseModel):
    delivery_address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    payment_method: PaymentMethod


class OrderStatusRequest(BaseModel):
    order_status: OrderStatus
