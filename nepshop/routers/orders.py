import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload, selectinload

from nepshop.checkout import place_order
from nepshop.database import get_db
from nepshop.models import Order, OrderItem, OrderStatus, PaymentMethod, Role, User
from nepshop.schemas import CheckoutRequest, OrderStatusRequest
from nepshop.security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def order_to_dict(order: Order):
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_amount": order.total_amount,
        "payment_method": PaymentMethod(order.payment_method).value,
        "order_status": OrderStatus(order.status).value,
        "delivery_address": order.delivery_address,
        "phone": order.phone,
        "created_at": order.created_at,
    }


def item_summary(order: Order):
    return ", ".join(
        f"{item.quantity}x {item.product.name if item.product else 'Removed product'}" for item in order.items
    )


def _order_query(db: Session):
    return db.query(Order).options(selectinload(Order.items).joinedload(OrderItem.product))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Place an order from the cart")
def create_order(request: CheckoutRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    order = place_order(db, user, request.delivery_address, request.phone, request.payment_method)
    return {"message": "Order placed successfully", "order_id": order.id, "total_amount": order.total_amount}


@router.get("/my-orders", summary="List the current user's orders")
def my_orders(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    orders = _order_query(db).filter(Order.user_id == user.id).order_by(Order.created_at.desc(), Order.id.desc()).all()
    return [{**order_to_dict(order), "items": item_summary(order)} for order in orders]


@router.get("", summary="List all orders")
def list_orders(
    status: Optional[OrderStatus] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(Order).options(joinedload(Order.user))
    if status is not None:
        query = query.filter(Order.status == status)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return [
        {**order_to_dict(order), "customer_name": order.user.name, "customer_phone": order.user.phone}
        for order in orders
    ]


@router.get("/{order_id}", summary="Get an order with its items")
def get_order(order_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    query = _order_query(db).filter(Order.id == order_id)
    if user.role != Role.ADMIN:
        query = query.filter(Order.user_id == user.id)
    order = query.first()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    items = [
        {
            "product_id": item.product_id,
            "name": item.product.name if item.product else None,
            "image": item.product.image if item.product else None,
            "quantity": item.quantity,
            "price": item.price,
        }
        for item in order.items
    ]
    return {**order_to_dict(order), "items": items}


@router.put("/{order_id}/status", summary="Update the status of an order")
def update_order_status(
    order_id: int,
    request: OrderStatusRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    order.status = request.order_status
    db.commit()
    logger.info("Order %s moved to %s", order_id, request.order_status.value)
    return {"message": "Order status updated successfully"}
