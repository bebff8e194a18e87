"""
Order placement.

Turns a user's cart into an order in one database transaction:

1. load the cart lines joined with their products, fail if there are none;
2. check every line against the current stock and report all short lines
   together, nothing is written if any line is short;
3. price the order from the current product prices;
4. insert the order, its items (with the unit price captured), decrement the
   stock and empty the cart;
5. commit, or roll everything back on any failure.

The stock decrement is a guarded ``UPDATE ... WHERE stock_quantity >= qty`` so
a concurrent checkout that drained the stock after step 2 makes this one fail
and roll back instead of driving the stock negative.
"""

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from nepshop.errors import CartEmptyError, InsufficientStockError
from nepshop.models import CartItem, Order, OrderItem, OrderStatus, PaymentMethod, Product, User

logger = logging.getLogger(__name__)


def load_cart_lines(db: Session, user_id: int):
    stmt = (
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.id)
    )
    return db.execute(stmt).all()


def find_short_lines(lines):
    return [product.name for item, product in lines if product.stock_quantity < item.quantity]


def order_total(lines):
    return round(sum(product.price * item.quantity for item, product in lines), 2)


def _insert_order(db, user_id, total, payment_method, delivery_address, phone):
    order = Order(
        user_id=user_id,
        total_amount=total,
        payment_method=payment_method,
        status=OrderStatus.PENDING,
        delivery_address=delivery_address,
        phone=phone,
    )
    db.add(order)
    db.flush()
    return order


def _insert_items(db, order, lines):
    for item, product in lines:
        db.add(OrderItem(order_id=order.id, product_id=product.id, quantity=item.quantity, price=product.price))
    db.flush()


def _decrement_stock(db, lines):
    short = []
    for item, product in lines:
        result = db.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock_quantity >= item.quantity)
            .values(stock_quantity=Product.stock_quantity - item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            short.append(product.name)
    if short:
        raise InsufficientStockError(short)


def _clear_cart(db, user_id):
    db.execute(delete(CartItem).where(CartItem.user_id == user_id).execution_options(synchronize_session=False))


def place_order(db: Session, user: User, delivery_address: str, phone: str, payment_method: PaymentMethod):
    lines = load_cart_lines(db, user.id)
    if not lines:
        raise CartEmptyError()

    short = find_short_lines(lines)
    if short:
        raise InsufficientStockError(short)

    total = order_total(lines)

    try:
        order = _insert_order(db, user.id, total, payment_method, delivery_address, phone)
        _insert_items(db, order, lines)
        _decrement_stock(db, lines)
        _clear_cart(db, user.id)
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Order placement rolled back for user %s", user.id, exc_info=True)
        raise

    logger.info("Order %s placed by user %s, total %.2f", order.id, user.id, total)
    return order
