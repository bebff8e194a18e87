from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from nepshop.database import get_db
from nepshop.models import Order, OrderItem, OrderStatus, Product
from nepshop.security import require_admin

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(require_admin)])


def _money(value):
    return round(float(value or 0), 2)


def _day_bounds(day: date):
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def _month_bounds(year: int, month: int):
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


@router.get("/summary", summary="Overall sales summary")
def sales_summary(db: Session = Depends(get_db)):
    row = db.query(
        func.count(Order.id),
        func.sum(Order.total_amount),
        func.sum(case((Order.status == OrderStatus.DELIVERED, Order.total_amount), else_=0)),
        func.sum(case((Order.status == OrderStatus.PENDING, 1), else_=0)),
        func.sum(case((Order.status == OrderStatus.CONFIRMED, 1), else_=0)),
    ).one()
    total_orders, total_sales, completed_sales, pending, confirmed = row
    return {
        "total_orders": total_orders or 0,
        "total_sales": _money(total_sales),
        "completed_sales": _money(completed_sales),
        "pending_orders": int(pending or 0),
        "confirmed_orders": int(confirmed or 0),
    }


@router.get("/daily", summary="Sales for one day")
def daily_sales(day: Optional[date] = Query(None, alias="date"), db: Session = Depends(get_db)):
    day = day or datetime.now(timezone.utc).date()
    start, end = _day_bounds(day)
    order_count, total_sales = (
        db.query(func.count(Order.id), func.sum(Order.total_amount))
        .filter(Order.created_at >= start, Order.created_at < end)
        .one()
    )
    return {"sale_date": day.isoformat(), "order_count": order_count or 0, "total_sales": _money(total_sales)}


@router.get("/monthly", summary="Per-day sales for one month")
def monthly_sales(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970),
    db: Session = Depends(get_db),
):
    now = datetime.now(timezone.utc)
    start, end = _month_bounds(year or now.year, month or now.month)
    sale_date = func.date(Order.created_at)
    rows = (
        db.query(sale_date.label("sale_date"), func.count(Order.id), func.sum(Order.total_amount))
        .filter(Order.created_at >= start, Order.created_at < end)
        .group_by(sale_date)
        .order_by(sale_date)
        .all()
    )
    return [
        {"sale_date": str(day), "order_count": count, "total_sales": _money(total)}
        for day, count, total in rows
    ]


@router.get("/top-products", summary="Best selling products")
def top_products(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    total_sold = func.sum(OrderItem.quantity)
    rows = (
        db.query(
            Product.id,
            Product.name,
            total_sold.label("total_sold"),
            func.sum(OrderItem.quantity * OrderItem.price).label("total_revenue"),
        )
        .join(OrderItem, OrderItem.product_id == Product.id)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.status != OrderStatus.CANCELLED)
        .group_by(Product.id, Product.name)
        .order_by(total_sold.desc())
        .limit(limit)
        .all()
    )
    return [
        {"product_id": pid, "name": name, "total_sold": int(sold), "total_revenue": _money(revenue)}
        for pid, name, sold, revenue in rows
    ]
