from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nepshop.checkout import load_cart_lines
from nepshop.database import get_db
from nepshop.models import CartItem, Product, User
from nepshop.schemas import CartAddRequest, CartUpdateRequest
from nepshop.security import get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])


def _insufficient_stock():
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient stock")


def _get_own_item_or_404(db: Session, item_id: int, user: User):
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user.id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")
    return item


def _find_line(db: Session, user_id: int, product_id: int):
    return db.query(CartItem).filter(CartItem.user_id == user_id, CartItem.product_id == product_id).first()


def _merge_line(db: Session, user: User, product: Product, quantity: int):
    """Add ``quantity`` to the user's line for ``product``; return (line, created)."""
    item = _find_line(db, user.id, product.id)
    wanted = quantity + (item.quantity if item else 0)
    if wanted > product.stock_quantity:
        raise _insufficient_stock()

    if item:
        item.quantity = wanted
        db.commit()
        return item, False

    item = CartItem(user_id=user.id, product_id=product.id, quantity=quantity)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item, True


@router.get("", summary="Get the current user's cart")
def get_cart(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [
        {
            "id": item.id,
            "quantity": item.quantity,
            "product_id": product.id,
            "name": product.name,
            "price": product.price,
            "image": product.image,
            "stock_quantity": product.stock_quantity,
        }
        for item, product in load_cart_lines(db, user.id)
    ]


@router.post("", status_code=status.HTTP_201_CREATED, summary="Add a product to the cart")
def add_to_cart(
    request: CartAddRequest,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = db.get(Product, request.product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    try:
        item, created = _merge_line(db, user, product, request.quantity)
    except IntegrityError:
        # a concurrent add inserted the same line first, merge into it instead
        db.rollback()
        item, created = _merge_line(db, user, product, request.quantity)

    if created:
        return {"message": "Item added to cart successfully", "id": item.id, "quantity": item.quantity}
    response.status_code = status.HTTP_200_OK
    return {"message": "Cart updated successfully", "id": item.id, "quantity": item.quantity}


@router.put("/{item_id}", summary="Change the quantity of a cart line")
def update_cart_item(
    item_id: int,
    request: CartUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = _get_own_item_or_404(db, item_id, user)
    if request.quantity > item.product.stock_quantity:
        raise _insufficient_stock()
    item.quantity = request.quantity
    db.commit()
    return {"message": "Cart updated successfully"}


@router.delete("/{item_id}", summary="Remove a line from the cart")
def remove_cart_item(item_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    item = _get_own_item_or_404(db, item_id, user)
    db.delete(item)
    db.commit()
    return {"message": "Item removed from cart successfully"}


@router.delete("", summary="Empty the cart")
def clear_cart(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    db.query(CartItem).filter(CartItem.user_id == user.id).delete(synchronize_session=False)
    db.commit()
    return {"message": "Cart cleared successfully"}
