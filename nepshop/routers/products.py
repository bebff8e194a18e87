import logging
import os
import shutil
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from nepshop.config import PRODUCT_UPLOAD_DIR
from nepshop.database import get_db
from nepshop.models import CartItem, Category, Product, ProductStatus, User
from nepshop.security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
IMAGE_URL_PREFIX = "/uploads/products/"


def product_to_dict(product: Product):
    return {
        "id": product.id,
        "category_id": product.category_id,
        "category_name": product.category.name if product.category else None,
        "name": product.name,
        "price": product.price,
        "stock_quantity": product.stock_quantity,
        "description": product.description,
        "image": product.image,
        "status": ProductStatus(product.status).value,
        "created_at": product.created_at,
    }


def save_image(upload: UploadFile):
    """Store an uploaded image and return the path it is served under."""
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files are allowed")
    os.makedirs(PRODUCT_UPLOAD_DIR, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{ext}"
    with open(os.path.join(PRODUCT_UPLOAD_DIR, filename), "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return IMAGE_URL_PREFIX + filename


def remove_image(image_path: Optional[str]):
    if not image_path or not image_path.startswith(IMAGE_URL_PREFIX):
        return
    path = os.path.join(PRODUCT_UPLOAD_DIR, image_path[len(IMAGE_URL_PREFIX):])
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Image %s was already gone", path)


def _get_product_or_404(db: Session, product_id: int):
    product = db.query(Product).options(joinedload(Product.category)).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def _check_category(db: Session, category_id: Optional[int]):
    if category_id is not None and not db.get(Category, category_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category does not exist")


async def submitted_fields(request: Request):
    """Names of the form fields present in the request, including blank ones.

    Blank optional form values reach the handler as ``None``, same as omitted
    fields; this tells "sent empty" (clear it) apart from "not sent" (keep it).
    """
    form = await request.form()
    return set(form.keys())


def _has_image(upload: Optional[UploadFile]):
    return upload is not None and bool(upload.filename)


@router.get("", summary="List products")
def list_products(
    category_id: Optional[int] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Product).options(joinedload(Product.category))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Product.name.like(term), Product.description.like(term)))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if status != "all":
        try:
            wanted = ProductStatus(status or ProductStatus.ACTIVE.value)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid product status")
        query = query.filter(Product.status == wanted)
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return [product_to_dict(p) for p in products]


@router.get("/{product_id}", summary="Get a product")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return product_to_dict(_get_product_or_404(db, product_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Add a new product")
def create_product(
    name: str = Form(...),
    price: float = Form(..., ge=0),
    category_id: Optional[int] = Form(None),
    stock_quantity: int = Form(0, ge=0),
    description: Optional[str] = Form(None),
    product_status: ProductStatus = Form(ProductStatus.ACTIVE, alias="status"),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if not name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Product name and price are required")
    _check_category(db, category_id)

    image_path = save_image(image) if _has_image(image) else None
    product = Product(
        category_id=category_id,
        name=name.strip(),
        price=price,
        stock_quantity=stock_quantity,
        description=description or None,
        image=image_path,
        status=product_status,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Created product %s", product.id)
    return {"message": "Product created successfully", "id": product.id, "image": image_path}


@router.put("/{product_id}", summary="Update an existing product")
def update_product(
    product_id: int,
    name: Optional[str] = Form(None),
    price: Optional[float] = Form(None, ge=0),
    category_id: Optional[int] = Form(None),
    stock_quantity: Optional[int] = Form(None, ge=0),
    description: Optional[str] = Form(None),
    product_status: Optional[ProductStatus] = Form(None, alias="status"),
    image: Optional[UploadFile] = File(None),
    fields: set = Depends(submitted_fields),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    product = _get_product_or_404(db, product_id)
    if name is not None:
        if not name.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Product name cannot be empty")
        product.name = name.strip()
    if price is not None:
        product.price = price
    if category_id is not None:
        _check_category(db, category_id)
        product.category_id = category_id
    elif "category_id" in fields:
        product.category_id = None
    if stock_quantity is not None:
        product.stock_quantity = stock_quantity
    if description is not None:
        product.description = description or None
    elif "description" in fields:
        product.description = None
    if product_status is not None:
        product.status = product_status

    old_image = None
    if _has_image(image):
        old_image = product.image
        product.image = save_image(image)

    db.commit()
    remove_image(old_image)
    return {"message": "Product updated successfully", "image": product.image}


@router.delete("/{product_id}", summary="Delete a product")
def delete_product(product_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    product = _get_product_or_404(db, product_id)
    image_path = product.image
    db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
    db.delete(product)
    db.commit()
    remove_image(image_path)
    return {"message": "Product deleted successfully"}
