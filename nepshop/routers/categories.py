import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nepshop.database import get_db
from nepshop.models import Category, Product, User
from nepshop.schemas import CategoryRequest
from nepshop.security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])


def category_to_dict(category: Category):
    return {"id": category.id, "name": category.name}


def _get_category_or_404(db: Session, category_id: int):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


def _require_name(request: CategoryRequest):
    name = (request.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category name is required")
    return name


def _name_taken(db: Session, name: str, exclude_id=None):
    query = db.query(Category).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _commit_unique(db: Session):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category already exists")


@router.get("", summary="List all categories")
def list_categories(db: Session = Depends(get_db)):
    return [category_to_dict(c) for c in db.query(Category).order_by(Category.name).all()]


@router.get("/{category_id}", summary="Get a category")
def get_category(category_id: int, db: Session = Depends(get_db)):
    return category_to_dict(_get_category_or_404(db, category_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Add a new category")
def create_category(request: CategoryRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    name = _require_name(request)
    if _name_taken(db, name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category already exists")
    category = Category(name=name)
    db.add(category)
    _commit_unique(db)
    db.refresh(category)
    return {"message": "Category created successfully", **category_to_dict(category)}


@router.put("/{category_id}", summary="Rename a category")
def update_category(
    category_id: int, request: CategoryRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    name = _require_name(request)
    category = _get_category_or_404(db, category_id)
    if _name_taken(db, name, exclude_id=category_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category already exists")
    category.name = name
    _commit_unique(db)
    return {"message": "Category updated successfully"}


@router.delete("/{category_id}", summary="Delete a category")
def delete_category(category_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    category = _get_category_or_404(db, category_id)
    # products survive as uncategorized
    orphaned = (
        db.query(Product)
        .filter(Product.category_id == category_id)
        .update({Product.category_id: None}, synchronize_session="fetch")
    )
    db.delete(category)
    db.commit()
    logger.info("Deleted category %s, %s product(s) now uncategorized", category_id, orphaned)
    return {"message": "Category deleted successfully"}
