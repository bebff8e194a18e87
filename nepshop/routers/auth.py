import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nepshop.database import get_db
from nepshop.models import Role, User
from nepshop.schemas import LoginRequest, RegisterRequest
from nepshop.security import create_access_token, get_current_user, get_password_hash, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def user_to_dict(user: User):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": Role(user.role).value,
    }


def _find_existing_user(db: Session, email, phone):
    conditions = []
    if email:
        conditions.append(User.email == email)
    if phone:
        conditions.append(User.phone == phone)
    return db.query(User).filter(or_(*conditions)).first()


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a new customer")
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    email = request.email or None
    phone = request.phone or None
    if not request.name or not request.password or not (email or phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, password, and email or phone are required",
        )

    if _find_existing_user(db, email, phone):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    user = User(
        name=request.name,
        email=email,
        phone=phone,
        password_hash=get_password_hash(request.password),
        role=Role.CUSTOMER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent registration took the email or phone after the lookup
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return {"message": "User registered successfully", "token": create_access_token(user), "user": user_to_dict(user)}


@router.post("/login", summary="Log in with email or phone")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    if not request.password or not (request.email or request.phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or phone and password are required",
        )

    if request.email:
        user = db.query(User).filter(User.email == request.email).first()
    else:
        user = db.query(User).filter(User.phone == request.phone).first()
    # same answer for an unknown account and a wrong password
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    return {"message": "Login successful", "token": create_access_token(user), "user": user_to_dict(user)}


@router.get("/me", summary="Current user profile")
def me(user: User = Depends(get_current_user)):
    return user_to_dict(user)
