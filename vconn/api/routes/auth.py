from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vconn import models
from vconn.api.deps import get_current_user, request_id_of
from vconn.core.security import hash_password, issue_token, verify_password
from vconn.database import get_db, transaction
from vconn.schemas import Token, UserCreate, UserRead
from vconn.services.audit import audit_event

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(request: Request, payload: UserCreate, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered"
        )

    user = models.User(
        name=payload.name,
        email=email,
        hashed_password=hash_password(payload.password),
        phone=payload.phone,
        role=payload.role,
        business_name=payload.business_name or None,
        address=payload.address or None,
        active=True,
        free_attempts_used=0,
        cancellations_used=0,
    )
    try:
        with transaction(db):
            db.add(user)
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered"
        ) from None
    db.refresh(user)
    audit_event(
        "auth.register",
        user.id,
        {"email": user.email, "role": user.role.value},
        db=db,
        request_id=request_id_of(request),
    )
    return user


@router.post("/token", response_model=Token)
def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    email = form_data.username.strip().lower()
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        audit_event(
            "auth.login_failed", None, {"email": email}, db=db, request_id=request_id_of(request)
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password"
        )
    if not user.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    return Token(access_token=issue_token(user.email, role=user.role.value))


@router.get("/me", response_model=UserRead)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    return current_user
