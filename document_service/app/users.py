from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .auth import create_access_token, get_current_user, hash_password, require_admin, verify_password
from .database import get_db
from .exceptions import AuthenticationError, ValidationError
from .logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# POST /auth/register
@router.post("/register", status_code=201, response_model=schemas.AuthResponse)
def register(body: schemas.RegisterRequest, db: Session = Depends(get_db)):
    if crud.get_user_by_email(db, body.email):
        raise ValidationError.for_field("email", "User already exists")

    role = "admin" if body.email in config.ADMIN_EMAILS else "user"
    user = crud.create_user(
        db,
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=role,
        department=body.department,
    )
    logger.info(f"Registered {user.email} as {role}")
    return schemas.AuthResponse(token=create_access_token(user.id), user=schemas.UserResponse.model_validate(user))


# POST /auth/login
@router.post("/login", response_model=schemas.AuthResponse)
def login(body: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed login for {body.email}")
        raise AuthenticationError("Invalid credentials")
    return schemas.AuthResponse(token=create_access_token(user.id), user=schemas.UserResponse.model_validate(user))


# GET /auth/me
@router.get("/me", response_model=schemas.UserEnvelope)
def me(current_user: models.User = Depends(get_current_user)):
    return schemas.UserEnvelope(user=schemas.UserResponse.model_validate(current_user))


# GET /auth/users
@router.get("/users", response_model=schemas.UserListResponse)
def list_users(admin: models.User = Depends(require_admin), db: Session = Depends(get_db)):
    users = crud.list_users(db)
    return schemas.UserListResponse(
        count=len(users),
        users=[schemas.UserResponse.model_validate(user) for user in users],
    )
