# backend/routes/auth.py
import logging
from urllib.parse import urljoin

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Settings, get_settings_dep
from database import get_db
from errors import Conflict, Forbidden, InvalidInput, Unauthorized
from models import users as models
from schemas import user as schemas
from utils.audit import client_ip, write_log
from utils.hashing import generate_token, get_password_hash, hash_token, verify_password
from utils.mailer import Mailer, dispatch, get_mailer
from utils.tokenJWT import create_access_token, get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


# Register a new user; the account stays unverified until the mailed link is opened
@router.post("/register", response_model=schemas.RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    user: schemas.UserCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    normalized_email = user.email.strip().lower()

    if db.query(models.User).filter(models.User.email == normalized_email).first():
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"email": normalized_email, "reason": "Email exists"})
        raise Conflict("Email already registered")

    email_token = generate_token()
    new_user = models.User(
        email=normalized_email,
        password_hash=get_password_hash(user.password),
        role="customer",
        email_verified=False,
        email_token_hash=hash_token(email_token),
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same address
        db.rollback()
        raise Conflict("Email already registered")
    db.refresh(new_user)

    background_tasks.add_task(dispatch, mailer.send_confirmation_email, to=new_user.email, token=email_token)

    write_log(db, user_id=new_user.id, action="REGISTER", resource="auth", status="SUCCESS",
              ip=client_ip(request), meta={"email": new_user.email})
    return schemas.RegisterResponse(message="Account created. Check your email to confirm it.")


# Target of the link in the confirmation email
@router.get("/confirm-email")
def confirm_email(
    token: str = Query(""),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    if not token:
        raise InvalidInput("Missing token")

    user = db.query(models.User).filter(models.User.email_token_hash == hash_token(token)).first()
    if not user:
        raise InvalidInput("Invalid or expired token")

    user.email_verified = True
    user.email_token_hash = None
    db.commit()
    logger.info("Email confirmed for user %s", user.id)

    return RedirectResponse(urljoin(settings.FRONTEND_URL, "/login") + "?confirmed=1", status_code=302)


# Authenticate user and issue JWT token
@router.post("/login", response_model=schemas.LoginResponse)
def login(
    payload: schemas.UserLogin,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    email = payload.email.strip().lower()
    db_user = db.query(models.User).filter(models.User.email == email).first()

    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"email": email})
        raise Unauthorized("Invalid credentials")

    if settings.REQUIRE_EMAIL_VERIFICATION and not db_user.email_verified:
        write_log(db, user_id=db_user.id, action="LOGIN", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"email": email, "reason": "Email not confirmed"})
        raise Forbidden("Email not confirmed")

    access_token = create_access_token(settings, {"sub": db_user.id})

    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth", status="SUCCESS",
              ip=client_ip(request), meta={"email": db_user.email})
    return schemas.LoginResponse(token=access_token, user=schemas.UserResponse.model_validate(db_user))


# Retrieve current authenticated user details
@router.get("/me", response_model=schemas.UserResponse)
def me(current_user: models.User = Depends(get_current_user)):
    return current_user
