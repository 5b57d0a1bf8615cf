import logging

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.config import Settings, get_settings
from ..core.security import create_session_token, get_current_user, hash_password, verify_password
from ..database import get_db
from ..dependencies import get_storage
from ..storage import BucketStorage, upload_avatar

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def _start_session(response: Response, settings: Settings, profile: models.Profile):
    response.set_cookie(
        key=settings.session_cookie,
        value=create_session_token(settings, profile.id),
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
    )


# --- REGISTER ---
@router.post("/register", response_model=schemas.Profile, status_code=201)
def register(
    payload: schemas.ProfileCreate,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    email = payload.email.strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    existing, error = crud.get_profile_by_email(db, email)
    if error:
        raise HTTPException(status_code=500, detail=error)
    if existing:
        raise HTTPException(status_code=400, detail="An account with this email already exists")

    profile, error = crud.create_profile(
        db,
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        full_name=payload.full_name,
    )
    if error:
        raise HTTPException(status_code=500, detail=f"Registration failed: {error}")

    logger.info("Registered %s as %s", email, payload.role)
    _start_session(response, settings, profile)
    return profile


# --- LOGIN ---
@router.post("/login", response_model=schemas.Profile)
def login(
    payload: schemas.LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    profile, error = crud.get_profile_by_email(db, payload.email.strip().lower())
    if error:
        raise HTTPException(status_code=500, detail=error)
    if not profile or not verify_password(payload.password, profile.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    _start_session(response, settings, profile)
    return profile


# --- LOGOUT ---
@router.post("/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.delete_cookie(settings.session_cookie)
    return {"message": "Logged out"}


# --- PROFILE ---
@router.get("/me", response_model=schemas.Profile)
def read_me(user: models.Profile = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=schemas.Profile)
def update_profile(
    payload: schemas.ProfileUpdate,
    user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        return user

    profile, error = crud.update_profile(db, user.id, **fields)
    if error:
        raise HTTPException(status_code=500, detail=f"Failed to update profile: {error}")
    return profile


@router.post("/avatar", response_model=schemas.Profile)
def upload_profile_avatar(
    file: UploadFile = File(...),
    user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: BucketStorage = Depends(get_storage),
):
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Avatar must be an image")

    report = upload_avatar(db, storage, user.id, file.filename or "avatar", file.file)
    if not report.ok:
        raise HTTPException(status_code=500, detail=report.as_dict())
    return report.result
