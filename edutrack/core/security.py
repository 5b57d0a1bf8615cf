from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from edutrack import crud, models
from edutrack.core.config import Settings, get_settings
from edutrack.database import get_db

SESSION_SALT = "edutrack-session"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key)


def create_session_token(settings: Settings, profile_id: int) -> str:
    return _serializer(settings).dumps(profile_id, salt=SESSION_SALT)


def read_session_token(settings: Settings, token: str) -> Optional[int]:
    try:
        return _serializer(settings).loads(token, salt=SESSION_SALT, max_age=settings.session_max_age)
    except BadSignature:
        # also covers SignatureExpired
        return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> models.Profile:
    token = request.cookies.get(settings.session_cookie)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    profile_id = read_session_token(settings, token)
    if profile_id is None:
        raise HTTPException(status_code=401, detail="Session expired, please log in again")

    profile, error = crud.get_profile(db, profile_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    if profile is None:
        raise HTTPException(status_code=401, detail="User not found")
    return profile


def require_teacher(user: models.Profile = Depends(get_current_user)) -> models.Profile:
    if user.role != "teacher":
        raise HTTPException(status_code=403, detail="Teachers only")
    return user


def require_student(user: models.Profile = Depends(get_current_user)) -> models.Profile:
    if user.role != "student":
        raise HTTPException(status_code=403, detail="Students only")
    return user
