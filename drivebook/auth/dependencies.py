import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from drivebook.auth import jwt_handler
from drivebook.database import get_db
from drivebook.models.profile import Profile

security = HTTPBearer()


def get_current_profile(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    profile = db.query(Profile).filter(Profile.email == email.strip().lower()).first()
    if profile is None:
        raise HTTPException(status_code=401, detail="Profile not found")
    return profile
