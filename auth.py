from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from database import get_db
from models import User
from services import UserService

SESSION_USER_KEY = "user"


def session_profile(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "fullname": user.fullname,
        "email": user.email,
        "sexe": user.sexe.value,
        "age": user.age,
    }


def login_session(request: Request, user: User) -> None:
    request.session.clear()
    request.session[SESSION_USER_KEY] = session_profile(user)


def logout_session(request: Request) -> None:
    request.session.clear()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the signed-in user from the session cookie.

    The stored profile is only a hint; the user row is re-read on every
    request so a deleted or deactivated account loses access immediately.
    """
    profile = request.session.get(SESSION_USER_KEY)
    if not isinstance(profile, dict) or not profile.get("id"):
        raise HTTPException(status_code=401, detail="Authentication required")
    user = UserService(db).get_active(int(profile["id"]))
    if not user:
        request.session.clear()
        raise HTTPException(
            status_code=401, detail="User account not found or inactive"
        )
    request.session[SESSION_USER_KEY] = session_profile(user)
    return user
