from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from travel_desk.db.session import get_db
from travel_desk.models.user import User


def get_current_user(
    request: Request,
    x_user_email: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    DEV AUTH: pass X-User-Email header to simulate logged-in user.
    Example: X-User-Email: admin@local.test
    """
    if not x_user_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email header (dev auth)",
        )

    user = db.query(User).filter(User.email == x_user_email).one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid or inactive user")

    # picked up by the error handler when logging failures
    request.state.actor_id = str(user.id)
    return user
