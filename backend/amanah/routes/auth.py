from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from amanah.core.config import settings
from amanah.core.security import hash_password, verify_password, create_access_token
from amanah.deps import get_db, get_current_user
from amanah.models.user import User
from amanah.schemas.user import UserCreate, UserLogin, UserRead

router = APIRouter(prefix="/api", tags=["Auth"])


def _set_session_cookie(response: Response, token: str):
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
    )


@router.post("/register", response_model=UserRead)
def register(user_in: UserCreate, response: Response, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(or_(
        User.username == user_in.username,
        User.email == user_in.email,
        User.phone == user_in.phone,
    )).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Username, email or phone already registered")
    user = User(
        username=user_in.username,
        hashed_password=hash_password(user_in.password),
        email=user_in.email,
        phone=user_in.phone,
        full_name=user_in.full_name,
        country=user_in.country,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    # registration logs the user in, like the login route
    _set_session_cookie(response, create_access_token({"sub": str(user.id)}))
    return user

@router.post("/login")
def login(user_in: UserLogin, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == user_in.username).first()
    if not user or not verify_password(user_in.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    token = create_access_token({"sub": str(user.id)})
    _set_session_cookie(response, token)
    return {"access_token": token, "token_type": "bearer"}

@router.get("/user", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user

@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"message": "Logout successful"}
