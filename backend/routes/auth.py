# backend/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from utils.hashing import verify_password
from utils.tokenJWT import create_user_token, get_current_user, get_settings
from utils.audit import write_log, client_ip
from utils.errors import ConflictError
from models.users import User
from schemas import user as schemas
from services import users as users_service
from config import Settings
from database import get_db

router = APIRouter(prefix="/auth", tags=["Authentication"])

# Register a new user
@router.post("/signup", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def signup(payload: schemas.SignupRequest, request: Request, db: Session = Depends(get_db)):
    try:
        new_user = users_service.signup(db, payload)
    except ConflictError:
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"email": payload.email, "reason": "Email exists"})
        raise

    # Log successful registration event
    write_log(db, user_id=new_user.id, action="REGISTER", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"email": new_user.email})
    return new_user


# Authenticate user and issue JWT token
@router.post("/login", response_model=schemas.LoginResponse)
def login(
    payload: schemas.LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    db_user = users_service.find_by_email(db, payload.email)

    # Validate credentials and log failure on error
    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"email": payload.email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    access_token = create_user_token(db_user, settings)

    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"email": db_user.email})

    return schemas.LoginResponse(user=schemas.UserOut.model_validate(db_user), access_token=access_token)


# Retrieve current authenticated user details
@router.get("/profile", response_model=schemas.UserOut)
def profile(current_user: User = Depends(get_current_user)):
    return current_user
