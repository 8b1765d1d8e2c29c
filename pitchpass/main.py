import logging
import math
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import Cookie, Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from jose import JWTError, jwt

from pitchpass import app_context
from pitchpass.app.payments import AccountContext
from pitchpass.app.routes.pricing import router as pricing_router
from pitchpass.app.routes.subscriptions import router as subscriptions_router
from pitchpass.app.routes.user_preferences import router as content_preferences_router


load_dotenv()

logger = logging.getLogger("pitchpass")


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "pitchpass_db"),
    user=os.getenv("DB_USER", "pitchpass"),
    password=os.getenv("DB_PASSWORD", "pitchpass"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXP_MINUTES = int(os.getenv("JWT_EXP_MINUTES", str(60 * 24 * 7)))  # default: 7 days
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if origin.strip()]


def get_conn():
    return psycopg2.connect(**DB_CFG)


def create_access_token(*, subject: str, email: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    payload = {"sub": subject}
    if email:
        payload["email"] = email
    if expires_delta is None:
        expires_delta = timedelta(minutes=JWT_EXP_MINUTES)
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def resolve_account_from_session_token(session_token: str) -> Optional[AccountContext]:
    try:
        payload = jwt.decode(session_token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject:
        return None
    return AccountContext(account_id=str(subject), email=payload.get("email"))


def get_current_user(session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)) -> AccountContext:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    account = resolve_account_from_session_token(session_token)
    if account is None:
        logger.info("Rejected invalid session token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return account


app_context.configure(
    get_conn=get_conn,
    get_current_user=get_current_user,
)

app = FastAPI(title="PitchPass API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(subscriptions_router)
app.include_router(pricing_router)
app.include_router(content_preferences_router)


@app.get("/api/auth/me", response_model=AccountContext)
def read_current_user(current_user: AccountContext = Depends(get_current_user)):
    return current_user


@app.get("/api/healthz")
def healthz():
    return {"ok": True}
