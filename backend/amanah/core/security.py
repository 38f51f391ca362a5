import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from amanah.core.config import settings
from passlib.context import CryptContext
from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> dict | None:
    try:
        if token.startswith("Bearer "):
            token = token.split(" ")[1]

        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        return None


# --- Private key storage ---

def _fernet() -> Fernet:
    key = settings.WALLET_ENCRYPTION_KEY
    if not key:
        # Derive a stable key from SECRET_KEY when no dedicated key is configured
        key = base64.urlsafe_b64encode(hashlib.sha256(settings.SECRET_KEY.encode()).digest()).decode()
    return Fernet(key.encode())

def encrypt_key(raw_private_key: str) -> str:
    """
    Encrypts a raw private key (hex string) into a token that can be stored in the DB.
    """
    return _fernet().encrypt(raw_private_key.encode()).decode()

def decrypt_key(token: str) -> str:
    """
    Decrypts the stored token back into the original private key.
    Raises ValueError if the token was tampered with or the key changed.
    """
    try:
        return _fernet().decrypt(token.encode()).decode()
    except InvalidToken:
        raise ValueError("Invalid encryption token for private key")
