"""
Checklist Server - Security
Hash de senhas, tokens JWT de sessão e tokens públicos de checklist
"""
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
import bcrypt

from .config import settings

# Alfabeto url-safe (mesmo conjunto do nanoid)
_PUBLIC_TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica password usando bcrypt"""
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """Gera hash bcrypt do password"""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def generate_public_token(length: Optional[int] = None) -> str:
    """
    Gera o token opaco que dá acesso público (sem login) a um checklist.
    """
    size = length or settings.PUBLIC_TOKEN_LENGTH
    return ''.join(secrets.choice(_PUBLIC_TOKEN_ALPHABET) for _ in range(size))


def build_public_link(public_token: str) -> str:
    """Link enviado ao produtor"""
    return f"{settings.APP_URL.rstrip('/')}/c/{public_token}"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Cria JWT token para autenticação"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_access_token(token: str) -> Optional[dict]:
    """Verifica JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None
