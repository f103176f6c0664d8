from .config import settings, get_settings
from .security import (
    verify_password,
    get_password_hash,
    generate_public_token,
    build_public_link,
    create_access_token,
    verify_access_token
)

__all__ = [
    "settings",
    "get_settings",
    "verify_password",
    "get_password_hash",
    "generate_public_token",
    "build_public_link",
    "create_access_token",
    "verify_access_token"
]
