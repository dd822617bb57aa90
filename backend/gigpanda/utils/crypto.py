import json
import time
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from werkzeug.security import generate_password_hash, check_password_hash

from ..config import settings

class CryptoUtil:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.fernet = Fernet(settings.SECRET_KEY)
        return cls._instance

    def issue_token(self, user_id: int) -> str:
        if not user_id:
            raise ValueError("User ID cannot be empty")
        payload = json.dumps({"userId": user_id}).encode()
        return self.fernet.encrypt_at_time(payload, int(time.time())).decode()

    def read_token(self, token: str, ttl: Optional[int] = None) -> Optional[int]:
        """Returns the user id inside a token, or None when it is forged or expired."""
        try:
            payload = self.fernet.decrypt(token.encode(), ttl=ttl or settings.TOKEN_TTL_SECONDS)
        except (InvalidToken, ValueError):
            return None
        try:
            return int(json.loads(payload)["userId"])
        except (KeyError, TypeError, ValueError):
            return None

def hash_password(password: str) -> str:
    return generate_password_hash(password, method="pbkdf2:sha256")

def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)
