# backend/utils/hashing.py
import hashlib
import secrets

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["pbkdf2_sha512"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(plain_password, password_hash)
    except ValueError:
        # Malformed or unknown hash format in the database
        return False


# Random token mailed to the user for email confirmation
def generate_token() -> str:
    return secrets.token_hex(32)


# Only the digest of a confirmation token is ever stored
def hash_token(token: str) -> str:
    return hashlib.sha256(str(token or "").encode("utf-8")).hexdigest()
