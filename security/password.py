from passlib.context import CryptContext

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt reads at most 72 bytes of the secret
BCRYPT_MAX_BYTES = 72


def _secret(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return _pwd_context.hash(_secret(password))


def verify_password(password: str, password_hash: str) -> bool:
    return _pwd_context.verify(_secret(password), password_hash)
