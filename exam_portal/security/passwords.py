import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 260_000


def hash_password(raw_password: str, salt: str | None = None, iterations: int = ITERATIONS) -> str:
    """Return ``algorithm$iterations$salt$digest`` for storage; raw is never persisted."""

    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", raw_password.encode("utf-8"), salt.encode("utf-8"), iterations).hex()
    return f"{ALGORITHM}${iterations}${salt}${digest}"


def verify_password(raw_password: str, stored_hash: str) -> bool:
    """Constant-time check of a raw password against a stored digest."""

    try:
        algorithm, iterations, salt, _ = stored_hash.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    candidate = hash_password(raw_password, salt=salt, iterations=rounds)
    return hmac.compare_digest(candidate, stored_hash)
