import bcrypt

from session_auth import config


# ---------------- PASSWORD & SECRET ANSWER HASHING ----------------

def _hash(value: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(value.encode("utf-8"), salt).decode("utf-8")


def _check(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return _hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password hash."""
    return _check(plain_password, hashed_password)


def hash_secret_answer(secret_answer: str) -> str:
    """Hash the answer to the secret question using bcrypt."""
    return _hash(secret_answer)


def verify_secret_answer(plain_answer: str, hashed_answer: str) -> bool:
    """Verify a secret answer using bcrypt."""
    return _check(plain_answer, hashed_answer)
