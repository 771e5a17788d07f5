import re
import secrets
import string
from typing import Callable, Sequence

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 4

_CODE_RE = re.compile(r"^[A-Z0-9]{4}$")


def generate_code(choice: Callable[[Sequence[str]], str] = secrets.choice) -> str:
    return "".join(choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(raw: str) -> str:
    return raw.strip().upper()


def is_valid_code(code: str) -> bool:
    return bool(_CODE_RE.match(code))
