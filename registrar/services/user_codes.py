"""User codes: role prefix + 6-digit sequence + check digit, e.g. ``S0000019``."""

from __future__ import annotations

import re

from sqlalchemy.orm import Session

from registrar.models.choices import USER_CODE_PREFIXES
from registrar.models.user import User

PREFIX_VALUES = {"A": 1, "T": 20, "S": 19}
USER_CODE_RE = re.compile(r"^[ATS]\d{7}$")


def calculate_checksum(code_without_checksum: str) -> str:
    prefix = code_without_checksum[:1]
    digits = [int(ch) for ch in code_without_checksum[1:]]
    total = PREFIX_VALUES.get(prefix, 0)
    for index, digit in enumerate(digits):
        # Luhn doubling, counted from the right of the sequence part.
        if (len(digits) - index) % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return str((10 - total % 10) % 10)


def validate_user_code(user_code: str | None) -> bool:
    code = str(user_code or "")
    if not USER_CODE_RE.fullmatch(code):
        return False
    return calculate_checksum(code[:-1]) == code[-1]


def generate_user_code(db: Session, role: str) -> str:
    prefix = USER_CODE_PREFIXES[role]
    highest = (
        db.query(User.user_code)
        .filter(User.user_code.like(f"{prefix}%"))
        .order_by(User.user_code.desc())
        .first()
    )
    sequence = int(highest[0][1:7]) + 1 if highest and USER_CODE_RE.fullmatch(highest[0]) else 1
    code = f"{prefix}{sequence:06d}"
    return code + calculate_checksum(code)
