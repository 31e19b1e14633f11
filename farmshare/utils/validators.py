import re

ACCOUNT_NUMBER_RE = re.compile(r"^\d{10}$")
BANK_CODE_RE = re.compile(r"^\d{3,6}$")
OTP_RE = re.compile(r"^\d{6}$")
# bcrypt ne prend que 72 octets
PASSWORD_MAX_BYTES = 72

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

def validate_password_strength(v: str) -> str:
    if len(v or "") < 8:
        raise ValueError('Password must be at least 8 characters long')
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    if not re.search(r'[A-Z]', v):
        raise ValueError('Password must contain at least one uppercase letter')
    if not re.search(r'[a-z]', v):
        raise ValueError('Password must contain at least one lowercase letter')
    if not re.search(r'\d', v):
        raise ValueError('Password must contain at least one digit')
    if not re.search(r'[!@#$%^&*()_+\-=\[\]{};:\'\"\\|,.<>\/?]', v):
        raise ValueError('Password must contain at least one special character')
    return v

def is_valid_account_number(v: str) -> bool:
    # Les banques nigérianes utilisent des numéros NUBAN à 10 chiffres
    return bool(ACCOUNT_NUMBER_RE.match(v or ""))

def is_valid_bank_code(v: str) -> bool:
    return bool(BANK_CODE_RE.match(v or ""))
