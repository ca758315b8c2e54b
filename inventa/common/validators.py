"""
Validadores específicos para Colombia
"""
import re

NIT_PATTERN = re.compile(r'^\d{9}-\d$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def validate_company_nit(nit: str) -> bool:
    """
    Valida el NIT de una empresa en el formato usado para registro: 900123456-7
    (nueve dígitos, guión, dígito de verificación).
    """
    return bool(nit) and bool(NIT_PATTERN.match(nit.strip()))


def validate_email_address(email: str) -> bool:
    """Forma básica de un correo: algo@dominio.tld"""
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))


def validate_colombia_phone(phone: str) -> bool:
    """
    Valida número de teléfono colombiano.
    Formatos válidos:
    - +57XXXXXXXXXX (10 dígitos después del +57)
    - 57XXXXXXXXXX (10 dígitos después del 57)
    - 3XXXXXXXXX (móvil, 10 dígitos empezando por 3)
    - XXXXXXXX (fijo local)
    """
    cleaned = re.sub(r'[\s\-\(\)]', '', phone)

    patterns = [
        r'^\+57[3][0-9]{9}$',      # +573XXXXXXXXX (móvil)
        r'^\+57[1-8][0-9]{7}$',    # +571XXXXXXX (fijo)
        r'^57[3][0-9]{9}$',        # 573XXXXXXXXX (móvil sin +)
        r'^57[1-8][0-9]{7}$',      # 571XXXXXXX (fijo sin +)
        r'^[3][0-9]{9}$',          # 3XXXXXXXXX (móvil local)
        r'^[1-8][0-9]{7}$',        # 1XXXXXXX (fijo local)
    ]

    return any(re.match(pattern, cleaned) for pattern in patterns)


def format_colombia_phone(phone: str) -> str:
    """
    Formatea número de teléfono colombiano al formato estándar +57XXXXXXXXXX.
    Números que no son colombianos se devuelven sin cambios.
    """
    if not phone or not validate_colombia_phone(phone):
        return phone

    cleaned = re.sub(r'[\s\-\(\)]', '', phone)

    if cleaned.startswith('+57'):
        return cleaned
    elif cleaned.startswith('57') and len(cleaned) >= 10:
        return '+' + cleaned
    elif len(cleaned) in [8, 10]:
        return '+57' + cleaned

    return phone
