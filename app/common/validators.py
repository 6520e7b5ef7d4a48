"""
Validadores de identificación fiscal y contacto
"""
import re


def clean_tax_id(tax_id: str) -> str:
    """Quita guiones, puntos y espacios de un RNC o cédula."""
    return re.sub(r'[\.\s\-]', '', tax_id or '')


def validate_rnc(rnc: str) -> bool:
    """
    Valida RNC (Registro Nacional de Contribuyentes).
    - Exactamente 9 dígitos
    - Solo números
    """
    cleaned = clean_tax_id(rnc)
    return cleaned.isdigit() and len(cleaned) == 9


def validate_cedula(cedula: str) -> bool:
    """
    Valida cédula de identidad.
    - Exactamente 11 dígitos
    - Dígito verificador con algoritmo de Luhn
    """
    cleaned = clean_tax_id(cedula)
    if not cleaned.isdigit() or len(cleaned) != 11:
        return False

    total = 0
    for i, digit in enumerate(cleaned[:-1]):
        product = int(digit) * (1 if i % 2 == 0 else 2)
        total += product // 10 + product % 10

    check_digit = (10 - total % 10) % 10
    return check_digit == int(cleaned[-1])


def validate_tax_id(tax_id: str) -> bool:
    """Acepta RNC (9 dígitos) o cédula (11 dígitos)."""
    return validate_rnc(tax_id) or validate_cedula(tax_id)


def format_tax_id(tax_id: str) -> str:
    """
    Formatea RNC como X-XX-XXXXX-X y cédula como XXX-XXXXXXX-X
    """
    if not validate_tax_id(tax_id):
        return tax_id  # Retorna sin cambios si no es válido

    cleaned = clean_tax_id(tax_id)
    if len(cleaned) == 9:
        return f"{cleaned[0]}-{cleaned[1:3]}-{cleaned[3:8]}-{cleaned[8]}"
    return f"{cleaned[:3]}-{cleaned[3:10]}-{cleaned[10]}"


def validate_phone(phone: str) -> bool:
    """Teléfono internacional simple: + opcional y hasta 16 dígitos."""
    cleaned = re.sub(r'[\s\-\(\)]', '', phone)
    return re.match(r'^\+?[1-9]\d{0,15}$', cleaned) is not None
