"""
Cálculo de totales para documentos de venta (facturas y cotizaciones)
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple

CENTS = Decimal("0.01")


class DocumentTotals(NamedTuple):
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_line_total(quantity, unit_price) -> Decimal:
    return money(Decimal(quantity) * Decimal(unit_price))


def calculate_totals(lines: Iterable, tax_rate=18, apply_tax: bool = True) -> DocumentTotals:
    """
    Suma las líneas (objetos con quantity y unit_price) y aplica el impuesto
    como porcentaje sobre el subtotal.
    """
    subtotal = sum(
        (calculate_line_total(line.quantity, line.unit_price) for line in lines),
        Decimal("0.00")
    )
    tax_amount = money(subtotal * Decimal(tax_rate) / 100) if apply_tax else Decimal("0.00")
    return DocumentTotals(
        subtotal=money(subtotal),
        tax_amount=tax_amount,
        total=money(subtotal + tax_amount)
    )
