"""
Valor líquido de um lançamento: valor bruto menos as retenções (IRRF, INSS,
ISSQN, PIS, COFINS, CSLL...). Recalculado sempre a partir das retenções;
nunca editado diretamente.
"""
from decimal import Decimal
from typing import Iterable, Protocol


class _Withholding(Protocol):
    amount: Decimal


def total_withheld(lines: Iterable[_Withholding]) -> Decimal:
    return sum((line.amount for line in lines), Decimal("0.00"))


def net_amount(gross: Decimal, lines: Iterable[_Withholding]) -> Decimal:
    """Return gross minus the sum of withholding amounts.

    Not floored at zero: withholdings above gross give a negative net, and the
    baixa skips such entries instead of posting them.
    """
    return gross - total_withheld(lines)
