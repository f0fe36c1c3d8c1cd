"""
Extrato de conta bancária.

Saldo anterior = saldo_final do último fechamento antes da data inicial (ou 0),
depois os movimentos do período em ordem (data, inserção) com saldo acumulado
por linha. Qualquer falha de leitura derruba o extrato inteiro: nunca
devolvemos extrato parcial.
"""
import logging
from datetime import date

from tesouraria.exceptions import Result, StatementBuildError, ValidationError
from tesouraria.models.ledger import ZERO, Statement, StatementLine
from tesouraria.services.ledger_store import LedgerStore
from tesouraria.services.period_closing import PeriodClosingRegistry
from tesouraria.services.transfer_resolver import TransferResolver, describe_movement

logger = logging.getLogger(__name__)


class StatementBuilder:
    def __init__(
        self,
        store: LedgerStore,
        closings: PeriodClosingRegistry | None = None,
        resolver: TransferResolver | None = None,
    ):
        self.store = store
        self.closings = closings or PeriodClosingRegistry(store)
        self.resolver = resolver or TransferResolver(store)

    async def build(self, account_id: str, start_date: date | None, end_date: date | None) -> Result[Statement]:
        if not account_id or start_date is None or end_date is None:
            return Result.failure(ValidationError(
                "Por favor, preencha todos os filtros obrigatórios: Conta Bancária, Data Inicial e Data Final."
            ))
        if start_date > end_date:
            return Result.failure(ValidationError("A data inicial deve ser anterior ou igual à data final."))

        try:
            statement = await self._build(account_id, start_date, end_date)
        except Exception as e:
            logger.error(
                f"Extrato {account_id} {start_date.isoformat()}..{end_date.isoformat()} falhou: {e}",
                exc_info=True,
            )
            return Result.failure(StatementBuildError())
        return Result.success(statement)

    async def _build(self, account_id: str, start_date: date, end_date: date) -> Statement:
        opening = await self.closings.latest_closing_before(account_id, start_date)
        opening_balance = opening.closing_balance if opening else ZERO

        movements = await self.store.fetch_movements(account_id, start_date, end_date)

        balance = opening_balance
        credits = ZERO
        debits = ZERO
        lines = []
        for mov in movements:
            counterpart = await self.resolver.resolve_counterpart(mov) if mov.is_transfer else None

            balance += mov.signed_amount
            if mov.kind.is_credit:
                credits += mov.amount
            else:
                debits += mov.amount

            lines.append(StatementLine(
                movement_id=mov.id,
                movement_date=mov.movement_date,
                kind=mov.kind,
                amount=mov.amount,
                balance=balance,
                description=describe_movement(mov, counterpart),
                document=mov.document,
                entry_id=mov.entry_id,
                counterpart=counterpart,
            ))

        logger.info(
            f"Extrato {account_id} {start_date.isoformat()}..{end_date.isoformat()}: "
            f"{len(lines)} movimentos, saldo anterior {opening_balance}, saldo final {balance}"
        )
        return Statement(
            account_id=account_id,
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening_balance,
            opening_date=opening.closing_date if opening else None,
            lines=lines,
            total_credits=credits,
            total_debits=debits,
            closing_balance=balance,
        )
