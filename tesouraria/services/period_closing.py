"""
Fechamentos bancários: checkpoint de saldo por conta.

Usado em dois pontos:
- extrato: saldo anterior = último fechamento estritamente antes da data inicial
- baixa: nenhuma data de liquidação pode cair em período já fechado

Só fechamentos com fechado=true contam; a filtragem é feita pelo store.
"""
import logging
from datetime import date

from tesouraria.models.ledger import PeriodClosing
from tesouraria.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class PeriodClosingRegistry:
    def __init__(self, store: LedgerStore):
        self.store = store

    async def latest_closing_before(self, account_id: str, day: date) -> PeriodClosing | None:
        """Closing with the greatest date strictly earlier than `day`, if any."""
        return await self.store.fetch_last_closing(account_id, day)

    async def blocking_closing(self, account_id: str, day: date) -> PeriodClosing | None:
        """Closing dated on or after `day`, i.e. the one that forbids posting on `day`."""
        latest = await self.store.fetch_latest_closing(account_id)
        if latest is not None and latest.closing_date >= day:
            logger.info(
                f"Conta {account_id}: {day.isoformat()} bloqueado por fechamento "
                f"em {latest.closing_date.isoformat()}"
            )
            return latest
        return None

    async def is_closed_on_or_before(self, account_id: str, day: date) -> bool:
        return await self.blocking_closing(account_id, day) is not None
