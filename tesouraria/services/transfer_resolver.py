"""
Resolve a outra perna de uma transferência entre contas.

TRANSFERENCIA_RECEBIDA guarda em transferencia_id o id do movimento de
origem; TRANSFERENCIA_ENVIADA é apontada pelo movimento de destino. Quando a
perna não é encontrada o extrato segue sem o detalhe da contraparte.
"""
import logging

from tesouraria.models.ledger import AccountIdentity, Movement, MovementKind
from tesouraria.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

HISTORICO_VAZIO = "-"


class TransferResolver:
    def __init__(self, store: LedgerStore):
        self.store = store

    async def resolve_counterpart(self, movement: Movement) -> AccountIdentity | None:
        if movement.kind == MovementKind.TRANSFERENCIA_RECEBIDA:
            if not movement.transfer_ref:
                logger.warning(f"Transferência recebida {movement.id} sem transferencia_id")
                return None
            leg = await self.store.fetch_transfer_origin(movement.transfer_ref)
        elif movement.kind == MovementKind.TRANSFERENCIA_ENVIADA:
            leg = await self.store.fetch_transfer_destination(movement.id)
        else:
            return None

        if leg is None:
            logger.warning(f"Movimento {movement.id} ({movement.kind.value}): perna da transferência não encontrada")
            return None
        return leg.account


def _account_text(account: AccountIdentity) -> str:
    return (
        f"{account.company_name} - {account.bank_name} - Ag: {account.branch} - "
        f"Conta: {account.account_number} - Tipo: {account.account_type}"
    )


def describe_movement(movement: Movement, counterpart: AccountIdentity | None = None) -> str:
    """Histórico shown on the statement line."""
    if counterpart is not None and movement.kind == MovementKind.TRANSFERENCIA_RECEBIDA:
        historico = f"Transferência recebida de {_account_text(counterpart)}"
    elif counterpart is not None and movement.kind == MovementKind.TRANSFERENCIA_ENVIADA:
        historico = f"Transferência enviada para {_account_text(counterpart)}"
    else:
        return movement.description or HISTORICO_VAZIO

    if movement.description:
        historico += f" | {movement.description}"
    return historico
