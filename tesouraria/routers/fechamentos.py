"""
Consulta de fechamento bancário antes de escolher a data de liquidação.

GET /fechamentos/{conta_id}/status?data=2024-03-01
"""
import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from tesouraria.services.ledger_store import LedgerStore, get_ledger_store
from tesouraria.services.period_closing import PeriodClosingRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/fechamentos", tags=["fechamentos"])


@router.get("/{conta_id}/status")
async def get_fechamento_status(
    conta_id: str,
    data: date = Query(..., description="Data candidata (YYYY-MM-DD)"),
    store: LedgerStore = Depends(get_ledger_store),
):
    registry = PeriodClosingRegistry(store)
    try:
        blocking = await registry.blocking_closing(conta_id, data)
        previous = await registry.latest_closing_before(conta_id, data)
    except Exception as e:
        logger.error(f"Erro ao consultar fechamento da conta {conta_id}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Erro ao verificar fechamento bancário")

    return {
        "banco_conta_id": conta_id,
        "data": data.isoformat(),
        "fechado": blocking is not None,
        "fechado_ate": blocking.closing_date.isoformat() if blocking else None,
        "saldo_anterior": str(previous.closing_balance) if previous else None,
        "data_saldo_anterior": previous.closing_date.isoformat() if previous else None,
    }
