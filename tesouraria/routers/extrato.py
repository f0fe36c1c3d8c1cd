"""
Extrato de conta bancária.

GET /extrato/{conta_id}?data_inicial=2024-02-01&data_final=2024-02-28
"""
from datetime import date

from fastapi import APIRouter, Depends, Query

from tesouraria.routers.errors import http_error
from tesouraria.services.ledger_store import LedgerStore, get_ledger_store
from tesouraria.services.statement import StatementBuilder

router = APIRouter(prefix="/extrato", tags=["extrato"])


@router.get("/{conta_id}")
async def get_extrato(
    conta_id: str,
    data_inicial: date = Query(..., description="YYYY-MM-DD"),
    data_final: date = Query(..., description="YYYY-MM-DD"),
    store: LedgerStore = Depends(get_ledger_store),
):
    result = await StatementBuilder(store).build(conta_id, data_inicial, data_final)
    if not result.ok:
        raise http_error(result.error)
    return result.value.model_dump(mode="json")
