"""
Baixa de pagamentos/recebimentos: lançamentos ABERTO -> movimentos bancários.

GET  /baixas/pendentes?empresa_id=...&banco_conta_id=...&tipo=Saida
POST /baixas/processar  {"lancamento_ids": [...], "data_liquidacao": "2024-03-01", "dry_run": true}

dry_run=true (default) só valida e mostra os movimentos que seriam criados.
"""
import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tesouraria.models.ledger import ZERO, EntryDirection, PendingEntry
from tesouraria.routers.errors import http_error
from tesouraria.services.ledger_store import LedgerStore, get_ledger_store
from tesouraria.services.settlement import SettlementProcessor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/baixas", tags=["baixas"])


class BaixaRequest(BaseModel):
    lancamento_ids: list[str] = Field(default_factory=list)
    data_liquidacao: date | None = None
    dry_run: bool = True


@router.get("/pendentes")
async def listar_pendentes(
    empresa_id: str | None = Query(None),
    banco_conta_id: str | None = Query(None),
    tipo: EntryDirection | None = Query(None, description="Entrada ou Saida"),
    store: LedgerStore = Depends(get_ledger_store),
):
    """Lançamentos em aberto para seleção da baixa, com líquido recalculado."""
    try:
        entries = await store.list_open_entries(company_id=empresa_id, account_id=banco_conta_id, direction=tipo)
    except Exception as e:
        logger.error(f"Erro ao listar lançamentos pendentes: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Erro ao buscar lançamentos pendentes")

    itens = [_summarize(e) for e in entries]
    return {
        "total": len(itens),
        "valor_total": str(sum((e.net_amount for e in entries), ZERO)),
        "itens": itens,
    }


@router.post("/processar")
async def processar_baixa(req: BaixaRequest, store: LedgerStore = Depends(get_ledger_store)):
    processor = SettlementProcessor(store)

    if req.dry_run:
        result = await processor.preview(req.lancamento_ids, req.data_liquidacao)
        if not result.ok:
            raise http_error(result.error)
        plan = result.value
        return {
            "mode": "dry_run",
            "data_liquidacao": plan.settlement_date.isoformat(),
            "lancamentos": len(plan.entry_ids),
            "valor_total": str(plan.total_amount),
            "movimentos": [d.to_row() for d in plan.drafts],
            "ignorados": [s.model_dump() for s in plan.skipped],
        }

    result = await processor.settle(req.lancamento_ids, req.data_liquidacao)
    if not result.ok:
        raise http_error(result.error)
    report = result.value
    return {
        "mode": "process",
        "data_liquidacao": report.settlement_date.isoformat(),
        "baixados": report.settled_count,
        "movimentos_enviados": report.posted_count,
        "valor_total": str(report.total_amount),
        "movimento_ids": report.movement_ids,
        "ignorados": [s.model_dump() for s in report.skipped],
    }


def _summarize(entry: PendingEntry) -> dict:
    return {
        "id": entry.id,
        "tipo": entry.direction.value,
        "empresa": entry.company_name,
        "contraparte": entry.counterparty_name,
        "projeto": entry.project_name,
        "banco_conta_id": entry.account_id,
        "data_vencimento": entry.due_date.isoformat() if entry.due_date else None,
        "valor_bruto": str(entry.gross_amount),
        "valor_liquido": str(entry.net_amount),
        "pagamento_terceiro": entry.third_party_payment,
        "empresa_pagadora": entry.payer_company_name,
    }
