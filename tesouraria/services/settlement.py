"""
Baixa de lançamentos: transforma lançamentos ABERTO em movimentos bancários.

Etapas: SELECTED -> VALIDATING -> POSTING -> UPDATING -> SUCCESS | PARTIAL_FAILURE

1. Validação (sem escrita): data e seleção obrigatórias, todos os lançamentos
   existem e estão ABERTO, nenhuma conta envolvida fechada na data.
2. Histórico de cada movimento montado a partir do lançamento.
3. Lançamentos sem conta ou com líquido <= 0 ficam de fora (aviso), o lote segue.
4. Insert único dos movimentos. Falhou: nada foi baixado. A recusa do trigger
   de fechamento vira ClosedPeriodError; duplicidade, referência inválida e
   estrutura da tabela viram PostingError com o motivo.
5. Status PAGO_RECEBIDO + data_liquidacao, um update por lançamento, em lotes
   via asyncio.gather. Só há sobreposição real se o store for de fato
   assíncrono (o SupabaseLedgerStore não é). Falha aqui deixa movimento sem
   status correspondente e vira PartialFailureError; nunca há retry
   automático (duplicaria movimentos).

Known gap: closing check and insert are not atomic. A fechamento created
between VALIDATING and POSTING is only caught by the closing trigger in the
database, surfaced at step 4.
"""
import asyncio
import logging
from datetime import date
from enum import Enum
from typing import Iterable

from tesouraria.config import settings
from tesouraria.exceptions import (
    ClosedPeriodError,
    InsertRejectedError,
    LedgerError,
    LookupFailedError,
    PartialFailureError,
    PostingError,
    PostingReason,
    Result,
    ValidationError,
)
from tesouraria.models.ledger import (
    EntryDirection,
    EntryStatus,
    MovementDraft,
    MovementKind,
    PendingEntry,
    SettlementPlan,
    SettlementReport,
    SkippedEntryWarning,
)
from tesouraria.services.ledger_store import LedgerStore
from tesouraria.services.period_closing import PeriodClosingRegistry

logger = logging.getLogger(__name__)

LABEL_SEPARATOR = " --> "
PART_SEPARATOR = " - "


class SettlementStage(str, Enum):
    SELECTED = "SELECTED"
    VALIDATING = "VALIDATING"
    POSTING = "POSTING"
    UPDATING = "UPDATING"
    SUCCESS = "SUCCESS"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"


def describe_entry(entry: PendingEntry) -> str:
    """Histórico do movimento gerado pela baixa.

    Pagamento --> Por conta e ordem da <empresa> - <projeto> - <subprojeto>
    - <categoria> - <subcategoria> - <contraparte>, cada parte só se existir.
    """
    label = "Pagamento" if entry.direction == EntryDirection.SAIDA else "Recebimento"
    parts = []
    if entry.third_party_payment and entry.company_name:
        parts.append(f"Por conta e ordem da {entry.company_name}")
    for value in (
        entry.project_name,
        entry.subproject_name,
        entry.category,
        entry.subcategory,
        entry.counterparty_name,
    ):
        if value:
            parts.append(value)
    return f"{label}{LABEL_SEPARATOR}{PART_SEPARATOR.join(parts)}"


def build_drafts(
    entries: list[PendingEntry], settlement_date: date
) -> tuple[list[MovementDraft], list[SkippedEntryWarning]]:
    drafts = []
    skipped = []
    for entry in entries:
        if not entry.account_id:
            logger.warning(f"Lançamento {entry.id} não possui banco_conta_id")
            skipped.append(SkippedEntryWarning(entry_id=entry.id, reason="sem conta bancária"))
            continue

        net = entry.net_amount
        if entry.stored_net_amount is not None and entry.stored_net_amount != net:
            logger.warning(
                f"Lançamento {entry.id}: valor_liquido gravado {entry.stored_net_amount} "
                f"difere do recalculado {net}; usando o recalculado"
            )
        if net <= 0:
            logger.warning(f"Lançamento {entry.id} possui valor inválido ({net})")
            skipped.append(SkippedEntryWarning(entry_id=entry.id, reason=f"valor líquido inválido ({net})"))
            continue

        drafts.append(MovementDraft(
            account_id=entry.account_id,
            kind=MovementKind.for_entry(entry.direction),
            movement_date=settlement_date,
            amount=net,
            description=describe_entry(entry),
            entry_id=entry.id,
        ))
    return drafts, skipped


class SettlementProcessor:
    def __init__(
        self,
        store: LedgerStore,
        closings: PeriodClosingRegistry | None = None,
        batch_size: int | None = None,
        pause_seconds: float | None = None,
    ):
        self.store = store
        self.closings = closings or PeriodClosingRegistry(store)
        self.batch_size = max(1, batch_size or settings.status_update_batch_size)
        self.pause_seconds = settings.status_update_pause_seconds if pause_seconds is None else pause_seconds

    async def preview(self, entry_ids: Iterable[str], settlement_date: date | None) -> Result[SettlementPlan]:
        """Dry run: validation and movement construction, no writes."""
        try:
            plan = await self._plan(entry_ids, settlement_date)
        except LedgerError as e:
            return Result.failure(e)
        return Result.success(plan)

    async def settle(self, entry_ids: Iterable[str], settlement_date: date | None) -> Result[SettlementReport]:
        try:
            plan = await self._plan(entry_ids, settlement_date)
            movement_ids = await self._post(plan)
            report = await self._update_statuses(plan, movement_ids)
        except LedgerError as e:
            return Result.failure(e)
        return Result.success(report)

    async def _plan(self, entry_ids: Iterable[str], settlement_date: date | None) -> SettlementPlan:
        ids = list(dict.fromkeys(i for i in (entry_ids or []) if i))
        logger.info(f"Baixa {SettlementStage.SELECTED.value}: {len(ids)} lançamento(s)")
        if not ids:
            raise ValidationError("Selecione ao menos um lançamento")
        if settlement_date is None:
            raise ValidationError("Informe a data de liquidação")

        logger.info(f"Baixa {SettlementStage.VALIDATING.value}: data {settlement_date.isoformat()}")
        try:
            entries = await self.store.fetch_entries(ids)
        except Exception as e:
            logger.error(f"Erro ao buscar lançamentos: {e}", exc_info=True)
            raise LookupFailedError() from e

        found = {entry.id: entry for entry in entries}
        missing = [i for i in ids if i not in found]
        if missing:
            raise ValidationError(f"Lançamento(s) não encontrado(s): {', '.join(missing)}")
        not_open = [i for i in ids if found[i].status != EntryStatus.ABERTO]
        if not_open:
            raise ValidationError(f"Lançamento(s) não estão em aberto: {', '.join(not_open)}")

        entries = [found[i] for i in ids]
        await self._check_closings(entries, settlement_date)

        drafts, skipped = build_drafts(entries, settlement_date)
        if not drafts:
            raise ValidationError(
                "Nenhum movimento válido para registrar. "
                "Verifique se os lançamentos possuem conta bancária e valor líquido positivo"
            )
        return SettlementPlan(settlement_date=settlement_date, entry_ids=ids, drafts=drafts, skipped=skipped)

    async def _check_closings(self, entries: list[PendingEntry], settlement_date: date) -> None:
        accounts = list(dict.fromkeys(e.account_id for e in entries if e.account_id))
        for account_id in accounts:
            try:
                closing = await self.closings.blocking_closing(account_id, settlement_date)
            except Exception as e:
                logger.error(f"Erro ao verificar fechamento da conta {account_id}: {e}", exc_info=True)
                raise LookupFailedError(
                    "Erro ao verificar fechamento bancário. Verifique sua conexão e tente novamente"
                ) from e
            if closing is not None:
                raise ClosedPeriodError(account_id, closing.closing_date)

    async def _post(self, plan: SettlementPlan) -> list[str]:
        logger.info(
            f"Baixa {SettlementStage.POSTING.value}: {len(plan.drafts)} movimento(s), "
            f"total {plan.total_amount}, {len(plan.skipped)} ignorado(s)"
        )
        try:
            return await self.store.insert_movements(plan.drafts)
        except InsertRejectedError as e:
            logger.error(f"Insert de movimentos recusado ({e.reason.value}): {e}")
            if e.reason == PostingReason.CLOSED_PERIOD:
                accounts = {d.account_id for d in plan.drafts}
                account_id = accounts.pop() if len(accounts) == 1 else None
                raise ClosedPeriodError(account_id, e.blocking_date) from e
            raise PostingError(e.reason) from e
        except Exception as e:
            logger.error(f"Erro ao inserir movimentos: {e}", exc_info=True)
            raise PostingError() from e

    async def _update_statuses(self, plan: SettlementPlan, movement_ids: list[str]) -> SettlementReport:
        ids = plan.entry_ids
        logger.info(f"Baixa {SettlementStage.UPDATING.value}: {len(ids)} lançamento(s)")

        failed = []
        for i in range(0, len(ids), self.batch_size):
            batch = ids[i:i + self.batch_size]
            results = await asyncio.gather(
                *[
                    self.store.update_entry_status(entry_id, EntryStatus.PAGO_RECEBIDO, plan.settlement_date)
                    for entry_id in batch
                ],
                return_exceptions=True,
            )
            for entry_id, r in zip(batch, results):
                if isinstance(r, BaseException):
                    logger.error(f"Erro ao atualizar lançamento {entry_id}: {r}")
                    failed.append(entry_id)

            if self.pause_seconds and i + self.batch_size < len(ids):
                await asyncio.sleep(self.pause_seconds)

        settled_count = len(ids) - len(failed)
        if failed:
            logger.error(
                f"Baixa {SettlementStage.PARTIAL_FAILURE.value}: {len(movement_ids)} movimento(s) "
                f"registrados, {len(failed)} lançamento(s) sem status atualizado: {failed}"
            )
            raise PartialFailureError(failed, movement_ids, settled_count=settled_count)

        logger.info(
            f"Baixa {SettlementStage.SUCCESS.value}: {settled_count} lançamento(s), total {plan.total_amount}"
        )
        if len(movement_ids) != len(plan.drafts):
            logger.warning(
                f"Baixa: {len(plan.drafts)} movimento(s) enviados, {len(movement_ids)} id(s) retornados"
            )
        return SettlementReport(
            settlement_date=plan.settlement_date,
            settled_count=settled_count,
            total_amount=plan.total_amount,
            posted_count=len(plan.drafts),
            movement_ids=movement_ids,
            skipped=plan.skipped,
        )
