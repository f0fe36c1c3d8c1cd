"""
Acesso a dados do livro-caixa.

LedgerStore é a interface que o extrato e a baixa consomem; SupabaseLedgerStore
a implementa sobre as tabelas do Supabase:

  fechamentos_bancarios  (banco_conta_id, data_fechamento, saldo_final, fechado)
  movimentos_bancarios   (append-only; transferencia_id liga as duas pernas)
  lancamentos            (+ lancamento_retencoes, contrapartes, projetos,
                          empresas, plano_contas_fluxo via joins)

Toda row passa pelos modelos de tesouraria.models.ledger antes de sair daqui.
Erros do cliente Supabase propagam; quem chama decide o que fazer com eles.
Exceção: a recusa do insert de movimentos vira InsertRejectedError com o motivo.

O cliente supabase-py usado aqui é síncrono: os métodos são async pela
interface, mas cada chamada bloqueia o loop até a resposta. Um asyncio.gather
sobre este store executa as chamadas uma após a outra.
"""
import logging
import re
import unicodedata
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Iterable

from postgrest.exceptions import APIError

from tesouraria.db.supabase import get_db
from tesouraria.exceptions import InsertRejectedError, PostingReason, StoreError
from tesouraria.models.ledger import (
    EntryDirection,
    EntryStatus,
    Movement,
    MovementDraft,
    PendingEntry,
    PeriodClosing,
    TransferLeg,
)

logger = logging.getLogger(__name__)

CLOSINGS_TABLE = "fechamentos_bancarios"
MOVEMENTS_TABLE = "movimentos_bancarios"
ENTRIES_TABLE = "lancamentos"

_CLOSING_COLUMNS = "banco_conta_id, data_fechamento, saldo_final, fechado"

_LEG_COLUMNS = (
    "id, banco_conta_id, "
    "bancos_contas!movimentos_bancarios_banco_conta_id_fkey("
    "banco_nome, agencia, numero_conta, tipo_conta, "
    "empresas!bancos_contas_empresa_id_fkey(nome))"
)

_ENTRY_COLUMNS = (
    "id, tipo, status, empresa_id, projeto_id, subprojeto_id, banco_conta_id, "
    "contraparte_id, plano_conta_id, valor_bruto, valor_liquido, "
    "data_emissao, data_vencimento, data_liquidacao, "
    "pagamento_terceiro, empresa_pagadora_id, "
    "empresa:empresas!empresa_id(nome), "
    "empresa_pagadora:empresas!empresa_pagadora_id(nome), "
    "contrapartes(nome), "
    "projeto:projetos!projeto_id(nome), "
    "subprojeto:projetos!subprojeto_id(nome), "
    "plano_conta:plano_contas_fluxo!plano_conta_id(categoria, subcategoria), "
    "lancamento_retencoes(imposto, valor, detalhe)"
)

# PostgREST caps IN lists through the URL; keep chunks small
_IN_CHUNK = 100


class LedgerStore(ABC):
    @abstractmethod
    async def fetch_last_closing(self, account_id: str, before: date) -> PeriodClosing | None:
        """Active closing with the greatest date strictly before `before`."""

    @abstractmethod
    async def fetch_latest_closing(self, account_id: str) -> PeriodClosing | None:
        """Most recent active closing of the account."""

    @abstractmethod
    async def fetch_movements(self, account_id: str, start: date, end: date) -> list[Movement]:
        """Movements in [start, end] ordered by (date asc, insertion asc)."""

    @abstractmethod
    async def fetch_transfer_origin(self, transfer_ref: str) -> TransferLeg | None:
        """Sending leg referenced by a TRANSFERENCIA_RECEBIDA."""

    @abstractmethod
    async def fetch_transfer_destination(self, movement_id: str) -> TransferLeg | None:
        """Receiving leg whose transfer reference points at `movement_id`."""

    @abstractmethod
    async def fetch_entries(self, entry_ids: Iterable[str]) -> list[PendingEntry]:
        """Entries by id with their joins (counterparty, projects, plano de contas, retenções)."""

    @abstractmethod
    async def list_open_entries(
        self,
        company_id: str | None = None,
        account_id: str | None = None,
        direction: EntryDirection | None = None,
    ) -> list[PendingEntry]:
        """ABERTO entries ordered by due date."""

    @abstractmethod
    async def insert_movements(self, drafts: list[MovementDraft]) -> list[str]:
        """Bulk insert; all or nothing. Returns the new movement ids.

        Raises InsertRejectedError when the database refuses the rows.
        """

    @abstractmethod
    async def update_entry_status(self, entry_id: str, status: EntryStatus, settlement_date: date) -> None:
        """Move an ABERTO entry to `status`. Raises StoreError when no ABERTO row matched."""


def _paginate(build_query: Callable, page_limit: int = 1000) -> list[dict]:
    # fresh builder per page: postgrest appends offset/limit on every .range()
    rows = []
    start = 0
    while True:
        batch = build_query().range(start, start + page_limit - 1).execute().data or []
        rows.extend(batch)
        if len(batch) < page_limit:
            break
        start += page_limit
    return rows


_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _normalize(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def insert_rejection(code: str | None, message: str | None) -> InsertRejectedError:
    """Classify a PostgREST error raised by the movimentos insert."""
    message = message or ""
    if code == "42703" or "column" in message:
        return InsertRejectedError(PostingReason.SCHEMA, message)
    if code == "23503":
        return InsertRejectedError(PostingReason.INVALID_REFERENCE, message)
    if code == "23505":
        return InsertRejectedError(PostingReason.DUPLICATE, message)
    if "ultimo fechamento" in _normalize(message):
        # trigger text: "... último fechamento (2024-03-02)"
        dates = _ISO_DATE.findall(message)
        blocking = date.fromisoformat(dates[-1]) if dates else None
        return InsertRejectedError(PostingReason.CLOSED_PERIOD, message, blocking_date=blocking)
    return InsertRejectedError(PostingReason.UNKNOWN, message)


class SupabaseLedgerStore(LedgerStore):
    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    async def fetch_last_closing(self, account_id: str, before: date) -> PeriodClosing | None:
        result = (
            self.db.table(CLOSINGS_TABLE)
            .select(_CLOSING_COLUMNS)
            .eq("banco_conta_id", account_id)
            .eq("fechado", True)
            .lt("data_fechamento", before.isoformat())
            .order("data_fechamento", desc=True)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return PeriodClosing.model_validate(rows[0]) if rows else None

    async def fetch_latest_closing(self, account_id: str) -> PeriodClosing | None:
        result = (
            self.db.table(CLOSINGS_TABLE)
            .select(_CLOSING_COLUMNS)
            .eq("banco_conta_id", account_id)
            .eq("fechado", True)
            .order("data_fechamento", desc=True)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return PeriodClosing.model_validate(rows[0]) if rows else None

    async def fetch_movements(self, account_id: str, start: date, end: date) -> list[Movement]:
        def query():
            return (
                self.db.table(MOVEMENTS_TABLE)
                .select("*")
                .eq("banco_conta_id", account_id)
                .gte("data_movimento", start.isoformat())
                .lte("data_movimento", end.isoformat())
                .order("data_movimento", desc=False)
                .order("created_at", desc=False)
            )

        return [Movement.model_validate(row) for row in _paginate(query)]

    async def fetch_transfer_origin(self, transfer_ref: str) -> TransferLeg | None:
        result = self.db.table(MOVEMENTS_TABLE).select(_LEG_COLUMNS).eq("id", transfer_ref).limit(1).execute()
        rows = result.data or []
        return TransferLeg.model_validate(rows[0]) if rows else None

    async def fetch_transfer_destination(self, movement_id: str) -> TransferLeg | None:
        result = (
            self.db.table(MOVEMENTS_TABLE)
            .select(_LEG_COLUMNS)
            .eq("transferencia_id", movement_id)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return TransferLeg.model_validate(rows[0]) if rows else None

    async def fetch_entries(self, entry_ids: Iterable[str]) -> list[PendingEntry]:
        ids = list(entry_ids)
        entries = []
        for i in range(0, len(ids), _IN_CHUNK):
            chunk = ids[i:i + _IN_CHUNK]
            result = self.db.table(ENTRIES_TABLE).select(_ENTRY_COLUMNS).in_("id", chunk).execute()
            entries.extend(PendingEntry.model_validate(row) for row in result.data or [])
        return entries

    async def list_open_entries(
        self,
        company_id: str | None = None,
        account_id: str | None = None,
        direction: EntryDirection | None = None,
    ) -> list[PendingEntry]:
        def query():
            q = self.db.table(ENTRIES_TABLE).select(_ENTRY_COLUMNS).eq("status", EntryStatus.ABERTO.value)
            if company_id:
                q = q.eq("empresa_id", company_id)
            if account_id:
                q = q.eq("banco_conta_id", account_id)
            if direction:
                q = q.eq("tipo", direction.value)
            return q.order("data_vencimento", desc=False)

        return [PendingEntry.model_validate(row) for row in _paginate(query)]

    async def insert_movements(self, drafts: list[MovementDraft]) -> list[str]:
        rows = [d.to_row() for d in drafts]
        try:
            result = self.db.table(MOVEMENTS_TABLE).insert(rows).execute()
        except APIError as e:
            raise insert_rejection(e.code, e.message) from e
        inserted = result.data or []
        if len(inserted) != len(rows):
            logger.warning(f"insert movimentos: {len(rows)} enviados, {len(inserted)} retornados")
        return [row["id"] for row in inserted]

    async def update_entry_status(self, entry_id: str, status: EntryStatus, settlement_date: date) -> None:
        result = (
            self.db.table(ENTRIES_TABLE)
            .update({"status": status.value, "data_liquidacao": settlement_date.isoformat()})
            .eq("id", entry_id)
            .eq("status", EntryStatus.ABERTO.value)
            .execute()
        )
        if not result.data:
            raise StoreError(f"lancamento {entry_id} not updated (missing or no longer ABERTO)")


_store: LedgerStore | None = None


def get_ledger_store() -> LedgerStore:
    """FastAPI dependency: process-wide Supabase-backed store."""
    global _store
    if _store is None:
        _store = SupabaseLedgerStore()
    return _store
