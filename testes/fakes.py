"""
In-memory LedgerStore and Supabase client doubles for the test suite.

InMemoryLedgerStore keeps the same contract as SupabaseLedgerStore (active
closings only, movements ordered by date then insertion, conditional status
update) and lets a test make any call fail.
"""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Iterable

from tesouraria.exceptions import StoreError
from tesouraria.models.ledger import (
    AccountIdentity,
    EntryDirection,
    EntryStatus,
    Movement,
    MovementDraft,
    MovementKind,
    PendingEntry,
    PeriodClosing,
    TransferLeg,
)
from tesouraria.services.ledger_store import LedgerStore


class InMemoryLedgerStore(LedgerStore):
    def __init__(self):
        self.closings: list[PeriodClosing] = []
        self.movements: list[Movement] = []
        self.accounts: dict[str, AccountIdentity] = {}
        self.entries: dict[str, PendingEntry] = {}
        # method name -> exception raised on call
        self.failures: dict[str, Exception] = {}
        # entry ids whose status update fails
        self.failing_updates: set[str] = set()
        self.inserted_batches: list[list[MovementDraft]] = []
        self.status_updates: list[tuple[str, EntryStatus, date]] = []
        # how many inserted ids come back (None: all), like rows hidden by RLS
        self.visible_inserts: int | None = None
        self._next_id = 1

    def _maybe_fail(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    # ── seeding helpers ──────────────────────────────────────

    def add_account(self, account_id: str, company: str, bank: str = "Banco do Brasil",
                    branch: str = "0001", number: str = "12345-6", account_type: str = "Corrente"):
        self.accounts[account_id] = AccountIdentity(
            account_id=account_id,
            bank_name=bank,
            branch=branch,
            account_number=number,
            account_type=account_type,
            company_name=company,
        )

    def add_closing(self, account_id: str, day: date, balance: str = "0.00", active: bool = True):
        self.closings.append(PeriodClosing(
            account_id=account_id, closing_date=day, closing_balance=balance, active=active,
        ))

    def add_movement(self, account_id: str, kind: MovementKind, day: date, amount: str,
                     description: str = "", movement_id: str | None = None,
                     transfer_ref: str | None = None, entry_id: str | None = None) -> Movement:
        mov = Movement(
            id=movement_id or self._new_id(),
            account_id=account_id,
            kind=kind,
            movement_date=day,
            amount=amount,
            description=description,
            transfer_ref=transfer_ref,
            entry_id=entry_id,
        )
        self.movements.append(mov)
        return mov

    def add_entry(self, entry_id: str, gross: str, account_id: str | None = "acc-1",
                  direction: EntryDirection = EntryDirection.SAIDA,
                  status: EntryStatus = EntryStatus.ABERTO, **fields) -> PendingEntry:
        entry = PendingEntry(
            id=entry_id,
            direction=direction,
            status=status,
            account_id=account_id,
            gross_amount=gross,
            **fields,
        )
        self.entries[entry_id] = entry
        return entry

    def _new_id(self) -> str:
        mid = f"mov-{self._next_id}"
        self._next_id += 1
        return mid

    # ── LedgerStore ──────────────────────────────────────────

    def _active(self, account_id: str) -> list[PeriodClosing]:
        return [c for c in self.closings if c.account_id == account_id and c.active]

    async def fetch_last_closing(self, account_id: str, before: date) -> PeriodClosing | None:
        self._maybe_fail("fetch_last_closing")
        candidates = [c for c in self._active(account_id) if c.closing_date < before]
        return max(candidates, key=lambda c: c.closing_date, default=None)

    async def fetch_latest_closing(self, account_id: str) -> PeriodClosing | None:
        self._maybe_fail("fetch_latest_closing")
        return max(self._active(account_id), key=lambda c: c.closing_date, default=None)

    async def fetch_movements(self, account_id: str, start: date, end: date) -> list[Movement]:
        self._maybe_fail("fetch_movements")
        indexed = [
            (m.movement_date, i, m) for i, m in enumerate(self.movements)
            if m.account_id == account_id and start <= m.movement_date <= end
        ]
        return [m for _, _, m in sorted(indexed, key=lambda t: (t[0], t[1]))]

    def _leg(self, mov: Movement | None) -> TransferLeg | None:
        if mov is None:
            return None
        account = self.accounts.get(mov.account_id) or AccountIdentity(account_id=mov.account_id)
        return TransferLeg(movement_id=mov.id, account=account)

    async def fetch_transfer_origin(self, transfer_ref: str) -> TransferLeg | None:
        self._maybe_fail("fetch_transfer_origin")
        return self._leg(next((m for m in self.movements if m.id == transfer_ref), None))

    async def fetch_transfer_destination(self, movement_id: str) -> TransferLeg | None:
        self._maybe_fail("fetch_transfer_destination")
        return self._leg(next((m for m in self.movements if m.transfer_ref == movement_id), None))

    async def fetch_entries(self, entry_ids: Iterable[str]) -> list[PendingEntry]:
        self._maybe_fail("fetch_entries")
        return [self.entries[i] for i in entry_ids if i in self.entries]

    async def list_open_entries(self, company_id=None, account_id=None, direction=None) -> list[PendingEntry]:
        self._maybe_fail("list_open_entries")
        entries = [
            e for e in self.entries.values()
            if e.status == EntryStatus.ABERTO
            and (company_id is None or e.company_id == company_id)
            and (account_id is None or e.account_id == account_id)
            and (direction is None or e.direction == direction)
        ]
        return sorted(entries, key=lambda e: e.due_date or date.max)

    async def insert_movements(self, drafts: list[MovementDraft]) -> list[str]:
        self._maybe_fail("insert_movements")
        self.inserted_batches.append(list(drafts))
        ids = []
        for d in drafts:
            mov = self.add_movement(d.account_id, d.kind, d.movement_date, str(d.amount),
                                    description=d.description, entry_id=d.entry_id)
            ids.append(mov.id)
        return ids if self.visible_inserts is None else ids[:self.visible_inserts]

    async def update_entry_status(self, entry_id: str, status: EntryStatus, settlement_date: date) -> None:
        self._maybe_fail("update_entry_status")
        if entry_id in self.failing_updates:
            raise RuntimeError(f"permission denied for lancamento {entry_id}")
        entry = self.entries.get(entry_id)
        if entry is None or entry.status != EntryStatus.ABERTO:
            raise StoreError(f"lancamento {entry_id} not updated")
        self.entries[entry_id] = entry.model_copy(update={"status": status, "settlement_date": settlement_date})
        self.status_updates.append((entry_id, status, settlement_date))

    @property
    def posted(self) -> list[MovementDraft]:
        return [d for batch in self.inserted_batches for d in batch]


def money(value: str) -> Decimal:
    return Decimal(value)


# ── Supabase client double ───────────────────────────────────


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table_name = table
        self.calls: list[tuple] = []
        client.queries.append(self)

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def insert(self, *args, **kwargs):
        return self._record("insert", *args, **kwargs)

    def update(self, *args, **kwargs):
        return self._record("update", *args, **kwargs)

    def eq(self, *args):
        return self._record("eq", *args)

    def lt(self, *args):
        return self._record("lt", *args)

    def gte(self, *args):
        return self._record("gte", *args)

    def lte(self, *args):
        return self._record("lte", *args)

    def in_(self, *args):
        return self._record("in_", *args)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args):
        return self._record("limit", *args)

    def range(self, *args):
        return self._record("range", *args)

    def execute(self):
        data = self.client.responses.get(self.table_name, [])
        if callable(data):
            data = data(self)
        if isinstance(data, Exception):
            raise data
        return SimpleNamespace(data=data)

    def called(self, name: str) -> list[tuple]:
        return [args for n, args, _ in self.calls if n == name]


class FakeSupabase:
    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.queries: list[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)
