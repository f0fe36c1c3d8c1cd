"""SupabaseLedgerStore contra um cliente Supabase falso: filtros e parsing das rows"""

import asyncio
from datetime import date

import pytest
from postgrest.exceptions import APIError

from fakes import FakeSupabase, money
from tesouraria.exceptions import InsertRejectedError, PostingReason, StoreError
from tesouraria.models.ledger import EntryDirection, EntryStatus, MovementDraft, MovementKind
from tesouraria.services.ledger_store import SupabaseLedgerStore, insert_rejection


def test_last_closing_filters_active_and_strictly_before():
    db = FakeSupabase({"fechamentos_bancarios": [
        {"banco_conta_id": "acc-1", "data_fechamento": "2024-01-31", "saldo_final": 1000, "fechado": True},
    ]})

    closing = asyncio.run(SupabaseLedgerStore(db).fetch_last_closing("acc-1", date(2024, 2, 1)))

    assert closing.closing_balance == money("1000.00")
    q = db.queries[0]
    assert ("fechado", True) in q.called("eq")
    assert q.called("lt") == [("data_fechamento", "2024-02-01")]
    assert q.called("limit") == [(1,)]


def test_no_closing_returns_none():
    db = FakeSupabase({"fechamentos_bancarios": []})
    assert asyncio.run(SupabaseLedgerStore(db).fetch_latest_closing("acc-1")) is None


def test_movements_are_paginated_and_ordered():
    rows = [
        {"id": f"m-{i}", "banco_conta_id": "acc-1", "tipo_movimento": "ENTRADA",
         "data_movimento": "2024-02-05", "valor": "1.00", "historico": None}
        for i in range(1500)
    ]

    def page(query):
        (start, end), = query.called("range")
        return rows[start:end + 1]

    db = FakeSupabase({"movimentos_bancarios": page})
    store = SupabaseLedgerStore(db)

    movements = asyncio.run(store.fetch_movements("acc-1", date(2024, 2, 1), date(2024, 2, 29)))

    assert len(movements) == 1500
    # one builder per page, each with a single offset/limit
    assert [q.called("range") for q in db.queries] == [[(0, 999)], [(1000, 1999)]]
    q = db.queries[1]
    assert q.called("gte") == [("data_movimento", "2024-02-01")]
    assert q.called("lte") == [("data_movimento", "2024-02-29")]
    assert [args for args in q.called("order")] == [("data_movimento",), ("created_at",)]


def test_transfer_destination_is_looked_up_by_reference():
    db = FakeSupabase({"movimentos_bancarios": [{
        "id": "t-in",
        "banco_conta_id": "acc-2",
        "bancos_contas": {"banco_nome": "Bradesco", "agencia": "1203", "numero_conta": "55421-0",
                          "tipo_conta": "Poupança", "empresas": {"nome": "Beta Imóveis"}},
    }]})

    leg = asyncio.run(SupabaseLedgerStore(db).fetch_transfer_destination("t-out"))

    assert leg.movement_id == "t-in"
    assert leg.account.company_name == "Beta Imóveis"
    assert db.queries[0].called("eq") == [("transferencia_id", "t-out")]


def test_entries_are_fetched_in_chunks():
    db = FakeSupabase({"lancamentos": lambda q: [
        {"id": i, "tipo": "Saida", "valor_bruto": 10} for i in q.called("in_")[0][1]
    ]})
    ids = [f"l-{i}" for i in range(250)]

    entries = asyncio.run(SupabaseLedgerStore(db).fetch_entries(ids))

    assert [e.id for e in entries] == ids
    assert [len(q.called("in_")[0][1]) for q in db.queries] == [100, 100, 50]


def test_open_entries_apply_optional_filters():
    db = FakeSupabase({"lancamentos": [
        {"id": "l-1", "tipo": "Entrada", "valor_bruto": 10, "contrapartes": [{"nome": "Cliente"}]},
    ]})

    entries = asyncio.run(SupabaseLedgerStore(db).list_open_entries(
        account_id="acc-1", direction=EntryDirection.ENTRADA,
    ))

    assert entries[0].counterparty_name == "Cliente"
    assert db.queries[0].called("eq") == [("status", "ABERTO"), ("banco_conta_id", "acc-1"), ("tipo", "Entrada")]


def test_insert_sends_column_names_and_returns_ids():
    db = FakeSupabase({"movimentos_bancarios": [{"id": "new-1"}]})
    draft = MovementDraft(
        account_id="acc-1", kind=MovementKind.SAIDA, movement_date=date(2024, 3, 1),
        amount="100.00", description="Pagamento --> X", entry_id="l-1",
    )

    ids = asyncio.run(SupabaseLedgerStore(db).insert_movements([draft]))

    assert ids == ["new-1"]
    (rows,) = db.queries[0].called("insert")[0]
    assert rows[0]["valor"] == "100.00"
    assert rows[0]["lancamento_id"] == "l-1"


def test_status_update_only_touches_open_entries():
    db = FakeSupabase({"lancamentos": [{"id": "l-1"}]})

    asyncio.run(SupabaseLedgerStore(db).update_entry_status("l-1", EntryStatus.PAGO_RECEBIDO, date(2024, 3, 1)))

    q = db.queries[0]
    assert q.called("update") == [({"status": "PAGO_RECEBIDO", "data_liquidacao": "2024-03-01"},)]
    assert q.called("eq") == [("id", "l-1"), ("status", "ABERTO")]


def test_status_update_with_no_matching_row_raises():
    db = FakeSupabase({"lancamentos": []})

    with pytest.raises(StoreError):
        asyncio.run(SupabaseLedgerStore(db).update_entry_status("l-1", EntryStatus.PAGO_RECEBIDO, date(2024, 3, 1)))


def test_open_entries_pages_do_not_share_a_builder():
    rows = [{"id": f"l-{i}", "tipo": "Saida", "valor_bruto": 1} for i in range(1000)] + [
        {"id": "l-last", "tipo": "Saida", "valor_bruto": 1},
    ]

    def page(query):
        (start, end), = query.called("range")
        return rows[start:end + 1]

    db = FakeSupabase({"lancamentos": page})

    entries = asyncio.run(SupabaseLedgerStore(db).list_open_entries(company_id="e-1"))

    assert len(entries) == 1001
    assert len(db.queries) == 2
    for q in db.queries:
        assert q.called("eq") == [("status", "ABERTO"), ("empresa_id", "e-1")]


@pytest.mark.parametrize("code, message, reason", [
    ("P0001", "Movimento anterior ao último fechamento (2024-03-02)", PostingReason.CLOSED_PERIOD),
    ("P0001", "data anterior ao ULTIMO FECHAMENTO", PostingReason.CLOSED_PERIOD),
    ("23505", "duplicate key value violates unique constraint", PostingReason.DUPLICATE),
    ("23503", "insert violates foreign key constraint", PostingReason.INVALID_REFERENCE),
    ("42703", "column \"valor\" does not exist", PostingReason.SCHEMA),
    ("XX000", "internal error", PostingReason.UNKNOWN),
    (None, None, PostingReason.UNKNOWN),
])
def test_insert_rejection_reason(code, message, reason):
    assert insert_rejection(code, message).reason == reason


def test_closing_trigger_date_is_extracted():
    error = insert_rejection("P0001", "Movimento em 2024-03-01 anterior ao último fechamento (2024-03-02)")
    assert error.blocking_date == date(2024, 3, 2)
    assert insert_rejection("P0001", "último fechamento").blocking_date is None


def test_insert_api_error_becomes_typed_rejection():
    db = FakeSupabase({"movimentos_bancarios": APIError({
        "message": "Movimento anterior ao último fechamento (2024-03-02)",
        "code": "P0001", "details": None, "hint": None,
    })})
    draft = MovementDraft(
        account_id="acc-1", kind=MovementKind.SAIDA, movement_date=date(2024, 3, 1),
        amount="100.00", description="Pagamento --> X", entry_id="l-1",
    )

    with pytest.raises(InsertRejectedError) as excinfo:
        asyncio.run(SupabaseLedgerStore(db).insert_movements([draft]))

    assert excinfo.value.reason == PostingReason.CLOSED_PERIOD
    assert excinfo.value.blocking_date == date(2024, 3, 2)
