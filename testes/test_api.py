"""Endpoints HTTP: status codes e payloads"""

from datetime import date

from tesouraria.exceptions import InsertRejectedError, PostingReason
from tesouraria.models.ledger import EntryDirection, EntryStatus, MovementKind


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_extrato(client, store):
    store.add_closing("acc-1", date(2024, 1, 31), "1000.00")
    store.add_movement("acc-1", MovementKind.ENTRADA, date(2024, 2, 5), "500.00")
    store.add_movement("acc-1", MovementKind.SAIDA, date(2024, 2, 10), "200.00")

    resp = client.get("/extrato/acc-1", params={"data_inicial": "2024-02-01", "data_final": "2024-02-29"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["opening_balance"] == "1000.00"
    assert [line["balance"] for line in body["lines"]] == ["1500.00", "1300.00"]
    assert body["closing_balance"] == "1300.00"


def test_extrato_inverted_range(client):
    resp = client.get("/extrato/acc-1", params={"data_inicial": "2024-03-01", "data_final": "2024-02-01"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["kind"] == "validation"


def test_extrato_store_failure(client, store):
    store.failures["fetch_movements"] = ConnectionError("timeout")

    resp = client.get("/extrato/acc-1", params={"data_inicial": "2024-02-01", "data_final": "2024-02-29"})

    assert resp.status_code == 503
    assert resp.json()["detail"]["kind"] == "statement_build"


def test_fechamento_status(client, store):
    store.add_closing("acc-1", date(2024, 1, 31), "700.00")
    store.add_closing("acc-1", date(2024, 3, 2), "900.00")

    body = client.get("/fechamentos/acc-1/status", params={"data": "2024-03-01"}).json()

    assert body["fechado"] is True
    assert body["fechado_ate"] == "2024-03-02"
    assert body["saldo_anterior"] == "700.00"
    assert body["data_saldo_anterior"] == "2024-01-31"


def test_fechamento_status_open_account(client):
    body = client.get("/fechamentos/acc-1/status", params={"data": "2024-03-01"}).json()
    assert body["fechado"] is False
    assert body["saldo_anterior"] is None


def test_pendentes_lists_open_entries(client, store):
    store.add_entry("l-1", "100.00", due_date=date(2024, 3, 10))
    store.add_entry("l-2", "50.00", direction=EntryDirection.ENTRADA, due_date=date(2024, 3, 5))
    store.add_entry("l-3", "10.00", status=EntryStatus.PAGO_RECEBIDO)

    body = client.get("/baixas/pendentes").json()

    assert body["total"] == 2
    assert body["valor_total"] == "150.00"
    assert [item["id"] for item in body["itens"]] == ["l-2", "l-1"]

    body = client.get("/baixas/pendentes", params={"tipo": "Saida"}).json()
    assert [item["id"] for item in body["itens"]] == ["l-1"]


def test_processar_defaults_to_dry_run(client, store):
    store.add_entry("l-1", "100.00", counterparty_name="Fornecedor A")

    resp = client.post("/baixas/processar", json={"lancamento_ids": ["l-1"], "data_liquidacao": "2024-03-01"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["mode"] == "dry_run"
    assert body["valor_total"] == "100.00"
    assert body["movimentos"][0]["historico"] == "Pagamento --> Fornecedor A"
    assert store.posted == []


def test_processar_posts_and_settles(client, store):
    store.add_entry("l-1", "100.00")
    store.add_entry("l-2", "250.00")

    resp = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1", "l-2"], "data_liquidacao": "2024-03-01", "dry_run": False,
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["mode"] == "process"
    assert body["baixados"] == 2
    assert body["valor_total"] == "350.00"
    assert len(body["movimento_ids"]) == 2


def test_processar_closed_period(client, store):
    store.add_closing("acc-1", date(2024, 3, 2))
    store.add_entry("l-1", "100.00")

    resp = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1"], "data_liquidacao": "2024-03-01", "dry_run": False,
    })

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["kind"] == "closed_period"
    assert detail["data_fechamento"] == "2024-03-02"
    assert store.posted == []


def test_processar_without_selection(client):
    resp = client.post("/baixas/processar", json={"lancamento_ids": [], "data_liquidacao": "2024-03-01"})
    assert resp.status_code == 422


def test_processar_partial_failure(client, store):
    store.add_entry("l-1", "100.00")
    store.add_entry("l-2", "100.00")
    store.failing_updates.add("l-1")

    resp = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1", "l-2"], "data_liquidacao": "2024-03-01", "dry_run": False,
    })

    assert resp.status_code == 500
    detail = resp.json()["detail"]
    assert detail["kind"] == "partial_failure"
    assert detail["lancamentos_nao_atualizados"] == ["l-1"]
    assert detail["baixados"] == 1


def test_processar_posting_failure(client, store):
    store.add_entry("l-1", "100.00")
    store.failures["insert_movements"] = RuntimeError("boom")

    resp = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1"], "data_liquidacao": "2024-03-01", "dry_run": False,
    })

    assert resp.status_code == 502
    assert resp.json()["detail"]["kind"] == "posting"


def test_processar_closing_trigger_on_insert(client, store):
    store.add_entry("l-1", "100.00")
    store.failures["insert_movements"] = InsertRejectedError(
        PostingReason.CLOSED_PERIOD, "último fechamento (2024-03-02)", blocking_date=date(2024, 3, 2)
    )

    resp = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1"], "data_liquidacao": "2024-03-01", "dry_run": False,
    })

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["kind"] == "closed_period"
    assert detail["data_fechamento"] == "2024-03-02"


def test_processar_duplicate_movement(client, store):
    store.add_entry("l-1", "100.00")
    store.failures["insert_movements"] = InsertRejectedError(PostingReason.DUPLICATE, "23505")

    resp = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1"], "data_liquidacao": "2024-03-01", "dry_run": False,
    })

    assert resp.status_code == 502
    assert resp.json()["detail"]["motivo"] == "duplicate"


def test_processar_reports_sent_movements(client, store):
    store.add_entry("l-1", "100.00")
    store.add_entry("l-2", "250.00")
    store.visible_inserts = 0

    body = client.post("/baixas/processar", json={
        "lancamento_ids": ["l-1", "l-2"], "data_liquidacao": "2024-03-01", "dry_run": False,
    }).json()

    assert body["movimentos_enviados"] == 2
    assert body["movimento_ids"] == []
