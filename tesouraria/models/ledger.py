"""
Modelos do livro-caixa bancário: lançamentos, retenções, movimentos e fechamentos.

Rows do Supabase entram por aqui antes de chegar à lógica de negócio. Recursos
embutidos do PostgREST (bancos_contas, empresas, contrapartes, projetos...)
podem chegar como objeto ou como lista; `one()` normaliza para um único
objeto ou None, e os validadores achatam os joins nos campos do modelo.
"""
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from tesouraria.services.withholding import net_amount

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        # str() first: Decimal(0.1) would keep the binary float error
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"invalid amount: {value!r}") from e


def _blank(value: Any) -> str:
    return "" if value is None else str(value)


Money = Annotated[Decimal, BeforeValidator(to_money)]
Text = Annotated[str, BeforeValidator(_blank)]


def one(value: Any) -> dict | None:
    """Normalize an embedded resource (object, list or null) to one object or None."""
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else None


def _name(value: Any) -> str | None:
    row = one(value)
    return (row.get("nome") or None) if row else None


class EntryDirection(str, Enum):
    ENTRADA = "Entrada"
    SAIDA = "Saida"


class EntryStatus(str, Enum):
    ABERTO = "ABERTO"
    PAGO_RECEBIDO = "PAGO_RECEBIDO"
    CANCELADO = "CANCELADO"


class MovementKind(str, Enum):
    ENTRADA = "ENTRADA"
    SAIDA = "SAIDA"
    TRANSFERENCIA_ENVIADA = "TRANSFERENCIA_ENVIADA"
    TRANSFERENCIA_RECEBIDA = "TRANSFERENCIA_RECEBIDA"

    @property
    def is_credit(self) -> bool:
        return self in (MovementKind.ENTRADA, MovementKind.TRANSFERENCIA_RECEBIDA)

    @property
    def is_transfer(self) -> bool:
        return self in (MovementKind.TRANSFERENCIA_ENVIADA, MovementKind.TRANSFERENCIA_RECEBIDA)

    @classmethod
    def for_entry(cls, direction: EntryDirection) -> "MovementKind":
        return cls.SAIDA if direction == EntryDirection.SAIDA else cls.ENTRADA


class _Row(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WithholdingLine(_Row):
    tax_kind: str = Field(alias="imposto")
    amount: Money = Field(alias="valor")
    note: str | None = Field(default=None, alias="detalhe")


class AccountIdentity(_Row):
    account_id: str | None = Field(default=None, alias="banco_conta_id")
    bank_name: Text = Field(default="", alias="banco_nome")
    branch: Text = Field(default="", alias="agencia")
    account_number: Text = Field(default="", alias="numero_conta")
    account_type: Text = Field(default="", alias="tipo_conta")
    company_name: Text = Field(default="", alias="empresa_nome")


class TransferLeg(_Row):
    """The other side of a transfer, with its account denormalized."""

    movement_id: str = Field(alias="id")
    account: AccountIdentity

    @model_validator(mode="before")
    @classmethod
    def flatten_account(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "account" in data:
            return data
        conta = one(data.get("bancos_contas")) or {}
        return {
            "id": data.get("id"),
            "account": {
                "banco_conta_id": data.get("banco_conta_id"),
                "banco_nome": conta.get("banco_nome"),
                "agencia": conta.get("agencia"),
                "numero_conta": conta.get("numero_conta"),
                "tipo_conta": conta.get("tipo_conta"),
                "empresa_nome": _name(conta.get("empresas")),
            },
        }


class Movement(_Row):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    account_id: str = Field(alias="banco_conta_id")
    kind: MovementKind = Field(alias="tipo_movimento")
    movement_date: date = Field(alias="data_movimento")
    amount: Money = Field(alias="valor")
    description: Text = Field(default="", alias="historico")
    document: str | None = Field(default=None, alias="documento")
    entry_id: str | None = Field(default=None, alias="lancamento_id")
    transfer_ref: str | None = Field(default=None, alias="transferencia_id")
    created_at: datetime | None = None

    @property
    def is_transfer(self) -> bool:
        return self.kind.is_transfer

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.kind.is_credit else -self.amount


class MovementDraft(_Row):
    """Movimento not yet persisted, built by the baixa."""

    account_id: str = Field(alias="banco_conta_id")
    kind: MovementKind = Field(alias="tipo_movimento")
    movement_date: date = Field(alias="data_movimento")
    amount: Money = Field(alias="valor")
    description: str = Field(alias="historico")
    entry_id: str | None = Field(default=None, alias="lancamento_id")

    def to_row(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class PeriodClosing(_Row):
    account_id: str = Field(alias="banco_conta_id")
    closing_date: date = Field(alias="data_fechamento")
    closing_balance: Money = Field(default=ZERO, alias="saldo_final")
    # fechado=false means the period was reopened and no longer counts
    active: bool = Field(default=True, alias="fechado")


class PendingEntry(_Row):
    id: str
    direction: EntryDirection = Field(alias="tipo")
    status: EntryStatus = EntryStatus.ABERTO
    company_id: str | None = Field(default=None, alias="empresa_id")
    company_name: str | None = Field(default=None, alias="empresa_nome")
    project_name: str | None = Field(default=None, alias="projeto_nome")
    subproject_name: str | None = Field(default=None, alias="subprojeto_nome")
    account_id: str | None = Field(default=None, alias="banco_conta_id")
    counterparty_id: str | None = Field(default=None, alias="contraparte_id")
    counterparty_name: str | None = Field(default=None, alias="contraparte_nome")
    classification_id: str | None = Field(default=None, alias="plano_conta_id")
    category: str | None = Field(default=None, alias="categoria")
    subcategory: str | None = Field(default=None, alias="subcategoria")
    gross_amount: Money = Field(alias="valor_bruto")
    stored_net_amount: Money | None = Field(default=None, alias="valor_liquido")
    withholdings: list[WithholdingLine] = Field(default_factory=list, alias="lancamento_retencoes")
    due_date: date | None = Field(default=None, alias="data_vencimento")
    issue_date: date | None = Field(default=None, alias="data_emissao")
    settlement_date: date | None = Field(default=None, alias="data_liquidacao")
    third_party_payment: bool = Field(default=False, alias="pagamento_terceiro")
    payer_company_id: str | None = Field(default=None, alias="empresa_pagadora_id")
    payer_company_name: str | None = Field(default=None, alias="empresa_pagadora_nome")

    @field_validator("withholdings", mode="before")
    @classmethod
    def no_withholdings(cls, v: Any) -> Any:
        return v or []

    @field_validator("third_party_payment", mode="before")
    @classmethod
    def null_flag(cls, v: Any) -> bool:
        return bool(v)

    @model_validator(mode="before")
    @classmethod
    def flatten_joins(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        joins = {
            "empresa": "empresa_nome",
            "empresa_pagadora": "empresa_pagadora_nome",
            "contrapartes": "contraparte_nome",
            "projeto": "projeto_nome",
            "subprojeto": "subprojeto_nome",
        }
        for join, field in joins.items():
            if join in data:
                data.setdefault(field, _name(data.pop(join)))
        if "plano_conta" in data:
            plano = one(data.pop("plano_conta")) or {}
            data.setdefault("categoria", plano.get("categoria") or None)
            data.setdefault("subcategoria", plano.get("subcategoria") or None)
        return data

    @property
    def net_amount(self) -> Decimal:
        return net_amount(self.gross_amount, self.withholdings)


class StatementLine(BaseModel):
    movement_id: str
    movement_date: date
    kind: MovementKind
    amount: Decimal
    balance: Decimal
    description: str
    document: str | None = None
    entry_id: str | None = None
    counterpart: AccountIdentity | None = None


class Statement(BaseModel):
    account_id: str
    start_date: date
    end_date: date
    opening_balance: Decimal
    opening_date: date | None = None
    lines: list[StatementLine] = Field(default_factory=list)
    total_credits: Decimal = ZERO
    total_debits: Decimal = ZERO
    closing_balance: Decimal = ZERO


class SkippedEntryWarning(BaseModel):
    """Entry left out of posting; the batch goes on without it."""

    entry_id: str
    reason: str


class SettlementPlan(BaseModel):
    settlement_date: date
    entry_ids: list[str]
    drafts: list[MovementDraft] = Field(default_factory=list)
    skipped: list[SkippedEntryWarning] = Field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((d.amount for d in self.drafts), ZERO)


class SettlementReport(BaseModel):
    settlement_date: date
    settled_count: int
    total_amount: Decimal
    # rows sent to the insert; movement_ids can be shorter when RLS hides returned rows
    posted_count: int = 0
    movement_ids: list[str] = Field(default_factory=list)
    skipped: list[SkippedEntryWarning] = Field(default_factory=list)
