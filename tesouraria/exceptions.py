"""
Erros tipados do extrato e da baixa.

Toda operação do núcleo devolve um Result: ou o valor, ou um LedgerError.
A mensagem exibida ao usuário vem do tipo do erro e dos seus dados, nunca do
texto bruto devolvido pelo Supabase.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CLOSED_PERIOD = "closed_period"
    LOOKUP_FAILED = "lookup_failed"
    POSTING = "posting"
    PARTIAL_FAILURE = "partial_failure"
    STATEMENT_BUILD = "statement_build"


class StoreError(Exception):
    """Raised by a LedgerStore when a write did not take effect."""


class PostingReason(str, Enum):
    CLOSED_PERIOD = "closed_period"
    DUPLICATE = "duplicate"
    INVALID_REFERENCE = "invalid_reference"
    SCHEMA = "schema"
    UNKNOWN = "unknown"


class InsertRejectedError(StoreError):
    """The database refused the movimentos insert; nothing was written.

    `blocking_date` is set when the closing trigger named the fechamento date.
    """

    def __init__(self, reason: PostingReason, message: str = "", blocking_date: date | None = None):
        self.reason = reason
        self.blocking_date = blocking_date
        super().__init__(message or reason.value)


class LedgerError(Exception):
    """Base class for every error returned by statement and baixa operations."""

    kind: ErrorKind
    default_message = "Erro inesperado. Por favor, tente novamente"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self.args[0])

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.user_message}


class ValidationError(LedgerError):
    """Missing selection, missing date or entries not eligible. Nothing was written."""

    kind = ErrorKind.VALIDATION
    default_message = "Dados inválidos. Verifique a seleção e tente novamente"


class ClosedPeriodError(LedgerError):
    """Settlement date falls on or before the last closing of an account."""

    kind = ErrorKind.CLOSED_PERIOD

    def __init__(self, account_id: str | None, blocking_date: date | None):
        self.account_id = account_id
        self.blocking_date = blocking_date
        message = "Não é possível baixar lançamentos na data informada. O período está fechado"
        if blocking_date is not None:
            message += f" até {blocking_date.strftime('%d/%m/%Y')}"
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["banco_conta_id"] = self.account_id
        data["data_fechamento"] = self.blocking_date.isoformat() if self.blocking_date else None
        return data


class LookupFailedError(LedgerError):
    kind = ErrorKind.LOOKUP_FAILED
    default_message = "Erro ao buscar dados dos lançamentos. Verifique sua conexão e tente novamente"


class PostingError(LedgerError):
    """Bulk insert of movimentos failed; no lancamento was touched."""

    kind = ErrorKind.POSTING
    default_message = (
        "Erro ao registrar movimentos bancários. "
        "Nenhum lançamento foi baixado; verifique os dados e tente novamente"
    )
    messages = {
        PostingReason.DUPLICATE: "Movimento bancário já existe para este lançamento. Nenhum lançamento foi baixado",
        PostingReason.INVALID_REFERENCE: "Referência inválida. Verifique se a conta bancária dos lançamentos está correta",
        PostingReason.SCHEMA: (
            "Estrutura da tabela movimentos_bancarios está incorreta. Verifique se as colunas "
            "tipo_movimento, lancamento_id, banco_conta_id, data_movimento, valor e historico existem"
        ),
    }

    def __init__(self, reason: PostingReason = PostingReason.UNKNOWN):
        self.reason = reason
        super().__init__(self.messages.get(reason))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["motivo"] = self.reason.value
        return data


class PartialFailureError(LedgerError):
    """Movimentos were posted but some lancamentos kept their old status.

    Ledger and entry status disagree until someone reconciles by hand.
    Must never be retried automatically: a second run would post the
    movimentos again.
    """

    kind = ErrorKind.PARTIAL_FAILURE

    def __init__(self, failed_entry_ids: list[str], movement_ids: list[str], settled_count: int = 0):
        self.failed_entry_ids = list(failed_entry_ids)
        self.movement_ids = list(movement_ids)
        self.settled_count = settled_count
        super().__init__(
            f"Erro ao atualizar {len(self.failed_entry_ids)} lançamento(s). "
            "Os movimentos foram registrados mas o status não foi atualizado. "
            "Concilie manualmente antes de tentar novamente"
        )

    @property
    def unreconciled_count(self) -> int:
        return len(self.failed_entry_ids)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["lancamentos_nao_atualizados"] = self.failed_entry_ids
        data["movimento_ids"] = self.movement_ids
        data["baixados"] = self.settled_count
        return data


class StatementBuildError(LedgerError):
    kind = ErrorKind.STATEMENT_BUILD
    default_message = "Ocorreu um erro ao buscar o extrato. Por favor, tente novamente."


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: LedgerError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value
