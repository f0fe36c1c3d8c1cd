from fastapi import HTTPException

from tesouraria.exceptions import ErrorKind, LedgerError

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.CLOSED_PERIOD: 409,
    ErrorKind.LOOKUP_FAILED: 503,
    ErrorKind.POSTING: 502,
    ErrorKind.PARTIAL_FAILURE: 500,
    ErrorKind.STATEMENT_BUILD: 503,
}


def http_error(error: LedgerError) -> HTTPException:
    return HTTPException(status_code=STATUS_BY_KIND.get(error.kind, 500), detail=error.to_dict())
