from __future__ import annotations

from enum import Enum


class DbErrorCode(str, Enum):
    not_found = "NOT_FOUND"
    constraint = "CONSTRAINT"
    connection = "CONNECTION"
    unknown = "UNKNOWN"


_HTTP_STATUS = {
    DbErrorCode.not_found: 404,
    DbErrorCode.constraint: 400,
    DbErrorCode.connection: 500,
    DbErrorCode.unknown: 500,
}


class DbError(Exception):
    """Persistence failure carrying a code the API layer maps to an HTTP status."""

    def __init__(self, message: str, code: DbErrorCode = DbErrorCode.unknown):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.code]

    @classmethod
    def not_found(cls, entity: str, entity_id: str) -> "DbError":
        return cls(f"{entity} {entity_id} not found", DbErrorCode.not_found)
