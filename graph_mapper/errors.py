import enum
import typing


class SchemaError(ValueError):
    pass


class UnknownAttribute(SchemaError):
    pass


class InvalidAttribute(SchemaError):
    pass


class UnsupportedType(SchemaError):
    pass


class MissingPartitionPool(SchemaError):
    pass


class UnresolvedTempId(LookupError):
    pass


class ErrorKind(enum.Enum):
    CONNECTION_UNAVAILABLE = "connection-unavailable"
    STRING_TOO_LONG = "string-too-long"
    INVALID_ENCODING = "invalid-encoding"
    INVALID_VALUE_REPRESENTATION = "invalid-value-representation"
    NOT_NULL_VIOLATION = "not-null-violation"
    UNIQUENESS_VIOLATION = "uniqueness-violation"
    CHECK_VIOLATION = "check-violation"
    SERIALIZATION_CONFLICT = "serialization-conflict"
    STATEMENT_TIMEOUT = "statement-timeout"
    UNKNOWN = "unknown"


# https://www.postgresql.org/docs/current/errcodes-appendix.html
SQL_STATE_KINDS: typing.Dict[str, ErrorKind] = {
    "08003": ErrorKind.CONNECTION_UNAVAILABLE,
    "22001": ErrorKind.STRING_TOO_LONG,
    "22021": ErrorKind.INVALID_ENCODING,
    "22P02": ErrorKind.INVALID_VALUE_REPRESENTATION,
    "23502": ErrorKind.NOT_NULL_VIOLATION,
    "23505": ErrorKind.UNIQUENESS_VIOLATION,
    "23514": ErrorKind.CHECK_VIOLATION,
    "40001": ErrorKind.SERIALIZATION_CONFLICT,
    "57014": ErrorKind.STATEMENT_TIMEOUT,
}

CONNECTION_EXCEPTION_CLASS = "08"


def kind_for_sql_state(sql_state: typing.Optional[str]) -> ErrorKind:
    if not sql_state:
        return ErrorKind.UNKNOWN
    try:
        return SQL_STATE_KINDS[sql_state]
    except KeyError:
        if sql_state.startswith(CONNECTION_EXCEPTION_CLASS):
            return ErrorKind.CONNECTION_UNAVAILABLE
        return ErrorKind.UNKNOWN


class StoreError(Exception):
    def __init__(self, kind: ErrorKind, sql_state: typing.Optional[str] = None, message: str = "") -> None:
        super().__init__(f"{kind.value}: {message}" if message else kind.value)
        self.kind = kind
        self.sql_state = sql_state
        self.message = message

    @property
    def is_serialization_conflict(self) -> bool:
        return self.kind is ErrorKind.SERIALIZATION_CONFLICT
