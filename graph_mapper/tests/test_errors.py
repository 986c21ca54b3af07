import pytest

from graph_mapper.errors import ErrorKind, StoreError, kind_for_sql_state


@pytest.mark.parametrize(
    "sql_state, kind",
    [
        ("08003", ErrorKind.CONNECTION_UNAVAILABLE),
        ("08006", ErrorKind.CONNECTION_UNAVAILABLE),
        ("22001", ErrorKind.STRING_TOO_LONG),
        ("22021", ErrorKind.INVALID_ENCODING),
        ("22P02", ErrorKind.INVALID_VALUE_REPRESENTATION),
        ("23502", ErrorKind.NOT_NULL_VIOLATION),
        ("23505", ErrorKind.UNIQUENESS_VIOLATION),
        ("23514", ErrorKind.CHECK_VIOLATION),
        ("40001", ErrorKind.SERIALIZATION_CONFLICT),
        ("57014", ErrorKind.STATEMENT_TIMEOUT),
        ("42P01", ErrorKind.UNKNOWN),
        (None, ErrorKind.UNKNOWN),
    ],
)
def test_maps_sql_states(sql_state: str, kind: ErrorKind) -> None:
    assert kind_for_sql_state(sql_state) is kind


def test_store_error_message() -> None:
    error = StoreError(ErrorKind.STRING_TOO_LONG, "22001", "value too long for type character varying(40)")

    assert str(error) == "string-too-long: value too long for type character varying(40)"
    assert not error.is_serialization_conflict
    assert StoreError(ErrorKind.SERIALIZATION_CONFLICT).is_serialization_conflict
