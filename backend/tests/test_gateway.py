import pytest
from unittest.mock import MagicMock, patch

from core.errors import FatalEnvironmentError, ParseError, QueryConnectionError
from core.gateway import QueryGateway
from core.results import NO_ROWS, EmptyResult, TabularResult, parse_count, parse_int
from models.precheck import ConnectionMode, Target


def _target():
    return Target(database="SAMPLE", mode=ConnectionMode.LOCAL, instance="db2inst1")


def test_parse_int():
    assert parse_int(" 42 ") == 42
    assert parse_int("-1", signed=True) == -1
    for raw in ["", "-1", "4.5", "SQL1024N", "12 rows"]:
        with pytest.raises(ParseError):
            parse_int(raw)


def test_parse_count_rejects_empty_result():
    with pytest.raises(ParseError) as exc:
        parse_count(EmptyResult())
    assert exc.value.raw == NO_ROWS


def test_tabular_result_column_lookup_is_case_insensitive():
    result = TabularResult(("TBSP_NAME", "TBSP_STATE"), (("USERSPACE1", "NORMAL"),))
    assert result.column("tbsp_state") == ["NORMAL"]
    assert result.first_cell() == "USERSPACE1"


def test_execute_returns_rows_as_text(temp_sqlite_db):
    gw = QueryGateway(url_override=f"sqlite:///{temp_sqlite_db}")
    result = gw.execute(_target(), "SELECT COUNT(*) FROM invalidobjects")
    assert isinstance(result, TabularResult)
    assert result.rows == (("1",),)
    assert parse_count(result).value == 1


def test_execute_with_headers(temp_sqlite_db):
    gw = QueryGateway(url_override=f"sqlite:///{temp_sqlite_db}")
    result = gw.execute(_target(), "SELECT objectschema, objectname FROM invalidobjects", with_headers=True)
    assert result.columns == ("OBJECTSCHEMA", "OBJECTNAME")
    assert result.rows == (("APP", "V_ORDERS"),)


def test_execute_no_rows_is_empty_result(temp_sqlite_db):
    gw = QueryGateway(url_override=f"sqlite:///{temp_sqlite_db}")
    result = gw.execute(_target(), "SELECT wrapname, library FROM wrappers")
    assert isinstance(result, EmptyResult)
    assert result.as_text() == NO_ROWS


def test_failed_statement_raises_query_connection_error(temp_sqlite_db):
    gw = QueryGateway(url_override=f"sqlite:///{temp_sqlite_db}")
    with pytest.raises(QueryConnectionError) as exc:
        gw.execute(_target(), "SELECT * FROM SYSCAT.TABLES")
    assert exc.value.database == "SAMPLE"
    assert "SYSCAT.TABLES" in exc.value.statement


def test_missing_dialect_is_fatal():
    gw = QueryGateway(dialect="nosuchdb+nosuchdriver")
    with pytest.raises(FatalEnvironmentError):
        gw.check_driver(_target())


class DriverError(Exception):
    pass


def _engine(callproc):
    engine = MagicMock()
    engine.dialect.loaded_dbapi.Error = DriverError
    conn = engine.connect.return_value.__enter__.return_value
    conn.connection.driver_connection.cursor.return_value.callproc.side_effect = callproc
    return engine


def test_call_returns_out_parameters():
    seen = []

    def callproc(name, params):
        seen.append((name, params))
        return ("2024-05-01-10.00.00.000000", 5368709120, 107374182400, -1)

    engine = _engine(callproc)
    with patch.object(QueryGateway, "_create_engine", return_value=engine):
        result = QueryGateway().call(_target(), "SYSPROC.GET_DBSIZE_INFO", (None, None, None, -1))
    assert seen == [("SYSPROC.GET_DBSIZE_INFO", (None, None, None, -1))]
    assert result.rows == (("2024-05-01-10.00.00.000000", "5368709120", "107374182400", "-1"),)
    engine.dispose.assert_called_once()


def test_call_driver_error_raises_query_connection_error():
    def callproc(name, params):
        raise DriverError("SQL0440N No authorized routine named GET_DBSIZE_INFO")

    engine = _engine(callproc)
    with patch.object(QueryGateway, "_create_engine", return_value=engine):
        with pytest.raises(QueryConnectionError) as exc:
            QueryGateway().call(_target(), "SYSPROC.GET_DBSIZE_INFO", (None, None, None, -1))
    assert exc.value.statement == "CALL SYSPROC.GET_DBSIZE_INFO"
    engine.dispose.assert_called_once()
