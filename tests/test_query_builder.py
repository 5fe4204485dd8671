from datetime import datetime

import pytest

from query_builder import (
    QueryError,
    SearchCondition,
    _Params,
    build_report_query,
    condition_sql,
    escape_like,
    parse_boundary,
    parse_conditions,
    parse_pagination,
    total_pages,
)
from report_types import get_report_type


def test_parse_conditions_accepts_json_and_drops_incomplete():
    raw = (
        '[{"field": "ITEM_ID", "operation": "like", "value": "ABC"},'
        ' {"field": "", "operation": "=", "value": "x"},'
        ' {"field": "QUANTITY", "operation": ">", "value": "  "},'
        ' {"field": "ASN_ID", "operation": "IS_NULL", "boolean": "or"}]'
    )
    conditions = parse_conditions(raw)
    assert conditions == [
        SearchCondition("ITEM_ID", "LIKE", "ABC", "AND"),
        SearchCondition("ASN_ID", "IS_NULL", "", "OR"),
    ]


def test_parse_conditions_rejects_unknown_operation():
    with pytest.raises(QueryError):
        parse_conditions([{"field": "ITEM_ID", "operation": "REGEXP", "value": "x"}])


def test_parse_conditions_rejects_bad_json():
    with pytest.raises(QueryError):
        parse_conditions("[{")


def test_parse_conditions_empty():
    assert parse_conditions(None) == []
    assert parse_conditions("") == []


def test_escape_like():
    assert escape_like("50%_a\\b") == "50\\%\\_a\\\\b"


def test_parse_boundary_bare_end_date_covers_day():
    assert parse_boundary("2024-01-31", end=True) == datetime(2024, 1, 31, 23, 59, 59)
    assert parse_boundary("2024-01-31") == datetime(2024, 1, 31)
    assert parse_boundary("2024-01-31T08:30:00") == datetime(2024, 1, 31, 8, 30)
    assert parse_boundary("") is None


def test_parse_boundary_invalid():
    with pytest.raises(QueryError):
        parse_boundary("31/01/2024")


def test_inbound_query_with_search_and_dates():
    report = get_report_type("stockinbound")
    built = build_report_query(
        report, search="ABC", start_date="2024-01-01", end_date="2024-01-31", page=3, limit=20
    )
    assert built.count_sql.startswith("SELECT COUNT(*) AS total_count FROM (")
    assert "inb.ITEM_ID LIKE :p0 OR inb.LPN_ID LIKE :p0" in built.count_sql
    assert "inb.UPDATED_TIMESTAMP >= :p1" in built.count_sql
    assert "inb.UPDATED_TIMESTAMP <= :p2" in built.count_sql
    assert built.params == {
        "p0": "%ABC%",
        "p1": datetime(2024, 1, 1),
        "p2": datetime(2024, 1, 31, 23, 59, 59),
    }
    assert built.page_sql.endswith("ORDER BY UPDATED_TIMESTAMP DESC LIMIT :limit OFFSET :offset")
    assert built.page_params["limit"] == 20
    assert built.page_params["offset"] == 40


def test_reversed_dates_are_swapped():
    report = get_report_type("stockinbound")
    built = build_report_query(report, start_date="2024-02-01", end_date="2024-01-01")
    assert built.params["p0"] == datetime(2024, 1, 1)
    assert built.params["p1"] == datetime(2024, 2, 1, 23, 59, 59)


def test_conditions_nest_left_to_right():
    report = get_report_type("stockinbound")
    conditions = [
        SearchCondition("ITEM_ID", "=", "A"),
        SearchCondition("QUANTITY", ">=", "5", "AND"),
        SearchCondition("ASN_ID", "IS_NULL", "", "OR"),
    ]
    built = build_report_query(report, conditions=conditions)
    assert (
        "AS report_rows WHERE ((`ITEM_ID` = :p0 AND `QUANTITY` >= :p1) OR "
        "(`ASN_ID` IS NULL OR `ASN_ID` = ''))"
    ) in built.count_sql
    assert built.params == {"p0": "A", "p1": "5"}


def test_single_condition_is_parenthesized():
    report = get_report_type("stockinbound")
    built = build_report_query(report, conditions=[SearchCondition("ITEM_ID", "BEGINS_WITH", "AB_")])
    assert "WHERE (`ITEM_ID` LIKE :p0)" in built.count_sql
    assert built.params["p0"] == "AB\\_%"


def test_in_condition_splits_values():
    report = get_report_type("stockinbound")
    built = build_report_query(report, conditions=[SearchCondition("ITEM_ID", "IN", "A, B,,C")])
    assert "`ITEM_ID` IN (:p0, :p1, :p2)" in built.count_sql
    assert [built.params[k] for k in ("p0", "p1", "p2")] == ["A", "B", "C"]


def test_unknown_condition_field_is_rejected():
    report = get_report_type("stockinbound")
    with pytest.raises(QueryError):
        build_report_query(report, conditions=[SearchCondition("DROP TABLE", "=", "x")])


def test_trace_search_is_exact_in_both_union_parts():
    report = get_report_type("tracetransaction")
    built = build_report_query(report, search="ITEM-1")
    assert " UNION ALL " in built.page_sql
    assert "transaction_data.item_id = :p0" in built.page_sql
    assert "total_data.item_id = :p1" in built.page_sql
    assert built.params == {"p0": "ITEM-1", "p1": "ITEM-1"}


def test_trace_ignores_date_range():
    report = get_report_type("tracetransaction")
    built = build_report_query(report, start_date="2024-01-01", end_date="2024-01-02")
    assert built.params == {}


def test_allocation_search_splits_comma_values():
    report = get_report_type("inboundallocation")
    built = build_report_query(report, search="A1,C2")
    assert "out1.ITEM_ID IN (:p0, :p1) OR out1.INVENTORY_CONTAINER_ID IN (:p0, :p1)" in built.page_sql
    assert built.params == {"p0": "A1", "p1": "C2"}
    assert "ORDER BY Transfer_Order_Number, Original_Order_Line_ID" in built.page_sql


def test_parse_pagination_defaults_and_cap():
    assert parse_pagination(None, None) == (1, 10)
    assert parse_pagination("0", "-5") == (1, 10)
    assert parse_pagination("2", "500", max_limit=100) == (2, 100)
    assert parse_pagination("abc", "25") == (1, 25)


def test_total_pages():
    assert total_pages(0, 10) == 0
    assert total_pages(10, 10) == 1
    assert total_pages(11, 10) == 2


@pytest.mark.parametrize(
    "operation, value, fragment, bound",
    [
        ("=", "A1", "`ITEM_ID` = :p0", {"p0": "A1"}),
        ("!=", "A1", "`ITEM_ID` != :p0", {"p0": "A1"}),
        (">", "5", "`ITEM_ID` > :p0", {"p0": "5"}),
        ("<", "5", "`ITEM_ID` < :p0", {"p0": "5"}),
        (">=", "5", "`ITEM_ID` >= :p0", {"p0": "5"}),
        ("<=", "5", "`ITEM_ID` <= :p0", {"p0": "5"}),
        ("LIKE", "AB", "`ITEM_ID` LIKE :p0", {"p0": "%AB%"}),
        ("BEGINS_WITH", "AB", "`ITEM_ID` LIKE :p0", {"p0": "AB%"}),
        ("ENDS_WITH", "AB", "`ITEM_ID` LIKE :p0", {"p0": "%AB"}),
        ("IN", "A, B", "`ITEM_ID` IN (:p0, :p1)", {"p0": "A", "p1": "B"}),
        ("IS_NULL", "", "(`ITEM_ID` IS NULL OR `ITEM_ID` = '')", {}),
        ("IS_NOT_NULL", "", "(`ITEM_ID` IS NOT NULL AND `ITEM_ID` <> '')", {}),
    ],
)
def test_condition_sql_maps_each_operation(operation, value, fragment, bound):
    params = _Params()
    condition = SearchCondition("ITEM_ID", operation, value)
    assert condition_sql(condition, ["ITEM_ID"], params) == fragment
    assert params.values == bound


def test_in_condition_with_only_commas_is_rejected():
    with pytest.raises(QueryError, match="IN needs at least one value"):
        condition_sql(SearchCondition("ITEM_ID", "IN", ",,"), ["ITEM_ID"], _Params())


def test_parse_conditions_accepts_single_object():
    conditions = parse_conditions('{"field": "ITEM_ID", "operator": "ends_with", "value": "X"}')
    assert conditions == [SearchCondition("ITEM_ID", "ENDS_WITH", "X", "AND")]
