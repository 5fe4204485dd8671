from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterable

from report_types import ReportType

VALUE_OPERATIONS = {"=", "!=", ">", "<", ">=", "<="}
LIKE_OPERATIONS = {"LIKE", "BEGINS_WITH", "ENDS_WITH"}
NULL_OPERATIONS = {"IS_NULL", "IS_NOT_NULL"}
OPERATIONS = VALUE_OPERATIONS | LIKE_OPERATIONS | NULL_OPERATIONS | {"IN"}
BOOLEANS = {"AND", "OR"}

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


class QueryError(ValueError):
    """Raised for request input that cannot become a valid report query."""


@dataclass
class SearchCondition:
    field: str
    operation: str
    value: str = ""
    boolean: str = "AND"

    @property
    def needs_value(self) -> bool:
        return self.operation not in NULL_OPERATIONS


@dataclass
class ReportQuery:
    count_sql: str
    page_sql: str
    params: dict[str, Any]
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def page_params(self) -> dict[str, Any]:
        return {**self.params, "limit": self.limit, "offset": self.offset}


@dataclass
class _Params:
    values: dict[str, Any] = field(default_factory=dict)

    def add(self, value: Any) -> str:
        name = f"p{len(self.values)}"
        self.values[name] = value
        return f":{name}"


def parse_conditions(raw: Any) -> list[SearchCondition]:
    """Accept conditions as a JSON string or a decoded list and drop incomplete ones."""
    if raw in (None, "", []):
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise QueryError(f"searchConditions is not valid JSON: {exc.msg}") from exc
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        raise QueryError("searchConditions must be a list")

    conditions = []
    for item in raw:
        if not isinstance(item, dict):
            raise QueryError("Each search condition must be an object")
        operation = str(item.get("operation") or item.get("operator") or "=").strip().upper()
        if operation not in OPERATIONS:
            raise QueryError(f"Unsupported operation: {operation}")
        boolean = str(item.get("boolean") or "AND").strip().upper()
        if boolean not in BOOLEANS:
            raise QueryError(f"Unsupported boolean: {boolean}")
        value = item.get("value")
        condition = SearchCondition(
            field=str(item.get("field") or "").strip(),
            operation=operation,
            value="" if value is None else str(value).strip(),
            boolean=boolean,
        )
        if not condition.field:
            continue
        if condition.needs_value and not condition.value:
            continue
        conditions.append(condition)
    return conditions


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def split_values(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def condition_sql(condition: SearchCondition, allowed_fields: Iterable[str], params: _Params) -> str:
    if condition.field not in set(allowed_fields):
        raise QueryError(f"Unknown search field: {condition.field}")
    column = f"`{condition.field}`"
    op = condition.operation

    if op in VALUE_OPERATIONS:
        return f"{column} {op} {params.add(condition.value)}"
    if op == "LIKE":
        return f"{column} LIKE {params.add('%' + escape_like(condition.value) + '%')}"
    if op == "BEGINS_WITH":
        return f"{column} LIKE {params.add(escape_like(condition.value) + '%')}"
    if op == "ENDS_WITH":
        return f"{column} LIKE {params.add('%' + escape_like(condition.value))}"
    if op == "IN":
        values = split_values(condition.value)
        if not values:
            raise QueryError(f"IN needs at least one value for {condition.field}")
        placeholders = ", ".join(params.add(value) for value in values)
        return f"{column} IN ({placeholders})"
    if op == "IS_NULL":
        return f"({column} IS NULL OR {column} = '')"
    return f"({column} IS NOT NULL AND {column} <> '')"


def conditions_sql(conditions: list[SearchCondition], allowed_fields: Iterable[str], params: _Params) -> str:
    """Join conditions strictly left to right, e.g. ``((a AND b) OR c)``."""
    allowed = list(allowed_fields)
    expression = ""
    for condition in conditions:
        fragment = condition_sql(condition, allowed, params)
        if not expression:
            expression = fragment
        else:
            expression = f"({expression} {condition.boolean} {fragment})"
    if expression and not expression.startswith("("):
        expression = f"({expression})"
    return expression


def search_sql(report: ReportType, search: str, params: _Params) -> str | None:
    search = (search or "").strip()
    if not search or not report.search_columns:
        return None
    if report.search_mode == "exact":
        placeholder = params.add(search)
        parts = [f"{column} = {placeholder}" for column in report.search_columns]
    elif report.search_mode == "in":
        values = split_values(search)
        if not values:
            return None
        placeholders = ", ".join(params.add(value) for value in values)
        parts = [f"{column} IN ({placeholders})" for column in report.search_columns]
    else:
        placeholder = params.add(f"%{escape_like(search)}%")
        parts = [f"{column} LIKE {placeholder}" for column in report.search_columns]
    return "(" + " OR ".join(parts) + ")"


def parse_boundary(value: str | None, *, end: bool = False) -> datetime | None:
    """Parse a date/datetime filter value. A bare end date covers the whole day."""
    if value is None or not str(value).strip():
        return None
    raw = str(value).strip().replace("T", " ").replace("Z", "")
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S.%f"):
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    try:
        day = datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError as exc:
        raise QueryError(f"Invalid date: {value}") from exc
    return datetime.combine(day, time(23, 59, 59) if end else time.min)


def _part_sql(
    part: ReportType,
    search: str,
    start: datetime | None,
    end: datetime | None,
    params: _Params,
) -> str:
    where = list(part.filters)
    search_fragment = search_sql(part, search, params)
    if search_fragment:
        where.append(search_fragment)
    if part.date_column and start:
        where.append(f"{part.date_column} >= {params.add(start)}")
    if part.date_column and end:
        where.append(f"{part.date_column} <= {params.add(end)}")

    sql = f"SELECT {part.select.strip()} FROM {part.source.strip()}"
    if where:
        sql += " WHERE " + " AND ".join(where)
    if part.group_by.strip():
        sql += f" GROUP BY {part.group_by.strip()}"
    return sql


def build_report_query(
    report: ReportType,
    *,
    search: str = "",
    start_date: str | date | None = None,
    end_date: str | date | None = None,
    conditions: list[SearchCondition] | None = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
) -> ReportQuery:
    """Assemble the paired COUNT and paginated SELECT for one report run."""
    if isinstance(start_date, date):
        start_date = start_date.isoformat()
    if isinstance(end_date, date):
        end_date = end_date.isoformat()
    start = parse_boundary(start_date)
    end = parse_boundary(end_date, end=True)
    if start and end and start > end:
        start = parse_boundary(end_date)
        end = parse_boundary(start_date, end=True)

    params = _Params()
    parts = [report] + ([report.union_with] if report.union_with else [])
    inner = " UNION ALL ".join(_part_sql(part, search, start, end, params) for part in parts)

    outer_where = conditions_sql(conditions or [], report.column_keys, params)
    outer = f"FROM ({inner}) AS report_rows"
    if outer_where:
        outer += f" WHERE {outer_where}"

    count_sql = f"SELECT COUNT(*) AS total_count {outer}"
    page_sql = f"SELECT * {outer}"
    if report.order_by:
        page_sql += f" ORDER BY {report.order_by}"
    page_sql += " LIMIT :limit OFFSET :offset"

    return ReportQuery(count_sql=count_sql, page_sql=page_sql, params=params.values, page=page, limit=limit)


def parse_pagination(
    page: Any,
    limit: Any,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int | None = None,
) -> tuple[int, int]:
    page_value = _positive_int(page, DEFAULT_PAGE)
    limit_value = _positive_int(limit, default_limit)
    if max_limit is not None:
        limit_value = min(limit_value, max_limit)
    return page_value, limit_value


def _positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 1 else default


def total_pages(total: int, limit: int) -> int:
    if total <= 0 or limit <= 0:
        return 0
    return math.ceil(total / limit)
