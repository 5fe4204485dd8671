from __future__ import annotations

import logging
import os
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from typing import Any

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

import db
from query_builder import (
    QueryError,
    SearchCondition,
    build_report_query,
    parse_pagination,
    split_values,
    total_pages,
)
from report_types import BUSINESS_UNIT_ID, ReportType, get_report_type

logger = logging.getLogger(__name__)

ORDER_STATUSES = {
    "1000": "Released",
    "2090": "Allocated",
    "7200": "Packed",
    "8000": "Shipped",
}
ORDER_SUMMARY_STATUSES = ("1000", "2090", "7200", "8000", "9000")
ORDER_SUMMARY_TYPES = (
    "TO_B2B",
    "B2C_SHP",
    "B2C_ZLR",
    "B2C_COM",
    "B2B_C",
    "B2B_A",
    "B2B_MGR",
    "B2B_M",
    "TO_B2C",
)
ORDER_SUMMARY_DEFAULT_LIMIT = 1000

STATUS_COLORS = {
    "Released": "#7dd3d6",
    "Allocated": "#f7b44a",
    "Packed": "#5c8ef2",
    "Shipped": "#0f8da0",
}


def max_query_limit() -> int:
    return int(os.environ.get("QUERY_MAX_LIMIT", "10000000"))


def require_report_type(key: str | None) -> ReportType:
    report = get_report_type(key)
    if report is None:
        raise QueryError(f"Unknown report type: {key or ''}")
    return report


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def json_rows(rows: list[dict]) -> list[dict]:
    return [{key: _json_value(value) for key, value in row.items()} for row in rows]


def _count(rows: list[dict]) -> int:
    if not rows:
        return 0
    value = rows[0].get("total_count")
    return int(value or 0)


def run_report(
    report_key: str | None,
    *,
    page: Any = None,
    limit: Any = None,
    search: str = "",
    start_date: str | None = None,
    end_date: str | None = None,
    conditions: list[SearchCondition] | None = None,
) -> dict:
    report = require_report_type(report_key)
    page_value, limit_value = parse_pagination(page, limit, max_limit=max_query_limit())
    built = build_report_query(
        report,
        search=search,
        start_date=start_date,
        end_date=end_date,
        conditions=conditions,
        page=page_value,
        limit=limit_value,
    )
    logger.debug("Count query: %s", built.count_sql)
    logger.debug("Query params: %s", built.params)

    totals = _count(db.query(built.count_sql, built.params))
    if totals == 0:
        logger.info("Report %s returned no rows", report.key)
        return {"data": [], "totals": 0, "page": page_value, "totalPages": 0}

    logger.debug("Paginated query: %s", built.page_sql)
    rows = db.query(built.page_sql, built.page_params)
    logger.info("Report %s: %s of %s rows (page %s)", report.key, len(rows), totals, page_value)
    return {
        "data": json_rows(rows),
        "totals": totals,
        "page": page_value,
        "totalPages": total_pages(totals, limit_value),
    }


def fetch_report_rows(
    report_key: str | None,
    *,
    search: str = "",
    start_date: str | None = None,
    end_date: str | None = None,
    conditions: list[SearchCondition] | None = None,
    max_rows: int | None = None,
) -> tuple[ReportType, list[dict]]:
    """Everything the filters match, up to ``max_rows``, for exports."""
    report = require_report_type(report_key)
    if max_rows is None:
        max_rows = int(os.environ.get("EXPORT_MAX_ROWS", "1000000"))
    built = build_report_query(
        report,
        search=search,
        start_date=start_date,
        end_date=end_date,
        conditions=conditions,
        page=1,
        limit=max_rows,
    )
    rows = db.query(built.page_sql, built.page_params)
    return report, json_rows(rows)


def format_id_number(value: Any) -> str:
    """Group thousands with dots the way the warehouse team reads numbers (id-ID)."""
    if value in (None, ""):
        return "0"
    try:
        number = int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (ArithmeticError, ValueError):
        return "0"
    return f"{number:,}".replace(",", ".")


def get_stats() -> dict:
    inventory = db.query_one(
        """
        SELECT SUM(ON_HAND - ALLOCATED) AS total
        FROM default_dcinventory.dci_inventory
        WHERE BUSINESS_UNIT_ID = :business_unit AND IS_IN_TRANSIT = 0
        """,
        {"business_unit": BUSINESS_UNIT_ID},
    )
    inbound = db.query_one(
        """
        SELECT SUM(QUANTITY) AS total
        FROM default_receiving.rcv_receipt
        WHERE BUSINESS_UNIT_ID = :business_unit
        """,
        {"business_unit": BUSINESS_UNIT_ID},
    )
    outbound = db.query_one(
        """
        SELECT SUM(PACKED_QUANTITY) AS total
        FROM default_pickpack.ppk_olpn_detail
        WHERE BUSINESS_UNIT_ID = :business_unit
        """,
        {"business_unit": BUSINESS_UNIT_ID},
    )
    return {
        "totalInventory": format_id_number((inventory or {}).get("total")),
        "totalInbound": format_id_number((inbound or {}).get("total")),
        "totalOutbound": format_id_number((outbound or {}).get("total")),
    }


_ORDER_SUMMARY_SOURCE = """
    FROM default_pickpack.ppk_olpn_detail out1
    INNER JOIN default_dcorder.dco_original_order out2
        ON out1.ORIGINAL_ORDER_ID = out2.ORIGINAL_ORDER_ID
    INNER JOIN default_dcorder.dco_order_line out4
        ON out2.ORIGINAL_ORDER_ID = out4.ORIGINAL_ORDER_ID
        AND out2.BUSINESS_UNIT_ID = out4.BUSINESS_UNIT_ID
        AND out1.ORDER_LINE_ID = out4.ORDER_LINE_ID
    LEFT JOIN default_pickpack.ppk_olpn out3
        ON out1.BUSINESS_UNIT_ID = out3.BUSINESS_UNIT_ID
        AND out1.OLPN_ID = out3.OLPN_ID
"""

_CREATION_DATE = "DATE_FORMAT(DATE_ADD(out2.CREATED_TIMESTAMP, INTERVAL 7 HOUR), '%Y-%m-%d')"


def _order_summary_select() -> str:
    counts = [
        f"COUNT(DISTINCT CASE WHEN out2.MINIMUM_STATUS = '{code}' THEN out2.ORIGINAL_ORDER_ID END) AS {label}_Ord"
        for code, label in ORDER_STATUSES.items()
    ]
    quantities = [
        f"CAST(SUM(CASE WHEN out2.MINIMUM_STATUS = '{code}' THEN out1.INITIAL_QUANTITY ELSE 0 END) AS SIGNED) AS {label}_Qty"
        for code, label in ORDER_STATUSES.items()
    ]
    return ",\n        ".join(
        [f"{_CREATION_DATE} AS CREATION_DATE", "out2.ORDER_TYPE"]
        + counts
        + ["CAST(COUNT(DISTINCT out2.ORIGINAL_ORDER_ID) AS SIGNED) AS Total_Order"]
        + quantities
        + ["CAST(SUM(out1.INITIAL_QUANTITY) AS SIGNED) AS Total_Qty"]
    )


def build_order_summary_query(
    start_date: str | None = None,
    end_date: str | None = None,
    order_types: str | list[str] | None = None,
) -> tuple[str, str, dict[str, Any]]:
    """Return (select_sql, count_sql, params); select_sql still needs :limit/:offset."""
    params: dict[str, Any] = {"business_unit": BUSINESS_UNIT_ID}
    where = [
        "out1.BUSINESS_UNIT_ID = :business_unit",
        "out2.MINIMUM_STATUS IN ({})".format(", ".join(f"'{s}'" for s in ORDER_SUMMARY_STATUSES)),
        "out2.ORDER_TYPE IN ({})".format(", ".join(f"'{t}'" for t in ORDER_SUMMARY_TYPES)),
    ]

    start = _parse_day(start_date)
    end = _parse_day(end_date)
    if start and end and start > end:
        start, end = end, start
    if start:
        where.append("out2.CREATED_TIMESTAMP >= :start_date")
        params["start_date"] = datetime.combine(start, time.min)
    if end:
        where.append("out2.CREATED_TIMESTAMP <= :end_date")
        params["end_date"] = datetime.combine(end, time(23, 59, 59))

    if isinstance(order_types, str):
        types = split_values(order_types)
    else:
        types = [t.strip() for t in order_types or [] if t and t.strip()]
    if types:
        names = []
        for idx, order_type in enumerate(types):
            params[f"order_type_{idx}"] = order_type
            names.append(f":order_type_{idx}")
        where.append(f"out2.ORDER_TYPE IN ({', '.join(names)})")

    where_clause = "WHERE " + " AND ".join(where)
    group_by = f"GROUP BY {_CREATION_DATE}, out2.ORDER_TYPE"
    select_sql = (
        f"SELECT\n        {_order_summary_select()}\n    {_ORDER_SUMMARY_SOURCE}\n    {where_clause}\n    {group_by}\n"
        "    ORDER BY CREATION_DATE DESC, out2.ORDER_TYPE\n    LIMIT :limit OFFSET :offset"
    )
    count_sql = (
        f"SELECT COUNT(*) AS total_count FROM (\n"
        f"    SELECT {_CREATION_DATE} AS CREATION_DATE, out2.ORDER_TYPE\n"
        f"    {_ORDER_SUMMARY_SOURCE}\n    {where_clause}\n    {group_by}\n) AS grouped_data"
    )
    return select_sql, count_sql, params


def _parse_day(value: str | None) -> date | None:
    if not value or not str(value).strip():
        return None
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError as exc:
        raise QueryError(f"Invalid date: {value}") from exc


def summarize_orders(rows: list[dict]) -> dict:
    if not rows:
        return {"totalOrders": 0, "totalQty": 0, "recordCount": 0, "byStatus": {}, "byOrderType": {}}
    df = pd.DataFrame(rows)
    for column in ["Total_Order", "Total_Qty"] + [f"{label}_Ord" for label in ORDER_STATUSES.values()]:
        if column in df.columns:
            df[column] = pd.to_numeric(df[column], errors="coerce").fillna(0)
    by_status = {
        label: int(df[f"{label}_Ord"].sum())
        for label in ORDER_STATUSES.values()
        if f"{label}_Ord" in df.columns
    }
    by_type = {}
    if "ORDER_TYPE" in df.columns and "Total_Order" in df.columns:
        by_type = {
            str(order_type): int(total)
            for order_type, total in df.groupby("ORDER_TYPE")["Total_Order"].sum().items()
        }
    return {
        "totalOrders": int(df["Total_Order"].sum()) if "Total_Order" in df.columns else 0,
        "totalQty": int(df["Total_Qty"].sum()) if "Total_Qty" in df.columns else 0,
        "recordCount": len(df),
        "byStatus": by_status,
        "byOrderType": by_type,
    }


def get_order_summary(
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    order_types: str | list[str] | None = None,
    page: Any = None,
    limit: Any = None,
) -> dict:
    page_value, limit_value = parse_pagination(
        page, limit, default_limit=ORDER_SUMMARY_DEFAULT_LIMIT, max_limit=max_query_limit()
    )
    select_sql, count_sql, params = build_order_summary_query(start_date, end_date, order_types)
    logger.debug("Order summary query: %s", select_sql)
    logger.debug("Query params: %s", params)

    total = _count(db.query(count_sql, params))
    if total == 0:
        return {"data": [], "total": 0, "page": page_value, "totalPages": 0, "summary": summarize_orders([])}

    offset = (page_value - 1) * limit_value
    rows = json_rows(db.query(select_sql, {**params, "limit": limit_value, "offset": offset}))
    logger.info("Order summary: %s rows, total %s, page %s", len(rows), total, page_value)
    return {
        "data": rows,
        "total": total,
        "page": page_value,
        "totalPages": total_pages(total, limit_value),
        "summary": summarize_orders(rows),
    }


def order_summary_chart(rows: list[dict]) -> BytesIO:
    """Stacked bars of orders per creation date, one colour per status."""
    fig, ax = plt.subplots(figsize=(8, 3.5))
    if not rows:
        ax.text(0.5, 0.5, "No orders in this range", ha="center", va="center", color="#5e6c74")
        ax.set_axis_off()
    else:
        df = pd.DataFrame(rows)
        columns = [f"{label}_Ord" for label in ORDER_STATUSES.values() if f"{label}_Ord" in df.columns]
        for column in columns:
            df[column] = pd.to_numeric(df[column], errors="coerce").fillna(0)
        daily = df.groupby("CREATION_DATE")[columns].sum().sort_index()
        bottom = None
        for column in columns:
            label = column[: -len("_Ord")]
            ax.bar(daily.index, daily[column], bottom=bottom, label=label, color=STATUS_COLORS.get(label))
            bottom = daily[column] if bottom is None else bottom + daily[column]
        ax.set_title("Orders by Status")
        ax.tick_params(axis="x", labelrotation=45, labelsize=6)
        ax.legend(loc="upper left", frameon=True, fontsize=7)
        ax.spines[["top", "right"]].set_visible(False)

    buffer = BytesIO()
    fig.savefig(buffer, format="png", dpi=160, bbox_inches="tight")
    plt.close(fig)
    buffer.seek(0)
    return buffer
