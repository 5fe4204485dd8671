import json
from decimal import Decimal

from openpyxl import load_workbook
from io import BytesIO


def test_health(client, fake_db):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json()["connected"] is True


def test_health_when_database_down(client, fake_db):
    fake_db.connected = False
    response = client.get("/api/health")
    assert response.status_code == 500
    body = response.get_json()
    assert body["connected"] is False
    assert body["error"] == "Can't connect to MySQL server on 'db' (timed out)"


def test_backend_stats(client):
    body = client.get("/api/stats").get_json()
    assert body["status"] == "OK"
    assert body["message"].startswith("Backend is accessible from ")


def test_query_endpoint(client, fake_db):
    fake_db.total = 3
    fake_db.rows = [{"ITEM_ID": "A", "QUANTITY": Decimal("2")}]
    conditions = json.dumps([{"field": "ITEM_ID", "operation": "=", "value": "A"}])
    response = client.get(
        "/api/query",
        query_string={"type": "stockinbound", "page": "1", "limit": "2", "searchConditions": conditions},
    )
    assert response.status_code == 200
    assert response.get_json() == {
        "data": [{"ITEM_ID": "A", "QUANTITY": 2}],
        "totals": 3,
        "page": 1,
        "totalPages": 2,
    }
    assert "`ITEM_ID` = :p0" in fake_db.calls[0][0]


def test_query_unknown_type_is_bad_request(client, fake_db):
    response = client.get("/api/query", query_string={"type": "bogus"})
    assert response.status_code == 400
    assert "Unknown report type" in response.get_json()["message"]


def test_query_bad_condition_field_is_bad_request(client, fake_db):
    conditions = json.dumps([{"field": "nope", "operation": "=", "value": "x"}])
    response = client.get("/api/query", query_string={"type": "stockinbound", "searchConditions": conditions})
    assert response.status_code == 400


def test_search_endpoint_accepts_json_body(client, fake_db):
    fake_db.total = 1
    fake_db.rows = [{"Transaction": "INB"}]
    response = client.post(
        "/api/query/search",
        json={
            "type": "tracetransaction",
            "search": "ITEM-9",
            "searchConditions": [{"field": "Transaction", "operation": "IN", "value": "INB,OUT"}],
        },
    )
    assert response.status_code == 200
    assert response.get_json()["totals"] == 1
    assert fake_db.calls[0][1] == {"p0": "ITEM-9", "p1": "ITEM-9", "p2": "INB", "p3": "OUT"}


def test_search_endpoint_requires_object(client, fake_db):
    response = client.post("/api/query/search", data="[]", content_type="application/json")
    assert response.status_code == 400


def test_server_error_is_json(client, fake_db, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("Failed after 3 attempts: gone away")

    monkeypatch.setattr("db.query", broken)
    response = client.get("/api/query", query_string={"type": "stockinbound"})
    assert response.status_code == 500
    assert response.get_json() == {"error": "Server error", "message": "Failed after 3 attempts: gone away"}


def test_unknown_route_keeps_404(client):
    assert client.get("/api/nothing-here").status_code == 404


def test_query_stats(client, fake_db):
    fake_db.one = {"total": 1500}
    assert client.get("/api/query/stats").get_json()["totalOutbound"] == "1.500"


def test_report_types(client):
    body = client.get("/api/query/types").get_json()
    assert [item["type"] for item in body] == [
        "stockinbound",
        "stockoutbound",
        "stockinventory",
        "tracetransaction",
        "inboundallocation",
    ]
    assert body[0]["columns"][0] == {"key": "ASN_ID", "label": "ASN_ID"}


def test_export_xlsx(client, fake_db):
    fake_db.rows = [{"ASN_ID": "ASN1", "ITEM_ID": "A"}]
    response = client.get("/api/query/export", query_string={"type": "stockinbound", "format": "xlsx"})
    assert response.status_code == 200
    assert "inbound_items_" in response.headers["Content-Disposition"]
    workbook = load_workbook(BytesIO(response.data))
    assert workbook["Data"]["A2"].value == "ASN1"


def test_export_pdf(client, fake_db):
    fake_db.rows = [{"ASN_ID": "ASN1"}]
    response = client.get("/api/query/export", query_string={"type": "stockinbound", "format": "pdf"})
    assert response.status_code == 200
    assert response.mimetype == "application/pdf"
    assert response.data.startswith(b"%PDF")


def test_export_empty_and_bad_format(client, fake_db):
    assert client.get("/api/query/export", query_string={"type": "stockinbound"}).status_code == 400
    assert client.get("/api/query/export", query_string={"type": "stockinbound", "format": "csv"}).status_code == 400


def test_order_summary_endpoints(client, fake_db):
    fake_db.total = 1
    fake_db.rows = [
        {"CREATION_DATE": "2024-03-01", "ORDER_TYPE": "TO_B2B", "Released_Ord": 1, "Allocated_Ord": 0,
         "Packed_Ord": 0, "Shipped_Ord": 0, "Total_Order": 1, "Total_Qty": 4}
    ]
    params = {"startDate": "2024-03-01", "endDate": "2024-03-01", "orderTypes": "TO_B2B"}

    body = client.get("/api/dashboard/order-summary", query_string=params).get_json()
    assert body["total"] == 1
    assert body["totalPages"] == 1
    assert body["summary"]["totalQty"] == 4

    chart = client.get("/api/dashboard/order-summary/chart", query_string=params)
    assert chart.mimetype == "image/png"
    chart_sql, chart_params = fake_db.calls[-1]
    assert chart_params["limit"] == 1000000
    assert chart_params["offset"] == 0

    export = client.get("/api/dashboard/order-summary/export", query_string={**params, "format": "pdf"})
    assert export.status_code == 200
    assert "order_summary_" in export.headers["Content-Disposition"]


def test_cors_allows_frontend_origin(client):
    response = client.get("/api/stats", headers={"Origin": "http://localhost:5173"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


def test_in_condition_without_values_is_bad_request(client, fake_db):
    conditions = json.dumps({"field": "ITEM_ID", "operation": "IN", "value": ",,"})
    response = client.get("/api/query", query_string={"type": "stockinbound", "searchConditions": conditions})
    assert response.status_code == 400
    assert fake_db.calls == []
