from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

import socket
from threading import Thread

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.serving import make_server

import db
from exporters import (
    PDF_MIMETYPE,
    XLSX_MIMETYPE,
    export_filename,
    export_order_summary_excel,
    export_order_summary_pdf,
    export_report_excel,
    export_report_pdf,
)
from query_builder import QueryError, parse_conditions
from report_types import REPORT_TYPES
from reports import (
    fetch_report_rows,
    get_order_summary,
    get_stats,
    order_summary_chart,
    run_report,
)

logger = logging.getLogger(__name__)

PORT_LOCALHOST = int(os.environ.get("PORT_LOCALHOST", "3001"))
PORT_LAN = int(os.environ.get("PORT_LAN", "3002"))
FRONTEND_PORT = int(os.environ.get("FRONTEND_PORT", "5173"))
EXPORT_FORMATS = {"xlsx", "pdf"}


def _get_local_ip() -> str:
    """Address other machines on the LAN reach this host by."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # UDP connect sends nothing; it only selects the outbound interface.
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


LOCAL_IP = _get_local_ip()


def _cors_origins() -> list[str]:
    origins = [f"http://localhost:{FRONTEND_PORT}", f"http://{LOCAL_IP}:{FRONTEND_PORT}"]
    extra = os.environ.get("CORS_ORIGINS", "")
    origins.extend(origin.strip() for origin in extra.split(",") if origin.strip())
    return origins


app = Flask(__name__)
CORS(
    app,
    resources={
        r"/api/*": {
            "origins": _cors_origins(),
            "methods": ["GET", "POST", "PUT", "DELETE"],
            "allow_headers": ["Content-Type", "Authorization"],
        }
    },
)


@app.errorhandler(QueryError)
def handle_query_error(exc: QueryError):
    logger.info("Rejected request %s: %s", request.path, exc)
    return jsonify({"error": "Bad request", "message": str(exc)}), 400


@app.errorhandler(Exception)
def handle_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    logger.exception("Error handling %s", request.path)
    return jsonify({"error": "Server error", "message": str(exc)}), 500


def _report_params(source) -> dict:
    return {
        "search": str(source.get("search") or ""),
        "start_date": source.get("startDate") or None,
        "end_date": source.get("endDate") or None,
        "conditions": parse_conditions(source.get("searchConditions")),
    }


def _export_format() -> str:
    fmt = (request.args.get("format") or "xlsx").strip().lower()
    if fmt == "excel":
        fmt = "xlsx"
    if fmt not in EXPORT_FORMATS:
        raise QueryError(f"Unsupported export format: {fmt}")
    return fmt


@app.route("/api/health", methods=["GET"])
def health():
    try:
        db.ping()
    except Exception as exc:
        logger.error("Database health check failed: %s", exc)
        return jsonify({"connected": False, "error": str(exc)}), 500
    return jsonify({"connected": True, "message": "Database connection successful"})


@app.route("/api/stats", methods=["GET"])
def backend_stats():
    port = request.environ.get("SERVER_PORT") or PORT_LAN
    return jsonify({"status": "OK", "message": f"Backend is accessible from {LOCAL_IP}:{port}"})


@app.route("/api/query", methods=["GET"])
def query_report():
    args = request.args
    result = run_report(
        args.get("type"),
        page=args.get("page"),
        limit=args.get("limit"),
        **_report_params(args),
    )
    return jsonify(result)


@app.route("/api/query/search", methods=["POST"])
def search_report():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise QueryError("Request body must be a JSON object")
    result = run_report(
        body.get("type"),
        page=body.get("page"),
        limit=body.get("limit"),
        **_report_params(body),
    )
    return jsonify(result)


@app.route("/api/query/stats", methods=["GET"])
def query_stats():
    return jsonify(get_stats())


@app.route("/api/query/types", methods=["GET"])
def report_types():
    return jsonify([report.to_dict() for report in REPORT_TYPES.values()])


@app.route("/api/query/export", methods=["GET"])
def export_report():
    fmt = _export_format()
    report, rows = fetch_report_rows(request.args.get("type"), **_report_params(request.args))
    logger.info("Exporting %s rows of %s as %s", len(rows), report.key, fmt)
    if fmt == "pdf":
        buffer = export_report_pdf(report, rows)
        mimetype = PDF_MIMETYPE
    else:
        buffer = export_report_excel(report, rows)
        mimetype = XLSX_MIMETYPE
    filename = export_filename(report.title, fmt)
    return send_file(buffer, as_attachment=True, download_name=filename, mimetype=mimetype)


def _order_summary_args(**overrides) -> dict:
    args = request.args
    params = {
        "start_date": args.get("startDate"),
        "end_date": args.get("endDate"),
        "order_types": args.get("orderTypes"),
        "page": args.get("page"),
        "limit": args.get("limit"),
    }
    params.update(overrides)
    return params


@app.route("/api/dashboard/order-summary", methods=["GET"])
def order_summary():
    return jsonify(get_order_summary(**_order_summary_args()))


@app.route("/api/dashboard/order-summary/chart", methods=["GET"])
def order_summary_chart_png():
    max_rows = int(os.environ.get("EXPORT_MAX_ROWS", "1000000"))
    result = get_order_summary(**_order_summary_args(page=1, limit=max_rows))
    return send_file(order_summary_chart(result["data"]), mimetype="image/png")


@app.route("/api/dashboard/order-summary/export", methods=["GET"])
def export_order_summary():
    fmt = _export_format()
    max_rows = int(os.environ.get("EXPORT_MAX_ROWS", "1000000"))
    result = get_order_summary(**_order_summary_args(page=1, limit=max_rows))
    rows = result["data"]
    if fmt == "pdf":
        start = request.args.get("startDate") or ""
        end = request.args.get("endDate") or ""
        subtitle = f"{start} to {end}" if start or end else None
        buffer = export_order_summary_pdf(rows, subtitle)
        mimetype = PDF_MIMETYPE
    else:
        buffer = export_order_summary_excel(rows)
        mimetype = XLSX_MIMETYPE
    filename = export_filename("Order Summary", fmt)
    return send_file(buffer, as_attachment=True, download_name=filename, mimetype=mimetype)


def _bootstrap():
    """Check the database once at startup; the server still starts if it is down."""
    if db.check_connection():
        logger.info("Database connection verified")
    else:
        logger.error("Database is unreachable; requests will fail until it recovers")


def _serve_lan():
    server = make_server("0.0.0.0", PORT_LAN, app, threaded=True)
    logger.info("Server running on LAN at http://%s:%s", LOCAL_IP, PORT_LAN)
    server.serve_forever()


if __name__ == "__main__":
    _bootstrap()
    Thread(target=_serve_lan, daemon=True).start()
    logger.info("Server running on http://localhost:%s", PORT_LOCALHOST)
    app.run(host="localhost", port=PORT_LOCALHOST, threaded=True)
