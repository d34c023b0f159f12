# Overview: Flask API routes for invoice finalization and invoice lookups.

# backend/invoicing/routes/invoices.py
"""
Invoice API routes

DESIGN:
- Finalize turns a cart into an invoice in one transaction
- Business failures come back as typed errors with details the cashier can act on
- Reads serve receipts and history screens

All amounts are in cents.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import invoice_service
from ..services.results import (
    CATEGORY_BUSINESS,
    CATEGORY_CRITICAL,
    CATEGORY_INFRASTRUCTURE,
    CATEGORY_VALIDATION,
    Timeout,
)
from ..validation import ValidationError, parse_datetime_param, parse_finalize_request


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


_HTTP_STATUS_BY_CATEGORY = {
    CATEGORY_VALIDATION: 400,
    CATEGORY_BUSINESS: 409,
    CATEGORY_INFRASTRUCTURE: 500,
    CATEGORY_CRITICAL: 500,
}


@invoices_bp.post("/finalize")
def finalize_invoice_route():
    """
    Finalize a cart into an invoice.

    Request body:
    {
        "lines": [{"product_id": 1, "quantity": 2, "unit_price_cents": 500}],
        "discount_percent": "10",
        "tax_cents": 0,
        "payments": [{"payment_method_id": 1, "amount_cents": 2700}],
        "user_id": 3,  (optional)
        "customer_id": 7  (optional)
    }

    Returns:
        201: Invoice created
        400: Invalid input
        409: Stock, product or payment problem (nothing was saved)
        500: Database failure (nothing was saved, or verify_manually=true)
        503: Timed out waiting for another checkout
    """
    try:
        args = parse_finalize_request(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        outcome = invoice_service.finalize_invoice(**args)
    except Exception:
        current_app.logger.exception("Failed to finalize invoice")
        return jsonify({"error": "Internal server error"}), 500

    if outcome.ok:
        detail = invoice_service.get_invoice_detail(outcome.invoice_id)
        return jsonify({"result": outcome.to_dict(), **detail}), 201

    body = {
        "error": outcome.message,
        "kind": outcome.kind,
        "category": outcome.category,
        "details": outcome.to_dict()["details"],
    }
    if outcome.category == CATEGORY_CRITICAL:
        body["verify_manually"] = True
    if isinstance(outcome, Timeout):
        return jsonify(body), 503
    return jsonify(body), _HTTP_STATUS_BY_CATEGORY[outcome.category]


@invoices_bp.get("/")
def list_invoices_route():
    """
    List invoices, newest first.

    Query params:
        start: ISO-8601 datetime, inclusive (optional)
        end: ISO-8601 datetime, inclusive; a bare date covers that whole day (optional)
    """
    try:
        start = parse_datetime_param(request.args.get("start"), "start")
        end = parse_datetime_param(request.args.get("end"), "end", range_end=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"invoices": invoice_service.list_invoices(start, end)}), 200


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    """Get invoice with items and payments."""
    detail = invoice_service.get_invoice_detail(invoice_id)
    if detail is None:
        return jsonify({"error": "Invoice not found"}), 404
    return jsonify(detail), 200
