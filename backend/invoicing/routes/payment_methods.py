# Overview: Flask API routes for payment method lookups.

from flask import Blueprint, jsonify, request

from ..services.payment_store import SqlPaymentStore


payment_methods_bp = Blueprint("payment_methods", __name__, url_prefix="/api/payment-methods")


@payment_methods_bp.get("/")
def list_payment_methods_route():
    """Active payment methods by name; ?include_inactive=true lists all."""
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    methods = SqlPaymentStore().list_payment_methods(active_only=not include_inactive)
    return jsonify({"payment_methods": [m.to_dict() for m in methods]}), 200
