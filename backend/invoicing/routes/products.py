# Overview: Flask API routes for catalog reads.

from dataclasses import asdict

from flask import Blueprint, jsonify

from ..services.catalog_store import SqlCatalogStore


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/")
def list_products_route():
    products = SqlCatalogStore().list_products()
    return jsonify({"products": [asdict(p) for p in products]}), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    product = SqlCatalogStore().get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": asdict(product)}), 200
