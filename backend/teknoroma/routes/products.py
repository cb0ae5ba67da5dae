# Overview: Flask API routes for products and their stock levels.

# backend/teknoroma/routes/products.py
"""
Product catalog routes.

Stock changes go through dedicated endpoints so every change reclassifies
stock_status; PUT /api/products/<id> cannot touch units_in_stock.
"""
from flask import Blueprint, jsonify, request

from ..services import products_service, stock_service
from .params import arg_int, arg_optional_bool, include_deleted, json_body

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - category_id, supplier_id: int (optional)
    - stock_status: SUFFICIENT | CRITICAL | OUT_OF_STOCK (optional)
    - is_active: bool (optional)
    - q: name or barcode fragment (optional)
    - include_deleted: bool
    """
    products = products_service.list_products(
        category_id=arg_int("category_id"),
        supplier_id=arg_int("supplier_id"),
        stock_status=request.args.get("stock_status"),
        is_active=arg_optional_bool("is_active"),
        search=request.args.get("q"),
        include_deleted=include_deleted(),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/critical")
def list_critical_products():
    products = products_service.critical_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/out-of-stock")
def list_out_of_stock_products():
    products = products_service.out_of_stock_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/inactive")
def list_inactive_products():
    products = products_service.inactive_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/barcode/<string:barcode>")
def get_product_by_barcode(barcode: str):
    return jsonify(products_service.get_product_by_barcode(barcode).to_dict()), 200


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    product = products_service.get_product(product_id, include_deleted=include_deleted())
    return jsonify(product.to_dict()), 200


@products_bp.post("")
def create_product():
    product = products_service.create_product(json_body())
    return jsonify(product.to_dict()), 201


@products_bp.put("/<int:product_id>")
def update_product(product_id: int):
    product = products_service.update_product(product_id, json_body())
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    product = products_service.delete_product(product_id)
    return jsonify(product.to_dict()), 200


@products_bp.post("/<int:product_id>/stock/increase")
def increase_stock(product_id: int):
    payload = json_body()
    product = stock_service.increase_stock(product_id, payload.get("quantity"))
    return jsonify(product.to_dict()), 200


@products_bp.post("/<int:product_id>/stock/decrease")
def decrease_stock(product_id: int):
    payload = json_body()
    product = stock_service.decrease_stock(product_id, payload.get("quantity"))
    return jsonify(product.to_dict()), 200


@products_bp.post("/<int:product_id>/stock/set")
def set_stock(product_id: int):
    """Body: {"units": int, "reason": str}"""
    payload = json_body()
    product = stock_service.set_stock(product_id, payload.get("units"), payload.get("reason"))
    return jsonify(product.to_dict()), 200


@products_bp.get("/<int:product_id>/stock/available")
def stock_available(product_id: int):
    quantity = arg_int("quantity", 1)
    available = stock_service.is_stock_available(product_id, quantity)
    return jsonify({"product_id": product_id, "quantity": quantity, "available": available}), 200
