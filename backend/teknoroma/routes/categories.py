# backend/teknoroma/routes/categories.py
from flask import Blueprint, jsonify

from ..services import products_service
from .params import arg_bool, include_deleted, json_body

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    categories = products_service.list_categories(
        include_deleted=include_deleted(),
        active_only=arg_bool("active_only"),
    )
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@categories_bp.get("/<int:category_id>")
def get_category(category_id: int):
    category = products_service.get_category(category_id, include_deleted=include_deleted())
    return jsonify(category.to_dict()), 200


@categories_bp.get("/<int:category_id>/products")
def list_category_products(category_id: int):
    products = products_service.list_products_by_category(category_id)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@categories_bp.post("")
def create_category():
    return jsonify(products_service.create_category(json_body()).to_dict()), 201


@categories_bp.put("/<int:category_id>")
def update_category(category_id: int):
    return jsonify(products_service.update_category(category_id, json_body()).to_dict()), 200


@categories_bp.delete("/<int:category_id>")
def delete_category(category_id: int):
    return jsonify(products_service.delete_category(category_id).to_dict()), 200
