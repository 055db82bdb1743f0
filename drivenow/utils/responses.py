"""JSON envelope shared by every endpoint."""
from typing import Optional

from flask import jsonify


def ok(data=None, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def fail(message: str, code: str, status: int, errors: Optional[dict] = None):
    body = {"success": False, "message": message, "code": code}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def paged(rows, total: int, paging: dict, render) -> dict:
    return {
        "items": [render(r) for r in rows],
        "totalCount": total,
        "page": paging["page"],
        "pageSize": paging["page_size"],
    }
