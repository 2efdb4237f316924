import re
import time
from typing import Optional, Tuple

from flask import Flask, jsonify, request

from truckersmp_proxy.config import SERVICE_NAME
from truckersmp_proxy.forwarder import Forwarder, error_response

# (local pattern, upstream template, numeric params in validation order)
ROUTES = [
    ("/player/<id>", "/player/{id}", ("id",)),
    ("/bans/<id>", "/bans/{id}", ("id",)),
    ("/servers", "/servers", ()),
    ("/game_time", "/game_time", ()),
    ("/events", "/events", ()),
    ("/events/<id>", "/events/{id}", ("id",)),
    ("/events/user/<id>", "/events/user/{id}", ("id",)),
    ("/vtc", "/vtc", ()),
    ("/vtc/<id>", "/vtc/{id}", ("id",)),
    ("/vtc/<id>/news", "/vtc/{id}/news", ("id",)),
    ("/vtc/<id>/news/<news_id>", "/vtc/{id}/news/{news_id}", ("id", "news_id")),
    ("/vtc/<id>/roles", "/vtc/{id}/roles", ("id",)),
    ("/vtc/<id>/role/<role_id>", "/vtc/{id}/role/{role_id}", ("id", "role_id")),
    ("/vtc/<id>/members", "/vtc/{id}/members", ("id",)),
    ("/vtc/<id>/member/<member_id>", "/vtc/{id}/member/{member_id}", ("id", "member_id")),
    ("/vtc/<id>/events", "/vtc/{id}/events", ("id",)),
    ("/vtc/<id>/events/<event_id>", "/vtc/{id}/events/{event_id}", ("id", "event_id")),
    ("/vtc/<id>/events/attending", "/vtc/{id}/events/attending", ("id",)),
    ("/vtc/<id>/partners", "/vtc/{id}/partners", ("id",)),
    ("/version", "/version", ()),
    ("/rules", "/rules", ()),
]

NUMERIC_PARAM = re.compile(r"[+-]?[0-9]+")
MAX_PARAM_VALUE = 2**63 - 1


# ----------------------
# Validation
# ----------------------
def validate_numeric_param(req, param_name: str) -> Tuple[Optional[int], bool]:
    """Parse a path parameter as a non-negative 64-bit integer."""
    raw = (req.view_args or {}).get(param_name, "")
    if not NUMERIC_PARAM.fullmatch(raw):
        return None, False
    value = int(raw)
    if value < 0 or value > MAX_PARAM_VALUE:
        return None, False
    return value, True


def invalid_param_response(param_name: str):
    return error_response(400, f"Invalid {param_name} parameter")


# ----------------------
# Dispatch
# ----------------------
def make_proxy_view(forwarder: Forwarder, upstream_template: str, params):
    def proxy_view(**_):
        values = {}
        for name in params:
            value, valid = validate_numeric_param(request, name)
            if not valid:
                return invalid_param_response(name)
            values[name] = value
        return forwarder.forward(request, upstream_template.format(**values))

    return proxy_view


def register_routes(app: Flask, forwarder: Forwarder):
    """Attach the health check, the proxied route table and the 404 fallback."""

    @app.get("/health")
    def health_check():
        return jsonify({
            "status": "healthy",
            "service": SERVICE_NAME,
            "timestamp": int(time.time()),
        }), 200

    for pattern, upstream_template, params in ROUTES:
        app.add_url_rule(
            pattern,
            endpoint=f"proxy:{upstream_template}",
            view_func=make_proxy_view(forwarder, upstream_template, params),
            methods=["GET"],
        )

    # Unknown methods on known paths are treated like unknown paths
    @app.errorhandler(404)
    @app.errorhandler(405)
    def endpoint_not_found(error):
        return error_response(404, "Endpoint not found")
