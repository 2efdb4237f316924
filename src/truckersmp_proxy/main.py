import logging

from flask import Flask, request
from flask_cors import CORS

from truckersmp_proxy.config import (
    ALLOWED_ORIGIN,
    CORS_HEADERS,
    CORS_METHODS,
    SERVER_PORT,
    SERVICE_NAME,
    TRUCKERSMP_API_BASE,
)
from truckersmp_proxy.forwarder import Forwarder
from truckersmp_proxy.routes import register_routes

logger = logging.getLogger("truckersmp-proxy")


# ----------------------
# App Setup
# ----------------------
def create_app(forwarder=None, allowed_origin=None) -> Flask:
    app = Flask(__name__)
    forwarder = forwarder or Forwarder()
    origin = allowed_origin or ALLOWED_ORIGIN

    @app.before_request
    def short_circuit_options():
        if request.method == "OPTIONS":
            return "", 204

    # Registered before CORS() so it runs after flask-cors has set the origin
    @app.after_request
    def advertise_cors(response):
        # flask-cors leaves it out for a foreign Origin
        if "Access-Control-Allow-Origin" not in response.headers:
            response.headers["Access-Control-Allow-Origin"] = origin
        if "Access-Control-Allow-Methods" not in response.headers:
            response.headers["Access-Control-Allow-Methods"] = ", ".join(CORS_METHODS)
        if "Access-Control-Allow-Headers" not in response.headers:
            response.headers["Access-Control-Allow-Headers"] = ", ".join(CORS_HEADERS)
        return response

    CORS(
        app,
        origins=origin,
        methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        send_wildcard=True,
    )

    register_routes(app, forwarder)
    return app


def run():
    logging.basicConfig(level=logging.INFO)
    app = create_app()

    logger.info("Starting %s Server on port %s", SERVICE_NAME, SERVER_PORT)
    logger.info("Proxying requests to: %s", TRUCKERSMP_API_BASE)

    try:
        app.run(host="0.0.0.0", port=SERVER_PORT)
    except OSError as e:
        logger.critical("Failed to start server: %s", e)
        raise SystemExit(1)


if __name__ == "__main__":
    run()
