import json
import logging
import socket
import threading
import time
from typing import Optional

import requests
from flask import Response, jsonify
from requests.structures import CaseInsensitiveDict

from truckersmp_proxy.config import REQUEST_TIMEOUT, TRUCKERSMP_API_BASE, USER_AGENT

logger = logging.getLogger("truckersmp-proxy.forwarder")

FETCH_FAILED_MESSAGE = "Failed to fetch data from TruckersMP API"
READ_FAILED_MESSAGE = "Failed to read response"

# Inbound headers that only make sense on the local hop
SKIPPED_REQUEST_HEADERS = {
    "host",
    # only encodings requests can decode may be negotiated
    "accept-encoding",
    "content-length",
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Upstream framing headers; the body is re-encoded locally
EXCLUDED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


# ----------------------
# Helpers
# ----------------------
def error_response(status: int, message: str) -> Response:
    """Synthetic JSON error in the proxy's standard shape."""
    response = jsonify({"error": True, "message": message})
    response.status_code = status
    return response


def _reject_constant(name):
    raise ValueError(f"invalid JSON constant: {name}")


def is_valid_json(body: bytes) -> bool:
    """True if body is a strict JSON document (no NaN/Infinity)."""
    try:
        json.loads(body, parse_constant=_reject_constant)
    except ValueError:
        return False
    return True


def upstream_header_items(upstream: requests.Response):
    """Header pairs of an upstream response, keeping repeated fields apart."""
    raw_headers = getattr(upstream.raw, "headers", None)
    if raw_headers is None:
        return upstream.headers.items()
    return raw_headers.items()


def _expire(upstream: requests.Response, expired: threading.Event):
    """Abort a body read that outlived the request deadline.

    The requests timeout applies per socket read, so a slowly trickling
    body is cut off here by shutting the connection's socket down, which
    unblocks the reading thread.
    """
    expired.set()
    connection = getattr(upstream.raw, "connection", None) or getattr(upstream.raw, "_connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug("Upstream socket already closed: %s", e)


# ----------------------
# Forwarder
# ----------------------
class Forwarder:
    """Relays one inbound request to the TruckersMP API per call.

    The session is shared across requests and never mutated after
    construction, so one instance serves every handler thread.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = TRUCKERSMP_API_BASE,
        timeout: float = REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
    ):
        self.session = session if session is not None else requests.Session()
        self.base_url = base_url
        self.timeout = timeout
        self.user_agent = user_agent

    def build_headers(self, inbound_headers) -> dict:
        """Defaults first, then inbound headers; repeated names are joined.

        The fixed User-Agent is the only one sent upstream.
        """
        headers = CaseInsensitiveDict(
            {"User-Agent": self.user_agent, "Accept": "application/json"}
        )
        for name, value in inbound_headers:
            lowered = name.lower()
            if lowered in SKIPPED_REQUEST_HEADERS or lowered == "user-agent":
                continue
            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
        return dict(headers.items())

    def forward(self, inbound_request, upstream_path: str) -> Response:
        url = self.base_url + upstream_path
        deadline = time.monotonic() + self.timeout

        try:
            prepared = requests.Request(
                method=inbound_request.method,
                url=url,
                headers=self.build_headers(inbound_request.headers),
            ).prepare()
        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to create request for %s: %s", url, e)
            return error_response(500, FETCH_FAILED_MESSAGE)

        try:
            upstream = self.session.send(prepared, timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            logger.error("Upstream request to %s failed: %s", url, e)
            return error_response(500, FETCH_FAILED_MESSAGE)

        with upstream:
            expired = threading.Event()
            watchdog = threading.Timer(
                max(deadline - time.monotonic(), 0), _expire, args=(upstream, expired)
            )
            watchdog.daemon = True
            watchdog.start()
            try:
                body = upstream.content
            except requests.RequestException as e:
                logger.error("Failed to read response from %s: %s", url, e)
                return error_response(500, READ_FAILED_MESSAGE)
            finally:
                watchdog.cancel()

            if expired.is_set():
                logger.error("Response from %s exceeded %ss", url, self.timeout)
                return error_response(500, READ_FAILED_MESSAGE)
            return self.relay(upstream, body)

    def relay(self, upstream: requests.Response, body: bytes) -> Response:
        """Mirror status and headers; normalize the body to JSON when it parses."""
        if is_valid_json(body):
            response = jsonify(json.loads(body))
        else:
            response = Response(body)
            # Only the upstream content type applies to opaque bodies
            del response.headers["Content-Type"]

        for name, value in upstream_header_items(upstream):
            lowered = name.lower()
            if lowered in EXCLUDED_RESPONSE_HEADERS:
                continue
            if lowered == "content-type":
                response.headers["Content-Type"] = value
            else:
                response.headers.add(name, value)

        response.status_code = upstream.status_code
        return response
