import io
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from truckersmp_proxy.forwarder import Forwarder
from truckersmp_proxy.main import create_app

TEST_BASE_URL = "http://upstream.test/v2"


class RawHeaders(list):
    """Header pairs with repeats, shaped like ``response.raw.headers``."""

    def items(self):
        return list(self)


class RawBody(io.BytesIO):
    def __init__(self, body, header_pairs):
        super().__init__(body)
        self.headers = RawHeaders(header_pairs)


@pytest.fixture
def make_upstream_response():
    """Build a requests.Response the way the transport would hand it back."""

    def _create_response(status_code=200, body=b"", headers=None, header_pairs=None):
        response = requests.Response()
        response.status_code = status_code
        response.headers = CaseInsensitiveDict(headers or {})
        if header_pairs is not None:
            response.raw = RawBody(body, header_pairs)
        else:
            response.raw = io.BytesIO(body)
        return response

    return _create_response


@pytest.fixture
def stub_session():
    return Mock(spec=requests.Session)


@pytest.fixture
def forwarder(stub_session):
    return Forwarder(session=stub_session, base_url=TEST_BASE_URL)


@pytest.fixture
def app(forwarder):
    app = create_app(forwarder=forwarder)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
