"""Reverse proxy for the public TruckersMP API."""

from truckersmp_proxy.forwarder import Forwarder
from truckersmp_proxy.main import create_app

__all__ = ["Forwarder", "create_app"]
