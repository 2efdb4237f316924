import os

# ----------------------
# Configuration
# ----------------------
TRUCKERSMP_API_BASE = "https://api.truckersmp.com/v2"
SERVER_PORT = 4004
REQUEST_TIMEOUT = 30
USER_AGENT = "PostmanRuntime/7.36.1"

SERVICE_NAME = "TruckersMP API Proxy"

# Empty counts as unset
ALLOWED_ORIGIN = os.getenv("ORIGIN") or "*"

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization"]
