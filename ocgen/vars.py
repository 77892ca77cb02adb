import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "ocgen")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

# Path prefix for the HTTP routes, e.g. "/ocgen" behind a shared ingress
API_BASE_PATH = os.environ.get("API_BASE_PATH", "")
