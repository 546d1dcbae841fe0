"""Shared constants for the API server."""

import os

TENANT_ID = "tenantId"

# Default maximum length for strings, used in many places.
STR_MAX_LEN = 255

# Database error code raised on unique constraint violations.
NOT_UNIQUE_DATA = "23505"

# HTTP constants
ACCEPT_HEADER = "Accept"
CONTENT_TYPE = "Content-Type"
JSON_TYPE = "application/json"
URL_ENCODED = "application/x-www-form-urlencoded"
PROTOBUF_TYPE = "application/x-protobuf"
TEXT_TYPE = "text/plain"
AUTH_HEADER = "Authorization"

# Development mode is on unless the environment selects a production build.
DEV = os.environ.get("QNIFY_ENV", "").strip().lower() != "prod"