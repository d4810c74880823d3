# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

# Error kinds
TRANSPORT = "TRANSPORT"
TIMEOUT = "TIMEOUT"
PROTOCOL = "PROTOCOL"
VALIDATION = "VALIDATION"
NOT_FOUND = "NOT_FOUND"
CARDINALITY = "CARDINALITY"

ALL_KINDS = {
    TRANSPORT,
    TIMEOUT,
    PROTOCOL,
    VALIDATION,
    NOT_FOUND,
    CARDINALITY,
}

# HTTP subcode constants
HTTP_400 = "http_400"
HTTP_401 = "http_401"
HTTP_403 = "http_403"
HTTP_404 = "http_404"
HTTP_409 = "http_409"
HTTP_415 = "http_415"
HTTP_429 = "http_429"
HTTP_500 = "http_500"
HTTP_502 = "http_502"
HTTP_503 = "http_503"
HTTP_504 = "http_504"

TRANSIENT_STATUS_CODES = {429, 502, 503, 504}

# FileMaker service error codes
SERVICE_SCHEMA_LOCKED = "303"

# Validation subcodes
VALIDATION_DUPLICATE_FIELD = "validation_duplicate_field"
VALIDATION_DUPLICATE_ENTITY_ID = "validation_duplicate_entity_id"
VALIDATION_NULLABLE_PRIMARY_KEY = "validation_nullable_primary_key"
VALIDATION_MULTIPLE_PRIMARY_KEYS = "validation_multiple_primary_keys"
VALIDATION_MISSING_PRIMARY_KEY = "validation_missing_primary_key"
VALIDATION_UNKNOWN_COLUMN = "validation_unknown_column"
VALIDATION_FOREIGN_COLUMN = "validation_foreign_column"
VALIDATION_CONTAINER_SELECT = "validation_container_select"
VALIDATION_EMPTY_EXPRESSION = "validation_empty_expression"
VALIDATION_RECORD_SCHEMA = "validation_record_schema"
VALIDATION_INPUT_SCHEMA = "validation_input_schema"
VALIDATION_UNKNOWN_RELATION = "validation_unknown_relation"
VALIDATION_BUILDER_CONSUMED = "validation_builder_consumed"
VALIDATION_UNKNOWN_STRATEGY = "validation_unknown_strategy"

# Protocol subcodes
PROTOCOL_RESPONSE_STRUCTURE = "protocol_response_structure"


def http_subcode(status_code: int) -> str:
    """Return the ``http_<status>`` subcode for an HTTP status."""
    return f"http_{status_code}"
