# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Wire-level constants for the FileMaker OData API.

These values define URL layout, headers and reserved names used when
talking to FileMaker Server's OData v4 endpoint.
"""

ODATA_VERSION = "4.0"
ODATA_ROOT = "/fmi/odata/v4"

# Otto proxy
OTTO_PATH_PREFIX = "/otto"
OTTO3_KEY_PREFIX = "KEY_"
OTTO3_DEFAULT_PORT = 3030
OTTOFMS_KEY_PREFIX = "dk_"

# Entity identifiers
FIELD_ID_PREFIX = "FMFID:"
TABLE_ID_PREFIX = "FMTID:"
PREFER_ENTITY_IDS = "fmodata.entity-ids"

# Reserved names
SYSTEM_TABLES = "FileMaker_Tables"
SYSTEM_INDEXES = "FileMaker_Indexes"
SPECIAL_COLUMNS = ("ROWID", "ROWMODID")
RECORD_METADATA_KEYS = ("@id", "@editLink")
ODATA_COUNT_KEY = "@odata.count"
ODATA_NEXT_LINK_KEY = "@odata.nextLink"

DEFAULT_TOP = 1000
LIST_FIELD_SEPARATOR = "\r"

# Content types
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_XML = "application/xml"
IEEE754_SUFFIX = ";IEEE754Compatible=true"

# OpenTelemetry semantic convention attribute names
OTEL_ATTR_DB_SYSTEM = "db.system"
OTEL_ATTR_DB_OPERATION = "db.operation"
OTEL_ATTR_DB_NAME = "db.name"
OTEL_ATTR_HTTP_METHOD = "http.request.method"
OTEL_ATTR_HTTP_URL = "url.full"
OTEL_ATTR_HTTP_STATUS_CODE = "http.response.status_code"
OTEL_ATTR_FMODATA_TABLE = "fmodata.table"
OTEL_ATTR_FMODATA_REQUEST_ID = "fmodata.request_id"
