# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Typed query and command layer over the FileMaker Server OData v4 API.

Declare a table once with :func:`fm_table`, then build, validate and execute
reads, writes and schema changes against it::

    from FileMaker.OData import (
        BasicAuthAdapter, FileMakerODataClient, fm_table, text_field, number_field, eq,
    )

    contacts = fm_table("contacts", {
        "id": text_field().primary_key(),
        "name": text_field().not_null(),
        "age": number_field(),
    })

    adapter = BasicAuthAdapter("https://fms.example.com", "Contacts.fmp12", "admin", "secret")
    with FileMakerODataClient(adapter) as client:
        people = client.database().from_(contacts)
        ada = people.list().where(eq(contacts.c.name, "Ada")).single().execute()
"""

__version__ = "0.1.0"

from .client import FileMakerODataClient
from .core.config import ODataConfig
from .core.errors import (
    CardinalityError,
    FMODataError,
    NotFoundError,
    ProtocolError,
    RequestTimeoutError,
    SchemaLockedError,
    TransportError,
    ValidationError,
)
from .core.results import ListResult, ODataRecord, ODataResponse
from .core.telemetry import TelemetryConfig, TelemetryHook
from .data.adapters import BasicAuthAdapter, OttoAdapter
from .models.column import ColumnHandle
from .models.fields import (
    FieldDeclaration,
    FieldType,
    calc_field,
    container_field,
    date_field,
    list_field,
    number_field,
    text_field,
    time_field,
    timestamp_field,
)
from .models.operators import (
    FilterExpression,
    OrderByExpression,
    and_,
    asc,
    contains,
    desc,
    endswith,
    eq,
    gt,
    gte,
    in_list,
    is_not_null,
    is_null,
    lt,
    lte,
    matches_pattern,
    ne,
    not_,
    not_in_list,
    or_,
    startswith,
    tolower,
    toupper,
    trim,
)
from .models.query_builder import QueryBuilder, RecordQuery
from .models.table import TableDeclaration, fm_table
from .operations.batch import BatchCoordinator, BatchRequest
from .operations.database import Database
from .operations.entity_set import EntitySet
from .operations.schema import FieldDefinition, SchemaOperations
from .operations.webhooks import WebhookOperations

__all__ = [
    "__version__",
    "FileMakerODataClient",
    "ODataConfig",
    "TelemetryConfig",
    "TelemetryHook",
    "BasicAuthAdapter",
    "OttoAdapter",
    "Database",
    "EntitySet",
    "SchemaOperations",
    "WebhookOperations",
    "FieldDefinition",
    "BatchCoordinator",
    "BatchRequest",
    "QueryBuilder",
    "RecordQuery",
    "TableDeclaration",
    "fm_table",
    "ColumnHandle",
    "FieldDeclaration",
    "FieldType",
    "text_field",
    "number_field",
    "date_field",
    "time_field",
    "timestamp_field",
    "container_field",
    "calc_field",
    "list_field",
    "FilterExpression",
    "OrderByExpression",
    "eq",
    "ne",
    "gt",
    "gte",
    "lt",
    "lte",
    "contains",
    "startswith",
    "endswith",
    "matches_pattern",
    "tolower",
    "toupper",
    "trim",
    "in_list",
    "not_in_list",
    "is_null",
    "is_not_null",
    "and_",
    "or_",
    "not_",
    "asc",
    "desc",
    "ListResult",
    "ODataRecord",
    "ODataResponse",
    "FMODataError",
    "TransportError",
    "RequestTimeoutError",
    "ProtocolError",
    "SchemaLockedError",
    "ValidationError",
    "NotFoundError",
    "CardinalityError",
]
