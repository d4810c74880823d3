# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core infrastructure for the FileMaker OData client.

This module contains the foundational components: configuration, the HTTP
transport with retries, the error hierarchy, telemetry and result envelopes.
"""

from .results import ODataRecord, ODataResponse, ListResult

__all__ = [
    "ODataRecord",
    "ODataResponse",
    "ListResult",
]
