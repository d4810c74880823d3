# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Common constants for the FileMaker OData client.

Wire-level values shared across the package: protocol paths, header values,
system table names and telemetry attribute keys.
"""

__all__ = []
