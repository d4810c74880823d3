# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Protocol layer: the OData adapter, its authenticated subclasses and response decoding.
"""

__all__ = []
