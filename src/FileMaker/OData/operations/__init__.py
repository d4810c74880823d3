# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Operation namespace classes for the FileMaker OData client.

- Database: tables, metadata, cross joins, batches and scripts
- WebhookOperations: webhook registration and invocation
- EntitySet: queries and writes against one declared table
- SchemaOperations: table, field and index creation and removal
- BatchCoordinator: find-then-write composites
"""

__all__ = []
