# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Declarations and the query DSL.

- :mod:`~FileMaker.OData.models.fields`: field declarations and factories.
- :mod:`~FileMaker.OData.models.table`: table declarations (``fm_table``).
- :mod:`~FileMaker.OData.models.operators`: filter and sort expressions.
- :mod:`~FileMaker.OData.models.query_builder`: the fluent query builder.

Note:
    This ``__init__.py`` does not re-export models. Import them from the
    package root or from the specific module files.
"""

__all__ = []
