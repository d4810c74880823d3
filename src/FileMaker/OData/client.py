# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import Optional

import requests

from .core.config import ODataConfig
from .data._odata import _ODataAdapter
from .operations.database import Database


class FileMakerODataClient:
    """
    High-level client for a FileMaker Server OData v4 service.

    The client pairs an authenticated adapter with a configuration and hands
    out :class:`~FileMaker.OData.operations.database.Database` objects for
    table-level work. It performs no network calls on construction.

    **Context Manager Support (Recommended)**:
        Using the client as a context manager creates one HTTP session shared
        by every request, and closes it on exit::

            with FileMakerODataClient(adapter) as client:
                db = client.database()
                rows = db.from_(contacts).list().top(10).execute()

    **Without Context Manager**:
        Requests go through module-level :mod:`requests`. Call ``close()`` when
        done if a session was bound::

            client = FileMakerODataClient(adapter)
            try:
                tables = client.database().list_tables()
            finally:
                client.close()

    :param adapter: Authenticated adapter, e.g.
        :class:`~FileMaker.OData.data.adapters.BasicAuthAdapter`.
    :type adapter: ~FileMaker.OData.data._odata._ODataAdapter
    :param config: Optional configuration. When given it replaces the
        adapter's configuration; otherwise the adapter's is used.
    :type config: ~FileMaker.OData.core.config.ODataConfig or None

    :raises TypeError: If ``adapter`` is not an OData adapter.

    Example::

        from FileMaker.OData import BasicAuthAdapter, FileMakerODataClient, ODataConfig

        adapter = BasicAuthAdapter("https://fms.example.com", "Contacts.fmp12", "admin", "secret")
        with FileMakerODataClient(adapter, ODataConfig(default_top=200)) as client:
            db = client.database()
            print(db.list_tables())
    """

    def __init__(self, adapter: _ODataAdapter, config: Optional[ODataConfig] = None) -> None:
        if not isinstance(adapter, _ODataAdapter):
            raise TypeError("adapter must be a FileMaker OData adapter")
        self._adapter = adapter
        if config is not None and config is not adapter.config:
            adapter.configure(config, session=adapter._http._session)
        self._session: Optional[requests.Session] = None
        self._owns_session: bool = False

    @property
    def adapter(self) -> _ODataAdapter:
        return self._adapter

    @property
    def config(self) -> ODataConfig:
        return self._adapter.config

    def __enter__(self) -> "FileMakerODataClient":
        """
        Enter the context manager.

        Creates an HTTP session for connection pooling and binds it to the
        adapter. All operations within the context reuse it.

        :return: The client instance.
        :rtype: FileMakerODataClient
        """
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
            self._adapter.bind_session(self._session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """
        Exit the context manager with cleanup.

        :return: None (exceptions are not suppressed).
        """
        self.close()

    def close(self) -> None:
        """
        Close the HTTP session created by the context manager, if any.

        Safe to call multiple times. The adapter reverts to module-level
        :mod:`requests` afterwards.
        """
        if self._session is not None and self._owns_session:
            self._session.close()
            self._adapter.bind_session(None)
            self._session = None
            self._owns_session = False

    def database(self, *, timeout: Optional[float] = None) -> Database:
        """
        Operations on the adapter's database.

        :param timeout: Per-request timeout in seconds applied to every call
            made through the returned object. Defaults to the transport's
            per-method timeout.
        :type timeout: float or None
        :rtype: ~FileMaker.OData.operations.database.Database
        """
        options = {"timeout": timeout} if timeout is not None else {}
        return Database(self._adapter, request_options=options)


__all__ = ["FileMakerODataClient"]
