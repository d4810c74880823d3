# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Authenticated adapters.

- :class:`BasicAuthAdapter`: FileMaker account name and password.
- :class:`OttoAdapter`: Otto v3 (``KEY_...``) or OttoFMS (``dk_...``) API key proxy.

Example::

    from FileMaker.OData import BasicAuthAdapter, OttoAdapter

    adapter = BasicAuthAdapter("https://fms.example.com", "Contacts.fmp12", "admin", "secret")
    adapter = OttoAdapter("https://fms.example.com", "Contacts.fmp12", "dk_123abc")
"""

from __future__ import annotations

import base64
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

from ..common.constants import (
    ODATA_ROOT,
    OTTO3_DEFAULT_PORT,
    OTTO3_KEY_PREFIX,
    OTTO_PATH_PREFIX,
    OTTOFMS_KEY_PREFIX,
)
from ._odata import _ODataAdapter


class BasicAuthAdapter(_ODataAdapter):
    """
    Adapter authenticating with HTTP Basic credentials.

    :param server: Server origin.
    :type server: :class:`str`
    :param database: Hosted file name.
    :type database: :class:`str`
    :param username: FileMaker account name.
    :type username: :class:`str`
    :param password: Account password.
    :type password: :class:`str`
    :raises ValueError: If either credential is empty.
    """

    def __init__(self, server: str, database: str, username: str, password: str, **kwargs: Any) -> None:
        if not username or not password:
            raise ValueError("username and password are required.")
        super().__init__(server, database, **kwargs)
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        self._auth_header = f"Basic {token}"

    def get_auth_header(self) -> str:
        return self._auth_header


class OttoAdapter(_ODataAdapter):
    """
    Adapter authenticating through an Otto API key, sent as a bearer token.

    Otto v3 keys (``KEY_...``) address the Otto proxy port, 3030 unless
    ``port`` is given. OttoFMS keys (``dk_...``) route through the ``/otto``
    path prefix on the server's own port.

    :param api_key: Otto API key.
    :type api_key: :class:`str`
    :param port: Otto v3 proxy port. Not used with OttoFMS keys.
    :type port: :class:`int` | None
    :raises ValueError: If the key has neither prefix.
    """

    def __init__(self, server: str, database: str, api_key: str, port: Optional[int] = None, **kwargs: Any) -> None:
        api_key = api_key or ""
        if not (api_key.startswith(OTTO3_KEY_PREFIX) or api_key.startswith(OTTOFMS_KEY_PREFIX)):
            raise ValueError(
                f"Invalid Otto API key format. Must start with {OTTO3_KEY_PREFIX!r} (Otto v3) "
                f"or {OTTOFMS_KEY_PREFIX!r} (OttoFMS)"
            )
        self._api_key = api_key
        self._port = port
        super().__init__(server, database, **kwargs)

    @property
    def is_otto_fms(self) -> bool:
        return self._api_key.startswith(OTTOFMS_KEY_PREFIX)

    def _build_base_url(self) -> str:
        url = super()._build_base_url()
        parts = urlsplit(url)
        if self.is_otto_fms:
            path = parts.path
            if path.startswith(ODATA_ROOT):
                path = OTTO_PATH_PREFIX + path
            return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        netloc = f"{host}:{self._port or OTTO3_DEFAULT_PORT}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    def get_auth_header(self) -> str:
        return f"Bearer {self._api_key}"


__all__ = ["BasicAuthAdapter", "OttoAdapter"]
