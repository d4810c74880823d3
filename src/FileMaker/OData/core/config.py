# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..common.constants import DEFAULT_TOP
from .telemetry import TelemetryConfig

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_number(environ: Mapping[str, str], name: str, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class ODataConfig:
    """
    Configuration settings for FileMaker OData client operations.

    :param http_retries: Maximum number of retry attempts for transient failures (default: 5).
    :type http_retries: int or None
    :param http_backoff: Base delay in seconds for exponential backoff (default: 0.5).
    :type http_backoff: float or None
    :param http_max_backoff: Maximum delay between retry attempts in seconds (default: 60.0).
    :type http_max_backoff: float or None
    :param http_timeout: Request timeout in seconds (default: method-dependent).
    :type http_timeout: float or None
    :param http_jitter: Whether to add jitter to retry delays (default: True).
    :type http_jitter: bool or None
    :param http_retry_transient_errors: Whether to retry 429, 502, 503 and 504 responses (default: True).
    :type http_retry_transient_errors: bool or None
    :param verify_ssl: Verify the server's TLS certificate. Disable only for development servers.
    :type verify_ssl: bool
    :param default_top: ``$top`` applied to list queries that set none. ``None`` disables it.
    :type default_top: int or None
    :param use_entity_ids: Address tables and fields by their ``FMTID``/``FMFID`` identifiers
        when the table declares them.
    :type use_entity_ids: bool
    :param include_special_columns: Keep ``ROWID`` and ``ROWMODID`` in returned records.
    :type include_special_columns: bool
    :param ieee754_compatible: Ask the service to return numbers as strings.
    :type ieee754_compatible: bool
    :param validate_relations: Raise on expand and navigate relation names the table
        does not declare as navigable, instead of warning.
    :type validate_relations: bool
    :param telemetry: Optional logging and tracing configuration.
    :type telemetry: ~FileMaker.OData.core.telemetry.TelemetryConfig or None
    """

    http_retries: Optional[int] = None
    http_backoff: Optional[float] = None
    http_max_backoff: Optional[float] = None
    http_timeout: Optional[float] = None
    http_jitter: Optional[bool] = None
    http_retry_transient_errors: Optional[bool] = None
    verify_ssl: bool = True

    default_top: Optional[int] = DEFAULT_TOP
    use_entity_ids: bool = False
    include_special_columns: bool = False
    ieee754_compatible: bool = False
    validate_relations: bool = False

    telemetry: Optional[TelemetryConfig] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ODataConfig":
        """
        Create a configuration from ``FMODATA_*`` environment variables.

        Unset variables keep their defaults. Recognised names are
        ``FMODATA_HTTP_RETRIES``, ``FMODATA_HTTP_BACKOFF``, ``FMODATA_HTTP_TIMEOUT``,
        ``FMODATA_VERIFY_SSL``, ``FMODATA_DEFAULT_TOP``, ``FMODATA_USE_ENTITY_IDS``,
        ``FMODATA_INCLUDE_SPECIAL_COLUMNS`` and ``FMODATA_IEEE754_COMPATIBLE``.

        :param environ: Mapping to read instead of :data:`os.environ`.
        :type environ: dict or None
        :return: Configuration instance.
        :rtype: ~FileMaker.OData.core.config.ODataConfig
        :raises ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        default_top = _env_number(env, "FMODATA_DEFAULT_TOP", int)
        return cls(
            http_retries=_env_number(env, "FMODATA_HTTP_RETRIES", int),
            http_backoff=_env_number(env, "FMODATA_HTTP_BACKOFF", float),
            http_timeout=_env_number(env, "FMODATA_HTTP_TIMEOUT", float),
            verify_ssl=_env_bool(env, "FMODATA_VERIFY_SSL", True),
            default_top=default_top if default_top is not None else DEFAULT_TOP,
            use_entity_ids=_env_bool(env, "FMODATA_USE_ENTITY_IDS", False),
            include_special_columns=_env_bool(env, "FMODATA_INCLUDE_SPECIAL_COLUMNS", False),
            ieee754_compatible=_env_bool(env, "FMODATA_IEEE754_COMPATIBLE", False),
        )
