# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
``multipart/mixed`` codec for OData ``$batch`` calls.

Reads go in their own ``application/http`` part. Consecutive writes are
wrapped in one ``changeset_`` part so the service applies them atomically.
Responses are split on the boundary named in the response ``Content-Type``
and flattened back into request order.
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ._response import sanitize_json

CRLF = "\r\n"

_BOUNDARY = re.compile(r"boundary=\"?([^\";]+)\"?", re.IGNORECASE)
_STATUS_LINE = re.compile(r"HTTP/\d\.\d\s+(\d+)\s*(.*)")


@dataclass
class BatchPart:
    """One sub-request: ``path`` is relative to the database root unless absolute."""

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class BatchPartResponse:
    """One decoded sub-response."""

    status: int
    reason: str
    headers: Dict[str, str]
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def new_boundary(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def _format_part(part: BatchPart, base_url: str) -> str:
    url = part.path if part.path.startswith("http") else f"{base_url}{part.path}"
    lines = [
        "Content-Type: application/http",
        "Content-Transfer-Encoding: binary",
        "",
        f"{part.method.upper()} {url} HTTP/1.1",
    ]
    if part.body is None:
        # bodiless parts end with two blank lines
        lines.extend(["", ""])
        return CRLF.join(lines)

    body = part.body if isinstance(part.body, str) else json.dumps(part.body, ensure_ascii=False)
    headers = {k: v for k, v in part.headers.items() if k.lower() != "authorization"}
    names = {k.lower() for k in headers}
    if "content-type" not in names:
        headers["Content-Type"] = "application/json"
    if "content-length" not in names:
        headers["Content-Length"] = str(len(body.encode("utf-8")))
    lines.extend(f"{k}: {v}" for k, v in headers.items())
    lines.extend(["", body])
    return CRLF.join(lines)


def _format_changeset(parts: Sequence[BatchPart], base_url: str) -> str:
    boundary = new_boundary("changeset_")
    lines = [f"Content-Type: multipart/mixed; boundary={boundary}", ""]
    for part in parts:
        lines.append(f"--{boundary}")
        lines.append(_format_part(part, base_url))
    lines.append(f"--{boundary}--")
    return CRLF.join(lines)


def format_batch(parts: Sequence[BatchPart], base_url: str, boundary: Optional[str] = None) -> Tuple[str, str]:
    """
    Render ``parts`` as a ``multipart/mixed`` body.

    :param parts: Sub-requests in order.
    :param base_url: Database root prepended to relative paths.
    :param boundary: Outer boundary; a fresh ``batch_`` boundary when omitted.
    :return: ``(body, boundary)``.
    """
    boundary = boundary or new_boundary("batch_")
    lines: List[str] = []
    pending: List[BatchPart] = []

    def flush() -> None:
        if pending:
            lines.append(f"--{boundary}")
            lines.append(_format_changeset(pending, base_url))
            pending.clear()

    for part in parts:
        if part.method.upper() == "GET":
            flush()
            lines.append(f"--{boundary}")
            lines.append(_format_part(part, base_url))
        else:
            pending.append(part)
    flush()
    lines.append(f"--{boundary}--")
    return CRLF.join(lines), boundary


def extract_boundary(content_type: str) -> Optional[str]:
    match = _BOUNDARY.search(content_type or "")
    return match.group(1).strip() if match else None


def _decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(sanitize_json(text))
    except ValueError:
        return text


def _parse_http_part(part: str) -> Optional[BatchPartResponse]:
    lines = part.split("\n")
    lines = [line.rstrip("\r") for line in lines]
    start = next((i for i, line in enumerate(lines) if line.startswith("HTTP/")), None)
    if start is None:
        return None
    match = _STATUS_LINE.match(lines[start])
    if not match:
        return None

    headers: Dict[str, str] = {}
    body_lines: List[str] = []
    in_body = False
    for line in lines[start + 1 :]:
        if in_body:
            body_lines.append(line)
        elif line == "":
            in_body = True
        elif ":" in line:
            name, _, value = line.partition(":")
            headers[name.strip().lower()] = value.strip()
    return BatchPartResponse(
        status=int(match.group(1)),
        reason=match.group(2).strip(),
        headers=headers,
        body=_decode_body(CRLF.join(body_lines).strip()),
    )


def _split(text: str, boundary: str) -> List[str]:
    parts = []
    for chunk in text.split(f"--{boundary}"):
        chunk = chunk.strip()
        if chunk and chunk != "--":
            parts.append(chunk)
    return parts


def parse_batch(text: str, content_type: str) -> List[BatchPartResponse]:
    """
    Split a ``multipart/mixed`` batch response into its sub-responses.

    Changeset parts are flattened in place so the result lines up with the
    sub-requests that produced them.

    :raises ValueError: If no boundary can be found.
    """
    boundary = extract_boundary(content_type)
    if not boundary:
        first = (text or "").lstrip().split("\n", 1)[0].strip()
        boundary = first[2:] if first.startswith("--") else None
    if not boundary:
        raise ValueError("Batch response carries no multipart boundary")

    results: List[BatchPartResponse] = []
    for chunk in _split(text, boundary):
        head = chunk.split("\n", 1)[0]
        if "multipart/mixed" in head.lower():
            inner = extract_boundary(head)
            if not inner:
                continue
            for sub in _split(chunk, inner):
                if sub.lower().startswith("content-type: multipart/mixed"):
                    continue
                parsed = _parse_http_part(sub)
                if parsed is not None:
                    results.append(parsed)
        else:
            parsed = _parse_http_part(chunk)
            if parsed is not None:
                results.append(parsed)
    return results


def as_parts(requests_: Sequence[Any]) -> List[BatchPart]:
    """Normalise request objects and ``{method, url|path, headers, body}`` mappings."""
    parts = []
    for req in requests_:
        if isinstance(req, Mapping):
            path = req.get("url") or req.get("path")
            parts.append(BatchPart(req["method"], path, dict(req.get("headers") or {}), req.get("body")))
        else:
            parts.append(BatchPart(req.method, req.path, dict(req.headers or {}), req.body))
    return parts


__all__ = ["BatchPart", "BatchPartResponse", "format_batch", "parse_batch", "extract_boundary", "as_parts"]
