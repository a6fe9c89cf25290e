from __future__ import annotations

import re

from fastapi import Request

_IPV4 = re.compile(r"(\d{1,3}(?:\.\d{1,3}){3})")


def get_client_ip(request: Request) -> str | None:
    """IP de origem do cliente (primeiro X-Forwarded-For, senão o peer da conexão)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        candidate = forwarded.split(",")[0].strip()
    elif request.client:
        candidate = request.client.host
    else:
        return None

    if not candidate:
        return None
    if candidate.startswith("::ffff:"):
        candidate = candidate[len("::ffff:"):]
    match = _IPV4.search(candidate)
    return match.group(1) if match else candidate
