"""
util/http.py

Small HTTP helpers shared by the provider wrappers.
- get_json / post_json: JSON requests with a timeout (callers pass Settings.http_timeout, default 8s)
- client_ip: the caller's address, honoring reverse-proxy headers
Status errors are raised as requests.HTTPError so callers can inspect the response code.
"""

import requests


DEFAULT_TIMEOUT = 8.0


def get_json(url, params=None, headers=None, timeout=None):
    """HTTP GET and decode the JSON body."""
    resp = requests.get(url, params=params, headers=headers, timeout=timeout or DEFAULT_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def post_json(url, payload, params=None, headers=None, timeout=None):
    """HTTP POST a JSON payload and decode the JSON body."""
    resp = requests.post(url, json=payload, params=params, headers=headers, timeout=timeout or DEFAULT_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def status_of(exc):
    """Return the HTTP status code carried by a requests exception, if any."""
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


def client_ip(headers, peer=None):
    """Return the original client address.

    Order: first entry of X-Forwarded-For, then X-Real-IP, then the transport peer.
    `headers` is any case-insensitive mapping (e.g. starlette Headers).
    """
    forwarded = headers.get("x-forwarded-for") if headers else None
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip") if headers else None
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return peer
