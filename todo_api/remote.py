"""
Shared connection settings for the authorizer and directory REST gateways.
"""
import ssl

import httpx


def connection_headers(api_key: str, tenant_id: str) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"basic {api_key}"
    if tenant_id:
        headers["aserto-tenant-id"] = tenant_id
    return headers


def tls_verify(ca_cert_path: str) -> ssl.SSLContext | bool:
    """System CAs unless a CA bundle path is configured. A missing file raises at startup."""
    if not ca_cert_path:
        return True
    return ssl.create_default_context(cafile=ca_cert_path)


def build_client(
    address: str,
    *,
    api_key: str = "",
    tenant_id: str = "",
    ca_cert_path: str = "",
    timeout: float = 5.0,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    # Fixed per-call timeout; sync handlers cannot cancel on client disconnect (see DESIGN.md, Cancellation)
    return httpx.Client(
        base_url=address,
        headers=connection_headers(api_key, tenant_id),
        timeout=timeout,
        verify=tls_verify(ca_cert_path),
        transport=transport,
    )
