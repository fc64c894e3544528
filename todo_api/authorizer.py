"""
Client for the external authorizer (policy decision point) over its REST gateway.
No policy logic lives here: every decision is a single remote call.
"""
import logging
from dataclasses import dataclass

import httpx

from todo_api.errors import UpstreamUnavailable
from todo_api.identity import Identity
from todo_api.remote import build_client

logger = logging.getLogger(__name__)

IS_ENDPOINT = "/api/v2/authz/is"


def policy_path(root: str, method: str, route: str) -> str:
    """
    Policy package for a route template: "todoApp", "PUT", "/todos/{id}" -> "todoApp.PUT.todos.__id".
    """
    parts = [root, method.upper()]
    for segment in route.strip("/").split("/"):
        if not segment:
            continue
        if segment.startswith("{") and segment.endswith("}"):
            segment = "__" + segment[1:-1].split(":", 1)[0]
        parts.append(segment)
    return ".".join(parts)


@dataclass(frozen=True)
class PolicyInstance:
    name: str
    label: str = ""
    decision: str = "allowed"


class AuthorizerClient:
    def __init__(
        self,
        address: str,
        policy: PolicyInstance,
        *,
        api_key: str = "",
        tenant_id: str = "",
        ca_cert_path: str = "",
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.policy = policy
        self._http = build_client(
            address,
            api_key=api_key,
            tenant_id=tenant_id,
            ca_cert_path=ca_cert_path,
            timeout=timeout,
            transport=transport,
        )

    def _request_body(self, identity: Identity, path: str, resource: dict) -> dict:
        return {
            "identity_context": {"type": "IDENTITY_TYPE_SUB", "identity": identity.subject},
            "policy_context": {"path": path, "decisions": [self.policy.decision]},
            "policy_instance": {
                "name": self.policy.name,
                "instance_label": self.policy.label or self.policy.name,
            },
            "resource_context": resource,
        }

    def is_allowed(self, identity: Identity, path: str, resource: dict | None = None) -> bool:
        """True only when the authorizer explicitly answers the decision with is=true."""
        body = self._request_body(identity, path, resource or {})
        try:
            response = self._http.post(IS_ENDPOINT, json=body)
            response.raise_for_status()
            decisions = response.json().get("decisions") or []
            if not isinstance(decisions, list) or not all(isinstance(d, dict) for d in decisions):
                raise ValueError(f"unexpected decisions {decisions!r}")
        except httpx.HTTPError as e:
            logger.error("Authorizer call for %s failed: %s", path, e)
            raise UpstreamUnavailable("Authorization service unavailable") from e
        except (ValueError, AttributeError) as e:
            logger.error("Authorizer returned malformed reply for %s: %s", path, e)
            raise UpstreamUnavailable("Authorization service unavailable") from e

        for decision in decisions:
            if decision.get("decision") == self.policy.decision:
                return decision.get("is") is True
        logger.error("Authorizer reply for %s lacks decision %r", path, self.policy.decision)
        raise UpstreamUnavailable("Authorization service unavailable")

    def close(self) -> None:
        self._http.close()
