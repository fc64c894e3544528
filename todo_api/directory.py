"""
Client for the external directory over its REST gateway.

Resolves token subjects to user objects through the identity "identifier" relation and
keeps the todo "owner" relations in step with the record store.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from fastapi import Request

from todo_api.errors import NotFound, UpstreamUnavailable
from todo_api.remote import build_client

logger = logging.getLogger(__name__)

IDENTITY_OBJECT_TYPE = "identity"
USER_OBJECT_TYPE = "user"
TODO_OBJECT_TYPE = "todo"
IDENTIFIER_RELATION = "identifier"
OWNER_RELATION = "owner"

OBJECT_ENDPOINT = "/api/v3/directory/object/{type}/{id}"
RELATION_ENDPOINT = "/api/v3/directory/relation"


@dataclass(frozen=True)
class UserRecord:
    id: str
    display_name: str = ""
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_object(cls, obj: dict) -> "UserRecord":
        return cls(
            id=obj.get("id") or obj.get("key") or "",
            display_name=obj.get("display_name") or "",
            properties=dict(obj.get("properties") or {}),
        )

    def as_dict(self) -> dict[str, Any]:
        """Flattened properties plus key/id/name."""
        data = dict(self.properties)
        data["key"] = self.id
        data["id"] = self.id
        data["name"] = self.display_name
        return data


class DirectoryClient:
    def __init__(
        self,
        address: str,
        *,
        api_key: str = "",
        tenant_id: str = "",
        ca_cert_path: str = "",
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._http = build_client(
            address,
            api_key=api_key,
            tenant_id=tenant_id,
            ca_cert_path=ca_cert_path,
            timeout=timeout,
            transport=transport,
        )

    def _call(self, method: str, url: str, what: str, **kwargs) -> dict:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Directory call failed (%s): %s", what, e)
            raise UpstreamUnavailable("Directory service unavailable") from e
        if response.status_code == 404:
            raise NotFound(f"{what} not found")
        try:
            response.raise_for_status()
            return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            logger.error("Directory call failed (%s): %s", what, e)
            raise UpstreamUnavailable("Directory service unavailable") from e
        except ValueError as e:
            logger.error("Directory returned malformed reply (%s): %s", what, e)
            raise UpstreamUnavailable("Directory service unavailable") from e

    def _get_object(self, object_type: str, object_id: str) -> dict:
        url = OBJECT_ENDPOINT.format(type=object_type, id=object_id)
        result = self._call("GET", url, f"{object_type} object [{object_id}]").get("result")
        if not result:
            raise NotFound(f"{object_type} object [{object_id}] not found")
        return result

    def _get_relation(self, params: dict[str, str], what: str) -> dict | None:
        try:
            result = self._call("GET", RELATION_ENDPOINT, what, params=params).get("result")
        except NotFound:
            return None
        return result or None

    def _user_id_for_identity(self, identity: str) -> str | None:
        relation = self._get_relation(
            {
                "object_type": IDENTITY_OBJECT_TYPE,
                "object_id": identity,
                "relation": IDENTIFIER_RELATION,
                "subject_type": USER_OBJECT_TYPE,
            },
            f"identifier relation for identity [{identity}]",
        )
        if relation is not None:
            return relation.get("subject_id")

        # Older directories model the relation from the user side: user#identifier@identity
        relation = self._get_relation(
            {
                "object_type": USER_OBJECT_TYPE,
                "relation": IDENTIFIER_RELATION,
                "subject_type": IDENTITY_OBJECT_TYPE,
                "subject_id": identity,
            },
            f"legacy identifier relation for identity [{identity}]",
        )
        if relation is not None:
            return relation.get("object_id")
        return None

    def user_from_identity(self, identity: str) -> UserRecord:
        """Resolve a token subject to its user. Raises NotFound when no relation links them."""
        user_id = self._user_id_for_identity(identity)
        if not user_id:
            logger.info("No relations found for identity [%s]", identity)
            raise NotFound("User not found")
        return UserRecord.from_object(self._get_object(USER_OBJECT_TYPE, user_id))

    def get_user(self, user_id: str) -> UserRecord:
        try:
            return UserRecord.from_object(self._get_object(USER_OBJECT_TYPE, user_id))
        except NotFound:
            logger.info("User [%s] not found", user_id)
            raise NotFound("User not found") from None

    def record_ownership(self, todo_id: str, owner_id: str) -> None:
        """Set todo:<id>#owner@user:<owner>."""
        self._call(
            "POST",
            RELATION_ENDPOINT,
            f"owner relation for todo [{todo_id}]",
            json={
                "relation": {
                    "object_type": TODO_OBJECT_TYPE,
                    "object_id": todo_id,
                    "relation": OWNER_RELATION,
                    "subject_type": USER_OBJECT_TYPE,
                    "subject_id": owner_id,
                }
            },
        )

    def remove_ownership(self, todo_id: str) -> None:
        """Delete the todo object together with its relations. Already-gone is not an error."""
        url = OBJECT_ENDPOINT.format(type=TODO_OBJECT_TYPE, id=todo_id)
        try:
            self._call("DELETE", url, f"todo object [{todo_id}]", params={"with_relations": "true"})
        except NotFound:
            logger.info("Todo object [%s] already absent from directory", todo_id)

    def close(self) -> None:
        self._http.close()


def get_directory(request: Request) -> DirectoryClient:
    """Dependency: the app's directory client."""
    return request.app.state.directory
