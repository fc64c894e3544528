"""
Request pipeline: authenticate -> resolve resource -> authorize, then the route handler.

Each stage takes the immutable RequestContext and returns an updated copy, or raises a
TodoApiError that short-circuits the request with that error's status. Authentication is
always first: the later stages need the resolved Identity.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Sequence

from fastapi import Request

from todo_api.auth import TokenVerifier
from todo_api.authorizer import AuthorizerClient, policy_path
from todo_api.database import TodoStore
from todo_api.errors import AuthenticationFailure, AuthorizationDenied, NotFound, TodoApiError
from todo_api.identity import Identity

logger = logging.getLogger(__name__)

# Fixed object/relation checked when creating a to-do: is the caller a member of this group
CREATE_CHECK = {"object_type": "group", "object_id": "resource-creators", "relation": "member"}


@dataclass(frozen=True)
class RequestContext:
    method: str
    route: str
    path_params: dict[str, str] = field(default_factory=dict)
    authorization: str | None = None
    identity: Identity | None = None
    resource: dict = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        route = request.scope.get("route")
        return cls(
            method=request.method,
            route=getattr(route, "path", request.url.path),
            path_params=dict(request.path_params),
            authorization=request.headers.get("Authorization"),
        )

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise AuthenticationFailure("Request is not authenticated")
        return self.identity


Stage = Callable[[RequestContext], RequestContext]


def authenticate(verifier: TokenVerifier) -> Stage:
    def stage(ctx: RequestContext) -> RequestContext:
        identity = verifier.authenticate(ctx.authorization)
        return replace(ctx, identity=identity)

    return stage


def resolve_resource(store: TodoStore) -> Stage:
    """
    Build the resource context for the authorizer. Routes addressing an existing to-do
    get its current owner so the policy can apply ownership rules.
    """

    def stage(ctx: RequestContext) -> RequestContext:
        resource: dict = {}
        todo_id = ctx.path_params.get("id")
        if todo_id is not None:
            todo = store.get_todo(todo_id)
            if todo is None:
                raise NotFound("Todo not found")
            resource = {"object_id": todo_id, "ownerID": todo.OwnerID}
        elif ctx.method == "POST" and ctx.route == "/todos":
            resource = dict(CREATE_CHECK)
        elif "userID" in ctx.path_params:
            resource = {"object_id": ctx.path_params["userID"]}
        return replace(ctx, resource=resource)

    return stage


def authorize(authorizer: AuthorizerClient, policy_root: str) -> Stage:
    def stage(ctx: RequestContext) -> RequestContext:
        identity = ctx.require_identity()
        path = policy_path(policy_root, ctx.method, ctx.route)
        if not authorizer.is_allowed(identity, path, ctx.resource):
            logger.info("Policy %s denied %s", path, identity)
            raise AuthorizationDenied()
        return ctx

    return stage


class Pipeline:
    def __init__(self, stages: Sequence[Stage]):
        self.stages = list(stages)

    def run(self, ctx: RequestContext) -> RequestContext:
        for stage in self.stages:
            try:
                ctx = stage(ctx)
            except TodoApiError as e:
                logger.info("%s %s rejected with %d: %s", ctx.method, ctx.route, e.status_code, e.description)
                raise
        return ctx


def build_pipeline(
    verifier: TokenVerifier,
    store: TodoStore,
    authorizer: AuthorizerClient,
    policy_root: str,
) -> Pipeline:
    return Pipeline([authenticate(verifier), resolve_resource(store), authorize(authorizer, policy_root)])


def access_context(request: Request) -> RequestContext:
    """Dependency: run the app's pipeline for this request; the handler receives the result."""
    pipeline: Pipeline = request.app.state.pipeline
    return pipeline.run(RequestContext.from_request(request))
