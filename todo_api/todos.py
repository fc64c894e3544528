"""
To-do routes. Every route runs behind the access pipeline; handlers receive its context.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ValidationError

from todo_api.database import TodoStore, get_store
from todo_api.directory import DirectoryClient, get_directory
from todo_api.errors import NotFound, UpstreamUnavailable, ValidationFailure
from todo_api.models import Todo
from todo_api.pipeline import RequestContext, access_context

logger = logging.getLogger(__name__)
router = APIRouter()


class TodoBody(BaseModel):
    """Request body. ID and OwnerID may be present but are assigned by the server."""

    Title: str
    Completed: bool = False


async def todo_body(request: Request, ctx: RequestContext = Depends(access_context)) -> TodoBody:
    """
    Dependency: the request body, parsed only once the access pipeline has passed, so a
    rejected caller gets its 401/403 whatever the body holds.
    """
    try:
        return TodoBody.model_validate_json(await request.body())
    except ValidationError as e:
        logger.info("Rejected malformed request body: %s", e.errors(include_url=False))
        raise ValidationFailure("Malformed request body") from None


@router.get("/todos")
def list_todos(
    ctx: RequestContext = Depends(access_context),
    store: TodoStore = Depends(get_store),
):
    return [todo.as_dict() for todo in store.list_todos()]


@router.post("/todos")
def insert_todo(
    body: TodoBody = Depends(todo_body),
    ctx: RequestContext = Depends(access_context),
    store: TodoStore = Depends(get_store),
    directory: DirectoryClient = Depends(get_directory),
):
    """
    Create a to-do owned by the caller's user. The record and its directory owner relation
    are written by two separate calls; a failure of the second leaves the record in place.
    """
    identity = ctx.require_identity()
    try:
        owner = directory.user_from_identity(identity.subject)
    except NotFound:
        raise ValidationFailure("Owner could not be resolved for caller") from None

    todo = Todo(ID=str(uuid.uuid4()), OwnerID=owner.id, Title=body.Title, Completed=body.Completed)
    store.insert_todo(todo)

    try:
        directory.record_ownership(todo.ID, owner.id)
    except (NotFound, UpstreamUnavailable) as e:
        logger.error("Todo %s stored without owner relation: %s", todo.ID, e.description)
        raise UpstreamUnavailable("Failed to record todo ownership") from e

    logger.info("Todo %s created for owner %s", todo.ID, owner.id)
    return todo.as_dict()


@router.put("/todos/{id}")
def update_todo(
    id: str,
    body: TodoBody = Depends(todo_body),
    ctx: RequestContext = Depends(access_context),
    store: TodoStore = Depends(get_store),
):
    todo = store.update_todo(id, title=body.Title, completed=body.Completed)
    if todo is None:
        raise NotFound("Todo not found")
    return todo.as_dict()


@router.delete("/todos/{id}")
def delete_todo(
    id: str,
    ctx: RequestContext = Depends(access_context),
    store: TodoStore = Depends(get_store),
    directory: DirectoryClient = Depends(get_directory),
):
    """Remove the owner relation, then the record. Same two-call window as insert."""
    directory.remove_ownership(id)
    if not store.delete_todo(id):
        raise NotFound("Todo not found")
    logger.info("Todo %s deleted", id)
    return Response(status_code=200)
