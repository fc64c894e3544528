"""
User lookup. The caller's own subject resolves through the directory identity relation;
any other id is looked up as a user object directly.
"""
from fastapi import APIRouter, Depends

from todo_api.directory import DirectoryClient, get_directory
from todo_api.pipeline import RequestContext, access_context

router = APIRouter()


@router.get("/users/{userID}")
def get_user(
    userID: str,
    ctx: RequestContext = Depends(access_context),
    directory: DirectoryClient = Depends(get_directory),
):
    identity = ctx.require_identity()
    if userID == identity.subject:
        user = directory.user_from_identity(userID)
    else:
        user = directory.get_user(userID)
    return user.as_dict()
