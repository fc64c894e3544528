"""
To-do API: FastAPI app factory, startup/shutdown and the process entry point.
Port 3001 by default; see config.py for every setting.
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from todo_api import config
from todo_api.auth import TokenVerifier
from todo_api.authorizer import AuthorizerClient, PolicyInstance
from todo_api.cors import CORSResponderMiddleware
from todo_api.database import TodoStore
from todo_api.directory import DirectoryClient
from todo_api.errors import TodoApiError
from todo_api.keys import SigningKeyCache
from todo_api.pipeline import build_pipeline
from todo_api.todos import router as todos_router
from todo_api.users import router as users_router

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """A dependency could not be initialised; the process must not serve requests."""


def configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise StartupError(f"Invalid log level {level_name!r}")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _default_store() -> TodoStore:
    return TodoStore.from_url(config.DATABASE_URL)


def _default_directory() -> DirectoryClient:
    logger.info("Directory: %s", config.DIRECTORY_ADDRESS)
    return DirectoryClient(
        config.DIRECTORY_ADDRESS,
        api_key=config.DIRECTORY_API_KEY,
        tenant_id=config.TENANT_ID,
        ca_cert_path=config.DIRECTORY_CA_CERT_PATH,
        timeout=config.UPSTREAM_TIMEOUT_SECONDS,
    )


def _default_authorizer() -> AuthorizerClient:
    logger.info("Authorizer: %s", config.AUTHORIZER_ADDRESS)
    return AuthorizerClient(
        config.AUTHORIZER_ADDRESS,
        PolicyInstance(
            name=config.POLICY_INSTANCE_NAME,
            label=config.POLICY_INSTANCE_LABEL,
            decision=config.POLICY_DECISION,
        ),
        api_key=config.AUTHORIZER_API_KEY,
        tenant_id=config.TENANT_ID,
        ca_cert_path=config.AUTHORIZER_CA_CERT_PATH,
        timeout=config.UPSTREAM_TIMEOUT_SECONDS,
    )


def _default_verifier() -> TokenVerifier:
    keys = SigningKeyCache(
        config.OIDC_JWKS_URL,
        lifespan=config.JWKS_CACHE_LIFESPAN,
        timeout=config.UPSTREAM_TIMEOUT_SECONDS,
    )
    return TokenVerifier(keys, audience=config.OIDC_AUDIENCE, algorithms=config.JWT_ALGORITHMS)


def _wire(app: FastAPI) -> None:
    state = app.state
    state.pipeline = build_pipeline(state.verifier, state.store, state.authorizer, state.policy_root)


def create_app(
    *,
    store: TodoStore | None = None,
    directory: DirectoryClient | None = None,
    authorizer: AuthorizerClient | None = None,
    verifier: TokenVerifier | None = None,
    policy_root: str = config.POLICY_ROOT,
) -> FastAPI:
    """
    Build the app. Collaborators passed in are used as-is and never closed by the app;
    missing ones are created from config at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state = app.state
        owned = []
        factories = [
            ("store", _default_store),
            ("directory", _default_directory),
            ("authorizer", _default_authorizer),
            ("verifier", _default_verifier),
        ]
        for name, factory in factories:
            if getattr(state, name) is not None:
                continue
            try:
                component = factory()
            except Exception as e:
                logger.critical("Failed to create %s: %s", name, e)
                for done in owned:
                    _close(done)
                raise StartupError(f"Failed to create {name}") from e
            setattr(state, name, component)
            owned.append(component)
        _wire(app)
        logger.info("To-do API ready")
        yield
        logger.info("Shutting down")
        for component in owned:
            _close(component)

    app = FastAPI(title="To-do API", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.state.directory = directory
    app.state.authorizer = authorizer
    app.state.verifier = verifier
    app.state.policy_root = policy_root
    if None not in (store, directory, authorizer, verifier):
        _wire(app)

    app.add_middleware(CORSResponderMiddleware)
    app.include_router(todos_router, tags=["todos"])
    app.include_router(users_router, tags=["users"])

    @app.exception_handler(TodoApiError)
    async def todo_api_error_handler(request: Request, exc: TodoApiError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail()},
            headers=exc.headers,
        )

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "todo_api"}

    return app


app = create_app()


def _close(component) -> None:
    if isinstance(component, TokenVerifier):
        component = component.keys
    try:
        component.close()
    except Exception as e:
        logger.warning("Failed to close %s: %s", type(component).__name__, e)


def run() -> None:
    try:
        configure_logging(config.LOG_LEVEL)
    except StartupError as e:
        logging.basicConfig()
        logger.critical("%s", e)
        sys.exit(1)

    import uvicorn

    # uvicorn exits non-zero when the lifespan startup raises
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        timeout_graceful_shutdown=config.SHUTDOWN_GRACE_SECONDS,
        log_config=None,
    )


if __name__ == "__main__":
    run()
