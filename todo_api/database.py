"""
Record store for to-do items: one SQLite (or any SQLAlchemy URL) table.
Every method opens its own session, so one store is shared by all request threads.
"""
import logging

from fastapi import Request
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from todo_api.models import Base, Todo

logger = logging.getLogger(__name__)


def make_engine(url: str) -> Engine:
    # SQLite: in-memory needs StaticPool so all connections share the same DB (for tests)
    # File-based SQLite needs check_same_thread=False for FastAPI's worker threads
    if url.startswith("sqlite:///:memory:") or url == "sqlite://":
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


class TodoStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

    @classmethod
    def from_url(cls, url: str) -> "TodoStore":
        store = cls(make_engine(url))
        store.init_db()
        return store

    def init_db(self) -> None:
        """Create the todos table if missing."""
        logger.info("Creating todos table in %s", self.engine.url.render_as_string(hide_password=True))
        Base.metadata.create_all(bind=self.engine)

    def list_todos(self) -> list[Todo]:
        with self._sessions() as db:
            return list(db.scalars(select(Todo).order_by(Todo.ID)))

    def get_todo(self, todo_id: str) -> Todo | None:
        with self._sessions() as db:
            return db.get(Todo, todo_id)

    def insert_todo(self, todo: Todo) -> Todo:
        with self._sessions() as db:
            db.add(todo)
            db.commit()
        return todo

    def update_todo(self, todo_id: str, title: str, completed: bool) -> Todo | None:
        """Replace Title and Completed. Returns the updated row, or None if it does not exist."""
        with self._sessions() as db:
            todo = db.get(Todo, todo_id)
            if todo is None:
                return None
            todo.Title = title
            todo.Completed = completed
            db.commit()
            return todo

    def delete_todo(self, todo_id: str) -> bool:
        with self._sessions() as db:
            todo = db.get(Todo, todo_id)
            if todo is None:
                return False
            db.delete(todo)
            db.commit()
            return True

    def close(self) -> None:
        self.engine.dispose()


def get_store(request: Request) -> TodoStore:
    """Dependency: the app's record store."""
    return request.app.state.store
