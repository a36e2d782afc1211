"""Unit of Work: one session and one transaction per business operation.

Usage::

    with UnitOfWork(session_factory) as uow:
        order = uow.repository_for(Order).get(order_id)
        ...
        uow.on_commit(lambda: dispatcher.dispatch(event))

The transaction commits when the block exits cleanly and rolls back when it
raises. Callbacks registered with ``on_commit`` run only after a successful
commit; they are best-effort side effects, so their failures are logged and
never propagate to the caller.
"""

from collections.abc import Callable
from typing import Generic, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from shared.exceptions import ObjectNotFoundError

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT")


class Repository(Generic[ModelT]):
    """Minimal session-bound repository for one mapped class."""

    def __init__(self, session: Session, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    def get(self, identifier: str, refresh: bool = False) -> ModelT:
        """Load by primary key or raise ``ObjectNotFoundError``.

        ``refresh`` reloads the row from the database even when the object is
        already in the identity map (after a conditional bulk UPDATE).
        """
        options = {"populate_existing": True} if refresh else {}
        instance = self.session.get(self.model, identifier, **options)
        if instance is None:
            raise ObjectNotFoundError({"_entity": [f"{self.model.__name__} with id `{identifier}` does not exist"]})
        return instance

    def find(self, identifier: str) -> ModelT | None:
        return self.session.get(self.model, identifier)

    def find_by(self, **filters) -> ModelT | None:
        return self.session.scalars(select(self.model).filter_by(**filters).limit(1)).first()

    def filter_by(self, **filters) -> list[ModelT]:
        return list(self.session.scalars(select(self.model).filter_by(**filters)).all())

    def add(self, instance: ModelT) -> ModelT:
        self.session.add(instance)
        return instance

    def delete(self, instance: ModelT) -> None:
        self.session.delete(instance)


class UnitOfWork:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self.session: Session | None = None
        self._after_commit: list[Callable[[], None]] = []

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self._after_commit = []
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self.session.commit()
            else:
                self.session.rollback()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self.session.close()

        if exc_type is None:
            self._run_after_commit()
        return False

    def repository_for(self, model: type[ModelT]) -> Repository[ModelT]:
        return Repository(self.session, model)

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Register a side effect to run once the transaction has committed."""
        self._after_commit.append(callback)

    def _run_after_commit(self) -> None:
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                logger.error(
                    "After-commit side effect failed",
                    callback=getattr(callback, "__qualname__", repr(callback)),
                    error=str(exc),
                )
