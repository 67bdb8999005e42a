"""Transactional handle on the metadata store."""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.engine import Connection, Engine, RootTransaction
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import CommitError, ConnectivityError, StoreError

__all__ = ["MetadataQueryRunner"]

logger = structlog.get_logger(__name__)

_CONNECTIVITY_ERRORS = (OperationalError, InterfaceError)


class MetadataQueryRunner:
    """One connection, one transaction and the ORM session bound to it.

    The session (``manager``) flushes before every query, so rows written
    earlier in the transaction are visible to later reads even though they
    are not committed yet.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._connection: Optional[Connection] = None
        self._transaction: Optional[RootTransaction] = None
        self._manager: Optional[Session] = None

    @property
    def manager(self) -> Session:
        if self._manager is None:
            raise StoreError("no transaction started on the metadata store")
        return self._manager

    @property
    def is_transaction_active(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    def connect(self) -> None:
        try:
            self._connection = self._engine.connect()
        except _CONNECTIVITY_ERRORS as exc:
            raise ConnectivityError(f"metadata store unreachable: {exc}") from exc

    def start_transaction(self) -> None:
        if self._connection is None:
            raise StoreError("connect() must be called before start_transaction()")
        try:
            self._transaction = self._connection.begin()
        except _CONNECTIVITY_ERRORS as exc:
            raise ConnectivityError(f"cannot begin metadata transaction: {exc}") from exc
        self._manager = Session(
            bind=self._connection,
            join_transaction_mode="rollback_only",
            autoflush=True,
            expire_on_commit=False,
        )

    def commit_transaction(self) -> None:
        if not self.is_transaction_active:
            raise CommitError("no active metadata transaction to commit")
        try:
            self.manager.flush()
            self._transaction.commit()
        except SQLAlchemyError as exc:
            raise CommitError(f"metadata commit failed: {exc}") from exc

    def rollback_transaction(self) -> None:
        if self._manager is not None:
            try:
                self._manager.rollback()
            except _CONNECTIVITY_ERRORS as exc:
                raise StoreError(f"metadata rollback failed: {exc}") from exc
        if self._transaction is not None and self._transaction.is_active:
            try:
                self._transaction.rollback()
            except _CONNECTIVITY_ERRORS as exc:
                raise StoreError(f"metadata rollback failed: {exc}") from exc

    def release(self) -> None:
        """Close the session and return the connection to the pool."""

        if self._manager is not None:
            self._manager.close()
            self._manager = None
        if self._connection is not None:
            try:
                self._connection.close()
            except SQLAlchemyError:
                logger.warning("metadata_connection_close_failed", exc_info=True)
            self._connection = None
        self._transaction = None
