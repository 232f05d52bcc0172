from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.orm import sessionmaker

from auth.utils import UserIdentity, get_identity
from config import Settings
from db.database import create_session_factory
from storage.base import StorageAdapter
from storage.database import DatabaseStorageAdapter
from storage.local import LocalStorageAdapter
from utils.kv_store import JsonKeyValueStore

logger = logging.getLogger(__name__)


def get_storage_adapter(
    backend: str,
    identity: UserIdentity,
    *,
    store: JsonKeyValueStore | None = None,
    prefix: str = "p01:",
    session_factory: sessionmaker | None = None,
) -> StorageAdapter:
    if backend == "local":
        return LocalStorageAdapter(store if store is not None else JsonKeyValueStore(), prefix=prefix)
    if backend == "database":
        return DatabaseStorageAdapter(session_factory, identity)
    raise ValueError(f"Unknown storage backend: {backend}")


@dataclass(frozen=True)
class StorageFactory:
    """Backend choice made once at startup; binds an adapter to each caller's identity."""

    backend: str
    store: JsonKeyValueStore | None = None
    prefix: str = "p01:"
    session_factory: sessionmaker | None = None

    def __call__(self, identity: UserIdentity) -> StorageAdapter:
        return get_storage_adapter(
            self.backend,
            identity,
            store=self.store,
            prefix=self.prefix,
            session_factory=self.session_factory,
        )


def build_storage_factory(app_settings: Settings) -> StorageFactory:
    backend = app_settings.storage_backend
    if backend == "database":
        session_factory = create_session_factory(app_settings.DATABASE_URL)
        if session_factory is None:
            logger.warning("STORAGE_BACKEND=database but DATABASE_URL is empty; reads will be empty and writes will fail")
        else:
            logger.info("Using database storage adapter")
        return StorageFactory(backend="database", session_factory=session_factory)

    store = JsonKeyValueStore(app_settings.LOCAL_STORE_PATH)
    logger.info(f"Using local storage adapter ({store.path})")
    return StorageFactory(backend="local", store=store, prefix=app_settings.LOCAL_KEY_PREFIX)


def get_storage(request: Request, identity: UserIdentity = Depends(get_identity)) -> StorageAdapter:
    factory: StorageFactory = request.app.state.storage_factory
    return factory(identity)
