from filehub.db.device import FileSystemDeviceStore
from filehub.db.engine import get_local_engine, get_remote_engine
from filehub.db.local import JsonFolderStore, SqliteBlobStore, SqliteSyncMap
from filehub.db.memory import (
    InMemoryBlobStore,
    InMemoryDeviceStore,
    InMemoryFolderStore,
    InMemoryRemoteService,
    InMemorySyncMap,
)
from filehub.db.remote import PostgresRemoteService

__all__ = [
    "FileSystemDeviceStore",
    "InMemoryBlobStore",
    "InMemoryDeviceStore",
    "InMemoryFolderStore",
    "InMemoryRemoteService",
    "InMemorySyncMap",
    "JsonFolderStore",
    "PostgresRemoteService",
    "SqliteBlobStore",
    "SqliteSyncMap",
    "get_local_engine",
    "get_remote_engine",
]
