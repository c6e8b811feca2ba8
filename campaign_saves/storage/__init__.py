"""Storage backends for the hot current slot and the cold save archive."""

from campaign_saves.storage.firestore import FirestoreHotStore
from campaign_saves.storage.gcs import GcsColdArchive
from campaign_saves.storage.local import LocalFileSystemColdArchive, LocalFileSystemHotStore
from campaign_saves.storage.memory import InMemoryColdArchive, InMemoryHotStore
from campaign_saves.storage.protocol import ColdArchive, HotStore

__all__ = [
    'ColdArchive',
    'FirestoreHotStore',
    'GcsColdArchive',
    'HotStore',
    'InMemoryColdArchive',
    'InMemoryHotStore',
    'LocalFileSystemColdArchive',
    'LocalFileSystemHotStore',
]
