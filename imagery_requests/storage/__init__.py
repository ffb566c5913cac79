"""Request persistence: store contract and its adapters.

The blob adapter is not imported here so the Azure SDK is only loaded
when ``REQUEST_STORE_BACKEND=blob`` is selected.
"""

from imagery_requests.storage.base import RequestStore, VersionedRequest
from imagery_requests.storage.factory import get_store
from imagery_requests.storage.memory import InMemoryRequestStore

__all__ = [
    "InMemoryRequestStore",
    "RequestStore",
    "VersionedRequest",
    "get_store",
]
