"""RequestStore abstract base class.

Defines the persistence contract the lifecycle and reporting layers
depend on.  They never know which concrete store is behind it.

Contract:
    1. ``create(request)``                          insert a new document.
    2. ``find_by_id(request_id)``                   read one document + version.
    3. ``atomic_update(id, expected_version, fn)``  compare-and-swap write.
    4. ``query(predicate)``                         read every matching document.

``atomic_update`` is the only mutation path for existing documents.  It
must fail with ``ConcurrencyConflictError`` when the stored version no
longer equals *expected_version*, so two administrators racing on the
same request can never silently drop a history entry.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from imagery_requests.models.request import ImageryRequest


@dataclass(frozen=True, slots=True)
class VersionedRequest:
    """A stored request paired with its opaque concurrency token.

    Attributes:
        request: The stored request.
        version: Store-specific version (integer counter, blob ETag, ...).
    """

    request: ImageryRequest
    version: object


class RequestStore(abc.ABC):
    """Abstract base class for request persistence adapters."""

    @abc.abstractmethod
    def create(self, request: ImageryRequest, *, timeout: float | None = None) -> VersionedRequest:
        """Persist a new request.

        Raises:
            PersistenceError: If the id already exists or the store fails.
        """

    @abc.abstractmethod
    def find_by_id(
        self, request_id: str, *, timeout: float | None = None
    ) -> VersionedRequest | None:
        """Return the stored request, or ``None`` if the id is unknown.

        Raises:
            PersistenceError: If the store fails.
        """

    @abc.abstractmethod
    def atomic_update(
        self,
        request_id: str,
        expected_version: object,
        mutator: Callable[[ImageryRequest], ImageryRequest],
        *,
        timeout: float | None = None,
    ) -> VersionedRequest:
        """Apply *mutator* to the stored request if its version still matches.

        Args:
            request_id: Document to update.
            expected_version: Version observed when the caller read it.
            mutator: Pure function producing the new request state.
                Exceptions it raises propagate and nothing is written.
            timeout: Per-call timeout in seconds.

        Raises:
            RequestNotFoundError: If the id is unknown.
            ConcurrencyConflictError: If the version changed.
            PersistenceError: If the store fails.
        """

    @abc.abstractmethod
    def query(
        self,
        predicate: Callable[[ImageryRequest], bool],
        *,
        timeout: float | None = None,
    ) -> list[ImageryRequest]:
        """Return every stored request for which *predicate* is true.

        Raises:
            PersistenceError: If the store fails.
        """
