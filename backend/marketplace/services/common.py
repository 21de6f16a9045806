"""
Shared plumbing for the lifecycle services.

WHAT: Store access with error translation, id generation, location fallback
WHY: Every service must map storage failures onto the business exceptions
     the API layer understands, the same way
HOW: CollectionService base class whose helpers wrap the collection facade
"""

import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..core.config import Settings
from ..models.api_schemas import LocationInput
from ..models.entities import Location
from ..storage.base import (
    ConcurrentUpdateError,
    DocumentCollection,
    DocumentNotFoundError,
    Query,
    StoreUnavailableError,
)
from ..utils.clock import Clock
from ..utils.exceptions import BusinessException, InvalidStateException, UnavailableException
from ..utils.logger import get_logger

logger = get_logger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def merge_location(supplied: Optional[LocationInput], fallback: Location) -> Location:
    """Field-by-field fallback: anything the caller left empty comes from the vendor."""
    supplied = supplied or LocationInput()
    return Location(
        address=supplied.address or fallback.address,
        city=supplied.city or fallback.city,
        state=supplied.state or fallback.state,
        coordinates=supplied.coordinates or fallback.coordinates,
    )


class CollectionService:
    """
    Base class for services that own one collection.

    Subclasses set `not_found` to the exception raised for a missing id.
    """

    not_found: Callable[[str], BusinessException]

    def __init__(self, collection: DocumentCollection, clock: Clock, settings: Settings):
        self.collection = collection
        self.clock = clock
        self.settings = settings

    def _limit(self, requested: Optional[int]) -> int:
        if requested is None:
            return self.settings.DEFAULT_LIST_LIMIT
        return min(requested, self.settings.MAX_LIST_LIMIT)

    def _unavailable(self, e: StoreUnavailableError) -> UnavailableException:
        logger.error(f"Store failure on '{self.collection.name}': {e}")
        return UnavailableException(f"Backing store unavailable: {e}")

    async def _fetch(self, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.get(doc_id)
        except StoreUnavailableError as e:
            raise self._unavailable(e) from e

    async def _require(self, doc_id: str) -> Dict[str, Any]:
        document = await self._fetch(doc_id)
        if document is None:
            raise self.not_found(doc_id)
        return document

    async def _insert(self, doc_id: str, document: Mapping[str, Any]) -> None:
        try:
            await self.collection.put(doc_id, document)
        except StoreUnavailableError as e:
            raise self._unavailable(e) from e

    async def _write(
        self,
        doc_id: str,
        fields: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Conditional update.

        A lost race means the entity left the state the caller observed, which
        callers see as InvalidStateException; nothing is written.
        """
        try:
            return await self.collection.update(doc_id, fields, expect=expect)
        except ConcurrentUpdateError as e:
            logger.info(f"Conditional update lost on {self.collection.name}/{doc_id}: {e}")
            current = e.actual if e.field_name == "status" else (expect or {}).get("status", "unknown")
            raise InvalidStateException(
                doc_id,
                str(current),
                message=f"{doc_id} was modified concurrently; reload and retry"
            ) from e
        except DocumentNotFoundError as e:
            raise self.not_found(doc_id) from e
        except StoreUnavailableError as e:
            raise self._unavailable(e) from e

    async def _find(self, query: Query) -> List[Dict[str, Any]]:
        try:
            return await self.collection.query(query)
        except StoreUnavailableError as e:
            raise self._unavailable(e) from e
