"""
Commerce platform data sources — one per data type.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, List, Optional

from crm_sync.clients.commerce_client import CommerceClient
from crm_sync.core.exceptions import UnknownDataTypeError

logger = logging.getLogger(__name__)

# Primary and secondary collection per data type
COLLECTIONS: Dict[str, Dict[str, Optional[str]]] = {
    "customer": {"primary": "customers", "secondary": None},
    "product": {"primary": "products", "secondary": "products/variations"},
    "sale": {"primary": "orders", "secondary": None},
}


class CollectionSource:
    """DataSource backed by commerce REST collections."""

    def __init__(self, client: CommerceClient, collection: str, sub_collection: Optional[str] = None) -> None:
        self._client = client
        self._collection = collection
        self._sub_collection = sub_collection

    async def count(self) -> int:
        return await self._client.count_collection(self._collection)

    async def count_sub(self) -> int:
        if not self._sub_collection:
            return 0
        return await self._client.count_collection(self._sub_collection)

    async def fetch_page(self, offset: int, limit: int) -> List[Any]:
        return await self._client.list_collection(self._collection, offset, limit)

    async def fetch_sub_page(self, offset: int, limit: int) -> List[Any]:
        if not self._sub_collection or limit <= 0:
            return []
        return await self._client.list_collection(self._sub_collection, offset, limit)

    async def get_item(self, item_id) -> Optional[Any]:
        return await self._client.get_item(self._collection, item_id)


def build_collection_source(client: CommerceClient, data_type: str) -> CollectionSource:
    collections = COLLECTIONS.get(data_type)
    if collections is None:
        raise UnknownDataTypeError(data_type)
    return CollectionSource(client, collections["primary"], collections["secondary"])
