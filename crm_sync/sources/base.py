"""
Source and formatter contracts used by the export engine.

A DataSource pages through a primary collection and an optional secondary
collection (e.g. product variations) of one data type. A Formatter turns
source records into CRM upload records.
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence

from crm_sync.core.constants.export import PARENT_REFERENCE_FIELD


class DataSource(Protocol):

    async def count(self) -> int: ...

    async def count_sub(self) -> int: ...

    async def fetch_page(self, offset: int, limit: int) -> List[Any]: ...

    async def fetch_sub_page(self, offset: int, limit: int) -> List[Any]: ...

    async def get_item(self, item_id) -> Optional[Any]: ...


class Formatter(Protocol):

    def format_item(self, item: Any) -> Dict[str, Any]: ...

    def format_sub_item(self, sub_item: Any) -> Dict[str, Any]: ...


class PassthroughFormatter:
    """
    Uploads source records as-is.

    Secondary records get a back-reference to their parent:
    ``{"main_product_ids": [<parent id>]}``.
    """

    def __init__(
        self,
        parent_key: str = "parent_id",
        parent_field: str = PARENT_REFERENCE_FIELD,
        exclude: Sequence[str] = (),
    ) -> None:
        self._parent_key = parent_key
        self._parent_field = parent_field
        self._exclude = set(exclude)

    def format_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in item.items() if k not in self._exclude}

    def format_sub_item(self, sub_item: Dict[str, Any]) -> Dict[str, Any]:
        properties = self.format_item(sub_item)
        properties[self._parent_field] = [sub_item.get(self._parent_key)]
        return properties


class StaticSource:
    """List-backed DataSource, ordered as given."""

    def __init__(self, items: Sequence[Any] = (), sub_items: Sequence[Any] = (), id_key: str = "id") -> None:
        self.items = list(items)
        self.sub_items = list(sub_items)
        self._id_key = id_key

    async def count(self) -> int:
        return len(self.items)

    async def count_sub(self) -> int:
        return len(self.sub_items)

    async def fetch_page(self, offset: int, limit: int) -> List[Any]:
        return self.items[offset:offset + limit]

    async def fetch_sub_page(self, offset: int, limit: int) -> List[Any]:
        return self.sub_items[offset:offset + limit]

    async def get_item(self, item_id) -> Optional[Any]:
        for item in self.items + self.sub_items:
            if str(item.get(self._id_key)) == str(item_id):
                return item
        return None
