"""In-process backend; mostly for tests and single-process demos."""

from typing import Any, Dict, Generic, List, Mapping, Optional, Type

from .base import Filter, ModelT, check_fields, from_document, matches, merge, order_records, to_document


class MemoryAdapter(Generic[ModelT]):
    def __init__(self, model: Type[ModelT]):
        self.model = model
        self._documents: Dict[str, Dict[str, Any]] = {}

    async def put(self, record: ModelT) -> None:
        self._documents[record.id] = to_document(record)

    async def get(self, id: str) -> Optional[ModelT]:
        document = self._documents.get(id)
        return from_document(self.model, document) if document is not None else None

    async def get_all(
        self,
        filter: Optional[Filter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        if filter:
            check_fields(self.model, filter)
        records = [from_document(self.model, d) for d in self._documents.values() if matches(d, filter)]
        return order_records(records, newest_first, limit)

    async def update(self, id: str, fields: Mapping[str, Any]) -> Optional[ModelT]:
        current = await self.get(id)
        if current is None:
            return None
        merged = merge(self.model, current, fields)
        await self.put(merged)
        return merged

    async def delete(self, id: str) -> bool:
        return self._documents.pop(id, None) is not None

    async def delete_many(self, filter: Filter) -> int:
        if filter:
            check_fields(self.model, filter)
        doomed = [id for id, d in self._documents.items() if matches(d, filter)]
        for id in doomed:
            del self._documents[id]
        return len(doomed)

    async def ping(self) -> bool:
        return True
