"""Persistence adapter contract and the document helpers shared by backends.

Every backend stores records of one model type keyed by ``id``. "Not found"
is reported as ``None``/``False``; failures raise ``PersistenceError`` (or
its ``TransientIOError`` subclass for retryable kinds).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Type, TypeVar

from pydantic import ValidationError
from pydantic_core import to_jsonable_python
from sqlmodel import SQLModel

from qr_feedback.domain.exceptions import ValidationViolation
from qr_feedback.domain.models import as_utc

ModelT = TypeVar("ModelT", bound=SQLModel)

Filter = Mapping[str, Any]


class PersistenceAdapter(Protocol[ModelT]):
    model: Type[ModelT]

    async def put(self, record: ModelT) -> None:
        """Upsert by ``record.id``; putting the same record twice is a no-op."""
        ...

    async def get(self, id: str) -> Optional[ModelT]:
        ...

    async def get_all(
        self,
        filter: Optional[Filter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        """Records whose fields equal every ``filter`` value.

        Unordered unless ``newest_first`` (``created_at`` descending).
        """
        ...

    async def update(self, id: str, fields: Mapping[str, Any]) -> Optional[ModelT]:
        """Merge ``fields`` into an existing record; never inserts."""
        ...

    async def delete(self, id: str) -> bool:
        ...

    async def delete_many(self, filter: Filter) -> int:
        ...

    async def ping(self) -> bool:
        ...


def to_document(record: SQLModel) -> Dict[str, Any]:
    return record.model_dump(mode="json")


def from_document(model: Type[ModelT], document: Mapping[str, Any]) -> ModelT:
    return model.model_validate(dict(document))


def check_fields(model: Type[SQLModel], fields: Iterable[str]) -> None:
    unknown = sorted(set(fields) - set(model.model_fields))
    if unknown:
        raise ValidationViolation(f"Unknown fields for {model.__name__}: {', '.join(unknown)}")


def merge(model: Type[ModelT], record: ModelT, fields: Mapping[str, Any]) -> ModelT:
    """Apply ``fields`` on top of ``record`` and re-validate the result."""
    check_fields(model, fields)
    if "id" in fields and fields["id"] != record.id:
        raise ValidationViolation("id cannot be changed")

    data = record.model_dump()
    data.update(fields)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationViolation(str(e)) from e


def matches(document: Mapping[str, Any], filter: Optional[Filter]) -> bool:
    """Field-equality match against a JSON-mode document."""
    if not filter:
        return True
    return all(document.get(key) == to_jsonable_python(value) for key, value in filter.items())


def order_records(records: List[ModelT], newest_first: bool, limit: Optional[int]) -> List[ModelT]:
    if newest_first:
        records = sorted(records, key=lambda r: as_utc(r.created_at), reverse=True)
    if limit is not None:
        records = records[:max(limit, 0)]
    return records
