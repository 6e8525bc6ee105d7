"""
Document store client for the /api/db facade
Each call is POST {base_url}/{collection}/{operation} with a JSON body
"""
import logging
from typing import Any, Dict, Generic, List, Mapping, Optional, Type

import httpx
from pydantic_core import to_jsonable_python

from qr_feedback.domain.exceptions import PersistenceError, TransientIOError
from qr_feedback.infrastructure.retry import DEFAULT_POLICY, RetryPolicy, with_retry, with_timeout

from .base import Filter, ModelT, check_fields, from_document, merge, to_document

logger = logging.getLogger(__name__)


class HttpDocumentAdapter(Generic[ModelT]):
    """Adapter for one collection behind the document facade.

    Pass ``client`` to share a connection pool (or to inject a mock
    transport); otherwise a client is opened per request.
    """

    def __init__(
        self,
        base_url: str,
        collection: str,
        model: Type[ModelT],
        client: Optional[httpx.AsyncClient] = None,
        policy: RetryPolicy = DEFAULT_POLICY,
    ):
        self.base_url = base_url.rstrip("/")
        self.collection = collection
        self.model = model
        self.policy = policy
        self._client = client

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"

        try:
            if self._client is not None:
                response = await self._client.request(method, url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.policy.timeout) as client:
                    response = await client.request(method, url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500 or status == 429:
                raise TransientIOError(f"{method} {path} returned {status}") from e
            raise PersistenceError(f"{method} {path} rejected ({status}): {e.response.text}") from e
        except httpx.HTTPError as e:
            raise TransientIOError(f"{method} {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError(f"{method} {path} returned invalid JSON") from e

    async def _call(self, operation: str, **body: Any) -> Any:
        payload = to_jsonable_python({k: v for k, v in body.items() if v is not None})
        name = f"{self.collection}.{operation}"
        return await with_retry(
            lambda: self._request("POST", f"/{self.collection}/{operation}", payload),
            policy=self.policy,
            name=name,
        )

    async def put(self, record: ModelT) -> None:
        document = to_document(record)
        await self._call(
            "updateOne",
            query={"id": record.id},
            update={"$set": document},
            options={"upsert": True},
        )

    async def get(self, id: str) -> Optional[ModelT]:
        document = await self._call("findOne", query={"id": id})
        return from_document(self.model, document) if document else None

    async def get_all(
        self,
        filter: Optional[Filter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        if filter:
            check_fields(self.model, filter)
        options: Dict[str, Any] = {}
        if newest_first:
            options["sort"] = {"created_at": -1}
        if limit is not None:
            options["limit"] = limit
        documents = await self._call("find", query=dict(filter or {}), options=options or None)
        return [from_document(self.model, d) for d in documents or []]

    async def update(self, id: str, fields: Mapping[str, Any]) -> Optional[ModelT]:
        current = await self.get(id)
        if current is None:
            return None
        merged = merge(self.model, current, fields)
        result = await self._call(
            "updateOne",
            query={"id": id},
            update={"$set": to_document(merged)},
        )
        if not result or not result.get("matchedCount", result.get("modifiedCount", 0)):
            # Deleted between the read and the write
            return None
        return merged

    async def delete(self, id: str) -> bool:
        result = await self._call("deleteOne", query={"id": id})
        return bool(result and result.get("deletedCount"))

    async def delete_many(self, filter: Filter) -> int:
        if filter:
            check_fields(self.model, filter)
        result = await self._call("deleteMany", query=dict(filter))
        return int((result or {}).get("deletedCount", 0))

    async def ping(self) -> bool:
        """Single attempt; feeds the online/offline signal."""
        try:
            result = await with_timeout(self._request("GET", "/ping"), self.policy.timeout, "ping")
        except PersistenceError as e:
            logger.info(f"Document store unreachable: {e}")
            return False
        return bool(result) and result.get("status") == "ok"

