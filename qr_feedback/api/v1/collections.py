"""Document facade - Mongo-style operations over the SQL tables.

POST /{collection}/{operation} with {query, update?, options?, document?}.
Queries are field-equality only; the only supported ``options.sort`` is
``{"created_at": -1}`` (newest first).
Remote clients (HttpDocumentAdapter) talk to the database through this.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from qr_feedback.infrastructure.persistence import PersistenceAdapter
from qr_feedback.infrastructure.persistence.base import from_document, to_document

from .deps import get_collections

logger = logging.getLogger(__name__)

router = APIRouter()

OPERATIONS = {"find", "findOne", "insertOne", "updateOne", "deleteOne", "deleteMany"}

NEWEST_FIRST = {"created_at": -1}


class OperationRequest(BaseModel):
    query: Dict[str, Any] = Field(default_factory=dict)
    update: Optional[Dict[str, Any]] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    document: Optional[Dict[str, Any]] = None


async def _find_first(adapter: PersistenceAdapter, query: Dict[str, Any]):
    if set(query) == {"id"}:
        return await adapter.get(query["id"])
    matches = await adapter.get_all(query or None, limit=1)
    return matches[0] if matches else None


@router.get("/ping")
async def ping(collections: Dict[str, PersistenceAdapter] = Depends(get_collections)):
    for name, adapter in collections.items():
        if not await adapter.ping():
            raise HTTPException(status_code=503, detail=f"Collection {name} unavailable")
    return {"status": "ok"}


@router.post("/{collection}/{operation}")
async def run_operation(
    collection: str,
    operation: str,
    req: Optional[OperationRequest] = None,
    collections: Dict[str, PersistenceAdapter] = Depends(get_collections),
):
    adapter = collections.get(collection)
    if adapter is None:
        raise HTTPException(status_code=404, detail=f"Unknown collection: {collection}")
    if operation not in OPERATIONS:
        raise HTTPException(status_code=400, detail=f"Unsupported operation: {operation}")

    req = req or OperationRequest()
    query = req.query

    if operation == "find":
        sort = req.options.get("sort")
        if sort and sort != NEWEST_FIRST:
            raise HTTPException(status_code=400, detail=f"Unsupported sort: {sort}")
        limit = req.options.get("limit")
        records = await adapter.get_all(
            query or None,
            newest_first=bool(sort),
            limit=int(limit) if limit is not None else None,
        )
        return [to_document(r) for r in records]

    if operation == "findOne":
        record = await _find_first(adapter, query)
        return to_document(record) if record is not None else None

    if operation == "insertOne":
        if not req.document:
            raise HTTPException(status_code=400, detail="insertOne needs a document")
        try:
            record = from_document(adapter.model, req.document)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if await adapter.get(record.id) is not None:
            raise HTTPException(status_code=409, detail=f"Duplicate id: {record.id}")
        await adapter.put(record)
        return {"insertedId": record.id}

    if operation == "updateOne":
        fields = (req.update or {}).get("$set")
        if not isinstance(fields, dict):
            raise HTTPException(status_code=400, detail="updateOne supports $set only")

        current = await _find_first(adapter, query)
        if current is None:
            if not req.options.get("upsert"):
                return {"matchedCount": 0, "modifiedCount": 0, "upsertedId": None}
            try:
                record = from_document(adapter.model, {**query, **fields})
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            await adapter.put(record)
            return {"matchedCount": 0, "modifiedCount": 0, "upsertedId": record.id}

        updated = await adapter.update(current.id, fields)
        if updated is None:
            return {"matchedCount": 0, "modifiedCount": 0, "upsertedId": None}
        modified = int(to_document(updated) != to_document(current))
        return {"matchedCount": 1, "modifiedCount": modified, "upsertedId": None}

    if operation == "deleteOne":
        record = await _find_first(adapter, query)
        deleted = record is not None and await adapter.delete(record.id)
        return {"deletedCount": int(deleted)}

    # deleteMany
    deleted = await adapter.delete_many(query)
    logger.info(f"deleteMany on {collection} removed {deleted} document(s)")
    return {"deletedCount": deleted}
