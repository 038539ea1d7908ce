"""Durable document store on SQLAlchemy's async engine (aiosqlite by default).

Each top-level document (``trips/{id}``, ``codes/{code}``) is one row holding
its subtree as JSON. Path writes are read-modify-write on that row, serialised
by an asyncio lock so one process never interleaves two writes to a document.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from triplab.store import tree
from triplab.store.base import DocumentStore
from triplab.store.models import Base, Document

logger = logging.getLogger(__name__)

_DOC_DEPTH = 2  # "trips/{id}" / "codes/{code}"


def _split_key(segments: list[str]) -> tuple[str, list[str]]:
    return "/".join(segments[:_DOC_DEPTH]), segments[_DOC_DEPTH:]


class SqlDocumentStore(DocumentStore):
    """Async repository for the document tree backed by SQLAlchemy."""

    def __init__(self, database_url: str) -> None:
        super().__init__()
        self.engine = create_async_engine(database_url, echo=False)
        self.async_session = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self._lock = asyncio.Lock()

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Document tables initialised.")

    async def close(self) -> None:
        await super().close()
        await self.engine.dispose()

    # ─── Reads ──────────────────────────────────────

    async def _read(self, segments: list[str]) -> Any:
        async with self.async_session() as session:
            if len(segments) >= _DOC_DEPTH:
                key, rest = _split_key(segments)
                row = await session.get(Document, key)
                if row is None:
                    return None
                return tree.get_at({"v": json.loads(row.body_json)}, ["v", *rest])

            query = select(Document)
            if segments:
                query = query.where(Document.collection == segments[0])
            result = await session.execute(query)
            root: dict | None = None
            for row in result.scalars().all():
                root = tree.set_at(root, row.key.split("/"), json.loads(row.body_json))
            return tree.get_at(root, segments)

    # ─── Writes ─────────────────────────────────────

    async def _write(self, segments: list[str], value: Any) -> None:
        if len(segments) < _DOC_DEPTH:
            await self._replace_collection(segments, value)
            return
        key, rest = _split_key(segments)
        await self._apply(key, [(rest, value)])

    async def _write_children(self, segments: list[str], children: dict[str, Any]) -> None:
        grouped: dict[str, list[tuple[list[str], Any]]] = defaultdict(list)
        for child, value in children.items():
            full = segments + [s for s in str(child).split("/") if s]
            if len(full) < _DOC_DEPTH:
                await self._replace_collection(full, value)
                continue
            key, rest = _split_key(full)
            grouped[key].append((rest, value))
        for key, writes in grouped.items():
            await self._apply(key, writes)

    async def _apply(self, key: str, writes: list[tuple[list[str], Any]]) -> None:
        async with self._lock, self.async_session() as session:
            row = await session.get(Document, key)
            body = json.loads(row.body_json) if row is not None else None
            for rest, value in writes:
                if rest:
                    body = tree.set_at(body if isinstance(body, dict) else None, rest, value)
                else:
                    body = tree.prune(value)
            if tree.is_empty(body):
                if row is not None:
                    await session.delete(row)
            elif row is None:
                session.add(
                    Document(key=key, collection=key.split("/")[0], body_json=json.dumps(body))
                )
            else:
                row.body_json = json.dumps(body)
                row.updated_at = datetime.now(timezone.utc)
            await session.commit()

    async def _replace_collection(self, segments: list[str], value: Any) -> None:
        value = tree.prune(value)
        async with self._lock, self.async_session() as session:
            query = delete(Document)
            if segments:
                query = query.where(Document.collection == segments[0])
            await session.execute(query)
            flattened: dict[str, Any] = {}
            if isinstance(value, dict):
                if segments:
                    for doc_id, body in value.items():
                        flattened[f"{segments[0]}/{doc_id}"] = body
                else:
                    for collection, docs in value.items():
                        if isinstance(docs, dict):
                            for doc_id, body in docs.items():
                                flattened[f"{collection}/{doc_id}"] = body
            for key, body in flattened.items():
                session.add(Document(key=key, collection=key.split("/")[0], body_json=json.dumps(body)))
            await session.commit()
        logger.warning("Replaced collection %r", "/".join(segments) or "<root>")
