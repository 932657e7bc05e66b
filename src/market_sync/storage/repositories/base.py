"""
Shared plumbing for the record store repositories.
"""
from __future__ import annotations

import asyncio
import json
from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from market_sync.errors import StoreError
from market_sync.storage.database import Database

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    One table, one pydantic model.

    Subclasses define table name, model type and which columns hold JSON.
    Every query goes through _run so driver failures surface as StoreError.
    """

    table_name: str
    model_class: Type[T]
    json_columns: tuple[str, ...] = ()

    def __init__(self, db: Database) -> None:
        self.db = db

    def _record_to_model(self, record) -> Optional[T]:
        if record is None:
            return None
        data = dict(record)
        for column in self.json_columns:
            if isinstance(data.get(column), str):
                data[column] = json.loads(data[column])
        return self.model_class(**data)

    def _records_to_models(self, records) -> list[T]:
        return [self._record_to_model(r) for r in records]

    async def _run(self, method: str, query: str, *args):
        """Call a Database method, wrapping driver errors as StoreError."""
        try:
            return await getattr(self.db, method)(query, *args)
        except asyncio.CancelledError:
            raise
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"{self.table_name}: {e}") from e

    async def count(self) -> int:
        """Row count for the table."""
        return await self._run("fetchval", f"SELECT COUNT(*) FROM {self.table_name}")
