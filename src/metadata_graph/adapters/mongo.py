"""MongoDB adapter (pymongo async client)."""

from typing import Any, Optional

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from metadata_graph.adapters.base import DocumentAdapter
from metadata_graph.core import get_logger
from metadata_graph.models.source import MongoConnectionConfig, SourceKind

logger = get_logger(__name__)


class MongoAdapter(DocumentAdapter):
    """Read-only adapter for one MongoDB database."""

    kind = SourceKind.DOCUMENT

    def __init__(self, source_id: str, config: MongoConnectionConfig):
        super().__init__(source_id)
        self.config = config
        self.database = config.database
        self._client: Optional[AsyncMongoClient] = None

    def _get_database(self) -> AsyncDatabase:
        if self._client is None:
            options: dict[str, Any] = {
                "serverSelectionTimeoutMS": self.config.connect_timeout_ms,
                "connectTimeoutMS": self.config.connect_timeout_ms,
                "appname": "metadata-graph",
            }
            if self.config.replica_set:
                options["replicaset"] = self.config.replica_set
            logger.debug("creating_client", source_id=self.source_id, database=self.database)
            self._client = AsyncMongoClient(self.config.uri, **options)
        return self._client[self.database]

    async def health_check(self) -> bool:
        response = await self._get_database().command("ping")
        return bool(response.get("ok"))

    async def list_collections(self) -> list[str]:
        names = await self._get_database().list_collection_names()
        return sorted(name for name in names if not name.startswith("system."))

    async def _aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        cursor = await self._get_database()[collection].aggregate(
            pipeline,
            maxTimeMS=self.config.max_time_ms,
            allowDiskUse=False,
        )
        return await cursor.to_list(None)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.debug("client_closed", source_id=self.source_id)
