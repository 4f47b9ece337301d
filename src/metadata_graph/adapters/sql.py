"""SQLAlchemy-backed adapter shared by the networked SQL engines."""

import ssl
from abc import abstractmethod
from typing import Any, ClassVar, Optional, Union

from sqlalchemy import URL, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from metadata_graph.adapters.base import RelationalAdapter, Row
from metadata_graph.core import get_logger
from metadata_graph.models.source import SqlConnectionConfig

logger = get_logger(__name__)


def build_ssl_context(setting: Union[bool, dict[str, Any]]) -> Optional[ssl.SSLContext]:
    """Translate the ``ssl`` connection setting into an SSL context.

    ``True`` verifies against the system trust store; a dict may carry ``ca``
    (CA bundle path) and ``verify`` (default True).
    """
    if setting is False:
        return None
    if setting is True:
        return ssl.create_default_context()
    context = ssl.create_default_context(cafile=setting.get("ca"))
    if not setting.get("verify", True):
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class SqlAlchemyAdapter(RelationalAdapter):
    """Relational adapter holding one lazily created async engine (pool).

    Each statement checks out a pooled connection for its own duration, so
    concurrent probes never share a connection.
    """

    drivername: ClassVar[str]

    def __init__(self, source_id: str, config: SqlConnectionConfig):
        super().__init__(source_id)
        self.config = config
        self._engine: Optional[AsyncEngine] = None

    @property
    def url(self) -> URL:
        return URL.create(
            drivername=self.drivername,
            username=self.config.user,
            password=self.config.password,
            host=self.config.host,
            port=self.config.port,
            database=self.config.database,
        )

    @abstractmethod
    def connect_args(self) -> dict[str, Any]:
        """Driver-specific arguments for opening a connection."""
        pass

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            logger.debug(
                "creating_engine",
                source_id=self.source_id,
                dialect=self.dialect.name,
                host=self.config.host,
                database=self.config.database,
            )
            self._engine = create_async_engine(
                self.url,
                pool_pre_ping=True,
                pool_size=5,
                max_overflow=0,
                connect_args=self.connect_args(),
            )
        return self._engine

    async def _execute(self, statement: str, params: dict[str, Any]) -> list[Row]:
        engine = self._get_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text(statement), params)
            return [dict(row._mapping) for row in result]

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.debug("engine_disposed", source_id=self.source_id)
