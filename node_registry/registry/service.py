import logging
from contextlib import contextmanager
from typing import List, Optional

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import delete, inspect, insert, select, text, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..database.session import create_engine, create_session_factory, create_tables, ensure_database, ping
from ..errors import InvalidRequest, NotFound, StoreError
from ..models.node import Node as NodeModel
from ..schemas.node import REQUIRED_FIELDS, Node, check_node
from ..service_manager.base_service import BaseService

logger = logging.getLogger("node-registry.registry")

# Attempts for the savepoint-based upsert used on dialects without a native one
UPSERT_ATTEMPTS = 3

_mapper = inspect(NodeModel)
_COLUMNS = {attr: _mapper.columns[attr] for attr, _ in REQUIRED_FIELDS}
_KEY = _COLUMNS["node_id"]


def _row_values(node: Node) -> dict:
    return {column.key: getattr(node, attr) for attr, column in _COLUMNS.items()}


def _to_schema(row: NodeModel) -> Node:
    return Node(**{attr: getattr(row, attr) for attr in _COLUMNS})


def build_upsert(dialect_name: str, node: Node):
    """
    Native single-statement upsert for the given dialect, or None when the
    dialect has no supported equivalent. Every non-key column is replaced.
    """
    table = NodeModel.__table__
    values = _row_values(node)

    if dialect_name == "mysql":
        stmt = mysql.insert(table).values(values)
        return stmt.on_duplicate_key_update(
            {key: stmt.inserted[key] for key in values if key != _KEY.key}
        )

    if dialect_name in ("postgresql", "sqlite"):
        dialect_insert = postgresql.insert if dialect_name == "postgresql" else sqlite.insert
        stmt = dialect_insert(table).values(values)
        return stmt.on_conflict_do_update(
            index_elements=[_KEY],
            set_={key: stmt.excluded[key] for key in values if key != _KEY.key},
        )

    return None


class NodeRegistry:
    """
    Upsert / Get / List / Delete over the nodes table.

    Each operation runs as one atomic statement on its own pooled session, so
    concurrent requests only share the connection pool. Consistency between
    simultaneous writers is left to the store's upsert and delete primitives.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @contextmanager
    def _store_errors(self, operation: str, node_id: Optional[str] = None):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Store error during {operation} (node={node_id}): {e}")
            raise StoreError(f"Database error: {e}") from e
        except SchemaValidationError as e:
            # Row could not be decoded into a Node, e.g. NULL columns
            logger.error(f"Undecodable row during {operation} (node={node_id}): {e}")
            raise StoreError(f"Database error: invalid stored node: {e}") from e

    async def upsert(self, node: Node) -> None:
        """Insert the node or replace every non-key field of the existing row."""
        node = check_node(node)

        with self._store_errors("upsert", node.node_id):
            async with self._session_factory() as session:
                stmt = build_upsert(session.bind.dialect.name, node)
                if stmt is not None:
                    await session.execute(stmt)
                else:
                    await self._upsert_portable(session, node)
                await session.commit()

        logger.info(f"Node {node.node_id} saved successfully.")

    async def _upsert_portable(self, session: AsyncSession, node: Node) -> None:
        # Insert first, fall back to update on conflict; never read-then-write.
        values = _row_values(node)
        changes = {key: value for key, value in values.items() if key != _KEY.key}
        for attempt in range(1, UPSERT_ATTEMPTS + 1):
            try:
                async with session.begin_nested():
                    await session.execute(insert(NodeModel.__table__).values(values))
                return
            except IntegrityError:
                logger.debug(f"Node {node.node_id} exists, updating (attempt {attempt})")

            result = await session.execute(
                update(NodeModel.__table__).where(_KEY == node.node_id).values(changes)
            )
            if result.rowcount == 1:
                return
            # Row was deleted between the failed insert and the update

        raise StoreError(f"Database error: upsert of node {node.node_id} kept conflicting")

    async def get(self, node_id: str) -> Node:
        if not node_id:
            raise InvalidRequest("Missing id parameter")

        with self._store_errors("get", node_id):
            async with self._session_factory() as session:
                row = await session.get(NodeModel, node_id)
                if row is None:
                    raise NotFound("Node not found")
                return _to_schema(row)

    async def list(self) -> List[Node]:
        """All stored nodes, in no particular order."""
        with self._store_errors("list"):
            async with self._session_factory() as session:
                result = await session.execute(select(NodeModel))
                return [_to_schema(row) for row in result.scalars().all()]

    async def delete(self, node_id: str) -> None:
        if not node_id:
            raise InvalidRequest("Missing id parameter")

        with self._store_errors("delete", node_id):
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(NodeModel)
                    .where(NodeModel.node_id == node_id)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

        if result.rowcount == 0:
            raise NotFound("Node not found for deletion")
        logger.info(f"Node {node_id} deleted.")

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Store ping failed: {e}")
            return False


class RegistryStoreService(BaseService):
    """
    Registry Store Service.
    Responsibility: own the engine and connection pool, provision the database
    and nodes table at startup, and hand out the NodeRegistry bound to them.
    Any failure in start() is fatal for the process.
    """

    def __init__(self, settings: Settings):
        super().__init__("RegistryStoreService")
        self._settings = settings
        self.engine = create_engine(settings)
        self.registry = NodeRegistry(create_session_factory(self.engine))

    async def start(self):
        await ensure_database(self._settings)
        await ping(self.engine)
        logger.info("Connected to registry store.")
        await create_tables(self.engine)
        logger.info("Nodes table ready.")

    async def stop(self):
        await self.engine.dispose()
        logger.info("RegistryStoreService stopped.")
