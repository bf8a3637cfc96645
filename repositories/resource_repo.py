# ============================================================================
# POSTGRES OBJECT STORE
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Resource persistence
# PURPOSE: ObjectStore backed by a single JSONB resources table
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Postgres Object Store

One row per resource. spec/status/labels are JSONB, resource_version is the
optimistic locking column and seq gives creation order.

Watch is LISTEN/NOTIFY: every write sends a pg_notify in the same
transaction, so subscribers only see committed changes. A watch that
reconnects can miss events; the dispatcher's periodic resync covers that gap.
"""

import json
import os
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import ResourceKind
from core.models import Resource, ResourceKey, model_for
from repositories.base import (
    AlreadyExistsError,
    ConflictError,
    EventType,
    NotFoundError,
    ObjectStore,
    ResourceEvent,
    StoreError,
)
from repositories.database import (
    NOTIFY_CHANNEL,
    TABLE_RESOURCES,
    close_pool,
    ensure_schema,
    get_connection_string,
    init_pool,
)
from repositories.memory_store import MemoryObjectStore

logger = logging.getLogger(__name__)

_COLUMNS = sql.SQL(
    "kind, namespace, name, labels, spec, status, creation_timestamp, resource_version"
)


class PostgresObjectStore(ObjectStore):
    """ObjectStore on PostgreSQL (psycopg3 async)."""

    def __init__(self, pool: AsyncConnectionPool, conninfo: Optional[str] = None):
        super().__init__()
        self.pool = pool
        # Separate connection string for the LISTEN connection; falls back to
        # the pool's own conninfo.
        self.conninfo = conninfo or pool.conninfo

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_resource(row: Dict[str, Any]) -> Resource:
        """Convert a database row to a typed resource."""
        cls = model_for(ResourceKind(row["kind"]))
        return cls.model_validate({
            "metadata": {
                "name": row["name"],
                "namespace": row["namespace"],
                "labels": row["labels"] or {},
                "creation_timestamp": row["creation_timestamp"],
                "resource_version": row["resource_version"],
            },
            "spec": row["spec"] or {},
            "status": row["status"] or {},
        })

    @staticmethod
    def _dump(model: Any) -> Json:
        return Json(model.model_dump(mode="json"))

    async def _notify(self, conn, event: ResourceEvent) -> None:
        payload = json.dumps({
            "type": event.type.value,
            "kind": event.kind.value,
            "namespace": event.namespace,
            "name": event.name,
            "labels": event.labels,
        })
        await conn.execute("SELECT pg_notify(%s, %s)", (NOTIFY_CHANNEL, payload))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Resource:
        key = ResourceKey(ResourceKind(kind), namespace, name)
        with self._error_context("get", str(key)):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL(
                        "SELECT {} FROM {} WHERE kind = %s AND namespace = %s AND name = %s"
                    ).format(_COLUMNS, TABLE_RESOURCES),
                    (key.kind.value, namespace, name),
                )
                row = await result.fetchone()

            if row is None:
                raise NotFoundError(f"{key} not found", operation="get", entity_id=str(key))
            return self._row_to_resource(row)

    async def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> List[Resource]:
        kind = ResourceKind(kind)
        clauses = [sql.SQL("kind = %s")]
        params: List[Any] = [kind.value]
        if namespace is not None:
            clauses.append(sql.SQL("namespace = %s"))
            params.append(namespace)
        if labels:
            clauses.append(sql.SQL("labels @> %s"))
            params.append(Json(labels))

        query = sql.SQL("SELECT {} FROM {} WHERE {} ORDER BY seq").format(
            _COLUMNS, TABLE_RESOURCES, sql.SQL(" AND ").join(clauses)
        )

        with self._error_context("list", kind.value):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(query, params)
                rows = await result.fetchall()
            return [self._row_to_resource(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, resource: Resource) -> Resource:
        key = resource.key
        with self._error_context("create", str(key)):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    INSERT INTO {} (
                        kind, namespace, name, labels, spec, status,
                        creation_timestamp, resource_version
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, 1)
                    ON CONFLICT (kind, namespace, name) DO NOTHING
                    RETURNING {}
                    """).format(TABLE_RESOURCES, _COLUMNS),
                    (
                        key.kind.value,
                        key.namespace,
                        key.name,
                        Json(resource.metadata.labels),
                        self._dump(resource.spec),
                        self._dump(resource.status),
                        resource.metadata.creation_timestamp,
                    ),
                )
                row = await result.fetchone()
                if row is None:
                    raise AlreadyExistsError(
                        f"{key} already exists", operation="create", entity_id=str(key)
                    )
                created = self._row_to_resource(row)
                await self._notify(conn, ResourceEvent.for_resource(EventType.ADDED, created))

            self._log_operation(True, "create", str(key))
            return created

    async def update_status(self, resource: Resource) -> Resource:
        key = resource.key
        expected = resource.metadata.resource_version
        with self._error_context("update_status", str(key)):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    UPDATE {} SET
                        status = %s,
                        resource_version = resource_version + 1
                    WHERE kind = %s AND namespace = %s AND name = %s
                      AND resource_version = %s
                    RETURNING {}
                    """).format(TABLE_RESOURCES, _COLUMNS),
                    (
                        self._dump(resource.status),
                        key.kind.value,
                        key.namespace,
                        key.name,
                        expected,
                    ),
                )
                row = await result.fetchone()

                if row is None:
                    probe = await conn.execute(
                        sql.SQL(
                            "SELECT resource_version FROM {} "
                            "WHERE kind = %s AND namespace = %s AND name = %s"
                        ).format(TABLE_RESOURCES),
                        (key.kind.value, key.namespace, key.name),
                    )
                    current = await probe.fetchone()
                    if current is None:
                        raise NotFoundError(
                            f"{key} not found", operation="update_status", entity_id=str(key)
                        )
                    raise ConflictError(
                        f"{key} version conflict: have {expected}, "
                        f"stored {current['resource_version']}",
                        entity_id=str(key),
                        expected=expected,
                        actual=current["resource_version"],
                    )

                updated = self._row_to_resource(row)
                await self._notify(conn, ResourceEvent.for_resource(EventType.MODIFIED, updated))

            self._log_operation(True, "update_status", str(key), {"version": updated.metadata.resource_version})
            return updated

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        key = ResourceKey(ResourceKind(kind), namespace, name)
        with self._error_context("delete", str(key)):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL(
                        "DELETE FROM {} WHERE kind = %s AND namespace = %s AND name = %s "
                        "RETURNING labels"
                    ).format(TABLE_RESOURCES),
                    (key.kind.value, namespace, name),
                )
                row = await result.fetchone()
                if row is None:
                    raise NotFoundError(f"{key} not found", operation="delete", entity_id=str(key))
                await self._notify(conn, ResourceEvent(
                    type=EventType.DELETED,
                    kind=key.kind,
                    namespace=namespace,
                    name=name,
                    labels=row["labels"] or {},
                ))
            self._log_operation(True, "delete", str(key))

    # ------------------------------------------------------------------
    # Watch / health
    # ------------------------------------------------------------------

    async def watch(self) -> AsyncIterator[ResourceEvent]:
        conn = await AsyncConnection.connect(self.conninfo, autocommit=True)
        try:
            await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(NOTIFY_CHANNEL)))
            logger.info(f"Listening on {NOTIFY_CHANNEL}")
            async for notify in conn.notifies():
                try:
                    data = json.loads(notify.payload)
                    event = ResourceEvent(
                        type=EventType(data["type"]),
                        kind=ResourceKind(data["kind"]),
                        namespace=data["namespace"],
                        name=data["name"],
                        labels=data.get("labels") or {},
                    )
                except (ValueError, KeyError) as e:
                    logger.warning(f"Ignoring malformed notification: {e}")
                    continue
                yield event
        except Exception as e:
            raise StoreError(f"watch failed: {e}", operation="watch") from e
        finally:
            await conn.close()

    async def ping(self) -> bool:
        try:
            async with self.pool.connection() as conn:
                await conn.execute("SELECT 1")
            return True
        except Exception as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    async def close(self) -> None:
        await close_pool()


# ============================================================================
# FACTORY
# ============================================================================

async def create_store(backend: Optional[str] = None) -> ObjectStore:
    """
    Build the configured ObjectStore.

    Args:
        backend: "memory" or "postgres"; defaults to $STORE_BACKEND, else memory

    Returns:
        Ready-to-use store
    """
    backend = (backend or os.environ.get("STORE_BACKEND", "memory")).lower()

    if backend == "memory":
        logger.info("Using in-memory object store")
        return MemoryObjectStore()

    if backend == "postgres":
        conninfo = get_connection_string()
        pool = await init_pool(
            min_size=int(os.environ.get("DB_POOL_MIN", "2")),
            max_size=int(os.environ.get("DB_POOL_MAX", "10")),
            connection_string=conninfo,
        )
        await ensure_schema(pool)
        return PostgresObjectStore(pool, conninfo=conninfo)

    raise ValueError(f"Unknown STORE_BACKEND: {backend!r} (expected 'memory' or 'postgres')")


__all__ = ["PostgresObjectStore", "create_store"]
