"""Entity graph store: named, typed nodes with property history and relations.

Entity names are unique across all types, so a "person" and a "project"
cannot share a name. Every property change appends one row to
``entity_versions``; versions run 1..N with no gaps. Deleting an entity
cascades to its versions and relations through foreign keys.
"""

import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional, Union

from chronicle.types import (
    ConflictError,
    Entity,
    EntityVersion,
    NotFoundError,
    Relation,
    RelationDirection,
    TimelineEvent,
    ValidationError,
)

from .engine import Engine
from .events import EventStore
from .patterns import contains_pattern
from .rows import (
    row_to_entity,
    row_to_entity_version,
    row_to_relation,
    to_json,
    to_json_or_none,
)
from .validation import optional_text, require_text, validate_limit, validate_properties

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 1000
DEFAULT_LIMIT = 100
ALL_TYPES = "all"

_RELATION_SELECT = """
    SELECT r.*, f.name AS from_entity_name, t.name AS to_entity_name
    FROM relations r
    JOIN entities f ON f.id = r.from_entity_id
    JOIN entities t ON t.id = r.to_entity_id
"""

_DIRECTION_FILTERS: Dict[RelationDirection, str] = {
    RelationDirection.FROM: "r.from_entity_id = :entity_id",
    RelationDirection.TO: "r.to_entity_id = :entity_id",
    RelationDirection.BOTH: "(r.from_entity_id = :entity_id OR r.to_entity_id = :entity_id)",
}


def _resolve(conn: sqlite3.Connection, name_or_id: str) -> Entity:
    """Look up by id or unique name; an id match wins over a name match."""
    if not isinstance(name_or_id, str) or not name_or_id:
        raise ValidationError("Entity name or id is required")
    row = conn.execute(
        """SELECT * FROM entities WHERE id = ? OR name = ?
           ORDER BY (id = ?) DESC LIMIT 1""",
        (name_or_id, name_or_id, name_or_id),
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Entity not found: {name_or_id}")
    return row_to_entity(row)


def _fetch_relation(conn: sqlite3.Connection, relation_id: str) -> Relation:
    row = conn.execute(f"{_RELATION_SELECT} WHERE r.id = ?", (relation_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Relation not found: {relation_id}")
    return row_to_relation(row)


def _side_for(relation: Relation, entity_id: str) -> RelationDirection:
    if relation.from_entity_id == entity_id and relation.to_entity_id == entity_id:
        return RelationDirection.BOTH
    if relation.from_entity_id == entity_id:
        return RelationDirection.FROM
    return RelationDirection.TO


class EntityGraphStore:
    """People, projects, artists and the typed edges between them."""

    def __init__(self, engine: Engine, events: Optional[EventStore] = None):
        self._engine = engine
        self._events = events or EventStore(engine)

    # === Entities ===

    def create(
        self,
        type: str,
        name: str,
        properties: Optional[Dict[str, Any]] = None,
        created_by: str = "system",
    ) -> Entity:
        """Create an entity and its version-1 snapshot atomically.

        Raises:
            ValidationError: Missing type or name, non-object properties.
            ConflictError: An entity of any type already has this name.
        """
        require_text(type, "Entity type")
        require_text(name, "Entity name")
        properties = validate_properties(properties)
        properties_json = to_json(properties, "properties")
        entity_id = str(uuid.uuid4())
        now = self._engine.now()

        with self._engine.transaction() as conn:
            try:
                conn.execute(
                    """INSERT INTO entities (id, type, name, properties, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (entity_id, type, name, properties_json, now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Entity already exists with name: {name}") from e
            conn.execute(
                """INSERT INTO entity_versions
                   (entity_id, version, properties, changed_by, changed_at, change_reason)
                   VALUES (?, 1, ?, ?, ?, ?)""",
                (entity_id, properties_json, created_by, now, "Initial creation"),
            )

        logger.debug(f"Created {type} entity {name!r} ({entity_id})")
        return Entity(
            id=entity_id,
            type=type,
            name=name,
            properties=properties,
            created_at=now,
            updated_at=now,
        )

    def get(self, name_or_id: str) -> Entity:
        """Get an entity by id or name.

        Raises:
            NotFoundError: If neither matches.
        """
        with self._engine.read() as conn:
            return _resolve(conn, name_or_id)

    def list_by_type(self, type: str, limit: Optional[int] = None) -> List[Entity]:
        """Entities of one type ordered by name. ``"all"`` lists every type."""
        require_text(type, "Entity type")
        if type == ALL_TYPES:
            return self.list_all(limit)
        limit = validate_limit(limit, DEFAULT_LIST_LIMIT)
        with self._engine.read() as conn:
            rows = conn.execute(
                "SELECT * FROM entities WHERE type = ? ORDER BY name ASC LIMIT ?",
                (type, limit),
            ).fetchall()
        return [row_to_entity(row) for row in rows]

    def list_all(self, limit: Optional[int] = None) -> List[Entity]:
        limit = validate_limit(limit, DEFAULT_LIST_LIMIT)
        with self._engine.read() as conn:
            rows = conn.execute(
                "SELECT * FROM entities ORDER BY type ASC, name ASC LIMIT ?", (limit,)
            ).fetchall()
        return [row_to_entity(row) for row in rows]

    def update(
        self,
        name_or_id: str,
        properties: Dict[str, Any],
        changed_by: str = "system",
        reason: Optional[str] = None,
    ) -> Entity:
        """Replace an entity's properties and append one version.

        ``properties`` is the full desired set, not a diff. The next version
        number is read inside the write transaction, so concurrent updaters
        serialize on the write lock and never reuse a number.

        Raises:
            NotFoundError: If the entity does not exist.
        """
        if properties is None:
            raise ValidationError("properties are required")
        properties = validate_properties(properties)
        properties_json = to_json(properties, "properties")
        require_text(changed_by, "changed_by")
        optional_text(reason, "reason")
        now = self._engine.now()

        with self._engine.transaction() as conn:
            entity = _resolve(conn, name_or_id)
            version = conn.execute(
                "SELECT COALESCE(MAX(version), 0) + 1 FROM entity_versions WHERE entity_id = ?",
                (entity.id,),
            ).fetchone()[0]
            conn.execute(
                "UPDATE entities SET properties = ?, updated_at = ? WHERE id = ?",
                (properties_json, now, entity.id),
            )
            conn.execute(
                """INSERT INTO entity_versions
                   (entity_id, version, properties, changed_by, changed_at, change_reason)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (entity.id, version, properties_json, changed_by, now, reason),
            )

        logger.debug(f"Updated entity {entity.name!r} to version {version}")
        entity.properties = properties
        entity.updated_at = now
        return entity

    def delete(self, name_or_id: str) -> None:
        """Delete an entity with its versions and relations.

        Raises:
            NotFoundError: If the entity does not exist.
        """
        with self._engine.transaction() as conn:
            entity = _resolve(conn, name_or_id)
            conn.execute("DELETE FROM entities WHERE id = ?", (entity.id,))
        logger.debug(f"Deleted entity {entity.name!r} ({entity.id})")

    def versions(self, name_or_id: str, limit: Optional[int] = None) -> List[EntityVersion]:
        """Property history, newest first."""
        limit = validate_limit(limit, DEFAULT_LIMIT)
        with self._engine.read() as conn:
            entity = _resolve(conn, name_or_id)
            rows = conn.execute(
                """SELECT * FROM entity_versions WHERE entity_id = ?
                   ORDER BY version DESC LIMIT ?""",
                (entity.id, limit),
            ).fetchall()
        return [row_to_entity_version(row) for row in rows]

    # === Relations ===

    def create_relation(
        self,
        from_entity: str,
        relation_type: str,
        to_entity: str,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Relation:
        """Create a directed edge; both ends resolve like :meth:`get`.

        Raises:
            ValidationError: Missing endpoint or relation type.
            NotFoundError: If either endpoint does not exist.
        """
        require_text(from_entity, "From entity")
        require_text(relation_type, "Relation type")
        require_text(to_entity, "To entity")
        properties_json = to_json_or_none(
            validate_properties(properties) if properties is not None else None, "properties"
        )
        relation_id = str(uuid.uuid4())
        now = self._engine.now()

        with self._engine.transaction() as conn:
            source = _resolve(conn, from_entity)
            target = _resolve(conn, to_entity)
            conn.execute(
                """INSERT INTO relations
                   (id, from_entity_id, relation_type, to_entity_id, properties, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (relation_id, source.id, relation_type, target.id, properties_json, now),
            )

        logger.debug(f"Related {source.name!r} -[{relation_type}]-> {target.name!r}")
        return Relation(
            id=relation_id,
            from_entity_id=source.id,
            relation_type=relation_type,
            to_entity_id=target.id,
            properties=properties,
            created_at=now,
            from_entity_name=source.name,
            to_entity_name=target.name,
        )

    def get_relation(self, relation_id: str) -> Relation:
        with self._engine.read() as conn:
            return _fetch_relation(conn, relation_id)

    def delete_relation(self, relation_id: str) -> None:
        """Delete one relation.

        Raises:
            NotFoundError: If no relation has this id.
        """
        with self._engine.transaction() as conn:
            cur = conn.execute("DELETE FROM relations WHERE id = ?", (relation_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Relation not found: {relation_id}")

    def relations(
        self,
        name_or_id: str,
        direction: Union[RelationDirection, str] = RelationDirection.BOTH,
        relation_type: Optional[str] = None,
    ) -> List[Relation]:
        """Edges touching an entity, newest first.

        Each result carries both endpoint names and ``side``: ``from`` when
        the entity is the source, ``to`` when it is the target, ``both`` for
        a self-relation.
        """
        try:
            direction = RelationDirection(direction)
        except ValueError as e:
            raise ValidationError(
                f"direction must be one of {[d.value for d in RelationDirection]}, "
                f"got {direction!r}"
            ) from e
        optional_text(relation_type, "relation_type")

        with self._engine.read() as conn:
            entity = _resolve(conn, name_or_id)
            sql = f"{_RELATION_SELECT} WHERE {_DIRECTION_FILTERS[direction]}"
            params: Dict[str, Any] = {"entity_id": entity.id}
            if relation_type:
                sql += " AND r.relation_type = :relation_type"
                params["relation_type"] = relation_type
            sql += " ORDER BY r.created_at DESC, r.rowid DESC"
            rows = conn.execute(sql, params).fetchall()

        result = []
        for row in rows:
            relation = row_to_relation(row)
            relation.side = _side_for(relation, entity.id)
            result.append(relation)
        return result

    # === Queries ===

    def search(
        self, term: str, type: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Entity]:
        """Entities whose name or serialized properties contain ``term`` literally.

        ``%``, ``_`` and ``\\`` in the term match themselves.
        """
        require_text(term, "Search term")
        optional_text(type, "type")
        limit = validate_limit(limit, DEFAULT_LIMIT)
        pattern = contains_pattern(term)

        sql = """SELECT * FROM entities
                 WHERE (name LIKE ? ESCAPE '\\' OR properties LIKE ? ESCAPE '\\')"""
        params: List[Any] = [pattern, pattern]
        if type and type != ALL_TYPES:
            sql += " AND type = ?"
            params.append(type)
        sql += " ORDER BY name ASC LIMIT ?"
        params.append(limit)

        with self._engine.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [row_to_entity(row) for row in rows]

    def entity_timeline(
        self, name_or_id: str, limit: Optional[int] = None
    ) -> List[TimelineEvent]:
        """Events whose metadata mentions the entity's name, newest first.

        The name is matched in its JSON-escaped form, as it appears inside
        stored metadata strings.
        """
        entity = self.get(name_or_id)
        return self._events.search_metadata(to_json(entity.name)[1:-1], limit)

    def type_stats(self) -> Dict[str, int]:
        """Entity count per type."""
        with self._engine.read() as conn:
            rows = conn.execute(
                "SELECT type, COUNT(*) AS count FROM entities GROUP BY type ORDER BY type"
            ).fetchall()
        return {row["type"]: row["count"] for row in rows}
