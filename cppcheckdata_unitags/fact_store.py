"""
cppcheckdata_unitags.fact_store
===============================

Monotonic, widen-on-conflict fact storage.

``FactStore``
    The generic contract: ``insert(key, value)`` and ``lookup(key)``.  A key
    that has ever received two *distinct* values reads as
    ``Lookup.unknown()`` forever after; a later consistent insert does not
    bring it back.  Inserting the same value again is a no-op, so writes are
    idempotent and order-independent.

``FactRepository``
    Typed access to the fact kinds of :mod:`cppcheckdata_unitags.facts`.
    Every record is written twice: once into the widening index (which is
    what lookups consult) and once, verbatim, into a schema table that
    other tools may read::

        type_info      (file, type, key, value)
        return_implies (file, function, static, type, parameter, key, value)
        caller_info    (file, function, static, type, parameter, key, value)
        mtag_map       (tag, offset, container)
        mtag_data      (tag, offset, value)
        mtag_alias     (orig_mtag, alias_mtag)

Storage is an embedded SQLite database (``":memory:"`` by default).
Writes happen only at function returns and call sites and are serialized
by the single-threaded host, so a single connection is enough.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import (
    Any,
    Dict,
    Hashable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from cppcheckdata_unitags.errors import FactStoreError
from cppcheckdata_unitags.facts import (
    LOCATION_KINDS,
    CallerInfo,
    FactKind,
    Lookup,
    MemberUnit,
    ReturnImplication,
    TagAlias,
    TagAliasMap,
    TagData,
    format_tag_offset,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS fact_index (
    fact_key TEXT PRIMARY KEY,
    value   TEXT NOT NULL,
    widened INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS type_info (
    file  INTEGER NOT NULL,
    type  INTEGER NOT NULL,
    "key" TEXT NOT NULL,
    value TEXT NOT NULL,
    UNIQUE (file, type, "key", value)
);
CREATE TABLE IF NOT EXISTS return_implies (
    file      INTEGER NOT NULL,
    function  TEXT NOT NULL,
    static    INTEGER NOT NULL,
    type      INTEGER NOT NULL,
    parameter INTEGER NOT NULL,
    "key"     TEXT NOT NULL,
    value     TEXT NOT NULL,
    UNIQUE (file, function, static, type, parameter, "key", value)
);
CREATE TABLE IF NOT EXISTS caller_info (
    file      INTEGER NOT NULL,
    function  TEXT NOT NULL,
    static    INTEGER NOT NULL,
    type      INTEGER NOT NULL,
    parameter INTEGER NOT NULL,
    "key"     TEXT NOT NULL,
    value     TEXT NOT NULL,
    UNIQUE (file, function, static, type, parameter, "key", value)
);
CREATE TABLE IF NOT EXISTS mtag_map (
    tag       INTEGER NOT NULL,
    "offset"  INTEGER NOT NULL,
    container INTEGER NOT NULL,
    UNIQUE (tag, "offset", container)
);
CREATE TABLE IF NOT EXISTS mtag_data (
    tag    INTEGER NOT NULL,
    "offset" INTEGER NOT NULL,
    value  TEXT NOT NULL,
    UNIQUE (tag, "offset", value)
);
CREATE TABLE IF NOT EXISTS mtag_alias (
    orig_mtag  INTEGER NOT NULL,
    alias_mtag INTEGER NOT NULL,
    UNIQUE (orig_mtag, alias_mtag)
);
"""

# Schema tables the CLI and ``iter_facts`` may list.
FACT_TABLES: Dict[str, Tuple[str, ...]] = {
    "type_info": ("file", "type", "key", "value"),
    "return_implies": ("file", "function", "static", "type", "parameter", "key", "value"),
    "caller_info": ("file", "function", "static", "type", "parameter", "key", "value"),
    "mtag_map": ("tag", "offset", "container"),
    "mtag_data": ("tag", "offset", "value"),
    "mtag_alias": ("orig_mtag", "alias_mtag"),
}

Key = Tuple[Hashable, ...]


def _encode_key(key: Key) -> str:
    return json.dumps(list(key), separators=(",", ":"))


def _quoted(columns: Sequence[str]) -> str:
    return ", ".join(f'"{c}"' for c in columns)


# ═══════════════════════════════════════════════════════════════════════════
#  FACT STORE
# ═══════════════════════════════════════════════════════════════════════════

class FactStore:
    """Widen-on-conflict key/value store backed by SQLite."""

    def __init__(self, path: Union[str, Path] = ":memory:") -> None:
        self.path = str(path)
        self._cache: Dict[str, Lookup] = {}
        try:
            self._conn = sqlite3.connect(self.path)
            version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            if version not in (0, SCHEMA_VERSION):
                self._conn.close()
                raise FactStoreError(
                    f"schema version {version}, expected {SCHEMA_VERSION}",
                    path=self.path,
                )
            with self._conn:
                self._conn.executescript(_SCHEMA)
                self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        except sqlite3.Error as exc:
            raise FactStoreError(str(exc), path=self.path, cause=exc) from exc
        logger.debug("fact store opened at %s", self.path)

    # ── contract ─────────────────────────────────────────────────────

    def insert(self, key: Key, value: str) -> Lookup:
        """Record ``value`` under ``key`` and return the resulting lookup."""
        text = _encode_key(key)
        with self._conn:
            row = self._conn.execute(
                "SELECT value, widened FROM fact_index WHERE fact_key = ?", (text,)
            ).fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO fact_index (fact_key, value, widened) VALUES (?, ?, 0)",
                    (text, value),
                )
                result = Lookup.found(value)
            elif row[1]:
                result = Lookup.unknown()
            elif row[0] != value:
                self._conn.execute(
                    "UPDATE fact_index SET widened = 1 WHERE fact_key = ?", (text,)
                )
                logger.info("widening %s: %r vs %r", text, row[0], value)
                result = Lookup.unknown()
            else:
                result = Lookup.found(value)
        self._cache[text] = result
        return result

    def lookup(self, key: Key) -> Lookup:
        text = _encode_key(key)
        cached = self._cache.get(text)
        if cached is not None:
            return cached
        row = self._conn.execute(
            "SELECT value, widened FROM fact_index WHERE fact_key = ?", (text,)
        ).fetchone()
        if row is None:
            result = Lookup.missing()
        elif row[1]:
            result = Lookup.unknown()
        else:
            result = Lookup.found(row[0])
        self._cache[text] = result
        return result

    # ── raw access for the repository ────────────────────────────────

    def write_row(self, table: str, values: Sequence[Any]) -> None:
        columns = FACT_TABLES[table]
        marks = ", ".join("?" for _ in columns)
        with self._conn:
            self._conn.execute(
                f"INSERT OR IGNORE INTO {table} ({_quoted(columns)}) "
                f"VALUES ({marks})",
                tuple(values),
            )

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple[Any, ...]]:
        return self._conn.execute(sql, tuple(params)).fetchall()

    def close(self) -> None:
        self._cache.clear()
        self._conn.close()

    def __enter__(self) -> "FactStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"FactStore({self.path!r})"


# ═══════════════════════════════════════════════════════════════════════════
#  TYPED REPOSITORY
# ═══════════════════════════════════════════════════════════════════════════

def _scope(file_id: int, is_static: bool) -> int:
    """Static functions are only visible inside their own file."""
    return file_id if is_static else 0


def _summary_key(
    table: str,
    scope: int,
    function: str,
    kind: FactKind,
    param: int,
    key: str,
    value: Optional[str],
) -> Tuple[Any, ...]:
    """Index key of a summary fact; location kinds add the value itself."""
    base = (table, scope, function, int(kind), param, key)
    if kind in LOCATION_KINDS:
        return base + (value,)
    return base


class FactRepository:
    """Typed facade over :class:`FactStore` for every fact kind."""

    def __init__(self, store: Optional[FactStore] = None) -> None:
        self.store = store if store is not None else FactStore()

    @classmethod
    def open(cls, path: Union[str, Path] = ":memory:") -> "FactRepository":
        return cls(FactStore(path))

    def close(self) -> None:
        self.store.close()

    # ── member units ─────────────────────────────────────────────────

    def record_member_unit(self, fact: MemberUnit) -> Lookup:
        self.store.write_row(
            "type_info", (fact.file_id, int(FactKind.UNITS), fact.member, fact.unit)
        )
        return self.store.insert(("type_info", int(FactKind.UNITS), fact.member), fact.unit)

    def member_unit(self, member: str) -> Lookup:
        return self.store.lookup(("type_info", int(FactKind.UNITS), member))

    # ── function summaries ───────────────────────────────────────────

    def record_return_implication(self, fact: ReturnImplication) -> Lookup:
        return self._record_summary("return_implies", fact)

    def return_implications(
        self, function: str, is_static: bool, file_id: int, kind: FactKind
    ) -> List[Tuple[int, str, Lookup]]:
        return self._summaries("return_implies", function, is_static, file_id, kind)

    def record_caller_info(self, fact: CallerInfo) -> Lookup:
        return self._record_summary("caller_info", fact)

    def caller_info(
        self, function: str, is_static: bool, file_id: int, kind: FactKind
    ) -> List[Tuple[int, str, Lookup]]:
        return self._summaries("caller_info", function, is_static, file_id, kind)

    def _record_summary(self, table: str, fact: Any) -> Lookup:
        self.store.write_row(table, (
            fact.file_id, fact.function, int(fact.is_static), int(fact.kind),
            fact.param, fact.key, fact.value,
        ))
        key = _summary_key(
            table, _scope(fact.file_id, fact.is_static), fact.function,
            fact.kind, fact.param, fact.key, fact.value,
        )
        return self.store.insert(key, fact.value)

    def _summaries(
        self,
        table: str,
        function: str,
        is_static: bool,
        file_id: int,
        kind: FactKind,
    ) -> List[Tuple[int, str, Lookup]]:
        columns = 'parameter, "key"'
        if kind in LOCATION_KINDS:
            columns += ", value"
        sql = (
            f"SELECT DISTINCT {columns} FROM {table} "
            "WHERE function = ? AND static = ? AND type = ?"
        )
        params: List[Any] = [function, int(is_static), int(kind)]
        if is_static:
            sql += " AND file = ?"
            params.append(file_id)
        sql += f" ORDER BY {columns}"
        out = []
        for param, key, *value in self.store.query(sql, params):
            lookup = self.store.lookup(_summary_key(
                table, _scope(file_id, is_static), function,
                kind, param, key, value[0] if value else None,
            ))
            out.append((param, key, lookup))
        return out

    # ── tags ─────────────────────────────────────────────────────────

    def record_alias_map(self, fact: TagAliasMap) -> Lookup:
        self.store.write_row(
            "mtag_map", (fact.original_tag, fact.offset, fact.alias_tag)
        )
        return self.store.insert(
            ("mtag_map", fact.alias_tag),
            format_tag_offset(fact.original_tag, fact.offset),
        )

    def alias_maps(self, original_tag: int) -> List[TagAliasMap]:
        rows = self.store.query(
            'SELECT tag, "offset", container FROM mtag_map WHERE tag = ? '
            'ORDER BY "offset", container',
            (original_tag,),
        )
        return [TagAliasMap(*row) for row in rows]

    def alias_container(self, alias_tag: int) -> Lookup:
        """``"<tag>+<offset>"`` of the object holding ``alias_tag``."""
        return self.store.lookup(("mtag_map", alias_tag))

    def record_tag_data(self, fact: TagData) -> Lookup:
        self.store.write_row("mtag_data", (fact.tag, fact.offset, fact.value))
        return self.store.insert(("mtag_data", fact.tag, fact.offset), fact.value)

    def tag_data(self, tag: int, offset: int) -> Lookup:
        return self.store.lookup(("mtag_data", tag, offset))

    def record_alias(self, fact: TagAlias) -> Lookup:
        self.store.write_row("mtag_alias", (fact.original_tag, fact.alias_tag))
        return self.store.insert(("mtag_alias", fact.alias_tag), str(fact.original_tag))

    def alias_origin(self, alias_tag: int) -> Lookup:
        return self.store.lookup(("mtag_alias", alias_tag))

    # ── inspection ───────────────────────────────────────────────────

    def iter_facts(self, table: str) -> Iterator[Dict[str, Any]]:
        """Rows of one schema table as dicts, in insertion order."""
        if table not in FACT_TABLES:
            raise KeyError(table)
        columns = FACT_TABLES[table]
        rows = self.store.query(
            f"SELECT {_quoted(columns)} FROM {table} ORDER BY rowid"
        )
        for row in rows:
            yield dict(zip(columns, row))

    def count(self, table: str) -> int:
        return sum(1 for _ in self.iter_facts(table))
