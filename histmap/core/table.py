"""
Ordered multi-key table.

Records are indexed by an ordered tuple of key attributes through nested
dicts; the last level holds a list of records, so several records may share
the same key tuple (attribute history). Inside a terminal list a record with
the same ``identity`` as a new one is replaced in place; records without an
``identity`` attribute are always appended.

Queries with the wrong number of filters or key values return empty results
instead of raising.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

KeyFilter = Optional[Callable[[Any], bool]]


def _key_of(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record[name]
    return getattr(record, name)


def _same_record(stored: Any, record: Any) -> bool:
    ident = getattr(record, "identity", None)
    if ident is None:
        return stored is record
    return getattr(stored, "identity", None) == ident


class MultiKeyTable:
    def __init__(self, primary_keys: Sequence[str]):
        if not primary_keys:
            raise ValueError("MultiKeyTable needs at least one primary key")
        self._keys = tuple(primary_keys)
        self._root: Dict[Any, Any] = {}
        self._aggregated = False

    @property
    def primary_keys(self) -> tuple:
        return self._keys

    @property
    def arity(self) -> int:
        return len(self._keys)

    @property
    def aggregated(self) -> bool:
        return self._aggregated

    def _bucket(self, record: Any) -> List[Any]:
        node = self._root
        for name in self._keys[:-1]:
            node = node.setdefault(_key_of(record, name), {})
        return node.setdefault(_key_of(record, self._keys[-1]), [])

    def add_item(self, record: Any) -> None:
        if self._aggregated:
            raise TypeError("aggregated tables are read-only")
        bucket = self._bucket(record)
        if getattr(record, "identity", None) is not None:
            for i, stored in enumerate(bucket):
                if _same_record(stored, record):
                    bucket[i] = record
                    return
        bucket.append(record)

    def remove_item(self, record: Any) -> bool:
        """Remove records with the same identity; empty branches are pruned."""
        if self._aggregated:
            raise TypeError("aggregated tables are read-only")
        path = [_key_of(record, name) for name in self._keys]
        nodes = [self._root]
        for key in path[:-1]:
            child = nodes[-1].get(key)
            if child is None:
                return False
            nodes.append(child)
        bucket = nodes[-1].get(path[-1])
        if not bucket:
            return False
        kept = [stored for stored in bucket if not _same_record(stored, record)]
        if len(kept) == len(bucket):
            return False
        if kept:
            nodes[-1][path[-1]] = kept
            return True
        del nodes[-1][path[-1]]
        for depth in range(len(nodes) - 1, 0, -1):
            if nodes[depth]:
                break
            del nodes[depth - 1][path[depth - 1]]
        return True

    def _descend(self, values: Sequence[Any]) -> Optional[Dict[Any, Any]]:
        node = self._root
        for value in values:
            if value not in node:
                return None
            node = node[value]
        return node

    def get_item(self, values: Sequence[Any]) -> Any:
        """
        Exact lookup through all key levels.

        Returns the first record stored under the key tuple (or the aggregate
        value on a grouped table), None when absent.
        """
        if len(values) != len(self._keys):
            return None
        parent = self._descend(values[:-1])
        if parent is None or values[-1] not in parent:
            return None
        bucket = parent[values[-1]]
        if self._aggregated:
            return bucket
        return bucket[0] if bucket else None

    def get_keys(self, values: Sequence[Any]) -> List[Any]:
        if len(values) > len(self._keys):
            return []
        if len(values) == len(self._keys):
            parent = self._descend(values[:-1])
            if parent is None or values[-1] not in parent:
                return []
            return [values[-1]]
        node = self._descend(values)
        return list(node.keys()) if node is not None else []

    def _walk(self, node: Dict[Any, Any], filters: Sequence[KeyFilter], depth: int) -> Iterator[Any]:
        flt = filters[depth]
        last = depth == len(filters) - 1
        for key, child in node.items():
            if flt is not None and not flt(key):
                continue
            if last:
                yield key, child
            else:
                yield from self._walk(child, filters, depth + 1)

    def get_all_items(self, filters: Sequence[KeyFilter]) -> List[Any]:
        if len(filters) != len(self._keys):
            return []
        out: List[Any] = []
        for _key, bucket in self._walk(self._root, filters, 0):
            if self._aggregated:
                out.append(bucket)
            else:
                out.extend(bucket)
        return out

    def get_all_keys(self, filters: Sequence[KeyFilter]) -> List[Any]:
        """Distinct keys present at depth ``len(filters)`` of the accepted branches."""
        if not 1 <= len(filters) <= len(self._keys):
            return []
        return list(dict.fromkeys(key for key, _child in self._walk(self._root, filters, 0)))

    def get_all_items_group_by(
        self,
        filters: Sequence[KeyFilter],
        group_by: Sequence[str],
        aggregate: Optional[Callable[[List[Any]], Any]] = None,
    ) -> "MultiKeyTable":
        """
        Re-index the filtered records by ``group_by``.

        When ``aggregate`` is given every terminal list is replaced by
        ``aggregate(records)`` and the returned table is read-only.
        """
        grouped = MultiKeyTable(group_by)
        for record in self.get_all_items(filters):
            grouped._bucket(record).append(record)
        if aggregate is not None:
            grouped._aggregate(grouped._root, 1, aggregate)
            grouped._aggregated = True
        return grouped

    def _aggregate(self, node: Dict[Any, Any], depth: int, aggregate: Callable[[List[Any]], Any]) -> None:
        for key, child in node.items():
            if depth == len(self._keys):
                node[key] = aggregate(child)
            else:
                self._aggregate(child, depth + 1, aggregate)

    def clear(self) -> None:
        self._root = {}
        self._aggregated = False

    def __iter__(self) -> Iterator[Any]:
        return iter(self.get_all_items([None] * len(self._keys)))

    def __len__(self) -> int:
        if self._aggregated:
            return len(self.get_all_items([None] * len(self._keys)))
        return sum(len(bucket) for _key, bucket in self._walk(self._root, [None] * len(self._keys), 0))

    def __repr__(self) -> str:
        return f"MultiKeyTable(keys={self._keys!r}, size={len(self)})"
