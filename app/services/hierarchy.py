"""Tree walks over flat ``{id: parent_id}`` indexes.

Categories and comment threads are stored as rows with a nullable parent id.
These helpers never chase object references: they iterate over an index,
stop at missing parents, and carry a visited set so corrupted (cyclic) data
cannot loop forever.
"""
from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import TypeVar

K = TypeVar("K", bound=Hashable)


def ancestors(parents: Mapping[K, K | None], node: K) -> list[K]:
    """Ancestor ids ordered root first, immediate parent last."""
    chain: list[K] = []
    seen = {node}
    current = parents.get(node)
    while current is not None and current not in seen:
        chain.append(current)
        seen.add(current)
        if current not in parents:
            # parent row missing from the index; treat it as the root
            break
        current = parents[current]
    chain.reverse()
    return chain


def depth(parents: Mapping[K, K | None], node: K) -> int:
    return len(ancestors(parents, node))


def children_index(
    parents: Mapping[K, K | None],
    sort_key: Callable[[K], object] | None = None,
) -> dict[K | None, list[K]]:
    """Group ids by parent; roots land under ``None``.

    ``sort_key`` orders every sibling list, the root list included, so it must
    accept root ids as well as child ids.
    """
    index: dict[K | None, list[K]] = defaultdict(list)
    for child, parent in parents.items():
        index[parent].append(child)
    if sort_key is not None:
        for siblings in index.values():
            siblings.sort(key=sort_key)
    return index


def descendants(children: Mapping[K | None, list[K]], node: K) -> list[K]:
    """All descendants of ``node`` in pre-order, excluding ``node`` itself."""
    order: list[K] = []
    seen = {node}
    stack = list(reversed(children.get(node, [])))
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        order.append(current)
        stack.extend(reversed(children.get(current, [])))
    return order


def subtree(children: Mapping[K | None, list[K]], node: K) -> list[K]:
    return [node, *descendants(children, node)]


def is_descendant_or_self(parents: Mapping[K, K | None], candidate: K, node: K) -> bool:
    """True when ``candidate`` is ``node`` or lies below it."""
    return candidate == node or node in ancestors(parents, candidate)


def subtree_total(children: Mapping[K | None, list[K]], counts: Mapping[K, int], node: K) -> int:
    return sum(counts.get(k, 0) for k in subtree(children, node))


def nearest_defined(
    parents: Mapping[K, K | None],
    values: Mapping[K, str | None],
    node: K,
    default: str,
) -> str:
    """First non-blank value walking from ``node`` up to the root."""
    for key in [node, *reversed(ancestors(parents, node))]:
        value = values.get(key)
        if value and value.strip():
            return value
    return default


def build_forest(
    roots: Iterable[K],
    children: Mapping[K | None, list[K]],
    make: Callable[[K, list], object],
) -> list:
    """Nested structure for each root, built bottom-up without recursion."""
    result = []
    for root in roots:
        order = subtree(children, root)
        built: dict[K, object] = {}
        for key in reversed(order):
            built[key] = make(key, [built[c] for c in children.get(key, []) if c in built])
        result.append(built[root])
    return result
