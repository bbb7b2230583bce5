"""Display-order helpers.

``next_order`` only ever grows, so concurrent or failed creates leave gaps.
Those are repaired by the dense reindex that runs when a queue drains, never
here.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from gallery_sync.domain.models.item import Item


def sort_by_order(items: Iterable[Item]) -> list[Item]:
    """Stable sort by ``order_index``; ties keep their current relative order."""
    return sorted(items, key=lambda item: item.order_index)


def next_order(items: Iterable[Item]) -> int:
    return max((item.order_index for item in items), default=0) + 1


def clamp_order(items: Sequence[Item], target: int) -> int:
    """Clamp a requested position into the range the collection currently spans."""
    if not items:
        return target
    orders = [item.order_index for item in items]
    return max(min(orders), min(target, max(orders)))


def apply_reorder(items: Sequence[Item], item_id: str, new_index: int) -> list[Item]:
    """Move one item to ``new_index`` and shift the items it passes over.

    Moving up, items in ``[new_index, old_index)`` go down one slot (+1);
    moving down, items in ``(old_index, new_index]`` go up one slot (-1).
    The store applies the same rule, so the optimistic list matches what the
    next snapshot will contain.
    """
    target = next((item for item in items if item.id == item_id), None)
    if target is None:
        return sort_by_order(items)

    old_index = target.order_index
    updated: list[Item] = []
    for item in items:
        if item.id == item_id:
            updated.append(item.with_changes(order_index=new_index))
        elif old_index > new_index and new_index <= item.order_index < old_index:
            updated.append(item.with_changes(order_index=item.order_index + 1))
        elif old_index < new_index and old_index < item.order_index <= new_index:
            updated.append(item.with_changes(order_index=item.order_index - 1))
        else:
            updated.append(item)
    return sort_by_order(updated)


def swap_with_neighbour(
    items: Sequence[Item], item_id: str, offset: int
) -> tuple[list[Item], Item, Item] | None:
    """Swap order values of an item and the one ``offset`` slots away.

    Returns:
        ``(new_list, moved, neighbour)`` with the updated copies of the two
        items, or None when the item is unknown or the move would leave the
        list.
    """
    ordered = sort_by_order(items)
    position = next((i for i, item in enumerate(ordered) if item.id == item_id), None)
    if position is None:
        return None
    other = position + offset
    if offset == 0 or other < 0 or other >= len(ordered):
        return None

    current, neighbour = ordered[position], ordered[other]
    moved = current.with_changes(order_index=neighbour.order_index)
    swapped = neighbour.with_changes(order_index=current.order_index)
    ordered[position], ordered[other] = moved, swapped
    return sort_by_order(ordered), moved, swapped


def dense_assignments(items: Iterable[Item]) -> list[tuple[str, int]]:
    """``(id, 0..n-1)`` in display order for every item the store knows about."""
    persisted = [item for item in sort_by_order(items) if item.is_persisted]
    return [(str(item.id), index) for index, item in enumerate(persisted)]
