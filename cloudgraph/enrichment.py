"""Bounded fan-out/join helpers for post-discovery enrichment.

Adapters enrich nodes with per-resource lookups (tags, cost detail) that
each cost a network call. run_batched() runs such lookups in groups of a
fixed size, joins each group before starting the next, and keeps going
when individual items fail.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .builder import owner_from_tags
from .constants import DEFAULT_BATCH_SIZE
from .graph import GraphNode

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _chunk(seq: Sequence[T], size: int):
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def run_batched(
    items: Iterable[T],
    worker: Callable[[T], None],
    batch_size: int = DEFAULT_BATCH_SIZE,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> List[Tuple[T, Exception]]:
    """Run ``worker`` over items in concurrent batches of ``batch_size``.

    A failing item does not abort its batch. Cancellation is checked
    before each batch starts; a batch already running is allowed to
    finish.

    Args:
        items: Work items, typically nodes
        worker: Called once per item; its return value is ignored
        batch_size: Maximum items in flight at once
        should_cancel: Returns True to stop before the next batch

    Returns:
        (item, exception) pairs for every item whose worker raised
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    items = list(items)
    failures: List[Tuple[T, Exception]] = []
    if not items:
        return failures

    with ThreadPoolExecutor(max_workers=min(batch_size, len(items))) as executor:
        for batch in _chunk(items, batch_size):
            if should_cancel is not None and should_cancel():
                logger.info("Enrichment cancelled before next batch")
                break
            futures = [(item, executor.submit(worker, item)) for item in batch]
            for item, future in futures:
                exc = future.exception()
                if exc is not None:
                    logger.warning(f"Enrichment failed for {item!r}: {type(exc).__name__}: {exc}")
                    failures.append((item, exc))
    return failures


def merge_tags(node: GraphNode, tags: Mapping[str, str], source: str = "tagging-api") -> int:
    """Merge looked-up tags into a node; tags already on the node win.

    Fills ``owner`` from the merged tags when the node has none.

    Returns:
        Number of tags added
    """
    added = 0
    for key, value in tags.items():
        if key not in node.tags:
            node.tags[key] = value
            added += 1

    if not node.owner:
        node.owner = owner_from_tags(node.tags)

    node.metadata["tag_source"] = source
    node.metadata["tag_count"] = len(node.tags)
    return added
