"""
Retention: keep the structured index at or below max_memories.

Victims are the lowest-priority records, least important first and then oldest
first. Under sequential stores the bound is exact; overlapping stores can overshoot
or undershoot it by the number of stores in flight.
"""

from typing import Callable, List, Optional, Sequence

from .dao import StructuredIndex
from ..util.logging import logger


def enforce_retention(structured: StructuredIndex,
                      max_memories: int,
                      on_evicted: Optional[Callable[[Sequence[str]], None]] = None) -> List[str]:
    """
    Evict the excess over max_memories.

    Args:
        structured: the canonical index to prune
        max_memories: configured maximum
        on_evicted: called with the evicted ids after the structured delete, used
            for the best-effort vector delete

    Returns:
        Ids selected for eviction (empty when under the limit)
    """
    total = structured.count()
    excess = total - max_memories
    if excess <= 0:
        return []

    victims = structured.eviction_candidates(excess)
    structured.delete_by_ids(victims)
    logger.log_retention(total, max_memories, victims)

    if on_evicted and victims:
        on_evicted(victims)
    return victims
