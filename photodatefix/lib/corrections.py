"""
Committing EXIF capture dates back to the asset store.

A batch of corrections is one store transaction. When the store rejects it,
TransactionError propagates and the caller's working set is left exactly as
it was, so the same selection can be retried.
"""
from typing import Iterable, Optional
import logging

from photodatefix.lib.scanner import FlaggedItem
from photodatefix.lib.store import AssetStore

logger = logging.getLogger(__name__)


def apply_corrections(
    store: AssetStore,
    items: Iterable[FlaggedItem],
    working_set: Optional[list[FlaggedItem]] = None
) -> list[FlaggedItem]:
    """
    Overwrite each item's recorded date with its extracted date.

    Args:
        store: AssetStore providing perform_changes()
        items: FlaggedItems to correct
        working_set: Current list of flagged items (defaults to empty)

    Returns:
        New working set with the corrected identifiers removed. The store is
        not re-read to confirm the write.

    Raises:
        TransactionError: if the store rejected the batch (working_set is
                          not modified)
    """
    items = list(items)
    working_set = list(working_set) if working_set is not None else []

    if not items:
        return working_set

    changes = [(item.identifier, item.extracted_date) for item in items]
    logger.info(f"Committing {len(changes)} date corrections")
    store.perform_changes(changes)

    fixed_ids = {item.identifier for item in items}
    return [item for item in working_set if item.identifier not in fixed_ids]
