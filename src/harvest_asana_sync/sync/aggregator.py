"""Hour totals per task reference and the diff against the stored snapshot."""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from harvest_asana_sync.exceptions import EmptyInputError
from harvest_asana_sync.harvest import HarvestTimeEntry

logger = logging.getLogger(__name__)


def aggregate(entries: Iterable[HarvestTimeEntry]) -> dict[str, Decimal]:
    """Sum hours per external reference ID.

    Args:
        entries: Harvest time entries. Entries without a reference are ignored,
            missing hours count as zero.

    Returns:
        Map of reference ID to total hours.

    Raises:
        EmptyInputError: If no entries were given.
    """
    entries = list(entries)
    if not entries:
        raise EmptyInputError("No time entries to aggregate")

    totals: dict[str, Decimal] = {}
    for entry in entries:
        reference_id = entry.external_reference_id
        if reference_id is None:
            continue
        totals[reference_id] = totals.get(reference_id, Decimal(0)) + entry.hours_or_zero

    logger.debug(f"Aggregated {len(entries)} entries into {len(totals)} references")
    return totals


def reconcile(
    new_aggregate: Mapping[str, Decimal],
    all_hours: Mapping[str, Decimal],
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    """Merge a fresh aggregate into the stored totals.

    References missing from the new aggregate keep their stored value;
    nothing is ever removed.

    Args:
        new_aggregate: Totals computed in this run.
        all_hours: Totals stored by previous runs. Not modified.

    Returns:
        Tuple of (merged totals, totals that are new or changed).
    """
    merged = dict(all_hours)
    diff: dict[str, Decimal] = {}

    for reference_id, hours in new_aggregate.items():
        if reference_id not in merged or merged[reference_id] != hours:
            merged[reference_id] = hours
            diff[reference_id] = hours

    logger.info(
        f"Reconciled {len(new_aggregate)} totals against {len(all_hours)} stored: "
        f"{len(diff)} changed"
    )
    return merged, diff
