"""Drift detection: read tracked resources back from the provider."""

import asyncio
from typing import Dict, List, Optional, Tuple
from ..execute.cancellation import CancellationToken
from ..execute.retry import RetryPolicy, call_with_retry
from ..providers.base import Provider
from ..state.models import StateRecord
from ..utils.errors import ResourceNotFound
from ..utils.logging import get_logger
from .models import DriftEntry

logger = get_logger("plan.refresh")


async def refresh_state(
    records: Dict[str, StateRecord],
    provider: Provider,
    policy: RetryPolicy,
    concurrency: int = 10,
    token: Optional[CancellationToken] = None,
) -> Tuple[Dict[str, StateRecord], List[DriftEntry]]:
    """
    Read every tracked resource and fold what changed into a working copy.

    Records whose object is gone are dropped (the planner then creates them
    again); attributes changed out of band replace the recorded values so the
    planner sees the difference.

    Returns:
        (refreshed records, drift entries sorted by address)

    Raises:
        ActionFailed: If a read fails for a reason other than the object being gone
    """
    semaphore = asyncio.Semaphore(concurrency)
    refreshed: Dict[str, StateRecord] = {}
    drift: List[DriftEntry] = []

    async def read(record: StateRecord) -> Optional[Dict]:
        try:
            return await provider.read(record.type, record.provider_id)
        except ResourceNotFound:
            return None

    async def refresh_one(record: StateRecord) -> None:
        async with semaphore:
            exports, _ = await call_with_retry(
                f"read:{record.address}",
                lambda: read(record),
                policy,
                token,
            )
        if exports is None:
            logger.warning(f"{record.address} ({record.provider_id}) no longer exists")
            drift.append(DriftEntry(address=record.address, deleted=True))
            return

        changed = {}
        for name, recorded in record.attributes.items():
            if name in exports and exports[name] != recorded:
                changed[name] = {"recorded": recorded, "actual": exports[name]}

        attributes = dict(record.attributes)
        for name, values in changed.items():
            attributes[name] = values["actual"]
        if changed:
            logger.warning(f"{record.address} drifted: {', '.join(sorted(changed))}")
            drift.append(DriftEntry(address=record.address, attributes=changed))

        refreshed[record.address] = record.model_copy(update={
            "attributes": attributes,
            "exports": {**exports, "id": record.provider_id},
        })

    await asyncio.gather(*(refresh_one(record) for record in records.values()))
    drift.sort(key=lambda entry: entry.address)
    logger.info(f"Refreshed {len(records)} resources, {len(drift)} drifted")
    return refreshed, drift
