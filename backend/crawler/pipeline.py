"""
Sequential work-item pipeline.

Items run one at a time in input order. A failing item is logged and tallied
and the loop continues; an item whose identity was already processed is
skipped before the run starts. A fixed pacing delay follows every item that
completes without error, except the last distinct item.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Hashable, Iterable, Optional, TypeVar

from shared.utils.logging import get_logger
from shared.utils.metrics import ITEM_PROCESSING, PIPELINE_ITEMS

from crawler.errors import ItemFailure

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class PipelineStats:
    label: str = "pipeline"
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: list[ItemFailure] = field(default_factory=list)

    def merge(self, other: "PipelineStats") -> None:
        self.attempted += other.attempted
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.skipped += other.skipped
        self.failures.extend(other.failures)

    def as_dict(self) -> dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }


def _identity(item: Any) -> Hashable:
    return item


async def run_pipeline(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[Optional[bool]]],
    pacing_s: float,
    key: Callable[[T], Hashable] = _identity,
    label: str = "pipeline",
    describe: Callable[[T], str] = str,
) -> PipelineStats:
    """
    Run ``operation`` over ``items``.

    Args:
        items: Work items, processed in order.
        operation: Per-item coroutine. Returning ``False`` records a soft skip
            (nothing to collect); any other return value counts as success.
        pacing_s: Delay after each item that completes without error.
        key: Identity of an item; repeats are skipped.
        label: Pipeline name for logs and metrics.
        describe: Display name of an item, for logs.
    """
    stats = PipelineStats(label=label)
    work: list[T] = []
    seen: set[Hashable] = set()
    for item in items:
        identity = key(item)
        if identity in seen:
            stats.skipped += 1
            PIPELINE_ITEMS.labels(pipeline=label, outcome="duplicate").inc()
            logger.debug("item_duplicate", pipeline=label, item=describe(item))
            continue
        seen.add(identity)
        work.append(item)
    total = len(work)

    for index, item in enumerate(work):
        stats.attempted += 1
        started = time.perf_counter()
        try:
            outcome = await operation(item)
        except Exception as exc:
            stats.failed += 1
            stats.failures.append(ItemFailure(describe(item), exc))
            PIPELINE_ITEMS.labels(pipeline=label, outcome="failed").inc()
            logger.error(
                "item_failed",
                pipeline=label,
                item=describe(item),
                position=f"{index + 1}/{total}",
                error=str(exc),
            )
            continue
        finally:
            ITEM_PROCESSING.labels(pipeline=label).observe(time.perf_counter() - started)

        if outcome is False:
            stats.skipped += 1
            PIPELINE_ITEMS.labels(pipeline=label, outcome="skipped").inc()
            logger.info("item_skipped", pipeline=label, item=describe(item), position=f"{index + 1}/{total}")
        else:
            stats.succeeded += 1
            PIPELINE_ITEMS.labels(pipeline=label, outcome="succeeded").inc()
            logger.info("item_done", pipeline=label, item=describe(item), position=f"{index + 1}/{total}")

        if index < total - 1 and pacing_s > 0:
            logger.debug("pacing", pipeline=label, seconds=pacing_s)
            await asyncio.sleep(pacing_s)

    logger.info("pipeline_complete", pipeline=label, **stats.as_dict())
    return stats
