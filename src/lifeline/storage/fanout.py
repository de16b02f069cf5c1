"""Concurrent replication of one object to every storage destination.

The primary and each secondary are written in parallel and settle
independently: one destination failing never cancels or fails another.
Callers decide what a failure means; the snapshot job only fails when the
primary write fails.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from lifeline.models import ReplicationMode, ReplicationResult
from lifeline.observability import get_logger, resolve_metrics

from .base import ObjectStore

log = get_logger("lifeline.storage.fanout")


@dataclass
class Destination:
    """An object store plus its role in replication."""

    name: str
    store: ObjectStore
    mode: ReplicationMode = ReplicationMode.MIRROR
    primary: bool = False


class ReplicationFanout:
    """Write objects to a primary destination and any number of secondaries.

    Parameters
    ----------
    primary:
        The destination whose success decides the job outcome.
    secondaries:
        Best-effort destinations.
    metrics:
        Optional :class:`~lifeline.observability.MetricsHook`.
    """

    def __init__(
        self,
        primary: Destination,
        secondaries: list[Destination] | None = None,
        metrics=None,
    ) -> None:
        self.primary = primary
        self.secondaries = list(secondaries or [])
        self._metrics = resolve_metrics(metrics)

    async def replicate(
        self,
        path: str,
        data: bytes,
        metadata: dict[str, str] | None = None,
        *,
        manifest: bool = False,
    ) -> list[ReplicationResult]:
        """Write *data* to *path* on every destination concurrently.

        Parameters
        ----------
        manifest:
            The object is a hash manifest.  Destinations in ``archive``
            mode are skipped for manifests.

        Returns
        -------
        list[ReplicationResult]
            One result per destination written, primary first.
        """
        targets = [self.primary] + [
            d for d in self.secondaries if not manifest or d.mode is ReplicationMode.MIRROR
        ]
        outcomes = await asyncio.gather(
            *(d.store.write(path, data, metadata) for d in targets),
            return_exceptions=True,
        )

        results: list[ReplicationResult] = []
        for dest, outcome in zip(targets, outcomes):
            ok = not isinstance(outcome, BaseException)
            tags = {"destination": dest.name, "status": "ok" if ok else "error"}
            self._metrics.increment("lifeline.replication_total", tags=tags)
            if not ok:
                log.warning(
                    "Replication write failed",
                    extra={
                        "extra_fields": {
                            "destination": dest.name,
                            "path": path,
                            "primary": dest.primary,
                            "error": str(outcome),
                        }
                    },
                )
            results.append(
                ReplicationResult(
                    destination=dest.name,
                    ok=ok,
                    path=path,
                    error=None if ok else str(outcome),
                    primary=dest.primary,
                )
            )
        return results

    @staticmethod
    def primary_result(results: list[ReplicationResult]) -> ReplicationResult | None:
        return next((r for r in results if r.primary), None)
