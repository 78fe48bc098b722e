"""Dependency health diagnostics."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from .cache.manager import ArtifactCache
from .lipsync.generator import LipSyncGenerator
from .providers.base import SpeechProvider

logger = logging.getLogger(__name__)

CHECK_TIMEOUT = 5.0


@dataclass(frozen=True)
class HealthReport:
    """Snapshot of the pipeline's external dependencies.

    ``status`` is "ok" only when synthesis, the lip-sync tool and the cache
    store are all usable. A missing lip-sync tool still leaves the pipeline
    serving audio, so it reports "degraded" rather than failing.
    """

    synthesis_available: bool
    lip_sync_tool_available: bool
    cache_store_reachable: bool
    cache_entry_count: int
    approximate_hit_rate: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> str:
        healthy = (
            self.synthesis_available
            and self.lip_sync_tool_available
            and self.cache_store_reachable
        )
        return "ok" if healthy else "degraded"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["status"] = self.status
        return data


class HealthProbe:
    """Collects a HealthReport without making any paid API call.

    Synthesis availability means credentials are configured; it does not
    send a test request.
    """

    def __init__(
        self,
        provider: SpeechProvider,
        lip_sync: LipSyncGenerator,
        cache: ArtifactCache | None = None,
    ) -> None:
        self.provider = provider
        self.lip_sync = lip_sync
        self.cache = cache

    async def _lip_sync_available(self) -> bool:
        try:
            return await asyncio.wait_for(self.lip_sync.available(), CHECK_TIMEOUT)
        except TimeoutError:
            logger.warning("Lip-sync tool check timed out")
            return False

    async def check(self) -> HealthReport:
        synthesis_available = self.provider.is_configured()
        lip_sync_available = await self._lip_sync_available()

        reachable = False
        entries = 0
        hit_rate = 0.0
        if self.cache is not None:
            try:
                stats = await self.cache.stats()
                reachable = True
                entries = stats.total_entries
                hit_rate = stats.hit_rate
            except Exception as e:
                logger.error(f"Cache store unreachable: {e}")

        report = HealthReport(
            synthesis_available=synthesis_available,
            lip_sync_tool_available=lip_sync_available,
            cache_store_reachable=reachable,
            cache_entry_count=entries,
            approximate_hit_rate=hit_rate,
        )
        logger.debug(f"Health check: {report.status}")
        return report
