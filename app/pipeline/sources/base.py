"""Common interface implemented by every catalog source."""

from __future__ import annotations

import abc
import logging
from typing import Any, AsyncIterator

from pydantic import ValidationError

from ...models import AnimeRecord
from ..http import RateLimitedClient, UpstreamError

logger = logging.getLogger(__name__)


class SourceAdapter(abc.ABC):
    """Fetches raw entries from one upstream and normalises them to records.

    Subclasses implement :meth:`fetch` and :meth:`normalize`; :meth:`collect`
    drives both and skips entries that fail either step.
    """

    name: str = "source"

    def __init__(self, client: RateLimitedClient) -> None:
        self._client = client

    @abc.abstractmethod
    def fetch(self, limit: int | None = None) -> AsyncIterator[dict[str, Any]]:
        """Yield raw upstream payloads, at most ``limit`` of them."""

    @abc.abstractmethod
    async def normalize(self, raw: dict[str, Any]) -> AnimeRecord | None:
        """Return a record for ``raw`` or ``None`` when it should be skipped."""

    def synonyms(self, record: AnimeRecord) -> list[str]:
        """Alternative titles used when matching the record against IMDB."""

        return list(record.aliases)

    async def collect(self, limit: int | None = None) -> list[AnimeRecord]:
        records: list[AnimeRecord] = []
        skipped = 0
        async for raw in self.fetch(limit):
            try:
                record = await self.normalize(raw)
            except ValidationError as exc:
                skipped += 1
                logger.warning(
                    "%s: invalid entry %s (%s errors)",
                    self.name,
                    raw.get("id"),
                    exc.error_count(),
                )
                continue
            except UpstreamError as exc:
                skipped += 1
                logger.warning("%s: skipping entry %s: %s", self.name, raw.get("id"), exc)
                continue
            except (TypeError, ValueError, KeyError, AttributeError) as exc:
                skipped += 1
                logger.warning(
                    "%s: malformed entry %s: %s: %s",
                    self.name,
                    raw.get("id"),
                    type(exc).__name__,
                    exc,
                )
                continue
            if record is None:
                skipped += 1
                continue
            records.append(record)
        logger.info("%s: collected %s records (%s skipped)", self.name, len(records), skipped)
        return records
