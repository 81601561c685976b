"""
Audit Stream — rate-limited, cancellable batch audits.

Items without a URL are resolved up front. The rest are audited strictly one
at a time in input order, cache first; after every item that went to the
network the stream pauses ``delay`` seconds so PageSpeed is never hit faster
than one call per ``delay``. Each finished item is emitted with its progress;
a single ``done`` event closes the stream, flagged ``cancelled`` if the
token fired.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

from sitescout.config import settings
from sitescout.schemas import AuditResult, AuditStatus, PipelineProgress, StreamItem
from sitescout.services.audit_cache import AuditCache
from sitescout.services.auditor import (
    InvalidAuditUrl,
    audit_url,
    error_result,
    no_url_result,
    normalize_url,
)

logger = logging.getLogger("sitescout.stream")

AuditFn = Callable[[Optional[str], Optional[str]], Awaitable[AuditResult]]


class CancellationToken:
    """Cooperative cancel flag shared between the consumer and the stream."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class StreamEvent:
    result: Optional[AuditResult] = None
    progress: Optional[PipelineProgress] = None
    done: bool = False
    cancelled: bool = False

    def to_frame(self) -> dict:
        """SSE payload: the result flattened with its progress, or the done marker."""
        if self.done:
            frame = {"done": True}
            if self.cancelled:
                frame["cancelled"] = True
            return frame
        return {**self.result.to_wire(), "progress": self.progress.model_dump()}


class AuditStream:
    """One streaming run over an ordered list of items. Single use."""

    def __init__(
        self,
        items: Sequence[StreamItem],
        cache: Optional[AuditCache] = None,
        audit_fn: Optional[AuditFn] = None,
        delay: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.items = list(items)
        self.cache = cache
        self.delay = settings.audit_delay_secs if delay is None else delay
        self.token = token or CancellationToken()
        self.state = StreamState.IDLE
        self._audit_fn = audit_fn or audit_url
        self._completed = 0

    @property
    def total(self) -> int:
        return len(self.items)

    def cancel(self) -> None:
        self.token.cancel()

    def _emit(self, result: AuditResult) -> StreamEvent:
        self._completed += 1
        return StreamEvent(
            result=result,
            progress=PipelineProgress(completed=self._completed, total=self.total),
        )

    async def _pause(self) -> None:
        """Inter-item delay that ends early on cancellation."""
        if self.delay <= 0:
            return
        try:
            await asyncio.wait_for(self.token.wait(), timeout=self.delay)
        except asyncio.TimeoutError:
            pass

    async def _audit_cancellable(self, url: str, correlation_id: Optional[str]) -> Optional[AuditResult]:
        """Run one audit; None if cancelled first (the in-flight fetch is aborted)."""
        audit_task = asyncio.ensure_future(self._audit_fn(url, correlation_id))
        cancel_task = asyncio.ensure_future(self.token.wait())
        try:
            await asyncio.wait({audit_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not audit_task.done():
                audit_task.cancel()
                try:
                    await audit_task
                except asyncio.CancelledError:
                    pass

        if self.token.cancelled or audit_task.cancelled():
            return None
        try:
            return audit_task.result()
        except Exception as e:
            logger.exception("Audit failed for %s: %s", url, e)
            return error_result(str(e) or e.__class__.__name__, correlation_id, url)

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self.state != StreamState.IDLE:
            raise RuntimeError("AuditStream can only be consumed once")
        self.state = StreamState.STREAMING

        pending: list[StreamItem] = []
        for item in self.items:
            if not (item.url and item.url.strip()):
                if self.token.cancelled:
                    break
                yield self._emit(no_url_result(item.correlation_id))
            else:
                pending.append(item)

        logger.info(
            "Streaming %d audit(s) (%d without website)",
            self.total, self.total - len(pending),
        )

        for index, item in enumerate(pending):
            if self.token.cancelled:
                break

            try:
                url = normalize_url(item.url)
            except InvalidAuditUrl as e:
                yield self._emit(error_result(str(e), item.correlation_id))
                continue

            if self.cache is not None:
                cached = await self.cache.get(url)
                if cached is not None:
                    if self.token.cancelled:
                        break
                    yield self._emit(cached.model_copy(update={"correlation_id": item.correlation_id}))
                    continue

            result = await self._audit_cancellable(url, item.correlation_id)
            if result is None:
                break
            if self.cache is not None and result.status == AuditStatus.AUDITED:
                await self.cache.put(url, result)
            if self.token.cancelled:
                break
            yield self._emit(result)

            if index < len(pending) - 1:
                await self._pause()

        if self.token.cancelled:
            self.state = StreamState.CANCELLED
            logger.info("Stream cancelled after %d/%d item(s)", self._completed, self.total)
        else:
            self.state = StreamState.COMPLETED
            logger.info("Stream complete: %d item(s)", self.total)
        yield StreamEvent(done=True, cancelled=self.state == StreamState.CANCELLED)
