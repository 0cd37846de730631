"""Subscription supervisor.

``supervise`` owns one subscription for its whole life: it connects, sends
the subscribe handshake, pumps frames through the demultiplexer into the
caller's channel and, when the transport fails, waits with backoff and starts
over. Transport failures never reach the caller; they show up only in logs and
metrics. A subscription missing its coin or account fails immediately instead.

Reset rule: a session that sent its handshake and received at least one frame
counts as productive and clears the failure counter, so the next wait is the
base delay again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..core.errors import TransportError
from ..io import metrics
from ..venue.ws_client import WsTransport
from .backoff import BackoffPolicy
from .channel import EventChannel
from .demux import FrameClass, classify
from .subscription import Subscription

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SubscriptionSupervisor:
    def __init__(
        self,
        subscription: Subscription,
        transport: WsTransport,
        out: EventChannel,
        url: str,
        policy: Optional[BackoffPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.subscription = subscription
        self.transport = transport
        self.out = out
        self.url = url
        self.policy = policy or BackoffPolicy()
        self.sleep = sleep
        # raises ConfigurationError before anything is spawned
        self.handshake = subscription.handshake()
        self.failures = 0
        self.sessions = 0

    @property
    def kind(self) -> str:
        return self.subscription.kind.value

    async def run(self) -> None:
        name = self.subscription.describe()
        while True:
            productive = await self._session()
            if self.out.closed:
                logger.info("stream %s stopped: output channel closed", name)
                return
            if productive:
                self.failures = 0
            self.failures += 1
            if self.policy.exhausted(self.failures):
                logger.error(
                    "stream %s gave up after %d consecutive failures",
                    name,
                    self.failures,
                )
                return
            delay = self.policy.delay(self.failures)
            metrics.inc_reconnects(self.kind)
            logger.warning(
                "stream %s reconnecting in %.2fs (failure %d)",
                name,
                delay,
                self.failures,
            )
            await self.sleep(delay)

    async def _session(self) -> bool:
        """Run one connection until it fails. Returns True if it was productive."""
        name = self.subscription.describe()
        try:
            conn = await self.transport.connect(self.url)
        except TransportError as e:
            logger.warning("stream %s connect failed: %s", name, e)
            return False
        productive = False
        async with conn:
            try:
                await conn.send(self.handshake)
                self.sessions += 1
                logger.info("stream %s subscribed", name)
                while True:
                    raw = await conn.receive()
                    productive = True
                    if self.out.closed:
                        break
                    self._dispatch(raw)
            except TransportError as e:
                logger.warning("stream %s dropped: %s", name, e)
        return productive

    def _dispatch(self, raw: bytes) -> None:
        try:
            decoded = classify(raw, self.subscription.kind)
        except Exception:
            # one bad frame must not end the subscription
            metrics.inc_dropped(self.kind)
            logger.warning(
                "dropping %s frame that failed to decode: %.200r",
                self.kind,
                raw,
                exc_info=True,
            )
            return
        if decoded.status is FrameClass.EVENT:
            self.out.send(decoded.event)
            metrics.inc_events(self.kind)
        elif decoded.status is FrameClass.MALFORMED:
            metrics.inc_dropped(self.kind)
            logger.debug("dropping undecodable %s frame: %.200r", self.kind, raw)


def supervise(
    subscription: Subscription,
    transport: WsTransport,
    out: EventChannel,
    *,
    url: str,
    policy: Optional[BackoffPolicy] = None,
    sleep: Sleep = asyncio.sleep,
) -> "asyncio.Task[None]":
    """Spawn a supervised stream task for ``subscription``.

    Must be called from a running event loop. Raises ``ConfigurationError``
    synchronously when the subscription lacks its required coin or account.
    Cancelling the returned task closes the connection; when the task ends the
    supervisor's producer slot on ``out`` is released.
    """
    sup = SubscriptionSupervisor(subscription, transport, out, url, policy, sleep)
    loop = asyncio.get_running_loop()
    out.attach()
    task = loop.create_task(sup.run(), name=f"perpdex-{subscription.describe()}")
    # runs even when the task is cancelled before its first step
    task.add_done_callback(lambda _t: out.detach())
    return task
