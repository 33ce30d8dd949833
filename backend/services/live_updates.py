"""
Live Update Subscriber

Opens one push subscription per live domain (health, errors, feedback). A
change notification is only an invalidation signal: it always resolves to a
full re-fetch through the same fetcher the poll scheduler uses, never to a
partial merge of pushed data.
"""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from models.events import ChangeNotification, channel_for
from services.domain_state import DomainState
from utils.logging import get_logger, log_system_state_change

logger = get_logger("live-updates")

LIVE_DOMAINS = ("health", "errors", "feedback")

SubscribeFn = Callable[[str], AsyncIterator[ChangeNotification]]
Unsubscribe = Callable[[], Awaitable[None]]


class LiveUpdateSubscriber:
    """Maps change notifications on per-domain channels to domain re-fetches."""

    def __init__(self, subscribe_fn: Optional[SubscribeFn] = None, channel_prefix: str = "monitoring"):
        if subscribe_fn is None:
            from utils.redis_manager import subscribe as subscribe_fn
        self._subscribe_fn = subscribe_fn
        self.channel_prefix = channel_prefix
        self._targets: Dict[str, DomainState] = {}
        self._listeners: Dict[str, asyncio.Task] = {}
        self._unsubscribers: Dict[str, Unsubscribe] = {}
        self.is_running = False

    def register(self, state: DomainState):
        """Re-fetch `state` whenever its domain's channel reports a change."""
        if state.domain not in LIVE_DOMAINS:
            raise ValueError(f"Domain {state.domain} has no live update channel")
        self._targets[state.domain] = state

    @property
    def subscribed_domains(self):
        return sorted(self._unsubscribers)

    def subscribe(self, domain: str, on_change: Callable[[], Awaitable[Any]]) -> Unsubscribe:
        """
        Listen for changes on one domain.

        Args:
            domain: Live domain name
            on_change: Coroutine function invoked once per notification

        Returns:
            Coroutine function that closes the subscription
        """
        channel = channel_for(domain, self.channel_prefix)
        task = asyncio.create_task(self._listen(domain, channel, on_change), name=f"live-{domain}")
        self._listeners[domain] = task

        async def unsubscribe():
            if self._listeners.get(domain) is task:
                del self._listeners[domain]
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        return unsubscribe

    async def _listen(self, domain: str, channel: str, on_change: Callable[[], Awaitable[Any]]):
        try:
            async for notification in self._subscribe_fn(channel):
                if notification.domain != domain:
                    continue
                logger.info(
                    f"Change notification for {domain}, re-fetching",
                    extra={"data": {"notification_id": notification.id, "operation": notification.operation}}
                )
                try:
                    await on_change()
                except Exception as e:
                    logger.error(
                        f"Live update handler failed for {domain}",
                        exc_info=True,
                        extra={"data": {"domain": domain, "error": str(e)}}
                    )
        except Exception as e:
            # Polling still covers the domain; only push invalidation is lost
            logger.error(
                f"Live update channel for {domain} failed",
                exc_info=True,
                extra={"data": {"channel": channel, "error": str(e)}}
            )
            return
        logger.info(f"Live update channel for {domain} closed", extra={"data": {"channel": channel}})

    async def start(self):
        """Open a subscription for every registered domain."""
        if self.is_running:
            logger.warning("Live update subscriber already running")
            return

        self.is_running = True
        for domain, state in self._targets.items():
            self._unsubscribers[domain] = self.subscribe(domain, state.refresh)

        log_system_state_change("live-updates", "subscribed", {"domains": self.subscribed_domains}, logger=logger)

    async def stop(self):
        """Close every subscription and wait for the listeners to exit."""
        self.is_running = False
        unsubscribers = list(self._unsubscribers.values())
        self._unsubscribers.clear()
        for unsubscribe in unsubscribers:
            await unsubscribe()

        log_system_state_change("live-updates", "unsubscribed", {}, logger=logger)
