"""
Online status of the counterpart in a coach/client pairing.

Both sides join the coach's presence topic under their own key and announce
themselves once the subscription is confirmed. Every sync event recomputes
whether the counterpart key is in the membership set.

    async with PresenceTracker(remote, coach_id=c, own_key=c, counterpart_key=k) as p:
        p.subscribe(lambda state: ...)
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import CoachingError
from libs.common.logging import get_logger
from libs.remote.client import PresenceChannel, RemoteDataClient

logger = get_logger(__name__)

SUBSCRIBED = "SUBSCRIBED"
RESET_STATUSES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}


class PresenceState(str, Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


def presence_topic(coach_id: str) -> str:
    return f"presence:coach_{coach_id}"


class PresenceTracker:
    def __init__(
        self,
        remote: RemoteDataClient,
        *,
        coach_id: str,
        own_key: str,
        counterpart_key: str,
    ):
        self._remote = remote
        self.topic = presence_topic(coach_id)
        self.own_key = own_key
        self.counterpart_key = counterpart_key
        self._state = PresenceState.UNKNOWN
        self._channel: Optional[PresenceChannel] = None
        self._track_task: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[PresenceState], None]] = []
        self._stopped = False

    @property
    def state(self) -> PresenceState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state is PresenceState.ONLINE

    def subscribe(self, listener: Callable[[PresenceState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: PresenceState) -> None:
        if self._stopped or state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # ----- channel callbacks ----------------------------------------------

    def _on_sync(self) -> None:
        if self._stopped or self._channel is None:
            return
        members = self._channel.presence_state()
        self._set_state(
            PresenceState.ONLINE
            if self.counterpart_key in members
            else PresenceState.OFFLINE
        )

    def _on_status(self, status: str, error: Optional[Exception]) -> None:
        if self._stopped:
            return
        if status == SUBSCRIBED:
            self._track_task = asyncio.ensure_future(self._track())
        elif status in RESET_STATUSES:
            logger.warning(
                "Presence channel %s reported %s: %s", self.topic, status, error
            )
            # Unknown until the next sync after reconnecting.
            self._set_state(PresenceState.UNKNOWN)

    async def _track(self) -> None:
        try:
            await self._channel.track(
                {"user_id": self.own_key, "online_at": utc_now().isoformat()}
            )
        except CoachingError as exc:
            logger.warning("Presence track failed on %s: %s", self.topic, exc)
            # Own key not announced on the channel.
            self._set_state(PresenceState.UNKNOWN)

    # ----- lifecycle ------------------------------------------------------

    async def start(self) -> "PresenceTracker":
        if self._channel is not None:
            return self
        self._stopped = False
        self._channel = self._remote.presence_channel(self.topic, self.own_key)
        self._channel.on_sync(self._on_sync)
        await self._channel.subscribe(self._on_status)
        logger.debug("Presence tracking started on %s", self.topic)
        return self

    async def stop(self) -> None:
        """Leave the channel. No state change is observed afterwards."""
        self._stopped = True
        self._listeners.clear()
        if self._track_task is not None and not self._track_task.done():
            self._track_task.cancel()
        self._track_task = None
        channel, self._channel = self._channel, None
        self._state = PresenceState.UNKNOWN
        if channel is not None:
            await channel.unsubscribe()
            logger.debug("Presence tracking stopped on %s", self.topic)

    async def __aenter__(self) -> "PresenceTracker":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
