"""Polling client for the realtime poll endpoint with exponential backoff."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from shared.clock import ensure_utc, utcnow
from shared.exceptions import AuthenticationError, MaxRetriesExceededError, TransportError

logger = logging.getLogger(__name__)


class ConnectionStatus:
    """Connection status constants"""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass
class PollingConfig:
    api_url: str = "http://localhost:8000/api"
    token: str | None = None
    poll_interval: float = 5.0
    max_retries: int = 3
    retry_delay: float = 1.0
    request_timeout: float = 10.0


@dataclass(frozen=True)
class ActivityEvent:
    activity: dict[str, Any]


@dataclass(frozen=True)
class PresenceEvent:
    online_users: list[dict[str, Any]]
    total_online: int


@dataclass(frozen=True)
class NotificationEvent:
    notification: dict[str, Any]


@dataclass(frozen=True)
class StatusEvent:
    status: str


@dataclass(frozen=True)
class ErrorEvent:
    error: Exception


Event = ActivityEvent | PresenceEvent | NotificationEvent | StatusEvent | ErrorEvent


@dataclass
class PollingStatus:
    is_running: bool
    status: str
    retry_count: int
    last_poll_time: datetime | None
    time_since_last_poll: float | None
    watermark: datetime | None


_CLOSED = object()


class Subscription:
    """Queue of events delivered to one subscriber.

    Iterate with ``async for``; iteration ends once ``close()`` is called.
    """

    def __init__(self, client: "PollingClient"):
        self._client = client
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def put(self, event: Event) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def drain(self) -> list[Event]:
        """Return every event queued so far without waiting."""
        events = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            events.append(item)
        return events

    async def get(self) -> Event:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._client._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        return await self.get()


class PollingClient:
    """
    Client that repeatedly polls ``GET /realtime/poll`` and publishes the deltas.

    A single background task drives the loop, so at most one request is in
    flight. Each failed poll schedules exactly one retry after
    ``retry_delay * 2 ** (attempt - 1)`` seconds; once the attempt count
    exceeds ``max_retries`` the loop stops with an ``error`` status.
    Authentication failures are never retried.

    Usage:
        async with PollingClient(PollingConfig(api_url=..., token=...)) as client:
            async for event in client.subscribe():
                ...
    """

    def __init__(self, config: PollingConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._http = http
        self._owns_http = http is None
        self._task: asyncio.Task | None = None
        self._subscribers: list[Subscription] = []
        self.status = ConnectionStatus.DISCONNECTED
        self.retry_count = 0
        self.last_poll_time: datetime | None = None
        self.watermark: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def poll_url(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/realtime/poll"

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay before retry number ``attempt``.

        Args:
            attempt: The attempt number (1-indexed)
        """
        return self.config.retry_delay * (2 ** (attempt - 1))

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def _publish(self, event: Event) -> None:
        for subscriber in list(self._subscribers):
            subscriber.put(event)

    def _set_status(self, status: str) -> None:
        if status == self.status:
            return
        self.status = status
        self._publish(StatusEvent(status))

    def start(self) -> None:
        """Start polling. Calling it while already running does nothing."""
        if self.is_running:
            return
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.config.request_timeout)
        self.retry_count = 0
        self._set_status(ConnectionStatus.CONNECTED)
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Started polling %s every %ss", self.poll_url, self.config.poll_interval)

    async def stop(self) -> None:
        """Stop polling and abort any in-flight request. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Stopped polling %s", self.poll_url)
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def wait(self) -> None:
        """Block until the polling loop ends on its own."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def get_status(self) -> PollingStatus:
        since = None
        if self.last_poll_time is not None:
            since = (utcnow() - self.last_poll_time).total_seconds()
        return PollingStatus(
            is_running=self.is_running,
            status=self.status,
            retry_count=self.retry_count,
            last_poll_time=self.last_poll_time,
            time_since_last_poll=since,
            watermark=self.watermark,
        )

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except AuthenticationError as e:
                logger.error("Realtime poll rejected credentials: %s", e.message)
                self._publish(ErrorEvent(e))
                self._set_status(ConnectionStatus.ERROR)
                return
            except TransportError as e:
                self.retry_count += 1
                if self.retry_count > self.config.max_retries:
                    error = MaxRetriesExceededError(self.retry_count, last_error=e)
                    logger.error("%s: %s", error.message, e.message)
                    self._publish(ErrorEvent(error))
                    self._set_status(ConnectionStatus.ERROR)
                    return
                delay = self.backoff_delay(self.retry_count)
                logger.warning(
                    "Realtime poll failed (%s), retry %d/%d in %.1fs",
                    e.message,
                    self.retry_count,
                    self.config.max_retries,
                    delay,
                )
                self._set_status(ConnectionStatus.DISCONNECTED)
                await asyncio.sleep(delay)
                continue
            except Exception as e:
                logger.exception("Realtime polling stopped on an unexpected error")
                self._publish(ErrorEvent(e))
                self._set_status(ConnectionStatus.ERROR)
                return

            await asyncio.sleep(self.config.poll_interval)

    async def poll_once(self) -> None:
        """
        Fetch one batch of updates and publish it.

        The watermark only moves after a response has been read and parsed.

        Raises:
            AuthenticationError: The server answered 401 or 403
            TransportError: Network failure, any other error status or a malformed body
        """
        if self._http is None:
            raise TransportError("Polling client is not started")

        params = {}
        if self.watermark is not None:
            params["lastPollTime"] = self.watermark.isoformat()
        headers = {}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        try:
            response = await self._http.get(
                self.poll_url,
                params=params,
                headers=headers,
                timeout=self.config.request_timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Poll request failed: {e!r}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Poll rejected with HTTP {response.status_code}")
        if not response.is_success:
            raise TransportError(
                f"Poll failed with HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            body = response.json()
            if not body.get("success"):
                raise TransportError(body.get("error") or "Poll returned success=false")
            timestamp = ensure_utc(datetime.fromisoformat(body["timestamp"]))
            data = body["data"]
            activities = list(data["activities"])
            presence = data["presence"]
            online_users = list(presence["onlineUsers"])
            total_online = int(presence["totalOnline"])
            notifications = list(data.get("notifications") or [])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise TransportError(f"Malformed poll response: {e!r}") from e

        self.watermark = timestamp
        self.last_poll_time = utcnow()
        self.retry_count = 0
        self._set_status(ConnectionStatus.CONNECTED)

        for activity in activities:
            self._publish(ActivityEvent(activity))
        self._publish(PresenceEvent(online_users=online_users, total_online=total_online))
        for notification in notifications:
            self._publish(NotificationEvent(notification))

    async def __aenter__(self) -> "PollingClient":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
