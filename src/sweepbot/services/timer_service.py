"""Service for session countdown timers."""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from sweepbot.config import settings

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], Awaitable[None]]
ExpireCallback = Callable[[], Awaitable[None]]


def format_remaining(seconds: int) -> str:
    """m:ss, e.g. 1:05."""
    seconds = max(0, seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


class CountdownTimer:
    """A fixed-interval countdown that calls back on every tick and once on expiry."""

    def __init__(
        self,
        seconds: int,
        on_expire: ExpireCallback,
        on_tick: Optional[TickCallback] = None,
        tick_interval: Optional[float] = None,
    ):
        self.seconds = seconds
        self.remaining = seconds
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.tick_interval = tick_interval if tick_interval is not None else settings.session.timer_tick
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> None:
        """Start counting from the full length. A countdown already running is cancelled."""
        if self.running:
            self.task.cancel()
        self.remaining = self.seconds
        self.task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the countdown without calling on_expire."""
        if self.task is None:
            return
        task, self.task = self.task, None
        if task is asyncio.current_task():
            # Called from on_expire, the task is finishing anyway
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        try:
            while self.remaining > 0:
                await asyncio.sleep(self.tick_interval)
                self.remaining -= 1
                if self.on_tick is not None:
                    try:
                        await self.on_tick(self.remaining)
                    except Exception as e:
                        logger.warning(f"Timer tick callback failed: {e}")
            logger.info("Countdown expired")
            await self.on_expire()
        except asyncio.CancelledError:
            logger.debug("Countdown cancelled")
            raise


class TimerService:
    """Keeps at most one countdown per chat."""

    def __init__(self):
        self.timers: Dict[int, CountdownTimer] = {}

    async def start(
        self,
        chat_id: int,
        seconds: int,
        on_expire: ExpireCallback,
        on_tick: Optional[TickCallback] = None,
    ) -> CountdownTimer:
        """Start a countdown for a chat, clearing the previous one."""
        await self.stop(chat_id)
        timer = CountdownTimer(seconds, on_expire, on_tick)
        self.timers[chat_id] = timer
        timer.start()
        logger.info(f"Started {seconds}s countdown for chat {chat_id}")
        return timer

    async def stop(self, chat_id: int) -> None:
        timer = self.timers.pop(chat_id, None)
        if timer is not None:
            await timer.stop()

    def remaining(self, chat_id: int) -> Optional[int]:
        timer = self.timers.get(chat_id)
        return timer.remaining if timer is not None and timer.running else None

    async def stop_all(self) -> None:
        """Cancel every countdown."""
        for chat_id in list(self.timers):
            await self.stop(chat_id)
