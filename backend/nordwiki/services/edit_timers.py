"""Editor-side session controller.

While a page is open for editing three periodic actors run side by side:

    heartbeat      keeps the server session live         (every 30 s)
    conflict poll  asks who else is editing the page     (every 10 s)
    auto-save      saves the buffer when it has changes  (every 30 s)

Each actor is its own asyncio task, so a slow conflict check never delays
an auto-save. The timers start when the controller enters ACTIVE and are
cancelled when it enters ENDED. Closing cancels an auto-save that is still
in flight; the buffer is kept so the user can retry the save by hand.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class EditorState(str, Enum):
    STARTING = "starting"
    ACTIVE = "active"
    ENDED = "ended"


class EditSessionController:
    """State machine ``STARTING -> ACTIVE -> ENDED`` for one open editor.

    The controller only knows callables, so it runs against the HTTP
    client (see ``client.open_edit_session``) or directly against fakes.
    """

    def __init__(
        self,
        page_id: str,
        *,
        start_session: Callable[[str], Awaitable[int]],
        heartbeat: Callable[[int], Awaitable[Any]],
        check_conflicts: Callable[[str], Awaitable[list]],
        save: Callable[[str], Awaitable[Any]],
        end_session: Callable[[int], Awaitable[Any]],
        heartbeat_interval: float = 30.0,
        conflict_interval: float = 10.0,
        autosave_interval: float = 30.0,
        on_conflicts: Optional[Callable[[list], None]] = None,
        initial_body: str = "",
    ):
        self.page_id = page_id
        self._start_session = start_session
        self._heartbeat = heartbeat
        self._check_conflicts = check_conflicts
        self._save = save
        self._end_session = end_session
        self.heartbeat_interval = heartbeat_interval
        self.conflict_interval = conflict_interval
        self.autosave_interval = autosave_interval
        self.on_conflicts = on_conflicts

        self.state = EditorState.STARTING
        self.session_id: Optional[int] = None
        self.buffer = initial_body
        self.dirty = False
        self.conflicts: list = []
        self.last_error: Optional[Exception] = None
        self._tasks: list[asyncio.Task] = []

    @property
    def timers_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def open(self) -> "EditSessionController":
        if self.state is not EditorState.STARTING:
            raise RuntimeError(f"Editor for {self.page_id} is already {self.state.value}")
        self.session_id = await self._start_session(self.page_id)
        self.state = EditorState.ACTIVE
        self._tasks = [
            asyncio.create_task(self._every(self.heartbeat_interval, self._send_heartbeat), name="heartbeat"),
            asyncio.create_task(self._every(self.conflict_interval, self._poll_conflicts), name="conflict-poll"),
            asyncio.create_task(self._every(self.autosave_interval, self._autosave), name="autosave"),
        ]
        logger.debug("Editor active", extra={"page_id": self.page_id, "session_id": self.session_id})
        return self

    def edit(self, body: str) -> None:
        if self.state is EditorState.ENDED:
            raise RuntimeError("Editor is closed")
        if body != self.buffer:
            self.buffer = body
            self.dirty = True

    async def save_now(self) -> None:
        """Manual save; also the retry path after a failed or cancelled auto-save."""
        await self._flush()

    async def close(self) -> None:
        if self.state is EditorState.ENDED:
            return
        self.state = EditorState.ENDED
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self.session_id is not None:
            try:
                await self._end_session(self.session_id)
            except Exception as exc:
                logger.warning("Failed to end edit session", extra={"session_id": self.session_id, "error": str(exc)})
        logger.debug("Editor closed", extra={"page_id": self.page_id, "unsaved": self.dirty})

    async def __aenter__(self) -> "EditSessionController":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _every(self, interval: float, action: Callable[[], Awaitable[None]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await action()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.last_error = exc
                logger.warning(
                    "Editor timer action failed",
                    extra={"page_id": self.page_id, "action": action.__name__, "error": str(exc)},
                )

    async def _send_heartbeat(self) -> None:
        await self._heartbeat(self.session_id)

    async def _poll_conflicts(self) -> None:
        self.conflicts = list(await self._check_conflicts(self.page_id))
        if self.on_conflicts is not None:
            self.on_conflicts(self.conflicts)

    async def _autosave(self) -> None:
        if self.dirty:
            await self._flush()

    async def _flush(self) -> None:
        snapshot = self.buffer
        await self._save(snapshot)
        # Edits made while the save was in flight stay dirty.
        if self.buffer == snapshot:
            self.dirty = False
