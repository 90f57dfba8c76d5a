from __future__ import annotations
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

from innoquest.settlement.errors import AdvancementInProgress


@dataclass(frozen=True)
class Advancing:
    request_id: str


class AdvancementGuard:
    """Single writer per game session: a session is either idle or advancing for one request."""

    def __init__(self):
        self._mutex = threading.Lock()
        self._active: Dict[str, Advancing] = {}

    def state(self, game_id: str) -> Advancing | None:
        with self._mutex:
            return self._active.get(game_id)

    def acquire(self, game_id: str, request_id: str | None = None) -> Advancing:
        with self._mutex:
            current = self._active.get(game_id)
            if current is not None:
                raise AdvancementInProgress(
                    f"Game {game_id} is already advancing (request {current.request_id})"
                )
            token = Advancing(request_id or uuid.uuid4().hex)
            self._active[game_id] = token
            return token

    def release(self, game_id: str, token: Advancing) -> None:
        with self._mutex:
            if self._active.get(game_id) == token:
                del self._active[game_id]

    @contextmanager
    def hold(self, game_id: str, request_id: str | None = None) -> Iterator[Advancing]:
        token = self.acquire(game_id, request_id)
        try:
            yield token
        finally:
            self.release(game_id, token)
