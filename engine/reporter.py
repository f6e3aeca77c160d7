"""
DONTCLOSETHIS — Outcome Reporter

Best-effort client for the remote leaderboard API (web_app.py). Local
persistence is authoritative; nothing here may raise into the game.

Availability:
    Every call updates `available`. After a failure, calls made within
    CHECK_INTERVAL seconds of the last attempt short-circuit to an offline
    result instead of hitting the network again. This is a cooldown, not a
    circuit breaker.

Result classes for POST /api/scores:
    success      2xx with a valid body
    rejected     4xx (validation / anti-cheat). Dropped, never retried.
    offline      transport error, 5xx, malformed body, cooldown, or disabled.
                 Queued under `pendingSubmissions` and retried FIFO.

Usage:
    reporter = OutcomeReporter(store)
    result = reporter.report_score("AAA", 17, 312)    # queues if offline
    reporter.on_online()                              # drain the queue
"""

import logging
import uuid
from typing import Optional

import httpx
from pydantic import ValidationError

from config.settings import ApiConfig, GameConfig
from config.score_schema import (
    AttemptEvent, LeaderboardSnapshot, RemoteSubmission, SubmitResult,
)
from engine.storage import KeyValueStore
from engine.timers import Clock, MonotonicClock

logger = logging.getLogger("dontclosethis.reporter")


class OutcomeReporter:
    """Remote leaderboard client with a cooldown and a durable retry queue."""

    def __init__(self, store: KeyValueStore, base_url: str = None, enabled: bool = None,
                 client: httpx.Client = None, clock: Clock = None,
                 check_interval: float = None, timeout: float = None):
        self.store = store
        self.base_url = (base_url or ApiConfig.BASE_URL).rstrip("/")
        self.enabled = ApiConfig.ENABLED if enabled is None else enabled
        self.clock = clock or MonotonicClock()
        self.check_interval = ApiConfig.CHECK_INTERVAL if check_interval is None else check_interval
        self._owns_client = client is None
        self.client = client or httpx.Client(
            base_url=self.base_url,
            timeout=ApiConfig.TIMEOUT if timeout is None else timeout,
        )
        self.available = True
        self.last_check: Optional[float] = None

    def close(self):
        if self._owns_client:
            self.client.close()

    # ── Availability ──────────────────────────────────────────

    def _mark(self, ok: bool):
        self.available = ok
        self.last_check = self.clock.now()

    def in_cooldown(self) -> bool:
        if self.available or self.last_check is None:
            return False
        return self.clock.now() - self.last_check < self.check_interval

    def _skip_reason(self) -> Optional[str]:
        if not self.enabled:
            return "remote leaderboard disabled"
        if self.in_cooldown():
            return "API unavailable, waiting before retrying"
        return None

    def status(self) -> dict:
        return {
            "enabled": self.enabled,
            "available": self.available,
            "last_check": self.last_check,
            "pending": len(self.pending()),
        }

    def session_id(self) -> str:
        """Per-install id kept under `gameSessionId`, created on first use."""
        sid = self.store.get(GameConfig.SESSION_ID_KEY)
        if not sid:
            sid = str(uuid.uuid4())
            self.store.set(GameConfig.SESSION_ID_KEY, sid)
        return sid

    # ── Scores ────────────────────────────────────────────────

    def submit_score(self, player_tag: str, level: int, elapsed_seconds: int,
                     session_id: str = None) -> SubmitResult:
        """One attempt at POST /api/scores. Never raises."""
        reason = self._skip_reason()
        if reason:
            logger.debug(f"Score submission skipped: {reason}")
            return SubmitResult(offline=True, error=reason)

        body = {
            "playerName": player_tag.upper().strip(),
            "level": level,
            "timeElapsed": elapsed_seconds,
            "sessionId": session_id or self.session_id(),
        }
        try:
            resp = self.client.post("/api/scores", json=body)
        except httpx.HTTPError as e:
            logger.warning(f"Score submission failed: {e}")
            self._mark(False)
            return SubmitResult(offline=True, error=str(e))

        if resp.status_code >= 500:
            logger.warning(f"Score submission failed: HTTP {resp.status_code}")
            self._mark(False)
            return SubmitResult(offline=True, error=f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            logger.warning(f"Score submission got a non-JSON body (HTTP {resp.status_code})")
            self._mark(False)
            return SubmitResult(offline=True, error="Malformed response")

        self._mark(True)
        if resp.status_code >= 400:
            error = data.get("error") if isinstance(data, dict) else None
            logger.warning(f"Score rejected: {error or resp.status_code}")
            return SubmitResult(success=False, error=error or f"HTTP {resp.status_code}",
                                min_time=data.get("minTime") if isinstance(data, dict) else None)
        try:
            result = SubmitResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Score submission got an unexpected body: {e.error_count()} error(s)")
            self._mark(False)
            return SubmitResult(offline=True, error="Malformed response")
        logger.info(f"Score submitted: rank #{result.rank}"
                    + (" (top 10)" if result.is_top_ten else ""))
        return result

    def report_score(self, player_tag: str, level: int, elapsed_seconds: int,
                     session_id: str = None) -> SubmitResult:
        """submit_score, queueing the submission if it came back offline."""
        sid = session_id or self.session_id()
        result = self.submit_score(player_tag, level, elapsed_seconds, session_id=sid)
        if result.offline:
            self.enqueue(RemoteSubmission(player_name=player_tag, level=level,
                                          time_elapsed=elapsed_seconds, session_id=sid))
        return result

    # ── Retry queue ───────────────────────────────────────────

    def pending(self) -> list[RemoteSubmission]:
        raw = self.store.get_json(GameConfig.PENDING_KEY, [])
        if not isinstance(raw, list):
            logger.warning(f"{GameConfig.PENDING_KEY} is not a list, ignoring it")
            return []
        queue = []
        for item in raw:
            try:
                queue.append(RemoteSubmission.model_validate(item))
            except ValidationError:
                logger.warning(f"Dropping malformed pending submission {item!r}")
        return queue

    def _save_pending(self, queue: list[RemoteSubmission]):
        self.store.set_json(GameConfig.PENDING_KEY,
                            [item.model_dump(by_alias=True) for item in queue])

    def enqueue(self, submission: RemoteSubmission):
        queue = self.pending()
        queue.append(submission)
        self._save_pending(queue)
        logger.info(f"Queued score for retry ({len(queue)} pending)")

    def retry_pending(self) -> int:
        """Drain the queue oldest first. Returns the number sent.

        Stops at the first offline result so order is preserved. Rejected
        entries are dropped.
        """
        queue = self.pending()
        if not queue:
            return 0
        logger.info(f"Retrying {len(queue)} pending submission(s)")
        sent = 0
        while queue:
            item = queue[0]
            result = self.submit_score(item.player_name, item.level, item.time_elapsed,
                                       session_id=item.session_id)
            if result.offline:
                break
            queue.pop(0)
            if result.success:
                sent += 1
            else:
                logger.warning(f"Dropping rejected submission for {item.player_name}: {result.error}")
        self._save_pending(queue)
        if not queue:
            logger.info("All pending submissions sent")
        return sent

    def on_online(self) -> int:
        """Connectivity is back: forget the cooldown and drain the queue."""
        self.available = True
        return self.retry_pending()

    # ── Leaderboard ───────────────────────────────────────────

    def fetch_leaderboard(self, limit: int = 10,
                          player_tag: str = None) -> Optional[LeaderboardSnapshot]:
        reason = self._skip_reason()
        if reason:
            logger.debug(f"Leaderboard fetch skipped: {reason}")
            return None
        params = {"limit": str(limit)}
        if player_tag:
            params["playerName"] = player_tag.upper().strip()
        try:
            resp = self.client.get("/api/scores", params=params)
            resp.raise_for_status()
            snapshot = LeaderboardSnapshot.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch leaderboard: {e}")
            self._mark(False)
            return None
        self._mark(True)
        return snapshot

    def check_health(self) -> bool:
        if not self.enabled:
            return False
        try:
            resp = self.client.get("/api/health")
            healthy = resp.is_success
        except httpx.HTTPError as e:
            logger.warning(f"API health check failed: {e}")
            healthy = False
        self._mark(healthy)
        return healthy

    # ── Analytics ─────────────────────────────────────────────

    def _fire(self, path: str, body: dict) -> bool:
        reason = self._skip_reason()
        if reason:
            logger.debug(f"{path} skipped: {reason}")
            return False
        try:
            resp = self.client.post(path, json=body)
        except httpx.HTTPError as e:
            logger.warning(f"{path} failed: {e}")
            self._mark(False)
            return False
        if resp.status_code >= 500:
            logger.warning(f"{path} failed: HTTP {resp.status_code}")
            self._mark(False)
            return False
        self._mark(True)
        if not resp.is_success:
            logger.warning(f"{path} rejected: HTTP {resp.status_code}")
        return resp.is_success

    def start_session(self, session_id: str = None) -> bool:
        return self._fire("/api/session", {"sessionId": session_id or self.session_id()})

    def record_attempt(self, level: int, success: bool, time_spent: int,
                       session_id: str = None) -> bool:
        event = AttemptEvent(session_id=session_id or self.session_id(), level=level,
                             success=success, time_spent=max(0, int(time_spent)))
        return self._fire("/api/attempt", event.model_dump(by_alias=True))
