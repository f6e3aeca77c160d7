#!/usr/bin/env python3
"""
DONTCLOSETHIS — Leaderboard API Test Suite

Run: python tests_api.py
     python tests_api.py TestServer

Test categories:
  TestReporter     — OutcomeReporter over httpx.MockTransport
  TestServer       — web_app routes via Flask test_client()
  TestEndToEnd     — reporter talking to the Flask app through WSGITransport
"""

import json
import os
import random
import shutil
import sqlite3
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import httpx

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import GameConfig
from config.database import DatabaseConnection
from config.score_schema import RemoteSubmission
from challenges.choice import YesNoChallenge
from engine.reporter import OutcomeReporter
from engine.sequencer import DEFEAT, Sequencer
from engine.storage import MemoryStore
from engine.timers import ManualClock, Scheduler

from web_app import app

BASE = "http://leaderboard.test"


class FakeApi:
    """Request handler for httpx.MockTransport with a switchable mode."""

    def __init__(self, mode: str = "ok"):
        self.mode = mode
        self.requests: list[httpx.Request] = []
        self.fail_after = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        mode = self.mode
        if self.fail_after is not None and len(self.requests) > self.fail_after:
            mode = "down"
        if mode == "down":
            raise httpx.ConnectError("connection refused", request=request)
        if mode == "5xx":
            return httpx.Response(503, json={"error": "Service Unavailable"})
        if mode == "html":
            return httpx.Response(200, text="<html>maintenance</html>")
        if mode == "reject":
            return httpx.Response(400, json={"error": "Time too fast for this level",
                                             "minTime": 10})
        if request.url.path == "/api/scores" and request.method == "GET":
            return httpx.Response(200, json={
                "globalTop": [{"rank": 1, "playerName": "ACE", "level": 17, "timeElapsed": 300}],
                "playerRank": None,
                "stats": {"totalPlayers": 1, "totalScores": 4},
            })
        if request.url.path == "/api/scores":
            return httpx.Response(200, json={"success": True, "rank": 2, "isTopTen": True,
                                             "message": "You made the top 10!"})
        return httpx.Response(200, json={"success": True})

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests
                if r.url.path == path and r.method == "POST"]


def make_reporter(api: FakeApi, store=None, enabled: bool = True):
    clock = ManualClock()
    client = httpx.Client(base_url=BASE, transport=httpx.MockTransport(api))
    reporter = OutcomeReporter(store or MemoryStore(), base_url=BASE, enabled=enabled,
                               client=client, clock=clock, check_interval=60)
    return reporter, clock


# ============================================================
# Reporter
# ============================================================

class TestReporter(unittest.TestCase):

    def test_submit_success(self):
        api = FakeApi()
        reporter, _ = make_reporter(api)
        result = reporter.submit_score(" ace ", 5, 61, session_id="s-1")
        self.assertTrue(result.success)
        self.assertEqual(result.rank, 2)
        self.assertTrue(result.is_top_ten)
        self.assertEqual(api.bodies("/api/scores"),
                         [{"playerName": "ACE", "level": 5, "timeElapsed": 61, "sessionId": "s-1"}])
        self.assertTrue(reporter.available)

    def test_unreachable_is_queued(self):
        api = FakeApi("down")
        store = MemoryStore()
        reporter, _ = make_reporter(api, store)
        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            result = reporter.report_score("AAA", 3, 40)
        self.assertTrue(result.offline)
        self.assertFalse(result.success)
        self.assertFalse(reporter.available)
        pending = reporter.pending()
        self.assertEqual(len(pending), 1)
        self.assertEqual((pending[0].player_name, pending[0].level, pending[0].time_elapsed),
                         ("AAA", 3, 40))
        raw = store.get_json(GameConfig.PENDING_KEY)
        self.assertEqual(raw[0]["playerName"], "AAA")
        self.assertEqual(raw[0]["timeElapsed"], 40)

    def test_server_errors_and_garbage_are_offline(self):
        for mode in ("5xx", "html"):
            reporter, _ = make_reporter(FakeApi(mode))
            with self.assertLogs("dontclosethis.reporter", level="WARNING"):
                result = reporter.report_score("AAA", 3, 40)
            self.assertTrue(result.offline, mode)
            self.assertEqual(len(reporter.pending()), 1, mode)

    def test_rejection_is_not_queued(self):
        reporter, _ = make_reporter(FakeApi("reject"))
        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            result = reporter.report_score("AAA", 5, 3)
        self.assertFalse(result.success)
        self.assertFalse(result.offline)
        self.assertEqual(result.min_time, 10)
        self.assertEqual(result.error, "Time too fast for this level")
        self.assertEqual(reporter.pending(), [])
        self.assertTrue(reporter.available)

    def test_cooldown_skips_the_network(self):
        api = FakeApi("down")
        reporter, clock = make_reporter(api)
        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            reporter.submit_score("AAA", 1, 5)
        self.assertEqual(len(api.requests), 1)

        clock.advance(30)
        self.assertTrue(reporter.in_cooldown())
        result = reporter.submit_score("AAA", 1, 5)
        self.assertTrue(result.offline)
        self.assertEqual(len(api.requests), 1)
        self.assertFalse(reporter.record_attempt(1, True, 3))
        self.assertIsNone(reporter.fetch_leaderboard())
        self.assertEqual(len(api.requests), 1)

        clock.advance(31)
        api.mode = "ok"
        self.assertFalse(reporter.in_cooldown())
        self.assertTrue(reporter.submit_score("AAA", 1, 5).success)
        self.assertEqual(len(api.requests), 2)

    def test_disabled_never_calls_out(self):
        api = FakeApi()
        reporter, _ = make_reporter(api, enabled=False)
        self.assertTrue(reporter.report_score("AAA", 2, 9).offline)
        self.assertFalse(reporter.start_session())
        self.assertFalse(reporter.check_health())
        self.assertEqual(api.requests, [])
        self.assertEqual(reporter.status()["pending"], 1)

    def test_drain_is_fifo(self):
        api = FakeApi("down")
        reporter, _ = make_reporter(api)
        with self.assertLogs("dontclosethis.reporter", level="INFO"):
            for i, tag in enumerate(("ONE", "TWO", "THREE"), start=1):
                reporter.report_score(tag, i, 10 * i)
        self.assertEqual([p.player_name for p in reporter.pending()], ["ONE", "TWO", "THREE"])

        api.mode = "ok"
        api.requests.clear()
        self.assertEqual(reporter.on_online(), 3)
        self.assertEqual([b["playerName"] for b in api.bodies("/api/scores")],
                         ["ONE", "TWO", "THREE"])
        self.assertEqual(reporter.pending(), [])

    def test_drain_stops_at_first_offline(self):
        api = FakeApi("down")
        reporter, _ = make_reporter(api)
        with self.assertLogs("dontclosethis.reporter", level="INFO"):
            for tag in ("ONE", "TWO", "THREE"):
                reporter.report_score(tag, 1, 10)

        api.mode = "ok"
        api.requests.clear()
        api.fail_after = 1
        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            self.assertEqual(reporter.on_online(), 1)
        self.assertEqual([p.player_name for p in reporter.pending()], ["TWO", "THREE"])

    def test_rejected_entries_are_dropped_from_the_queue(self):
        store = MemoryStore()
        reporter, _ = make_reporter(FakeApi("reject"), store)
        reporter.enqueue(RemoteSubmission(player_name="AAA", level=5, time_elapsed=1))
        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            self.assertEqual(reporter.retry_pending(), 0)
        self.assertEqual(reporter.pending(), [])

    def test_malformed_queue_entries_are_dropped(self):
        store = MemoryStore()
        store.set_json(GameConfig.PENDING_KEY, [
            {"playerName": "AAA", "level": 2, "timeElapsed": 8},
            {"playerName": "", "level": 0},
        ])
        reporter, _ = make_reporter(FakeApi(), store)
        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            self.assertEqual(len(reporter.pending()), 1)

    def test_fetch_leaderboard(self):
        api = FakeApi()
        reporter, _ = make_reporter(api)
        snapshot = reporter.fetch_leaderboard(limit=5, player_tag="ace")
        self.assertEqual(snapshot.global_top[0].player_name, "ACE")
        self.assertEqual(snapshot.stats.total_scores, 4)
        self.assertEqual(api.requests[0].url.params["limit"], "5")
        self.assertEqual(api.requests[0].url.params["playerName"], "ACE")

    def test_analytics_bodies(self):
        api = FakeApi()
        reporter, _ = make_reporter(api)
        self.assertTrue(reporter.start_session("abc"))
        self.assertTrue(reporter.record_attempt(4, False, 7, session_id="abc"))
        self.assertEqual(api.bodies("/api/session"), [{"sessionId": "abc"}])
        self.assertEqual(api.bodies("/api/attempt"),
                         [{"sessionId": "abc", "level": 4, "success": False, "timeSpent": 7}])

    def test_install_session_id_is_stable(self):
        store = MemoryStore()
        reporter, _ = make_reporter(FakeApi(), store)
        sid = reporter.session_id()
        self.assertEqual(reporter.session_id(), sid)
        self.assertEqual(store.get(GameConfig.SESSION_ID_KEY), sid)

    def test_offline_defeat_still_saves_locally(self):
        store = MemoryStore()
        api = FakeApi("down")
        reporter, _ = make_reporter(api, store)
        seq = Sequencer(levels=[YesNoChallenge()], store=store,
                        scheduler=Scheduler(ManualClock()), reporter=reporter,
                        rng=random.Random(1))
        seq.start(player_tag="ACE")
        seq.board.click("NO")
        self.assertEqual(seq.state, DEFEAT)
        records = seq.scoreboard.records()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].player_tag, "ACE")

        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            seq.scheduler.advance(0)
        self.assertTrue(seq.last_submit.offline)
        pending = reporter.pending()
        self.assertEqual(len(pending), 1)
        self.assertEqual((pending[0].player_name, pending[0].level), ("ACE", 1))


# ============================================================
# Server
# ============================================================

class ServerTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self._saved_path = app.config["DB_PATH"]
        app.config["DB_PATH"] = os.path.join(self.tmp, "scores.db")
        app.config["TESTING"] = True
        self.client = app.test_client()

    def tearDown(self):
        app.config["DB_PATH"] = self._saved_path
        shutil.rmtree(self.tmp, ignore_errors=True)

    def submit(self, name, level, elapsed, **headers):
        return self.client.post("/api/scores", json={
            "playerName": name, "level": level, "timeElapsed": elapsed}, headers=headers)


class TestServer(ServerTestCase):

    def test_submit_and_read_back(self):
        resp = self.submit(" ace ", 5, 60)
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertEqual(data["rank"], 1)
        self.assertTrue(data["isTopTen"])
        self.assertEqual(data["message"], "You made the top 10!")

        data = self.client.get("/api/scores").get_json()
        self.assertEqual(data["globalTop"],
                         [{"rank": 1, "playerName": "ACE", "level": 5, "timeElapsed": 60}])
        self.assertEqual(data["stats"], {"totalPlayers": 1, "totalScores": 1})
        self.assertIsNone(data["playerRank"])

    def test_validation(self):
        cases = [
            ({"level": 3, "timeElapsed": 30}, "Player name is required"),
            ({"playerName": "ABCDEFGHIJK", "level": 3, "timeElapsed": 30},
             "Player name must be 1-10 characters"),
            ({"playerName": "   ", "level": 3, "timeElapsed": 30}, "Player name must be 1-10 characters"),
            ({"playerName": "AAA", "level": 0, "timeElapsed": 30}, "Invalid level (must be 1-20)"),
            ({"playerName": "AAA", "level": 21, "timeElapsed": 30}, "Invalid level (must be 1-20)"),
            ({"playerName": "AAA", "level": "3", "timeElapsed": 30}, "Invalid level (must be 1-20)"),
            ({"playerName": "AAA", "level": 3, "timeElapsed": -1}, "Invalid time elapsed"),
            ({"playerName": "AAA", "level": 3, "timeElapsed": 6.5}, "Invalid time elapsed"),
        ]
        for body, error in cases:
            resp = self.client.post("/api/scores", json=body)
            self.assertEqual(resp.status_code, 400, body)
            self.assertEqual(resp.get_json()["error"], error, body)

    def test_invalid_json(self):
        resp = self.client.post("/api/scores", data="nope", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "Invalid JSON")

    def test_too_fast(self):
        resp = self.submit("AAA", 5, 9)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json(), {"error": "Time too fast for this level", "minTime": 10})
        self.assertEqual(self.submit("AAA", 5, 10).status_code, 200)

    def test_best_run_per_player_and_rank(self):
        self.submit("AAA", 5, 100)
        self.submit("BBB", 7, 200)
        self.submit("CCC", 7, 150)
        self.submit("AAA", 3, 50)
        data = self.client.get("/api/scores?playerName=aaa").get_json()
        self.assertEqual([e["playerName"] for e in data["globalTop"]], ["CCC", "BBB", "AAA"])
        self.assertEqual(data["globalTop"][2]["level"], 5)
        self.assertEqual(data["playerRank"]["rank"], 3)
        self.assertEqual(data["stats"]["totalScores"], 4)
        self.assertEqual(data["stats"]["totalPlayers"], 3)

        resp = self.submit("DDD", 7, 160).get_json()
        self.assertEqual(resp["rank"], 2)

    def test_outside_top_ten(self):
        for i in range(10):
            self.submit(f"P{i}", 10, 100 + i)
        data = self.submit("LATE", 10, 500).get_json()
        self.assertEqual(data["rank"], 11)
        self.assertFalse(data["isTopTen"])
        self.assertEqual(data["message"], "Score saved!")
        top = self.client.get("/api/scores?limit=3").get_json()["globalTop"]
        self.assertEqual([e["playerName"] for e in top], ["P0", "P1", "P2"])
        self.assertEqual(len(self.client.get("/api/scores?limit=abc").get_json()["globalTop"]), 10)

    def test_cors(self):
        resp = self.submit("AAA", 2, 10, Origin="https://evil.example")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.get_json(), {"error": "Origin not allowed"})

        resp = self.client.get("/api/scores", headers={"Origin": "http://localhost:3000"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "http://localhost:3000")

        resp = self.client.open("/api/scores", method="OPTIONS", headers={
            "Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "http://localhost:3000")
        self.assertIn("POST", resp.headers["Access-Control-Allow-Methods"])
        self.assertEqual(resp.headers["Access-Control-Max-Age"], "86400")

        resp = self.client.open("/api/scores", method="OPTIONS", headers={
            "Origin": "https://evil.example", "Access-Control-Request-Method": "POST"})
        self.assertEqual(resp.status_code, 403)
        self.assertNotIn("Access-Control-Allow-Origin", resp.headers)

    def test_rate_limit_hook(self):
        self.assertEqual(self.submit("AAA", 2, 10).status_code, 200)
        with mock.patch("web_app.check_rate_limit", return_value=True) as limiter:
            resp = self.submit("BBB", 2, 10)
        self.assertEqual(resp.status_code, 429)
        self.assertIn("Rate limit", resp.get_json()["error"])
        limiter.assert_called_once()
        top = self.client.get("/api/scores").get_json()["globalTop"]
        self.assertEqual([e["playerName"] for e in top], ["AAA"])

    def test_failed_attempt_is_rolled_back(self):
        original = DatabaseConnection.execute

        def failing_stats(conn, sql, params=None):
            if "daily_stats" in sql:
                raise sqlite3.OperationalError("database is locked")
            return original(conn, sql, params)

        self.client.post("/api/session", json={"sessionId": "s1"})
        with mock.patch.object(DatabaseConnection, "execute", failing_stats), \
                self.assertLogs("dontclosethis.server", level="ERROR"):
            resp = self.client.post("/api/attempt", json={
                "sessionId": "s1", "level": 3, "success": True, "timeSpent": 4})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"error": "Failed to record attempt"})

        data = self.client.get("/api/analytics").get_json()
        self.assertEqual(data["levelStats"], [])
        self.assertEqual(data["overall"]["totalAttempts"], 0)

    def test_sessions_attempts_and_analytics(self):
        self.assertEqual(self.client.post("/api/session", json={"sessionId": "s1"})
                         .get_json(), {"success": True, "sessionId": "s1"})
        for level, success in ((1, True), (2, True), (2, False)):
            resp = self.client.post("/api/attempt", json={
                "sessionId": "s1", "level": level, "success": success, "timeSpent": 4})
            self.assertEqual(resp.status_code, 200)

        data = self.client.get("/api/analytics").get_json()
        by_level = {row["level"]: row for row in data["levelStats"]}
        self.assertEqual(by_level[2]["total_attempts"], 2)
        self.assertEqual(by_level[2]["successes"], 1)
        self.assertEqual(by_level[2]["failures"], 1)
        self.assertEqual(by_level[2]["success_rate"], 50.0)
        self.assertEqual(len(data["dailyStats"]), 2)
        self.assertEqual(data["overall"]["totalSessions"], 1)
        self.assertEqual(data["overall"]["totalAttempts"], 3)
        self.assertEqual(data["overall"]["completionRate"], 0)

        self.client.post("/api/attempt", json={
            "sessionId": "s1", "level": 17, "success": True, "timeSpent": 9})
        data = self.client.get("/api/analytics").get_json()
        self.assertEqual(data["overall"]["completionRate"], 100.0)

    def test_attempt_validation(self):
        cases = [
            ({"level": 1, "success": True, "timeSpent": 1}, "Session ID required"),
            ({"sessionId": "s", "level": 99, "success": True, "timeSpent": 1}, "Invalid level"),
            ({"sessionId": "s", "level": 1, "success": "yes", "timeSpent": 1},
             "Success must be boolean"),
            ({"sessionId": "s", "level": 1, "success": True, "timeSpent": -3}, "Invalid time spent"),
        ]
        for body, error in cases:
            resp = self.client.post("/api/attempt", json=body)
            self.assertEqual(resp.status_code, 400, body)
            self.assertEqual(resp.get_json()["error"], error, body)

    def test_session_without_id_gets_one(self):
        data = self.client.post("/api/session", json={}).get_json()
        self.assertTrue(data["success"])
        self.assertEqual(len(data["sessionId"]), 32)

    def test_health_and_errors(self):
        self.assertEqual(self.client.get("/api/health").get_json()["status"], "ok")
        resp = self.client.get("/api/nothing")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json(), {"error": "Not Found"})
        resp = self.client.delete("/api/scores")
        self.assertEqual(resp.status_code, 405)


# ============================================================
# Reporter ↔ server
# ============================================================

class TestEndToEnd(ServerTestCase):

    def test_reporter_against_server(self):
        client = httpx.Client(base_url=BASE, transport=httpx.WSGITransport(app=app))
        reporter = OutcomeReporter(MemoryStore(), base_url=BASE, enabled=True,
                                   client=client, clock=ManualClock())
        self.assertTrue(reporter.check_health())
        self.assertTrue(reporter.start_session("e2e"))
        self.assertTrue(reporter.record_attempt(1, True, 3, session_id="e2e"))

        result = reporter.report_score("ace", 4, 30, session_id="e2e")
        self.assertTrue(result.success)
        self.assertEqual(result.rank, 1)

        with self.assertLogs("dontclosethis.reporter", level="WARNING"):
            rejected = reporter.report_score("ace", 4, 1)
        self.assertFalse(rejected.success)
        self.assertEqual(rejected.min_time, 8)
        self.assertEqual(reporter.pending(), [])

        snapshot = reporter.fetch_leaderboard(player_tag="ace")
        self.assertEqual(snapshot.global_top[0].player_name, "ACE")
        self.assertEqual(snapshot.player_rank.rank, 1)
        client.close()


if __name__ == "__main__":
    unittest.main(verbosity=2)
