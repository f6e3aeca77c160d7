"""
DONTCLOSETHIS — Leaderboard & Analytics Server

Flask JSON API consumed by engine/reporter.py:

    POST /api/scores      submit a finished run
    GET  /api/scores      global top + optional player rank  (?limit=&playerName=)
    POST /api/session     register a play session
    POST /api/attempt     record one level attempt
    GET  /api/analytics   per-level and daily stats
    GET  /api/health      liveness

Browsers are limited to ALLOWED_ORIGINS and flask-cors answers their
preflights; requests with no Origin header (CLI clients, curl) are accepted.
"""
import hashlib, logging, os, time
from datetime import datetime, timezone

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv
load_dotenv()

from config.settings import ServerConfig
from config.database import close_db_on_teardown, execute_db, get_db, init_db, query_db

# ── Structured logging ──
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("dontclosethis.server")

app = Flask(__name__)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # Trust the reverse proxy's X-Forwarded-*
app.config["DB_PATH"] = ServerConfig.DB_PATH
app.config["ALLOWED_ORIGINS"] = list(ServerConfig.ALLOWED_ORIGINS)
app.config["MIN_TIME_PER_LEVEL"] = ServerConfig.MIN_TIME_PER_LEVEL
app.config["MAX_LEVELS"] = ServerConfig.MAX_LEVELS
app.config["MAX_CONTENT_LENGTH"] = 64 * 1024

CORS(app, origins=app.config["ALLOWED_ORIGINS"], methods=["GET", "POST", "OPTIONS"],
     allow_headers=["Content-Type"], max_age=86400)

app.teardown_appcontext(close_db_on_teardown)

_initialized_paths: set = set()

# Best run per player: highest level, then fastest time at that level.
BEST_SCORES_SQL = """
WITH best_level AS (
    SELECT player_name, MAX(level) AS level FROM high_scores GROUP BY player_name
)
SELECT h.player_name, b.level, MIN(h.time_elapsed) AS time_elapsed
FROM high_scores h
JOIN best_level b ON h.player_name = b.player_name AND h.level = b.level
GROUP BY h.player_name, b.level
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


def _hash_ip(ip: str) -> str:
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


def _client_ip() -> str:
    return request.headers.get("CF-Connecting-IP") or request.remote_addr or "unknown"


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_rate_limit(ip_hash: str) -> bool:
    """True when `ip_hash` should be refused with a 429.

    Only the hook exists; every caller is allowed.
    """
    return False


def _rank_for(level: int, time_elapsed: int) -> int:
    row = query_db(
        f"SELECT COUNT(*) AS better FROM ({BEST_SCORES_SQL}) best "
        "WHERE level > %s OR (level = %s AND time_elapsed < %s)",
        [level, level, time_elapsed], one=True)
    return (row["better"] if row else 0) + 1


# ═══════════════════════════════════════════════════════════════
# Request hooks: schema, origin check
# ═══════════════════════════════════════════════════════════════

@app.before_request
def _ensure_schema():
    path = app.config["DB_PATH"]
    if path not in _initialized_paths:
        init_db(path)
        _initialized_paths.add(path)


@app.before_request
def _check_origin():
    origin = request.headers.get("Origin")
    if origin is not None and origin not in app.config["ALLOWED_ORIGINS"]:
        logger.warning(f"Rejected request from origin {origin}")
        return jsonify({"error": "Origin not allowed"}), 403


# ═══════════════════════════════════════════════════════════════
# Scores
# ═══════════════════════════════════════════════════════════════

@app.route("/api/scores", methods=["POST"])
def api_submit_score():
    """API: Record a finished run and return its global rank.

    POST body (JSON):
        playerName  — 1-10 characters, stored trimmed and uppercased
        level       — level reached, 1..MAX_LEVELS
        timeElapsed — whole seconds, at least level x MIN_TIME_PER_LEVEL
        sessionId   — optional
    Returns:
        success, rank, isTopTen, message
    """
    ip_hash = _hash_ip(_client_ip())
    if check_rate_limit(ip_hash):
        return jsonify({"error": "Rate limit exceeded. Please wait before submitting again."}), 429

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON"}), 400

    player_name = data.get("playerName")
    level = data.get("level")
    time_elapsed = data.get("timeElapsed")
    max_levels = app.config["MAX_LEVELS"]

    if not player_name or not isinstance(player_name, str):
        return jsonify({"error": "Player name is required"}), 400
    player_name = player_name.strip().upper()
    if not 1 <= len(player_name) <= 10:
        return jsonify({"error": "Player name must be 1-10 characters"}), 400
    if not _is_int(level) or not 1 <= level <= max_levels:
        return jsonify({"error": f"Invalid level (must be 1-{max_levels})"}), 400
    if not _is_int(time_elapsed) or time_elapsed < 0:
        return jsonify({"error": "Invalid time elapsed"}), 400

    min_time = level * app.config["MIN_TIME_PER_LEVEL"]
    if time_elapsed < min_time:
        logger.info(f"Rejected implausible score: {player_name} level {level} in {time_elapsed}s")
        return jsonify({"error": "Time too fast for this level", "minTime": min_time}), 400

    try:
        execute_db(
            "INSERT INTO high_scores (player_name, level, time_elapsed, timestamp, ip_hash, session_id) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            [player_name, level, time_elapsed, _now_ms(), ip_hash,
             str(data.get("sessionId") or "unknown")])
        rank = _rank_for(level, time_elapsed)
    except Exception as e:
        logger.error(f"Failed to save score: {e}", exc_info=True)
        return jsonify({"error": "Failed to save score"}), 500

    is_top_ten = rank <= 10
    logger.info(f"Score: {player_name} level {level} in {time_elapsed}s, rank #{rank}")
    return jsonify({
        "success": True,
        "rank": rank,
        "isTopTen": is_top_ten,
        "message": "You made the top 10!" if is_top_ten else "Score saved!",
    })


@app.route("/api/scores", methods=["GET"])
def api_get_scores():
    """API: Global leaderboard (best run per player) and stats."""
    try:
        limit = int(request.args.get("limit", "10"))
    except ValueError:
        limit = 10
    limit = max(1, min(limit, ServerConfig.MAX_SCORES_RETURNED))
    player_name = (request.args.get("playerName") or "").strip().upper()

    try:
        top = query_db(
            f"SELECT * FROM ({BEST_SCORES_SQL}) best "
            "ORDER BY level DESC, time_elapsed ASC, player_name ASC LIMIT %s", [limit])
        global_top = [
            {"rank": i + 1, "playerName": row["player_name"],
             "level": row["level"], "timeElapsed": row["time_elapsed"]}
            for i, row in enumerate(top)
        ]

        player_rank = None
        if player_name:
            mine = query_db(f"SELECT * FROM ({BEST_SCORES_SQL}) best WHERE player_name = %s",
                            [player_name], one=True)
            if mine:
                player_rank = {
                    "rank": _rank_for(mine["level"], mine["time_elapsed"]),
                    "playerName": player_name,
                    "level": mine["level"],
                    "timeElapsed": mine["time_elapsed"],
                }

        stats = query_db(
            "SELECT COUNT(DISTINCT player_name) AS total_players, COUNT(*) AS total_scores "
            "FROM high_scores", one=True) or {}
    except Exception as e:
        logger.error(f"Failed to fetch scores: {e}", exc_info=True)
        return jsonify({"error": "Failed to fetch scores"}), 500

    return jsonify({
        "globalTop": global_top,
        "playerRank": player_rank,
        "stats": {
            "totalPlayers": stats.get("total_players") or 0,
            "totalScores": stats.get("total_scores") or 0,
        },
    })


# ═══════════════════════════════════════════════════════════════
# Analytics
# ═══════════════════════════════════════════════════════════════

@app.route("/api/session", methods=["POST"])
def api_start_session():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON"}), 400
    session_id = str(data.get("sessionId") or "") or os.urandom(16).hex()
    now = _now_ms()
    try:
        execute_db(
            "INSERT INTO game_sessions (session_id, started_at, ip_hash) VALUES (%s, %s, %s) "
            "ON CONFLICT(session_id) DO UPDATE SET started_at = %s",
            [session_id, now, _hash_ip(_client_ip()), now])
    except Exception as e:
        logger.error(f"Session error: {e}", exc_info=True)
        return jsonify({"error": "Failed to start session"}), 500
    return jsonify({"success": True, "sessionId": session_id})


@app.route("/api/attempt", methods=["POST"])
def api_record_attempt():
    """API: Record one level attempt and roll it into today's stats."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON"}), 400

    session_id = data.get("sessionId")
    level = data.get("level")
    success = data.get("success")
    time_spent = data.get("timeSpent")
    if not session_id:
        return jsonify({"error": "Session ID required"}), 400
    if not _is_int(level) or not 1 <= level <= app.config["MAX_LEVELS"]:
        return jsonify({"error": "Invalid level"}), 400
    if not isinstance(success, bool):
        return jsonify({"error": "Success must be boolean"}), 400
    if not _is_int(time_spent) or time_spent < 0:
        return jsonify({"error": "Invalid time spent"}), 400

    ok, bad = (1, 0) if success else (0, 1)
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    db = get_db()
    try:
        db.execute(
            "INSERT INTO level_attempts (session_id, level, success, time_spent, timestamp, ip_hash) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            [str(session_id), level, ok, time_spent, _now_ms(), _hash_ip(_client_ip())])
        if success:
            db.execute(
                "UPDATE game_sessions SET max_level_reached = MAX(max_level_reached, %s) "
                "WHERE session_id = %s", [level + 1, str(session_id)])
        db.execute(
            "INSERT INTO daily_stats (date, level, attempts, successes, failures) "
            "VALUES (%s, %s, 1, %s, %s) "
            "ON CONFLICT(date, level) DO UPDATE SET attempts = attempts + 1, "
            "successes = successes + %s, failures = failures + %s",
            [today, level, ok, bad, ok, bad])
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Attempt error: {e}", exc_info=True)
        return jsonify({"error": "Failed to record attempt"}), 500
    return jsonify({"success": True})


@app.route("/api/analytics")
def api_analytics():
    try:
        level_stats = query_db(
            "SELECT level, COUNT(*) AS total_attempts, SUM(success) AS successes, "
            "COUNT(*) - SUM(success) AS failures, "
            "ROUND(100.0 * SUM(success) / COUNT(*), 1) AS success_rate, "
            "ROUND(AVG(time_spent)) AS avg_time "
            "FROM level_attempts GROUP BY level ORDER BY level")
        daily_stats = query_db(
            "SELECT date, level, attempts, successes, failures FROM daily_stats "
            "WHERE date >= date('now', '-7 days') ORDER BY date DESC, level ASC")
        overall = query_db(
            "SELECT COUNT(DISTINCT session_id) AS total_sessions, COUNT(*) AS total_attempts, "
            "SUM(success) AS total_successes FROM level_attempts", one=True) or {}
        completion = query_db(
            "SELECT COUNT(*) AS total_sessions, "
            "SUM(CASE WHEN max_level_reached > %s THEN 1 ELSE 0 END) AS completions "
            "FROM game_sessions", [ServerConfig.GAME_LEVELS], one=True) or {}
    except Exception as e:
        logger.error(f"Analytics error: {e}", exc_info=True)
        return jsonify({"error": "Failed to fetch analytics"}), 500

    sessions = completion.get("total_sessions") or 0
    rate = round(100.0 * (completion.get("completions") or 0) / sessions, 1) if sessions else 0
    return jsonify({
        "levelStats": level_stats,
        "dailyStats": daily_stats,
        "overall": {
            "totalSessions": overall.get("total_sessions") or 0,
            "totalAttempts": overall.get("total_attempts") or 0,
            "totalSuccesses": overall.get("total_successes") or 0,
            "completionRate": rate,
        },
    })


@app.route("/api/health")
def api_health():
    return jsonify({"status": "ok", "timestamp": _now_ms()})


# ─── ERRORS ───

@app.errorhandler(404)
def error_404(e):
    return jsonify({"error": "Not Found"}), 404


@app.errorhandler(405)
def error_405(e):
    return jsonify({"error": "Method not allowed"}), 405


@app.errorhandler(500)
def error_500(e):
    logger.error(f"500 error: {e}", exc_info=True)
    return jsonify({"error": "Internal Server Error"}), 500


if __name__ == "__main__":
    port = ServerConfig.PORT
    init_db(app.config["DB_PATH"])
    _initialized_paths.add(app.config["DB_PATH"])
    logger.info(f"DONTCLOSETHIS leaderboard — http://localhost:{port}")
    app.run(debug=os.getenv("FLASK_DEBUG", "false").lower() == "true", host="0.0.0.0", port=port)
