"""
DONTCLOSETHIS — Configuration

All tunables in one place, grouped by concern. Values that differ between
deployments come from the environment (.env is loaded at import); per-level
gameplay constants are plain class attributes.

    GameConfig    — storage keys, player tag rules, client-side paths
    LevelConfig   — per-challenge constants
    ApiConfig     — remote leaderboard client
    ServerConfig  — leaderboard server (web_app.py)
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ============================================================
# Client / session
# ============================================================

class GameConfig:
    # --- Storage keys (shared with the landing page) ---
    STORAGE_KEY = "dontCloseThis"          # progress: {attempts, highestLevel}
    PLAYER_KEY = "playerInitials"
    SCORES_KEY = "highScores"
    PENDING_KEY = "pendingSubmissions"
    SESSION_ID_KEY = "gameSessionId"
    JUST_DIED_KEY = "justDied"
    HAS_WON_KEY = "hasWon"
    VICTORY_TIME_KEY = "victoryTime"
    TOTAL_LEVELS_KEY = "totalLevels"
    TOP_TEN_KEY = "madeTopTen"
    GLOBAL_RANK_KEY = "lastGlobalRank"

    DEFAULT_INITIALS = "AAA"
    MIN_NAME_LENGTH = 1
    MAX_NAME_LENGTH = 10
    MAX_DISPLAY = 10                       # local leaderboard rows

    ELAPSED_TICK = 1.0                     # seconds between elapsed-time display updates
    DEBUG_TIME_STEP = 10                   # seconds added/removed by the debug clock buttons

    STATE_DB_PATH = os.getenv("STATE_DB_PATH", str(BASE_DIR / "dontclosethis_state.db"))
    DEBUG_ENABLED = os.getenv("DEBUG_PANEL", "false").lower() == "true"


# ============================================================
# Per-level constants
# ============================================================

class LevelConfig:
    PONG = {
        "WIDTH": 500, "HEIGHT": 400,
        "PADDLE_WIDTH": 100, "PADDLE_HEIGHT": 15, "PADDLE_OFFSET": 30,
        "BALL_RADIUS": 8, "BALL_SPEED": 4,
        "HITS_TO_WIN": 10, "SPEEDUP_EVERY": 3, "SPEEDUP": 1.1,
        "WIN_DELAY": 0.5,
    }
    FROGS = {"PIECES": 3, "WIN_DELAY": 1.5}
    LIGHTS_OUT = {"GRID_SIZE": 4, "MIN_TOGGLES": 5, "MAX_TOGGLES": 8, "WIN_DELAY": 1.0}
    PIPE_ROTATION = {
        "GRID_SIZE": 10, "CELL_SIZE": 50, "PATH_ATTEMPTS": 50, "PATH_STRETCH": 1.5,
        "STRAIGHT_PROBABILITY": 0.6, "MIN_SCRAMBLE": 10, "MAX_SCRAMBLE": 12,
        "WIN_DELAY": 1.0,
    }
    MANY_BUTTONS = {
        "MIN_BUTTONS": 25, "MAX_BUTTONS": 40, "TIMER_DURATION": 3.0, "TICK": 0.05,
        "MIN_WIDTH": 90, "MAX_WIDTH": 130,
        "BUTTON_COLORS": ["#ff4444", "#4444ff", "#ff69b4", "#00ff00",
                          "#ffff00", "#8b00ff", "#00ffff", "#ff8800"],
    }
    NUMBERED_BUTTONS = {
        "BUTTON_COUNT": 10,
        "POSITION_WORDS": ["FIRST", "SECOND", "THIRD", "FOURTH", "FIFTH",
                           "SIXTH", "SEVENTH", "EIGHTH", "NINTH", "TENTH"],
    }
    TRAFFIC_LIGHT = {
        "MIN_CYCLE_SPEED": 0.5, "MAX_CYCLE_SPEED": 1.2,
        "MIN_COLORS": 3, "MAX_COLORS": 5,
        "COLOR_POOL": [("RED", "#ff0000"), ("BLUE", "#0000ff"), ("GREEN", "#00ff00"),
                       ("YELLOW", "#ffff00"), ("PURPLE", "#8b00ff"), ("ORANGE", "#ff8800"),
                       ("PINK", "#ff69b4"), ("CYAN", "#00ffff")],
    }
    MATH_QUIZ = {"MIN_NUMBER": 10, "MAX_NUMBER": 50, "ANSWER_COUNT": 6, "VARIATION": 8}
    PRECISE_TIMING = {
        "MIN_TARGET_START": 8.0, "MAX_TARGET_START": 12.0,
        "WINDOW_SIZE": 1.0, "TIMER_HIDE_BEFORE": 5.0, "TICK": 0.1,
        "WIN_DELAY": 1.0, "FAIL_DELAY": 1.5,
    }
    SEQUENCE = {"LETTERS": ["A", "B", "C", "D", "E"]}
    CUP_MONTE = {
        "CUPS": 3, "LIFT_AT": 0.5, "SHOW_DURATION": 2.5,
        "SHUFFLE_COUNT": 10, "SHUFFLE_SPEED": 0.8, "REVEAL_DELAY": 1.5,
        "POSITIONS": ["LEFT", "MIDDLE", "RIGHT"],
    }
    PATTERN_MEMORY = {
        "PATTERN_LENGTH": 6, "CHARACTERS": ["A", "B", "C", "D", "E", "F"],
        "OPTION_COUNT": 8, "DISPLAY_DURATION": 2.5,
    }
    TRIPWIRE_MAZE = {
        "WIDTH": 1280, "HEIGHT": 720, "PATH_WIDTH": 60, "SEGMENTS": 6,
        "ZONE_WIDTH": 80, "ZONE_HEIGHT": 120, "MARGIN": 50,
    }
    DOG_BREED = {
        "ANSWER_COUNT": 6,
        "API_URL": os.getenv("DOG_API_URL", "https://dog.ceo/api/breeds/image/random"),
        "ALL_BREEDS_URL": os.getenv("DOG_BREEDS_URL", "https://dog.ceo/api/breeds/list/all"),
        "TIMEOUT": 5.0,
    }


# ============================================================
# Remote leaderboard client
# ============================================================

class ApiConfig:
    BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8787").rstrip("/")
    ENABLED = os.getenv("API_ENABLED", "false").lower() == "true"
    CHECK_INTERVAL = float(os.getenv("API_CHECK_INTERVAL", "60"))   # seconds of cooldown after a failure
    TIMEOUT = float(os.getenv("API_TIMEOUT", "5"))


# ============================================================
# Leaderboard server
# ============================================================

class ServerConfig:
    ALLOWED_ORIGINS = _csv(os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"))
    MAX_SCORES_RETURNED = int(os.getenv("MAX_SCORES_RETURNED", "50"))
    MIN_TIME_PER_LEVEL = int(os.getenv("MIN_TIME_PER_LEVEL", "2"))     # plausibility floor, seconds per level
    MAX_LEVELS = int(os.getenv("MAX_LEVELS", "20"))
    DB_PATH = os.getenv("DB_PATH", "dontclosethis_scores.db")
    GAME_LEVELS = int(os.getenv("GAME_LEVELS", "17"))                 # a session past this level completed the game
    PORT = int(os.getenv("PORT", "8787"))
