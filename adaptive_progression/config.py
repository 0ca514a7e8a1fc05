"""Configuration management for the adaptive progression engine."""

import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./adaptive_progression.db")

    # Application
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "default")
    DEFAULT_SPORT: str = os.getenv("DEFAULT_SPORT", "baseball")

    # Daily Drill Selection
    RECENCY_MAX_DAYS: int = int(os.getenv("RECENCY_MAX_DAYS", "14"))  # days until recency saturates
    TARGET_ACCURACY: float = float(os.getenv("TARGET_ACCURACY", "85"))  # percent
    UNKNOWN_ACCURACY_SCORE: float = float(os.getenv("UNKNOWN_ACCURACY_SCORE", "25"))
    MAX_PERFORMANCE_SCORE: float = float(os.getenv("MAX_PERFORMANCE_SCORE", "50"))
    NEVER_DONE_BOOST: float = float(os.getenv("NEVER_DONE_BOOST", "100"))
    VARIETY_BONUS: float = float(os.getenv("VARIETY_BONUS", "30"))
    TIER_BONUS: float = float(os.getenv("TIER_BONUS", "25"))
    DAILY_DRILL_COUNT: int = int(os.getenv("DAILY_DRILL_COUNT", "4"))
    NEEDS_PRACTICE_ACCURACY: float = float(os.getenv("NEEDS_PRACTICE_ACCURACY", "70"))
    DUE_REVIEW_DAYS: int = int(os.getenv("DUE_REVIEW_DAYS", "7"))
    MAX_DRILL_RECOMMENDATIONS: int = int(os.getenv("MAX_DRILL_RECOMMENDATIONS", "5"))

    # Speed Progression
    SESSION_COOLDOWN_HOURS: float = float(os.getenv("SESSION_COOLDOWN_HOURS", "12"))
    PLATEAU_THRESHOLD_SESSIONS: int = int(os.getenv("PLATEAU_THRESHOLD_SESSIONS", "4"))
    BREAK_RPE_THRESHOLD: int = int(os.getenv("BREAK_RPE_THRESHOLD", "8"))
    BREAK_SLEEP_THRESHOLD: int = int(os.getenv("BREAK_SLEEP_THRESHOLD", "2"))
    BREAK_PAIN_AREAS: int = int(os.getenv("BREAK_PAIN_AREAS", "3"))
    BREAK_DECLINE_RATIO: float = float(os.getenv("BREAK_DECLINE_RATIO", "1.05"))  # 5% slower than PB
    BREAK_DECLINE_DISTANCES: int = int(os.getenv("BREAK_DECLINE_DISTANCES", "2"))
    SESSION_HISTORY_LIMIT: int = int(os.getenv("SESSION_HISTORY_LIMIT", "50"))
    TREND_WINDOW_SESSIONS: int = int(os.getenv("TREND_WINDOW_SESSIONS", "5"))
    STREAK_GAP_DAYS: int = int(os.getenv("STREAK_GAP_DAYS", "2"))

    # Regulation Score - component weights (must sum to 1.0)
    REGULATION_WEIGHTS = {
        "sleep": float(os.getenv("REGULATION_WEIGHT_SLEEP", "0.15")),
        "stress": float(os.getenv("REGULATION_WEIGHT_STRESS", "0.10")),
        "readiness": float(os.getenv("REGULATION_WEIGHT_READINESS", "0.10")),
        "restriction": float(os.getenv("REGULATION_WEIGHT_RESTRICTION", "0.15")),
        "load": float(os.getenv("REGULATION_WEIGHT_LOAD", "0.15")),
        "fuel": float(os.getenv("REGULATION_WEIGHT_FUEL", "0.10")),
        "calendar": float(os.getenv("REGULATION_WEIGHT_CALENDAR", "0.25")),
    }

    # Neutral values used when a component has no input
    REGULATION_DEFAULTS = {
        "sleep": 50,
        "stress": 60,
        "readiness": 50,
        "restriction": 75,
        "load": 75,
        "fuel": 50,
        "calendar": 100,
    }

    RESTRICTION_SCORES = {"full": 100, "limited": 60, "pain": 20}
    RESTRICTION_UNKNOWN_SCORE: int = 60

    # (deviation lower bound, score) checked in order; deviation must exceed the bound
    LOAD_DEVIATION_BANDS = [(0.5, 20), (0.3, 45), (0.1, 65)]
    LOAD_RECOVERING_DEVIATION: float = -0.2
    LOAD_RECOVERING_SCORE: int = 90
    LOAD_SHORT_WINDOW_DAYS: int = 3
    LOAD_LONG_WINDOW_DAYS: int = 7

    # Days until competitive event -> calendar score
    CALENDAR_BUFFER_SCORES = {0: 40, 1: 40, 2: 60, 3: 80}
    CALENDAR_LOOKAHEAD_DAYS: int = 3
    COMPETITIVE_EVENT_KEYWORDS = ("game", "competition", "match")

    # Energy target placeholder: flat calories per pound of body weight
    CALORIES_PER_LB: float = float(os.getenv("CALORIES_PER_LB", "15"))
    DEFAULT_BODY_WEIGHT_LBS: float = float(os.getenv("DEFAULT_BODY_WEIGHT_LBS", "170"))

    REGULATION_GREEN_THRESHOLD: int = int(os.getenv("REGULATION_GREEN_THRESHOLD", "72"))
    REGULATION_YELLOW_THRESHOLD: int = int(os.getenv("REGULATION_YELLOW_THRESHOLD", "50"))

    # Narrative generation (optional)
    NARRATIVE_BACKEND: str = os.getenv("NARRATIVE_BACKEND", "none")  # none, ollama, claude
    OLLAMA_URL: str = os.getenv("OLLAMA_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
    ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
    CLAUDE_MODEL: str = os.getenv("CLAUDE_MODEL", "claude-3-5-sonnet-20241022")
    NARRATIVE_TIMEOUT: int = int(os.getenv("NARRATIVE_TIMEOUT", "60"))

    @classmethod
    def get_regulation_weight(cls, component: str) -> float:
        """Get weight for a regulation component."""
        return cls.REGULATION_WEIGHTS.get(component, 0.0)

    @classmethod
    def get_session_cooldown_seconds(cls) -> float:
        """Get the lock window after a speed session in seconds."""
        return cls.SESSION_COOLDOWN_HOURS * 3600

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration consistency."""
        total = sum(cls.REGULATION_WEIGHTS.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Regulation weights must sum to 1.0, got {total:.3f}")

        if cls.REGULATION_YELLOW_THRESHOLD >= cls.REGULATION_GREEN_THRESHOLD:
            raise ValueError("REGULATION_YELLOW_THRESHOLD must be below REGULATION_GREEN_THRESHOLD")

        if cls.DAILY_DRILL_COUNT < 1:
            raise ValueError("DAILY_DRILL_COUNT must be at least 1")

        if cls.RECENCY_MAX_DAYS < 1:
            raise ValueError("RECENCY_MAX_DAYS must be at least 1")

        if cls.NARRATIVE_BACKEND not in ("none", "ollama", "claude"):
            raise ValueError(f"Unknown NARRATIVE_BACKEND: {cls.NARRATIVE_BACKEND}")

        return True


config = Config()
