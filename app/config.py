"""
Configuration for the invoice matching system.
"""

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import os
from typing import Optional, Tuple


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_range(name: str, default: Tuple[float, float]) -> Tuple[float, float]:
    """Parse a "low,high" range from the environment."""
    raw = os.getenv(name)
    if not raw:
        return default
    low, high = raw.split(",")
    return float(low), float(high)


class Config:
    """Base configuration."""

    # Scenario tuning (demo values, not a contract)
    QUANTITY_VARIANCE_RANGE: Tuple[float, float] = _env_range("QUANTITY_VARIANCE_RANGE", (0.95, 1.10))
    PRICE_VARIANCE_RANGE: Tuple[float, float] = _env_range("PRICE_VARIANCE_RANGE", (0.98, 1.08))
    TAX_RATE: float = _env_float("TAX_RATE", 0.08)
    SPLIT_COUNT: int = int(os.getenv("SPLIT_COUNT", "3"))
    BUNDLE_SIZE: int = int(os.getenv("BUNDLE_SIZE", "2"))
    PARTIAL_DELIVERY_RATIO: float = _env_float("PARTIAL_DELIVERY_RATIO", 0.6)

    # Issue flagging thresholds (percent)
    QUANTITY_ISSUE_THRESHOLD: float = _env_float("QUANTITY_ISSUE_THRESHOLD", 5.0)
    PRICE_ISSUE_THRESHOLD: float = _env_float("PRICE_ISSUE_THRESHOLD", 3.0)
    HIGH_SEVERITY_THRESHOLD: float = _env_float("HIGH_SEVERITY_THRESHOLD", 8.0)

    # Matching confidence
    EXACT_MATCH_CONFIDENCE: float = 1.0
    FUZZY_MATCH_CONFIDENCE: float = _env_float("FUZZY_MATCH_CONFIDENCE", 0.85)
    EXCEPTION_CONFIDENCE: float = _env_float("EXCEPTION_CONFIDENCE", 0.85)
    VENDOR_MATCH_THRESHOLD: float = 0.80  # rapidfuzz partial ratio, 0-1

    # Seed data
    SEED_PO_COUNT: int = int(os.getenv("SEED_PO_COUNT", "30"))
    SEED_RANDOM_SEED: Optional[int] = int(os.environ["SEED_RANDOM_SEED"]) if os.getenv("SEED_RANDOM_SEED") else None
    GOODS_RECEIPT_COUNT: int = int(os.getenv("GOODS_RECEIPT_COUNT", "20"))
    RECEIVED_QUANTITY_RANGE: Tuple[float, float] = _env_range("RECEIVED_QUANTITY_RANGE", (0.95, 1.05))
    CURRENCY: str = "USD"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = os.getenv("LOG_FILE", "invoice_matching.log")

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_DEBUG: bool = os.getenv("API_DEBUG", "false").lower() == "true"

    # Workflow Configuration
    GRAPH_RECURSION_LIMIT: int = 25
    QUERY_RESULT_LIMIT: int = 10

    @classmethod
    def validate(cls) -> None:
        """Validate configuration."""
        for name in ("QUANTITY_VARIANCE_RANGE", "PRICE_VARIANCE_RANGE", "RECEIVED_QUANTITY_RANGE"):
            low, high = getattr(cls, name)
            if low <= 0 or high <= low:
                raise ValueError(f"{name} must satisfy 0 < low < high, got ({low}, {high})")

        for name in ("QUANTITY_ISSUE_THRESHOLD", "PRICE_ISSUE_THRESHOLD", "HIGH_SEVERITY_THRESHOLD"):
            if getattr(cls, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if cls.SPLIT_COUNT < 2:
            raise ValueError("SPLIT_COUNT must be at least 2")

        if cls.BUNDLE_SIZE < 2:
            raise ValueError("BUNDLE_SIZE must be at least 2")

        if not 0.0 < cls.PARTIAL_DELIVERY_RATIO <= 1.0:
            raise ValueError(f"Invalid PARTIAL_DELIVERY_RATIO: {cls.PARTIAL_DELIVERY_RATIO}")

        if cls.GOODS_RECEIPT_COUNT < 0:
            raise ValueError("GOODS_RECEIPT_COUNT must not be negative")

        if cls.TAX_RATE < 0:
            raise ValueError("TAX_RATE must not be negative")


class DevelopmentConfig(Config):
    """Development configuration."""
    LOG_LEVEL = "DEBUG"
    API_DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    LOG_LEVEL = "INFO"
    API_DEBUG = False


class TestConfig(Config):
    """Test configuration."""
    LOG_LEVEL = "DEBUG"
    SEED_RANDOM_SEED = 42


def get_config(env: str = None) -> Config:
    """Get configuration based on environment."""
    if env is None:
        env = os.getenv("ENV", "development").lower()

    if env == "production":
        config = ProductionConfig()
    elif env == "test":
        config = TestConfig()
    else:
        config = DevelopmentConfig()

    # Validate configuration on creation
    config.validate()
    return config
