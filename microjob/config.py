import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///microjob.db")

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_EXPIRES", 86400)))

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    # shared secret for the external cron caller
    CRON_SECRET = os.getenv("CRON_SECRET")

    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", True)
    RESERVATION_SWEEP_MINUTES = int(os.getenv("RESERVATION_SWEEP_MINUTES", 5))
    WORK_PROOF_SWEEP_MINUTES = int(os.getenv("WORK_PROOF_SWEEP_MINUTES", 10))

    # seconds an admin settings snapshot is served from memory
    SETTINGS_CACHE_TTL = int(os.getenv("SETTINGS_CACHE_TTL", 60))

    RESERVATION_VIOLATION_THRESHOLD = int(os.getenv("RESERVATION_VIOLATION_THRESHOLD", 2))
    RESERVATION_VIOLATION_WINDOW_HOURS = int(os.getenv("RESERVATION_VIOLATION_WINDOW_HOURS", 24))


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    CRON_SECRET = "cron-test-secret"
    SCHEDULER_ENABLED = False
    SETTINGS_CACHE_TTL = 60


CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
