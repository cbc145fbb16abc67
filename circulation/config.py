import os


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "SQLALCHEMY_DATABASE_URI",
        "sqlite:///circulation.db"
    )

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-super-secret")

    # Mail: only used when NOTIFY_BY_MAIL is on
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "noreply@library.local")
    NOTIFY_BY_MAIL = _flag("NOTIFY_BY_MAIL")

    # Circulation rules
    APPOINTMENT_GRACE_HOURS = float(os.getenv("APPOINTMENT_GRACE_HOURS", "2"))
    RESERVATION_HOLD_DAYS = int(os.getenv("RESERVATION_HOLD_DAYS", "7"))
    LOAN_DAYS = int(os.getenv("LOAN_DAYS", "14"))
    RENEWAL_DAYS = int(os.getenv("RENEWAL_DAYS", "14"))
    MAX_BOOKS_PER_USER = int(os.getenv("MAX_BOOKS_PER_USER", "5"))

    # Late fee flag (never collected here)
    LATE_FEE_PER_DAY = os.getenv("LATE_FEE_PER_DAY", "1.00")
    MAX_LATE_FEE = os.getenv("MAX_LATE_FEE", "50.00")
    MAX_LATE_DAYS = int(os.getenv("MAX_LATE_DAYS", "90"))

    # Background jobs
    SCHEDULER_ENABLED = _flag("SCHEDULER_ENABLED", "1")
    SWEEP_INTERVAL_MINUTES = int(os.getenv("SWEEP_INTERVAL_MINUTES", "5"))
    OVERDUE_CHECK_INTERVAL_MINUTES = int(os.getenv("OVERDUE_CHECK_INTERVAL_MINUTES", "60"))
    CRON_SECRET = os.getenv("CRON_SECRET", "")

    # write-conflict retries per transaction
    TX_MAX_RETRIES = int(os.getenv("TX_MAX_RETRIES", "3"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    MAIL_SUPPRESS_SEND = True
    NOTIFY_BY_MAIL = False
    SCHEDULER_ENABLED = False
    CRON_SECRET = "test-cron-secret"
