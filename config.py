"""
Runtime settings read from the environment (and an optional .env file).
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Database
    database_uri: str = field(default_factory=lambda: os.getenv(
        "LIBRARY_DATABASE_URI",
        f"sqlite:///{os.path.join(basedir, 'data/library.sqlite')}",
    ))

    # Flask
    secret_key: str = field(default_factory=lambda: os.getenv("LIBRARY_SECRET_KEY", "dev-secret-key"))
    log_level: str = field(default_factory=lambda: os.getenv("LIBRARY_LOG_LEVEL", "INFO"))

    # Open Library summary prefill
    fetch_summaries: bool = field(default_factory=lambda: _flag("LIBRARY_FETCH_SUMMARIES", "True"))
    openlibrary_timeout: float = field(
        default_factory=lambda: float(os.getenv("LIBRARY_OPENLIBRARY_TIMEOUT", "8"))
    )

    def to_flask(self) -> dict:
        """Map the settings onto Flask config keys."""
        return {
            "SQLALCHEMY_DATABASE_URI": self.database_uri,
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "SECRET_KEY": self.secret_key,
            "LOG_LEVEL": self.log_level,
            "FETCH_SUMMARIES": self.fetch_summaries,
            "OPENLIBRARY_TIMEOUT": self.openlibrary_timeout,
        }
