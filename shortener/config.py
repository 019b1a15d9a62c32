import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Explicitly load .env from project root (parent of shortener/)
ENV_PATH = Path(__file__).parent.parent / ".env"


def _split_origins(raw: str) -> list[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


@dataclass
class Settings:
    database_url: str
    environment: str = "dev"
    database_name: str = "urlshortener"
    host: str = "0.0.0.0"
    port: int = 5000
    base_url: str = ""
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    admin_api_key: str = ""
    log_level: str = "INFO"

    def __post_init__(self):
        base = self.base_url or f"http://localhost:{self.port}"
        self.base_url = base.rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(ENV_PATH)
        environment = os.getenv("ENVIRONMENT", "dev")
        database_name = os.getenv("DATABASE_NAME", "urlshortener")

        # Dev: SQLite (zero config), Prod: DATABASE_URL is mandatory
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            if environment != "dev":
                raise RuntimeError("DATABASE_URL must be set in production")
            db_path = Path(__file__).parent.parent / f"{database_name}.db"
            database_url = f"sqlite:///{db_path}"

        return cls(
            database_url=database_url,
            environment=environment,
            database_name=database_name,
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 5000)),
            base_url=os.getenv("BASE_URL", ""),
            cors_origins=_split_origins(os.getenv("CORS_ORIGIN", "*")) or ["*"],
            admin_api_key=(os.getenv("ADMIN_API_KEY") or "").strip(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
