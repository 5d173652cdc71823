import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DATABASE_NAME = "pc-components-manufacturer"
ATLAS_HOST = "cluster-warehouse-manag.bfvdp.mongodb.net"


@dataclass(frozen=True)
class Settings:
    database_url: str
    database_name: str = DEFAULT_DATABASE_NAME
    port: int = 5000
    token_secret: str = "devsecret"
    stripe_secret_key: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        url = os.getenv("DATABASE_URL")
        if not url:
            user, password = os.getenv("DB_USER"), os.getenv("DB_PASS")
            if user and password:
                url = f"mongodb+srv://{user}:{password}@{ATLAS_HOST}/?retryWrites=true&w=majority"
            else:
                url = "mongodb://localhost:27017"
        return cls(
            database_url=url,
            database_name=os.getenv("DATABASE_NAME", DEFAULT_DATABASE_NAME),
            port=int(os.getenv("PORT", 5000)),
            token_secret=os.getenv("ACCESS_TOKEN_SECRET", "devsecret"),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
