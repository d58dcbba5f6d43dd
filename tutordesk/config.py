from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Third-party SDKs (sentry) read their own variables from os.environ
load_dotenv()

class Settings(BaseSettings):
    database_url: str = "sqlite:///./tutordesk.db"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    jwt_secret: str = "tutordesk-development-secret-change-me"
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24 * 7
    invite_password: str = "demo"  # accepted for invited users who never set a password
    sentry_dsn: Optional[str] = None
    frontend_origins: str = ""

    # Client side
    api_base_url: str = "http://localhost:8000"
    request_timeout: Optional[float] = None
    session_storage_path: Optional[str] = None
    local_storage_path: Optional[str] = None

    class Config:
        env_file = ".env"

    @property
    def allowed_origins(self) -> List[str]:
        dev_origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
        origins = self.frontend_origins.split(",") + dev_origins
        return list(set([origin.strip() for origin in origins if origin.strip()]))

settings = Settings()
