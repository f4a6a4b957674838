"""
Configuración centralizada de la aplicación
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # API Settings
    API_TITLE: str = "QR POS API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Restaurant point-of-sale and QR ordering backend"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = True

    # Database
    DATABASE_URL: str
    DB_CONNECT_RETRIES: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:5173,https://pos.example.com" or '["http://localhost:5173"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:5173,http://localhost:3000"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:5173"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Daily close
    TOP_PRODUCTS_LIMIT: int = 5
    VALIDATION_WORKERS: int = 4
    # JSON backup of the day's orders is written at close time when set
    BACKUP_DIR: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
