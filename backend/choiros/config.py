"""
Configuration centrale de l'application via variables d'environnement.
Charger depuis un fichier .env en développement.
Partagée par le serveur FastAPI et le client de check-in offline.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Base de données serveur
    DATABASE_URL: str = "sqlite:///./choiros.db"

    # Multi-tenant : coro1.choiros.app → organisation "coro1"
    TENANT_ROOT_DOMAIN: str = "choiros"

    # QR code de check-in (généré par le serveur, lu par le client)
    CHECKIN_QR_TYPE: str = "choiros-checkin"
    CHECKIN_VALIDITY_HOURS: int = 24  # Validité à partir du début de l'événement

    # Client offline
    SERVER_URL: str = "http://localhost:8000"
    ORGANIZATION_SLUG: str = ""
    OFFLINE_DB_URL: str = "sqlite:///./choiros-offline.db"
    SYNC_REQUEST_TIMEOUT_SECONDS: float = 10.0   # Borne par appel RPC pendant une passe
    SYNC_INTERVAL_MINUTES: int = 5               # Synchronisation en arrière-plan
    CONNECTIVITY_PROBE_INTERVAL_SECONDS: float = 15.0

    # Environnement
    ENV: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
