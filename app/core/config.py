"""
➡️ But : Paramètres du moteur (pydantic-settings, lus depuis l'environnement ou .env).

from app.core.config import settings, jwt_settings

Les réglages par partie (quota, durée de réservation, auto-release) vivent en base ;
ici on ne trouve que les réglages de déploiement : DB, JWT, cron, sweeper, e-mail.
"""

from datetime import timedelta
from typing import Optional

from pydantic_settings import BaseSettings
from app.security.tokens import JWTSettings


class Settings(BaseSettings):
    # -----------------------------
    # App
    # -----------------------------
    APP_NAME: str = "Football-Squares"
    ENV: str = "dev"  # dev | prod | test
    APP_URL: str = "http://localhost:3000"  # utilisé dans les liens des e-mails
    LOG_LEVEL: str = "INFO"

    # -----------------------------
    # DB
    # -----------------------------
    SQLITE_PATH: str = "squares.db"  # fichier SQLite
    # Si tu veux forcer une URL différente (ex: Postgres), définis DATABASE_URL dans l'env.
    DATABASE_URL: Optional[str] = None

    # -----------------------------
    # JWT / Auth
    # -----------------------------
    JWT_SECRET_KEY: str = "CHANGE_ME"     # ⚠️ change en prod
    JWT_ISSUER: str = "football-squares"
    JWT_ALGORITHM: str = "HS256"

    ACCESS_TTL_MINUTES: int = 60 * 24     # session utilisateur
    GAME_ACCESS_TTL_MINUTES: int = 60 * 12  # jeton d'accès à une partie protégée par mot de passe

    # -----------------------------
    # Cron / tâches planifiées
    # -----------------------------
    CRON_SECRET: Optional[str] = None     # header Authorization: Bearer <CRON_SECRET>
    SWEEPER_INTERVAL_SECONDS: int = 0     # 0 = pas de boucle in-process (cron externe)
    REMINDER_MIN_HOURS: int = 4
    REMINDER_MAX_HOURS: int = 6
    JOBS_BATCH_SIZE: int = 10

    # -----------------------------
    # Parties
    # -----------------------------
    GAMES_REQUIRE_ACTIVATION: bool = False  # true => DRAFT tant que le paiement n'est pas confirmé
    LIVE_FEED_INTERVAL_SECONDS: float = 3.0

    # -----------------------------
    # E-mail
    # -----------------------------
    EMAIL_BACKEND: str = "log"            # "log" | "smtp"
    EMAIL_FROM: str = "Football Squares <no-reply@example.com>"
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_STARTTLS: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    # -----------------------------
    # Post-process values
    # -----------------------------
    def model_post_init(self, __context): # appelée automatiquement
        # DATABASE_URL par défaut depuis SQLITE_PATH si non fourni
        if not self.DATABASE_URL:
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{self.SQLITE_PATH}")

        if self.REMINDER_MIN_HOURS > self.REMINDER_MAX_HOURS:
            raise ValueError("REMINDER_MIN_HOURS must be <= REMINDER_MAX_HOURS")


# Instance globale importable partout
settings = Settings()

# Objet JWT prêt à l'emploi pour les services
jwt_settings = JWTSettings(
    secret=settings.JWT_SECRET_KEY,
    issuer=settings.JWT_ISSUER,
    algorithm=settings.JWT_ALGORITHM,
    access_ttl=timedelta(minutes=settings.ACCESS_TTL_MINUTES),
    game_access_ttl=timedelta(minutes=settings.GAME_ACCESS_TTL_MINUTES),
)
