"""Application settings and validation."""

import os

from dotenv import load_dotenv

load_dotenv()

DEV_SESSION_SECRET = "dev_session_secret_change_me"


class Settings:
    ENV: str
    MONGO_URL: str
    MONGO_DB: str
    CLIENT_ID: str
    CLIENT_SECRET: str
    AUDIENCE: str
    OPENID_CONFIGURATION_URL: str
    OAUTH_REDIRECT_URI: str
    OAUTH_SCOPES: list
    SESSION_COOKIE_NAME: str
    SESSION_TTL_SECONDS: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
        self.MONGO_DB = os.getenv("MONGO_DB", "game_catalog")
        self.CLIENT_ID = os.getenv("CLIENT_ID", "")
        self.CLIENT_SECRET = os.getenv("CLIENT_SECRET", "")
        self.AUDIENCE = os.getenv("AUDIENCE", "")
        self.OPENID_CONFIGURATION_URL = os.getenv(
            "OPENID_CONFIGURATION_URL",
            "https://fewlines.connect.prod.fewlines.tech/.well-known/openid-configuration",
        )
        self.OAUTH_REDIRECT_URI = os.getenv("OAUTH_REDIRECT_URI", "http://localhost:8080/oauth/callback")
        self.OAUTH_SCOPES = os.getenv("OAUTH_SCOPES", "openid email").split()
        self.SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "sessionId")
        self.SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "3600"))  # 1 hour
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self._validate()

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def session_secret(self) -> str:
        """Secret used to sign the session cookie."""
        return self.CLIENT_SECRET or DEV_SESSION_SECRET

    def _validate(self):
        if self.ENV != "dev" and not self.CLIENT_SECRET:
            raise RuntimeError("CLIENT_SECRET must be set in non-dev environments")
        if self.SESSION_TTL_SECONDS <= 0:
            raise RuntimeError("SESSION_TTL_SECONDS must be positive")


settings = Settings()
