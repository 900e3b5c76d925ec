"""OpenID Connect client used by the login flow.

The provider is described by its discovery document
(`.well-known/openid-configuration`); endpoints are read from it once and
memoised. A failed fetch is remembered for `DISCOVERY_RETRY_SECONDS` so
pages do not wait on an unreachable provider. Every failure talking to
the provider surfaces as `OAuthError` so controllers can answer with a
single status code.
"""

import logging
import secrets
import time
import urllib.parse
from typing import Any, Dict, Optional

import requests

from .config import Settings, settings as default_settings

logger = logging.getLogger("game_catalog.oauth")

HTTP_TIMEOUT_SECONDS = 10
# A failed discovery fetch is not retried before this many seconds.
DISCOVERY_RETRY_SECONDS = 30


class OAuthError(Exception):
    """Raised when the identity provider cannot be reached or refuses a request."""


def generate_state() -> str:
    """Return a random, URL-safe value for the OAuth `state` parameter."""
    return secrets.token_urlsafe(24)


class OAuthClient:
    """Authorization-code flow against a single OpenID provider."""

    def __init__(self, settings: Settings = None):
        self.settings = settings or default_settings
        self._configuration: Optional[Dict[str, Any]] = None
        self._failed_at: Optional[float] = None

    def configuration(self) -> Dict[str, Any]:
        """Fetch (once) and return the provider's discovery document."""
        if self._configuration is not None:
            return self._configuration
        if self._failed_at is not None and time.monotonic() - self._failed_at < DISCOVERY_RETRY_SECONDS:
            raise OAuthError("identity provider unavailable; retrying later")
        try:
            self._configuration = self._request_json("GET", self.settings.OPENID_CONFIGURATION_URL)
        except OAuthError:
            self._failed_at = time.monotonic()
            raise
        self._failed_at = None
        return self._configuration

    def _endpoint(self, name: str) -> str:
        url = self.configuration().get(name)
        if not url:
            raise OAuthError(f"provider configuration has no {name}")
        return url

    def authorization_url(self, state: str) -> str:
        """Build the URL the browser is sent to in order to log in."""
        params = {
            "client_id": self.settings.CLIENT_ID,
            "response_type": "code",
            "redirect_uri": self.settings.OAUTH_REDIRECT_URI,
            "scope": " ".join(self.settings.OAUTH_SCOPES),
            "state": state,
        }
        if self.settings.AUDIENCE:
            params["audience"] = self.settings.AUDIENCE
        return f"{self._endpoint('authorization_endpoint')}?{urllib.parse.urlencode(params)}"

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for tokens.

        Returns the provider's token payload (`access_token`, `id_token`,
        `expires_in`...).
        """
        tokens = self._request_json(
            "POST",
            self._endpoint("token_endpoint"),
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.OAUTH_REDIRECT_URI,
                "client_id": self.settings.CLIENT_ID,
                "client_secret": self.settings.CLIENT_SECRET,
            },
        )
        if "access_token" not in tokens:
            raise OAuthError("token response has no access_token")
        return tokens

    def fetch_userinfo(self, access_token: str) -> Dict[str, Any]:
        """Return the claims the provider exposes for `access_token`."""
        return self._request_json(
            "GET",
            self._endpoint("userinfo_endpoint"),
            headers={"Authorization": f"Bearer {access_token}"},
        )

    def _request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = requests.request(method, url, timeout=HTTP_TIMEOUT_SECONDS, **kwargs)
        except requests.RequestException as exc:
            logger.warning("oauth_request_failed method=%s url=%s error=%s", method, url, exc)
            raise OAuthError(f"identity provider unreachable: {exc}") from exc
        if not response.ok:
            error = "request_failed"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                error = body.get("error", error)
            logger.warning("oauth_request_rejected method=%s url=%s status=%s error=%s", method, url, response.status_code, error)
            raise OAuthError(f"identity provider returned {response.status_code}: {error}")
        try:
            return response.json()
        except ValueError as exc:
            raise OAuthError("identity provider returned invalid JSON") from exc
