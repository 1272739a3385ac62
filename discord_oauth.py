import asyncio
import logging
from urllib.parse import urlencode

import aiohttp

from errors import ExchangeError, ProfileError, VerificationTimeout
from models import Connection, IdentityCredential, Profile

log = logging.getLogger(__name__)

AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
SCOPES = ("identify", "email", "connections")


def build_authorize_url(settings) -> str:
    """URL of the consent screen that redirects back to our callback."""
    query = urlencode(
        {
            "client_id": settings.client_id,
            "response_type": "code",
            "redirect_uri": settings.redirect_uri,
            "scope": " ".join(SCOPES),
        }
    )
    return f"{AUTHORIZE_URL}?{query}"


class DiscordOAuthClient:
    """The three calls made to Discord on behalf of a user being verified."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        client_id: str,
        client_secret: str,
        api_base: str = "https://discord.com/api",
        timeout: float = 10.0,
    ):
        self.session = session
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @staticmethod
    def _bearer(access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}"}

    async def exchange_code(self, code: str, redirect_uri: str) -> IdentityCredential:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        try:
            async with self.session.post(
                f"{self.api_base}/oauth2/token",
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise ExchangeError(f"token endpoint returned HTTP {response.status}: {body[:200]}")
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise VerificationTimeout("token exchange timed out") from None
        except aiohttp.ClientError as e:
            raise ExchangeError(f"token exchange failed: {e}") from e
        except ValueError as e:
            raise ExchangeError(f"token endpoint returned a non-JSON body: {e}") from e

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise ExchangeError("token endpoint response has no access_token")
        return IdentityCredential.from_payload(payload)

    async def fetch_profile(self, access_token: str) -> Profile:
        try:
            async with self.session.get(
                f"{self.api_base}/users/@me",
                headers=self._bearer(access_token),
                timeout=self.timeout,
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise ProfileError(f"profile endpoint returned HTTP {response.status}: {body[:200]}")
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise VerificationTimeout("profile fetch timed out") from None
        except aiohttp.ClientError as e:
            raise ProfileError(f"profile fetch failed: {e}") from e
        except ValueError as e:
            raise ProfileError(f"profile endpoint returned a non-JSON body: {e}") from e

        if not isinstance(payload, dict) or not payload.get("id"):
            raise ProfileError("profile response has no user id")
        return Profile.from_payload(payload)

    async def fetch_connections(self, access_token: str) -> tuple:
        """Linked accounts of the user; empty on any failure."""
        try:
            async with self.session.get(
                f"{self.api_base}/users/@me/connections",
                headers=self._bearer(access_token),
                timeout=self.timeout,
            ) as response:
                if response.status != 200:
                    log.warning("Connections fetch returned HTTP %s", response.status)
                    return ()
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            log.warning("Connections fetch timed out")
            return ()
        except (aiohttp.ClientError, ValueError) as e:
            log.warning("Connections fetch failed: %s", e)
            return ()

        if not isinstance(payload, list):
            log.warning("Connections response is not a list")
            return ()

        return tuple(
            Connection(type=str(item["type"]), name=str(item["name"]))
            for item in payload
            if isinstance(item, dict) and item.get("type") and item.get("name")
        )
