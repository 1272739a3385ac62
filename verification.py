import asyncio
import logging

from models import NetworkInfo, VerificationRecord, VerificationRequest

log = logging.getLogger(__name__)


class VerificationAggregator:
    """Collects everything we know about a user from one authorization code.

    Only two steps can fail the verification: the code exchange and the
    profile fetch. Connections and geolocation degrade to empty/None.
    """

    def __init__(self, oauth, geo, redirect_uri: str):
        self.oauth = oauth
        self.geo = geo
        self.redirect_uri = redirect_uri

    async def aggregate(self, request: VerificationRequest) -> VerificationRecord:
        credential = await self.oauth.exchange_code(request.code, self.redirect_uri)

        profile, connections, geo = await asyncio.gather(
            self.oauth.fetch_profile(credential.access_token),
            self.oauth.fetch_connections(credential.access_token),
            self.geo.resolve(request.address),
            return_exceptions=True,
        )

        if isinstance(profile, BaseException):
            raise profile
        # Neither of these should raise, but a bug there must not cost the user
        # their verification.
        if isinstance(connections, BaseException):
            log.warning("Connections lookup raised %r, continuing without", connections)
            connections = ()
        if isinstance(geo, BaseException):
            log.warning("Geo lookup raised %r, continuing without", geo)
            geo = None

        log.info("Collected verification data for %s (%s)", profile.tag, profile.id)
        return VerificationRecord(
            identity=profile,
            network=NetworkInfo(address=request.address, user_agent=request.user_agent, geo=geo),
            connections=tuple(connections),
            credential=credential,
        )
