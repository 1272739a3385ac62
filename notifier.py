import asyncio
import logging

import aiohttp
import discord

from errors import DeliveryError, VerificationTimeout
from models import VerificationRecord

log = logging.getLogger(__name__)

FIELD_LIMIT = 1024


def _value(text) -> str:
    # Discord rejects empty field values and anything past 1024 characters.
    if text is None or str(text).strip() == "":
        return "None"
    text = str(text)
    if len(text) > FIELD_LIMIT:
        return text[: FIELD_LIMIT - 1] + "…"
    return text


def proxy_flag(geo) -> str:
    if geo is None:
        return "Unknown"
    return "✅ YES (VPN/Proxy)" if geo.is_proxy else "❌ NO"


def build_embed(record: VerificationRecord) -> discord.Embed:
    """Render a verification record as the log message posted to the webhook.

    Access and refresh tokens are deliberately left out.
    """
    user = record.identity
    geo = record.network.geo

    if geo is not None:
        place = ", ".join(part for part in (geo.country, geo.city) if part) or "Unknown"
        location = f"{place} | [View Map]({geo.map_link})" if geo.map_link else f"{place} | N/A"
        isp = geo.isp or "Unknown"
    else:
        location = "Unknown | N/A"
        isp = "Unknown"

    connections = "\n".join(f"{c.type}: {c.name}" for c in record.connections) or "None"

    embed = discord.Embed(
        title="🔍 NEW VERIFICATION LOG",
        colour=discord.Colour(0xFF0000),
        timestamp=record.verified_at,
    )
    embed.add_field(name="👤 User", value=_value(f"{user.tag} ({user.id})"), inline=True)
    embed.add_field(name="📧 Email", value=_value(user.email), inline=True)
    embed.add_field(name="📱 Phone", value=_value(user.phone), inline=True)
    embed.add_field(name="🔐 MFA", value="Enabled" if user.mfa_enabled else "Disabled", inline=True)
    embed.add_field(name="🌍 Locale", value=_value(user.locale), inline=True)
    embed.add_field(name="🌐 IP", value=_value(record.network.address or "Unknown"), inline=True)
    embed.add_field(name="📍 Location", value=_value(location), inline=True)
    embed.add_field(name="🏢 ISP", value=_value(isp), inline=True)
    embed.add_field(name="🛡️ Proxy/VPN", value=proxy_flag(geo), inline=True)
    embed.add_field(name="🖥️ User Agent", value=_value(record.network.user_agent), inline=False)
    embed.add_field(name="🔗 Connections", value=_value(connections), inline=False)
    embed.set_footer(text=f"Verified at {record.verified_at:%Y-%m-%d %H:%M:%S} UTC")
    return embed


class WebhookNotifier:
    def __init__(self, session: aiohttp.ClientSession, webhook_url: str, timeout: float = 10.0):
        self.session = session
        self.webhook_url = webhook_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def deliver(self, record: VerificationRecord) -> None:
        payload = {"embeds": [build_embed(record).to_dict()]}
        try:
            async with self.session.post(self.webhook_url, json=payload, timeout=self.timeout) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise DeliveryError(f"webhook returned HTTP {response.status}: {body[:200]}")
        except asyncio.TimeoutError:
            raise VerificationTimeout("webhook delivery timed out") from None
        except aiohttp.ClientError as e:
            raise DeliveryError(f"webhook delivery failed: {e}") from e

        log.info("Delivered verification log for %s", record.identity.id)
