import asyncio
import logging

import aiohttp
from discord.ext import commands, tasks

log = logging.getLogger(__name__)


class KeepAlive(commands.Cog):
    """Pings our own status page so hosts that idle out quiet apps keep us up."""

    def __init__(self, bot):
        self.bot = bot
        self.url = f"http://localhost:{bot.settings.port}/"
        self.ping.change_interval(seconds=bot.settings.keepalive_interval)

    async def cog_load(self):
        self.ping.start()

    async def cog_unload(self):
        self.ping.cancel()

    @tasks.loop(seconds=300)
    async def ping(self):
        try:
            async with self.bot.http_session.get(self.url, timeout=aiohttp.ClientTimeout(total=10)) as response:
                if response.status == 200:
                    log.info("Keep-alive ping successful")
                else:
                    log.warning("Keep-alive ping returned HTTP %s", response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("Keep-alive ping failed: %s", e)

    @ping.before_loop
    async def before_ping(self):
        await self.bot.wait_until_ready()


async def setup(bot):
    if bot.settings.keepalive_interval > 0:
        await bot.add_cog(KeepAlive(bot))
