import asyncio
import logging
import sys
import threading

import aiohttp
import discord
from discord.ext import commands
from werkzeug.serving import make_server

from config import ConfigError, Settings
from discord_oauth import DiscordOAuthClient
from geo_resolver import GeoResolver
from notifier import WebhookNotifier
from oauth_server import create_app
from pipeline import VerificationPipeline
from role_provisioner import RoleProvisioner
from verification import VerificationAggregator

log = logging.getLogger("verify_bot")

EXTENSIONS = ("cogs.verify_panel", "cogs.keep_alive")


class WebServerError(Exception):
    pass


class VerificationBot(commands.Bot):
    def __init__(self, settings: Settings):
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True
        super().__init__(
            command_prefix=settings.command_prefix,
            intents=intents,
            activity=discord.Game(".verify | Secure Auth"),
        )
        self.settings = settings
        self.http_session = None
        self.pipeline = None
        self.web_server = None
        self.web_thread = None

    def build_pipeline(self) -> VerificationPipeline:
        s = self.settings
        oauth = DiscordOAuthClient(
            self.http_session, s.client_id, s.client_secret, api_base=s.api_base, timeout=s.request_timeout
        )
        geo = GeoResolver(self.http_session, base_url=s.geo_base, timeout=s.request_timeout)
        return VerificationPipeline(
            aggregator=VerificationAggregator(oauth, geo, s.redirect_uri),
            notifier=WebhookNotifier(self.http_session, s.webhook_url, timeout=s.request_timeout),
            provisioner=RoleProvisioner(self, role_name=s.verified_role_name, guild_timeout=s.guild_timeout),
            deadline=s.verification_timeout,
        )

    def bind_web_server(self):
        """Binds the callback server's port without serving yet.

        Raises WebServerError when the port can't be bound, so a busy port
        stops startup instead of dying quietly in a thread.
        """
        loop = asyncio.get_running_loop()

        def submit(coro):
            # Flask handles requests on its own threads; the pipeline has to
            # run on the bot's loop, where the discord.py state lives.
            return asyncio.run_coroutine_threadsafe(coro, loop).result()

        app = create_app(self.pipeline, submit)
        try:
            self.web_server = make_server("0.0.0.0", self.settings.port, app, threaded=True)
        # werkzeug prints bind errors itself and exits instead of raising.
        except (OSError, SystemExit) as e:
            raise WebServerError(f"could not bind port {self.settings.port}") from e

    def serve_web(self):
        # Only once the guild cache is filled; until then callbacks wait in the
        # listen backlog rather than being provisioned against no guilds.
        if self.web_server is None or self.web_thread is not None:
            return
        self.web_thread = threading.Thread(target=self.web_server.serve_forever, name="oauth-server", daemon=True)
        self.web_thread.start()
        log.info("🛡️ Server running on http://localhost:%s", self.web_server.server_port)

    def stop_web(self):
        if self.web_server is None:
            return
        if self.web_thread is not None:
            self.web_server.shutdown()
        self.web_server.server_close()
        self.web_server = None
        self.web_thread = None

    async def setup_hook(self):
        self.http_session = aiohttp.ClientSession()
        self.pipeline = self.build_pipeline()
        for extension in EXTENSIONS:
            await self.load_extension(extension)
        self.bind_web_server()

    async def on_ready(self):
        log.info("✅ Bot online as %s", self.user)
        self.serve_web()

    async def close(self):
        self.stop_web()
        await super().close()
        if self.http_session is not None:
            await self.http_session.close()


def main():
    discord.utils.setup_logging(level=logging.INFO)
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        log.error("❌ %s", e)
        sys.exit(1)
    logging.getLogger().setLevel(settings.log_level)

    bot = VerificationBot(settings)
    try:
        bot.run(settings.bot_token, log_handler=None)
    except discord.LoginFailure as e:
        log.error("❌ Failed to login: %s", e)
        sys.exit(1)
    except WebServerError as e:
        log.error("❌ Could not start the web server: %s", e)
        sys.exit(1)
    except OSError as e:
        log.error("❌ Could not connect to Discord: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
