"""Shared fixtures: a local stand-in for Discord/ip-api/webhook and fake guilds."""
import asyncio
from types import SimpleNamespace

import aiohttp
import discord
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from config import Settings

ADDRESS = "203.0.113.7"


class Upstream:
    """Every outbound endpoint the pipeline talks to, with switchable failures."""

    def __init__(self):
        self.base_url = ""
        self.token_status = 200
        self.token_body = {
            "access_token": "access-abc",
            "refresh_token": "refresh-xyz",
            "token_type": "Bearer",
            "scope": "identify email connections",
            "expires_in": 604800,
        }
        self.profile_status = 200
        self.profile_body = {
            "id": "1",
            "username": "bob",
            "discriminator": "0001",
            "email": "b@x.com",
            "mfa_enabled": True,
            "locale": "en-US",
        }
        self.connections_status = 200
        self.connections_body = []
        self.geo_status = 200
        self.geo_body = {
            "status": "success",
            "query": ADDRESS,
            "country": "Netherlands",
            "city": "Amsterdam",
            "isp": "Example ISP",
            "org": "Example Org",
            "proxy": True,
            "hosting": False,
            "lat": 52.37,
            "lon": 4.89,
        }
        self.webhook_status = 204
        self.delays = {}
        self.calls = []
        self.token_forms = []
        self.auth_headers = []
        self.webhooks = []

    async def _respond(self, name, status, body):
        self.calls.append(name)
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    async def token(self, request):
        self.token_forms.append(dict(await request.post()))
        return await self._respond("token", self.token_status, self.token_body)

    async def profile(self, request):
        self.auth_headers.append(request.headers.get("Authorization"))
        return await self._respond("profile", self.profile_status, self.profile_body)

    async def connections(self, request):
        return await self._respond("connections", self.connections_status, self.connections_body)

    async def geo(self, request):
        return await self._respond("geo", self.geo_status, self.geo_body)

    async def webhook(self, request):
        self.calls.append("webhook")
        self.webhooks.append(await request.json())
        return web.Response(status=self.webhook_status)

    def make_app(self):
        app = web.Application()
        app.router.add_post("/api/oauth2/token", self.token)
        app.router.add_get("/api/users/@me", self.profile)
        app.router.add_get("/api/users/@me/connections", self.connections)
        app.router.add_get("/json/{address}", self.geo)
        app.router.add_post("/webhook", self.webhook)
        return app


@pytest_asyncio.fixture
async def upstream():
    state = Upstream()
    server = TestServer(state.make_app())
    await server.start_server()
    state.base_url = str(server.make_url("/")).rstrip("/")
    yield state
    await server.close()


@pytest_asyncio.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s


@pytest.fixture
def settings_env():
    return {
        "WEBHOOK_URL": "https://discord.com/api/webhooks/1/secret",
        "CLIENT_ID": "12345",
        "CLIENT_SECRET": "shh",
        "BOT_TOKEN": "bot-token",
    }


@pytest.fixture
def settings(settings_env):
    return Settings.from_env(settings_env)


# Discord guild fakes


def http_response(status, reason):
    return SimpleNamespace(status=status, reason=reason)


class FakeRole:
    _next_id = 1000

    def __init__(self, name, colour=None, permissions=None):
        FakeRole._next_id += 1
        self.id = FakeRole._next_id
        self.name = name
        self.colour = colour
        self.permissions = permissions


class FakeMember:
    def __init__(self, id, roles=()):
        self.id = id
        self.roles = list(roles)
        self.add_calls = 0

    async def add_roles(self, *roles, reason=None):
        await asyncio.sleep(0)
        self.add_calls += 1
        for role in roles:
            if role not in self.roles:
                self.roles.append(role)


class FakeGuild:
    """In-memory guild. `roles` is the (lagging) cache; `server_roles` is the API's view."""

    def __init__(self, id, name, members=(), roles=(), forbidden=False):
        self.id = id
        self.name = name
        self.members = {m.id: m for m in members}
        self.roles = list(roles)
        self.server_roles = list(roles)
        self.forbidden = forbidden
        self.created = []

    def get_member(self, user_id):
        return None

    async def fetch_member(self, user_id):
        await asyncio.sleep(0)
        if user_id not in self.members:
            raise discord.NotFound(http_response(404, "Not Found"), "Unknown Member")
        return self.members[user_id]

    async def fetch_roles(self):
        await asyncio.sleep(0)
        return list(self.server_roles)

    async def create_role(self, *, name, colour=None, permissions=None, reason=None):
        if self.forbidden:
            raise discord.Forbidden(http_response(403, "Forbidden"), "Missing Permissions")
        await asyncio.sleep(0)
        role = FakeRole(name, colour, permissions)
        self.server_roles.append(role)
        self.created.append(role)
        return role


class FakeBot:
    def __init__(self, guilds=()):
        self.guilds = list(guilds)
