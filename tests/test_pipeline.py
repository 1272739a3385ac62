"""End-to-end runs of the callback pipeline against local stand-ins."""
import pytest

from conftest import ADDRESS, FakeBot, FakeGuild, FakeMember
from discord_oauth import DiscordOAuthClient
from errors import DeliveryError, ExchangeError, VerificationTimeout
from geo_resolver import GeoResolver
from models import ASSIGNED, SKIPPED, VerificationRequest
from notifier import WebhookNotifier
from pipeline import VerificationPipeline
from role_provisioner import RoleProvisioner
from verification import VerificationAggregator


def make_pipeline(session, upstream, guilds=(), webhook_url=None, timeout=5.0, deadline=10.0):
    oauth = DiscordOAuthClient(session, "12345", "shh", api_base=f"{upstream.base_url}/api", timeout=timeout)
    geo = GeoResolver(session, base_url=upstream.base_url, timeout=timeout)
    return VerificationPipeline(
        aggregator=VerificationAggregator(oauth, geo, "http://localhost:3000/auth/callback"),
        notifier=WebhookNotifier(session, webhook_url or f"{upstream.base_url}/webhook", timeout=timeout),
        provisioner=RoleProvisioner(FakeBot(guilds)),
        deadline=deadline,
    )


def request(code="abc123"):
    return VerificationRequest(code=code, address=ADDRESS, user_agent="Mozilla/5.0")


@pytest.mark.asyncio
async def test_geo_failure_still_verifies(session, upstream):
    upstream.geo_status = 500
    member = FakeMember(1)
    guild = FakeGuild(10, "Alpha", members=[member])

    result = await make_pipeline(session, upstream, [guild]).run(request("abc123"))

    assert upstream.token_forms[0]["code"] == "abc123"
    fields = {f["name"]: f["value"] for f in upstream.webhooks[0]["embeds"][0]["fields"]}
    assert fields["👤 User"] == "bob#0001 (1)"
    assert fields["📧 Email"] == "b@x.com"
    assert fields["🔗 Connections"] == "None"
    assert fields["🛡️ Proxy/VPN"] == "Unknown"
    assert fields["📍 Location"] == "Unknown | N/A"
    assert fields["🏢 ISP"] == "Unknown"
    assert result.record.identity.id == "1"
    assert [o.status for o in result.report.outcomes] == [ASSIGNED]


@pytest.mark.asyncio
async def test_rejected_code_stops_before_notification(session, upstream):
    upstream.token_status = 401
    upstream.token_body = {"error": "invalid_grant", "error_description": "Invalid code"}
    guild = FakeGuild(10, "Alpha", members=[FakeMember(1)])

    with pytest.raises(ExchangeError) as excinfo:
        await make_pipeline(session, upstream, [guild]).run(request("bad"))

    assert excinfo.value.stage == "exchange"
    assert "invalid_grant" in excinfo.value.detail
    assert upstream.webhooks == []
    assert guild.created == []


@pytest.mark.asyncio
async def test_unreachable_webhook_fails_without_provisioning(session, upstream):
    member = FakeMember(1)
    guild = FakeGuild(10, "Alpha", members=[member])
    pipeline = make_pipeline(session, upstream, [guild], webhook_url="http://127.0.0.1:1/webhook")

    with pytest.raises(DeliveryError):
        await pipeline.run(request())

    assert "profile" in upstream.calls
    assert guild.created == []
    assert member.roles == []


@pytest.mark.asyncio
async def test_member_of_one_guild_out_of_two(session, upstream):
    member = FakeMember(1)
    home = FakeGuild(10, "Alpha", members=[member])
    other = FakeGuild(20, "Beta")

    result = await make_pipeline(session, upstream, [home, other]).run(request())

    assert [(o.guild_name, o.status) for o in result.report.outcomes] == [("Alpha", ASSIGNED), ("Beta", SKIPPED)]
    assert len(result.report.assigned) == 1
    assert len(result.report.skipped) == 1


@pytest.mark.asyncio
async def test_overall_deadline(session, upstream):
    upstream.delays["profile"] = 1.0
    guild = FakeGuild(10, "Alpha", members=[FakeMember(1)])

    with pytest.raises(VerificationTimeout) as excinfo:
        await make_pipeline(session, upstream, [guild], deadline=0.2).run(request())

    assert excinfo.value.stage == "timeout"
    assert upstream.webhooks == []
    assert guild.created == []
