import asyncio
import logging

import aiohttp
import discord

from models import ALREADY_VERIFIED, ASSIGNED, FAILED, SKIPPED, ProvisionReport

log = logging.getLogger(__name__)

VERIFIED_COLOUR = discord.Colour(0x57F287)


class RoleProvisioner:
    """Gives a verified user the verified role in every guild the bot shares with them.

    `guild_source` is anything exposing `.guilds` (normally the logged-in bot).
    """

    def __init__(self, guild_source, role_name: str = "Verified", guild_timeout: float = 15.0):
        self.guild_source = guild_source
        self.role_name = role_name
        self.guild_timeout = guild_timeout
        self._locks = {}  # guild_id -> asyncio.Lock

    def _lock_for(self, guild) -> asyncio.Lock:
        if guild.id not in self._locks:
            self._locks[guild.id] = asyncio.Lock()
        return self._locks[guild.id]

    async def get_member(self, guild, user_id: int):
        """Member from cache or API, None if the user isn't in this guild."""
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None

    async def ensure_role(self, guild):
        """Finds the verified role in a guild, creating it if it doesn't exist.

        The cache can lag behind a role we just created, so a miss is checked
        against the API before creating. The lock makes this safe within one
        process only; separate processes can still both create the role.
        """
        async with self._lock_for(guild):
            role = discord.utils.get(guild.roles, name=self.role_name)
            if role:
                return role

            role = discord.utils.get(await guild.fetch_roles(), name=self.role_name)
            if role:
                return role

            log.info("Creating role '%s' in %s (%s)", self.role_name, guild.name, guild.id)
            return await guild.create_role(
                name=self.role_name,
                colour=VERIFIED_COLOUR,
                permissions=discord.Permissions(view_channel=True, send_messages=True),
                reason="Verification role",
            )

    async def assign_role(self, guild, user_id: int):
        member = await self.get_member(guild, user_id)
        if member is None:
            return SKIPPED, "not a member"

        role = await self.ensure_role(guild)
        if role in member.roles:
            return ALREADY_VERIFIED, ""

        await member.add_roles(role, reason="Completed verification")
        return ASSIGNED, ""

    async def provision(self, identity_id) -> ProvisionReport:
        report = ProvisionReport(identity_id=str(identity_id))
        user_id = int(identity_id)

        # One guild at a time; a failure in one never stops the others.
        for guild in list(self.guild_source.guilds):
            try:
                status, detail = await asyncio.wait_for(self.assign_role(guild, user_id), timeout=self.guild_timeout)
            except discord.Forbidden as e:
                log.warning("Missing permissions to verify %s in %s: %s", user_id, guild.name, e)
                status, detail = FAILED, "forbidden"
            except discord.HTTPException as e:
                log.warning("Failed to verify %s in %s: %s", user_id, guild.name, e)
                status, detail = FAILED, f"HTTP {e.status}"
            except asyncio.TimeoutError:
                log.warning("Timed out verifying %s in %s", user_id, guild.name)
                status, detail = FAILED, "timeout"
            except (aiohttp.ClientError, OSError) as e:
                log.warning("Network error verifying %s in %s: %s", user_id, guild.name, e)
                status, detail = FAILED, "network error"

            if status == ASSIGNED:
                log.info("Assigned '%s' to %s in %s", self.role_name, user_id, guild.name)
            report.add(guild, status, detail)

        return report
