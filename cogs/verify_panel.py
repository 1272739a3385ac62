import discord
from discord.ext import commands

from discord_oauth import build_authorize_url


class VerifyPanel(commands.Cog):
    def __init__(self, bot):
        self.bot = bot

    def build_panel(self):
        embed = discord.Embed(
            title="🔐 Verify Your Account",
            description="Click below to verify and gain server access.",
            colour=discord.Colour(0x5865F2),
        )
        view = discord.ui.View(timeout=None)
        view.add_item(
            discord.ui.Button(
                label="Verify Now",
                style=discord.ButtonStyle.link,
                url=build_authorize_url(self.bot.settings),
            )
        )
        return embed, view

    @commands.command(name='setupverify', help='Post the verification panel in this channel.')
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    async def setup_verify(self, ctx):
        embed, view = self.build_panel()
        await ctx.send(embed=embed, view=view)
        await ctx.reply("✅ Verification panel created!")

    @setup_verify.error
    async def setup_verify_error(self, ctx, error):
        if isinstance(error, commands.MissingPermissions):
            await ctx.reply("❌ You need **Manage Server** permissions.")
        elif isinstance(error, commands.NoPrivateMessage):
            await ctx.reply("This command can only be used in a server!")
        else:
            raise error


async def setup(bot):
    await bot.add_cog(VerifyPanel(bot))
