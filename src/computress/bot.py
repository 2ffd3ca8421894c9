from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import discord
from discord.ext import commands

from computress.config import APP_NAME, APP_VERSION, DEFAULT_CONFIG_PATH, Settings
from computress.errors import ApiError, ConfigurationError
from computress.monitor import MonitorClient
from computress.services.approval_client import ApprovalClient
from computress.services.chat_output import ChatOutput
from computress.services.interaction_dispatcher import PERMISSION_DENIED_TEXT, InteractionDispatcher, has_role
from computress.services.logger_service import LoggerService
from computress.services.notification_router import NotificationRouter, send_name_request
from computress.services.status_service import StatusService
from computress.services.task_supervisor import TaskSupervisor

MONITOR_RESTART_DELAY_SEC = 5
MOD_LOG_EVENTS = frozenset(
    {
        "monitor.connected",
        "monitor.disconnected",
        "namereq.parse_failed",
        "namereq.submit_failed",
        "task.failed",
    }
)


class ComputressBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        super().__init__(command_prefix=commands.when_mentioned, intents=intents, help_command=None)
        self.settings = settings
        self.logger = LoggerService()
        self.supervisor = TaskSupervisor(self.logger)
        self.output = ChatOutput(self, self.logger)
        self.status_tracker = StatusService(self._publish_presence, self.logger)
        self.approvals = ApprovalClient(settings.ofapi_endpoint)
        self.monitor = MonitorClient(settings.monitor_address, self.logger)
        self.router = NotificationRouter(
            self.status_tracker,
            self.output,
            self.logger,
            log_channel_id=settings.log_channel,
            approvals_channel_id=settings.name_approvals_channel,
        )
        self.dispatcher = InteractionDispatcher(
            self,
            self.approvals,
            self.output,
            self.supervisor,
            self.logger,
            mod_role_id=settings.mod_role_id,
            log_channel_id=settings.log_channel,
        )
        self._monitor_task: asyncio.Task | None = None
        self._dispatcher_task: asyncio.Task | None = None
        self._ready_once = False
        self.logger.subscribe(self._on_log_row)

    async def setup_hook(self) -> None:
        self._register_commands()
        guild = discord.Object(id=self.settings.guild_id)
        try:
            # Nothing is registered globally, so this sync removes stale global commands.
            await self.tree.sync()
            await self.tree.sync(guild=guild)
        except discord.HTTPException as exc:
            self.logger.log("commands.sync_failed", guild_id=self.settings.guild_id, error=str(exc)[:300])
        self._dispatcher_task = asyncio.create_task(self.dispatcher.run(), name="interaction-dispatcher")

    def _register_commands(self) -> None:
        guild = discord.Object(id=self.settings.guild_id)

        @self.tree.command(name="check", description="Check the status of the server", guild=guild)
        async def check(interaction: discord.Interaction) -> None:
            await interaction.response.send_message(await self.status_tracker.report())

        @self.tree.command(name="namereqs", description="Get all outstanding name requests", guild=guild)
        async def namereqs(interaction: discord.Interaction) -> None:
            await self.post_outstanding_requests(interaction)

    async def post_outstanding_requests(self, interaction: discord.Interaction) -> None:
        if not has_role(interaction.user, self.settings.mod_role_id):
            await interaction.response.send_message(PERMISSION_DENIED_TEXT, ephemeral=True)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            requests = await self.approvals.fetch_outstanding()
        except (ApiError, ConfigurationError) as exc:
            self.logger.log("namereq.fetch_failed", error=str(exc)[:300])
            await interaction.followup.send("Failed to fetch outstanding requests.", ephemeral=True)
            return

        try:
            await interaction.followup.send(f"Found {len(requests)} outstanding requests", ephemeral=True)
        except discord.HTTPException as exc:
            self.logger.log("namereq.reply_failed", error=str(exc)[:300])

        for request in requests:
            try:
                await send_name_request(self.output, interaction.channel_id, request)
            except discord.HTTPException as exc:
                self.logger.log("namereq.send_failed", player_uid=request.player_uid, error=str(exc)[:300])

    async def on_ready(self) -> None:
        if self._ready_once:
            return
        self._ready_once = True
        self.logger.log("bot.ready", user_id=self.user.id if self.user else None, guilds=len(self.guilds))
        print(f"Logged in as {self.user} ({self.user.id if self.user else '?'})")
        try:
            await self.output.send(self.settings.mod_channel_id, "Bot started")
        except discord.HTTPException as exc:
            self.logger.log("bot.start_notice_failed", error=str(exc)[:300])
        await self.status_tracker.update(None)
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(self._run_monitor_loop(), name="monitor-consumer")

    async def _run_monitor_loop(self) -> None:
        while True:
            try:
                async for notification in self.monitor.notifications():
                    name = f"monitor-{type(notification).__name__.lower()}"
                    self.supervisor.spawn(self.router.handle(notification), name=name)
            except Exception as exc:  # noqa: BLE001
                self.logger.log("monitor.loop_failed", error=f"{type(exc).__name__}: {exc}"[:300])
            await asyncio.sleep(MONITOR_RESTART_DELAY_SEC)

    async def _publish_presence(self, text: str) -> None:
        await self.change_presence(activity=discord.Activity(type=discord.ActivityType.listening, name=text))

    async def close(self) -> None:
        for task in (self._monitor_task, self._dispatcher_task):
            if task is not None and not task.done():
                task.cancel()
        await self.supervisor.drain()
        await super().close()

    def _on_log_row(self, row: dict[str, object]) -> None:
        if str(row.get("event", "")) not in MOD_LOG_EVENTS:
            return
        if not self._ready_once:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self._dispatch_mod_log(row))

    async def _dispatch_mod_log(self, row: dict[str, object]) -> None:
        channel = self.get_channel(self.settings.mod_channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            return
        try:
            await channel.send(format_log_payload(row), allowed_mentions=discord.AllowedMentions.none())
        except discord.HTTPException:
            pass


def format_log_payload(row: dict[str, object]) -> str:
    ts = str(row.get("ts", ""))
    event = str(row.get("event", "unknown"))
    data = row.get("data", {})
    if isinstance(data, dict):
        compact = json.dumps(data, ensure_ascii=True, separators=(",", ":"), default=str)
    else:
        compact = str(data)
    message = f"[{ts}] {event} {compact}"
    if len(message) > 1900:
        message = message[:1900]
    return message


def main() -> None:
    print(f"{APP_NAME} v{APP_VERSION}")
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_CONFIG_PATH
    try:
        settings = Settings.load(config_path)
    except ConfigurationError as exc:
        print(exc)
        sys.exit(1)
    print(f"Loaded config: {config_path}")
    bot = ComputressBot(settings)
    bot.run(settings.discord_token)
