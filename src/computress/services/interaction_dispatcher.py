from __future__ import annotations

from dataclasses import dataclass

import discord

from computress.errors import ApiError, ParseError
from computress.models import Decision, NameRequest
from computress.services.approval_client import ApprovalClient
from computress.services.chat_output import ChatOutput
from computress.services.logger_service import LoggerService
from computress.services.task_supervisor import TaskSupervisor
from computress.ui.name_request import APPROVE_ID, CONTROL_PREFIX, DENY_ID, recover

PERMISSION_DENIED_TEXT = "You don't have permission to do that."

DECISION_MARKERS: dict[Decision, str] = {
    Decision.APPROVED: "**approved** :white_check_mark:",
    Decision.DENIED: "**denied** :no_entry:",
}


@dataclass(frozen=True)
class ControlRoute:
    decision: Decision
    requires_moderator: bool = True


# New controls are added here; anything routed with requires_moderator is checked against the mod role.
ROUTES: dict[str, ControlRoute] = {
    APPROVE_ID: ControlRoute(decision=Decision.APPROVED),
    DENY_ID: ControlRoute(decision=Decision.DENIED),
}


def format_decision(request: NameRequest, decision: Decision) -> str:
    return f"Name request from Player {request.player_uid} {DECISION_MARKERS[decision]}: {request.requested_name}"


def has_role(user: object, role_id: int) -> bool:
    return any(getattr(role, "id", None) == role_id for role in getattr(user, "roles", ()) or ())


def actor_name(user: object) -> str:
    name = getattr(user, "name", None)
    if name:
        return str(name)
    return str(getattr(user, "id", "unknown"))


def custom_id_of(interaction: discord.Interaction) -> str:
    data = interaction.data or {}
    return str(data.get("custom_id", ""))


class InteractionDispatcher:
    def __init__(
        self,
        bot: discord.Client,
        client: ApprovalClient,
        output: ChatOutput,
        supervisor: TaskSupervisor,
        logger: LoggerService,
        *,
        mod_role_id: int,
        log_channel_id: int | None,
    ) -> None:
        self.bot = bot
        self.client = client
        self.output = output
        self.supervisor = supervisor
        self.logger = logger
        self.mod_role_id = mod_role_id
        self.log_channel_id = log_channel_id

    def accepts(self, interaction: discord.Interaction) -> bool:
        if interaction.type != discord.InteractionType.component:
            return False
        return custom_id_of(interaction).startswith(CONTROL_PREFIX)

    async def run(self) -> None:
        await self.bot.wait_until_ready()
        self.logger.log("interaction.listening")
        while True:
            try:
                interaction = await self.bot.wait_for("interaction", check=self.accepts)
            except Exception as exc:  # noqa: BLE001
                self.logger.log("interaction.receive_failed", error=str(exc)[:300])
                continue
            self.supervisor.spawn(self.handle(interaction), name=f"interaction-{interaction.id}")

    async def handle(self, interaction: discord.Interaction) -> None:
        custom_id = custom_id_of(interaction)
        route = ROUTES.get(custom_id)
        if route is None:
            self.logger.log("interaction.unknown", custom_id=custom_id, user_id=interaction.user.id)
            return
        if route.requires_moderator and not has_role(interaction.user, self.mod_role_id):
            self.logger.log("interaction.rejected", custom_id=custom_id, user_id=interaction.user.id)
            await interaction.response.send_message(PERMISSION_DENIED_TEXT, ephemeral=True)
            return
        try:
            await interaction.response.defer()
        except discord.HTTPException as exc:
            self.logger.log("interaction.ack_failed", custom_id=custom_id, error=str(exc)[:300])
        try:
            await self.resolve_name_request(interaction, route.decision)
        except ParseError as exc:
            self.logger.log("namereq.parse_failed", custom_id=custom_id, error=str(exc)[:300])
        except ApiError as exc:
            self.logger.log("namereq.submit_failed", endpoint=exc.endpoint, status=exc.status, error=exc.detail[:300])

    async def resolve_name_request(self, interaction: discord.Interaction, decision: Decision) -> None:
        message = interaction.message
        request = recover(message.content if message is not None else "")
        updated = await self.client.submit_decision(request, decision, by=actor_name(interaction.user))
        if not updated:
            self.logger.log("namereq.already_decided", player_uid=request.player_uid, decision=decision.value)

        if message is not None:
            try:
                await message.delete()
            except discord.HTTPException:
                pass

        self.logger.log(
            "namereq.decided",
            player_uid=request.player_uid,
            decision=decision.value,
            actor_id=interaction.user.id,
            updated=updated,
        )
        await self.output.send(self.log_channel_id, format_decision(request, decision))
