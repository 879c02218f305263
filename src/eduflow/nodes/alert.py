"""
Multi-channel alert node.

Fans one message out over several channels. Each channel is attempted
independently and its errors are caught locally, so one broken channel
never stops the others. The node succeeds when at least one channel did.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import field_validator

from eduflow.models import NodeOutcome, utcnow
from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext, NodeOutput
from eduflow.nodes.messaging import (
    resolve_smtp,
    resolve_twilio,
    send_discord,
    send_email,
    send_slack,
    send_twilio_message,
    split_recipients,
)


ALERT_CHANNELS = ("whatsapp", "email", "sms", "slack", "discord")


class AlertSendConfig(NodeConfig):
    channels: Union[str, List[str]]
    recipients: Union[str, List[str]]
    message: str
    title: str = "Alert"
    priority: str = "normal"

    @field_validator("channels")
    @classmethod
    def channels_required(cls, v: Union[str, List[str]]) -> Union[str, List[str]]:
        if not v:
            raise ValueError(f"Alert node requires \"channels\" field ({', '.join(ALERT_CHANNELS)})")
        return v

    @field_validator("recipients")
    @classmethod
    def recipients_required(cls, v: Union[str, List[str]]) -> Union[str, List[str]]:
        if not v:
            raise ValueError('Alert node requires "recipients" field')
        return v

    @field_validator("message")
    @classmethod
    def message_required(cls, v: str) -> str:
        if not v:
            raise ValueError('Alert node requires "message" field')
        return v

    @property
    def channel_list(self) -> List[str]:
        return [self.channels] if isinstance(self.channels, str) else list(self.channels)


class AlertSendNode(BaseNode):
    """
    Sends an alert over whatsapp, email, sms, slack and/or discord.

    Output:
        results: one entry per channel ({channel, success, ...})
        totalChannels / successfulChannels: counts
    """

    type = "alert-send"
    description = {
        "label": "Multi-Channel Alert",
        "description": "Send alerts via WhatsApp, Email, and SMS",
        "category": "Communication",
    }
    config_model = AlertSendConfig

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        config: AlertSendConfig = self.parsed_config
        recipients = split_recipients(config.recipients)
        channels = config.channel_list

        results: List[Dict[str, Any]] = []
        for channel in channels:
            try:
                results.append(await self._dispatch(channel, context, recipients, config))
            except Exception as e:
                self.logger.error(f"Alert channel {channel} failed: {e}")
                results.append({"channel": channel, "success": False, "error": str(e)})

        successful = sum(1 for r in results if r.get("success"))
        self.logger.info(f"Alert complete: {successful}/{len(channels)} channels successful")

        all_simulated = bool(results) and all(r.get("simulated") for r in results if r.get("success"))
        if successful == 0:
            outcome = NodeOutcome.FAILED
        elif all_simulated:
            outcome = NodeOutcome.SIMULATED
        else:
            outcome = NodeOutcome.EXECUTED

        return NodeOutput(
            data={
                "results": results,
                "priority": config.priority,
                "totalChannels": len(channels),
                "successfulChannels": successful,
                "timestamp": utcnow().isoformat(),
            },
            success=successful > 0,
            outcome=outcome,
            error=None if successful else "All alert channels failed",
        )

    async def _dispatch(
        self,
        channel: str,
        context: NodeExecutionContext,
        recipients: List[str],
        config: AlertSendConfig,
    ) -> Dict[str, Any]:
        if channel in ("whatsapp", "sms"):
            return await self._send_twilio(channel, context, recipients, config.message)
        if channel == "email":
            return await self._send_email(context, recipients, config.title, config.message)
        if channel == "slack":
            return await self._send_webhook("slack", context, config.message)
        if channel == "discord":
            return await self._send_webhook("discord", context, config.message)

        self.logger.warning(f"Unknown alert channel: {channel}")
        return {"channel": channel, "success": False, "error": "Unknown channel"}

    async def _send_twilio(
        self,
        channel: str,
        context: NodeExecutionContext,
        recipients: List[str],
        message: str,
    ) -> Dict[str, Any]:
        whatsapp = channel == "whatsapp"
        account = resolve_twilio(context, whatsapp=whatsapp)
        if account is None:
            self.logger.warning(f"{channel} not configured, simulating")
            return {"channel": channel, "success": True, "recipients": len(recipients), "simulated": True}

        sent = 0
        for recipient in recipients:
            number = recipient.removeprefix("whatsapp:")
            number = number if number.startswith("+") else f"+{number}"
            try:
                await send_twilio_message(account, f"whatsapp:{number}" if whatsapp else number, message)
                sent += 1
            except Exception as e:
                self.logger.error(f"{channel} send to {recipient} failed: {e}")

        return {
            "channel": channel,
            "success": sent > 0,
            "recipients": len(recipients),
            "successfulSends": sent,
            "simulated": False,
        }

    async def _send_email(
        self,
        context: NodeExecutionContext,
        recipients: List[str],
        title: str,
        message: str,
    ) -> Dict[str, Any]:
        account = resolve_smtp(context)
        if account is None:
            self.logger.warning("email not configured, simulating")
            return {"channel": "email", "success": True, "recipients": len(recipients), "simulated": True}

        for recipient in recipients:
            await send_email(account, [recipient], title, message)
        return {"channel": "email", "success": True, "recipients": len(recipients), "simulated": False}

    async def _send_webhook(self, channel: str, context: NodeExecutionContext, message: str) -> Dict[str, Any]:
        env_name = "SLACK_WEBHOOK_URL" if channel == "slack" else "DISCORD_WEBHOOK_URL"
        webhook_url: Optional[str] = self.env(env_name) or context.credential(f"{channel}WebhookUrl")
        if not webhook_url:
            self.logger.warning(f"{channel} not configured, simulating")
            return {"channel": channel, "success": True, "simulated": True}

        if channel == "slack":
            await send_slack(webhook_url, message)
        else:
            await send_discord(webhook_url, message)
        return {"channel": channel, "success": True, "simulated": False}


__all__ = ["AlertSendNode", "ALERT_CHANNELS"]
