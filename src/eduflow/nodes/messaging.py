"""
Messaging nodes and the channel senders they share.

Connection settings are looked up in order: node config, resolved
integration credentials, environment variables. Email and Twilio nodes
report a simulated outcome when nothing is configured; webhook nodes
(Slack, Discord) fail instead, since they have no meaningful preview.
"""

from __future__ import annotations

import asyncio
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, List, Optional, Union

from pydantic import field_validator

from eduflow.errors import NodeApiError, NodeExecutionError, NodeValidationError
from eduflow.models import NodeOutcome, utcnow
from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext, NodeOutput
from eduflow.nodes.http import HttpClient


SLACK_WEBHOOK_PREFIX = "https://hooks.slack.com/"
DISCORD_WEBHOOK_PREFIX = "https://discord.com/api/webhooks/"
TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
TWILIO_DEFAULT_FROM = "+14155238886"
BOT_NAME = "EduFlow Bot"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[\d\s\-+()]+$")


def split_recipients(recipients: Union[str, List[str]]) -> List[str]:
    """Comma-separated string or list -> clean list."""
    if isinstance(recipients, str):
        return [r.strip() for r in recipients.split(",") if r.strip()]
    return [str(r).strip() for r in recipients if str(r).strip()]


def e164(number: str) -> str:
    number = number.removeprefix("whatsapp:").replace(" ", "")
    return number if number.startswith("+") else f"+{number}"


def whatsapp_address(number: str) -> str:
    """'+1 555 0100' / '15550100' -> 'whatsapp:+15550100'"""
    return f"whatsapp:{e164(number)}"


# ==============================================================================
# Channel senders
# ==============================================================================

async def send_slack(webhook_url: str, message: str, **extra: Any) -> None:
    """Post to a Slack incoming webhook. Slack answers with the literal 'ok'."""
    payload = {"text": message, **{k: v for k, v in extra.items() if v is not None}}
    response = await HttpClient().post(webhook_url, json=payload)
    if not response.ok:
        raise NodeApiError(
            f"Slack API error: {response.status_code} {response.reason}",
            status_code=response.status_code,
            response_body=response.text,
        )
    if response.text != "ok":
        raise NodeApiError(f"Slack returned unexpected response: {response.text}")


async def send_discord(webhook_url: str, message: str, **extra: Any) -> None:
    """Post to a Discord webhook (204 No Content on success)."""
    payload = {"content": message, **{k: v for k, v in extra.items() if v is not None}}
    response = await HttpClient().post(webhook_url, json=payload)
    if not response.ok:
        detail = response.text
        if response.is_json and response.text:
            detail = response.json().get("message", response.text)
        raise NodeApiError(
            f"Discord API error: {detail or response.status_code}",
            status_code=response.status_code,
            response_body=response.text,
        )


@dataclass
class TwilioAccount:
    account_sid: str
    auth_token: str
    from_number: str


async def send_twilio_message(account: TwilioAccount, to: str, body: str) -> Dict[str, Any]:
    """Create one Twilio message (SMS or WhatsApp depending on the numbers)."""
    client = HttpClient(auth=(account.account_sid, account.auth_token))
    response = await client.post(
        TWILIO_API_URL.format(sid=account.account_sid),
        data={"From": account.from_number, "To": to, "Body": body},
    )
    data = response.json() if response.text else {}
    if not response.ok:
        raise NodeApiError(
            f"Twilio error: {data.get('message')} (Code: {data.get('code')})",
            status_code=response.status_code,
            response_body=response.text,
        )
    return data


def resolve_twilio(
    context: NodeExecutionContext,
    config: Optional[NodeConfig] = None,
    whatsapp: bool = False,
) -> Optional[TwilioAccount]:
    """Twilio account from config > credentials > env; None if unconfigured."""
    extra = (config.model_extra or {}) if config is not None else {}
    sid = extra.get("accountSid") or context.credential("accountSid") or BaseNode.env("TWILIO_ACCOUNT_SID")
    token = extra.get("authToken") or context.credential("authToken") or BaseNode.env("TWILIO_AUTH_TOKEN")
    if not sid or not token:
        return None

    if whatsapp:
        sender = (
            extra.get("from")
            or context.credential("whatsappFrom", "fromNumber", "phoneNumber")
            or BaseNode.env("TWILIO_WHATSAPP_FROM")
            or BaseNode.env("TWILIO_PHONE_NUMBER")
            or TWILIO_DEFAULT_FROM
        )
        sender = sender if sender.startswith("whatsapp:") else f"whatsapp:{sender}"
    else:
        sender = (
            extra.get("fromNumber")
            or context.credential("phoneNumber", "fromNumber")
            or BaseNode.env("TWILIO_PHONE_NUMBER")
            or TWILIO_DEFAULT_FROM
        ).replace("whatsapp:", "")
    return TwilioAccount(account_sid=sid, auth_token=token, from_number=sender)


@dataclass
class SmtpAccount:
    host: str
    port: int
    user: str
    password: str


def resolve_smtp(context: NodeExecutionContext, config: Optional[NodeConfig] = None) -> Optional[SmtpAccount]:
    """SMTP account from config > credentials > env; None if unconfigured."""
    extra = (config.model_extra or {}) if config is not None else {}
    host = extra.get("smtpHost") or context.credential("host") or BaseNode.env("SMTP_HOST")
    user = extra.get("smtpUser") or context.credential("user") or BaseNode.env("SMTP_USER")
    password = extra.get("smtpPass") or context.credential("pass", "password") or BaseNode.env("SMTP_PASS")
    port = extra.get("smtpPort") or context.credential("port") or BaseNode.env("SMTP_PORT", "587")
    if not host or not user or not password:
        return None
    return SmtpAccount(host=host, port=int(port), user=user, password=password)


def _deliver_email(account: SmtpAccount, message: EmailMessage) -> None:
    if account.port == 465:
        with smtplib.SMTP_SSL(account.host, account.port) as server:
            server.login(account.user, account.password)
            server.send_message(message)
        return
    with smtplib.SMTP(account.host, account.port) as server:
        server.starttls()
        server.login(account.user, account.password)
        server.send_message(message)


async def send_email(
    account: SmtpAccount,
    to: List[str],
    subject: str,
    text: str,
    sender: Optional[str] = None,
) -> str:
    """Send one email through SMTP; returns the Message-ID."""
    message = EmailMessage()
    message["From"] = sender or account.user
    message["To"] = ", ".join(to)
    message["Subject"] = subject
    message["Message-ID"] = make_msgid()
    message.set_content(text)
    message.add_alternative(
        f'<div style="font-family: Arial, sans-serif; padding: 20px;">'
        f"<h2>{subject}</h2><div style=\"white-space: pre-wrap;\">{text}</div></div>",
        subtype="html",
    )
    try:
        await asyncio.to_thread(_deliver_email, account, message)
    except (smtplib.SMTPException, OSError) as e:
        raise NodeExecutionError(f"Email send failed: {e}") from e
    return message["Message-ID"]


# ==============================================================================
# Nodes
# ==============================================================================

class WebhookMessageConfig(NodeConfig):
    message: str

    @field_validator("message")
    @classmethod
    def message_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Message is required")
        return v


class SlackSendConfig(WebhookMessageConfig):
    webhookUrl: Optional[str] = None
    channel: Optional[str] = None
    username: str = BOT_NAME
    icon_emoji: str = ":robot_face:"


class SlackSendNode(BaseNode):
    type = "slack-send"
    description = {
        "label": "Send to Slack",
        "description": "Send messages to Slack channels",
        "category": "Communication",
    }
    config_model = SlackSendConfig

    def check(self, config: SlackSendConfig) -> None:
        if config.webhookUrl and not config.webhookUrl.startswith(SLACK_WEBHOOK_PREFIX):
            raise NodeValidationError("Invalid Slack webhook URL format", node_type=self.type, field="webhookUrl")

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: SlackSendConfig = self.parsed_config
        webhook_url = config.webhookUrl or context.credential("webhookUrl") or self.env("SLACK_WEBHOOK_URL")
        if not webhook_url:
            raise NodeExecutionError(
                "Slack webhook URL is required. Configure it in the node settings, "
                "integration page, or set SLACK_WEBHOOK_URL environment variable."
            )

        await send_slack(
            webhook_url,
            config.message,
            channel=config.channel,
            username=config.username,
            icon_emoji=config.icon_emoji,
        )
        return {
            "message": config.message,
            "channel": config.channel,
            "status": "sent",
            "timestamp": utcnow().isoformat(),
        }


class DiscordSendConfig(WebhookMessageConfig):
    webhookUrl: Optional[str] = None
    username: str = BOT_NAME
    avatar_url: Optional[str] = None


class DiscordSendNode(BaseNode):
    type = "discord-send"
    description = {
        "label": "Send to Discord",
        "description": "Send messages to Discord channels",
        "category": "Communication",
    }
    config_model = DiscordSendConfig

    def check(self, config: DiscordSendConfig) -> None:
        if config.webhookUrl and not config.webhookUrl.startswith(DISCORD_WEBHOOK_PREFIX):
            raise NodeValidationError("Invalid Discord webhook URL format", node_type=self.type, field="webhookUrl")

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: DiscordSendConfig = self.parsed_config
        webhook_url = config.webhookUrl or context.credential("webhookUrl") or self.env("DISCORD_WEBHOOK_URL")
        if not webhook_url:
            raise NodeExecutionError(
                "Discord webhook URL is required. Configure it in the node settings, "
                "integration page, or set DISCORD_WEBHOOK_URL environment variable."
            )

        await send_discord(webhook_url, config.message, username=config.username, avatar_url=config.avatar_url)
        return {
            "message": config.message,
            "username": config.username,
            "status": "sent",
            "timestamp": utcnow().isoformat(),
        }


class EmailSendConfig(NodeConfig):
    to: str
    subject: str
    body: str

    @field_validator("to")
    @classmethod
    def to_is_email(cls, v: str) -> str:
        if not v:
            raise ValueError("Recipient email (to) is required")
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid recipient email format")
        return v

    @field_validator("subject", "body")
    @classmethod
    def not_empty(cls, v: str, info) -> str:
        if not v:
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return v


class EmailSendNode(BaseNode):
    type = "email-send"
    description = {
        "label": "Send Email",
        "description": "Send emails via SMTP",
        "category": "Communication",
    }
    config_model = EmailSendConfig

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: EmailSendConfig = self.parsed_config
        sender = (config.model_extra or {}).get("from")
        account = resolve_smtp(context, config)

        if account is None:
            self.logger.warning("SMTP not configured, simulating email send")
            return NodeOutput.simulated({
                "preview": f"Would send email to {config.to}",
                "to": config.to,
                "subject": config.subject,
                "body": config.body,
                "note": "Configure SMTP in Integration page or set SMTP_* environment variables for real email sending",
                "timestamp": utcnow().isoformat(),
            })

        message_id = await send_email(account, [config.to], config.subject, config.body, sender=sender)
        return {
            "messageId": message_id,
            "to": config.to,
            "from": sender or account.user,
            "subject": config.subject,
            "status": "sent",
            "timestamp": utcnow().isoformat(),
        }


class TwilioMessageConfig(NodeConfig):
    to: str
    message: str

    @field_validator("to")
    @classmethod
    def to_is_phone(cls, v: str) -> str:
        if not v:
            raise ValueError("Phone number (to) is required")
        if not PHONE_PATTERN.match(v.removeprefix("whatsapp:")):
            raise ValueError("Invalid phone number format")
        return v

    @field_validator("message")
    @classmethod
    def message_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Message is required")
        return v


class TwilioSmsNode(BaseNode):
    type = "twilio-sms"
    description = {
        "label": "Send SMS",
        "description": "Send SMS messages via Twilio",
        "category": "Communication",
    }
    config_model = TwilioMessageConfig
    whatsapp = False

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: TwilioMessageConfig = self.parsed_config
        account = resolve_twilio(context, config, whatsapp=self.whatsapp)
        channel = "WhatsApp" if self.whatsapp else "SMS"

        if account is None:
            self.logger.warning(f"Twilio not configured, simulating {channel} send")
            return NodeOutput.simulated({
                "preview": f"Would send {channel} to {config.to}: {config.message}",
                "to": config.to,
                "body": config.message,
                "note": "Configure Twilio in Integration page or set TWILIO_* environment variables",
                "timestamp": utcnow().isoformat(),
            })

        data = await send_twilio_message(account, self._format_to(config.to), config.message)
        return {
            "sid": data.get("sid"),
            "to": data.get("to"),
            "from": data.get("from"),
            "body": config.message,
            "status": data.get("status"),
            "timestamp": utcnow().isoformat(),
        }

    def _format_to(self, to: str) -> str:
        return whatsapp_address(to) if self.whatsapp else e164(to)


class TwilioWhatsAppNode(TwilioSmsNode):
    type = "twilio-whatsapp"
    description = {
        "label": "Send WhatsApp",
        "description": "Send WhatsApp messages via Twilio",
        "category": "Communication",
    }
    whatsapp = True


class WhatsAppGroupConfig(NodeConfig):
    to: Union[str, List[str], None] = None
    message: Optional[str] = None
    groupName: Optional[str] = None

    @property
    def recipient_list(self) -> List[str]:
        return split_recipients(self.to or [])


class WhatsAppGroupNode(BaseNode):
    """
    Sends one WhatsApp message to each number of a group.

    Every recipient is attempted; the node reports a failed outcome when
    any send failed, with per-recipient details in `results`.
    """

    type = "whatsapp-group"
    description = {
        "label": "WhatsApp Group",
        "description": "Send a WhatsApp message to a group of numbers",
        "category": "Communication",
    }
    config_model = WhatsAppGroupConfig

    def check(self, config: WhatsAppGroupConfig) -> None:
        recipients = config.recipient_list
        if not recipients:
            raise NodeValidationError(
                'WhatsApp Group node requires "to" field (comma-separated phone numbers)',
                node_type=self.type,
                field="to",
            )
        if not config.message:
            raise NodeValidationError(
                'WhatsApp Group node requires "message" field',
                node_type=self.type,
                field="message",
            )
        for recipient in recipients:
            if not PHONE_PATTERN.match(recipient.removeprefix("whatsapp:")):
                raise NodeValidationError(f"Invalid phone number format: {recipient}", node_type=self.type, field="to")

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        config: WhatsAppGroupConfig = self.parsed_config
        recipients = config.recipient_list
        account = resolve_twilio(context, config, whatsapp=True)

        if account is None:
            self.logger.warning("Twilio not configured, simulating WhatsApp group send")
            return NodeOutput.simulated({
                "status": "simulated",
                "recipients": recipients,
                "message": config.message,
                "groupName": config.groupName,
                "timestamp": utcnow().isoformat(),
                "note": "Configure Twilio in Integration page or set TWILIO_* environment variables",
            })

        results: List[Dict[str, Any]] = []
        for recipient in recipients:
            try:
                data = await send_twilio_message(account, whatsapp_address(recipient), config.message)
                results.append({
                    "recipient": recipient,
                    "success": True,
                    "sid": data.get("sid"),
                    "status": data.get("status"),
                })
            except (NodeApiError, NodeExecutionError) as e:
                self.logger.error(f"WhatsApp send to {recipient} failed: {e}")
                results.append({"recipient": recipient, "success": False, "error": str(e)})

        failed = sum(1 for r in results if not r["success"])
        self.logger.info(f"WhatsApp group send complete: {len(results) - failed}/{len(results)} delivered")
        return NodeOutput(
            data={
                "results": results,
                "groupName": config.groupName,
                "totalRecipients": len(recipients),
                "successfulSends": len(results) - failed,
                "failedSends": failed,
                "timestamp": utcnow().isoformat(),
            },
            success=failed == 0,
            outcome=NodeOutcome.FAILED if failed else NodeOutcome.EXECUTED,
            error=f"{failed} message(s) failed to send" if failed else None,
        )


__all__ = [
    "SlackSendNode",
    "DiscordSendNode",
    "EmailSendNode",
    "TwilioSmsNode",
    "TwilioWhatsAppNode",
    "WhatsAppGroupNode",
    "send_slack",
    "send_discord",
    "send_email",
    "send_twilio_message",
    "resolve_smtp",
    "resolve_twilio",
    "split_recipients",
    "whatsapp_address",
]
