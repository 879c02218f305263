"""
Integration catalogue.

The single table mapping node types to the integration types they need.
Credential resolution and readiness checking both read it, so the two
can never disagree about what a node requires.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class NodeIntegration:
    """Integrations required by one node type, in merge order."""
    name: str
    integrations: Tuple[str, ...]


NODE_INTEGRATIONS: Dict[str, NodeIntegration] = {
    # Twilio
    "twilio-sms": NodeIntegration("Twilio SMS", ("twilio",)),
    "twilio-whatsapp": NodeIntegration("Twilio WhatsApp", ("twilio",)),
    "whatsapp-group": NodeIntegration("WhatsApp", ("whatsapp",)),
    # Email
    "email-send": NodeIntegration("Email / Gmail", ("gmail",)),
    "alert-send": NodeIntegration("Multi-Channel Alert", ("twilio", "gmail")),
    # Chat
    "slack-send": NodeIntegration("Slack", ("slack",)),
    "discord-send": NodeIntegration("Discord", ("discord",)),
    "telegram-send": NodeIntegration("Telegram", ("telegram",)),
    # Google Suite
    "google-classroom": NodeIntegration("Google Classroom", ("google-classroom",)),
    "google-drive": NodeIntegration("Google Drive", ("google-drive",)),
    "google-sheets": NodeIntegration("Google Sheets", ("google-sheets",)),
    "google-calendar": NodeIntegration("Google Calendar", ("google-calendar",)),
    "google-meet": NodeIntegration("Google Meet", ("google-meet",)),
    "google-forms": NodeIntegration("Google Forms", ("google-forms",)),
    # Microsoft 365
    "microsoft-teams": NodeIntegration("Microsoft Teams", ("microsoft",)),
    "microsoft-outlook": NodeIntegration("Microsoft Outlook", ("microsoft",)),
    "microsoft-onedrive": NodeIntegration("Microsoft OneDrive", ("onedrive",)),
    "microsoft-excel": NodeIntegration("Microsoft Excel", ("microsoft",)),
    # Video
    "zoom-meeting": NodeIntegration("Zoom", ("zoom",)),
    "zoom-recording": NodeIntegration("Zoom", ("zoom",)),
    # AI
    "local-ai": NodeIntegration("OpenAI/ChatGPT", ("openai",)),
    "ai-summarize": NodeIntegration("OpenAI/ChatGPT", ("openai",)),
    "ai-translate": NodeIntegration("OpenAI/ChatGPT", ("openai",)),
    "ai-sentiment": NodeIntegration("OpenAI/ChatGPT", ("openai",)),
}

INTEGRATION_NAMES: Dict[str, str] = {
    "twilio": "Twilio",
    "whatsapp": "WhatsApp",
    "gmail": "Email / Gmail",
    "slack": "Slack",
    "discord": "Discord",
    "telegram": "Telegram",
    "google-classroom": "Google Classroom",
    "google-drive": "Google Drive",
    "google-sheets": "Google Sheets",
    "google-calendar": "Google Calendar",
    "google-meet": "Google Meet",
    "google-forms": "Google Forms",
    "microsoft": "Microsoft 365",
    "onedrive": "Microsoft OneDrive",
    "zoom": "Zoom",
    "openai": "OpenAI/ChatGPT",
}

# Environment variables that fully configure an integration without a stored connection
ENV_FALLBACKS: Dict[str, Tuple[str, ...]] = {
    "twilio": ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"),
    "gmail": ("SMTP_HOST", "SMTP_USER", "SMTP_PASS"),
    "slack": ("SLACK_WEBHOOK_URL",),
    "discord": ("DISCORD_WEBHOOK_URL",),
    "whatsapp": ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_WHATSAPP_FROM"),
    "openai": ("OPENAI_API_KEY",),
}

MICROSOFT_INTEGRATIONS = frozenset({"microsoft", "onedrive"})


def required_integrations(node_type: str) -> Tuple[str, ...]:
    """Integration types needed by `node_type` (possibly none)."""
    entry = NODE_INTEGRATIONS.get(node_type)
    return entry.integrations if entry else ()


def integration_name(integration_type: str) -> str:
    return INTEGRATION_NAMES.get(integration_type, integration_type)


def is_google_integration(integration_type: str) -> bool:
    return integration_type == "google" or integration_type.startswith("google-")


def is_microsoft_integration(integration_type: str) -> bool:
    return integration_type in MICROSOFT_INTEGRATIONS


def has_env_fallback(integration_type: str) -> bool:
    """True when every fallback variable of the integration is set and non-empty."""
    names = ENV_FALLBACKS.get(integration_type)
    if not names:
        return False
    return all(os.environ.get(name) for name in names)


__all__ = [
    "NodeIntegration",
    "NODE_INTEGRATIONS",
    "INTEGRATION_NAMES",
    "ENV_FALLBACKS",
    "required_integrations",
    "integration_name",
    "is_google_integration",
    "is_microsoft_integration",
    "has_env_fallback",
]
