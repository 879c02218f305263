"""
Generic nodes.

- PassThroughNode: fallback for node types nobody registered
- SimulatedNode: catalogue node types without a live integration yet;
  returns type-specific sample output flagged as simulated
"""

from __future__ import annotations

import secrets
import time
from datetime import timedelta
from typing import Any, Dict

from eduflow.models import NodeOutcome, utcnow
from eduflow.nodes.base import BaseNode, NodeExecutionContext, NodeOutput


class PassThroughNode(BaseNode):
    """
    Fallback for unknown node types.

    Never fails validation and echoes its configuration, so workflows
    saved by a newer editor still run on an older engine.
    """

    type = "pass-through"
    description = {
        "label": "Pass Through",
        "description": "Echoes its configuration",
        "category": "Utility",
    }

    def validate(self, config: Dict[str, Any]) -> None:
        pass

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        return NodeOutput(
            data={
                "nodeType": self.node_type,
                "config": dict(self.config),
                "passThrough": True,
            },
            outcome=NodeOutcome.SKIPPED,
        )


# Catalogue entries served by SimulatedNode: type -> (label, description, category)
SIMULATED_NODE_TYPES: Dict[str, tuple] = {
    "trigger-schedule": ("Schedule Trigger", "Start a workflow on a schedule", "Trigger"),
    "trigger-webhook": ("Webhook Trigger", "Start a workflow from an HTTP call", "Trigger"),
    "trigger-form": ("Form Trigger", "Start a workflow on form submission", "Trigger"),
    "trigger-email": ("Email Trigger", "Start a workflow on incoming email", "Trigger"),
    "google-classroom": ("Google Classroom", "Read courses and coursework", "Google Suite"),
    "google-drive": ("Google Drive", "Manage files in Drive", "Google Suite"),
    "google-sheets": ("Google Sheets", "Read and write spreadsheet rows", "Google Suite"),
    "google-calendar": ("Google Calendar", "List and create events", "Google Suite"),
    "google-meet": ("Google Meet", "Create meeting links", "Google Suite"),
    "google-forms": ("Google Forms", "Read form responses", "Google Suite"),
    "microsoft-teams": ("Microsoft Teams", "Post to Teams channels", "Microsoft 365"),
    "microsoft-outlook": ("Microsoft Outlook", "Send mail with Outlook", "Microsoft 365"),
    "microsoft-onedrive": ("Microsoft OneDrive", "Manage files in OneDrive", "Microsoft 365"),
    "microsoft-excel": ("Microsoft Excel", "Read and write workbooks", "Microsoft 365"),
    "telegram-send": ("Send to Telegram", "Send Telegram messages", "Communication"),
    "zoom-meeting": ("Zoom Meeting", "Schedule Zoom meetings", "Video & Meetings"),
    "zoom-recording": ("Zoom Recording", "Fetch Zoom recordings", "Video & Meetings"),
    "grade-calculate": ("Calculate Grade", "Compute grades from scores", "Education"),
    "ai-summarize": ("AI Summarize", "Summarize text with AI", "AI & Analytics"),
    "ai-translate": ("AI Translate", "Translate text with AI", "AI & Analytics"),
    "ai-sentiment": ("AI Sentiment", "Score sentiment with AI", "AI & Analytics"),
    "loop": ("Loop", "Iterate over items", "Logic"),
    "filter": ("Filter", "Keep items matching a condition", "Logic"),
}


class SimulatedNode(BaseNode):
    """
    Stand-in for catalogue node types without a live integration.

    One class serves every type in SIMULATED_NODE_TYPES; the registry
    passes the concrete type tag at construction time.
    """

    type = "simulated"
    description = {
        "label": "Simulated",
        "description": "Returns sample output",
        "category": "Utility",
    }

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        label = SIMULATED_NODE_TYPES.get(self.node_type, (self.node_type,))[0]
        self.logger.info(f"Simulating {label}")
        return NodeOutput.simulated({
            "nodeType": self.node_type,
            "label": label,
            "timestamp": utcnow().isoformat(),
            "config": dict(self.config),
            "context": {"workflowId": context.workflow_id, "runId": context.run_id},
            "output": self._sample_output(context),
        })

    def _sample_output(self, context: NodeExecutionContext) -> Dict[str, Any]:
        config = self.config
        data = context.input
        now = utcnow()

        if self.node_type == "trigger-schedule":
            return {
                "triggered": True,
                "scheduledTime": config.get("scheduledTime") or now.isoformat(),
                "cronExpression": config.get("cronExpression") or "* * * * *",
                "nextRun": (now + timedelta(minutes=1)).isoformat(),
            }
        if self.node_type == "trigger-webhook":
            return {
                "triggered": True,
                "webhookId": config.get("webhookId") or f"wh_{int(time.time() * 1000)}",
                "method": data.get("method", "POST"),
                "payload": data.get("body", {}),
            }
        if self.node_type == "google-classroom":
            return {
                "action": config.get("action", "list_courses"),
                "courseId": config.get("courseId"),
                "courses": [
                    {"id": "course_1", "name": "Mathematics 101", "enrollment": 32},
                    {"id": "course_2", "name": "Physics 201", "enrollment": 28},
                ],
            }
        if self.node_type == "google-sheets":
            return {
                "spreadsheetId": config.get("spreadsheetId"),
                "range": config.get("range", "A1:Z100"),
                "action": config.get("action", "read"),
                "rowsAffected": 10,
                "data": data.get("data", []),
            }
        if self.node_type == "google-calendar":
            return {
                "calendarId": config.get("calendarId", "primary"),
                "action": config.get("action", "list_events"),
                "events": [
                    {"id": "evt_1", "title": "Class - Math", "start": "09:00", "end": "10:00"},
                    {"id": "evt_2", "title": "Meeting", "start": "14:00", "end": "15:00"},
                ],
            }
        if self.node_type == "zoom-meeting":
            stamp = int(time.time() * 1000)
            return {
                "meetingId": f"zm_{stamp}",
                "topic": config.get("topic", "Scheduled Meeting"),
                "startTime": config.get("startTime") or now.isoformat(),
                "duration": config.get("duration", 60),
                "joinUrl": f"https://zoom.us/j/{stamp}",
                "password": secrets.token_urlsafe(6),
            }
        if self.node_type == "grade-calculate":
            return {
                "formula": config.get("formula", "weighted_average"),
                "inputScores": config.get("scores", []),
                "calculatedGrade": 85.5,
                "letterGrade": "B+",
                "passed": True,
            }
        if self.node_type == "ai-summarize":
            text = config.get("text") or data.get("text") or ""
            return {
                "originalLength": len(text),
                "summary": "This is an AI-generated summary of the provided content.",
                "keyPoints": ["Point 1", "Point 2", "Point 3"],
                "sentiment": "neutral",
            }
        if self.node_type == "loop":
            items = config.get("items") or data.get("items") or []
            return {
                "iterations": len(items),
                "items": items,
                "processed": [{"index": i, "item": item, "processed": True} for i, item in enumerate(items)],
            }
        if self.node_type == "filter":
            rows = data.get("data") or []
            kept = int(len(rows) * 0.7)
            return {
                "originalCount": len(rows),
                "filteredCount": kept,
                "condition": config.get("condition"),
                "filtered": rows[:kept],
            }
        return {"processed": True}


__all__ = ["PassThroughNode", "SimulatedNode", "SIMULATED_NODE_TYPES"]
