"""Tests for the bundled node kinds."""
from unittest.mock import AsyncMock, patch

import pytest

from eduflow.errors import NodeApiError, NodeExecutionError, NodeValidationError
from eduflow.models import NodeOutcome
from eduflow.nodes import NodeOutput
from eduflow.nodes.ai import LocalAINode, extract_keywords, summarize, writing_feedback
from eduflow.nodes.education import AssignmentCreateNode, AttendanceTrackNode, ScheduleCheckNode
from eduflow.nodes.files import FileUploadNode
from eduflow.nodes.generic import PassThroughNode, SimulatedNode
from eduflow.nodes.http import HttpResponse
from eduflow.nodes.http_request import HttpRequestNode
from eduflow.nodes.logic import ConditionNode, DelayNode, get_nested_value
from eduflow.nodes.messaging import (
    DiscordSendNode,
    EmailSendNode,
    SlackSendNode,
    TwilioSmsNode,
    TwilioWhatsAppNode,
    WhatsAppGroupNode,
    split_recipients,
    whatsapp_address,
)


def response(status=200, text="", content_type="application/json", reason="OK"):
    return HttpResponse(status_code=status, reason=reason, headers={"Content-Type": content_type}, text=text)


def validated(node_class, config):
    node = node_class(config)
    node.validate(config)
    return node


class TestConditionNode:

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            ("equals", "active", True),
            ("not_equals", "active", False),
            ("contains", "ACT", True),
            ("not-contains", "xyz", True),
            ("exists", None, True),
            ("not_exists", None, False),
        ],
    )
    @pytest.mark.asyncio
    async def test_operators(self, node_context, operator, value, expected):
        node = validated(ConditionNode, {"field": "student.status", "operator": operator, "value": value})

        result = await node.execute(node_context({"student": {"status": "active"}}))

        assert result["passed"] is expected
        assert result["fieldValue"] == "active"

    @pytest.mark.asyncio
    async def test_numeric_comparison(self, node_context):
        node = validated(ConditionNode, {"field": "score", "operator": "greater_than", "value": "70"})

        assert (await node.execute(node_context({"score": 82})))["passed"] is True

    @pytest.mark.parametrize("operator", ["greater_than", "less_than", "greater", "less-than"])
    @pytest.mark.parametrize(
        "payload",
        [{}, {"score": None}, {"score": "n/a"}, {"score": "nan"}, {"score": "inf"}, {"score": True}],
    )
    @pytest.mark.asyncio
    async def test_missing_or_non_numeric_field_does_not_pass(self, node_context, operator, payload):
        node = validated(ConditionNode, {"field": "score", "operator": operator, "value": 5})

        result = await node.execute(node_context(payload))

        assert result["passed"] is False
        assert result["condition"]["result"] is False

    @pytest.mark.asyncio
    async def test_non_numeric_comparison_value_does_not_pass(self, node_context):
        node = validated(ConditionNode, {"field": "score", "operator": "greater_than", "value": "high"})

        assert (await node.execute(node_context({"score": 82})))["passed"] is False

    @pytest.mark.asyncio
    async def test_numeric_string_field(self, node_context):
        node = validated(ConditionNode, {"field": "score", "operator": "less", "value": 50})

        assert (await node.execute(node_context({"score": " 42.5 "})))["passed"] is True

    @pytest.mark.parametrize(
        "config,message",
        [
            ({"field": "", "operator": "equals"}, "Field is required"),
            ({"field": "x", "operator": ""}, "Operator is required"),
            ({"field": "x", "operator": "matches"}, "Invalid operator: matches"),
            ({"operator": "equals"}, "field is required"),
        ],
    )
    def test_validation(self, config, message):
        with pytest.raises(NodeValidationError, match=message):
            ConditionNode(config).validate(config)

    def test_nested_value(self):
        data = {"a": {"b": [{"c": 3}]}}

        assert get_nested_value(data, "a.b.0.c") == 3
        assert get_nested_value(data, "a.x.c") is None
        assert get_nested_value(data, "") is None


class TestDelayNode:

    @pytest.mark.parametrize(
        "duration,message",
        [
            (None, "Duration is required"),
            (0, "Duration is required"),
            (-5, "Duration must be a positive number"),
            (301, "Duration cannot exceed 300 seconds"),
        ],
    )
    def test_validation(self, duration, message):
        with pytest.raises(NodeValidationError, match=message):
            DelayNode().validate({"duration": duration})

    @pytest.mark.asyncio
    async def test_sleeps(self, node_context):
        node = validated(DelayNode, {"duration": 2})

        with patch("eduflow.nodes.logic.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await node.execute(node_context())

        mock_sleep.assert_awaited_once_with(2)
        assert result["delayed"] is True


class TestHttpRequestNode:

    def test_validation(self):
        with pytest.raises(NodeValidationError, match="URL is required"):
            HttpRequestNode().validate({"url": ""})
        with pytest.raises(NodeValidationError, match="Invalid HTTP method"):
            HttpRequestNode().validate({"url": "https://x", "method": "TRACE"})

    def test_method_is_normalized(self):
        node = validated(HttpRequestNode, {"url": "https://x", "method": "post"})

        assert node.parsed_config.method == "POST"

    @pytest.mark.asyncio
    async def test_returns_error_responses_as_output(self, node_context):
        node = validated(HttpRequestNode, {"url": "https://x/api", "method": "POST", "body": {"a": 1}, "timeout": 5000})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(404, '{"error": "missing"}', reason="Not Found")
            result = await node.execute(node_context())

        assert result["status"] == 404
        assert result["statusText"] == "Not Found"
        assert result["data"] == {"error": "missing"}
        assert mock_request.call_args.kwargs["json"] == {"a": 1}
        assert mock_request.call_args.kwargs["timeout"] == 5.0


class TestSlackSendNode:

    def test_rejects_foreign_webhook(self):
        with pytest.raises(NodeValidationError, match="Invalid Slack webhook URL format"):
            SlackSendNode().validate({"message": "hi", "webhookUrl": "https://example.com/hook"})

    @pytest.mark.asyncio
    async def test_uses_credential_webhook(self, node_context):
        node = validated(SlackSendNode, {"message": "Class starts soon"})
        context = node_context(credentials={"webhookUrl": "https://hooks.slack.com/services/T/B/X"})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(text="ok", content_type="text/plain")
            result = await node.execute(context)

        assert result["status"] == "sent"
        method, url = mock_request.call_args.args[:2]
        assert (method, url) == ("POST", "https://hooks.slack.com/services/T/B/X")
        assert mock_request.call_args.kwargs["json"]["text"] == "Class starts soon"

    @pytest.mark.asyncio
    async def test_api_error(self, node_context, monkeypatch):
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.com/services/T/B/X")
        node = validated(SlackSendNode, {"message": "hi"})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(403, "invalid_token", "text/plain", "Forbidden")
            with pytest.raises(NodeApiError) as exc_info:
                await node.execute(node_context())

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_webhook(self, node_context):
        node = validated(SlackSendNode, {"message": "hi"})

        with pytest.raises(NodeExecutionError, match="Slack webhook URL is required"):
            await node.execute(node_context())


class TestDiscordSendNode:

    @pytest.mark.asyncio
    async def test_sends(self, node_context):
        node = validated(
            DiscordSendNode,
            {"message": "Grades posted", "webhookUrl": "https://discord.com/api/webhooks/1/abc"},
        )

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(204)
            result = await node.execute(node_context())

        assert result["status"] == "sent"
        assert mock_request.call_args.kwargs["json"]["content"] == "Grades posted"

    @pytest.mark.asyncio
    async def test_error_message_from_body(self, node_context):
        node = validated(
            DiscordSendNode,
            {"message": "x", "webhookUrl": "https://discord.com/api/webhooks/1/abc"},
        )

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(404, '{"message": "Unknown Webhook"}')
            with pytest.raises(NodeApiError, match="Unknown Webhook"):
                await node.execute(node_context())


class TestEmailSendNode:

    @pytest.mark.parametrize(
        "config,message",
        [
            ({"to": "", "subject": "s", "body": "b"}, "Recipient email"),
            ({"to": "not-an-email", "subject": "s", "body": "b"}, "Invalid recipient email format"),
            ({"to": "a@b.co", "subject": "", "body": "b"}, "Subject is required"),
        ],
    )
    def test_validation(self, config, message):
        with pytest.raises(NodeValidationError, match=message):
            EmailSendNode().validate(config)

    @pytest.mark.asyncio
    async def test_simulated_without_smtp(self, node_context):
        node = validated(EmailSendNode, {"to": "parent@example.com", "subject": "Report", "body": "Hi"})

        result = await node.execute(node_context())

        assert isinstance(result, NodeOutput)
        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["preview"] == "Would send email to parent@example.com"

    @pytest.mark.asyncio
    async def test_sends_with_credentials(self, node_context):
        node = validated(EmailSendNode, {"to": "parent@example.com", "subject": "Report", "body": "Hi"})
        context = node_context(credentials={"host": "smtp.example.com", "user": "bot@example.com", "pass": "pw"})

        with patch("eduflow.nodes.messaging._deliver_email") as mock_deliver:
            result = await node.execute(context)

        account, message = mock_deliver.call_args.args
        assert account.host == "smtp.example.com"
        assert account.port == 587
        assert message["To"] == "parent@example.com"
        assert result["status"] == "sent"
        assert result["from"] == "bot@example.com"

    @pytest.mark.asyncio
    async def test_smtp_failure(self, node_context, monkeypatch):
        monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("SMTP_USER", "bot@example.com")
        monkeypatch.setenv("SMTP_PASS", "pw")
        node = validated(EmailSendNode, {"to": "parent@example.com", "subject": "Report", "body": "Hi"})

        with patch("eduflow.nodes.messaging._deliver_email", side_effect=OSError("connection refused")):
            with pytest.raises(NodeExecutionError, match="Email send failed"):
                await node.execute(node_context())


class TestTwilioNodes:

    def test_rejects_bad_phone(self):
        with pytest.raises(NodeValidationError, match="Invalid phone number format"):
            TwilioSmsNode().validate({"to": "call me", "message": "hi"})

    @pytest.mark.asyncio
    async def test_simulated_without_account(self, node_context):
        node = validated(TwilioSmsNode, {"to": "+15550001", "message": "hi"})

        result = await node.execute(node_context())

        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["preview"] == "Would send SMS to +15550001: hi"

    @pytest.mark.asyncio
    async def test_whatsapp_send(self, node_context):
        node = validated(TwilioWhatsAppNode, {"to": "15550001", "message": "hi"})
        context = node_context(credentials={"accountSid": "AC1", "authToken": "tok", "whatsappFrom": "+1999"})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(201, '{"sid": "SM1", "status": "queued"}')
            result = await node.execute(context)

        form = mock_request.call_args.kwargs["data"]
        assert form["To"] == "whatsapp:+15550001"
        assert form["From"] == "whatsapp:+1999"
        assert result["sid"] == "SM1"

    @pytest.mark.asyncio
    async def test_twilio_error(self, node_context, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC1")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "tok")
        node = validated(TwilioSmsNode, {"to": "+15550001", "message": "hi"})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(400, '{"message": "Invalid To", "code": 21211}')
            with pytest.raises(NodeApiError, match="Invalid To"):
                await node.execute(node_context())

    def test_split_recipients(self):
        assert split_recipients("a, b,,c ") == ["a", "b", "c"]
        assert split_recipients(["a", " ", 5]) == ["a", "5"]

    def test_whatsapp_address(self):
        assert whatsapp_address("1 555 0001") == "whatsapp:+15550001"
        assert whatsapp_address("whatsapp:+15550001") == "whatsapp:+15550001"


class TestWhatsAppGroupNode:

    @pytest.mark.parametrize(
        "config,message",
        [
            ({"message": "hi"}, 'requires "to" field'),
            ({"to": " , ", "message": "hi"}, 'requires "to" field'),
            ({"to": "+15550001"}, 'requires "message" field'),
            ({"to": "+15550001, call me", "message": "hi"}, "Invalid phone number format: call me"),
        ],
    )
    def test_validation(self, config, message):
        with pytest.raises(NodeValidationError, match=message):
            WhatsAppGroupNode().validate(config)

    @pytest.mark.asyncio
    async def test_simulated_without_account(self, node_context):
        node = validated(WhatsAppGroupNode, {"to": "+15550001, +15550002", "message": "hi", "groupName": "Class 7B"})

        result = await node.execute(node_context())

        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["recipients"] == ["+15550001", "+15550002"]
        assert result.data["groupName"] == "Class 7B"

    @pytest.mark.asyncio
    async def test_sends_to_every_recipient(self, node_context, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC1")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "tok")
        node = validated(WhatsAppGroupNode, {"to": ["15550001", "+1 555 0002"], "message": "Exam moved"})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(201, '{"sid": "SM1", "status": "queued"}')
            result = await node.execute(node_context())

        sent_to = [c.kwargs["data"]["To"] for c in mock_request.call_args_list]
        assert sent_to == ["whatsapp:+15550001", "whatsapp:+15550002"]
        assert mock_request.call_args.kwargs["data"]["From"] == "whatsapp:+14155238886"
        assert result.success is True
        assert result.outcome == NodeOutcome.EXECUTED
        assert result.data["successfulSends"] == 2
        assert result.data["failedSends"] == 0

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self, node_context):
        node = validated(WhatsAppGroupNode, {"to": "+15550001,+15550002", "message": "hi"})
        context = node_context(credentials={"accountSid": "AC1", "authToken": "tok"})

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [
                response(201, '{"sid": "SM1", "status": "queued"}'),
                response(400, '{"message": "Invalid To", "code": 21211}'),
            ]
            result = await node.execute(context)

        assert result.success is False
        assert result.outcome == NodeOutcome.FAILED
        assert result.error == "1 message(s) failed to send"
        assert result.data["successfulSends"] == 1
        assert result.data["results"][1]["recipient"] == "+15550002"
        assert "Invalid To" in result.data["results"][1]["error"]


class TestLocalAINode:

    def test_validation(self):
        with pytest.raises(NodeValidationError, match="Text is required"):
            LocalAINode().validate({"text": "", "mode": "summary"})
        with pytest.raises(NodeValidationError, match="Invalid mode"):
            LocalAINode().validate({"text": "x", "mode": "poem"})

    @pytest.mark.asyncio
    async def test_heuristics_without_key(self, node_context):
        node = validated(LocalAINode, {"text": "Photosynthesis makes sugar. Plants need light.", "mode": "summary"})

        result = await node.execute(node_context())

        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["sentenceCount"] == 2

    @pytest.mark.asyncio
    async def test_openai_with_credential(self, node_context):
        node = validated(LocalAINode, {"text": "Some essay", "mode": "feedback"})
        body = '{"model": "gpt-4o-mini", "choices": [{"message": {"content": "Nice work"}}], "usage": {}}'

        with patch("eduflow.nodes.http.HttpClient.request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(200, body)
            result = await node.execute(node_context(credentials={"apiKey": "sk-test"}))

        assert result["result"] == "Nice work"
        assert mock_request.call_args.args[:2] == ("POST", "/chat/completions")

    def test_keywords(self):
        result = extract_keywords("Fractions and fractions, decimals and the percentages.")

        assert result["keywords"][0] == "fractions"
        assert "the" not in result["keywords"]

    def test_summary_respects_max_length(self):
        assert len(summarize("A long sentence here. Another one. And a third.", 10)["summary"]) == 10

    def test_feedback_short_text(self):
        result = writing_feedback("Too short.")

        assert "more detail" in result["feedback"]
        assert 0 <= result["score"] <= 100


class TestEducationNodes:

    def test_attendance_threshold_range(self):
        with pytest.raises(NodeValidationError, match="between 0 and 100"):
            AttendanceTrackNode().validate({"threshold": 150})

    @pytest.mark.asyncio
    async def test_attendance_below_threshold(self, node_context):
        node = validated(AttendanceTrackNode, {"threshold": 80, "action": "notify_parent"})

        with patch("eduflow.nodes.education.random.uniform", return_value=60.0):
            result = await node.execute(node_context())

        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["belowThreshold"] is True
        assert result.data["action"] == "notify_parent"

    def test_schedule_reminder_not_negative(self):
        with pytest.raises(NodeValidationError, match="Reminder minutes must be positive"):
            ScheduleCheckNode().validate({"reminderMinutes": -1})

    @pytest.mark.asyncio
    async def test_schedule_defaults(self, node_context):
        node = validated(ScheduleCheckNode, {})

        result = await node.execute(node_context())

        assert result.data["reminderMinutes"] == 15
        assert len(result.data["upcomingClasses"]) == 2

    @pytest.mark.parametrize(
        "config,message",
        [
            ({"dueDate": "2026-11-01"}, 'Assignment node requires "title" field'),
            ({"title": "Essay", "dueDate": ""}, 'Assignment node requires "dueDate" field'),
        ],
    )
    def test_assignment_validation(self, config, message):
        with pytest.raises(NodeValidationError, match=message):
            AssignmentCreateNode().validate(config)

    @pytest.mark.asyncio
    async def test_assignment_created(self, node_context):
        node = validated(AssignmentCreateNode, {"title": "Essay", "dueDate": "2026-11-01", "classId": "c7"})

        result = await node.execute(node_context())

        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["assignmentId"].startswith("assign_")
        assert result.data["title"] == "Essay"
        assert result.data["classId"] == "c7"
        assert result.data["notifyStudents"] is False


class TestFileUploadNode:

    @pytest.mark.parametrize(
        "config,message",
        [
            ({"content": "x"}, "File name is required"),
            ({"fileName": "notes.txt"}, "File content is required"),
            ({"fileName": "../notes.txt", "content": "x"}, "Invalid file name"),
            ({"fileName": "a/b.txt", "content": "x"}, "Invalid file name"),
            ({"fileName": "a\\b.txt", "content": "x"}, "Invalid file name"),
            ({"fileName": "b.txt", "content": "x", "folder": "../etc"}, "Invalid folder"),
            ({"fileName": "b.txt", "content": "x", "folder": "/tmp"}, "Invalid folder"),
        ],
    )
    def test_validation(self, config, message):
        with pytest.raises(NodeValidationError, match=message):
            FileUploadNode().validate(config)

    @pytest.mark.asyncio
    async def test_writes_under_upload_dir(self, node_context, monkeypatch, tmp_path):
        monkeypatch.setenv("EDUFLOW_UPLOAD_DIR", str(tmp_path))
        node = validated(FileUploadNode, {"fileName": "notes.txt", "content": "héllo", "folder": "reports"})

        result = await node.execute(node_context())

        stored = tmp_path / "reports" / result["fileName"]
        assert stored.read_text(encoding="utf-8") == "héllo"
        assert result["fileName"].endswith("_notes.txt")
        assert result["originalName"] == "notes.txt"
        assert result["path"] == f"/reports/{result['fileName']}"
        assert result["size"] == 6

    @pytest.mark.asyncio
    async def test_default_folder(self, node_context, monkeypatch, tmp_path):
        monkeypatch.setenv("EDUFLOW_UPLOAD_DIR", str(tmp_path))
        node = validated(FileUploadNode, {"fileName": "a.txt", "content": "x"})

        result = await node.execute(node_context())

        assert result["path"].startswith("/uploads/")
        assert (tmp_path / "uploads" / result["fileName"]).exists()

    @pytest.mark.asyncio
    async def test_write_failure(self, node_context, monkeypatch, tmp_path):
        monkeypatch.setenv("EDUFLOW_UPLOAD_DIR", str(tmp_path))
        node = validated(FileUploadNode, {"fileName": "a.txt", "content": "x"})

        with patch("eduflow.nodes.files.Path.write_bytes", side_effect=OSError("disk full")):
            with pytest.raises(NodeExecutionError, match="File upload failed: disk full"):
                await node.execute(node_context())


class TestGenericNodes:

    @pytest.mark.asyncio
    async def test_pass_through_never_fails_validation(self, node_context):
        node = PassThroughNode({"anything": [1, 2]}, node_type="from-the-future")
        node.validate({"garbage": object()})

        result = await node.execute(node_context())

        assert result.success is True
        assert result.data == {"nodeType": "from-the-future", "config": {"anything": [1, 2]}, "passThrough": True}

    @pytest.mark.asyncio
    async def test_simulated_loop(self, node_context):
        node = SimulatedNode({"items": ["a", "b"]}, node_type="loop")
        node.validate(node.config)

        result = await node.execute(node_context())

        assert result.outcome == NodeOutcome.SIMULATED
        assert result.data["output"]["iterations"] == 2

    @pytest.mark.asyncio
    async def test_simulated_default_output(self, node_context):
        node = SimulatedNode({}, node_type="google-drive")

        result = await node.execute(node_context())

        assert result.data["label"] == "Google Drive"
        assert result.data["output"] == {"processed": True}
