"""Education nodes backed by sample data until a school system is connected."""

from __future__ import annotations

import random
from typing import Optional

from pydantic import field_validator

from eduflow.errors import NodeValidationError
from eduflow.models import utcnow
from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext, NodeOutput


class AttendanceTrackConfig(NodeConfig):
    studentId: Optional[str] = None
    classId: Optional[str] = None
    threshold: Optional[float] = None
    action: Optional[str] = None

    @field_validator("threshold")
    @classmethod
    def threshold_in_range(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0 <= v <= 100:
            raise ValueError("Attendance threshold must be between 0 and 100")
        return v


class AttendanceTrackNode(BaseNode):
    type = "attendance-track"
    description = {
        "label": "Track Attendance",
        "description": "Monitor student attendance",
        "category": "Education",
    }
    config_model = AttendanceTrackConfig

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        config: AttendanceTrackConfig = self.parsed_config
        threshold = config.threshold or 75
        percentage = random.uniform(0, 100)
        below = percentage < threshold

        self.logger.info(
            f"Attendance for student {config.studentId or 'all'} in class {config.classId or 'all'}: "
            f"{percentage:.2f}% (threshold {threshold}%)"
        )
        if below and config.action:
            self.logger.info(f"Below threshold, action: {config.action}")

        return NodeOutput.simulated({
            "studentId": config.studentId,
            "classId": config.classId,
            "attendancePercentage": percentage,
            "threshold": threshold,
            "belowThreshold": below,
            "action": config.action if below else None,
            "timestamp": utcnow().isoformat(),
            "simulated": True,
        })


SAMPLE_CLASSES = (
    {"id": "class_1", "subject": "Mathematics", "time": "10:00 AM", "room": "Room 101", "teacher": "Prof. Smith"},
    {"id": "class_2", "subject": "Physics", "time": "2:00 PM", "room": "Lab 203", "teacher": "Dr. Johnson"},
)


class ScheduleCheckConfig(NodeConfig):
    classId: Optional[str] = None
    teacherId: Optional[str] = None
    date: Optional[str] = None
    reminderMinutes: Optional[int] = None

    @field_validator("reminderMinutes")
    @classmethod
    def reminder_not_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Reminder minutes must be positive")
        return v


class ScheduleCheckNode(BaseNode):
    type = "schedule-check"
    description = {
        "label": "Check Schedule",
        "description": "Check class schedules",
        "category": "Education",
    }
    config_model = ScheduleCheckConfig

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        config: ScheduleCheckConfig = self.parsed_config
        now = utcnow()
        reminder = config.reminderMinutes or 15
        self.logger.info(f"Checking schedule for {config.date or 'today'}, reminder {reminder} minutes before")

        return NodeOutput.simulated({
            "date": config.date or now.date().isoformat(),
            "upcomingClasses": [dict(c) for c in SAMPLE_CLASSES],
            "reminderMinutes": reminder,
            "classId": config.classId,
            "teacherId": config.teacherId,
            "timestamp": now.isoformat(),
            "simulated": True,
        })


class AssignmentCreateConfig(NodeConfig):
    title: Optional[str] = None
    dueDate: Optional[str] = None
    description: str = ""
    classId: Optional[str] = None
    notifyStudents: bool = False


class AssignmentCreateNode(BaseNode):
    """Creates an assignment record; simulated until an LMS is connected."""

    type = "assignment-create"
    description = {
        "label": "Create Assignment",
        "description": "Create new assignments",
        "category": "Education",
    }
    config_model = AssignmentCreateConfig

    def check(self, config: AssignmentCreateConfig) -> None:
        if not config.title:
            raise NodeValidationError('Assignment node requires "title" field', node_type=self.type, field="title")
        if not config.dueDate:
            raise NodeValidationError(
                'Assignment node requires "dueDate" field',
                node_type=self.type,
                field="dueDate",
            )

    async def execute(self, context: NodeExecutionContext) -> NodeOutput:
        config: AssignmentCreateConfig = self.parsed_config
        now = utcnow()
        self.logger.info(f"Creating assignment {config.title!r} due {config.dueDate}")

        return NodeOutput.simulated({
            "assignmentId": f"assign_{int(now.timestamp() * 1000)}",
            "title": config.title,
            "description": config.description,
            "dueDate": config.dueDate,
            "classId": config.classId,
            "notifyStudents": config.notifyStudents,
            "createdAt": now.isoformat(),
            "simulated": True,
        })


__all__ = ["AttendanceTrackNode", "ScheduleCheckNode", "AssignmentCreateNode"]
