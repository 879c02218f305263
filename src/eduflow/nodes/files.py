"""File nodes."""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Any, Optional

from pydantic import Field

from eduflow.config import get_settings
from eduflow.errors import NodeExecutionError, NodeValidationError
from eduflow.models import utcnow
from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext


DEFAULT_UPLOAD_FOLDER = "uploads"


def _is_safe_name(name: str) -> bool:
    return ".." not in name and "/" not in name and "\\" not in name


class FileUploadConfig(NodeConfig):
    fileName: Optional[str] = None
    content: Optional[str] = None
    folder: str = Field(DEFAULT_UPLOAD_FOLDER, description="Sub-folder of the upload directory")


class FileUploadNode(BaseNode):
    """
    Writes text content under the upload directory.

    Files are stored as `{upload_dir}/{folder}/{uuid}_{fileName}`; the
    returned `path` is relative to the upload directory.
    """

    type = "file-upload"
    description = {
        "label": "Upload File",
        "description": "Upload files to storage",
        "category": "File Management",
    }
    config_model = FileUploadConfig

    def check(self, config: FileUploadConfig) -> None:
        if not config.fileName:
            raise NodeValidationError("File name is required", node_type=self.type, field="fileName")
        if not config.content:
            raise NodeValidationError("File content is required", node_type=self.type, field="content")
        if not _is_safe_name(config.fileName):
            raise NodeValidationError("Invalid file name", node_type=self.type, field="fileName")
        folder = config.folder or DEFAULT_UPLOAD_FOLDER
        if ".." in folder.split("/") or "\\" in folder or folder.startswith("/"):
            raise NodeValidationError("Invalid folder", node_type=self.type, field="folder")

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: FileUploadConfig = self.parsed_config
        folder = config.folder or DEFAULT_UPLOAD_FOLDER
        unique_name = f"{uuid.uuid4()}_{config.fileName}"
        target = Path(get_settings().upload_dir) / folder / unique_name
        data = config.content.encode("utf-8")

        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            raise NodeExecutionError(f"File upload failed: {e}") from e

        self.logger.info(f"Uploaded {config.fileName} ({len(data)} bytes) to {folder}")
        return {
            "success": True,
            "fileName": unique_name,
            "originalName": config.fileName,
            "path": f"/{folder}/{unique_name}",
            "size": len(data),
            "uploadedAt": utcnow().isoformat(),
        }

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


__all__ = ["FileUploadNode"]
