"""ToolResult class for agent-team tools.

This module defines the standardized result every tool returns.
"""

import json
from typing import Any, Optional


class ToolResult:
    """Result of tool execution.

    Attributes:
        success: Whether the tool execution succeeded
        data: Result data (if successful); any JSON-serializable value
        error: Error message (if failed)
        action: Control action requested by the tool (``"BLOCK_TASK"``)
        truncated: Whether output was truncated due to size limit
    """

    # Maximum rendered result size (100KB)
    MAX_SIZE = 100 * 1024

    def __init__(
        self,
        success: bool,
        data: Any = None,
        error: Optional[str] = None,
        action: Optional[str] = None,
        truncated: bool = False,
    ):
        self.success = success
        self.data = data
        self.error = error
        self.action = action
        self.truncated = truncated

    @classmethod
    def ok(cls, data: Any = None, action: Optional[str] = None) -> "ToolResult":
        return cls(success=True, data=data, action=action)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_content(self) -> str:
        """Format for language-model consumption, enforcing ``MAX_SIZE``."""
        if not self.success:
            return f"Error: {self.error}"
        if isinstance(self.data, str):
            content = self.data
        else:
            content = json.dumps(self.data, default=str)
        encoded = content.encode("utf-8")
        if len(encoded) > self.MAX_SIZE:
            self.truncated = True
            content = encoded[: self.MAX_SIZE].decode("utf-8", errors="ignore")
            content += "\n\n[Warning: Output truncated due to size limit]"
        return content

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form stored in workflow log metadata."""
        data: dict[str, Any] = {"success": self.success, "data": self.data}
        if self.error is not None:
            data["error"] = self.error
        if self.action is not None:
            data["action"] = self.action
        return data

    def __repr__(self) -> str:
        if self.success:
            return f"ToolResult(success=True, action={self.action!r}, data={self.data!r:.60})"
        return f"ToolResult(success=False, error={self.error!r})"
