"""Mock file tool for demos."""

from __future__ import annotations

from typing import Any


class FileTool:
    """Stub file tool. Synchronous, like most simple LangChain tools."""

    name = "file_tool"
    description = "Mock file tool with read/write operations."

    def invoke(self, input: dict[str, Any], config: Any = None) -> dict[str, Any]:
        path = input.get("path", "")
        if "content" in input:
            return {"path": path, "written": len(str(input["content"]))}
        return {"path": path, "content": "stub file contents"}
