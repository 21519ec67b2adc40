"""Mock database tool for demos."""

from __future__ import annotations

from typing import Any


class DatabaseTool:
    """Stub database tool with query/insert operations."""

    name = "db_tool"
    description = "Mock database tool with query/insert operations."

    async def invoke(self, input: dict[str, Any], config: Any = None) -> dict[str, Any]:
        """Return a stubbed database response."""
        query = input.get("query")
        if query:
            return {"rows": [{"id": 1, "name": "Widget"}], "query": query}
        return {"inserted_id": 1, "table": input.get("table", "unknown")}
