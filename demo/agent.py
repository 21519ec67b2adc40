"""Demo agent for MeshGuard governed tools."""

from __future__ import annotations

import asyncio
from typing import Any

from demo.tools.api_tool import ApiTool
from demo.tools.db_tool import DatabaseTool
from demo.tools.file_tool import FileTool
from meshguard.client import MeshGuardClient
from meshguard.exceptions import GovernanceError, PolicyDeniedError
from meshguard.langchain import GovernedTool, GovernedToolkit

DEMO_ACTIONS = {
    "db_tool": "read:database",
    "file_tool": "write:files",
}


def blocked_result(error: PolicyDeniedError, *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Deny fallback: report the denial to the agent instead of raising."""
    return {"success": False, "error": str(error), "policy": error.policy}


class DemoAgent:
    """Runs a few tool calls through MeshGuard and prints the outcome."""

    def __init__(self, client: MeshGuardClient) -> None:
        self.client = client
        toolkit = GovernedToolkit(
            [DatabaseTool(), FileTool(), ApiTool()],
            client,
            action_map=DEMO_ACTIONS,
            default_action="execute:api",
            on_deny=blocked_result,
        )
        self.tools: dict[str, GovernedTool] = {
            tool.name: tool for tool in toolkit.get_tools()
        }

    async def run_demo(self) -> list[dict[str, Any]]:
        """Run the demo scenario end-to-end and return each step's result."""
        print("=== MeshGuard Demo ===\n")
        print(f"Gateway: {self.client.gateway_url}  trace: {self.client.trace_id}\n")

        if not await self.client.is_healthy():
            print("Gateway is not healthy; decisions below may fail.\n")

        steps = [
            ("Querying the database", "db_tool", {"query": "SELECT * FROM products LIMIT 5"}),
            ("Writing a report file", "file_tool", {"path": "report.txt", "content": "Q3"}),
            ("Calling an external API", "api_tool", {"endpoint": "/v1/quotes"}),
        ]
        results: list[dict[str, Any]] = []
        for index, (title, tool_name, tool_input) in enumerate(steps, start=1):
            tool = self.tools[tool_name]
            print(f"{index}. {title} ({tool.action})...")
            try:
                result = await tool.invoke(tool_input)
            except GovernanceError as exc:
                result = {"success": False, "error": f"{exc.kind.value}: {exc}"}
            self._print_result(result)
            results.append(result)

        print("\n=== Demo Complete ===")
        return results

    @staticmethod
    def _print_result(result: dict[str, Any]) -> None:
        """Print a concise summary of a tool call result."""
        if result.get("success") is False:
            print(f"   BLOCKED: {result.get('error') or 'Unknown error'}")
        else:
            print("   ALLOWED")
            print(f"   Result: {result}")


async def main() -> None:
    async with MeshGuardClient.from_env() as client:
        await DemoAgent(client).run_demo()


if __name__ == "__main__":
    asyncio.run(main())
