"""Govern LangChain-style tools with MeshGuard policy.

LangChain itself stays optional: any object with ``name``, ``description``
and an ``invoke`` method (sync or async) can be governed.

Example:
    ```python
    from meshguard import MeshGuardClient
    from meshguard.langchain import GovernedToolkit, governed_tool

    client = MeshGuardClient.from_env()
    search = governed_tool("read:web_search", client, DuckDuckGoSearchRun())
    result = await search.invoke("python sdk patterns")

    toolkit = GovernedToolkit(
        [search_tool, calculator_tool],
        client,
        action_map={"search": "read:web_search", "calculator": "execute:math"},
    )
    tools = toolkit.get_tools()
    ```
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from meshguard.client import MeshGuardClient
from meshguard.exceptions import PolicyDeniedError
from meshguard.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOOL_ACTION = "execute:tool"

DenyHandler = Callable[..., Any]


@runtime_checkable
class Tool(Protocol):
    """Minimal shape of a LangChain ``BaseTool``."""

    name: str
    description: str

    def invoke(self, input: Any, config: Any = None) -> Any: ...


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class GovernedTool:
    """Wrap a tool so every invocation is enforced against a MeshGuard action.

    ``invoke``, ``ainvoke`` and the legacy ``call`` are intercepted. Every
    other public attribute of the wrapped tool is exposed unchanged.

    Args:
        tool: The tool to wrap.
        action: MeshGuard action enforced before each invocation.
        client: Client used for enforcement.
        on_deny: Optional fallback called as ``on_deny(error, *args, **kwargs)``
            when the action is denied. Its result is returned instead of
            raising. It is not called for authentication, rate-limit or other
            errors.
    """

    def __init__(
        self,
        tool: Tool,
        action: str,
        client: MeshGuardClient,
        on_deny: DenyHandler | None = None,
    ) -> None:
        self._tool = tool
        self._action = action
        self._client = client
        self._on_deny = on_deny

    @property
    def wrapped(self) -> Tool:
        return self._tool

    @property
    def action(self) -> str:
        return self._action

    @property
    def name(self) -> str:
        return self._tool.name

    @property
    def description(self) -> str:
        return self._tool.description

    def __getattr__(self, name: str) -> Any:
        # Only reached for attributes not defined on the wrapper itself.
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._tool, name)

    def __repr__(self) -> str:
        return f"GovernedTool(name={self.name!r}, action={self._action!r})"

    async def _governed(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            await self._client.enforce(self._action)
        except PolicyDeniedError as exc:
            if self._on_deny is None:
                raise
            logger.info(
                "governed_tool_denied",
                tool=self.name,
                action=self._action,
                policy=exc.policy,
                rule=exc.rule,
            )
            return await _resolve(self._on_deny(exc, *args, **kwargs))
        target = getattr(self._tool, method, None) or self._tool.invoke
        return await _resolve(target(*args, **kwargs))

    async def invoke(self, *args: Any, **kwargs: Any) -> Any:
        """Invoke the tool after enforcing its action."""
        return await self._governed("invoke", *args, **kwargs)

    async def ainvoke(self, *args: Any, **kwargs: Any) -> Any:
        """Async invocation, forwarded to the tool's ``ainvoke`` when present."""
        return await self._governed("ainvoke", *args, **kwargs)

    async def call(self, *args: Any, **kwargs: Any) -> Any:
        """Legacy call method, forwarded to the tool's ``call`` when present."""
        return await self._governed("call", *args, **kwargs)


def governed_tool(
    action: str,
    client: MeshGuardClient,
    tool: Tool,
    on_deny: DenyHandler | None = None,
) -> GovernedTool:
    """Wrap ``tool`` so every invocation is governed by ``action``."""
    return GovernedTool(tool, action, client, on_deny)


class GovernedToolkit:
    """Govern a collection of tools with per-tool MeshGuard actions."""

    def __init__(
        self,
        tools: Iterable[Tool],
        client: MeshGuardClient,
        *,
        action_map: Mapping[str, str] | None = None,
        default_action: str = DEFAULT_TOOL_ACTION,
        on_deny: DenyHandler | None = None,
    ) -> None:
        self._tools = list(tools)
        self._client = client
        self._action_map = dict(action_map or {})
        self._default_action = default_action
        self._on_deny = on_deny

    def get_action(self, tool: Tool) -> str:
        """Return the MeshGuard action for a tool, by name."""
        return self._action_map.get(tool.name, self._default_action)

    def get_tools(self) -> list[GovernedTool]:
        """Return governed versions of all tools."""
        return [
            GovernedTool(tool, self.get_action(tool), self._client, self._on_deny)
            for tool in self._tools
        ]
