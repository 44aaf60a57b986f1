"""
Caller identification middleware.

Every MCP request from the host must carry a valid Bearer JWT. The
middleware:

1. Extracts the Authorization header from the HTTP request (FastMCP keeps
   the current request in a ContextVar, see get_http_request())
2. Validates it with auth.validate_token()
3. For tools/call: binds the caller identity to `current_caller` for the
   duration of the tool body, so the tool knows whose credential to use
4. Logs every decision with structured fields

Tool bodies read the identity with get_caller_id().
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Sequence

from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest

from oauth_tools.auth import AuthError, CallerInfo, validate_token

logger = logging.getLogger("oauth-tools.middleware")

current_caller: ContextVar[str | None] = ContextVar("current_caller", default=None)


def get_caller_id() -> str:
    """
    Return the caller identity bound by CallerIdentityMiddleware.

    Raises:
        AuthError: If called outside an authenticated tools/call
    """
    caller_id = current_caller.get()
    if caller_id is None:
        raise AuthError("No authenticated caller for this tool call")
    return caller_id


class CallerIdentityMiddleware(Middleware):
    """
    Authenticates the host on tools/list and tools/call and binds the
    caller identity for tool execution.
    """

    def _get_auth_header(self) -> str | None:
        """Return the Authorization header, or None outside HTTP transports."""
        try:
            request = get_http_request()
            return request.headers.get("authorization")
        except RuntimeError:
            return None

    def _authenticate(self, request_id: str) -> CallerInfo:
        auth_header = self._get_auth_header()
        try:
            caller = validate_token(auth_header)
        except AuthError as e:
            logger.warning(
                "Authentication failed",
                extra={
                    "log_data": {
                        "request_id": request_id,
                        "decision": "rejected",
                        "reason": e.message,
                    }
                },
            )
            raise
        logger.info(
            "Authentication successful",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "caller": caller.caller_id,
                    "decision": "authenticated",
                }
            },
        )
        return caller

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        request_id = str(uuid.uuid4())[:8]
        self._authenticate(request_id)
        return await call_next(context)

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        """
        Authenticate the host, then run the tool with the caller bound.

        The ContextVar is reset afterwards so the identity never leaks into
        a later request handled by the same task.
        """
        request_id = str(uuid.uuid4())[:8]
        tool_name = context.message.name

        caller = self._authenticate(request_id)

        logger.info(
            "Tool call authorized",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "caller": caller.caller_id,
                    "tool": tool_name,
                    "decision": "allowed",
                }
            },
        )

        token = current_caller.set(caller.caller_id)
        try:
            return await call_next(context)
        finally:
            current_caller.reset(token)
