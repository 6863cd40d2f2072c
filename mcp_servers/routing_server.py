"""Conversation Routing MCP Server using the native MCP SDK.

This module implements an MCP (Model Context Protocol) server that exposes the
inquiry router to agent runtimes. Clients send conversation messages and get
back the routing evaluation, the dispatch decision and the acknowledgement
text, and can detect and look up diagnostic trouble codes.

Conversation state is kept in memory by the server, one state per
conversation id, so consecutive ``route_conversation`` calls with the same
id see the thread history.
"""

import argparse
import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional

from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import TextContent, Tool

from inquiry_router.assistant import RoutingAssistant
from inquiry_router.config import DEFAULT_KEYWORDS
from inquiry_router.dtc import evaluate_dtc, format_dtc_record

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("routing-server")


def _text(payload: Any) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


class RoutingServer:
    """MCP Server exposing conversation classification and routing tools.

    Attributes:
        server: MCP Server instance handling protocol communication.
        assistant: RoutingAssistant holding per-conversation state.
    """

    def __init__(self, assistant: Optional[RoutingAssistant] = None):
        self.server = Server("routing-server")
        self.assistant = assistant or RoutingAssistant()
        self._setup_handlers()

    def _setup_handlers(self):
        """Register the tool listing and tool call handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            return [
                Tool(
                    name="classify_conversation",
                    description="Classify a message (and optional prior messages) without routing it",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "text": {
                                "type": "string",
                                "description": "The current message text",
                            },
                            "history": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Prior messages in the thread, oldest first",
                            },
                        },
                        "required": ["text"],
                    },
                ),
                Tool(
                    name="route_conversation",
                    description="Classify and route a message within a tracked conversation",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "conversation_id": {
                                "type": "string",
                                "description": "Identifier of the conversation",
                            },
                            "text": {
                                "type": "string",
                                "description": "The message text to route",
                            },
                        },
                        "required": ["conversation_id", "text"],
                    },
                ),
                Tool(
                    name="detect_dtc_codes",
                    description="Detect diagnostic trouble codes in a message",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "text": {
                                "type": "string",
                                "description": "The message text to scan",
                            }
                        },
                        "required": ["text"],
                    },
                ),
                Tool(
                    name="lookup_dtc_codes",
                    description="Look up reference information for diagnostic trouble codes",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "codes": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Codes such as P0420 or C0035",
                            }
                        },
                        "required": ["codes"],
                    },
                ),
                Tool(
                    name="describe_threads",
                    description="Report on the inquiries tracked for a conversation",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "conversation_id": {
                                "type": "string",
                                "description": "Identifier of the conversation",
                            },
                            "query": {
                                "type": "string",
                                "description": "e.g. 'summary', 'urgent', 'thread INQ-...'",
                            },
                        },
                        "required": ["conversation_id"],
                    },
                ),
                Tool(
                    name="close_conversation",
                    description="Forget a finished conversation and return its thread count",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "conversation_id": {
                                "type": "string",
                                "description": "Identifier of the conversation",
                            }
                        },
                        "required": ["conversation_id"],
                    },
                ),
                Tool(
                    name="list_categories",
                    description="List conversation categories and their keyword indicators",
                    inputSchema={"type": "object", "properties": {}},
                ),
            ]

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            """Dispatch a tool call to its handler.

            Raises:
                ValueError: If required arguments are missing or the tool is unknown.
            """
            arguments = arguments or {}

            if name == "classify_conversation":
                text = arguments.get("text")
                if text is None:
                    raise ValueError("Text parameter is required")
                outcome = self.assistant.classifier.evaluate(text, arguments.get("history") or [])
                return _text(outcome.model_dump(mode="json"))

            elif name == "route_conversation":
                conversation_id = arguments.get("conversation_id", "")
                text = arguments.get("text")
                if not conversation_id:
                    raise ValueError("Conversation id parameter is required")
                if text is None:
                    raise ValueError("Text parameter is required")

                reply = await self.assistant.handle_message(conversation_id, text)
                return _text(
                    {
                        "output": reply.output,
                        "score": reply.classification.score,
                        "reason": reply.classification.reason,
                        "evaluation": (
                            reply.classification.evaluation.model_dump(mode="json")
                            if reply.classification.evaluation
                            else None
                        ),
                        "routing": reply.routing.model_dump(mode="json") if reply.routing else None,
                        "dtc": reply.dtc.model_dump(mode="json") if reply.dtc else None,
                    }
                )

            elif name == "detect_dtc_codes":
                text = arguments.get("text")
                if text is None:
                    raise ValueError("Text parameter is required")
                return _text(evaluate_dtc(text).model_dump(mode="json"))

            elif name == "lookup_dtc_codes":
                codes = arguments.get("codes") or []
                if not codes:
                    raise ValueError("Codes parameter is required")

                results = []
                for code in codes:
                    record = await self.assistant.dtc_lookup.lookup(code)
                    if record is None:
                        results.append({"code": code.upper(), "error": f"Unknown code: {code}"})
                    else:
                        results.append(
                            {
                                "code": record.code,
                                "record": record.model_dump(mode="json"),
                                "markdown": format_dtc_record(record),
                            }
                        )
                return _text(results)

            elif name == "describe_threads":
                conversation_id = arguments.get("conversation_id", "")
                if not conversation_id:
                    raise ValueError("Conversation id parameter is required")
                if conversation_id not in self.assistant.states:
                    return _text({"error": f"Unknown conversation: {conversation_id}"})
                report = self.assistant.describe_threads(conversation_id, arguments.get("query", ""))
                return [TextContent(type="text", text=report)]

            elif name == "close_conversation":
                conversation_id = arguments.get("conversation_id", "")
                if not conversation_id:
                    raise ValueError("Conversation id parameter is required")
                state = await self.assistant.close_conversation(conversation_id)
                if state is None:
                    return _text({"error": f"Unknown conversation: {conversation_id}"})
                return _text(
                    {
                        "conversation_id": conversation_id,
                        "threads": len(state.active_conversation_threads),
                    }
                )

            elif name == "list_categories":
                categories = {
                    category.value: list(indicators)
                    for category, indicators in DEFAULT_KEYWORDS.category_indicators.items()
                }
                return _text(categories)

            else:
                raise ValueError(f"Unknown tool: {name}")


async def main():
    """Main entry point for the routing server (stdio transport)."""

    parser = argparse.ArgumentParser(description="Conversation Routing MCP Server")
    parser.add_argument(
        "--connection",
        choices=["stdio"],
        default="stdio",
        help="Connection method (default: stdio)",
    )
    parser.parse_args()

    log_level = os.getenv("MCP_LOG_LEVEL", "INFO")
    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))

    routing_server = RoutingServer()

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        init_options = InitializationOptions(
            server_name="routing-server",
            server_version="1.0.0",
            capabilities=routing_server.server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )
        await routing_server.server.run(read_stream, write_stream, init_options)


if __name__ == "__main__":
    asyncio.run(main())
