"""MCP servers exposing the inquiry router to agent runtimes."""
