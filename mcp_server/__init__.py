"""
iMessage MCP server: tool definitions, handlers and configuration.
"""
