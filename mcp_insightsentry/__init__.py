"""MCP servers and the streaming relay for InsightSentry."""
