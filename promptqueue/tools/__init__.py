"""MCP tool registrations."""
