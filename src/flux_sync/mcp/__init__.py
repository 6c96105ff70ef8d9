"""MCP stdio server exposing the Flux sync engine as tools."""
