"""Entry point for running the MCP server as a module.

This allows running the server with: python -m analytics.services.mcp_server
"""

from analytics.services.mcp_server.main import run

if __name__ == "__main__":
    run()
