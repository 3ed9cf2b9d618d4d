from mcp.server.fastmcp import FastMCP

from .tools.presets import register_tools as register_preset_tools
from .tools.queue import register_tools as register_queue_tools
from .workspace import Workspace

mcp = FastMCP("promptqueue")
workspace = Workspace.open()
register_queue_tools(mcp, workspace)
register_preset_tools(mcp, workspace)


def main():
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
