import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from mcp.server.fastmcp import FastMCP

from digital_asset_client import DigitalAssetClient
from managers import ArtifactRegistry, BlobStore, ScanHistory, ScanService, SettingsManager
from tools.artifact import register_artifact_tools
from tools.configuration import register_configuration_tools
from tools.generation import register_generation_tools
from tools.scan import register_scan_tools

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("MCP_Server")

settings_manager = SettingsManager()
client = DigitalAssetClient(settings_manager)
artifact_registry = ArtifactRegistry()
blob_store = BlobStore()
scan_service = ScanService(client, history=ScanHistory(limit=settings_manager.history_limit))


class AppContext:
    def __init__(self, client: DigitalAssetClient, blob_store: BlobStore):
        self.client = client
        self.blob_store = blob_store


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage application lifecycle"""
    logger.info("Starting MCP server lifecycle...")
    logger.info("Digital asset API: %s", settings_manager.base_url)
    if not settings_manager.get_auth_token():
        logger.warning("No auth token configured; call set_auth_token before using API tools")
    try:
        yield AppContext(client=client, blob_store=blob_store)
    finally:
        blob_store.revoke_all()
        logger.info("Shutting down MCP server")


mcp = FastMCP("Digital_Assets_MCP_Server", lifespan=app_lifespan)

register_scan_tools(mcp, client, scan_service, settings_manager)
register_generation_tools(mcp, client, settings_manager, artifact_registry)
register_artifact_tools(mcp, client, settings_manager, artifact_registry, blob_store)
register_configuration_tools(mcp, settings_manager)


def main():
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
