"""UI resource endpoint."""

from fastapi import APIRouter, Depends

from mcp_chat.platform.agent.exceptions import ProviderNotFoundError, ToolProviderError
from mcp_chat.platform.agent.registry import ToolProviderRegistry
from mcp_chat.platform.server.dependencies.chat import get_registry
from mcp_chat.platform.server.responses import error_response

resources_router = APIRouter(prefix="/api/resources", tags=["resources"])


@resources_router.get("")
async def get_resource(uri: str | None = None, registry: ToolProviderRegistry = Depends(get_registry)):
    """Fetch a ``ui://<provider_id>/...`` resource from its provider.

    Returns:
        {uri, mimeType, text} of the first content item
    """
    if not uri:
        return error_response(400, "uri query parameter is required")
    try:
        result = await registry.read_resource(uri)
    except ValueError as e:
        return error_response(400, str(e))
    except ProviderNotFoundError as e:
        return error_response(404, str(e))
    except ToolProviderError as e:
        return error_response(500, str(e))

    contents = result.get("contents") or []
    if not contents:
        return error_response(404, "Resource not found")
    content = contents[0]
    return {"uri": uri, "mimeType": content.get("mimeType"), "text": content.get("text")}
