"""
API Routes for toolshelf

Registers the REST endpoints of api_handlers on an aiohttp application.
"""

import logging
import traceback

from aiohttp import web

from .api_handlers import (
    SESSION_KEY,
    add_group,
    add_item,
    create_configuration,
    delete_group,
    delete_item,
    drag_event,
    get_shelf,
    list_configurations,
    load_configuration,
    rename_group,
    save_configuration,
    update_item,
    validate_configuration,
)
from .session import ToolShelfSession

logger = logging.getLogger(__name__)

API_PREFIX = "/toolshelf"


def setup_api_routes(app: web.Application) -> None:
    """Set up API routes using the RouteTableDef pattern"""

    try:
        routes = web.RouteTableDef()

        # Configurations; fixed paths before the generic one
        routes.get(f"{API_PREFIX}/configurations")(list_configurations)
        routes.post(f"{API_PREFIX}/configurations")(create_configuration)
        routes.post(f"{API_PREFIX}/configurations/load")(load_configuration)
        routes.post(f"{API_PREFIX}/configurations/save")(save_configuration)
        routes.get(f"{API_PREFIX}/validation")(validate_configuration)

        # Groups
        routes.get(f"{API_PREFIX}/groups")(get_shelf)
        routes.post(f"{API_PREFIX}/groups")(add_group)
        routes.put(f"{API_PREFIX}/groups/{{group_index}}")(rename_group)
        routes.delete(f"{API_PREFIX}/groups/{{group_index}}")(delete_group)

        # Items
        routes.post(f"{API_PREFIX}/groups/{{group_index}}/items")(add_item)
        routes.put(f"{API_PREFIX}/groups/{{group_index}}/items/{{item_index}}")(update_item)
        routes.delete(f"{API_PREFIX}/groups/{{group_index}}/items/{{item_index}}")(delete_item)

        # Drag and drop
        routes.post(f"{API_PREFIX}/drag/{{kind}}/{{action}}")(drag_event)

        app.add_routes(routes)

    except Exception as e:
        logger.error(f"API setup failed: {e}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise


def create_app(session: ToolShelfSession) -> web.Application:
    """
    Build an application serving one session. The session is closed on cleanup.

    Example:
        >>> session = ToolShelfSession("/path/to/project")
        >>> session.start()
        >>> web.run_app(create_app(session))
    """
    app = web.Application()
    app[SESSION_KEY] = session
    setup_api_routes(app)

    async def close_session(app: web.Application) -> None:
        app[SESSION_KEY].close()

    app.on_cleanup.append(close_session)
    return app
