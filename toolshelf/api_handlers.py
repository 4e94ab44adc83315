"""
API Request Handlers for toolshelf

This module contains the HTTP request handlers through which a web front end
drives a ToolShelfSession: configuration lifecycle, group and item editing,
drag-and-drop events and validation. Every handler answers with the standard
{"success", "message", "data", "errors"} envelope.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from aiohttp import web

from .core.group import NEW_GROUP_NAME, ToolShelf
from .core.items import ItemError, ToolShelfError, create_item
from .core.reorder import DragKind, Point, Rect, ReorderEngine
from .session import ToolShelfSession

logger = logging.getLogger(__name__)

SESSION_KEY = web.AppKey("toolshelf_session", ToolShelfSession)

DRAG_ACTIONS = ("down", "move", "up", "reset")


def validate_request_json(request_data: Any) -> Tuple[bool, Optional[str], Optional[list[str]]]:
    """
    Validate basic request JSON structure.

    Args:
        request_data: The parsed JSON data from the request

    Returns:
        Tuple of (is_valid, error_message, error_details)
    """
    if not isinstance(request_data, dict):
        return False, "Request body must be a JSON object", ["Invalid data format"]

    return True, None, None


def validate_name_field(data: Dict[str, Any], field_name: str = "name") -> Tuple[bool, Optional[str], Optional[list[str]]]:
    """
    Validate a name field in request data.

    Args:
        data: Request data dictionary
        field_name: Name of the field to validate

    Returns:
        Tuple of (is_valid, error_message, error_details)
    """
    if field_name not in data or not data[field_name]:
        return False, f"Missing required field: {field_name}", [f"Field '{field_name}' is required"]

    if not isinstance(data[field_name], str):
        return False, "Invalid name", [f"Field '{field_name}' must be a string"]

    name = data[field_name].strip()
    if not name or len(name) > 255:
        return False, "Invalid name", ["Name must be between 1 and 255 characters"]

    return True, None, None


def create_success_response(message: str, data: Any, status: int = 200) -> web.Response:
    """
    Create a standardized success response.

    Args:
        message: Success message
        data: Response data
        status: HTTP status code

    Returns:
        JSON response object
    """
    return web.json_response({
        "success": True,
        "message": message,
        "data": data,
        "errors": []
    }, status=status)


def create_error_response(message: str, errors: list[str], status: int = 400) -> web.Response:
    """
    Create a standardized error response.

    Args:
        message: Error message
        errors: List of error details
        status: HTTP status code

    Returns:
        JSON response object
    """
    return web.json_response({
        "success": False,
        "message": message,
        "data": None,
        "errors": errors
    }, status=status)


def get_session(request: web.Request) -> ToolShelfSession:
    return request.app[SESSION_KEY]


async def read_json_body(request: web.Request, required: bool = True) -> Tuple[Optional[Dict[str, Any]], Optional[web.Response]]:
    """
    Parse and check the JSON body of a request.

    Args:
        request: HTTP request
        required: When False an empty body is read as {}

    Returns:
        Tuple of (data, error_response); exactly one of them is None
    """
    if not required and not request.can_read_body:
        return {}, None
    try:
        data = await request.json()
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in request to {request.path}: {e}")
        return None, create_error_response("Invalid JSON format", [str(e)], status=400)

    is_valid, message, errors = validate_request_json(data)
    if not is_valid:
        return None, create_error_response(message or "Validation error", errors or [], status=400)
    return data, None


def parse_index(value: Any, label: str) -> int:
    """
    Raises:
        ValueError: If value is not an integer (or an integer string)
    """
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.lstrip("-").isdigit():
        return int(value)
    raise ValueError(f"{label} must be an integer")


def parse_point(data: Any) -> Point:
    if not isinstance(data, dict):
        raise ValueError("point must be an object with x and y")
    try:
        return Point(float(data["x"]), float(data["y"]))
    except (KeyError, TypeError, ValueError):
        raise ValueError("point must be an object with numeric x and y")


def parse_rect(data: Any) -> Rect:
    if not isinstance(data, dict):
        raise ValueError("region must be an object with x, y, width and height")
    try:
        return Rect(float(data["x"]), float(data["y"]), float(data["width"]), float(data["height"]))
    except (KeyError, TypeError, ValueError):
        raise ValueError("region must be an object with numeric x, y, width and height")


def active_shelf_or_error(session: ToolShelfSession) -> Tuple[Optional[ToolShelf], Optional[web.Response]]:
    shelf = session.store.active
    if shelf is None:
        return None, create_error_response(
            "No active configuration",
            ["Load or create a configuration first"],
            status=409
        )
    return shelf, None


def configurations_view(session: ToolShelfSession) -> Dict[str, Any]:
    store = session.store
    return {
        "identifiers": store.available_identifiers,
        "display_names": store.available_names,
        "selected_index": store.selected_index,
        "active_identifier": store.active_identifier,
        "is_dirty": store.is_dirty,
    }


def shelf_view(session: ToolShelfSession, shelf: ToolShelf) -> Dict[str, Any]:
    """Serialize the active shelf together with the render model of every item."""
    groups = []
    for group in shelf.groups or []:
        items = []
        for item in group.items or []:
            items.append({"item": item.to_dict(), "render": item.render().to_dict()})
        groups.append({"name": group.name, "items": items})
    return {
        "identifier": session.store.active_identifier,
        "is_dirty": session.store.is_dirty,
        "settings": shelf.settings.to_dict(),
        "groups": groups,
    }


def engine_view(engine: ReorderEngine) -> Dict[str, Any]:
    return {
        "kind": engine.kind.value,
        "state": engine.state.value,
        "source_index": engine.source_index,
        "tentative_target": engine.tentative_target,
        "group_index": engine.group_index,
    }


def internal_error(action: str, e: Exception) -> web.Response:
    logger.error(f"Server error while trying to {action}: {e}", exc_info=e)
    return create_error_response(f"Failed to {action}", ["An unexpected error occurred"], status=500)


# Configurations

async def list_configurations(request: web.Request) -> web.Response:
    """
    Re-run discovery and list the available configurations.

    Returns:
        JSON response with identifiers, display names and the active selection
    """
    session = get_session(request)
    try:
        session.store.discover()
        return create_success_response("Configurations retrieved successfully", configurations_view(session))
    except Exception as e:
        return internal_error("list configurations", e)


async def load_configuration(request: web.Request) -> web.Response:
    """
    Load a configuration by "index" (position in the discovery list) or "identifier".

    Returns:
        JSON response with the load result and the loaded shelf
    """
    session = get_session(request)
    data, error = await read_json_body(request)
    if error:
        return error

    try:
        if "index" in data:
            index = parse_index(data["index"], "index")
            result = session.store.load_by_index(index)
            failure_status = 404
        elif data.get("identifier"):
            result = session.store.load_by_identifier(str(data["identifier"]))
            failure_status = 400
        else:
            return create_error_response(
                "Missing required field: index or identifier",
                ["Either 'index' or 'identifier' is required"],
                status=400
            )
    except ValueError as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error("load configuration", e)

    if not result.success:
        return create_error_response("Failed to load configuration", [result.message], status=failure_status)

    return create_success_response(result.message, {
        "result": result.to_dict(),
        "configurations": configurations_view(session),
        "shelf": shelf_view(session, session.store.active),
    })


async def create_configuration(request: web.Request) -> web.Response:
    """
    Create a new configuration file and make it active.

    Request body: {"name": str, "location": optional project-relative folder}
    """
    session = get_session(request)
    data, error = await read_json_body(request)
    if error:
        return error

    is_valid, message, errors = validate_name_field(data)
    if not is_valid:
        return create_error_response(message or "Validation error", errors or [], status=400)

    location = data.get("location")
    if location is not None and not isinstance(location, str):
        return create_error_response("Validation error", ["'location' must be a string"], status=400)

    try:
        result = session.store.create_new(data["name"].strip(), location or None)
    except Exception as e:
        return internal_error("create configuration", e)

    if not result.success:
        return create_error_response("Failed to create configuration", [result.message], status=400)

    return create_success_response(result.message, {
        "result": result.to_dict(),
        "configurations": configurations_view(session),
    }, status=201)


async def save_configuration(request: web.Request) -> web.Response:
    """
    Save the active configuration.

    Request body (optional): {"enforce_validation": bool}
    """
    session = get_session(request)
    data, error = await read_json_body(request, required=False)
    if error:
        return error

    _, error = active_shelf_or_error(session)
    if error:
        return error

    enforce_validation = bool(data.get("enforce_validation", False))
    try:
        result = session.store.save(enforce_validation=enforce_validation)
    except Exception as e:
        return internal_error("save configuration", e)

    if not result.success:
        status = 400 if enforce_validation and not session.store.validate(session.store.active)[0] else 500
        return create_error_response("Failed to save configuration", [result.message], status=status)

    return create_success_response(result.message, result.to_dict())


async def validate_configuration(request: web.Request) -> web.Response:
    """
    Structural and reference validation of the active configuration.

    Returns:
        JSON response with {"structure": {...}, "references": {...}}
    """
    session = get_session(request)
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    try:
        ok, message = session.store.validate(shelf)
        report = session.store.check_references()
    except Exception as e:
        return internal_error("validate configuration", e)

    return create_success_response("Validation completed", {
        "structure": {"ok": ok, "message": message},
        "references": report.to_dict(),
    })


# Groups

async def get_shelf(request: web.Request) -> web.Response:
    """Get the groups of the active configuration with their rendered items."""
    session = get_session(request)
    shelf, error = active_shelf_or_error(session)
    if error:
        return error
    try:
        return create_success_response("Shelf retrieved successfully", shelf_view(session, shelf))
    except ToolShelfError as e:
        return internal_error("retrieve shelf", e)


async def add_group(request: web.Request) -> web.Response:
    """
    Append a group. Request body (optional): {"name": str}
    """
    session = get_session(request)
    data, error = await read_json_body(request, required=False)
    if error:
        return error
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    name = NEW_GROUP_NAME
    if "name" in data:
        is_valid, message, errors = validate_name_field(data)
        if not is_valid:
            return create_error_response(message or "Validation error", errors or [], status=400)
        name = data["name"].strip()

    try:
        index = shelf.add_group(name)
    except Exception as e:
        return internal_error("add group", e)

    return create_success_response(f"Group '{name}' added", {"index": index, "shelf": shelf_view(session, shelf)}, status=201)


async def rename_group(request: web.Request) -> web.Response:
    """Rename the group at {group_index}. Request body: {"name": str}"""
    session = get_session(request)
    data, error = await read_json_body(request)
    if error:
        return error
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    is_valid, message, errors = validate_name_field(data)
    if not is_valid:
        return create_error_response(message or "Validation error", errors or [], status=400)

    try:
        group_index = parse_index(request.match_info.get("group_index"), "group_index")
        shelf.rename_group(group_index, data["name"].strip())
    except IndexError as e:
        return create_error_response("Group not found", [str(e)], status=404)
    except ValueError as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error("rename group", e)

    return create_success_response("Group renamed", shelf_view(session, shelf))


async def delete_group(request: web.Request) -> web.Response:
    """Remove the group at {group_index} together with its items."""
    session = get_session(request)
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    try:
        group_index = parse_index(request.match_info.get("group_index"), "group_index")
        removed = shelf.remove_group(group_index)
    except IndexError as e:
        return create_error_response("Group not found", [str(e)], status=404)
    except ValueError as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error("delete group", e)

    return create_success_response(f"Group '{removed.name}' deleted", shelf_view(session, shelf))


# Items

async def add_item(request: web.Request) -> web.Response:
    """
    Append an item to the group at {group_index}.

    Request body: {"type": <item type tag>, ...field values}
    """
    session = get_session(request)
    data, error = await read_json_body(request)
    if error:
        return error
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    fields = dict(data)
    type_tag = fields.pop("type", None)
    if not type_tag:
        return create_error_response("Missing required field: type", ["Field 'type' is required"], status=400)
    if not isinstance(type_tag, str):
        return create_error_response("Validation error", ["Field 'type' must be a string"], status=400)

    try:
        group_index = parse_index(request.match_info.get("group_index"), "group_index")
        template = create_item(type_tag, **fields)
        item_index = shelf.add_item(group_index, template)
    except IndexError as e:
        return create_error_response("Group not found", [str(e)], status=404)
    except (ItemError, ValueError) as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error("add item", e)

    return create_success_response("Item added", {"index": item_index, "shelf": shelf_view(session, shelf)}, status=201)


async def update_item(request: web.Request) -> web.Response:
    """Edit fields of the item at {group_index}/{item_index}. Request body: field values."""
    session = get_session(request)
    data, error = await read_json_body(request)
    if error:
        return error
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    fields = dict(data)
    fields.pop("type", None)

    try:
        group_index = parse_index(request.match_info.get("group_index"), "group_index")
        item_index = parse_index(request.match_info.get("item_index"), "item_index")
        item = shelf.update_item(group_index, item_index, **fields)
    except IndexError as e:
        return create_error_response("Item not found", [str(e)], status=404)
    except ValueError as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error("update item", e)

    return create_success_response("Item updated", {"item": item.to_dict(), "render": item.render().to_dict()})


async def delete_item(request: web.Request) -> web.Response:
    """Remove the item at {group_index}/{item_index}."""
    session = get_session(request)
    shelf, error = active_shelf_or_error(session)
    if error:
        return error

    try:
        group_index = parse_index(request.match_info.get("group_index"), "group_index")
        item_index = parse_index(request.match_info.get("item_index"), "item_index")
        shelf.remove_item(group_index, item_index)
    except IndexError as e:
        return create_error_response("Item not found", [str(e)], status=404)
    except ValueError as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error("delete item", e)

    return create_success_response("Item deleted", shelf_view(session, shelf))


# Drag and drop

async def drag_event(request: web.Request) -> web.Response:
    """
    Feed one pointer event to the reorder engine of {kind} ("group" or "item").

    Actions ({action}):
        down:  {"index", "region": {x, y, width, height}, "point": {x, y}, "group_index"?}
        move:  {"point": {x, y}, "slots": [{"index", "region"}], "group_index"?}
        up:    no body; commits the move if there is a valid target
        reset: no body; abandons the session
    """
    session = get_session(request)
    kind_name = request.match_info.get("kind")
    action = request.match_info.get("action")

    try:
        kind = DragKind(kind_name)
    except ValueError:
        return create_error_response("Unknown drag kind", [f"Drag kind must be 'group' or 'item', got '{kind_name}'"], status=400)
    if action not in DRAG_ACTIONS:
        return create_error_response("Unknown drag action", [f"Drag action must be one of {', '.join(DRAG_ACTIONS)}"], status=400)

    data, error = await read_json_body(request, required=action in ("down", "move"))
    if error:
        return error

    engine = session.engine_for(kind)
    try:
        group_index = data.get("group_index")
        if group_index is not None:
            group_index = parse_index(group_index, "group_index")

        if action == "down":
            armed = engine.pointer_down(
                parse_index(data.get("index"), "index"),
                parse_rect(data.get("region")),
                parse_point(data.get("point")),
                group_index,
            )
            return create_success_response("Drag armed" if armed else "Drag not started", engine_view(engine))

        if action == "move":
            raw_slots = data.get("slots") or []
            if not isinstance(raw_slots, list):
                raise ValueError("slots must be a list")
            slots = [(parse_index(slot.get("index"), "slot index"), parse_rect(slot.get("region")))
                     for slot in raw_slots if isinstance(slot, dict)]
            engine.pointer_move(parse_point(data.get("point")), slots, group_index)
            return create_success_response("Drag updated", engine_view(engine))

        if action == "up":
            outcome = engine.pointer_up()
            view = engine_view(engine)
            view["outcome"] = {
                "committed": outcome.committed,
                "source_index": outcome.source_index,
                "final_index": outcome.final_index,
                "group_index": outcome.group_index,
            }
            if outcome.committed and session.store.active is not None:
                view["shelf"] = shelf_view(session, session.store.active)
            return create_success_response("Drop committed" if outcome.committed else "Drop cancelled", view)

        engine.reset()
        return create_success_response("Drag reset", engine_view(engine))

    except ValueError as e:
        return create_error_response("Validation error", [str(e)], status=400)
    except Exception as e:
        return internal_error(f"handle {kind.value} drag {action}", e)
