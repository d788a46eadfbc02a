"""HTTP endpoints for the current user and for group management."""

from __future__ import annotations

import functools
import html
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from roseauth import auth_data, eve_data
from roseauth.enums import NewGroupDto, UserDto, parse_new_group
from roseauth.schema import group_to_dto

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")


class _Reject(Exception):
    """Ends a request early with a plain-text response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.response = PlainTextResponse(message, status_code=status_code)


def _endpoint(
    handler: Callable[[Request], Awaitable[Response]],
) -> Callable[[Request], Awaitable[Response]]:
    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except _Reject as rejection:
            return rejection.response

    return wrapper


async def _db(request: Request, operation: Callable[..., Any], *args: Any) -> Any:
    engine = request.app.state.engine

    def work() -> Any:
        with engine.begin() as conn:
            return operation(conn, *args)

    return await run_in_threadpool(work)


def _session_user_id(request: Request) -> int:
    user = request.scope.get("session", {}).get("user")
    if not isinstance(user, str):
        raise _Reject(404, "User not found")
    return int(user)


def _path_id(request: Request) -> int:
    raw = request.path_params["id"]
    if _INTEGER.fullmatch(raw) is None or not _INT32_MIN <= int(raw) <= _INT32_MAX:
        raise _Reject(400, f"Invalid URL: Cannot parse `{raw}` as a group id")
    return int(raw)


async def _new_group_body(request: Request) -> NewGroupDto:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type != "application/json" and not content_type.endswith("+json"):
        raise _Reject(415, "Expected request with `Content-Type: application/json`")
    try:
        data = json.loads(await request.body())
    except ValueError as exc:
        raise _Reject(400, f"Failed to parse the request body as JSON: {exc}") from None
    try:
        return parse_new_group(data)
    except ValueError as exc:
        raise _Reject(
            422, f"Failed to deserialize the JSON body into the target type: {exc}"
        ) from None


async def _require_admin(request: Request) -> None:
    user_id = _session_user_id(request)
    try:
        user = await _db(request, auth_data.get_user, user_id)
    except SQLAlchemyError:
        raise _Reject(500, "There was an issue getting user info") from None
    if user is None:
        raise _Reject(404, "User not found")
    if not user.admin:
        raise _Reject(403, "Insufficient permissions")


# -- groups --------------------------------------------------------------------


@_endpoint
async def create_group(request: Request) -> Response:
    payload = await _new_group_body(request)
    await _require_admin(request)
    try:
        group = await _db(request, auth_data.create_group, payload)
    except SQLAlchemyError as exc:
        print(exc)
        return PlainTextResponse("Error creating new group", status_code=500)
    return JSONResponse(group_to_dto(group).to_dict())


@_endpoint
async def get_groups(request: Request) -> Response:
    await _require_admin(request)
    try:
        groups = await _db(request, auth_data.get_groups)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting groups", status_code=500)
    return JSONResponse([group_to_dto(group).to_dict() for group in groups])


@_endpoint
async def get_group_by_id(request: Request) -> Response:
    group_id = _path_id(request)
    await _require_admin(request)
    try:
        group = await _db(request, auth_data.get_group_by_id, group_id)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting groups", status_code=500)
    if group is None:
        return PlainTextResponse("Group not found", status_code=404)
    return JSONResponse(group_to_dto(group).to_dict())


@_endpoint
async def update_group(request: Request) -> Response:
    group_id = _path_id(request)
    payload = await _new_group_body(request)
    await _require_admin(request)
    try:
        group = await _db(request, auth_data.update_group, group_id, payload)
    except (SQLAlchemyError, LookupError):
        return PlainTextResponse("Error updating group", status_code=500)
    return JSONResponse(group_to_dto(group).to_dict())


@_endpoint
async def delete_group(request: Request) -> Response:
    group_id = _path_id(request)
    await _require_admin(request)
    try:
        deleted = await _db(request, auth_data.delete_group, group_id)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting groups", status_code=500)
    if deleted is None:
        return PlainTextResponse("Group not found", status_code=404)
    return PlainTextResponse(f"Deleted group with id {deleted}")


# -- user ----------------------------------------------------------------------


@_endpoint
async def get_user(request: Request) -> Response:
    user_id = _session_user_id(request)
    try:
        main = await _db(request, auth_data.get_user_main_character, user_id)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting user info.", status_code=500)
    if main is None:
        return PlainTextResponse("Main character not found.", status_code=404)

    try:
        character = await _db(request, eve_data.get_character, main.character_id)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting character info.", status_code=500)
    if character is None:
        return PlainTextResponse("Character info not found.", status_code=404)

    user_info = UserDto(
        id=user_id,
        character_id=character.character_id,
        character_name=character.character_name,
    )
    return JSONResponse(user_info.to_dict())


@_endpoint
async def get_user_main_character(request: Request) -> Response:
    user_id = _session_user_id(request)
    try:
        main = await _db(request, auth_data.get_user_main_character, user_id)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting user's main character.", status_code=500)
    if main is None:
        return PlainTextResponse("Main character not found.", status_code=404)

    try:
        affiliations = await _db(
            request, eve_data.bulk_get_character_affiliations, [main.character_id]
        )
    except (SQLAlchemyError, LookupError):
        return PlainTextResponse("Error getting user info.", status_code=500)
    if not affiliations:
        return PlainTextResponse("Character info not found.", status_code=404)
    return JSONResponse(affiliations[0].to_dict())


@_endpoint
async def get_user_characters(request: Request) -> Response:
    user_id = _session_user_id(request)
    try:
        ownerships = await _db(request, auth_data.get_user_character_ownerships, user_id)
    except SQLAlchemyError:
        return PlainTextResponse("Error getting user characters.", status_code=500)
    if not ownerships:
        return PlainTextResponse("No characters found for user", status_code=404)

    character_ids = list(dict.fromkeys(ownership.character_id for ownership in ownerships))
    try:
        affiliations = await _db(
            request, eve_data.bulk_get_character_affiliations, character_ids
        )
    except (SQLAlchemyError, LookupError):
        return PlainTextResponse("Error getting user info.", status_code=500)
    if not affiliations:
        return PlainTextResponse("No characters found for user", status_code=404)
    return JSONResponse([affiliation.to_dict() for affiliation in affiliations])


# -- API description -------------------------------------------------------------


def _ref(name: str) -> dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _text(description: str) -> dict[str, Any]:
    return {
        "description": description,
        "content": {"text/plain; charset=utf-8": {"schema": {"type": "string"}}},
    }


def _json(description: str, schema: dict[str, Any]) -> dict[str, Any]:
    return {"description": description, "content": {"application/json": {"schema": schema}}}


def _operation(
    operation_id: str,
    ok: dict[str, Any],
    errors: dict[str, str],
    *,
    with_id: bool = False,
    with_body: bool = False,
) -> dict[str, Any]:
    operation: dict[str, Any] = {"operationId": operation_id}
    if with_id:
        operation["parameters"] = [
            {
                "name": "id",
                "in": "path",
                "required": True,
                "schema": {"type": "integer", "format": "int32"},
            }
        ]
    if with_body:
        operation["requestBody"] = {
            "content": {"application/json": {"schema": _ref("NewGroupDto")}},
            "required": True,
        }
    operation["responses"] = {"200": ok, **{code: _text(text) for code, text in errors.items()}}
    operation["security"] = [{"login": []}]
    return operation


_GROUP_ERRORS = {
    "403": "Insufficient permissions",
    "404": "User not found",
    "500": "Internal server error",
}
_GROUP_ID_ERRORS = {
    "403": "Insufficient permissions",
    "404": "Not found",
    "500": "Internal server error",
}
_USER_ERRORS = {"404": "User not found", "500": "Internal server error"}

_INT32 = {"type": "integer", "format": "int32"}


def openapi_spec() -> dict[str, Any]:
    """The OpenAPI description of the user and group endpoints."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "roseauth", "version": "0.1.0"},
        "paths": {
            "/user": {
                "get": _operation(
                    "get_user", _json("Current user info", _ref("UserDto")), _USER_ERRORS
                )
            },
            "/user/main": {
                "get": _operation(
                    "get_user_main_character",
                    _json(
                        "Returns user's main character info", _ref("CharacterAffiliationDto")
                    ),
                    _USER_ERRORS,
                )
            },
            "/user/characters": {
                "get": _operation(
                    "get_user_characters",
                    _json(
                        "Returns list of all user characters",
                        {"type": "array", "items": _ref("CharacterAffiliationDto")},
                    ),
                    _USER_ERRORS,
                )
            },
            "/groups/create": {
                "post": _operation(
                    "create_group",
                    _json("Created group info", _ref("GroupDto")),
                    _GROUP_ERRORS,
                    with_body=True,
                )
            },
            "/groups": {
                "get": _operation(
                    "get_groups",
                    _json("List of groups", {"type": "array", "items": _ref("GroupDto")}),
                    _GROUP_ERRORS,
                )
            },
            "/groups/{id}": {
                "get": _operation(
                    "get_group_by_id",
                    _json("Group info", _ref("GroupDto")),
                    _GROUP_ID_ERRORS,
                    with_id=True,
                ),
                "put": _operation(
                    "update_group",
                    _json("Updated group info", _ref("GroupDto")),
                    _GROUP_ID_ERRORS,
                    with_id=True,
                    with_body=True,
                ),
                "delete": _operation(
                    "delete_group",
                    _json("Group deleted successfully", _ref("GroupDto")),
                    _GROUP_ID_ERRORS,
                    with_id=True,
                ),
            },
        },
        "components": {
            "schemas": {
                "UserDto": {
                    "type": "object",
                    "required": ["id", "character_id", "character_name"],
                    "properties": {
                        "id": _INT32,
                        "character_id": _INT32,
                        "character_name": {"type": "string"},
                    },
                },
                "NewGroupDto": {
                    "type": "object",
                    "required": ["name", "confidential", "group_type"],
                    "properties": {
                        "name": {"type": "string"},
                        "confidential": {"type": "boolean"},
                        "description": {"type": "string", "nullable": True},
                        "group_type": _ref("GroupType"),
                    },
                },
                "GroupType": {
                    "type": "string",
                    "enum": ["Open", "Auto", "Apply", "Hidden"],
                },
                "CharacterAffiliationDto": {
                    "type": "object",
                    "required": [
                        "character_id",
                        "character_name",
                        "corporation_id",
                        "corporation_name",
                    ],
                    "properties": {
                        "character_id": _INT32,
                        "character_name": {"type": "string"},
                        "corporation_id": _INT32,
                        "corporation_name": {"type": "string"},
                        "alliance_id": {**_INT32, "nullable": True},
                        "alliance_name": {"type": "string", "nullable": True},
                    },
                },
                "GroupDto": {
                    "type": "object",
                    "required": ["id", "name", "group_type"],
                    "properties": {
                        "id": _INT32,
                        "name": {"type": "string"},
                        "description": {"type": "string", "nullable": True},
                        "group_type": _ref("GroupType"),
                    },
                },
            }
        },
        "tags": [
            {"name": "Black Rose Auth API", "description": "Black Rose Auth API endpoints"}
        ],
    }


async def _openapi_json(request: Request) -> Response:
    return JSONResponse(openapi_spec())


async def _docs(request: Request) -> Response:
    spec = openapi_spec()
    items = "\n".join(
        f"<li><code>{html.escape(method.upper())} {html.escape(path)}</code> "
        f"{html.escape(operation['operationId'])}</li>"
        for path, methods in spec["paths"].items()
        for method, operation in methods.items()
    )
    title = html.escape(spec["info"]["title"])
    page = (
        f"<!DOCTYPE html>\n<html><head><title>{title}</title></head><body>\n"
        f"<h1>{title}</h1>\n<p><a href=\"/openapi.json\">openapi.json</a></p>\n"
        f"<ul>\n{items}\n</ul>\n</body></html>\n"
    )
    return HTMLResponse(page)


def build_routes(debug: bool = False) -> list[Route]:
    """All routes; the API description is served too when debugging."""
    routes = [
        Route("/user", get_user, methods=["GET"]),
        Route("/user/main", get_user_main_character, methods=["GET"]),
        Route("/user/characters", get_user_characters, methods=["GET"]),
        Route("/groups", create_group, methods=["POST"]),
        Route("/groups", get_groups, methods=["GET"]),
        Route("/groups/{id}", get_group_by_id, methods=["GET"]),
        Route("/groups/{id}", update_group, methods=["PUT"]),
        Route("/groups/{id}", delete_group, methods=["DELETE"]),
    ]
    if debug:
        routes += [
            Route("/openapi.json", _openapi_json, methods=["GET"]),
            Route("/docs", _docs, methods=["GET"]),
        ]
    return routes