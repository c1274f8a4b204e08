#!/usr/bin/env python3
"""
OpenAPI specification generator for the event registration API.

Paths come from the route table below, request bodies from the pydantic
request models, so the document follows the code it describes.
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

import yaml
from pydantic import BaseModel

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from eventhub import __version__  # noqa: E402
from eventhub.models.input import (  # noqa: E402
    CreateEventRequest,
    OrganizerRequest,
    PaymentStatusRequest,
    UpdateEventRequest,
)

# (method, path, summary, request model, required roles, authenticated)
ROUTES: List[tuple] = [
    ("get", "/events", "List enabled events filtered by type or difficulty", None, [], False),
    ("get", "/events/featured", "List featured events", None, [], False),
    ("get", "/events/slug/{slug}", "Get an event by slug", None, [], False),
    ("get", "/events/{eventId}", "Get an event by id", None, [], False),
    ("get", "/events/creator/{creatorId}", "List events of a creator", None, ["organizer", "admin"], True),
    ("post", "/events", "Create an event", CreateEventRequest, [], True),
    ("patch", "/events/{eventId}", "Update an event", UpdateEventRequest, [], True),
    ("delete", "/events/{eventId}", "Delete an event without registrations", None, [], True),
    ("post", "/organizers", "Create the caller's organizer", OrganizerRequest, ["organizer", "admin"], True),
    ("get", "/organizers/me", "Get the caller's organizer", None, ["organizer", "admin"], True),
    ("get", "/organizers/{organizerId}", "Get an organizer", None, ["organizer", "admin"], True),
    ("patch", "/organizers/{organizerId}", "Update an organizer", OrganizerRequest, ["organizer", "admin"], True),
    ("delete", "/organizers/{organizerId}", "Delete an organizer without events", None, ["organizer", "admin"], True),
    ("post", "/events/{eventId}/registrations", "Register an individual or a team", None, [], False),
    ("get", "/events/{eventId}/participants", "List the participants of an event", None, ["organizer", "admin"], True),
    ("get", "/registrations/{reservationId}", "Get a reservation with its participants", None, ["organizer", "admin"], True),
    ("patch", "/registrations/{reservationId}/payment", "Update the payment status", PaymentStatusRequest, [], True),
    ("delete", "/registrations/{reservationId}", "Delete a reservation", None, ["organizer", "admin"], True),
]

ERROR_RESPONSES = {
    "400": "Bad request or validation error",
    "401": "Authentication required",
    "403": "Access denied",
    "404": "Resource not found",
    "409": "Conflict with the current state",
    "429": "Rate limit exceeded",
    "500": "Internal server error",
}


def _path_parameters(path: str) -> List[Dict[str, Any]]:
    names = [segment[1:-1] for segment in path.split("/") if segment.startswith("{")]
    return [{"name": name, "in": "path", "required": True, "schema": {"type": "string"}} for name in names]


def _operation(summary: str, model: Optional[Type[BaseModel]], roles: List[str], authenticated: bool, path: str) -> Dict[str, Any]:
    operation: Dict[str, Any] = {
        "summary": summary,
        "responses": {
            "200": {"description": "Success", "content": {"application/json": {"schema": {"$ref": "#/components/schemas/SuccessEnvelope"}}}},
            **{
                code: {"description": description, "content": {"application/json": {"schema": {"$ref": "#/components/schemas/ErrorEnvelope"}}}}
                for code, description in ERROR_RESPONSES.items()
            },
        },
    }
    parameters = _path_parameters(path)
    if parameters:
        operation["parameters"] = parameters
    if model is not None:
        operation["requestBody"] = {
            "required": True,
            "content": {"application/json": {"schema": {"$ref": f"#/components/schemas/{model.__name__}"}}},
        }
    if authenticated:
        operation["security"] = [{"bearerAuth": []}]
    if roles:
        operation["x-required-roles"] = roles
    return operation


def get_openapi_spec() -> Dict[str, Any]:
    """
    Build the OpenAPI document.

    Returns:
        OpenAPI specification dictionary
    """
    paths: Dict[str, Dict[str, Any]] = {}
    schemas: Dict[str, Any] = {}

    for method, path, summary, model, roles, authenticated in ROUTES:
        paths.setdefault(path, {})[method] = _operation(summary, model, roles, authenticated, path)
        if model is not None:
            schemas[model.__name__] = model.model_json_schema(by_alias=True, ref_template="#/components/schemas/{model}")

    schemas["SuccessEnvelope"] = {
        "type": "object",
        "properties": {"success": {"type": "boolean", "enum": [True]}, "data": {}},
        "required": ["success", "data"],
    }
    schemas["ErrorEnvelope"] = {
        "type": "object",
        "properties": {
            "success": {"type": "boolean", "enum": [False]},
            "error": {
                "type": "object",
                "properties": {"message": {"type": "string"}, "code": {"type": "string"}, "details": {"type": "object"}},
                "required": ["message", "code"],
            },
            "data": {"nullable": True},
        },
        "required": ["success", "error", "data"],
    }

    return {
        "openapi": "3.0.3",
        "info": {"title": "EventHub API", "version": __version__},
        "paths": paths,
        "components": {
            "schemas": schemas,
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        },
    }


def main():
    """Main function for the OpenAPI generator script."""
    parser = argparse.ArgumentParser(description="Generate the OpenAPI specification for the EventHub API")
    parser.add_argument("--format", choices=["json", "yaml"], default="yaml", help="Output format (default: yaml)")
    parser.add_argument("--out-destination", default=".", help="Output directory (default: current directory)")
    parser.add_argument("--out-filename", help="Output filename (default: openapi.{format})")

    args = parser.parse_args()

    spec = get_openapi_spec()
    spec["info"]["x-generated"] = {"timestamp": datetime.now(timezone.utc).isoformat()}

    output_dir = Path(args.out_destination)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / (args.out_filename or f"openapi.{args.format}")

    with open(output_path, "w", encoding="utf-8") as f:
        if args.format == "json":
            json.dump(spec, f, indent=2, ensure_ascii=False)
        else:
            yaml.dump(spec, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    operations = sum(len(path_obj) for path_obj in spec["paths"].values())
    print(f"OpenAPI specification written to: {output_path} ({len(spec['paths'])} paths, {operations} operations)")


if __name__ == "__main__":
    main()
