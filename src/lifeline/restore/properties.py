"""Conversion of captured properties into Notion create-API payloads.

Computed and system-managed property types cannot be written, and
relation/files/people values reference objects that may not exist in
the target workspace, so all of those are dropped.
"""

from __future__ import annotations

from typing import Any

from lifeline.observability import get_logger

log = get_logger("lifeline.restore.properties")

#: Page property types that are never written back.
SKIPPED_PAGE_PROPERTY_TYPES = frozenset({
    "formula",
    "rollup",
    "created_time",
    "created_by",
    "last_edited_time",
    "last_edited_by",
    "unique_id",
    "relation",
    "files",
    "people",
    "button",
})

#: Database schema property types that cannot be declared on create.
SKIPPED_SCHEMA_PROPERTY_TYPES = frozenset({
    "formula",
    "rollup",
    "created_time",
    "created_by",
    "last_edited_time",
    "last_edited_by",
    "unique_id",
    "relation",
    "button",
})

_PASSTHROUGH_TYPES = frozenset({
    "title",
    "rich_text",
    "number",
    "date",
    "checkbox",
    "url",
    "email",
    "phone_number",
})

_OPTION_TYPES = ("select", "multi_select", "status")


def _writable_value(prop_type: str, prop: dict[str, Any]) -> Any:
    value = prop.get(prop_type)
    if prop_type in ("select", "status"):
        return {"name": value["name"]} if value else None
    if prop_type == "multi_select":
        return [{"name": opt["name"]} for opt in value or []]
    return value


def transform_page_properties(properties: dict[str, Any] | None) -> dict[str, Any]:
    """Return create-API property values for a captured page.

    Read-only and reference types are skipped, as are unknown types and
    properties whose value is empty.
    """
    result: dict[str, Any] = {}
    for name, prop in (properties or {}).items():
        prop_type = prop.get("type")
        if prop_type in SKIPPED_PAGE_PROPERTY_TYPES:
            continue
        if prop_type not in _PASSTHROUGH_TYPES and prop_type not in _OPTION_TYPES:
            log.warning(
                "Unhandled property type; skipping",
                extra={"extra_fields": {"property": name, "type": prop_type}},
            )
            continue
        value = _writable_value(prop_type, prop)
        if value is None:
            continue
        result[name] = {prop_type: value}
    return result


def transform_database_schema(properties: dict[str, Any] | None) -> dict[str, Any]:
    """Return the ``properties`` schema for a ``databases.create`` call.

    The title property is declared by the API automatically and is left
    out.  Option lists of select, multi-select and status properties are
    kept by name and colour; status also keeps its groups.
    """
    schema: dict[str, Any] = {}
    for name, prop in (properties or {}).items():
        prop_type = prop.get("type")
        if not prop_type or prop_type == "title" or prop_type in SKIPPED_SCHEMA_PROPERTY_TYPES:
            continue
        config: dict[str, Any] = {}
        source = prop.get(prop_type) or {}
        if prop_type in _OPTION_TYPES and source.get("options"):
            config["options"] = [
                {"name": opt.get("name"), "color": opt.get("color")} for opt in source["options"]
            ]
            if prop_type == "status" and source.get("groups"):
                config["groups"] = source["groups"]
        schema[name] = {"name": prop.get("name", name), prop_type: config}
    return schema
