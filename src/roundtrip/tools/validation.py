"""Validate tool arguments against a tool's declared parameter schema.

The JSON-schema subset tools declare (object with typed ``properties``,
``required``, ``enum``, typed ``items``) is compiled into a Pydantic model
once per tool; the dispatcher validates every call against it before the
tool runs.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from roundtrip.core.errors import ToolArgumentError

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict[str, Any],
    "null": type(None),
}


def _annotation_for(prop_schema: dict[str, Any]) -> Any:
    """Map one property schema to a Python type annotation."""
    enum = prop_schema.get("enum")
    if enum:
        return Literal[tuple(enum)]

    declared = prop_schema.get("type")
    if isinstance(declared, list):
        members = tuple(_annotation_for({**prop_schema, "type": t}) for t in declared)
        return Union[members] if len(members) > 1 else members[0]  # noqa: UP007

    if declared == "array":
        items = prop_schema.get("items")
        item_type = _annotation_for(items) if isinstance(items, dict) else Any
        return list[item_type]  # type: ignore[valid-type]

    if isinstance(declared, str):
        return _JSON_TYPES.get(declared.lower(), Any)
    return Any


def build_argument_model(tool_name: str, schema: dict[str, Any]) -> type[BaseModel]:
    """Compile a parameters schema into a Pydantic model.

    Property names are attached as aliases so names that collide with
    ``BaseModel`` attributes (``json``, ``schema``) still validate. Unknown
    properties are allowed through untouched.
    """
    properties: dict[str, Any] = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    fields: dict[str, Any] = {}
    for index, (prop, prop_schema) in enumerate(properties.items()):
        if not isinstance(prop_schema, dict):
            prop_schema = {}
        annotation = _annotation_for(prop_schema)
        if prop in required:
            fields[f"field_{index}"] = (annotation, Field(..., alias=prop))
        else:
            fields[f"field_{index}"] = (
                Union[annotation, None],  # noqa: UP007
                Field(None, alias=prop),
            )

    return create_model(  # type: ignore[call-overload, no-any-return]
        f"{tool_name}_arguments",
        __config__=ConfigDict(extra="allow"),
        **fields,
    )


def _format_problem(error: dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ())) or "(arguments)"
    return f"{loc}: {error.get('msg', 'invalid value')}"


def validate_arguments(
    tool_name: str,
    model: type[BaseModel],
    args: dict[str, Any],
) -> dict[str, Any]:
    """Validate *args* and return them with declared types applied.

    Optional properties the model did not send stay absent.

    Raises:
        ToolArgumentError: With one problem per failing field.
    """
    try:
        parsed = model.model_validate(args)
    except ValidationError as e:
        problems = [_format_problem(err) for err in e.errors()]  # type: ignore[arg-type]
        raise ToolArgumentError(tool_name, problems) from e
    return parsed.model_dump(by_alias=True, exclude_unset=True)
