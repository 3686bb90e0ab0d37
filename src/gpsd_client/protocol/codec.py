"""Wire codec for the gpsd JSON protocol.

Server to client: one JSON object per line, tagged by its "class" property.
Client to server: ``?TAG=<json>`` where the JSON body repeats the tag.
"""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from ..errors import MalformedPayloadError
from .messages import GpsdCommandMessage, GpsdMessage, schema_for, tag_of

CLASS_KEY = "class"

# Runs of \r\n, \r or \n count as a single separator
LINE_SEPARATOR = re.compile(r"(?:\r\n|\r|\n)+")


def split_lines(text: str) -> list[str]:
    """Split a received chunk into its non-blank lines.

    Each chunk is split on its own: a line cut in two by the transport comes
    out as two fragments, which then fail to decode and are skipped.
    """
    return [line for line in LINE_SEPARATOR.split(text) if line.strip()]


def decode(line: str) -> GpsdMessage:
    """Decode one line of gpsd output into its typed message.

    Raises:
        MalformedPayloadError: The line is not a JSON object with a string
            "class" property, or its fields do not fit the schema.
        UnknownTypeError: No message model is registered for the class.
    """
    try:
        data = json.loads(line)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the JSON parser can follow
        raise MalformedPayloadError(f"Could not parse JSON: {e!r}") from e

    if not isinstance(data, dict):
        raise MalformedPayloadError(f"Expected a JSON object: {line[:80]}")

    tag = data.get(CLASS_KEY)
    if not isinstance(tag, str):
        raise MalformedPayloadError(f"Missing '{CLASS_KEY}' key in JSON: {line[:80]}")

    schema = schema_for(tag)
    try:
        return schema.model_validate(data)
    except (ValidationError, RecursionError) as e:
        raise MalformedPayloadError(f"Invalid {tag} message: {e}") from e


def encode(command: GpsdCommandMessage) -> str:
    """Encode a command as ``?TAG=<json>``.

    Only explicitly set, non-null fields are written, under their wire names.
    """
    if not isinstance(command, GpsdCommandMessage):
        raise TypeError(f"Only command messages can be sent, got {type(command).__name__}")

    tag = tag_of(type(command))
    body = {
        CLASS_KEY: tag,
        **command.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True),
    }
    return f"?{tag}={json.dumps(body, separators=(',', ':'))}"
