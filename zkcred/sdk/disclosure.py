"""Disclosure partitioner.

Splits encoded messages into revealed and hidden maps keyed by message index,
and lets a verifier re-encode the revealed subtree it was given.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from zkcred.sdk.encoder import as_encoder
from zkcred.sdk.errors import UnknownFieldName
from zkcred.sdk.structure import flatten_object, unflatten_object

logger = logging.getLogger(__name__)


def partition(
    messages: Mapping[str, Any],
    schema: Any,
    revealed_names: Iterable[str],
) -> tuple[dict[int, bytes], dict[int, bytes], dict[str, Any]]:
    """Split an attribute object into revealed and unrevealed encoded messages.

    Args:
        messages: Attribute object matching the schema
        schema: Schema, encoder or message structure
        revealed_names: Dot-joined leaf names to reveal

    Returns:
        Revealed map, unrevealed map and the raw revealed subtree for the verifier
    """
    encoder = as_encoder(schema)
    wanted = set(revealed_names)
    names, encoded = encoder.encode_message_object(messages)
    revealed: dict[int, bytes] = {}
    unrevealed: dict[int, bytes] = {}
    for i, (name, value) in enumerate(zip(names, encoded)):
        (revealed if name in wanted else unrevealed)[i] = value
    if len(revealed) != len(wanted):
        raise UnknownFieldName(
            f"Some of the revealed message names were not found in the given messages object, "
            f"{len(wanted) - len(revealed)} extra names found"
        )
    flat = flatten_object(messages)
    raw = unflatten_object({name: flat[name] for name in sorted(wanted)})
    logger.debug("Partitioned %d messages: %d revealed", len(names), len(revealed))
    return revealed, unrevealed, raw


def encode_revealed(revealed_raw: Mapping[str, Any], schema: Any) -> dict[int, bytes]:
    """Verifier-side encoding of the revealed subtree; matches ``partition``'s revealed map."""
    return as_encoder(schema).encode_revealed(revealed_raw)
