from __future__ import annotations

"""JSON-like value types used at the host boundary.

Host payloads (option trees, callback responses) are untyped until a
normalizer or a pydantic model has looked at them; these aliases keep that
value space explicit instead of spelling it `Any`.
"""

from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONArray: TypeAlias = list[JSONValue]

# Option tree as supplied by the host, before normalization.
RawOptionValue: TypeAlias = JSONValue
