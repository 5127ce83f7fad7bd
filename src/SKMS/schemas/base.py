from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


# Response envelopes: {"status": "success", "data": {...}} (+ "results" for lists)

def ok(data: Any) -> dict:
    return {"status": "success", "data": data}


def ok_list(key: str, items: List[Any]) -> dict:
    return {"status": "success", "results": len(items), "data": {key: items}}


def ok_message(message: str) -> dict:
    return {"status": "success", "message": message}
