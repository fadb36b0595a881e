from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def to_document(record: BaseModel) -> dict[str, Any]:
    document = record.model_dump(mode="json")
    document["_id"] = document.pop("id")
    return document


def from_document(model: type[T], document: dict[str, Any]) -> T:
    data = dict(document)
    data["id"] = data.pop("_id")
    return model.model_validate(data)
