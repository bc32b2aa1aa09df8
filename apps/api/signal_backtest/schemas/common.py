from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Generic, TypeVar, List

T = TypeVar('T')

class CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ResponseBase(CamelModel, Generic[T]):
    count: int = 0
    items: List[T] = []
