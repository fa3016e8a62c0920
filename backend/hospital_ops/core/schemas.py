from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model whose JSON form uses camelCase keys.

    Both the stored documents and the API payloads use the camelCase layout
    the dashboard reads; Python code keeps snake_case attribute names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
