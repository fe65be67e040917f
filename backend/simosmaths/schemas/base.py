from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Wire models speak camelCase; Python code and snake_case clients still work."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
