"""JsonModel base class for payloads sent to the browser."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model whose JSON uses camelCase keys.

    Attributes stay snake_case in Python; request bodies are accepted in
    either form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump_json(self, **kwargs) -> str:
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

    def to_json(self) -> str:
        """Compact camelCase JSON, None fields included."""
        return self.model_dump_json()
