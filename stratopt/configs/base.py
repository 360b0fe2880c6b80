from pydantic import BaseModel, ConfigDict


class BaseConfig(BaseModel):
    """Base class for every configuration model: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")
