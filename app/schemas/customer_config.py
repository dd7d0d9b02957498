"""Customer config request schemas"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfigInit(BaseModel):
    """POST /app_customer_config/init_config"""
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: str = Field(..., min_length=1, max_length=64)
    uid: Optional[int] = None


class ConfigUpdate(BaseModel):
    """PUT /app_customer_config/update"""
    id: int
    uid: int
    config_value: Any = Field(..., description="Coerced to the entry's declared data_type")
