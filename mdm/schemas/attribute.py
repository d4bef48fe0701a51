"""
Dynamic attribute descriptors and business entities.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import Field, model_validator

from mdm.schemas.common.base import BaseEntity, BaseSchema
from mdm.schemas.common.enums import DataType, ValidationRuleType

__all__ = ["ValidationRule", "Attribute", "Entity"]


class ValidationRule(BaseSchema):
    """Advisory validation metadata; enforcement happens outside the core."""

    type: ValidationRuleType
    value: Union[bool, int, float, str]
    message: str = ""


class Attribute(BaseEntity):
    field_name: str = Field(..., min_length=1)
    data_type: DataType
    context: str = ""
    predefined_values: Optional[List[str]] = None
    default_value: Optional[str] = None
    validation_rules: List[ValidationRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dropdown_values(self) -> "Attribute":
        if self.data_type is DataType.DROPDOWN and not self.predefined_values:
            raise ValueError("dropdown attributes require predefined_values")
        if (
            self.predefined_values
            and self.default_value is not None
            and self.default_value not in self.predefined_values
        ):
            raise ValueError("default_value must be one of predefined_values")
        return self


class Entity(BaseEntity):
    """Business record such as a product, with values for its attributes."""

    name: str = Field(..., min_length=1)
    entity_type: str = Field(..., min_length=1)
    attribute_ids: List[str] = Field(default_factory=list)
    category_ids: List[str] = Field(default_factory=list)
    geography_ids: List[str] = Field(default_factory=list)
    attribute_values: Dict[str, Any] = Field(default_factory=dict)
