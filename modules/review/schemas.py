"""
Review Module - Review Input
==============================
"""

from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from common.exceptions import ValidationFailedError


class ReviewData(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=10, max_length=1000)
    pros: Optional[str] = Field(None, max_length=500)
    cons: Optional[str] = Field(None, max_length=500)

    @field_validator("comment", mode="before")
    @classmethod
    def _strip_comment(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("pros", "cons", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


def parse_review_data(data) -> ReviewData:
    if isinstance(data, ReviewData):
        return data
    try:
        return ReviewData.model_validate(data or {})
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "__all__"
            errors[field] = err["msg"]
        raise ValidationFailedError(errors)
