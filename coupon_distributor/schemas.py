"""Request bodies for the admin coupon endpoints."""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .errors import ValidationError
from .models import Coupon, utcnow

FIELD_LABELS = {'code': 'Code', 'description': 'Description', 'expiryDate': 'Expiry date'}


def _not_blank(value, message):
    if value is None:
        return None
    if not value or value.lower() == 'null':
        raise PydanticCustomError('blank', message)
    return value


def _future(value, info):
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    now = (info.context or {}).get('now') or utcnow()
    if value <= now:
        raise PydanticCustomError('past_expiry', 'Expiry date must be in the future')
    return value


class CouponCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    code: str
    description: str
    expiry_date: datetime = Field(alias='expiryDate')

    @field_validator('code', mode='before')
    @classmethod
    def numbers_as_code(cls, value):
        # numeric codes such as 12345 are stored as their text
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator('code')
    @classmethod
    def valid_code(cls, value):
        return _not_blank(value, 'Invalid coupon code').upper()

    @field_validator('description')
    @classmethod
    def valid_description(cls, value):
        return _not_blank(value, 'Invalid description')

    @field_validator('expiry_date')
    @classmethod
    def expiry_in_future(cls, value, info: ValidationInfo):
        return _future(value, info)

    def to_coupon(self):
        return Coupon(code=self.code, description=self.description, expiry_date=self.expiry_date)


class CouponUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    is_active: Optional[StrictBool] = Field(None, alias='isActive')
    description: Optional[str] = None
    expiry_date: Optional[datetime] = Field(None, alias='expiryDate')

    @field_validator('description')
    @classmethod
    def valid_description(cls, value):
        return _not_blank(value, 'Invalid description')

    @field_validator('expiry_date')
    @classmethod
    def expiry_in_future(cls, value, info: ValidationInfo):
        return _future(value, info)

    def to_patch(self):
        return self.model_dump(exclude_none=True)


def _details(exc):
    details = {}
    for error in exc.errors():
        field = str(error['loc'][0]) if error['loc'] else 'body'
        if error['type'] == 'missing':
            details[field] = '{} is required'.format(FIELD_LABELS.get(field, field))
        elif error['type'] == 'model_type':
            details[field] = 'Request body must be a JSON object'
        else:
            details.setdefault(field, error['msg'])
    return details


def parse_body(schema, data, now):
    """Validate a JSON body against `schema`, raising our ValidationError on failure."""
    if data is None:
        data = {}
    try:
        return schema.model_validate(data, context={'now': now})
    except PydanticValidationError as exc:
        missing = any(error['type'] == 'missing' for error in exc.errors())
        raise ValidationError('Missing required fields' if missing else None, details=_details(exc))
