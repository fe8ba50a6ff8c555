from pydantic import BaseModel, field_validator

from receiptdesk.schemas.payment_schemas import PHONE_PATTERN, clean_phone


class CustomerLogin(BaseModel):
    mobile: str

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, value: str) -> str:
        cleaned = clean_phone(value)
        if not PHONE_PATTERN.match(cleaned):
            raise ValueError("Enter a valid mobile number")
        return cleaned
