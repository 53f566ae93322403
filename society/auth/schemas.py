from pydantic import EmailStr, Field, field_validator

from society.core.schemas import ApiModel

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class RegisterRequest(ApiModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=8, max_length=100)
    display_name: str = Field(min_length=1, max_length=50)

    @field_validator("email", "username")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return value.lower()


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return value.lower()


class ForgotPasswordRequest(ApiModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return value.lower()


class ResetPasswordRequest(ApiModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=100)


class TokenQuery(ApiModel):
    token: str = Field(min_length=1)
