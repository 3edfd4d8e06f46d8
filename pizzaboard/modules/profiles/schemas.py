from pydantic import BaseModel, field_validator
from typing import Optional

from pizzaboard.modules.profiles.models import (
    PizzaVisibility, USERNAME_PATTERN, USERNAME_MIN_LENGTH, USERNAME_MAX_LENGTH
)


class ProfileSummary(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class ProfileResponse(ProfileSummary):
    pizza_visibility: PizzaVisibility = PizzaVisibility.EVERYONE
    email_visibility: PizzaVisibility = PizzaVisibility.FRIENDS
    needs_onboarding: bool = False
    favorite_group_id: Optional[int] = None

    @field_validator("pizza_visibility", "email_visibility", mode="before")
    @classmethod
    def default_visibility(cls, value, info):
        if value is None:
            return PizzaVisibility.EVERYONE if info.field_name == "pizza_visibility" else PizzaVisibility.FRIENDS
        return value

    @field_validator("needs_onboarding", mode="before")
    @classmethod
    def default_onboarding(cls, value):
        return bool(value)


class ProfileUpdate(BaseModel):
    username: str
    display_name: Optional[str] = None
    pizza_visibility: Optional[PizzaVisibility] = None
    email_visibility: Optional[PizzaVisibility] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        value = value.strip()
        if len(value) < USERNAME_MIN_LENGTH or len(value) > USERNAME_MAX_LENGTH:
            raise ValueError(
                f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
            )
        if not USERNAME_PATTERN.match(value):
            raise ValueError("Username may only contain letters, numbers, '.' and '_'")
        return value


class FavoriteGroupUpdate(BaseModel):
    group_id: Optional[int] = None


class FavoriteGroupResponse(BaseModel):
    group_id: Optional[int] = None
    stored: bool  # False when the value is a fallback, not the saved preference
