from pydantic import BaseModel

from pizzaboard.modules.profiles.models import PizzaVisibility


class VisibilityResponse(BaseModel):
    owner_id: str
    policy: PizzaVisibility
    is_self: bool
    is_accepted_friend: bool
    shares_any_active_group: bool
    visible: bool
