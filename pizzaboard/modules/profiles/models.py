# Supabase table: profiles
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, foreign key to auth.users.id) - created by the on_auth_user_created trigger
- username: text (unique, nullable until onboarding)
- display_name: text (nullable)
- avatar_url: text (nullable)
- pizza_visibility: text (nullable, null means 'everyone') - values: everyone, friends, groups, none
- email_visibility: text (nullable, default: 'friends') - same values
- needs_onboarding: boolean (default: true)
- favorite_group_id: bigint (nullable, foreign key to groups.id on delete set null)
"""

import re
from enum import Enum
from typing import Optional

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.]+$")
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20


class PizzaVisibility(str, Enum):
    EVERYONE = "everyone"
    FRIENDS = "friends"
    GROUPS = "groups"
    NONE = "none"


def display_label(profile: Optional[dict], fallback: str) -> str:
    if not profile:
        return fallback
    return profile.get("display_name") or profile.get("username") or fallback
