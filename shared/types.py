# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from enum import StrEnum


class SharePermission(StrEnum):
    VIEW = "view"
    EDIT = "edit"

    @classmethod
    def coerce(cls, value: object) -> "SharePermission":
        """Anything other than an explicit "edit" grants view access."""
        return cls.EDIT if value == cls.EDIT.value else cls.VIEW


class RecipeAccess(StrEnum):
    """Effective access a user has to a recipe."""

    OWNER = "owner"
    EDIT = "edit"
    VIEW = "view"

    @property
    def can_edit(self) -> bool:
        return self in (RecipeAccess.OWNER, RecipeAccess.EDIT)


class GroupRole(StrEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MemberStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ChangeAction(StrEnum):
    INSERT = "insert"
    UPDATE = "update"


class UnitMode(StrEnum):
    AUTO = "auto"
    IMPERIAL = "imperial"
    METRIC = "metric"


class IngredientState(StrEnum):
    LIQUID = "liquid"
    SOLID = "solid"


class SharedVia(StrEnum):
    DIRECT = "direct"
    GROUP = "group"
