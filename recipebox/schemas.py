"""
Pydantic schemas for the recipe API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class RecipeLine(BaseModel):
    text: str = Field(..., max_length=2000)


class StoredLine(BaseModel):
    text: str


class RecipeCreateRequest(BaseModel):
    title: str = Field(..., max_length=300)
    description: Optional[str] = Field(default=None, max_length=5000)
    tags: list[str] = Field(default_factory=list)
    ingredients: list[RecipeLine] = Field(default_factory=list)
    steps: list[RecipeLine] = Field(default_factory=list)
    prep_minutes: Optional[int] = Field(default=None, ge=0)
    cook_minutes: Optional[int] = Field(default=None, ge=0)
    servings: Optional[int] = Field(default=None, ge=1)
    source_url: Optional[str] = Field(default=None, max_length=2000)


class RecipeUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = Field(default=None, max_length=5000)
    tags: Optional[list[str]] = None
    ingredients: Optional[list[RecipeLine]] = None
    steps: Optional[list[RecipeLine]] = None
    prep_minutes: Optional[int] = Field(default=None, ge=0)
    cook_minutes: Optional[int] = Field(default=None, ge=0)
    servings: Optional[int] = Field(default=None, ge=1)
    source_url: Optional[str] = Field(default=None, max_length=2000)
    cover_photo_id: Optional[str] = None


class RecipeResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    tags: list[str]
    ingredients: list[StoredLine]
    steps: list[StoredLine]
    prep_minutes: Optional[int] = None
    cook_minutes: Optional[int] = None
    servings: Optional[int] = None
    source_url: Optional[str] = None
    cover_photo_id: Optional[str] = None
    cover_photo_url: Optional[str] = None
    is_favorite: bool
    last_cooked_at: Optional[float] = None
    created_at: float
    updated_at: float
    access: Literal["owner", "edit", "view"]


class ListRecipesResponse(BaseModel):
    recipes: list[RecipeResponse]


class FavoriteRequest(BaseModel):
    is_favorite: bool = True


class ChangeResponse(BaseModel):
    id: str
    recipe_id: str
    user_id: Optional[str] = None
    action: Literal["insert", "update"]
    changes: dict
    changed_at: float


class ListChangesResponse(BaseModel):
    changes: list[ChangeResponse]


class RollbackRequest(BaseModel):
    change_id: str


class ScaledIngredientsResponse(BaseModel):
    recipe_id: str
    scale: float
    servings: Optional[float] = None
    unit_mode: Literal["auto", "imperial", "metric"]
    ingredients: list[str]


class ImportRecipeRequest(BaseModel):
    url: str = Field(..., max_length=2000)


class ImportRecipeResponse(BaseModel):
    recipe_id: str


class SharedRecipe(BaseModel):
    recipe: RecipeResponse
    permission: Literal["view", "edit"]
    shared_via: Literal["direct", "group"]
    share_id: str
    group_id: Optional[str] = None
    group_name: Optional[str] = None


class ListSharedRecipesResponse(BaseModel):
    recipes: list[SharedRecipe]


class InviteResponse(BaseModel):
    member_id: str
    group_id: str
    group_name: str
    role: Literal["owner", "admin", "member"]
    invited_by: Optional[str] = None
    created_at: float


class InboxResponse(BaseModel):
    invites: list[InviteResponse]
    shared_recipes: list[SharedRecipe]


class StatsResponse(BaseModel):
    recipes: int
    photos: int
    tags: int


class PhotoResponse(BaseModel):
    id: str
    recipe_id: str
    user_id: str
    storage_path: str
    url: Optional[str] = None
    created_at: float


class ListPhotosResponse(BaseModel):
    photos: list[PhotoResponse]


class ShareCreateRequest(BaseModel):
    email: str = Field(..., max_length=320)
    permission: str = "view"


class SharePermissionRequest(BaseModel):
    permission: str


class ShareResponse(BaseModel):
    id: str
    recipe_id: str
    owner_id: str
    shared_with: str
    email: Optional[str] = None
    permission: Literal["view", "edit"]
    created_at: float


class ListSharesResponse(BaseModel):
    shares: list[ShareResponse]


class GroupCreateRequest(BaseModel):
    name: str = Field(..., max_length=120)


class GroupUpdateRequest(BaseModel):
    name: str = Field(..., max_length=120)


class GroupResponse(BaseModel):
    id: str
    name: str
    owner_id: str
    created_at: float
    member_id: Optional[str] = None
    role: Optional[Literal["owner", "admin", "member"]] = None
    status: Optional[Literal["pending", "accepted", "declined"]] = None


class ListGroupsResponse(BaseModel):
    groups: list[GroupResponse]


class InviteRequest(BaseModel):
    email: str = Field(..., max_length=320)
    role: str = "member"


class RespondInviteRequest(BaseModel):
    accept: bool


class MemberResponse(BaseModel):
    id: str
    group_id: str
    user_id: str
    email: str
    role: Literal["owner", "admin", "member"]
    status: Literal["pending", "accepted", "declined"]
    invited_by: Optional[str] = None
    created_at: float


class ListMembersResponse(BaseModel):
    members: list[MemberResponse]


class MemberUpdateRequest(BaseModel):
    role: str


class GroupShareCreateRequest(BaseModel):
    group_id: str
    permission: str = "view"


class GroupShareResponse(BaseModel):
    id: str
    recipe_id: str
    group_id: str
    group_name: str
    owner_id: str
    permission: Literal["view", "edit"]
    created_at: float


class ListGroupSharesResponse(BaseModel):
    shares: list[GroupShareResponse]


class DescriptionRequest(BaseModel):
    title: str = ""
    tags: list[str] = Field(default_factory=list)
    ingredients: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    prep_minutes: Optional[float] = None
    cook_minutes: Optional[float] = None
    servings: Optional[float] = None


class DescriptionResponse(BaseModel):
    description: str


class TagsRequest(BaseModel):
    title: str = ""
    description: Optional[str] = None
    ingredients: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    existing_tags: list[str] = Field(default_factory=list)


class TagsResponse(BaseModel):
    tags: list[str]


class NutritionFacts(BaseModel):
    calories: float
    carbs: Optional[float] = None
    protein: Optional[float] = None
    fat: Optional[float] = None


class NutritionResponse(BaseModel):
    per_serving: NutritionFacts
    cached: bool


class ImprovementSuggestion(BaseModel):
    title: str
    rationale: str
    changes: list[str]


class AlternativeSuggestion(BaseModel):
    title: str
    summary: str
    changes: list[str]


class SuggestionsResponse(BaseModel):
    improvements: list[ImprovementSuggestion]
    alternatives: list[AlternativeSuggestion]


class StatusResponse(BaseModel):
    status: Literal["ok"]
