"""
Recipe and group access checks shared by the route handlers.
"""

from __future__ import annotations

from typing import Iterable, Optional

from fastapi import HTTPException

from recipebox.db import DbClient, MemberRecord, RecipeRecord
from shared.types import GroupRole, MemberStatus, RecipeAccess, SharePermission

RECIPE_NOT_FOUND = "Recipe not found."
GROUP_ADMIN_ROLES = (GroupRole.OWNER, GroupRole.ADMIN)


def strongest_permission(
    permissions: Iterable[SharePermission],
) -> Optional[SharePermission]:
    best = None
    for permission in permissions:
        if permission == SharePermission.EDIT:
            return SharePermission.EDIT
        best = SharePermission.VIEW
    return best


def resolve_access(
    db: DbClient, recipe: RecipeRecord, user_id: str
) -> Optional[RecipeAccess]:
    """
    Work out what the user may do with the recipe.

    Owners always win. Otherwise the strongest of the user's direct share and
    the shares to groups where the user is an accepted member applies.
    Returns None when the user has no access at all.
    """
    if recipe.user_id == user_id:
        return RecipeAccess.OWNER

    permissions = []
    direct = db.get_user_share(recipe.id, user_id)
    if direct:
        permissions.append(direct.permission)
    if direct is None or direct.permission != SharePermission.EDIT:
        group_ids = db.accepted_group_ids(user_id)
        for share in db.list_group_shares_for_groups(group_ids, recipe_id=recipe.id):
            permissions.append(share.permission)

    permission = strongest_permission(permissions)
    if permission is None:
        return None
    return RecipeAccess.EDIT if permission == SharePermission.EDIT else RecipeAccess.VIEW


def require_recipe_access(
    db: DbClient, recipe_id: str, user_id: str, *, edit: bool = False
) -> tuple[RecipeRecord, RecipeAccess]:
    recipe = db.get_recipe(recipe_id)
    access = resolve_access(db, recipe, user_id) if recipe else None
    # Unknown recipes and recipes the caller cannot see look the same.
    if recipe is None or access is None:
        raise HTTPException(status_code=404, detail=RECIPE_NOT_FOUND)
    if edit and not access.can_edit:
        raise HTTPException(
            status_code=403, detail="You do not have permission to edit this recipe."
        )
    return recipe, access


def require_recipe_owner(
    db: DbClient, recipe_id: str, user_id: str, detail: str
) -> RecipeRecord:
    recipe = db.get_recipe(recipe_id)
    if recipe is None:
        raise HTTPException(status_code=404, detail=RECIPE_NOT_FOUND)
    if recipe.user_id != user_id:
        raise HTTPException(status_code=403, detail=detail)
    return recipe


def is_group_admin(member: Optional[MemberRecord]) -> bool:
    return bool(
        member
        and member.status == MemberStatus.ACCEPTED
        and member.role in GROUP_ADMIN_ROLES
    )


def require_group_admin(
    db: DbClient, group_id: str, user_id: str, detail: str
) -> MemberRecord:
    member = db.get_membership(group_id, user_id)
    if not is_group_admin(member):
        raise HTTPException(status_code=403, detail=detail)
    return member


def require_group_member(db: DbClient, group_id: str, user_id: str) -> MemberRecord:
    member = db.get_membership(group_id, user_id)
    if not member or member.status != MemberStatus.ACCEPTED:
        raise HTTPException(status_code=403, detail="Not a group member.")
    return member
