"""
Groups, memberships and recipe shares to groups.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from recipebox.access import (
    require_group_admin,
    require_group_member,
    require_recipe_owner,
)
from recipebox.auth import AuthClient, AuthServiceError, AuthUser
from recipebox.db import (
    DbClient,
    GroupRecord,
    GroupShareRecord,
    MemberRecord,
)
from recipebox.dependencies import get_auth_client, get_current_user, get_db_client
from recipebox.routes.shares import find_user_by_email, lookup_email
from recipebox.schemas import (
    GroupCreateRequest,
    GroupResponse,
    GroupShareCreateRequest,
    GroupShareResponse,
    GroupUpdateRequest,
    InviteRequest,
    ListGroupSharesResponse,
    ListGroupsResponse,
    ListMembersResponse,
    MemberResponse,
    MemberUpdateRequest,
    RespondInviteRequest,
    SharePermissionRequest,
    StatusResponse,
)
from shared.types import GroupRole, MemberStatus, SharePermission

logger = logging.getLogger(__name__)

router = APIRouter()

UNNAMED_GROUP = "Unnamed group"
UNKNOWN_USER = "Unknown user"


def _to_group_response(
    group: GroupRecord, member: Optional[MemberRecord] = None
) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name or UNNAMED_GROUP,
        owner_id=group.owner_id,
        created_at=group.created_at,
        member_id=member.id if member else None,
        role=member.role.value if member else None,
        status=member.status.value if member else None,
    )


def _to_member_response(member: MemberRecord, email: Optional[str]) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        group_id=member.group_id,
        user_id=member.user_id,
        email=email or UNKNOWN_USER,
        role=member.role.value,
        status=member.status.value,
        invited_by=member.invited_by,
        created_at=member.created_at,
    )


def _member_email(auth: AuthClient, user_id: str) -> Optional[str]:
    try:
        user = auth.get_user_by_id(user_id)
    except AuthServiceError:
        logger.warning("Looking up group member %s failed", user_id, exc_info=True)
        return None
    return user.email if user else None


def _to_group_share_response(
    db: DbClient, share: GroupShareRecord
) -> GroupShareResponse:
    group = db.get_group(share.group_id)
    return GroupShareResponse(
        id=share.id,
        recipe_id=share.recipe_id,
        group_id=share.group_id,
        group_name=(group.name if group else "") or UNNAMED_GROUP,
        owner_id=share.owner_id,
        permission=share.permission.value,
        created_at=share.created_at,
    )


def _require_group(db: DbClient, group_id: str) -> GroupRecord:
    group = db.get_group(group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found.")
    return group


def _require_group_member_record(
    db: DbClient, group_id: str, member_id: str
) -> MemberRecord:
    member = db.get_member(member_id)
    if not member or member.group_id != group_id:
        raise HTTPException(status_code=404, detail="Member not found.")
    return member


def _require_owned_group_share(
    db: DbClient, share_id: str, user_id: str, detail: str
) -> GroupShareRecord:
    share = db.get_group_share(share_id)
    if not share:
        raise HTTPException(status_code=404, detail="Share not found.")
    if share.owner_id != user_id:
        raise HTTPException(status_code=403, detail=detail)
    return share


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Missing group name.")
    return name


@router.get("/groups", response_model=ListGroupsResponse)
def list_groups(
    status: Optional[MemberStatus] = Query(None),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    memberships = db.list_memberships(user.id)
    if status:
        memberships = [(m, g) for m, g in memberships if m.status == status]
    return ListGroupsResponse(
        groups=[_to_group_response(group, member) for member, group in memberships]
    )


@router.post("/groups", response_model=GroupResponse, status_code=201)
def create_group(
    payload: GroupCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    group = db.create_group(_clean_name(payload.name), user.id)
    logger.info("User %s created group %s", user.id, group.id)
    return _to_group_response(group, db.get_membership(group.id, user.id))


@router.patch("/groups/{group_id}", response_model=GroupResponse)
def rename_group(
    group_id: str,
    payload: GroupUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    _require_group(db, group_id)
    member = require_group_admin(
        db, group_id, user.id, "Only group admins can rename the group."
    )
    group = db.rename_group(group_id, _clean_name(payload.name))
    return _to_group_response(group, member)


@router.delete("/groups/{group_id}", response_model=StatusResponse)
def delete_group(
    group_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    group = _require_group(db, group_id)
    if group.owner_id != user.id:
        raise HTTPException(status_code=403, detail="Only owners can delete groups.")
    db.delete_group(group.id)
    logger.info("User %s deleted group %s", user.id, group.id)
    return StatusResponse(status="ok")


@router.post(
    "/groups/{group_id}/invites", response_model=MemberResponse, status_code=201
)
def invite_member(
    group_id: str,
    payload: InviteRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    _require_group(db, group_id)
    require_group_admin(db, group_id, user.id, "Only group admins can invite members.")
    target = find_user_by_email(auth, payload.email)
    if target.id == user.id:
        raise HTTPException(status_code=400, detail="You are already in the group.")
    existing = db.get_membership(group_id, target.id)
    if existing and existing.status == MemberStatus.ACCEPTED:
        raise HTTPException(status_code=400, detail="User is already in the group.")
    role = GroupRole.ADMIN if payload.role == GroupRole.ADMIN.value else GroupRole.MEMBER
    member = db.upsert_member(
        group_id,
        target.id,
        role=role,
        status=MemberStatus.PENDING,
        invited_by=user.id,
    )
    logger.info("User %s invited %s to group %s as %s", user.id, target.id, group_id, role)
    return _to_member_response(member, target.email)


@router.post("/groups/{group_id}/respond", response_model=GroupResponse)
def respond_to_invite(
    group_id: str,
    payload: RespondInviteRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    member = db.get_membership(group_id, user.id)
    group = db.get_group(group_id)
    if not member or not group or member.status != MemberStatus.PENDING:
        raise HTTPException(status_code=404, detail="Invite not found.")
    status = MemberStatus.ACCEPTED if payload.accept else MemberStatus.DECLINED
    member = db.update_member(member.id, status=status)
    logger.info("User %s %s the invite to group %s", user.id, status, group_id)
    return _to_group_response(group, member)


@router.get("/groups/{group_id}/members", response_model=ListMembersResponse)
def list_members(
    group_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    require_group_member(db, group_id, user.id)
    return ListMembersResponse(
        members=[
            _to_member_response(member, _member_email(auth, member.user_id))
            for member in db.list_members(group_id)
        ]
    )


@router.patch(
    "/groups/{group_id}/members/{member_id}", response_model=MemberResponse
)
def update_member_role(
    group_id: str,
    member_id: str,
    payload: MemberUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    auth: AuthClient = Depends(get_auth_client),
):
    require_group_admin(db, group_id, user.id, "Only group admins can change roles.")
    member = _require_group_member_record(db, group_id, member_id)
    if payload.role not in (GroupRole.ADMIN.value, GroupRole.MEMBER.value):
        raise HTTPException(status_code=400, detail="Role must be admin or member.")
    if member.role == GroupRole.OWNER:
        raise HTTPException(status_code=400, detail="Owners cannot be changed.")
    member = db.update_member(member.id, role=GroupRole(payload.role))
    return _to_member_response(member, lookup_email(auth, member.user_id))


@router.delete(
    "/groups/{group_id}/members/{member_id}", response_model=StatusResponse
)
def remove_member(
    group_id: str,
    member_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    """Admins remove members; any non-owner member may remove themselves."""
    member = db.get_member(member_id)
    leaving = bool(member and member.group_id == group_id and member.user_id == user.id)
    if not leaving:
        require_group_admin(
            db, group_id, user.id, "Only group admins can remove members."
        )
    member = _require_group_member_record(db, group_id, member_id)
    if member.role == GroupRole.OWNER:
        raise HTTPException(status_code=400, detail="Owners cannot be removed.")
    db.delete_member(member.id)
    logger.info("User %s removed member %s from group %s", user.id, member.id, group_id)
    return StatusResponse(status="ok")


@router.post(
    "/recipes/{recipe_id}/group-shares",
    response_model=GroupShareResponse,
    status_code=201,
)
def share_recipe_with_group(
    recipe_id: str,
    payload: GroupShareCreateRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    recipe = require_recipe_owner(
        db, recipe_id, user.id, "Only the owner can share this recipe."
    )
    require_group_admin(
        db, payload.group_id, user.id, "Only group admins can share to the group."
    )
    share = db.upsert_group_share(
        recipe.id,
        payload.group_id,
        user.id,
        SharePermission.coerce(payload.permission),
    )
    logger.info(
        "User %s shared recipe %s with group %s (%s)",
        user.id,
        recipe.id,
        payload.group_id,
        share.permission,
    )
    return _to_group_share_response(db, share)


@router.get(
    "/recipes/{recipe_id}/group-shares", response_model=ListGroupSharesResponse
)
def list_group_shares(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    recipe = require_recipe_owner(
        db, recipe_id, user.id, "Only the owner can view shares."
    )
    return ListGroupSharesResponse(
        shares=[
            _to_group_share_response(db, share)
            for share in db.list_group_shares(recipe.id)
        ]
    )


@router.patch("/group-shares/{share_id}", response_model=GroupShareResponse)
def update_group_share(
    share_id: str,
    payload: SharePermissionRequest,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    share = _require_owned_group_share(
        db, share_id, user.id, "Only the owner can update shares."
    )
    share = db.update_group_share_permission(
        share.id, SharePermission.coerce(payload.permission)
    )
    return _to_group_share_response(db, share)


@router.delete("/group-shares/{share_id}", response_model=StatusResponse)
def delete_group_share(
    share_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    share = _require_owned_group_share(
        db, share_id, user.id, "Only the owner can revoke shares."
    )
    db.delete_group_share(share.id)
    logger.info("User %s revoked group share %s", user.id, share.id)
    return StatusResponse(status="ok")
