"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.types import ChangeAction, GroupRole, MemberStatus, SharePermission

# Recipe columns captured in the change log and restorable by rollback.
SNAPSHOT_FIELDS = (
    "title",
    "description",
    "tags",
    "ingredients",
    "steps",
    "prep_minutes",
    "cook_minutes",
    "servings",
    "source_url",
    "cover_photo_id",
    "is_favorite",
    "last_cooked_at",
)

LIST_FIELDS = ("tags", "ingredients", "steps")


class DbClient(Protocol):
    """Interface for database access."""

    # Recipes
    def create_recipe(self, user_id: str, fields: dict) -> "RecipeRecord":
        ...

    def get_recipe(self, recipe_id: str) -> Optional["RecipeRecord"]:
        ...

    def list_recipes_for_user(self, user_id: str) -> list["RecipeRecord"]:
        ...

    def get_recipes(self, recipe_ids: Iterable[str]) -> list["RecipeRecord"]:
        ...

    def update_recipe(
        self, recipe_id: str, changes: dict, user_id: Optional[str] = None
    ) -> Optional["RecipeRecord"]:
        ...

    def delete_recipe(self, recipe_id: str) -> bool:
        ...

    def save_nutrition(self, recipe_id: str, per_serving: dict) -> None:
        ...

    def list_changes(self, recipe_id: str) -> list["ChangeRecord"]:
        ...

    def get_change(self, change_id: str) -> Optional["ChangeRecord"]:
        ...

    def count_recipes(self) -> int:
        ...

    def list_all_tags(self) -> set[str]:
        ...

    # Photos
    def create_photo(self, user_id: str, recipe_id: str) -> "PhotoRecord":
        ...

    def set_photo_path(
        self, photo_id: str, storage_path: str
    ) -> Optional["PhotoRecord"]:
        ...

    def get_photo(self, photo_id: str) -> Optional["PhotoRecord"]:
        ...

    def list_photos(self, recipe_id: str) -> list["PhotoRecord"]:
        ...

    def delete_photo(self, photo_id: str) -> bool:
        ...

    def count_photos(self) -> int:
        ...

    # Direct shares
    def upsert_share(
        self,
        recipe_id: str,
        owner_id: str,
        shared_with: str,
        permission: SharePermission,
    ) -> "ShareRecord":
        ...

    def get_share(self, share_id: str) -> Optional["ShareRecord"]:
        ...

    def get_user_share(
        self, recipe_id: str, user_id: str
    ) -> Optional["ShareRecord"]:
        ...

    def list_shares(self, recipe_id: str) -> list["ShareRecord"]:
        ...

    def list_shares_for_user(self, user_id: str) -> list["ShareRecord"]:
        ...

    def update_share_permission(
        self, share_id: str, permission: SharePermission
    ) -> Optional["ShareRecord"]:
        ...

    def delete_share(self, share_id: str) -> bool:
        ...

    # Groups and members
    def create_group(self, name: str, owner_id: str) -> "GroupRecord":
        ...

    def get_group(self, group_id: str) -> Optional["GroupRecord"]:
        ...

    def rename_group(self, group_id: str, name: str) -> Optional["GroupRecord"]:
        ...

    def delete_group(self, group_id: str) -> bool:
        ...

    def upsert_member(
        self,
        group_id: str,
        user_id: str,
        *,
        role: GroupRole,
        status: MemberStatus,
        invited_by: Optional[str] = None,
    ) -> "MemberRecord":
        ...

    def get_member(self, member_id: str) -> Optional["MemberRecord"]:
        ...

    def get_membership(
        self, group_id: str, user_id: str
    ) -> Optional["MemberRecord"]:
        ...

    def list_members(self, group_id: str) -> list["MemberRecord"]:
        ...

    def list_memberships(
        self, user_id: str
    ) -> list[tuple["MemberRecord", "GroupRecord"]]:
        ...

    def accepted_group_ids(self, user_id: str) -> list[str]:
        ...

    def update_member(
        self,
        member_id: str,
        *,
        role: Optional[GroupRole] = None,
        status: Optional[MemberStatus] = None,
    ) -> Optional["MemberRecord"]:
        ...

    def delete_member(self, member_id: str) -> bool:
        ...

    # Group shares
    def upsert_group_share(
        self,
        recipe_id: str,
        group_id: str,
        owner_id: str,
        permission: SharePermission,
    ) -> "GroupShareRecord":
        ...

    def get_group_share(self, share_id: str) -> Optional["GroupShareRecord"]:
        ...

    def list_group_shares(self, recipe_id: str) -> list["GroupShareRecord"]:
        ...

    def list_group_shares_for_groups(
        self, group_ids: Iterable[str], recipe_id: Optional[str] = None
    ) -> list["GroupShareRecord"]:
        ...

    def update_group_share_permission(
        self, share_id: str, permission: SharePermission
    ) -> Optional["GroupShareRecord"]:
        ...

    def delete_group_share(self, share_id: str) -> bool:
        ...


@dataclass
class RecipeRecord:
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    ingredients: list[dict] = field(default_factory=list)
    steps: list[dict] = field(default_factory=list)
    prep_minutes: Optional[int] = None
    cook_minutes: Optional[int] = None
    servings: Optional[int] = None
    source_url: Optional[str] = None
    cover_photo_id: Optional[str] = None
    is_favorite: bool = False
    last_cooked_at: Optional[float] = None
    nutrition_cache: Optional[dict] = None
    nutrition_updated_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def snapshot(self) -> dict:
        return {name: getattr(self, name) for name in SNAPSHOT_FIELDS}

    def ingredient_lines(self) -> list[str]:
        return _line_texts(self.ingredients)

    def step_lines(self) -> list[str]:
        return _line_texts(self.steps)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            **self.snapshot(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class PhotoRecord:
    id: str
    user_id: str
    recipe_id: str
    storage_path: str
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class ShareRecord:
    id: str
    recipe_id: str
    owner_id: str
    shared_with: str
    permission: SharePermission
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class GroupRecord:
    id: str
    name: str
    owner_id: str
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class MemberRecord:
    id: str
    group_id: str
    user_id: str
    role: GroupRole
    status: MemberStatus
    invited_by: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class GroupShareRecord:
    id: str
    recipe_id: str
    group_id: str
    owner_id: str
    permission: SharePermission
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class ChangeRecord:
    id: str
    recipe_id: str
    user_id: Optional[str]
    action: ChangeAction
    changes: dict
    changed_at: float = field(default_factory=lambda: time.time())


def _new_id() -> str:
    return uuid.uuid4().hex


def _line_texts(lines: Optional[list]) -> list[str]:
    texts = []
    for item in lines or []:
        text = item.get("text") if isinstance(item, dict) else None
        if text:
            texts.append(text)
    return texts


def _recipe_columns(fields: dict) -> dict[str, Any]:
    columns = {name: value for name, value in fields.items() if name in SNAPSHOT_FIELDS}
    for name in LIST_FIELDS:
        if name in columns and columns[name] is None:
            columns[name] = []
    if "is_favorite" in columns and columns["is_favorite"] is None:
        columns["is_favorite"] = False
    return columns


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, engine_options: Optional[dict] = None):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        if engine_options is None:
            engine_options = {"pool_pre_ping": True, "pool_recycle": 1800}
        self.engine = create_engine(database_url, future=True, **engine_options)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Row conversion

    def _to_recipe_record(self, row: "RecipeRow") -> RecipeRecord:
        return RecipeRecord(
            id=row.id,
            user_id=row.user_id,
            title=row.title,
            description=row.description,
            tags=list(row.tags or []),
            ingredients=list(row.ingredients or []),
            steps=list(row.steps or []),
            prep_minutes=row.prep_minutes,
            cook_minutes=row.cook_minutes,
            servings=row.servings,
            source_url=row.source_url,
            cover_photo_id=row.cover_photo_id,
            is_favorite=bool(row.is_favorite),
            last_cooked_at=row.last_cooked_at,
            nutrition_cache=row.nutrition_cache,
            nutrition_updated_at=row.nutrition_updated_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_photo_record(self, row: "PhotoRow") -> PhotoRecord:
        return PhotoRecord(
            id=row.id,
            user_id=row.user_id,
            recipe_id=row.recipe_id,
            storage_path=row.storage_path,
            created_at=row.created_at,
        )

    def _to_share_record(self, row: "ShareRow") -> ShareRecord:
        return ShareRecord(
            id=row.id,
            recipe_id=row.recipe_id,
            owner_id=row.owner_id,
            shared_with=row.shared_with,
            permission=SharePermission(row.permission),
            created_at=row.created_at,
        )

    def _to_group_record(self, row: "GroupRow") -> GroupRecord:
        return GroupRecord(
            id=row.id, name=row.name, owner_id=row.owner_id, created_at=row.created_at
        )

    def _to_member_record(self, row: "MemberRow") -> MemberRecord:
        return MemberRecord(
            id=row.id,
            group_id=row.group_id,
            user_id=row.user_id,
            role=GroupRole(row.role),
            status=MemberStatus(row.status),
            invited_by=row.invited_by,
            created_at=row.created_at,
        )

    def _to_group_share_record(self, row: "GroupShareRow") -> GroupShareRecord:
        return GroupShareRecord(
            id=row.id,
            recipe_id=row.recipe_id,
            group_id=row.group_id,
            owner_id=row.owner_id,
            permission=SharePermission(row.permission),
            created_at=row.created_at,
        )

    def _to_change_record(self, row: "ChangeRow") -> ChangeRecord:
        return ChangeRecord(
            id=row.id,
            recipe_id=row.recipe_id,
            user_id=row.user_id,
            action=ChangeAction(row.action),
            changes=row.changes or {},
            changed_at=row.changed_at,
        )

    # Recipes

    def create_recipe(self, user_id: str, fields: dict) -> RecipeRecord:
        now = time.time()
        columns = {"tags": [], "ingredients": [], "steps": [], "is_favorite": False}
        columns.update(_recipe_columns(fields))
        with self.Session() as session:
            row = RecipeRow(
                id=_new_id(),
                user_id=user_id,
                created_at=now,
                updated_at=now,
                **columns,
            )
            session.add(row)
            record = self._to_recipe_record(row)
            session.add(
                ChangeRow(
                    id=_new_id(),
                    recipe_id=row.id,
                    user_id=user_id,
                    action=ChangeAction.INSERT.value,
                    changes={"after": record.snapshot()},
                    changed_at=now,
                )
            )
            session.commit()
            return record

    def get_recipe(self, recipe_id: str) -> Optional[RecipeRecord]:
        with self.Session() as session:
            row = session.get(RecipeRow, recipe_id)
            return self._to_recipe_record(row) if row else None

    def list_recipes_for_user(self, user_id: str) -> list[RecipeRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(RecipeRow)
                .where(RecipeRow.user_id == user_id)
                .order_by(RecipeRow.updated_at.desc())
            ).all()
            return [self._to_recipe_record(row) for row in rows]

    def get_recipes(self, recipe_ids: Iterable[str]) -> list[RecipeRecord]:
        ids = list(set(recipe_ids))
        if not ids:
            return []
        with self.Session() as session:
            rows = session.scalars(
                select(RecipeRow)
                .where(RecipeRow.id.in_(ids))
                .order_by(RecipeRow.updated_at.desc())
            ).all()
            return [self._to_recipe_record(row) for row in rows]

    def update_recipe(
        self, recipe_id: str, changes: dict, user_id: Optional[str] = None
    ) -> Optional[RecipeRecord]:
        columns = _recipe_columns(changes)
        with self.Session() as session:
            row = session.get(RecipeRow, recipe_id)
            if not row:
                return None
            if not columns:
                return self._to_recipe_record(row)
            before = self._to_recipe_record(row).snapshot()
            now = time.time()
            for name, value in columns.items():
                setattr(row, name, value)
            row.updated_at = now
            record = self._to_recipe_record(row)
            session.add(
                ChangeRow(
                    id=_new_id(),
                    recipe_id=recipe_id,
                    user_id=user_id,
                    action=ChangeAction.UPDATE.value,
                    changes={"before": before, "after": record.snapshot()},
                    changed_at=now,
                )
            )
            session.commit()
            return record

    def delete_recipe(self, recipe_id: str) -> bool:
        with self.Session() as session:
            row = session.get(RecipeRow, recipe_id)
            if not row:
                return False
            for model in (PhotoRow, ShareRow, GroupShareRow, ChangeRow):
                session.execute(delete(model).where(model.recipe_id == recipe_id))
            session.delete(row)
            session.commit()
            return True

    def save_nutrition(self, recipe_id: str, per_serving: dict) -> None:
        # Not a content edit: updated_at and the change log stay untouched.
        with self.Session() as session:
            row = session.get(RecipeRow, recipe_id)
            if not row:
                return
            row.nutrition_cache = per_serving
            row.nutrition_updated_at = time.time()
            session.commit()

    def list_changes(self, recipe_id: str) -> list[ChangeRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(ChangeRow)
                .where(ChangeRow.recipe_id == recipe_id)
                .order_by(ChangeRow.changed_at.desc())
            ).all()
            return [self._to_change_record(row) for row in rows]

    def get_change(self, change_id: str) -> Optional[ChangeRecord]:
        with self.Session() as session:
            row = session.get(ChangeRow, change_id)
            return self._to_change_record(row) if row else None

    def count_recipes(self) -> int:
        with self.Session() as session:
            return session.scalar(select(func.count()).select_from(RecipeRow)) or 0

    def list_all_tags(self) -> set[str]:
        with self.Session() as session:
            tags: set[str] = set()
            for row_tags in session.scalars(select(RecipeRow.tags)):
                tags.update(row_tags or [])
            return tags

    # Photos

    def create_photo(self, user_id: str, recipe_id: str) -> PhotoRecord:
        with self.Session() as session:
            row = PhotoRow(
                id=_new_id(),
                user_id=user_id,
                recipe_id=recipe_id,
                storage_path="",
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_photo_record(row)

    def set_photo_path(self, photo_id: str, storage_path: str) -> Optional[PhotoRecord]:
        with self.Session() as session:
            row = session.get(PhotoRow, photo_id)
            if not row:
                return None
            row.storage_path = storage_path
            session.commit()
            return self._to_photo_record(row)

    def get_photo(self, photo_id: str) -> Optional[PhotoRecord]:
        with self.Session() as session:
            row = session.get(PhotoRow, photo_id)
            return self._to_photo_record(row) if row else None

    def list_photos(self, recipe_id: str) -> list[PhotoRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(PhotoRow)
                .where(PhotoRow.recipe_id == recipe_id)
                .order_by(PhotoRow.created_at.asc())
            ).all()
            return [self._to_photo_record(row) for row in rows]

    def delete_photo(self, photo_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(PhotoRow).where(PhotoRow.id == photo_id))
            session.commit()
            return bool(result.rowcount)

    def count_photos(self) -> int:
        with self.Session() as session:
            return session.scalar(select(func.count()).select_from(PhotoRow)) or 0

    # Direct shares

    def upsert_share(
        self,
        recipe_id: str,
        owner_id: str,
        shared_with: str,
        permission: SharePermission,
    ) -> ShareRecord:
        with self.Session() as session:
            row = session.scalars(
                select(ShareRow).where(
                    ShareRow.recipe_id == recipe_id,
                    ShareRow.shared_with == shared_with,
                )
            ).first()
            if row:
                row.owner_id = owner_id
                row.permission = permission.value
            else:
                row = ShareRow(
                    id=_new_id(),
                    recipe_id=recipe_id,
                    owner_id=owner_id,
                    shared_with=shared_with,
                    permission=permission.value,
                    created_at=time.time(),
                )
                session.add(row)
            session.commit()
            return self._to_share_record(row)

    def get_share(self, share_id: str) -> Optional[ShareRecord]:
        with self.Session() as session:
            row = session.get(ShareRow, share_id)
            return self._to_share_record(row) if row else None

    def get_user_share(self, recipe_id: str, user_id: str) -> Optional[ShareRecord]:
        with self.Session() as session:
            row = session.scalars(
                select(ShareRow).where(
                    ShareRow.recipe_id == recipe_id, ShareRow.shared_with == user_id
                )
            ).first()
            return self._to_share_record(row) if row else None

    def list_shares(self, recipe_id: str) -> list[ShareRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(ShareRow)
                .where(ShareRow.recipe_id == recipe_id)
                .order_by(ShareRow.created_at.asc())
            ).all()
            return [self._to_share_record(row) for row in rows]

    def list_shares_for_user(self, user_id: str) -> list[ShareRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(ShareRow)
                .where(ShareRow.shared_with == user_id)
                .order_by(ShareRow.created_at.desc())
            ).all()
            return [self._to_share_record(row) for row in rows]

    def update_share_permission(
        self, share_id: str, permission: SharePermission
    ) -> Optional[ShareRecord]:
        with self.Session() as session:
            row = session.get(ShareRow, share_id)
            if not row:
                return None
            row.permission = permission.value
            session.commit()
            return self._to_share_record(row)

    def delete_share(self, share_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(ShareRow).where(ShareRow.id == share_id))
            session.commit()
            return bool(result.rowcount)

    # Groups and members

    def create_group(self, name: str, owner_id: str) -> GroupRecord:
        now = time.time()
        with self.Session() as session:
            group = GroupRow(id=_new_id(), name=name, owner_id=owner_id, created_at=now)
            session.add(group)
            session.add(
                MemberRow(
                    id=_new_id(),
                    group_id=group.id,
                    user_id=owner_id,
                    role=GroupRole.OWNER.value,
                    status=MemberStatus.ACCEPTED.value,
                    invited_by=owner_id,
                    created_at=now,
                )
            )
            session.commit()
            return self._to_group_record(group)

    def get_group(self, group_id: str) -> Optional[GroupRecord]:
        with self.Session() as session:
            row = session.get(GroupRow, group_id)
            return self._to_group_record(row) if row else None

    def rename_group(self, group_id: str, name: str) -> Optional[GroupRecord]:
        with self.Session() as session:
            row = session.get(GroupRow, group_id)
            if not row:
                return None
            row.name = name
            session.commit()
            return self._to_group_record(row)

    def delete_group(self, group_id: str) -> bool:
        with self.Session() as session:
            row = session.get(GroupRow, group_id)
            if not row:
                return False
            session.execute(delete(MemberRow).where(MemberRow.group_id == group_id))
            session.execute(
                delete(GroupShareRow).where(GroupShareRow.group_id == group_id)
            )
            session.delete(row)
            session.commit()
            return True

    def upsert_member(
        self,
        group_id: str,
        user_id: str,
        *,
        role: GroupRole,
        status: MemberStatus,
        invited_by: Optional[str] = None,
    ) -> MemberRecord:
        with self.Session() as session:
            row = session.scalars(
                select(MemberRow).where(
                    MemberRow.group_id == group_id, MemberRow.user_id == user_id
                )
            ).first()
            if row:
                row.role = role.value
                row.status = status.value
                row.invited_by = invited_by
            else:
                row = MemberRow(
                    id=_new_id(),
                    group_id=group_id,
                    user_id=user_id,
                    role=role.value,
                    status=status.value,
                    invited_by=invited_by,
                    created_at=time.time(),
                )
                session.add(row)
            session.commit()
            return self._to_member_record(row)

    def get_member(self, member_id: str) -> Optional[MemberRecord]:
        with self.Session() as session:
            row = session.get(MemberRow, member_id)
            return self._to_member_record(row) if row else None

    def get_membership(self, group_id: str, user_id: str) -> Optional[MemberRecord]:
        with self.Session() as session:
            row = session.scalars(
                select(MemberRow).where(
                    MemberRow.group_id == group_id, MemberRow.user_id == user_id
                )
            ).first()
            return self._to_member_record(row) if row else None

    def list_members(self, group_id: str) -> list[MemberRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(MemberRow)
                .where(MemberRow.group_id == group_id)
                .order_by(MemberRow.created_at.asc())
            ).all()
            return [self._to_member_record(row) for row in rows]

    def list_memberships(self, user_id: str) -> list[tuple[MemberRecord, GroupRecord]]:
        with self.Session() as session:
            rows = session.execute(
                select(MemberRow, GroupRow)
                .join(GroupRow, GroupRow.id == MemberRow.group_id)
                .where(MemberRow.user_id == user_id)
                .order_by(MemberRow.created_at.desc())
            ).all()
            return [
                (self._to_member_record(member), self._to_group_record(group))
                for member, group in rows
            ]

    def accepted_group_ids(self, user_id: str) -> list[str]:
        with self.Session() as session:
            return list(
                session.scalars(
                    select(MemberRow.group_id).where(
                        MemberRow.user_id == user_id,
                        MemberRow.status == MemberStatus.ACCEPTED.value,
                    )
                )
            )

    def update_member(
        self,
        member_id: str,
        *,
        role: Optional[GroupRole] = None,
        status: Optional[MemberStatus] = None,
    ) -> Optional[MemberRecord]:
        with self.Session() as session:
            row = session.get(MemberRow, member_id)
            if not row:
                return None
            if role:
                row.role = role.value
            if status:
                row.status = status.value
            session.commit()
            return self._to_member_record(row)

    def delete_member(self, member_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(MemberRow).where(MemberRow.id == member_id))
            session.commit()
            return bool(result.rowcount)

    # Group shares

    def upsert_group_share(
        self,
        recipe_id: str,
        group_id: str,
        owner_id: str,
        permission: SharePermission,
    ) -> GroupShareRecord:
        with self.Session() as session:
            row = session.scalars(
                select(GroupShareRow).where(
                    GroupShareRow.recipe_id == recipe_id,
                    GroupShareRow.group_id == group_id,
                )
            ).first()
            if row:
                row.owner_id = owner_id
                row.permission = permission.value
            else:
                row = GroupShareRow(
                    id=_new_id(),
                    recipe_id=recipe_id,
                    group_id=group_id,
                    owner_id=owner_id,
                    permission=permission.value,
                    created_at=time.time(),
                )
                session.add(row)
            session.commit()
            return self._to_group_share_record(row)

    def get_group_share(self, share_id: str) -> Optional[GroupShareRecord]:
        with self.Session() as session:
            row = session.get(GroupShareRow, share_id)
            return self._to_group_share_record(row) if row else None

    def list_group_shares(self, recipe_id: str) -> list[GroupShareRecord]:
        with self.Session() as session:
            rows = session.scalars(
                select(GroupShareRow)
                .where(GroupShareRow.recipe_id == recipe_id)
                .order_by(GroupShareRow.created_at.asc())
            ).all()
            return [self._to_group_share_record(row) for row in rows]

    def list_group_shares_for_groups(
        self, group_ids: Iterable[str], recipe_id: Optional[str] = None
    ) -> list[GroupShareRecord]:
        ids = list(group_ids)
        if not ids:
            return []
        with self.Session() as session:
            stmt = select(GroupShareRow).where(GroupShareRow.group_id.in_(ids))
            if recipe_id is not None:
                stmt = stmt.where(GroupShareRow.recipe_id == recipe_id)
            rows = session.scalars(stmt.order_by(GroupShareRow.created_at.desc())).all()
            return [self._to_group_share_record(row) for row in rows]

    def update_group_share_permission(
        self, share_id: str, permission: SharePermission
    ) -> Optional[GroupShareRecord]:
        with self.Session() as session:
            row = session.get(GroupShareRow, share_id)
            if not row:
                return None
            row.permission = permission.value
            session.commit()
            return self._to_group_share_record(row)

    def delete_group_share(self, share_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(
                delete(GroupShareRow).where(GroupShareRow.id == share_id)
            )
            session.commit()
            return bool(result.rowcount)


class InMemoryDbClient(PostgresDbClient):
    """
    SQLite in-memory database for development and tests.

    Every session shares one connection so the data survives across
    requests served from FastAPI's threadpool.
    """

    def __init__(self):
        super().__init__(
            "sqlite+pysqlite:///:memory:",
            engine_options={
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            },
        )

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)


Base = declarative_base()


class RecipeRow(Base):
    __tablename__ = "recipes"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    ingredients = Column(JSON, nullable=False, default=list)
    steps = Column(JSON, nullable=False, default=list)
    prep_minutes = Column(Integer, nullable=True)
    cook_minutes = Column(Integer, nullable=True)
    servings = Column(Integer, nullable=True)
    source_url = Column(String, nullable=True)
    cover_photo_id = Column(String, nullable=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    last_cooked_at = Column(Float, nullable=True)
    nutrition_cache = Column(JSON, nullable=True)
    nutrition_updated_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False, index=True)


class PhotoRow(Base):
    __tablename__ = "recipe_photos"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    recipe_id = Column(String, nullable=False, index=True)
    storage_path = Column(String, nullable=False, default="")
    created_at = Column(Float, nullable=False)


class ShareRow(Base):
    __tablename__ = "recipe_shares"
    __table_args__ = (UniqueConstraint("recipe_id", "shared_with"),)

    id = Column(String, primary_key=True)
    recipe_id = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False)
    shared_with = Column(String, nullable=False, index=True)
    permission = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class GroupRow(Base):
    __tablename__ = "groups"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    owner_id = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class MemberRow(Base):
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    id = Column(String, primary_key=True)
    group_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    status = Column(String, nullable=False)
    invited_by = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class GroupShareRow(Base):
    __tablename__ = "recipe_group_shares"
    __table_args__ = (UniqueConstraint("recipe_id", "group_id"),)

    id = Column(String, primary_key=True)
    recipe_id = Column(String, nullable=False, index=True)
    group_id = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False)
    permission = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class ChangeRow(Base):
    __tablename__ = "recipe_changes"

    id = Column(String, primary_key=True)
    recipe_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)
    action = Column(String, nullable=False)
    changes = Column(JSON, nullable=True)
    changed_at = Column(Float, nullable=False)
