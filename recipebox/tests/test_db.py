import unittest

from recipebox.db import InMemoryDbClient, PostgresDbClient
from shared.types import ChangeAction, GroupRole, MemberStatus, SharePermission


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = InMemoryDbClient()

    def _recipe(self, user_id="alice", **fields):
        values = {
            "title": "Soup",
            "ingredients": [{"text": "1 l stock"}],
            "steps": [{"text": "Simmer."}],
            "tags": ["Dinner"],
        }
        values.update(fields)
        return self.db.create_recipe(user_id, values)

    def test_requires_database_url(self):
        with self.assertRaises(ValueError):
            PostgresDbClient("")

    def test_create_recipe_records_insert_change(self):
        recipe = self._recipe(servings=2)
        fetched = self.db.get_recipe(recipe.id)
        self.assertEqual(fetched.title, "Soup")
        self.assertEqual(fetched.servings, 2)
        self.assertFalse(fetched.is_favorite)

        changes = self.db.list_changes(recipe.id)
        self.assertEqual(len(changes), 1)
        self.assertEqual(changes[0].action, ChangeAction.INSERT)
        self.assertEqual(changes[0].changes["after"]["title"], "Soup")
        self.assertNotIn("before", changes[0].changes)

    def test_create_ignores_unknown_fields(self):
        recipe = self._recipe(user_id="alice", nutrition_cache={"calories": 1})
        self.assertIsNone(self.db.get_recipe(recipe.id).nutrition_cache)

    def test_update_records_before_and_after(self):
        recipe = self._recipe()
        updated = self.db.update_recipe(recipe.id, {"title": "Stew"}, user_id="bob")
        self.assertEqual(updated.title, "Stew")
        self.assertGreaterEqual(updated.updated_at, recipe.updated_at)

        latest = self.db.list_changes(recipe.id)[0]
        self.assertEqual(latest.action, ChangeAction.UPDATE)
        self.assertEqual(latest.user_id, "bob")
        self.assertEqual(latest.changes["before"]["title"], "Soup")
        self.assertEqual(latest.changes["after"]["title"], "Stew")

    def test_update_without_known_fields_is_a_no_op(self):
        recipe = self._recipe()
        unchanged = self.db.update_recipe(recipe.id, {"user_id": "mallory"})
        self.assertEqual(unchanged.user_id, "alice")
        self.assertEqual(len(self.db.list_changes(recipe.id)), 1)

    def test_update_missing_recipe(self):
        self.assertIsNone(self.db.update_recipe("missing", {"title": "x"}))

    def test_save_nutrition_keeps_updated_at(self):
        recipe = self._recipe()
        self.db.save_nutrition(recipe.id, {"calories": 200})
        fetched = self.db.get_recipe(recipe.id)
        self.assertEqual(fetched.nutrition_cache, {"calories": 200})
        self.assertEqual(fetched.updated_at, recipe.updated_at)
        self.assertGreaterEqual(fetched.nutrition_updated_at, fetched.updated_at)
        self.assertEqual(len(self.db.list_changes(recipe.id)), 1)

    def test_delete_recipe_cascades(self):
        recipe = self._recipe()
        photo = self.db.create_photo("alice", recipe.id)
        share = self.db.upsert_share(recipe.id, "alice", "bob", SharePermission.VIEW)
        group = self.db.create_group("Family", "alice")
        group_share = self.db.upsert_group_share(
            recipe.id, group.id, "alice", SharePermission.EDIT
        )

        self.assertTrue(self.db.delete_recipe(recipe.id))
        self.assertIsNone(self.db.get_recipe(recipe.id))
        self.assertIsNone(self.db.get_photo(photo.id))
        self.assertIsNone(self.db.get_share(share.id))
        self.assertIsNone(self.db.get_group_share(group_share.id))
        self.assertEqual(self.db.list_changes(recipe.id), [])
        self.assertFalse(self.db.delete_recipe(recipe.id))

    def test_list_recipes_newest_updated_first(self):
        first = self._recipe(title="First")
        second = self._recipe(title="Second")
        self._recipe(user_id="bob", title="Other")
        self.db.update_recipe(first.id, {"description": "touched"})

        titles = [r.title for r in self.db.list_recipes_for_user("alice")]
        self.assertEqual(titles, ["First", "Second"])
        self.assertEqual(len(self.db.get_recipes([first.id, second.id, first.id])), 2)
        self.assertEqual(self.db.get_recipes([]), [])

    def test_counts_and_tags(self):
        recipe = self._recipe(tags=["Dinner", "Soup"])
        self._recipe(tags=["Soup", "Vegan"])
        self.db.create_photo("alice", recipe.id)
        self.assertEqual(self.db.count_recipes(), 2)
        self.assertEqual(self.db.count_photos(), 1)
        self.assertEqual(self.db.list_all_tags(), {"Dinner", "Soup", "Vegan"})

    def test_photo_path_and_order(self):
        recipe = self._recipe()
        first = self.db.create_photo("alice", recipe.id)
        second = self.db.create_photo("alice", recipe.id)
        self.assertEqual(first.storage_path, "")
        updated = self.db.set_photo_path(first.id, "alice/r/p.jpg")
        self.assertEqual(updated.storage_path, "alice/r/p.jpg")
        self.assertEqual(
            [p.id for p in self.db.list_photos(recipe.id)], [first.id, second.id]
        )
        self.assertTrue(self.db.delete_photo(second.id))
        self.assertFalse(self.db.delete_photo(second.id))

    def test_upsert_share_updates_existing_row(self):
        recipe = self._recipe()
        first = self.db.upsert_share(recipe.id, "alice", "bob", SharePermission.VIEW)
        second = self.db.upsert_share(recipe.id, "alice", "bob", SharePermission.EDIT)
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.permission, SharePermission.EDIT)
        self.assertEqual(len(self.db.list_shares(recipe.id)), 1)
        self.assertEqual(
            self.db.get_user_share(recipe.id, "bob").permission, SharePermission.EDIT
        )
        self.assertEqual([s.id for s in self.db.list_shares_for_user("bob")], [first.id])

    def test_create_group_adds_owner_membership(self):
        group = self.db.create_group("Family", "alice")
        member = self.db.get_membership(group.id, "alice")
        self.assertEqual(member.role, GroupRole.OWNER)
        self.assertEqual(member.status, MemberStatus.ACCEPTED)
        self.assertEqual(self.db.accepted_group_ids("alice"), [group.id])

        memberships = self.db.list_memberships("alice")
        self.assertEqual(len(memberships), 1)
        self.assertEqual(memberships[0][1].name, "Family")

    def test_pending_members_are_not_accepted(self):
        group = self.db.create_group("Family", "alice")
        member = self.db.upsert_member(
            group.id,
            "bob",
            role=GroupRole.MEMBER,
            status=MemberStatus.PENDING,
            invited_by="alice",
        )
        self.assertEqual(self.db.accepted_group_ids("bob"), [])
        self.db.update_member(member.id, status=MemberStatus.ACCEPTED)
        self.assertEqual(self.db.accepted_group_ids("bob"), [group.id])

        again = self.db.upsert_member(
            group.id, "bob", role=GroupRole.ADMIN, status=MemberStatus.PENDING
        )
        self.assertEqual(again.id, member.id)
        self.assertEqual(again.role, GroupRole.ADMIN)

    def test_delete_group_cascades(self):
        recipe = self._recipe()
        group = self.db.create_group("Family", "alice")
        share = self.db.upsert_group_share(
            recipe.id, group.id, "alice", SharePermission.VIEW
        )
        self.assertTrue(self.db.delete_group(group.id))
        self.assertIsNone(self.db.get_group(group.id))
        self.assertIsNone(self.db.get_membership(group.id, "alice"))
        self.assertIsNone(self.db.get_group_share(share.id))
        self.assertIsNotNone(self.db.get_recipe(recipe.id))

    def test_group_shares_for_groups(self):
        recipe = self._recipe()
        other = self._recipe(title="Other")
        group = self.db.create_group("Family", "alice")
        self.db.upsert_group_share(recipe.id, group.id, "alice", SharePermission.VIEW)
        self.db.upsert_group_share(other.id, group.id, "alice", SharePermission.EDIT)

        self.assertEqual(len(self.db.list_group_shares_for_groups([group.id])), 2)
        scoped = self.db.list_group_shares_for_groups([group.id], recipe_id=other.id)
        self.assertEqual([s.permission for s in scoped], [SharePermission.EDIT])
        self.assertEqual(self.db.list_group_shares_for_groups([]), [])

    def test_reset_clears_data(self):
        self._recipe()
        self.db.reset()
        self.assertEqual(self.db.count_recipes(), 0)


if __name__ == "__main__":
    unittest.main()
