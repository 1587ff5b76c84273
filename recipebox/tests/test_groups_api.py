import unittest
from unittest.mock import patch

from recipebox.auth import AuthServiceError
from recipebox.tests.base import ApiTestCase


class GroupApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.group = self.create_group(self.alice)

    def _invite(self, inviter, email, role="member"):
        return self.client.post(
            f"/api/groups/{self.group['id']}/invites",
            json={"email": email, "role": role},
            headers=self.headers(inviter),
        )

    def _members(self, user):
        return self.client.get(
            f"/api/groups/{self.group['id']}/members", headers=self.headers(user)
        )

    def test_create_group_makes_owner(self):
        self.assertEqual(self.group["role"], "owner")
        self.assertEqual(self.group["status"], "accepted")
        response = self.client.get("/api/groups", headers=self.headers(self.alice))
        self.assertEqual([g["id"] for g in response.json()["groups"]], [self.group["id"]])

        response = self.client.post(
            "/api/groups", json={"name": "  "}, headers=self.headers(self.alice)
        )
        self.assertEqual(response.status_code, 400)

    def test_invite_and_accept(self):
        response = self._invite(self.alice, "bob@example.com")
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["status"], "pending")

        response = self.client.get(
            "/api/groups", params={"status": "pending"}, headers=self.headers(self.bob)
        )
        self.assertEqual(len(response.json()["groups"]), 1)
        self.assertEqual(self._members(self.bob).status_code, 403)

        response = self.client.post(
            f"/api/groups/{self.group['id']}/respond",
            json={"accept": True},
            headers=self.headers(self.bob),
        )
        self.assertEqual(response.json()["status"], "accepted")

        members = self._members(self.bob).json()["members"]
        self.assertEqual([m["user_id"] for m in members], ["alice", "bob"])
        self.assertEqual(members[0]["email"], "alice@example.com")

        response = self._invite(self.alice, "bob@example.com")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "User is already in the group.")

    def test_member_emails_fall_back_when_lookup_fails(self):
        with patch.object(
            self.auth, "get_user_by_id", side_effect=AuthServiceError("down")
        ):
            response = self._members(self.alice)
        self.assertEqual(response.status_code, 200, response.text)
        members = response.json()["members"]
        self.assertEqual([m["user_id"] for m in members], ["alice"])
        self.assertEqual(members[0]["email"], "Unknown user")

    def test_decline_and_missing_invite(self):
        self._invite(self.alice, "bob@example.com")
        response = self.client.post(
            f"/api/groups/{self.group['id']}/respond",
            json={"accept": False},
            headers=self.headers(self.bob),
        )
        self.assertEqual(response.json()["status"], "declined")

        response = self.client.post(
            f"/api/groups/{self.group['id']}/respond",
            json={"accept": True},
            headers=self.headers(self.bob),
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Invite not found.")

    def test_invite_errors(self):
        response = self._invite(self.bob, "carol@example.com")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json()["detail"], "Only group admins can invite members."
        )
        response = self._invite(self.alice, "alice@example.com")
        self.assertEqual(response.json()["detail"], "You are already in the group.")
        response = self._invite(self.alice, "ghost@example.com")
        self.assertEqual(response.status_code, 404)

    def test_admin_can_invite(self):
        self.add_group_member(self.group["id"], self.alice, self.bob, role="admin")
        response = self._invite(self.bob, "carol@example.com", role="owner")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["role"], "member")

    def test_unknown_member_email(self):
        self.add_group_member(self.group["id"], self.alice, self.bob)
        del self.auth.users["bob"]
        emails = [m["email"] for m in self._members(self.alice).json()["members"]]
        self.assertEqual(emails, ["alice@example.com", "Unknown user"])

    def test_change_role_and_remove(self):
        self.add_group_member(self.group["id"], self.alice, self.bob)
        members = self._members(self.alice).json()["members"]
        owner_id, bob_id = members[0]["id"], members[1]["id"]
        base = f"/api/groups/{self.group['id']}/members"

        response = self.client.patch(
            f"{base}/{bob_id}", json={"role": "admin"}, headers=self.headers(self.alice)
        )
        self.assertEqual(response.json()["role"], "admin")
        response = self.client.patch(
            f"{base}/{bob_id}", json={"role": "owner"}, headers=self.headers(self.alice)
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.patch(
            f"{base}/{owner_id}", json={"role": "member"}, headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.delete(f"{base}/{owner_id}", headers=self.headers(self.bob))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Owners cannot be removed.")

        response = self.client.delete(f"{base}/missing", headers=self.headers(self.alice))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Member not found.")

        response = self.client.delete(f"{base}/{bob_id}", headers=self.headers(self.alice))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self._members(self.alice).json()["members"]), 1)

    def test_non_admin_cannot_remove_others_but_can_leave(self):
        self.add_group_member(self.group["id"], self.alice, self.bob)
        self.add_group_member(self.group["id"], self.alice, self.carol)
        members = {m["user_id"]: m["id"] for m in self._members(self.alice).json()["members"]}
        base = f"/api/groups/{self.group['id']}/members"

        response = self.client.delete(
            f"{base}/{members['carol']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json()["detail"], "Only group admins can remove members."
        )
        response = self.client.delete(
            f"{base}/{members['bob']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 200)

    def test_rename_and_delete(self):
        response = self.client.patch(
            f"/api/groups/{self.group['id']}",
            json={"name": "Household"},
            headers=self.headers(self.alice),
        )
        self.assertEqual(response.json()["name"], "Household")

        self.add_group_member(self.group["id"], self.alice, self.bob, role="admin")
        response = self.client.delete(
            f"/api/groups/{self.group['id']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Only owners can delete groups.")

        response = self.client.delete(
            f"/api/groups/{self.group['id']}", headers=self.headers(self.alice)
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.delete(
            f"/api/groups/{self.group['id']}", headers=self.headers(self.alice)
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Group not found.")


class GroupShareApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.group = self.create_group(self.alice)
        self.recipe = self.create_recipe(self.alice)
        self.add_group_member(self.group["id"], self.alice, self.bob)

    def _share(self, user, group_id=None, permission="view"):
        return self.client.post(
            f"/api/recipes/{self.recipe['id']}/group-shares",
            json={"group_id": group_id or self.group["id"], "permission": permission},
            headers=self.headers(user),
        )

    def test_share_grants_access_to_members(self):
        response = self._share(self.alice)
        self.assertEqual(response.status_code, 201, response.text)
        share = response.json()
        self.assertEqual(share["group_name"], "Family")
        self.assertEqual(share["permission"], "view")

        response = self.client.get(
            f"/api/recipes/{self.recipe['id']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.json()["access"], "view")
        response = self.client.get(
            f"/api/recipes/{self.recipe['id']}", headers=self.headers(self.carol)
        )
        self.assertEqual(response.status_code, 404)

        response = self.client.patch(
            f"/api/group-shares/{share['id']}",
            json={"permission": "edit"},
            headers=self.headers(self.alice),
        )
        self.assertEqual(response.json()["permission"], "edit")
        response = self.client.patch(
            f"/api/recipes/{self.recipe['id']}",
            json={"title": "Group edit"},
            headers=self.headers(self.bob),
        )
        self.assertEqual(response.status_code, 200)

        response = self.client.get(
            f"/api/recipes/{self.recipe['id']}/group-shares",
            headers=self.headers(self.alice),
        )
        self.assertEqual(len(response.json()["shares"]), 1)

        response = self.client.delete(
            f"/api/group-shares/{share['id']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 403)
        response = self.client.delete(
            f"/api/group-shares/{share['id']}", headers=self.headers(self.alice)
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.get(
            f"/api/recipes/{self.recipe['id']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 404)

    def test_requires_group_admin(self):
        other = self.create_group(self.carol, name="Other")
        response = self._share(self.alice, group_id=other["id"])
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json()["detail"], "Only group admins can share to the group."
        )

    def test_deleting_group_revokes_access(self):
        self._share(self.alice)
        self.client.delete(
            f"/api/groups/{self.group['id']}", headers=self.headers(self.alice)
        )
        response = self.client.get(
            f"/api/recipes/{self.recipe['id']}", headers=self.headers(self.bob)
        )
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
