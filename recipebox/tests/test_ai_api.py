import unittest

from google.genai import errors as genai_errors

from recipebox.tests.base import ApiTestCase


class AiApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.recipe = self.create_recipe(self.alice)

    def _describe(self, **payload):
        body = {
            "title": "Pancakes",
            "ingredients": ["2 cups flour"],
            "steps": ["Mix."],
        }
        body.update(payload)
        return self.client.post(
            "/api/ai/description", json=body, headers=self.headers(self.alice)
        )

    def _nutrition(self, user=None):
        return self.client.post(
            f"/api/recipes/{self.recipe['id']}/nutrition",
            headers=self.headers(user or self.alice),
        )

    def test_not_configured(self):
        response = self._describe()
        self.assertEqual(response.status_code, 501)
        self.assertEqual(response.json()["detail"], "AI descriptions are not configured.")
        self.assertEqual(self._nutrition().status_code, 501)

    def test_description(self):
        self.enable_assistant()
        self.predictor.respond_with({"description": "  Light and fluffy.  "})
        response = self._describe(prep_minutes=5)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), {"description": "Light and fluffy."})
        query = self.predictor.calls[0]["query"]
        self.assertEqual(query["title"], "Pancakes")
        self.assertEqual(query["prepMinutes"], 5)

    def test_description_validation(self):
        self.enable_assistant()
        self.assertEqual(self._describe(title=" ").status_code, 400)
        response = self._describe(steps=["  "])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["detail"], "Ingredients and steps are required."
        )
        self.assertEqual(self.predictor.calls, [])

    def test_llm_failures_map_to_502(self):
        self.enable_assistant()
        cases = [
            ("", "AI description response was empty."),
            ("not json", "AI description response could not be parsed."),
            ('{"description": ""}', "AI description was empty."),
        ]
        for text, detail in cases:
            self.predictor.response = text
            response = self._describe()
            self.assertEqual(response.status_code, 502)
            self.assertEqual(response.json()["detail"], detail)

        self.predictor.error = genai_errors.APIError(500, {"error": {"message": "boom"}})
        response = self._describe()
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "AI description request failed.")

    def test_tags_are_unique_and_limited(self):
        self.enable_assistant()
        self.predictor.respond_with(
            {"tags": ["Breakfast", "Sweet", "Breakfast", " ", "Quick", "Easy", "Extra"]}
        )
        response = self.client.post(
            "/api/ai/tags",
            json={"title": "Pancakes", "steps": ["Mix."], "existing_tags": ["Breakfast"]},
            headers=self.headers(self.alice),
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["tags"], ["Breakfast", "Sweet", "Quick", "Easy"])
        self.assertEqual(self.predictor.calls[0]["query"]["existingTags"], ["Breakfast"])

    def test_tags_need_ingredients_or_steps(self):
        self.enable_assistant()
        response = self.client.post(
            "/api/ai/tags", json={"title": "Pancakes"}, headers=self.headers(self.alice)
        )
        self.assertEqual(response.status_code, 400)

    def test_nutrition_is_cached_until_recipe_changes(self):
        self.enable_assistant()
        self.predictor.respond_with(
            {"perServing": {"calories": "320", "carbs": 40, "protein": 9, "fat": "n/a"}}
        )
        response = self._nutrition()
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertFalse(payload["cached"])
        self.assertEqual(payload["per_serving"]["calories"], 320)
        self.assertIsNone(payload["per_serving"]["fat"])
        self.assertEqual(self.predictor.calls[0]["query"]["servings"], 4)

        recipe = self.db.get_recipe(self.recipe["id"])
        self.assertEqual(recipe.updated_at, self.recipe["updated_at"])
        self.assertEqual(len(self.db.list_changes(recipe.id)), 1)

        response = self._nutrition()
        self.assertTrue(response.json()["cached"])
        self.assertEqual(len(self.predictor.calls), 1)

        self.client.patch(
            f"/api/recipes/{self.recipe['id']}",
            json={"servings": 2},
            headers=self.headers(self.alice),
        )
        response = self._nutrition()
        self.assertFalse(response.json()["cached"])
        self.assertEqual(len(self.predictor.calls), 2)

    def test_nutrition_requires_servings_and_calories(self):
        self.enable_assistant()
        no_servings = self.create_recipe(self.alice, servings=None)
        response = self.client.post(
            f"/api/recipes/{no_servings['id']}/nutrition",
            headers=self.headers(self.alice),
        )
        self.assertEqual(response.status_code, 400)

        self.predictor.respond_with({"perServing": {"carbs": 10}})
        response = self._nutrition()
        self.assertEqual(response.status_code, 502)
        self.assertEqual(
            response.json()["detail"], "AI nutrition response was incomplete."
        )
        self.assertIsNone(self.db.get_recipe(self.recipe["id"]).nutrition_cache)

    def test_nutrition_requires_access(self):
        self.enable_assistant()
        self.assertEqual(self._nutrition(self.bob).status_code, 404)

    def test_suggestions(self):
        self.enable_assistant()
        self.predictor.respond_with(
            {
                "improvements": [
                    {"title": "Rest the batter", "rationale": "Better rise", "changes": ["Rest 10 minutes"]},
                    "bogus",
                ],
                "alternatives": [{"title": "Crepes", "summary": "Thinner", "changes": "x"}],
            }
        )
        response = self.client.post(
            f"/api/recipes/{self.recipe['id']}/suggestions",
            headers=self.headers(self.alice),
        )
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(len(payload["improvements"]), 1)
        self.assertEqual(payload["improvements"][0]["changes"], ["Rest 10 minutes"])
        self.assertEqual(payload["alternatives"][0]["changes"], [])


if __name__ == "__main__":
    unittest.main()
