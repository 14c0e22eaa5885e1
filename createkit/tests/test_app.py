import io
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from PIL import Image

from createkit.app import create_app
from createkit.config import Settings, get_settings
from createkit.db import CreationKind, InMemoryDbClient
from createkit.dependencies import (
    get_db_client,
    get_identity_provider,
    get_image_job_client,
    get_quota_source,
    get_storage_client,
    get_text_generator,
)
from createkit.errors import StorageError
from createkit.identity import InMemoryIdentityProvider, PlanTier
from createkit.storage import InMemoryStorageClient


class FakeTextGenerator:
    def __init__(self, text="Generated text"):
        self.text = text
        self.calls = []

    def generate(self, prompt, *, model, max_output_tokens, temperature):
        self.calls.append(
            {"prompt": prompt, "model": model, "max_output_tokens": max_output_tokens}
        )
        return self.text


class FakeImageJobClient:
    def __init__(self, statuses, submit_payload=None):
        self.statuses = list(statuses)
        self.submit_payload = submit_payload or {"id": "job-1"}
        self.submitted = []

    def submit(self, prompt, *, width, height):
        self.submitted.append((prompt, width, height))
        return self.submit_payload

    def get_job(self, job_id):
        return self.statuses.pop(0) if self.statuses else {}


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color="red").save(buffer, format="PNG")
    return buffer.getvalue()


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.identity = InMemoryIdentityProvider()
        self.text = FakeTextGenerator()
        self.images = FakeImageJobClient(
            [{"completed_at": "now", "result": {"urls": ["https://krea.test/a.png"]}}]
        )
        self.settings = Settings(
            use_in_memory_backends=True, image_poll_interval_seconds=0
        )

        self.identity.register("premium-token", "user_premium", PlanTier.PREMIUM)
        self.identity.register("free-token", "user_free", PlanTier.FREE)

        overrides = self.app.dependency_overrides
        overrides[get_settings] = lambda: self.settings
        overrides[get_db_client] = lambda: self.db
        overrides[get_storage_client] = lambda: self.storage
        overrides[get_identity_provider] = lambda: self.identity
        overrides[get_quota_source] = lambda: self.identity
        overrides[get_text_generator] = lambda: self.text
        overrides[get_image_job_client] = lambda: self.images
        self.client = TestClient(self.app)

    def _auth(self, token="premium-token"):
        return {"Authorization": f"Bearer {token}"}

    def test_health_needs_no_credentials(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "CreateKit Server is running")

    def test_missing_credentials_are_unauthorized(self):
        response = self.client.get("/api/user/get-published-creations")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "message": "Unauthorized"})

    def test_unknown_token_is_unauthorized(self):
        response = self.client.post(
            "/api/ai/generate-article",
            json={"prompt": "cats"},
            headers=self._auth("bogus"),
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.text.calls, [])

    def test_generate_article_for_premium_user(self):
        self.identity.update("user_premium", 4)
        response = self.client.post(
            "/api/ai/generate-article",
            json={"prompt": "cats", "length": 800},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["article"], "Generated text")

        rows = self.db.list_user_creations("user_premium")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].type, CreationKind.ARTICLE)
        self.assertEqual(rows[0].prompt, "cats")
        self.assertEqual(self.text.calls[0]["max_output_tokens"], 2400)
        # Stale counter of a premium user is cleared, never decremented.
        self.assertEqual(self.identity.get("user_premium"), 0)

    def test_free_user_consumes_one_free_use(self):
        self.identity.update("user_free", 3)
        response = self.client.post(
            "/api/ai/generate-blog-title",
            json={"prompt": "Ten ideas about cats"},
            headers=self._auth("free-token"),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["blogTitle"], "Generated text")
        self.assertEqual(self.identity.get("user_free"), 2)

    def test_free_user_without_remaining_usage_is_forbidden(self):
        self.identity.update("user_free", 0)
        response = self.client.post(
            "/api/ai/generate-article",
            json={"prompt": "cats"},
            headers=self._auth("free-token"),
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()["success"])
        self.assertEqual(self.text.calls, [])
        self.assertEqual(self.db.creations, {})

    def test_empty_provider_output_stores_nothing(self):
        self.text.text = "   "
        self.identity.update("user_free", 1)
        response = self.client.post(
            "/api/ai/generate-article",
            json={"prompt": "cats"},
            headers=self._auth("free-token"),
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(),
            {"success": False, "error": "Failed to generate article content."},
        )
        self.assertEqual(self.db.creations, {})
        self.assertEqual(self.identity.get("user_free"), 1)

    def test_provider_exception_surfaces_generic_failure(self):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        self.text.generate = explode
        response = self.client.post(
            "/api/ai/generate-article",
            json={"prompt": "cats"},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Article generation failed.")

    def test_missing_prompt_is_bad_request(self):
        response = self.client.post(
            "/api/ai/generate-article", json={}, headers=self._auth()
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_generate_image_polls_and_stores_image(self):
        self.images.statuses.insert(0, {"status": "processing"})
        response = self.client.post(
            "/api/ai/generate-image",
            json={"prompt": "a red fox", "publish": True},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 200)
        image_url = response.json()["imageUrl"]
        self.assertTrue(image_url.startswith(self.storage.base_url))
        self.assertEqual(self.images.submitted, [("a red fox", 1024, 1024)])
        self.assertIn("https://krea.test/a.png", self.storage.stored_objects.values())

        published = self.db.list_published_creations()
        self.assertEqual(len(published), 1)
        self.assertEqual(published[0].content, image_url)

    def test_generate_image_is_premium_only(self):
        self.identity.update("user_free", 5)
        response = self.client.post(
            "/api/ai/generate-image",
            json={"prompt": "a red fox"},
            headers=self._auth("free-token"),
        )
        self.assertEqual(response.status_code, 403)
        self.assertIn("premium users only", response.json()["error"])
        self.assertEqual(self.images.submitted, [])
        self.assertEqual(self.identity.get("user_free"), 5)

    def test_generate_image_times_out(self):
        self.settings.image_poll_max_attempts = 3
        self.images.statuses = [{}, {}, {}]
        response = self.client.post(
            "/api/ai/generate-image",
            json={"prompt": "a red fox"},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 504)
        self.assertEqual(response.json()["error"], "Image generation timed out.")
        self.assertEqual(self.db.creations, {})

    def test_remove_background_without_file(self):
        response = self.client.post(
            "/api/ai/remove-image-background",
            data={"note": "no file here"},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "No image uploaded")
        self.assertEqual(self.db.creations, {})

    def test_remove_background(self):
        response = self.client.post(
            "/api/ai/remove-image-background",
            files={"image": ("photo.png", _png_bytes(), "image/png")},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 200)
        image_url = response.json()["imageUrl"]
        self.assertIn("/image/fetch/e_background_removal/", image_url)
        row = self.db.list_user_creations("user_premium")[0]
        self.assertEqual(row.prompt, "Remove background from image")
        self.assertEqual(row.content, image_url)

    def test_remove_background_rejects_non_image(self):
        response = self.client.post(
            "/api/ai/remove-image-background",
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)

    def test_remove_background_rejects_oversized_dimensions(self):
        buffer = io.BytesIO()
        Image.new("1", (10, 10)).save(buffer, format="PNG")
        with patch.object(Image, "MAX_IMAGE_PIXELS", 10):
            response = self.client.post(
                "/api/ai/remove-image-background",
                files={"image": ("huge.png", buffer.getvalue(), "image/png")},
                headers=self._auth(),
            )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {"success": False, "error": "Uploaded file is not a valid image."},
        )
        self.assertEqual(self.db.creations, {})

    def test_remove_object(self):
        response = self.client.post(
            "/api/ai/remove-image-object",
            files={"image": ("photo.png", _png_bytes(), "image/png")},
            data={"object": "dog"},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("e_gen_remove:dog", response.json()["imageUrl"])
        row = self.db.list_user_creations("user_premium")[0]
        self.assertEqual(row.prompt, "Remove dog from image")

    def test_remove_object_requires_object_name(self):
        response = self.client.post(
            "/api/ai/remove-image-object",
            files={"image": ("photo.png", _png_bytes(), "image/png")},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)

    def test_oversize_upload_is_rejected(self):
        self.settings.max_upload_bytes = 10
        response = self.client.post(
            "/api/ai/remove-image-background",
            files={"image": ("photo.png", _png_bytes(), "image/png")},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("exceeds", response.json()["error"])

    @patch("createkit.routes.extract_pdf_text", return_value="Jane Doe, Python engineer")
    def test_resume_review(self, _mock_extract):
        response = self.client.post(
            "/api/ai/resume-review",
            files={"resume": ("cv.pdf", b"%PDF-1.4 fake", "application/pdf")},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["content"], "Generated text")
        self.assertIn("Jane Doe, Python engineer", self.text.calls[0]["prompt"])
        row = self.db.list_user_creations("user_premium")[0]
        self.assertEqual(row.type, CreationKind.RESUME_REVIEW)

    @patch("createkit.routes.extract_pdf_text", return_value="  ")
    def test_resume_review_without_text(self, _mock_extract):
        response = self.client.post(
            "/api/ai/resume-review",
            files={"resume": ("cv.pdf", b"%PDF-1.4 fake", "application/pdf")},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.text.calls, [])

    def test_user_creations_and_feed(self):
        response = self.client.get(
            "/api/user/get-user-creations", headers=self._auth()
        )
        self.assertEqual(response.status_code, 404)

        self.db.create_creation("user_premium", "p1", "c1", CreationKind.ARTICLE)
        self.db.create_creation("user_premium", "p2", "c2", CreationKind.IMAGE, publish=True)

        response = self.client.get(
            "/api/user/get-user-creations", headers=self._auth()
        )
        self.assertEqual(response.status_code, 200)
        creations = response.json()["creations"]
        self.assertEqual([c["prompt"] for c in creations], ["p2", "p1"])

        response = self.client.get(
            "/api/user/get-published-creations", headers=self._auth("free-token")
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["creations"]), 1)
        self.assertEqual(response.json()["creations"][0]["type"], "image")

    def test_feed_storage_failure_uses_message_key(self):
        with patch.object(
            self.db,
            "list_published_creations",
            side_effect=StorageError("Failed to load creations."),
        ):
            response = self.client.get(
                "/api/user/get-published-creations", headers=self._auth()
            )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "message": "Failed to load creations."}
        )

    def test_toggle_like_twice(self):
        creation = self.db.create_creation(
            "user_premium", "p", "c", CreationKind.IMAGE, publish=True
        )
        url = f"/api/user/toggle-like-creation/{creation.id}"
        first = self.client.post(url, headers=self._auth("free-token"))
        self.assertEqual(first.json()["message"], "Creation liked.")
        self.assertEqual(self.db.get_creation(creation.id).likes, ["user_free"])

        second = self.client.post(url, headers=self._auth("free-token"))
        self.assertEqual(second.json()["message"], "Creation unliked.")
        self.assertEqual(self.db.get_creation(creation.id).likes, [])

    def test_toggle_like_missing_creation(self):
        response = self.client.post(
            "/api/user/toggle-like-creation/999", headers=self._auth()
        )
        self.assertEqual(response.status_code, 404)

    def test_toggle_publish_requires_ownership(self):
        creation = self.db.create_creation("user_premium", "p", "c", CreationKind.IMAGE)
        response = self.client.post(
            "/api/user/toggle-publish-creation",
            json={"creationId": creation.id, "publish": True},
            headers=self._auth("free-token"),
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(self.db.get_creation(creation.id).publish)

    def test_toggle_publish(self):
        creation = self.db.create_creation("user_premium", "p", "c", CreationKind.IMAGE)
        response = self.client.post(
            "/api/user/toggle-publish-creation",
            json={"creationId": creation.id, "publish": True},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"success": True, "creationId": creation.id, "publish": True},
        )

        response = self.client.post(
            "/api/user/toggle-publish-creation",
            json={"creationId": creation.id},
            headers=self._auth(),
        )
        self.assertFalse(response.json()["publish"])
        self.assertFalse(self.db.get_creation(creation.id).publish)

    def test_toggle_publish_rejects_non_boolean(self):
        creation = self.db.create_creation("user_premium", "p", "c", CreationKind.IMAGE)
        response = self.client.post(
            "/api/user/toggle-publish-creation",
            json={"creationId": creation.id, "publish": "yes"},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("message", response.json())

        response = self.client.post(
            "/api/user/toggle-publish-creation",
            json={"publish": True},
            headers=self._auth(),
        )
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
