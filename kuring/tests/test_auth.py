import jwt
from django.http import JsonResponse
from django.test import RequestFactory, SimpleTestCase, override_settings

from kuring.auth import issue_staff_token, staff_token_required


@staff_token_required
def protected(request):
    return JsonResponse({"staff": request.staff_id})


@override_settings(STAFF_JWT_SECRET="test-staff-secret")
class StaffTokenTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def _call(self, token=None):
        headers = {"HTTP_AUTHORIZATION": f"Bearer {token}"} if token else {}
        return protected(self.factory.get("/api/orders/pending", **headers))

    def test_valid_token(self):
        response = self._call(issue_staff_token("kasir-1"))
        self.assertEqual(response.status_code, 200)
        self.assertIn(b"kasir-1", response.content)

    def test_missing_token(self):
        response = self._call()
        self.assertEqual(response.status_code, 401)

    def test_expired_token(self):
        response = self._call(issue_staff_token("kasir-1", ttl_seconds=-10))
        self.assertEqual(response.status_code, 401)
        self.assertIn(b"token expired", response.content)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "x", "role": "kasir"}, "other-secret", algorithm="HS256")
        self.assertEqual(self._call(token).status_code, 401)

    def test_non_staff_role(self):
        response = self._call(issue_staff_token("guest", role="customer"))
        self.assertEqual(response.status_code, 403)
