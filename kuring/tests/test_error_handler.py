from django.test import RequestFactory, SimpleTestCase, override_settings

from kuring.middleware import ApiErrorMiddleware


@override_settings(
    DEBUG=False,
    DATABASES={"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": ":memory:"}}
)
class ErrorHandlerTests(SimpleTestCase):
    def test_api_404_is_json(self):
        response = self.client.get('/api/this-url-does-not-exist')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": {"message": "Not found"}})

    def test_other_404_is_plain(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertNotEqual(response["Content-Type"], "application/json")


class ApiErrorMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.middleware = ApiErrorMiddleware(lambda request: None)
        self.factory = RequestFactory()

    def test_api_exception_becomes_json_500(self):
        request = self.factory.get("/api/order")
        with self.assertLogs("kuring.middleware", level="ERROR"):
            response = self.middleware.process_exception(request, RuntimeError("db gone"))
        self.assertEqual(response.status_code, 500)
        self.assertIn(b"Internal server error: db gone", response.content)

    def test_non_api_exception_is_left_alone(self):
        request = self.factory.get("/admin/")
        self.assertIsNone(self.middleware.process_exception(request, RuntimeError("boom")))
