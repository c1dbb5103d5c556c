# apps/utils/tests.py
import json
import logging
from unittest.mock import patch

from django.test import TestCase, SimpleTestCase
from rest_framework import status
from rest_framework.test import APIClient

from .exceptions import (
    BusinessLogicException,
    NotFound,
    PaymentGatewayError,
    custom_exception_handler,
)
from .logging import JSONFormatter
from .utils import format_idr


class JSONFormatterTests(SimpleTestCase):
    def _record(self, msg, **extra):
        record = logging.LogRecord("apps.test", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_sensitive_keys_are_redacted(self):
        formatter = JSONFormatter()
        record = self._record({
            "order_id": "RACEPHOTO-1-abc",
            "signature_key": "deadbeef",
            "nested": [{"server_key": "SB-123", "amount": 20000}],
        })
        out = json.loads(formatter.format(record))
        self.assertIn("***REDACTED***", out["msg"])
        self.assertNotIn("deadbeef", out["msg"])
        self.assertNotIn("SB-123", out["msg"])
        self.assertIn("20000", out["msg"])

    def test_order_context_is_included(self):
        out = json.loads(JSONFormatter().format(self._record("settled", order_id=7)))
        self.assertEqual(out["order_id"], 7)
        self.assertEqual(out["lvl"], "INFO")


class ExceptionHandlerTests(SimpleTestCase):
    def test_business_error_maps_to_its_status(self):
        resp = custom_exception_handler(BusinessLogicException("Cart is empty"), {})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data, {"error": "Cart is empty", "code": "business_error"})

        resp = custom_exception_handler(NotFound("Order not found"), {})
        self.assertEqual(resp.status_code, 404)

        resp = custom_exception_handler(PaymentGatewayError("Gateway down"), {})
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.data["code"], "gateway_error")

    def test_unhandled_error_hides_details(self):
        resp = custom_exception_handler(RuntimeError("db password is hunter2"), {})
        self.assertEqual(resp.status_code, 500)
        self.assertNotIn("hunter2", json.dumps(resp.data))


class FormatTests(SimpleTestCase):
    def test_format_idr(self):
        self.assertEqual(format_idr(20000), "Rp 20.000")
        self.assertEqual(format_idr(1500000), "Rp 1.500.000")


class ServerInfoTests(TestCase):
    def test_info_endpoint(self):
        resp = APIClient().get("/api/v1/utils/info/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["version"], "1.0.0")


class HealthCheckTests(TestCase):
    def test_all_components_ok(self):
        resp = APIClient().get("/api/v1/utils/health/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["components"], {"db": "ok", "cache": "ok", "storage": "ok"})

    def test_failing_component_is_503(self):
        def redis_down():
            raise ConnectionError("redis down")

        with patch.dict("apps.utils.health.CHECKS", {"cache": redis_down}):
            resp = APIClient().get("/api/v1/utils/health/")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["components"]["cache"], "error")
        self.assertEqual(resp.json()["components"]["db"], "ok")
