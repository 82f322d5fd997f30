"""
Tests de utils.py y logging_config.py.
"""

import json
import logging
import re
from datetime import datetime

import pytest
from flask import Flask
from pythonjsonlogger.json import JsonFormatter

from errors import ValidationError
from logging_config import ServiceJsonFormatter, get_logging_config
from utils import (
    add_months,
    coerce_json_value,
    coerce_mapping,
    generate_key,
    get_client_ip,
    get_device_info,
)


class TestGenerateKey:

    def test_format(self):
        assert re.match(r"^BABYLON-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}$", generate_key())

    def test_prefix_is_uppercased(self):
        assert generate_key("vb").startswith("VB-")

    def test_keys_differ(self):
        keys = {generate_key() for _ in range(200)}
        assert len(keys) > 190


class TestAddMonths:

    @pytest.mark.parametrize("start, months, expected", [
        (datetime(2026, 1, 15, 8, 0), 1, datetime(2026, 2, 15, 8, 0)),
        (datetime(2026, 1, 31, 8, 0), 1, datetime(2026, 2, 28, 8, 0)),
        (datetime(2028, 1, 31, 8, 0), 1, datetime(2028, 2, 29, 8, 0)),
        (datetime(2026, 11, 30), 3, datetime(2027, 2, 28)),
        (datetime(2026, 5, 10), 12, datetime(2027, 5, 10)),
    ])
    def test_calendar_months(self, start, months, expected):
        assert add_months(start, months) == expected


class TestCoerceJson:

    def test_nested_values(self):
        value = {"a": [1, 2.5, "x", None, True], "b": {"c": (1, 2)}}

        assert coerce_json_value(value) == {"a": [1, 2.5, "x", None, True], "b": {"c": [1, 2]}}

    def test_returns_a_copy(self):
        original = {"a": {"b": 1}}
        copy = coerce_json_value(original)
        copy["a"]["b"] = 2

        assert original["a"]["b"] == 1

    @pytest.mark.parametrize("value", [
        {1: "non-string key"},
        {"nan": float("nan")},
        {"inf": float("inf")},
        {"obj": object()},
        {"when": datetime(2026, 1, 1)},
    ])
    def test_rejects_non_json(self, value):
        with pytest.raises(ValidationError):
            coerce_json_value(value)

    def test_mapping_required(self):
        assert coerce_mapping(None) == {}
        with pytest.raises(ValidationError):
            coerce_mapping([1, 2])


class TestRequestHelpers:

    def setup_method(self):
        self.app = Flask(__name__)

    @pytest.mark.parametrize("headers, expected", [
        ({"CF-Connecting-IP": "1.1.1.1", "X-Real-IP": "2.2.2.2"}, "1.1.1.1"),
        ({"X-Real-IP": "2.2.2.2"}, "2.2.2.2"),
        ({"X-Forwarded-For": "3.3.3.3, 10.0.0.1"}, "3.3.3.3"),
    ])
    def test_client_ip(self, headers, expected):
        from flask import request

        with self.app.test_request_context("/", headers=headers):
            assert get_client_ip(request) == expected

    def test_client_ip_fallback(self):
        from flask import request

        with self.app.test_request_context("/", environ_base={"REMOTE_ADDR": "127.0.0.9"}):
            assert get_client_ip(request) == "127.0.0.9"

    def test_device_info(self):
        ua = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
              "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36")

        info = get_device_info(ua)

        assert "Windows" in info
        assert "Chrome" in info
        assert get_device_info("") == ""


def test_logging_config_levels_and_format():
    conf = get_logging_config("debug", "text")

    assert conf["root"]["level"] == "DEBUG"
    assert conf["handlers"]["console"]["formatter"] == "text"
    assert get_logging_config("INFO", "bogus")["handlers"]["console"]["formatter"] == "json"


def test_json_formatter_adds_service_name():
    formatter = ServiceJsonFormatter("%(name)s %(levelname)s %(message)s")
    record = logging.LogRecord("licenses", logging.INFO, __file__, 1, "hello", None, None)

    data = json.loads(formatter.format(record))

    assert isinstance(formatter, JsonFormatter)
    assert data["message"] == "hello"
    assert data["service"] == ServiceJsonFormatter.service_name
