import json
from pathlib import Path

import pytest

from e2e_test_agent.errors import UnsupportedFormatError
from e2e_test_agent.parser.detect import DocumentFormat, detect_file_format, detect_format

FIXTURES = Path(__file__).parent / "fixtures"


class TestDetectJson:
    def test_swagger_v2(self):
        assert detect_format(json.dumps({"swagger": "2.0", "paths": {}})) == DocumentFormat.OPENAPI_V2

    def test_openapi_v3(self):
        assert detect_format(json.dumps({"openapi": "3.1.0", "paths": {}})) == DocumentFormat.OPENAPI_V3

    def test_postman(self):
        assert detect_format(json.dumps({"info": {"name": "c"}, "item": []})) == DocumentFormat.POSTMAN

    def test_postman_requires_item_list(self):
        with pytest.raises(UnsupportedFormatError):
            detect_format(json.dumps({"info": {"name": "c"}, "item": "nope"}))

    def test_insomnia(self):
        doc = {"_type": "export", "__export_format": 4, "resources": []}
        assert detect_format(json.dumps(doc)) == DocumentFormat.INSOMNIA

    def test_custom_vendor_marker(self):
        assert detect_format(json.dumps({"apifoxProject": "1.0", "paths": {}})) == DocumentFormat.CUSTOM

    def test_custom_prefixed_marker(self):
        assert detect_format(json.dumps({"x-apifox-meta": {}, "paths": {}})) == DocumentFormat.CUSTOM

    def test_detection_is_deterministic(self):
        text = (FIXTURES / "sample.postman.json").read_text(encoding="utf-8")
        assert {detect_format(text, "c.json") for _ in range(5)} == {DocumentFormat.POSTMAN}

    def test_fixture_files(self):
        assert detect_file_format(FIXTURES / "petstore.yaml") == DocumentFormat.OPENAPI_V3
        assert detect_file_format(FIXTURES / "swagger_v2.json") == DocumentFormat.OPENAPI_V2
        assert detect_file_format(FIXTURES / "sample.postman.json") == DocumentFormat.POSTMAN
        assert detect_file_format(FIXTURES / "sample.insomnia.json") == DocumentFormat.INSOMNIA
        assert detect_file_format(FIXTURES / "sample.apifox.json") == DocumentFormat.CUSTOM


class TestDetectYaml:
    def test_quoted_openapi_marker(self):
        assert detect_format('openapi: "3.0.0"\npaths: {}\n', "api.yml") == DocumentFormat.OPENAPI_V3

    def test_swagger_marker(self):
        assert detect_format("swagger: '2.0'\npaths: {}\n", "api.yaml") == DocumentFormat.OPENAPI_V2

    def test_yaml_markers_need_yaml_extension(self):
        with pytest.raises(UnsupportedFormatError):
            detect_format("openapi: 3.0.0\n", "api.txt")


class TestUnsupported:
    def test_names_every_attempted_check(self):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            detect_format(json.dumps({"hello": "world"}), "doc.json")
        checks = exc_info.value.checks
        for name in ("openapi-v2", "openapi-v3", "postman", "insomnia", "custom", "yaml"):
            assert any(check.startswith(name) for check in checks)
        assert "custom" in str(exc_info.value)

    def test_plain_text(self):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            detect_format("# API Docs\nSome text", "doc.md")
        assert any("not valid JSON" in check for check in exc_info.value.checks)
