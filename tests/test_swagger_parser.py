import json
from pathlib import Path

import pytest

from e2e_test_agent.errors import DocumentParseError
from e2e_test_agent.parser.swagger import OpenApiParser

FIXTURES = Path(__file__).parent / "fixtures"


def _parse(name: str):
    return OpenApiParser().parse((FIXTURES / name).read_text(encoding="utf-8"))


class TestOpenApiV3Parser:
    def test_document_metadata(self):
        doc = _parse("petstore.yaml")
        assert doc.title == "Swagger Petstore"
        assert doc.version == "1.0.0"
        assert doc.source_format == "openapi-v3"
        assert "Pet" in doc.schemas

    def test_base_url_substitutes_server_variables(self):
        doc = _parse("petstore.yaml")
        assert doc.base_url == "https://api.petstore.example.com/v1"

    def test_parse_petstore_endpoints_count(self):
        doc = _parse("petstore.yaml")
        assert len(doc.endpoints) == 3

    def test_inline_json_document(self):
        doc = OpenApiParser().parse(
            json.dumps(
                {
                    "openapi": "3.0.0",
                    "info": {"title": "Inline", "version": "1"},
                    "paths": {"/a": {"get": {"responses": {}}}, "/b": {"post": {"responses": {}}}},
                }
            )
        )
        assert [(e.path, e.method.upper()) for e in doc.endpoints] == [("/a", "GET"), ("/b", "POST")]

    def test_parse_get_pets(self):
        get_pets = _parse("petstore.yaml").find("/pets", "GET")
        assert get_pets.summary == "List all pets"
        assert get_pets.tags == ["pets"]
        limit = [p for p in get_pets.parameters if p.name == "limit"][0]
        assert limit.location == "query"
        assert limit.required is False
        assert limit.param_type == "integer"
        assert limit.constraints == {"maximum": 100}

    def test_header_params_become_headers(self):
        get_pets = _parse("petstore.yaml").find("/pets", "GET")
        assert get_pets.headers == {"X-Request-Id": "test-request"}

    def test_refs_are_resolved_in_response_schema(self):
        get_pets = _parse("petstore.yaml").find("/pets", "GET")
        items = get_pets.response_schemas["200"]["items"]
        assert "$ref" not in items
        assert items["required"] == ["id", "name"]

    def test_post_pets_request_body_and_example(self):
        post_pets = _parse("petstore.yaml").find("/pets", "POST")
        assert "name" in post_pets.request_schema["properties"]
        assert post_pets.request_examples == [{"name": "Rex", "tag": "dog"}]
        assert post_pets.content_type == "application/json"
        assert post_pets.response_schemas["400"] is None
        assert post_pets.success_status() == 201

    def test_path_level_params_are_merged(self):
        get_pet = _parse("petstore.yaml").find("/pets/{petId}", "GET")
        assert get_pet.parameters[0].name == "petId"
        assert get_pet.parameters[0].location == "path"
        assert get_pet.parameters[0].required is True

    def test_named_response_examples(self):
        get_pet = _parse("petstore.yaml").find("/pets/{petId}", "GET")
        assert get_pet.response_examples == {"200": [{"id": 1, "name": "Rex"}]}


class TestSwaggerV2Parser:
    def test_base_url_from_host(self):
        doc = _parse("swagger_v2.json")
        assert doc.base_url == "https://users.example.com/api"
        assert doc.source_format == "openapi-v2"

    def test_body_param_becomes_request_schema(self):
        create = _parse("swagger_v2.json").find("/users", "POST")
        assert create.request_schema["properties"]["email"]["format"] == "email"
        assert create.request_examples == [{"id": 7, "email": "seven@example.com"}]
        assert create.parameters == []
        assert create.response_examples["201"] == [{"id": 7, "email": "seven@example.com"}]

    def test_inline_param_constraints(self):
        get_user = _parse("swagger_v2.json").find("/users/{id}", "GET")
        assert get_user.parameters[0].param_type == "integer"
        assert get_user.parameters[0].constraints == {"minimum": 1}
        assert get_user.response_schemas["200"]["required"] == ["id", "email"]

    def test_form_data_params(self):
        upload = _parse("swagger_v2.json").find("/avatar", "POST")
        assert upload.content_type == "multipart/form-data"
        assert upload.request_schema["required"] == ["file"]
        assert upload.success_status() == 204


class TestOpenApiErrors:
    def test_yaml_syntax_error_reports_line(self):
        with pytest.raises(DocumentParseError) as exc_info:
            OpenApiParser().parse("openapi: 3.0.0\npaths: [unclosed\n")
        assert exc_info.value.location.startswith("line ")

    def test_non_mapping_document(self):
        with pytest.raises(DocumentParseError) as exc_info:
            OpenApiParser().parse("- a\n- b\n")
        assert exc_info.value.location == "<root>"

    def test_missing_paths(self):
        with pytest.raises(DocumentParseError) as exc_info:
            OpenApiParser().parse("openapi: 3.0.0\ninfo:\n  title: x\n")
        assert exc_info.value.location == "paths"
        assert "(at paths)" in str(exc_info.value)

    def test_path_item_not_mapping(self):
        with pytest.raises(DocumentParseError) as exc_info:
            OpenApiParser().parse(json.dumps({"openapi": "3.0.0", "paths": {"/x": "bad"}}))
        assert exc_info.value.location == "paths./x"

    def test_cyclic_refs_do_not_recurse_forever(self):
        doc = {
            "openapi": "3.0.0",
            "components": {"schemas": {"Node": {"type": "object", "properties": {"next": {"$ref": "#/components/schemas/Node"}}}}},
            "paths": {
                "/nodes": {
                    "get": {
                        "responses": {
                            "200": {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/Node"}}}}
                        }
                    }
                }
            },
        }
        parsed = OpenApiParser().parse(json.dumps(doc))
        schema = parsed.endpoints[0].response_schemas["200"]
        assert schema["properties"]["next"] == {"$ref": "#/components/schemas/Node"}
