"""
CLI tests: argument handling, exit codes and machine-readable output.
"""

import json
from datetime import date

import pytest

from apiharness.cli import main


@pytest.fixture
def petstore_file(tmp_path, petstore_doc):
    path = tmp_path / "petstore.json"
    path.write_text(json.dumps(petstore_doc))
    return str(path)


@pytest.fixture
def users_file(tmp_path, users_doc):
    path = tmp_path / "users.json"
    path.write_text(json.dumps(users_doc))
    return str(path)


@pytest.fixture
def cases_file(tmp_path):
    def write(cases):
        path = tmp_path / "cases.json"
        path.write_text(json.dumps(cases))
        return str(path)
    return write


# ==================== samples / generate ====================

def test_samples(capsys):
    assert main(["samples"]) == 0
    cases = json.loads(capsys.readouterr().out)
    assert [c["endpoint"] for c in cases] == ["/api/user/profile", "/api/users", "/api/users/123"]


def test_samples_to_file(tmp_path):
    out = tmp_path / "samples.json"
    assert main(["samples", "-o", str(out)]) == 0
    assert len(json.loads(out.read_text())) == 3


def test_generate_selected(users_file, capsys):
    assert main(["generate", users_file, "--select", "get:/users/{id}"]) == 0
    [case] = json.loads(capsys.readouterr().out)
    assert case == {
        "name": "GET /users/{id}",
        "description": "Test GET /users/{id}",
        "method": "GET",
        "endpoint": "/users/{id}",
        "expectedStatus": 200,
    }


def test_generate_all(petstore_file, capsys):
    assert main(["generate", petstore_file, "--all"]) == 0
    cases = json.loads(capsys.readouterr().out)
    assert len(cases) == 5
    post = next(c for c in cases if c["method"] == "POST")
    assert post["body"] == {"name": "Rex", "kind": "dog", "age": 123}


def test_generate_requires_selection(petstore_file):
    assert main(["generate", petstore_file]) == 2


def test_generate_unknown_endpoint(petstore_file):
    assert main(["generate", petstore_file, "--select", "GET:/unicorns"]) == 4


def test_missing_spec_file(tmp_path):
    assert main(["endpoints", str(tmp_path / "absent.yaml")]) == 2


def test_endpoints(petstore_file, capsys):
    assert main(["endpoints", petstore_file]) == 0
    out = capsys.readouterr().out
    for tag in ("pets", "admin", "default"):
        assert tag in out


# ==================== sample-schema ====================

def test_sample_schema(petstore_file, capsys):
    assert main(["sample-schema", petstore_file, "POST:/pets"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["endpoint"] == "POST:/pets"
    assert out["request"] == {"name": "Rex", "kind": "dog", "age": 42}
    assert out["response"] is None


def test_sample_schema_required_only(petstore_file, capsys):
    assert main(["sample-schema", petstore_file, "POST:/pets", "--required-only"]) == 0
    assert json.loads(capsys.readouterr().out)["request"] == {"name": "Rex"}


def test_sample_schema_yaml_integer_response_codes(tmp_path, capsys):
    spec = tmp_path / "pets.yaml"
    spec.write_text(
        "openapi: 3.0.0\n"
        "paths:\n"
        "  /pets:\n"
        "    get:\n"
        "      responses:\n"
        "        200:\n"
        "          content:\n"
        "            application/json:\n"
        "              schema:\n"
        "                type: object\n"
        "                properties:\n"
        "                  id: {type: integer}\n"
    )
    assert main(["sample-schema", str(spec), "GET:/pets"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["request"] is None
    assert out["response"] == {"id": 42}


def test_sample_schema_unknown(petstore_file):
    assert main(["sample-schema", petstore_file, "PATCH:/pets"]) == 4


# ==================== run ====================

def test_run_all_passing(live_server, cases_file, capsys):
    path = cases_file([
        {"name": "user", "method": "GET", "endpoint": "/users/5"},
        {"name": "create", "method": "POST", "endpoint": "/things", "body": {"a": 1}, "expectedStatus": 201},
    ])
    assert main(["run", path, "--base-url", live_server, "--format", "json"]) == 0

    results = json.loads(capsys.readouterr().out)
    assert [r["status"] for r in results] == [200, 201]
    assert results[0]["response"] == {"id": "5", "name": "Ada"}
    assert all(r["ok"] for r in results)


def test_run_with_failure(live_server, cases_file):
    path = cases_file([{"method": "GET", "endpoint": "/missing"}])
    assert main(["run", path, "--base-url", live_server]) == 1


def test_run_export(live_server, cases_file, tmp_path):
    path = cases_file([{"method": "GET", "endpoint": "/ping"}])
    export_dir = tmp_path / "exports"
    assert main(["run", path, "--base-url", live_server, "--export", str(export_dir)]) == 0
    exported = export_dir / f"api-test-results-{date.today().isoformat()}.json"
    assert json.loads(exported.read_text())[0]["response"] == "pong"


def test_run_with_stored_token(live_server, cases_file, capsys):
    assert main(["tokens", "add", "--name", "dev", "--secret", "abc", "--type", "Bearer"]) == 0
    capsys.readouterr()
    assert main(["tokens", "list", "--format", "json"]) == 0
    [token] = json.loads(capsys.readouterr().out)

    path = cases_file([{"method": "GET", "endpoint": "/whoami"}])
    assert main(["run", path, "--base-url", live_server, "--token-id", token["id"], "--format", "json"]) == 0
    [result] = json.loads(capsys.readouterr().out)
    assert result["response"] == {"authorization": "Bearer abc"}


def test_run_unknown_token(cases_file):
    path = cases_file([{"method": "GET", "endpoint": "/x"}])
    assert main(["run", path, "--token-id", "nope"]) == 4


def test_run_invalid_cases(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{broken")
    assert main(["run", str(path)]) == 2


def test_run_empty_case_list(cases_file):
    assert main(["run", cases_file([])]) == 2


def test_run_missing_cases_file(tmp_path):
    assert main(["run", str(tmp_path / "none.json")]) == 4


# ==================== tokens ====================

def test_tokens_list_masks_secrets(capsys):
    main(["tokens", "add", "--name", "ci", "--secret", "hunter2", "--type", "API Key"])
    capsys.readouterr()
    assert main(["tokens", "list", "--format", "json"]) == 0
    out = capsys.readouterr().out
    assert "hunter2" not in out
    [token] = json.loads(out)
    assert token["token"] == "***"
    assert token["type"] == "API Key"


def test_tokens_add_blank_name():
    assert main(["tokens", "add", "--name", " ", "--secret", "x"]) == 2


def test_tokens_delete(capsys):
    main(["tokens", "add", "--name", "ci", "--secret", "s"])
    main(["tokens", "list", "--format", "json"])
    out = capsys.readouterr().out
    token_id = json.loads(out[out.index("["):])[0]["id"]

    assert main(["tokens", "delete", "--id", token_id]) == 0
    assert main(["tokens", "delete", "--id", token_id]) == 4
