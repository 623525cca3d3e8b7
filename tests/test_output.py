from poserp.output import (
    ApiResponse,
    ErrorInfo,
    new_error,
    new_errors,
    new_output,
    return_error,
)


def test_new_output_without_errors_has_null_error():
    assert new_output("payload") == {"data": "payload", "error": None}


def test_new_output_with_errors_lists_them():
    body = new_output([], new_error("boom", 400), new_error("bang", 404))
    assert body["data"] == []
    assert body["error"] == [
        {"message": "boom", "code": 400},
        {"message": "bang", "code": 404},
    ]


def test_new_error_fields():
    assert new_error("missing", 404) == ErrorInfo("missing", 404)


def test_new_errors_use_internal_server_error():
    errors = new_errors(RuntimeError("one"), RuntimeError("two"))
    assert [e.message for e in errors] == ["one", "two"]
    assert all(e.code == 500 for e in errors)


def test_new_errors_empty():
    assert new_errors() == []


def test_return_error_builds_500_response():
    response = return_error(RuntimeError("branch not found"))
    assert isinstance(response, ApiResponse)
    assert response.status == 500
    assert response.body["data"] is None
    assert response.body["error"] == [{"message": "branch not found", "code": 500}]


def test_api_response_default_status_ok():
    assert ApiResponse(body={}).status == 200