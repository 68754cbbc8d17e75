from app.services.result import (
    MALFORMED_EVENT,
    NOTIFY_ERROR,
    PERSISTENCE_ERROR,
    UNKNOWN_CONVERSATION,
    Result,
)


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success({"name": "conversations/c1/messages/m1"})
        assert result.ok is True
        assert result.value == {"name": "conversations/c1/messages/m1"}
        assert result.error is None

    def test_success_without_value(self):
        result = Result.success()
        assert result.ok is True
        assert result.value is None


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Business Messages returned 503", NOTIFY_ERROR)
        assert result.ok is False
        assert result.error == "Business Messages returned 503"
        assert result.error_code == NOTIFY_ERROR
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"

    def test_as_context(self):
        result = Result.failure("database is locked", PERSISTENCE_ERROR)
        assert result.as_context() == {"error": "database is locked", "error_code": PERSISTENCE_ERROR}


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        result = Result.success("actual value")
        assert result.unwrap_or("default") == "actual value"

    def test_unwrap_or_returns_default_on_failure(self):
        result = Result.failure("Error", UNKNOWN_CONVERSATION)
        assert result.unwrap_or("default") == "default"


def test_error_codes_are_distinct():
    codes = [UNKNOWN_CONVERSATION, MALFORMED_EVENT, PERSISTENCE_ERROR, NOTIFY_ERROR]
    assert len(set(codes)) == len(codes)
