import logging

from yijing.core.logging import SecretRedactingFilter


def _record(msg, *args):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


def test_bearer_tokens_are_masked():
    record = _record("headers: Authorization: Bearer sk-abc.123")
    SecretRedactingFilter().filter(record)
    assert record.getMessage() == "headers: Authorization: Bearer ***"


def test_configured_secret_is_masked_in_args():
    record = _record("calling with key=%s", "sk-secret-value")
    assert SecretRedactingFilter(["sk-secret-value"]).filter(record) is True
    assert "sk-secret-value" not in record.getMessage()
    assert "***" in record.getMessage()


def test_clean_record_is_untouched():
    record = _record("count=%d", 3)
    SecretRedactingFilter(["", "k"]).filter(record)
    assert record.args == (3,)
