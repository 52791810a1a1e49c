"""Log redaction and structured event lines."""
import json
import logging

from content_store.core.config import Settings, get_settings
from content_store.core.logging_config import ROOT_LOGGER, configure_logging, log_event
from content_store.core.logging_redaction import redact_for_log, redact_uri
from content_store.services.content_store import ContentStore

from tests.conftest import TEST_CONTAINER


def test_redacts_credential_keys():
    out = redact_for_log({
        "aws_secret_access_key": "abc",
        "AWS_ACCESS_KEY_ID": "AKIA",
        "container": "blobs",
        "nested": {"connection_string": "x", "n": 1},
    })
    assert out == {
        "aws_secret_access_key": "[REDACTED]",
        "AWS_ACCESS_KEY_ID": "[REDACTED]",
        "container": "blobs",
        "nested": {"connection_string": "[REDACTED]", "n": 1},
    }


def test_redacts_connection_strings_and_bearer_tokens():
    assert redact_for_log("DefaultEndpointsProtocol=https;AccountName=a;AccountKey=xyz") == "[REDACTED]"
    assert redact_for_log("Bearer abc.def") == "[REDACTED]"
    assert redact_for_log(["plain", None]) == ["plain", None]


def test_redact_uri_strips_query_and_userinfo():
    assert redact_uri("https://user:pw@host/bucket/key?X-Amz-Signature=abc") == "https://[REDACTED]@host/bucket/key?[REDACTED]"
    assert redact_uri("s3://bucket/key") == "s3://bucket/key"
    assert redact_uri("not a uri") == "not a uri"


def test_configure_logging_installs_single_handler():
    logger = configure_logging(Settings(debug=True))
    configure_logging(Settings(debug=True))
    try:
        assert logger.name == ROOT_LOGGER
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
    finally:
        for h in logger.handlers[:]:
            logger.removeHandler(h)
        logger.setLevel(logging.NOTSET)


def test_log_event_plain_carries_redacted_extra(caplog):
    logger = logging.getLogger("content_store.test")
    with caplog.at_level(logging.INFO, logger="content_store.test"):
        log_event(logger, logging.INFO, "copy_started", "Copy into [%s] started", "c/b",
                  source_uri="https://h/p?sig=1")

    record = caplog.records[-1]
    assert record.getMessage() == "Copy into [c/b] started"
    assert record.event == "copy_started"
    assert record.source_uri == "https://h/p?[REDACTED]"


def test_log_event_json(caplog, monkeypatch):
    monkeypatch.setenv("LOG_JSON", "1")
    get_settings.cache_clear()
    logger = logging.getLogger("content_store.test")
    try:
        with caplog.at_level(logging.INFO, logger="content_store.test"):
            log_event(logger, logging.INFO, "container_created", "ignored %s", "x", container="blobs")
    finally:
        get_settings.cache_clear()

    assert json.loads(caplog.records[-1].getMessage()) == {"event": "container_created", "container": "blobs"}


async def test_store_logs_json_from_its_own_settings(settings, caplog, monkeypatch):
    monkeypatch.setenv("LOG_JSON", "0")
    get_settings.cache_clear()
    store = ContentStore(TEST_CONTAINER, settings=settings.model_copy(update={"log_json": True}))
    try:
        with caplog.at_level(logging.INFO, logger="content_store.store"):
            await store.resolve()
    finally:
        await store.close()
        get_settings.cache_clear()

    assert json.loads(caplog.records[-1].getMessage()) == {"event": "container_created", "container": TEST_CONTAINER}


def test_log_event_explicit_flag_overrides_settings(caplog):
    logger = logging.getLogger("content_store.test")
    with caplog.at_level(logging.INFO, logger="content_store.test"):
        log_event(logger, logging.INFO, "container_attached", "Using [%s]", "blobs", log_json=False, container="blobs")

    assert caplog.records[-1].getMessage() == "Using [blobs]"
