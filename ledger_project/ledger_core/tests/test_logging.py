import json
import logging

import pytest

from ledger_project.logging_config import JsonFormatter, get_logging_config


def make_record(**extra):
    record = logging.LogRecord("ledger_core.services.posting", logging.INFO, __file__, 1,
                               "Invoice created", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_keeps_extra_fields():
    line = json.loads(JsonFormatter().format(make_record(invoice_id=7, total="1100.00")))
    assert line["message"] == "Invoice created"
    assert line["level"] == "INFO"
    assert line["extra"] == {"invoice_id": 7, "total": "1100.00"}


def test_json_formatter_stringifies_unserializable_values():
    line = json.loads(JsonFormatter().format(make_record(organization=object())))
    assert isinstance(line["extra"]["organization"], str)


@pytest.mark.parametrize("debug, formatter", [(True, "verbose"), (False, "json")])
def test_format_follows_debug_flag(monkeypatch, debug, formatter):
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    config = get_logging_config(debug)
    assert config["handlers"]["console"]["formatter"] == formatter
    assert config["loggers"]["ledger_core"]["propagate"] is False
