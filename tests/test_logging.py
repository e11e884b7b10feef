import logging

from app.logging import ErrorStackFilter, PhoneMaskFilter, log_exception, mask_phone


def make_record(msg, args=(), level=logging.INFO):
    return logging.LogRecord("test", level, __file__, 1, msg, args, None)


def test_mask_phone_hides_middle_digits():
    assert mask_phone("user 5583999990000 paused") == "user 5583*****0000 paused"
    assert mask_phone("user 558332411234") == "user 5583****1234"


def test_mask_phone_leaves_other_numbers():
    assert mask_phone("saved intake 42 at 25/10/2025 14:30") == (
        "saved intake 42 at 25/10/2025 14:30"
    )


def test_phone_filter_masks_formatted_args():
    record = make_record("Message from %s", ("5583999990000",))

    assert PhoneMaskFilter().filter(record)
    assert record.getMessage() == "Message from 5583*****0000"


def test_error_stack_is_attached_once():
    record = make_record("calendar failed", level=logging.ERROR)
    stack_filter = ErrorStackFilter()

    stack_filter.filter(record)
    first = record.getMessage()
    stack_filter.filter(record)

    assert first.startswith("calendar failed\nStack:\n")
    assert record.getMessage() == first


def test_info_records_get_no_stack():
    record = make_record("all good")
    ErrorStackFilter().filter(record)
    assert record.getMessage() == "all good"


def test_log_exception_includes_traceback():
    logger = logging.getLogger("tests.log_exception")
    records = []

    class Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = Collect()
    logger.addHandler(handler)
    try:
        try:
            raise RuntimeError("database is down")
        except RuntimeError as e:
            log_exception(logger, "Failed to save intake", e)
    finally:
        logger.removeHandler(handler)

    message = records[0].getMessage()
    assert message.startswith("Failed to save intake: database is down")
    assert "Traceback" in message
