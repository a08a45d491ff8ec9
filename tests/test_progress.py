import logging

import pytest

from denovo_runner.utils.logging_utils import TqdmLoggingHandler, configure_logging
from denovo_runner.utils.progress import ConsoleReporter


def test_console_hides_tool_output_only(capsys):
    reporter = ConsoleReporter(show_progress=False, echo_tool_output=False)

    reporter.append_report("/opt/tool/bin -file a.mgf", timestamp=False)
    reporter.append_report("tool says hi", timestamp=False, tool_output=True)
    reporter.append_report("Starting ", timestamp=False, new_line=False)
    reporter.append_report("PepNovo+.", timestamp=False)

    out = capsys.readouterr().out.splitlines()
    assert out == ["/opt/tool/bin -file a.mgf", "Starting PepNovo+."]
    assert reporter.lines == ["/opt/tool/bin -file a.mgf", "tool says hi", "Starting PepNovo+."]


def test_console_echoes_tool_output_by_default(capsys):
    reporter = ConsoleReporter(show_progress=False)
    reporter.append_report("tool says hi", timestamp=False, tool_output=True)
    assert capsys.readouterr().out == "tool says hi\n"


def test_secondary_counter_returns_previous_value():
    reporter = ConsoleReporter(show_progress=False)
    assert reporter.increase_secondary_progress_counter() == 0
    assert reporter.increase_secondary_progress_counter(5) == 1
    assert reporter.secondary_progress_counter == 6


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    target = logging.getLogger("denovo_runner")
    handlers = {h: h.level for h in root.handlers}
    levels = (root.level, target.level)
    yield
    for handler in list(root.handlers):
        if isinstance(handler, TqdmLoggingHandler):
            root.removeHandler(handler)
    for handler, level in handlers.items():
        handler.setLevel(level)
        if type(handler) is logging.StreamHandler:
            root.addHandler(handler)
    root.setLevel(levels[0])
    target.setLevel(levels[1])


def test_configure_logging_routes_through_tqdm(restore_logging):
    root = logging.getLogger()
    root.addHandler(logging.StreamHandler())

    configure_logging(True)
    configure_logging(True)

    assert logging.getLogger("denovo_runner").level == logging.DEBUG
    assert [type(h) for h in root.handlers if isinstance(h, TqdmLoggingHandler)] == [TqdmLoggingHandler]
    assert not any(type(h) is logging.StreamHandler for h in root.handlers)


def test_tqdm_handler_writes_to_stderr(restore_logging, capsys):
    configure_logging(False)
    logging.getLogger("denovo_runner.test").warning("disk almost full")
    assert "WARNING | denovo_runner.test | disk almost full" in capsys.readouterr().err
