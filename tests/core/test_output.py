"""Tests for the unified log() output helper."""

import threading

from loguru import logger

from watch_minion.core.output import is_silent, log, setup_loguru, silenced


class TestLog:
    def test_prints_and_logs(self, capsys):
        messages = []
        sink_id = logger.add(messages.append, format="{level}:{message}")
        try:
            log("Sync complete", level="info")
        finally:
            logger.remove(sink_id)

        assert capsys.readouterr().out == "Sync complete\n"
        assert messages == ["INFO:Sync complete\n"]

    def test_silenced_block_only_logs(self, capsys):
        with silenced():
            assert is_silent()
            log("background detail")
        assert not is_silent()

        assert capsys.readouterr().out == ""

    def test_silenced_false_is_a_noop(self, capsys):
        with silenced(False):
            log("visible")

        assert capsys.readouterr().out == "visible\n"

    def test_silent_thread_attribute(self, capsys):
        def worker():
            log("from silent thread")

        thread = threading.Thread(target=worker)
        thread.silent_logging = True
        thread.start()
        thread.join()

        assert capsys.readouterr().out == ""


def test_setup_loguru_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "watch-minion.log"

    setup_loguru(log_file, level="DEBUG")
    logger.debug("hello file")
    logger.remove()

    assert "hello file" in log_file.read_text()
