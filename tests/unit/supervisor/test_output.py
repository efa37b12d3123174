"""Unit tests for the console output sink."""

from io import StringIO

import pendulum
import pytest
from rich.console import Console

from dpr.exceptions import ServiceSpawnError
from dpr.supervisor import (
    ConcatenatedOutputSink,
    LogLine,
    OutputSink,
    ServiceRuntimeState,
    ServiceStatus,
)


def make_line(content: str, stream: str = "stdout") -> LogLine:
    return LogLine(
        timestamp=pendulum.datetime(2024, 5, 1, 12, 0, 0),
        content=content,
        stream=stream,  # pyright: ignore[reportArgumentType]
    )


@pytest.fixture
def output() -> StringIO:
    return StringIO()


@pytest.fixture
def plain_sink(output: StringIO) -> ConcatenatedOutputSink:
    console = Console(file=output, width=200, color_system=None, highlight=False)
    return ConcatenatedOutputSink(console)


class TestWriteLine:
    def test_prefixes_with_id_and_pid(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        plain_sink.write_line("api", 4242, make_line("listening on 3000"))

        assert output.getvalue() == "[api:4242] listening on 3000\n"

    def test_prefix_without_pid(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        plain_sink.write_line("api", None, make_line("hello"))

        assert output.getvalue() == "[api] hello\n"

    def test_markup_in_content_is_printed_verbatim(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        plain_sink.write_line("api", 1, make_line("[bold]not markup[/bold]"))

        assert output.getvalue() == "[api:1] [bold]not markup[/bold]\n"

    def test_uses_service_colour_for_prefix(self, output: StringIO) -> None:
        console = Console(file=output, force_terminal=True, color_system="standard")
        sink = ConcatenatedOutputSink(console, colors={"web": "cyan"})

        sink.write_line("web", 7, make_line("hi"))
        sink.write_line("api", 8, make_line("hi"))

        assert "\x1b[1;36m[web:7]" in output.getvalue()
        assert "\x1b[1;34m[api:8]" in output.getvalue()


class TestWriteState:
    def test_formats_status_with_pid(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        state = ServiceRuntimeState(status=ServiceStatus.STARTING, pid=99)

        plain_sink.write_state("db", state)

        assert output.getvalue() == "[db] STARTING (pid=99)\n"

    def test_formats_exit_code(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        state = ServiceRuntimeState(status=ServiceStatus.CRASHED, exit_code=1)

        plain_sink.write_state("db", state)

        assert output.getvalue() == "[db] CRASHED exit_code=1\n"

    def test_lists_dependencies_being_waited_on(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        state = ServiceRuntimeState(
            status=ServiceStatus.WAITING, waiting_for=("db", "cache")
        )

        plain_sink.write_state("api", state)

        assert output.getvalue() == "[api] WAITING - waiting for db, cache\n"


class TestWriteError:
    def test_formats_error_message(
        self, plain_sink: ConcatenatedOutputSink, output: StringIO
    ) -> None:
        error = ServiceSpawnError("Failed to start service 'api'", service_id="api")

        plain_sink.write_error("api", error)

        assert output.getvalue() == "[api] ERROR - Failed to start service 'api'\n"


def test_sink_satisfies_protocol(plain_sink: ConcatenatedOutputSink) -> None:
    assert isinstance(plain_sink, OutputSink)
