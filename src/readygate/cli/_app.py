"""The command-line interface for readygate."""

from typing import Annotated

import anyio
import httpx
from cyclopts import App, Parameter
from rich.console import Console

from readygate import __version__
from readygate.duration import parse_duration
from readygate.exceptions import (
    GrammarError,
    HttpClientError,
    LogChannelLagError,
    LogFilterError,
)
from readygate.rules import parse_rules
from readygate.supervisor import (
    DEFAULT_LOG_CAPACITY,
    GateConfig,
    Supervisor,
    SupervisorResult,
)
from readygate.utils import DEFAULT_LOG_FILTERS, LogFormatType, configure_logging

from ._shared import ExitCode, exit_code_for, exit_with_error

HELP = "Launch a server process and wait for it to become ready."

RULES_HELP = (
    "Readiness expression, e.g. 'tcp port 8080 ready and matches ^listening or after 30s'. "
    "Rules: 'after <duration>', 'tcp port <n> ready', 'http [port <n>] ready', "
    "'https [port <n>] ready', 'matches <pattern>'. 'and' binds tighter than 'or'."
)


def _first_error(group: BaseExceptionGroup) -> BaseException:
    error: BaseException = group
    while isinstance(error, BaseExceptionGroup):
        error = error.exceptions[0]
    return error


def build_http_client() -> httpx.AsyncClient:
    """Build the HTTP client used by HTTP and HTTPS probes.

    Certificates are not verified; a probe only checks that something answers.

    Raises:
        HttpClientError: If the client cannot be constructed.
    """
    try:
        return httpx.AsyncClient(
            verify=False,  # noqa: S501
            headers={"user-agent": f"readygate/{__version__}"},
        )
    except (OSError, ValueError) as e:
        msg = f"could not build HTTP client: {e}"
        raise HttpClientError(msg) from e


async def supervise(config: GateConfig) -> SupervisorResult:
    """Run the supervisor for ``config`` with a fresh HTTP client."""
    async with build_http_client() as client:
        return await Supervisor(config, client).run()


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="readygate",
        help=HELP,
        version=__version__,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.default
    def gate(  # pyright: ignore[reportUnusedFunction]
        *command: Annotated[
            str,
            Parameter(allow_leading_hyphen=True, help="Command to run and its arguments."),
        ],
        rules: Annotated[str, Parameter(name=["--rules", "-r"], help=RULES_HELP)],
        ready_timeout: Annotated[
            str | None,
            Parameter(
                name=["--ready-timeout", "-t"],
                help="Kill and relaunch the command if it is not ready in time, e.g. '30s'.",
            ),
        ] = None,
        retries: Annotated[
            int | None,
            Parameter(
                name=["--retries", "-R"],
                help="Give up after this many failed attempts in a row. Unlimited if unset.",
            ),
        ] = None,
        log_filters: Annotated[
            str | None,
            Parameter(
                name=["--log-filters", "-l"],
                env_var="READYGATE_LOG",
                help=f"Log filter directives, e.g. 'warn,readygate.rules=debug' "
                f"(default: {DEFAULT_LOG_FILTERS}).",
            ),
        ] = None,
        log_format: Annotated[
            LogFormatType, Parameter(name="--log-format", help="Log output format.")
        ] = "text",
        log_capacity: Annotated[
            int,
            Parameter(
                name="--log-capacity",
                help="Lines of command output retained for slow log readers.",
            ),
        ] = DEFAULT_LOG_CAPACITY,
    ) -> None:
        """Launch COMMAND and gate on the readiness rules.

        Child stdout is mirrored to stdout, logs go to stderr. Put the command
        after '--' so its own options are not parsed by readygate.

        Args:
            command: Command to run and its arguments.
            rules: Readiness expression.
            ready_timeout: Time allowed for the command to become ready.
            retries: Failed attempts allowed in a row.
            log_filters: Log filter directives.
            log_format: Log output format.
            log_capacity: Lines of output retained for slow log readers.
        """
        try:
            configure_logging(log_filters, log_format=log_format)
        except LogFilterError as e:
            exit_with_error(str(e), console=error_console)

        try:
            or_group = parse_rules(rules)
            timeout = parse_duration(ready_timeout) if ready_timeout is not None else None
        except GrammarError as e:
            exit_with_error(e.render(), console=error_console)

        if not command:
            exit_with_error("no command given (pass it after '--')", console=error_console)
        if retries is not None and retries < 0:
            exit_with_error("--retries must not be negative", console=error_console)
        if log_capacity < 1:
            exit_with_error("--log-capacity must be at least 1", console=error_console)

        config = GateConfig(
            command=tuple(command),
            rules=or_group,
            ready_timeout=timeout,
            retries=retries,
            log_capacity=log_capacity,
        )

        failure: tuple[str, ExitCode] | None = None
        result: SupervisorResult | None = None
        try:
            result = anyio.run(supervise, config)
        except* LogChannelLagError as group:
            failure = (str(_first_error(group)), ExitCode.LOG_LAG)
        except* HttpClientError as group:
            failure = (str(_first_error(group)), ExitCode.HTTP_CLIENT_ERROR)

        if failure is not None:
            exit_with_error(failure[0], failure[1], console=error_console)
        assert result is not None  # noqa: S101
        raise SystemExit(exit_code_for(result))

    return app


def main() -> None:
    """Default entrypoint for the `readygate` CLI."""
    app = create_app()
    app()
