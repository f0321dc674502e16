"""Click-based command line interface for controlling a UPS through NUT."""

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable

import click
from pydantic import ValidationError

from lib.nut import __version__
from lib.nut.client import NutClient
from lib.nut.config import Credentials, Endpoint, load_config
from lib.nut.exceptions import NutError, ProtocolError
from lib.nut.logging import log_debug, setup_logging
from lib.nut.protocol import InstantCommand, UsageType


@dataclass
class Target:
    """Everything a subcommand needs to reach the UPS."""

    endpoint: Endpoint
    credentials: Credentials | None
    ups: str
    debug: bool
    json_output: bool

    def client(self) -> NutClient:
        return NutClient(self.endpoint, self.credentials, debug=self.debug)


class UsageTypeParam(click.ParamType):
    """Usage type argument accepting short aliases such as ``vin``."""

    name = "usage_type"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> UsageType:
        if isinstance(value, UsageType):
            return value
        try:
            return UsageType.from_alias(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator for the server, UPS and output options.

    Parameters
    ----------
    func : Callable[..., Any]
        Function to decorate

    Returns
    -------
    Callable[..., Any]
        Decorated function
    """
    func = click.option(
        "--server",
        "-s",
        "host",
        help="NUT UPS server host name",
    )(func)
    func = click.option(
        "--port",
        "-p",
        type=click.IntRange(1, 65535),
        help="NUT UPS server TCP port [default: 3493]",
    )(func)
    func = click.option(
        "--ups-name",
        "-u",
        help="Name of the UPS",
    )(func)
    func = click.option(
        "--username",
        "-n",
        help="NUT server user name that has the permission to run INSTCMD",
    )(func)
    func = click.option(
        "--password",
        "-w",
        help="NUT server password",
    )(func)
    func = click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        help="Network timeout in seconds [default: 5.0]",
    )(func)
    func = click.option(
        "--config",
        "config_file",
        type=click.Path(dir_okay=False),
        help="YAML configuration file",
    )(func)
    func = click.option(
        "--json",
        "json_output",
        is_flag=True,
        help="Output in JSON format",
    )(func)
    func = click.option(
        "--debug",
        "-d",
        is_flag=True,
        help="Enable debug output of network traffic",
    )(func)
    return func


def setup_cli_logging(debug: bool, json_output: bool, level: str, log_file: str | None) -> None:
    """Set up logging for CLI.

    Parameters
    ----------
    debug : bool
        Enable debug logging
    json_output : bool
        Enable JSON output
    level : str
        Configured level name used when not debugging
    log_file : str | None
        Optional log file
    """
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.WARNING

    setup_logging(level=log_level, json_output=json_output, log_file=log_file)


@click.group()
@click.version_option(version=__version__)
@common_options
@click.pass_context
def cli(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    ups_name: str | None,
    username: str | None,
    password: str | None,
    timeout: float | None,
    config_file: str | None,
    json_output: bool,
    debug: bool,
) -> None:
    """Query and control a UPS through a NUT server."""
    config = load_config(config_file)
    setup_cli_logging(debug, json_output or config.log_json, config.log_level, config.log_file)

    ups = ups_name or config.ups
    if not ups:
        raise click.UsageError("Missing option '--ups-name' / '-u'.")

    try:
        endpoint = config.endpoint(host, port, timeout)
        credentials = config.credentials(username, password)
    except ValidationError as e:
        raise click.UsageError(f"Invalid configuration: {e.errors()[0]['msg']}") from None
    except ValueError as e:
        raise click.UsageError(str(e)) from None

    ctx.obj = Target(
        endpoint=endpoint,
        credentials=credentials,
        ups=ups,
        debug=debug,
        json_output=json_output,
    )


@cli.command("load-off")
@click.pass_obj
def load_off(target: Target) -> None:
    """Turn load off on UPS."""
    _run_instant_command(target, InstantCommand.LOAD_OFF)


@cli.command("load-on")
@click.pass_obj
def load_on(target: Target) -> None:
    """Turn load on on UPS."""
    _run_instant_command(target, InstantCommand.LOAD_ON)


@cli.command()
@click.argument("usage_types", nargs=-1, required=True, type=UsageTypeParam())
@click.pass_obj
def usage(target: Target, usage_types: tuple[UsageType, ...]) -> None:
    """Fetch usage data.

    USAGE_TYPES: voltage_in, voltage_out, current_out, power
    """
    readings: list[dict[str, str]] = []
    try:
        with target.client() as client:
            for usage_type in usage_types:
                if usage_type is UsageType.POWER:
                    value = f"{_read_power(client, target.ups):.2f}"
                    if not target.json_output:
                        click.echo(f"power: {value} W")
                else:
                    value = client.get_var(target.ups, usage_type.variable)
                    if not target.json_output:
                        click.echo(value)
                readings.append({"type": usage_type.value, "value": value})
    except (NutError, ValueError) as e:
        _fail(target, e, readings=readings)

    if target.json_output:
        _echo_json(target, readings=readings, success=True)


def _read_power(client: NutClient, ups: str) -> float:
    """Compute output power in watts from output voltage and current."""
    voltage = _parse_number(client, ups, UsageType.VOLTAGE_OUT.variable)
    current = _parse_number(client, ups, UsageType.CURRENT_OUT.variable)
    return voltage * current


def _parse_number(client: NutClient, ups: str, name: str) -> float:
    raw = client.get_var(ups, name)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Variable {name} is not numeric: {raw!r}") from None


def _run_instant_command(target: Target, command: InstantCommand) -> None:
    try:
        with target.client() as client:
            client.run_command(target.ups, command)
    except (NutError, ValueError) as e:
        _fail(target, e, command=command.value)

    if target.json_output:
        _echo_json(target, command=command.value, success=True)
    else:
        click.echo("OK")


def _echo_json(target: Target, **fields: Any) -> None:
    result = {"host": target.endpoint.host, "ups": target.ups}
    result.update(fields)
    click.echo(json.dumps(result))


def _fail(target: Target, error: Exception, **fields: Any) -> None:
    """Report an error and exit with status 1."""
    log_debug(f"Command failed: {error!r}", host=target.endpoint.host, ups=target.ups)
    if target.json_output:
        if isinstance(error, ProtocolError):
            fields["error_code"] = error.raw_code
        _echo_json(target, error=str(error), success=False, **fields)
    else:
        click.echo(f"Error: {error}", err=True)
    sys.exit(1)


if __name__ == "__main__":
    cli()
