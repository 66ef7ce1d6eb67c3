#!/usr/bin/env python3
"""
throttlepipe CLI

Copies a file (or standard input) to standard output at a bounded rate,
showing live progress on a terminal device.

Usage:
    throttlepipe FILE > copy              # copy with progress on /dev/tty
    throttlepipe -b 10K FILE > copy       # at most 10 KiB/s
    cat FILE | throttlepipe -b 1M -s      # silent, from stdin
    throttlepipe -g -t pts/2 FILE         # bar graph on /dev/pts/2
    throttlepipe -a FILE > copy           # also echo the data to the tty

Exit codes:
    0   transfer completed
    1   no FILE given and stdin is a terminal
    9   parameter, config, setup, read or write error
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .config import Config, Options, load_config, normalize_tty
from .errors import InteractiveInputError, ParameterError, PipeError, SetupError
from .speed import parse_binary_prefix
from .transfer import limited_pipe

logger = logging.getLogger(__name__)

# stdout carries the data, so everything for humans goes to stderr
console = Console(stderr=True)


def setup_logging(verbose: bool = False, level_name: str = 'WARNING'):
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


class PipeCommand(click.Command):
    """Command whose usage errors exit with the parameter-error status."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = ParameterError.exit_code
            raise


def build_options(config: Config, bandwidth: str, tty: Optional[str], silent: bool,
                  graph: bool, show_data: bool, filenames: tuple) -> Options:
    """
    Turn command-line values into run options.

    Raises:
        ParameterError: bad rate string or more than one file
    """
    rate = 0
    if bandwidth:
        try:
            rate = parse_binary_prefix(bandwidth)
        except ParameterError as e:
            raise ParameterError(f"Parameter Error (bandwidth:{bandwidth}) {e}") from e

    if len(filenames) > 1:
        raise ParameterError("Parameter Error: only one input file is supported")
    filename = filenames[0] if filenames else None

    return Options(
        rate=rate,
        tty=normalize_tty(tty or config.tty),
        silent=silent,
        graph=graph and filename is not None,
        echo=show_data,
        filename=filename,
        block_size=config.block_size,
        tick_interval=config.tick_interval,
        poll_interval=config.poll_interval,
    )


async def run_pipe(options: Options) -> int:
    """
    Open the input and run the pipe to standard output.

    Returns:
        Bytes transferred
    """
    if options.filename is None:
        if sys.stdin.isatty():
            raise InteractiveInputError("Can't open file or stdin")
        return await limited_pipe(aiofiles.stdin_bytes, aiofiles.stdout_bytes, 0, options)

    file_path = Path(options.filename).absolute()
    try:
        stat = await aiofiles.os.stat(file_path)
        source = await aiofiles.open(file_path, 'rb')
    except OSError as e:
        raise SetupError(f"File Open Error: {e}") from e

    try:
        return await limited_pipe(source, aiofiles.stdout_bytes, stat.st_size, options)
    finally:
        await source.close()


@click.command(cls=PipeCommand)
@click.option('-b', 'bandwidth', default='', help='Bytes per second, e.g. 10K, 5M, 1MiB.')
@click.option('-t', 'tty', default=None, help='tty device name. default: tty')
@click.option('-s', 'silent', is_flag=True, help='Silent mode')
@click.option('-g', 'graph', is_flag=True, help='Graph mode (needs a FILE)')
@click.option('-a', 'show_data', is_flag=True, help='Echo all data to the tty')
@click.option('-d', 'debug', is_flag=True, help='Debug mode')
@click.option('-c', '--config', 'config_path', type=click.Path(path_type=Path),
              default=None, help='JSON config file')
@click.argument('filenames', nargs=-1)
def cli(bandwidth, tty, silent, graph, show_data, debug, config_path, filenames):
    """Copy FILE (or stdin) to stdout with rate limiting and progress."""
    try:
        config = load_config(config_path)
        setup_logging(debug, config.log_level)
        options = build_options(config, bandwidth, tty, silent, graph, show_data, filenames)
        transferred = asyncio.run(run_pipe(options))
    except PipeError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)

    logger.debug(f"Transferred {transferred:,} bytes")


if __name__ == "__main__":
    cli()
