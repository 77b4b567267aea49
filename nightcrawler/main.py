#!/usr/bin/env python3
"""
Nightcrawler - attack-surface fuzzing and injection scanning toolkit

Main CLI entry point for the application.
"""

from itertools import islice
from pathlib import Path
from typing import Optional

import click
import httpx
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from nightcrawler import __version__
from nightcrawler.core.config import Config, load_config
from nightcrawler.core.exceptions import NightcrawlerError
from nightcrawler.core.http_client import create_http_client
from nightcrawler.core.logger import configure_logging, get_component_logger
from nightcrawler.core.request import RawRequest, load_request_file, request_from_url
from nightcrawler.fuzzing import CommandSink, PayloadGenerator, load_fuzzing_spec, resolve_encodings
from nightcrawler.reporting import ReportGenerator, report_format_for, ReportFormat
from nightcrawler.scanning import ScanOptions, Scanner, TargetPatternFilter, load_vectors, summarize
from nightcrawler.scanning.mutators import enumerate_test_cases

console = Console(stderr=True)
logger = get_component_logger("cli")


@click.group()
@click.version_option(version=__version__)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
              default=None, help='Set logging level')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Path to log file')
@click.option('--quiet', '-q', is_flag=True, help='Do not display the banner')
@click.pass_context
def cli(ctx, debug, log_level, log_file, quiet):
    """Nightcrawler - attack-surface fuzzing and injection scanning"""
    ctx.ensure_object(dict)

    overrides = {}
    if debug:
        overrides['debug'] = True
        overrides['log_level'] = 'DEBUG'
    elif log_level:
        overrides['log_level'] = log_level
    if log_file:
        overrides['log_file'] = Path(log_file)

    try:
        config = load_config(**overrides)
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    configure_logging(
        level=config.log_level,
        log_file=config.log_file,
        rich_console=True,
        show_time=config.debug,
        show_path=config.debug
    )
    ctx.obj['config'] = config

    if not quiet:
        display_banner()


def display_banner():
    """Display the Nightcrawler banner."""
    banner = f"""
[bold cyan]Nightcrawler[/bold cyan] v{__version__}
[dim]Attack-surface fuzzing and injection scanning[/dim]

[yellow]Use responsibly and only on systems you own or have permission to test[/yellow]
"""
    console.print(Panel(banner, title="Welcome", border_style="blue"))


def load_baseline(config: Config, input_file: Optional[str], url: Optional[str],
                  host: Optional[str], scheme: Optional[str]) -> RawRequest:
    """Baseline from a raw request file or synthesized from a URL, then overrides."""
    if input_file:
        request = load_request_file(input_file, scheme=scheme, host=host)
    elif url:
        request = request_from_url(url, config.scanning.user_agent)
    else:
        raise click.UsageError("Provide --input or --url")
    if host:
        request.host = host
    if scheme:
        request.scheme = scheme
    return request


def display_results(results):
    """Print the result table and a summary line."""
    table = Table(title="Scan results")
    table.add_column("#", justify="right")
    table.add_column("Target", style="bold")
    table.add_column("Vector")
    table.add_column("Status", justify="right")
    table.add_column("ms", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Found")

    for index, result in enumerate(results):
        if result.error:
            status = "[red]error[/red]"
        else:
            status = str(result.response.status_code)
        table.add_row(
            str(index),
            escape(result.target),
            escape(repr(result.vector.payload)) if not result.is_baseline else "",
            status,
            str(result.duration_ms),
            str(result.response_body_length),
            "[bold red]yes[/bold red]" if result.found else ""
        )
    console.print(table)

    stats = summarize(results)
    console.print(f"[blue]Test cases:[/blue] {stats['test_cases']}  "
                  f"[blue]Reflections:[/blue] {stats['found']}  "
                  f"[blue]Errors:[/blue] {stats['errors']}")


@cli.command()
@click.option('--input', 'input_file', type=click.Path(exists=True, dir_okay=False),
              help='Raw HTTP request file used as baseline')
@click.option('--url', help='URL used as baseline instead of an input file')
@click.option('--host', help='Override the target host')
@click.option('--scheme', type=click.Choice(['http', 'https']), help='Override the scheme')
@click.option('--vectors', 'vector_file', default='vectors.json', show_default=True,
              type=click.Path(dir_okay=False), help='JSON file with attack vectors')
@click.option('--report', 'report_file', default='report.html', show_default=True,
              type=click.Path(dir_okay=False), help='Report file')
@click.option('--format', 'report_format', type=click.Choice(['html', 'json', 'csv']),
              help='Report format (default: from the report file extension)')
@click.option('--scan-headers', is_flag=True, help='Scan HTTP headers, too')
@click.option('--output', 'output_dir', type=click.Path(file_okay=False),
              help='Directory for raw response bodies')
@click.option('--sort-keys', is_flag=True, help='Enumerate query keys and headers in lexical order')
@click.option('--max-test-cases', type=click.IntRange(min=0), help='Execute at most this many test cases')
@click.option('--include-target', multiple=True, help='Regex; only matching targets are tested')
@click.option('--exclude-target', multiple=True, help='Regex; matching targets are skipped')
@click.option('--dry-run', is_flag=True, help='List test cases without sending them')
@click.pass_context
def httpscan(ctx, input_file, url, host, scheme, vector_file, report_file, report_format,
             scan_headers, output_dir, sort_keys, max_test_cases, include_target, exclude_target,
             dry_run):
    """Inject attack vectors into query, header and path positions of a request."""
    config: Config = ctx.obj['config']

    try:
        baseline = load_baseline(config, input_file, url, host, scheme)
        vectors = load_vectors(vector_file)
        request_filter = TargetPatternFilter(include=include_target, exclude=exclude_target)
        options = ScanOptions(
            scan_headers=scan_headers,
            output_directory=output_dir,
            sort_keys=sort_keys,
            max_test_cases=max_test_cases
        )

        if dry_run:
            cases = enumerate_test_cases(baseline, vectors, scan_headers, sort_keys, request_filter)
            for test_case in islice(cases, max_test_cases):
                click.echo(f"{test_case.target}\t{test_case.request.method} {test_case.request.url}")
            return

        console.print(f"[bold blue]Scanning {baseline.method} {escape(baseline.url)}[/bold blue]")
        with create_http_client(config.scanning) as client, Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                console=console,
                transient=True
        ) as progress:
            task = progress.add_task("Scanning...", total=None)

            def on_result(result):
                progress.update(task, advance=1, description=escape(result.target))

            scanner = Scanner(client, options, request_filter=request_filter, on_result=on_result)
            results = scanner.scan(baseline, vectors)

        display_results(results)

        fmt = ReportFormat(report_format) if report_format else report_format_for(
            report_file, config.reporting.default_format)
        report_path = ReportGenerator().write(results, report_file, fmt)
        console.print(f"[blue]Report Generated:[/blue] {report_path}")
    except NightcrawlerError as e:
        raise click.ClickException(str(e))


@cli.command(context_settings={"ignore_unknown_options": True})
@click.option('--input', 'input_file', default='./config/fuzzinginput.json', show_default=True,
              type=click.Path(dir_okay=False), help='Fuzzing spec JSON file')
@click.option('--output', 'output_file', type=click.Path(dir_okay=False),
              help='File rewritten with each payload before the command runs')
@click.option('--param', default='', help='Placeholder in the command replaced by each payload')
@click.option('--encoding', 'encodings', multiple=True,
              type=click.Choice(['none', 'url', 'html']), help='Encodings drawn at random per segment')
@click.option('--timeout', type=float, help='Timeout in seconds for each command run')
@click.argument('command', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def fuzz(ctx, input_file, output_file, param, encodings, timeout, command):
    """Generate fuzz payloads and optionally run COMMAND once per payload.

    Example: nightcrawler fuzz --param FUZZ -- curl "http://localhost/?q=FUZZ"
    """
    stdout = click.get_binary_stream('stdout')

    def echo(payload: bytes):
        stdout.write(payload + b"\n")
        stdout.flush()

    try:
        spec = load_fuzzing_spec(input_file)
        generator = PayloadGenerator(spec, resolve_encodings(encodings))
        sink = CommandSink(command, placeholder=param, output_file=output_file, echo=echo, timeout=timeout)
        delivered = generator.run(sink)
    except NightcrawlerError as e:
        raise click.ClickException(str(e))

    logger.info(f"Generated {delivered} of {spec.iterations} payload(s), {sink.runs} command run(s)")


def format_raw_response(response: httpx.Response) -> bytes:
    """Status line, headers and body as they came over the wire."""
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}".encode("latin-1")]
    for key, value in response.headers.raw:
        lines.append(key + b": " + value)
    return b"\r\n".join(lines) + b"\r\n\r\n" + response.content


@cli.command()
@click.option('--input', 'input_file', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Raw HTTP request file')
@click.option('--host', help='Override the target host')
@click.option('--scheme', type=click.Choice(['http', 'https']), help='Override the scheme')
@click.option('-H', '--header', 'headers', multiple=True, help='Set a header ("Name: value")')
@click.option('--output', 'output_file', type=click.Path(dir_okay=False), help='Write the raw response here')
@click.pass_context
def curl(ctx, input_file, host, scheme, headers, output_file):
    """Send a saved raw request once and print the raw response."""
    config: Config = ctx.obj['config']

    try:
        request = load_baseline(config, input_file, None, host, scheme)
        for header in headers:
            name, sep, value = header.partition(":")
            if not sep or not name.strip():
                raise click.BadParameter(f"Expected 'Name: value', got {header!r}", param_hint="-H")
            if name.strip().lower() == "host":
                request.host = value.strip()
            else:
                request.set_header(name.strip(), value.strip())

        with create_http_client(config.scanning) as client:
            response = client.send(request)
        raw = format_raw_response(response)

        if output_file:
            try:
                Path(output_file).write_bytes(raw)
            except OSError as e:
                raise click.ClickException(f"Cannot write {output_file}: {e}")
            console.print(f"[blue]Response written to:[/blue] {output_file}")
        else:
            click.get_binary_stream('stdout').write(raw)
    except NightcrawlerError as e:
        raise click.ClickException(str(e))


if __name__ == '__main__':
    cli()
