"""bincover CLI Commands"""

import functools
import logging
from pathlib import Path
from typing import List, Optional

import typer

from .collector import CoverageCollector
from .config import get_collector_config, get_log_level, load_config
from .errors import BincoverError, ProfileMergeError
from .profile import read_profile_mode, summarize_profile, write_merged_profile

app = typer.Typer(
    name="bincover",
    help="bincover - run instrumented binaries and merge their coverage profiles.",
    no_args_is_help=True,
)


def _emit_error(message: str, suggestion: Optional[str] = None):
    typer.echo(f"Error: {message}", err=True)
    if suggestion:
        typer.echo(f"Suggestion: {suggestion}", err=True)
    raise typer.Exit(1)


def cli_handler(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except BincoverError as exc:
            _emit_error(str(exc))

    return wrapper


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging from bincover.yml (or --verbose)."""
    try:
        level = "DEBUG" if verbose else get_log_level()
    except BincoverError as exc:
        _emit_error(str(exc), "Check bincover.yml")
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command(help="Merge coverage profiles that share one coverage mode")
@cli_handler
def merge(
    out: Path = typer.Argument(..., help="Merged profile to write"),
    profiles: List[Path] = typer.Argument(..., help="Profiles to merge, in order"),
):
    """Merge PROFILES into OUT."""
    try:
        texts = [p.read_text(encoding="utf-8") for p in profiles]
    except OSError as exc:
        raise ProfileMergeError(f"error reading coverage profiles: {exc}") from exc
    mode = read_profile_mode(texts[0])
    for path, text in zip(profiles, texts):
        if read_profile_mode(text) != mode:
            _emit_error(
                f"cannot merge profiles with different coverage modes: {path}",
                f"Every profile must start with 'mode: {mode}'",
            )
    write_merged_profile(profiles, mode, out)
    typer.echo(f"Merged {len(profiles)} profile(s) into {out}")


@app.command(help="Run an instrumented binary once and report its output")
@cli_handler
def run(
    binary: str = typer.Argument(..., help="Instrumented binary to run"),
    args: Optional[List[str]] = typer.Argument(None, help="Args passed through the args file"),
    selector: str = typer.Option("TestRunMain", "--selector", "-s", help="Entrypoint test to select"),
    coverprofile: Path = typer.Option(Path("coverage.out"), "--coverprofile", "-o", help="Merged profile path"),
    no_coverage: bool = typer.Option(False, "--no-coverage", help="Skip coverage collection"),
    env: Optional[List[str]] = typer.Option(None, "--env", "-e", help="KEY=VALUE override (repeatable)"),
    stdin: Optional[str] = typer.Option(None, "--stdin", help="Text fed to the binary's stdin"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds before the binary is killed"),
):
    """Run BINARY with ARGS and exit with its logical exit code."""
    settings = get_collector_config(load_config())
    collector = CoverageCollector(str(coverprofile), not no_coverage, settings=settings)
    collector.setup()
    try:
        result = collector.run_binary(binary, selector, env or [], args or [], stdin_input=stdin, timeout=timeout)
    finally:
        collector.tear_down()
    typer.echo(result.output.encode("utf-8", "surrogateescape"), nl=False)
    raise typer.Exit(result.exit_code)


@app.command(help="Show statement coverage for a profile")
@cli_handler
def summary(profile: Path = typer.Argument(..., help="Coverage profile to summarize")):
    """Print mode, statement counts and percent covered."""
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileMergeError(f"error reading coverage profile: {exc}") from exc
    result = summarize_profile(text)
    typer.echo(f"mode: {result.mode}")
    typer.echo(f"statements: {result.statements}")
    typer.echo(f"covered: {result.covered}")
    typer.echo(f"percent: {result.percent:.1f}%")


if __name__ == "__main__":
    app()
