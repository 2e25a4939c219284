"""MATILDA SPHINX - command line front-end for PocketSphinx decoding sessions."""

import json as jsonlib
import sys
from pathlib import Path

import rich_click as click
from rich.console import Console
from rich.table import Table

from .audio.conversion import iter_chunks, read_wav
from .core.config import ConfigLoader, get_config
from .core.logging import setup_logging
from .decoder import DecoderError, DecoderSession
from .decoder.engine import EngineFactory
from .transcription import segment_stream, transcribe_file

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_OPTION = "#ff79c6"
click.rich_click.STYLE_ARGUMENT = "#8be9fd"
click.rich_click.STYLE_COMMAND = "#50fa7b"
click.rich_click.STYLE_USAGE = "#bd93f9"
click.rich_click.STYLE_HELPTEXT = "#b3b8c0"

console = Console()
err_console = Console(stderr=True)

# Overridden in tests to run without the native engine
ENGINE_FACTORY: EngineFactory | None = None


def _split_pair(value: str, option: str) -> tuple[str, str]:
    name, sep, rest = value.partition("=")
    if not sep or not name or not rest:
        raise click.BadParameter(f"expected NAME=VALUE, got {value!r}", param_hint=option)
    return name, rest


def _open_session(config: ConfigLoader, hmm, dictionary, sample_rate) -> DecoderSession:
    return DecoderSession(
        hmm=hmm or config.hmm,
        dictionary=dictionary or config.dictionary,
        sample_rate=sample_rate or config.sample_rate,
        log_file=config.log_file,
        engine_factory=ENGINE_FACTORY,
        extra_options=config.engine_options,
    )


def _configure_searches(session: DecoderSession, grammars, keyphrases, search) -> None:
    for value in grammars:
        name, path = _split_pair(value, "--grammar")
        session.load_grammar(name, Path(path).read_text(encoding="utf-8"))
    for value in keyphrases:
        name, phrase = _split_pair(value, "--keyphrase")
        session.load_keyphrase(name, phrase)
    if search:
        session.select_search(search)


def _fail(message: str, debug: bool) -> None:
    err_console.print(f"[red]Error: {message}[/red]")
    if debug:
        import traceback

        traceback.print_exc()
    sys.exit(1)


def decoder_options(func):
    """Options shared by every decoding command."""
    func = click.option("--debug", is_flag=True, help=" 🐛 Enable detailed debug logging")(func)
    func = click.option("--search", help=" 🎯 Activate this search before decoding")(func)
    func = click.option(
        "--keyphrase", "keyphrases", multiple=True, metavar="NAME=PHRASE", help=" 🔑 Register a keyphrase search"
    )(func)
    func = click.option(
        "--grammar", "grammars", multiple=True, metavar="NAME=PATH", help=" 📜 Register a JSGF grammar file"
    )(func)
    func = click.option("--sample-rate", type=float, help=" 🔊 Audio sample rate in Hz")(func)
    func = click.option("--dict", "dictionary", help=" 📖 Pronunciation dictionary path")(func)
    func = click.option("--hmm", help=" 🤖 Acoustic model directory")(func)
    return func


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="goobits-matilda-sphinx", prog_name="MATILDA SPHINX")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help=" ⚙️  Configuration file path")
@click.pass_context
def main(ctx, config_path):
    """🎙️ [bold cyan]MATILDA SPHINX[/bold cyan] - Offline speech recognition with PocketSphinx

    \b
    [bold yellow]🎯 Quick Start:[/bold yellow]
    \b
      [green]matilda-sphinx transcribe hello.wav[/green]             [italic]# Best hypothesis[/italic]
      [green]matilda-sphinx transcribe hello.wav --nbest 5 --json[/green]  [italic]# N-best as JSON[/italic]
      [green]matilda-sphinx stream meeting.wav[/green]               [italic]# One line per utterance[/italic]
      [green]matilda-sphinx info[/green]                             [italic]# Effective configuration[/italic]
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = ConfigLoader(config_path) if config_path else get_config()


@main.command()
@click.argument("audio_file", type=click.Path(exists=True, dir_okay=False))
@decoder_options
@click.option("--nbest", type=int, help=" 📋 Number of results to return, best first")
@click.option("--json", "as_json", is_flag=True, help=" 📄 Output JSON format")
@click.pass_context
def transcribe(ctx, audio_file, hmm, dictionary, sample_rate, grammars, keyphrases, search, debug, nbest, as_json):
    """Decode a mono 16-bit WAV file as a single utterance."""
    config: ConfigLoader = ctx.obj["config"]
    logger = setup_logging(
        "matilda_sphinx",
        log_level="DEBUG" if debug else config.log_level,
        include_console=config.console_logs or None,
    )

    try:
        with _open_session(config, hmm, dictionary, sample_rate) as session:
            _configure_searches(session, grammars, keyphrases, search)
            result = transcribe_file(session, audio_file, nbest=nbest or config.nbest)
    except (DecoderError, ValueError, OSError) as e:
        logger.error(f"Transcription failed for {audio_file}: {e}")
        _fail(str(e), debug)
        return

    if as_json:
        click.echo(jsonlib.dumps(result.to_dict()))
        return
    if result.is_empty:
        console.print("[yellow]No speech recognised[/yellow]")
        return

    console.print(f"[bold green]{result.text}[/bold green]  [dim](score={result.score}, prob={result.prob})[/dim]")
    if result.alternatives:
        table = Table("#", "Alternative", "Score", title="N-best")
        for rank, alt in enumerate(result.alternatives, start=2):
            table.add_row(str(rank), alt.text, str(alt.score))
        console.print(table)


@main.command()
@click.argument("audio_file", type=click.Path(exists=True, dir_okay=False))
@decoder_options
@click.option("--chunk-samples", type=int, help=" 🧩 Samples fed per process_raw call")
@click.option("--json", "as_json", is_flag=True, help=" 📄 Output one JSON object per line")
@click.pass_context
def stream(ctx, audio_file, hmm, dictionary, sample_rate, grammars, keyphrases, search, debug, chunk_samples, as_json):
    """Decode a WAV file continuously, one result per spoken utterance."""
    config: ConfigLoader = ctx.obj["config"]
    logger = setup_logging(
        "matilda_sphinx",
        log_level="DEBUG" if debug else config.log_level,
        include_console=config.console_logs or None,
    )

    try:
        samples, file_rate = read_wav(audio_file)
        with _open_session(config, hmm, dictionary, sample_rate or float(file_rate)) as session:
            _configure_searches(session, grammars, keyphrases, search)
            chunks = iter_chunks(samples, chunk_samples or config.chunk_samples)
            for result in segment_stream(session, chunks):
                if as_json:
                    click.echo(jsonlib.dumps(result.to_dict()))
                else:
                    console.print(f"{result.text}  [dim](score={result.score})[/dim]")
    except (DecoderError, ValueError, OSError) as e:
        logger.error(f"Streaming decode failed for {audio_file}: {e}")
        _fail(str(e), debug)


@main.command()
@click.option("--json", "as_json", is_flag=True, help=" 📄 Output JSON format")
@click.pass_context
def info(ctx, as_json):
    """Show effective configuration and engine availability."""
    config: ConfigLoader = ctx.obj["config"]
    try:
        import pocketsphinx  # noqa: F401

        engine_available = True
    except ImportError:
        engine_available = False

    data = config.as_dict()
    data["engine_available"] = engine_available
    if as_json:
        click.echo(jsonlib.dumps(data))
        return

    table = Table("Setting", "Value", title="Matilda Sphinx")
    table.add_row("config file", data["config_file"])
    for key, value in data["decoder"].items():
        table.add_row(f"decoder.{key}", str(value if value is not None else "default"))
    for key, value in data["session"].items():
        table.add_row(f"session.{key}", str(value))
    table.add_row("pocketsphinx", "[green]available[/green]" if engine_available else "[red]not installed[/red]")
    console.print(table)


if __name__ == "__main__":
    main()
