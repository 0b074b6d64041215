"""CLI commands for Codi."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from codi import __version__
from codi.assistant import CodeAssistant
from codi.errors import CodiError, IndexingError, NamespaceNotFoundError, StageError
from codi.session import AssistantSession, Message

MAIN_HELP = """
[bold cyan]Codi[/] - ask questions about a codebase and apply the answers

Codi indexes a folder for semantic search, answers questions from the most
relevant code, and can write the edits it proposes back to your files.

[bold yellow]Quick Start:[/]
  codi index ./acme-widgets
  codi ask ./acme-widgets "Where is the login handler?"

[bold yellow]Common Workflows:[/]
  [dim]Focus on one file:[/]        codi ask . "Add docstrings" --file src/app.py
  [dim]Apply and save edits:[/]     codi ask . "Rename foo to bar" --apply --save
  [dim]Manage indexed repos:[/]     codi repos list acme
  [dim]Run the HTTP API:[/]         codi serve

Run [bold]codi <command> --help[/] for detailed help on any command.
"""

app = typer.Typer(
    name="codi",
    help=MAIN_HELP,
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

# Global assistant instance (lazy initialized)
_assistant: CodeAssistant | None = None


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # Third-party clients are chatty at debug level
    for name in ("chromadb", "httpx", "urllib3", "sentence_transformers"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _ensure_config_exists() -> None:
    """Ensure config file exists, creating default if needed."""
    from codi.config import (
        DEFAULT_CONFIG_PATH,
        ensure_config_dir,
        generate_default_config,
    )

    if not DEFAULT_CONFIG_PATH.exists():
        ensure_config_dir()
        DEFAULT_CONFIG_PATH.write_text(generate_default_config())
        console.print(f"[dim]Created default config: {DEFAULT_CONFIG_PATH}[/dim]")
        console.print()


def _get_assistant() -> CodeAssistant:
    """Get or create the global assistant."""
    global _assistant
    if _assistant is None:
        from codi.config import get_config

        _ensure_config_exists()
        _assistant = CodeAssistant.from_config(get_config())
    return _assistant


async def _open_session(path: Path) -> AssistantSession:
    from codi.config import get_config

    tree_config = get_config().tree
    return await AssistantSession.open_folder(
        _get_assistant(),
        path,
        excluded_folders=tree_config.excluded_folders,
        max_display_file_bytes=tree_config.max_display_file_bytes,
        max_index_file_bytes=get_config().knowledge.max_index_file_bytes,
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    _setup_logging(verbose)


@app.command()
def index(
    path: Path = typer.Argument(
        ...,
        help="Folder to index",
        exists=True,
        file_okay=False,
        resolve_path=True,
        metavar="PATH",
    ),
) -> None:
    """
    Index a folder for questions.

    The folder name decides the repository: [bold]acme-widgets[/] is stored
    as owner [cyan]acme[/], repository [cyan]widgets[/]. Names without a dash
    belong to the [cyan]local[/] owner.

    [bold yellow]Example:[/]
      codi index ./acme-widgets
    """

    async def _index():
        session = await _open_session(path)
        with console.status(f"Indexing {session.namespace}..."):
            return session, await session.index()

    try:
        session, result = asyncio.run(_index())
    except IndexingError as e:
        if e.partial:
            console.print(
                f"[yellow]Warning:[/yellow] {e.chunks_written} chunks were stored before "
                "the failure; the index is incomplete"
            )
        _fail(str(e))
    except CodiError as e:
        _fail(str(e))

    table = Table(title=f"Indexed {result.namespace}", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Files", str(result.file_count))
    table.add_row("Chunks", str(result.chunk_count))
    table.add_row(
        "Languages",
        ", ".join(f"{lang} ({count})" for lang, count in sorted(result.languages.items())),
    )
    console.print(table)


def _print_answer(message: Message) -> None:
    console.print(
        Panel(
            Markdown(message.text or "_No explanation given_"),
            title="[bold cyan]Answer[/bold cyan]",
            border_style="cyan",
        )
    )

    if message.sources:
        sources = Table(title="Sources", show_lines=False)
        sources.add_column("File", style="cyan")
        sources.add_column("Language", style="dim")
        sources.add_column("Score", justify="right")
        for source in message.sources:
            sources.add_row(source.chunk.path, source.chunk.language, f"{source.score:.2f}")
        console.print(sources)

    for edit in message.edits:
        console.print(f"[yellow]Proposed edit:[/yellow] {edit.filename}")


@app.command()
def ask(
    path: Path = typer.Argument(
        ...,
        help="Indexed folder",
        exists=True,
        file_okay=False,
        resolve_path=True,
        metavar="PATH",
    ),
    question: str = typer.Argument(..., help="Your question", metavar="QUESTION"),
    file: str | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Focus on this file (path or name inside the folder)",
        metavar="FILE",
    ),
    apply_edits: bool = typer.Option(
        False,
        "--apply",
        "-a",
        help="Apply proposed edits to the in-memory tree",
    ),
    save: bool = typer.Option(
        False,
        "--save",
        "-s",
        help="Write applied edits to disk (implies --apply)",
    ),
) -> None:
    """
    Ask a question about an indexed folder.

    [bold yellow]Examples:[/]

      [dim]# General question[/]
      codi ask . "How are sessions stored?"

      [dim]# Ask about the open file and write the edit to disk[/]
      codi ask . "Add type hints" --file src/app.py --save
    """

    async def _ask():
        session = await _open_session(path)
        if file:
            node = session.tree.find_by_path(file) or session.tree.find_by_name(file)
            if node is None or not node.is_file:
                _fail(f"No file {file} in {path}")
            await session.open_file(node.id)

        with console.status("Thinking..."):
            message = await session.ask(question)
        if message is None:
            return

        _print_answer(message)

        if message.edits and (apply_edits or save):
            batch = session.apply_message_edits(message)
            for result in batch.results:
                if result.success:
                    console.print(f"[green]Applied:[/green] {result.path or result.edit.filename}")
                else:
                    console.print(f"[red]Not applied:[/red] {result.message}")
            if save:
                if await session.save_all():
                    console.print("[green]Saved all modified files[/green]")
                else:
                    console.print("[yellow]Some files could not be saved[/yellow]")

    try:
        asyncio.run(_ask())
    except NamespaceNotFoundError:
        _fail(f"{path.name} is not indexed yet. Run: codi index {path}")
    except StageError as e:
        _fail(str(e))
    except CodiError as e:
        _fail(str(e))


# Repository subcommand group
repos_app = typer.Typer(
    name="repos",
    help="Manage indexed repositories",
    no_args_is_help=True,
)
app.add_typer(repos_app, name="repos")


@repos_app.command(name="list")
def repos_list(
    owner: str = typer.Argument(..., help="Repository owner", metavar="OWNER"),
) -> None:
    """
    List the repositories indexed for an owner.

    [bold yellow]Example:[/]
      codi repos list local
    """
    try:
        repositories = asyncio.run(_get_assistant().list_repositories(owner))
    except CodiError as e:
        _fail(str(e))

    if not repositories:
        console.print(f"[dim]No repositories indexed for {owner}.[/dim]")
        return

    table = Table(title=f"Repositories of {owner}")
    table.add_column("Repository", style="cyan")
    table.add_column("Namespace", style="dim")
    for repository in repositories:
        table.add_row(repository, f"{owner}-{repository}")
    console.print(table)


@repos_app.command(name="delete")
def repos_delete(
    owner: str = typer.Argument(..., help="Repository owner", metavar="OWNER"),
    repository: str = typer.Argument(..., help="Repository name", metavar="REPO"),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip confirmation",
    ),
) -> None:
    """
    Delete everything indexed for a repository.

    [bold yellow]Example:[/]
      codi repos delete acme widgets
    """
    if not force and not typer.confirm(f"Delete index of {owner}-{repository}?"):
        console.print("[dim]Cancelled.[/dim]")
        return

    try:
        deleted = asyncio.run(_get_assistant().delete_repository(owner, repository))
    except CodiError as e:
        _fail(str(e))

    if deleted:
        console.print(f"[green]Deleted[/green] {owner}-{repository}")
    else:
        console.print(f"[yellow]Not indexed:[/yellow] {owner}-{repository}")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address", metavar="HOST"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port", metavar="PORT"),
) -> None:
    """
    Run the HTTP API.

    [bold yellow]Example:[/]
      codi serve --port 3005
    """
    from codi.api import run_server
    from codi.config import get_config

    _ensure_config_exists()
    config = get_config()
    console.print(
        f"Serving on http://{host or config.server.host}:{port or config.server.port}"
    )
    run_server(host=host, port=port, config=config)


# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage Codi configuration",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@config_app.command(name="show")
def config_show() -> None:
    """
    Show current configuration.

    [bold yellow]Example:[/]
      codi config show
    """
    from codi.config import DEFAULT_CONFIG_PATH, get_config
    from codi.llm import get_llm_status

    config = get_config()
    llm_status = get_llm_status(config.llm)
    config_exists = DEFAULT_CONFIG_PATH.exists()

    lines = [
        f"[bold]Config file:[/bold] {DEFAULT_CONFIG_PATH}",
        f"[bold]Status:[/bold] {'[green]exists[/green]' if config_exists else '[yellow]using defaults[/yellow]'}",
        "",
        "[bold cyan]Language Model[/bold cyan]",
        f"  Provider: {config.llm.provider.value}",
        f"  Temperature: {config.llm.temperature}",
        f"  Status: {llm_status['message']}",
        "",
        "[bold cyan]Gemini[/bold cyan]",
        f"  API key: {'[green]set[/green]' if config.llm.gemini.get_api_key() else '[yellow]not set[/yellow]'}",
        f"  Model: {config.llm.gemini.model}",
        "",
        "[bold cyan]Ollama[/bold cyan]",
        f"  Host: {config.llm.ollama.host}",
        f"  Model: {config.llm.ollama.model}",
        f"  Timeout: {config.llm.ollama.timeout}s",
        "",
        "[bold cyan]Knowledge[/bold cyan]",
        f"  Embeddings: {config.knowledge.embedding_provider.value} ({config.knowledge.embedding_model})",
        f"  Chunks: {config.knowledge.chunk_size} chars, {config.knowledge.chunk_overlap} overlap",
        f"  Top k: {config.knowledge.top_k}",
        f"  Store: {config.knowledge.persist_directory}",
        "",
        "[bold cyan]Tree[/bold cyan]",
        f"  Excluded folders: {', '.join(config.tree.excluded_folders)}",
        "",
        "[bold cyan]Server[/bold cyan]",
        f"  Address: {config.server.host}:{config.server.port}",
    ]

    console.print(
        Panel(
            Text.from_markup("\n".join(lines)),
            title="[bold cyan]Codi Configuration[/bold cyan]",
            border_style="cyan",
        )
    )


@config_app.command(name="init")
def config_init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing config file",
    ),
) -> None:
    """
    Create a default configuration file.

    [bold yellow]Examples:[/]

      [dim]# Create default config[/]
      codi config init

      [dim]# Overwrite existing config[/]
      codi config init --force
    """
    from codi.config import (
        DEFAULT_CONFIG_PATH,
        ensure_config_dir,
        generate_default_config,
    )

    ensure_config_dir()

    if DEFAULT_CONFIG_PATH.exists() and not force:
        console.print(f"[yellow]Config file already exists:[/yellow] {DEFAULT_CONFIG_PATH}")
        console.print("Use --force to overwrite.")
        return

    DEFAULT_CONFIG_PATH.write_text(generate_default_config())
    console.print(f"[green]Created config file:[/green] {DEFAULT_CONFIG_PATH}")
    console.print()
    console.print("[bold]Next steps:[/bold]")
    console.print("  1. Set [cyan]llm.provider[/cyan] to 'gemini' or 'ollama'")
    console.print("  2. Configure the API key or the local model")


@config_app.command(name="path")
def config_path() -> None:
    """Show configuration file path."""
    from codi.config import DEFAULT_CONFIG_PATH

    console.print(str(DEFAULT_CONFIG_PATH))


@app.command()
def version() -> None:
    """Show version number."""
    console.print(f"Codi v{__version__}")


if __name__ == "__main__":
    app()
