"""
Command-line interface for codescope.

Provides commands for inspecting extraction and chunking, indexing and
searching a codebase, and managing the index.
"""

import json
import logging
import sys
from collections import Counter
from pathlib import Path
import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .chunker import ChunkingOptions, HierarchicalChunker, create_simple_chunks
from .config import CONFIG_DIR, CONFIG_FILE, CONFIG_TEMPLATE, Config
from .exceptions import CodescopeError
from .extractor import SymbolExtractor
from .languages import SupportedLanguage
from .logging_config import setup_logging_from_config
from .models import CodeChunk, Symbol, SymbolKind
from .progress import ProgressEvent, ProgressReporter
from .service import CodeSearchService
from .walker import FileWalker

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


def _load_config(ctx: click.Context, root: Path) -> Config:
    config = Config(root)
    setup_logging_from_config(config, debug=ctx.obj.get("debug", False))
    return config


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def _symbol_dict(symbol: Symbol) -> dict:
    return symbol.model_dump(mode="json")


def _chunk_dict(chunk: CodeChunk) -> dict:
    return chunk.model_dump(mode="json")


def _walker(config: Config) -> FileWalker:
    return FileWalker(
        exclude=config.get("indexer", "exclude", default=[]),
        max_file_size=config.get("indexer", "max_file_size", default=1048576),
    )


def _print_symbols_table(symbols: list[Symbol], title: str) -> None:
    table = Table(title=title)
    table.add_column("Kind", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Context", style="magenta")
    table.add_column("Lines", justify="right")
    table.add_column("File", style="dim")
    for symbol in symbols:
        table.add_row(
            symbol.kind.value,
            symbol.name,
            symbol.context or "",
            f"{symbol.start_line}-{symbol.end_line}",
            symbol.file_path,
        )
    console.print(table)


def _print_kind_summary(symbols: list[Symbol]) -> None:
    counts = Counter(symbol.kind.value for symbol in symbols)
    console.print(f"[bold]{len(symbols)} symbols[/bold]")
    for kind, count in counts.most_common():
        console.print(f"  {kind}: {count}")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__, prog_name="codescope")
@click.pass_context
def main(ctx: click.Context, debug: bool):
    """codescope - incremental semantic code search for Rust, Python and Go."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option("--path", "-p", default=".", help="Project root path")
def init(path: str):
    """Create a default .codescope/config.toml."""
    project_root = Path(path).resolve()
    config_path = project_root / CONFIG_DIR / CONFIG_FILE

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")

    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print("\nNext steps:")
    console.print("  1. Run [cyan]codescope index[/cyan] to index your codebase")
    console.print("  2. Run [cyan]codescope search <query>[/cyan] to search your code")


@main.command()
def languages():
    """List supported languages and their extensions."""
    table = Table(title="Supported languages")
    table.add_column("Language", style="cyan")
    table.add_column("Extensions", style="green")
    table.add_column("Symbol node kinds")
    for language in SupportedLanguage:
        table.add_row(
            language.value,
            ", ".join(language.extensions),
            ", ".join(sorted(language.node_rules)),
        )
    console.print(table)


@main.command("parse-file")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["json", "pretty", "summary"]), default="pretty",
    help="Output format",
)
@click.pass_context
def parse_file(ctx: click.Context, file: Path, output_format: str):
    """Extract symbols from a single source file."""
    _load_config(ctx, Path.cwd())
    try:
        symbols = SymbolExtractor().parse_file(file)
    except CodescopeError as e:
        _fail(str(e))
        return

    if output_format == "json":
        click.echo(json.dumps([_symbol_dict(s) for s in symbols], indent=2))
    elif output_format == "summary":
        _print_kind_summary(symbols)
    else:
        _print_symbols_table(symbols, title=str(file))


@main.command("parse-codebase")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--kind", "-k", "kinds", multiple=True,
              type=click.Choice([k.value for k in SymbolKind], case_sensitive=False),
              help="Only show symbols of this kind")
@click.option("--ext", "-e", "extensions", multiple=True, help="Only parse files with this extension (e.g. .rs)")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["json", "pretty", "summary"]), default="summary",
    help="Output format",
)
@click.pass_context
def parse_codebase(ctx: click.Context, path: Path, kinds: tuple, extensions: tuple, output_format: str):
    """Extract symbols from every supported file under PATH."""
    root = path.resolve()
    config = _load_config(ctx, root)
    extractor = SymbolExtractor()

    wanted_exts = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    wanted_kinds = {k.lower() for k in kinds}

    symbols: list[Symbol] = []
    failures = 0
    for rel_path in _walker(config).discover(root):
        if wanted_exts and Path(rel_path).suffix.lower() not in wanted_exts:
            continue
        try:
            symbols.extend(extractor.parse_file(root / rel_path, root=root))
        except CodescopeError as e:
            logger.warning(f"Skipping {rel_path}: {e}")
            failures += 1

    if wanted_kinds:
        symbols = [s for s in symbols if s.kind.value.lower() in wanted_kinds]

    if output_format == "json":
        click.echo(json.dumps([_symbol_dict(s) for s in symbols], indent=2))
        return
    if output_format == "pretty":
        _print_symbols_table(symbols, title=str(root))
    else:
        _print_kind_summary(symbols)
    if failures:
        console.print(f"[yellow]{failures} files could not be parsed[/yellow]")


@main.command("chunk-codebase")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--max-lines", type=int, help="Maximum lines per chunk")
@click.option("--min-lines", type=int, help="Minimum lines for a split-off member")
@click.option("--max-depth", type=int, help="Maximum recursion depth")
@click.option("--no-metadata", is_flag=True, help="Omit the metadata header from chunk content")
@click.option("--simple", is_flag=True, help="One chunk per symbol, no splitting")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["json", "summary"]), default="summary",
    help="Output format",
)
@click.pass_context
def chunk_codebase(
    ctx: click.Context,
    path: Path,
    max_lines: int,
    min_lines: int,
    max_depth: int,
    no_metadata: bool,
    simple: bool,
    output_format: str,
):
    """Chunk every supported file under PATH without embedding it."""
    root = path.resolve()
    config = _load_config(ctx, root)

    options = ChunkingOptions(
        max_lines_per_chunk=max_lines or config.get("chunking", "max_lines_per_chunk", default=200),
        min_lines_per_chunk=min_lines or config.get("chunking", "min_lines_per_chunk", default=5),
        include_metadata=not no_metadata and config.get("chunking", "include_metadata", default=True),
        max_recursion_depth=max_depth if max_depth is not None
        else config.get("chunking", "max_recursion_depth", default=5),
    )
    extractor = SymbolExtractor()
    chunker = HierarchicalChunker(options, extractor)

    chunks: list[CodeChunk] = []
    symbol_count = 0
    for rel_path in _walker(config).discover(root):
        try:
            symbols = extractor.parse_file(root / rel_path, root=root)
        except CodescopeError as e:
            logger.warning(f"Skipping {rel_path}: {e}")
            continue
        symbol_count += len(symbols)
        chunks.extend(create_simple_chunks(symbols, options.include_metadata) if simple else chunker.chunk(symbols))

    if output_format == "json":
        click.echo(json.dumps([_chunk_dict(c) for c in chunks], indent=2))
        return

    split = sum(1 for c in chunks if c.chunk_metadata.is_split and not c.chunk_metadata.is_container)
    containers = sum(1 for c in chunks if c.chunk_metadata.is_container)
    deepest = max((c.chunk_metadata.chunk_depth for c in chunks), default=0)

    table = Table(title="Chunking summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Symbols", str(symbol_count))
    table.add_row("Chunks", str(len(chunks)))
    table.add_row("Container chunks", str(containers))
    table.add_row("Unsplittable oversized", str(split))
    table.add_row("Deepest level", str(deepest))
    console.print(table)


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--force", "-f", is_flag=True, help="Rebuild the index from scratch")
@click.pass_context
def index(ctx: click.Context, path: Path, force: bool):
    """Index a codebase, or bring an existing index up to date."""
    root = path.resolve()
    config = _load_config(ctx, root)
    service = CodeSearchService.from_root(root, config)

    console.print(f"[cyan]Indexing {root}...[/cyan]")
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        TextColumn("[cyan]ETA: {task.fields[eta]}"),
        console=console,
    ) as progress:
        task = progress.add_task("Scanning files...", total=None, eta="calculating...")

        def progress_callback(event: ProgressEvent):
            progress.update(
                task,
                total=event.total,
                completed=event.current,
                description=f"{event.phase.capitalize()}: {Path(event.filename).name}",
                eta=ProgressReporter.format_eta(event.eta_seconds),
            )

        try:
            report = service.sync(force=force, progress_callback=progress_callback)
        except CodescopeError as e:
            _fail(f"Indexing failed: {e}")
            return
        finally:
            service.close()

    if report.mode == "up_to_date":
        console.print("\n[green]✓ Index is up to date.[/green]\n")
    else:
        console.print("\n[green]✓ Indexing complete![/green]\n")
    console.print(str(report))
    if report.failed_files:
        console.print("[yellow]Some files failed and will be retried on the next run.[/yellow]")


@main.command()
@click.argument("query")
@click.option("--path", "-p", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Indexed project root")
@click.option("--limit", "-n", type=int, help="Maximum number of results")
@click.option("--min-score", type=float, help="Minimum similarity score")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def search(ctx: click.Context, query: str, path: Path, limit: int, min_score: float, as_json: bool):
    """Search the indexed codebase semantically.

    Examples:
      codescope search "parse configuration file"
      codescope search "retry with backoff" --limit 5 --min-score 0.5
    """
    root = path.resolve()
    config = _load_config(ctx, root)
    service = CodeSearchService.from_root(root, config)

    try:
        if not service.retriever.is_indexed(root):
            _fail("No index found. Run 'codescope index' first.")
            return
        results = service.search(query, limit=limit, min_score=min_score)
    except (CodescopeError, ValueError) as e:
        _fail(f"Search failed: {e}")
        return
    finally:
        service.close()

    if as_json:
        click.echo(json.dumps(
            [{"score": r.score, **r.chunk.model_dump(mode="json")} for r in results], indent=2
        ))
        return

    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    for i, result in enumerate(results, 1):
        chunk = result.chunk
        header = (
            f"[bold]{i}. {chunk.file_path}:{chunk.start_line}-{chunk.end_line}[/bold] "
            f"[dim](score: {result.score:.3f})[/dim] [cyan]{chunk.symbol_kind}: {chunk.symbol_name}[/cyan]"
        )
        if chunk.context:
            header += f" [magenta]in {chunk.context}[/magenta]"
        console.print(header)

        language = SupportedLanguage.from_path(chunk.file_path)
        console.print(Syntax(
            chunk.content,
            language.value if language else "text",
            theme="monokai",
            line_numbers=False,
        ))
        console.print()


@main.command()
@click.option("--path", "-p", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Indexed project root")
@click.pass_context
def status(ctx: click.Context, path: Path):
    """Show index statistics."""
    root = path.resolve()
    config = _load_config(ctx, root)
    service = CodeSearchService.from_root(root, config)

    try:
        stats = service.stats()
    except CodescopeError as e:
        _fail(f"Error getting status: {e}")
        return

    if stats.total_points == 0:
        console.print("[yellow]No index found. Run 'codescope index' to create one.[/yellow]")
        return

    table = Table(title="Index Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Collection", stats.collection_id)
    table.add_row("Total files", str(stats.total_files))
    table.add_row("Total chunks", str(stats.total_points))
    console.print(table)

    if stats.kinds:
        console.print("\n[bold]Symbol kinds:[/bold]")
        for kind, count in sorted(stats.kinds.items(), key=lambda x: -x[1]):
            console.print(f"  {kind}: {count}")


@main.command()
@click.option("--path", "-p", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Indexed project root")
@click.confirmation_option(prompt="Are you sure you want to delete the index?")
@click.pass_context
def clean(ctx: click.Context, path: Path):
    """Remove the index and snapshot for a project."""
    root = path.resolve()
    config = _load_config(ctx, root)
    service = CodeSearchService.from_root(root, config)

    try:
        removed = service.clean()
    except CodescopeError as e:
        _fail(f"Error cleaning index: {e}")
        return

    if removed:
        console.print("[green]✓ Cleared indexed data.[/green]")
    else:
        console.print("[yellow]No index found.[/yellow]")


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--debounce", type=float, help="Seconds of quiet before re-syncing")
@click.pass_context
def watch(ctx: click.Context, path: Path, debounce: float):
    """Keep the index in sync while files change."""
    from .watcher import FileWatcher

    root = path.resolve()
    config = _load_config(ctx, root)
    service = CodeSearchService.from_root(root, config)

    try:
        report = service.sync()
    except CodescopeError as e:
        _fail(f"Initial sync failed: {e}")
        return
    console.print(str(report))

    def on_sync(sync_report):
        console.print(
            f"[green]✓[/green] Synced: {len(sync_report.added)} added, "
            f"{len(sync_report.modified)} modified, {len(sync_report.deleted)} deleted"
        )

    watcher = FileWatcher(
        service.engine,
        root,
        debounce_seconds=debounce or config.get("watcher", "debounce_seconds", default=1.0),
        on_sync=on_sync,
    )
    console.print(f"[cyan]Watching {root} (Ctrl+C to stop)[/cyan]")
    try:
        watcher.start()
    finally:
        service.close()


@main.command()
def version():
    """Show codescope version."""
    console.print(f"codescope version {__version__}")


if __name__ == "__main__":
    main()
