"""
JourneyRAG CLI Commands

journeyrag-cli: database setup, YAML ingestion, embedding search and stats.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import structlog
import yaml

from journeyrag import __version__
from journeyrag.core import JourneyConfig, JourneyGraph
from journeyrag.errors import JourneyRAGError


# ============================================================================
# Helper Functions
# ============================================================================

def configure_logging(verbose: bool) -> None:
    """structlog to stderr; INFO with --verbose, WARNING otherwise."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def run_async(coro):
    """Run async coroutine and return result."""
    return asyncio.run(coro)


def fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


async def _with_graph(ctx: click.Context, action):
    graph = JourneyGraph(JourneyConfig(
        database_url=ctx.obj["database_url"],
        weights_path=ctx.obj["weights_path"],
    ))
    await graph.connect()
    try:
        return await action(graph)
    finally:
        await graph.close()


# ============================================================================
# CLI (journeyrag-cli)
# ============================================================================

@click.group()
@click.version_option(version=__version__, prog_name='journeyrag-cli')
@click.option('--database-url', envvar='JOURNEYRAG_DATABASE_URL', default=None,
              help='Async SQLAlchemy URL (default: current environment)')
@click.option('--weights', 'weights_path', type=click.Path(exists=True, path_type=Path), default=None,
              help='Scoring weights YAML')
@click.option('-v', '--verbose', is_flag=True, help='Log progress to stderr')
@click.pass_context
def cli(ctx, database_url, weights_path, verbose):
    """JourneyRAG Command Line Interface - graph-augmented profile retrieval."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url
    ctx.obj["weights_path"] = weights_path


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the chunk and edge tables.

    Example:
        journeyrag-cli --database-url sqlite+aiosqlite:///journeyrag.db init-db
    """
    async def _init(graph: JourneyGraph):
        return graph.chunk_store.database.config.url

    try:
        url = run_async(_with_graph(ctx, _init))
    except JourneyRAGError as e:
        fail(str(e))
    click.echo(f"Database initialised: {url}")


@cli.command('ingest')
@click.argument('yaml_file', type=click.Path(exists=True))
@click.option('--dry-run', is_flag=True, help='Preview chunks and edges without storing them')
@click.pass_context
def ingest(ctx, yaml_file, dry_run):
    """Ingest chunks and edges from a YAML file.

    \b
    chunks:
      - key: alice-job
        ownerId: 1
        nodeId: node-1
        text: Senior data engineer
        entityType: job
        embedding: [0.1, 0.2, ...]
    edges:
      - src: alice-job
        dst: bob-job
        relType: similar_role
        weight: 0.8

    Example:
        journeyrag-cli ingest fixtures.yaml
    """
    try:
        with open(yaml_file, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        fail(f"invalid YAML: {e}")

    chunks = data.get('chunks', [])
    edges = data.get('edges', [])

    if dry_run:
        click.echo(f"[DRY RUN] Would create {len(chunks)} chunks and {len(edges)} edges:")
        for i, chunk in enumerate(chunks, 1):
            text = str(chunk.get('text', ''))[:50]
            click.echo(f"  {i}. [{chunk.get('entityType', chunk.get('entity_type', '?'))}] "
                       f"owner={chunk.get('ownerId', chunk.get('owner_id'))} {text}")
        for edge in edges:
            src = edge.get('src', edge.get('srcChunkId'))
            dst = edge.get('dst', edge.get('dstChunkId'))
            arrow = '->' if edge.get('directed', True) else '--'
            click.echo(f"  {src} {arrow} {dst} ({edge.get('relType', '?')}, w={edge.get('weight', 1.0)})")
        return

    async def _ingest(graph: JourneyGraph):
        return await graph.ingest(chunks, edges)

    try:
        result = run_async(_with_graph(ctx, _ingest))
    except (JourneyRAGError, ValueError, KeyError) as e:
        fail(str(e))

    click.echo(f"Created {len(result.chunk_ids)} chunks and {len(result.edge_ids)} edges")
    for key, chunk_id in result.chunk_ids.items():
        click.echo(f"  - {key}: chunk {chunk_id}")


@cli.command('search')
@click.option('--embedding-file', type=click.Path(exists=True), required=True,
              help='JSON file holding the query vector')
@click.option('--limit', default=20, type=click.IntRange(1, 100), help='Maximum profiles')
@click.option('--tenant', default=None, help='Tenant id')
@click.option('--exclude-user', type=int, default=None, help='Owner to exclude')
@click.option('--max-depth', type=click.IntRange(0, 6), default=None, help='Override expansion depth')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def search(ctx, embedding_file, limit, tenant, exclude_user, max_depth, output_format):
    """Search profiles with a precomputed query embedding.

    Example:
        journeyrag-cli search --embedding-file query.json --limit 5 --exclude-user 7
    """
    try:
        with open(embedding_file, 'r') as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        fail(f"invalid JSON: {e}")
    embedding = payload.get('embedding') if isinstance(payload, dict) else payload

    overrides = {} if max_depth is None else {'max_depth': max_depth}

    async def _search(graph: JourneyGraph):
        return await graph.search(
            embedding,
            limit=limit,
            tenant_id=tenant,
            exclude_user_id=exclude_user,
            **overrides,
        )

    try:
        profiles = run_async(_with_graph(ctx, _search))
    except (JourneyRAGError, ValueError) as e:
        fail(str(e))

    if output_format == 'json':
        click.echo(json.dumps({
            'results': [p.to_dict() for p in profiles],
            'totalResults': len(profiles),
        }, indent=2, default=str))
        return

    if not profiles:
        click.echo("No matches found.")
        return

    click.echo(f"{len(profiles)} profiles:")
    for rank, profile in enumerate(profiles, 1):
        click.echo(f"{rank:>3}. user {profile.user_id}  score={profile.score:.4f}  {profile.why_matched}")
        for node in profile.matched_nodes:
            click.echo(f"       - [{node.chunk.entity_type}] {node.chunk.text[:60]}  "
                       f"(final={node.final_score:.4f}, sim={node.direct_similarity:.3f}, "
                       f"graph={node.graph_aware_score:.3f})")


@cli.command('stats')
@click.pass_context
def stats(ctx):
    """Show store statistics."""
    async def _stats(graph: JourneyGraph):
        return await graph.stats()

    try:
        data = run_async(_with_graph(ctx, _stats))
    except JourneyRAGError as e:
        fail(str(e))

    click.echo("JourneyRAG statistics:")
    for key, value in data.items():
        click.echo(f"  {key}: {value}")


if __name__ == '__main__':
    cli()
