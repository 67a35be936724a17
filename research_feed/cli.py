"""
Command-line interface for research-feed.

Provides commands to run the relay API and to drive one identity's
dashboard (subscriptions, aggregated feed, public library, social search).

Usage:
    research-feed serve                          # Run the relay API
    research-feed health                         # Check dependencies
    research-feed feed --user UID                # Print the aggregated feed
    research-feed subscribe URL --user UID       # Add a subscription
    research-feed share URL --user UID --email E # Share to the public library
    research-feed social "biomass"               # Search social posts
"""

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import click

from research_feed.config.settings import get_settings
from research_feed.identity import AuthenticationRequiredError, Identity
from research_feed.library.service import DuplicateEntryError
from research_feed.observability.logging import setup_logging
from research_feed.observability.metrics import get_metrics
from research_feed.services.dashboard_service import DashboardService
from research_feed.storage import create_document_store
from research_feed.subscriptions.store import SubscriptionNotFoundError

user_option = click.option("--user", "uid", required=True, help="Identity uid")
email_option = click.option("--email", default=None, help="Identity email")


@asynccontextmanager
async def dashboard_session(uid: str, email: str | None = None) -> AsyncIterator[DashboardService]:
    """Signed-in dashboard whose initial sync and passes have settled."""
    store = await create_document_store()
    dashboard = DashboardService(store)
    try:
        await dashboard.login(Identity(uid=uid, email=email))
        await dashboard.wait_idle()
        yield dashboard
    finally:
        await dashboard.close()


def _print_feed(dashboard: DashboardService) -> None:
    resources = dashboard.resources
    if not resources:
        click.echo("No resources.")
        return

    for i, resource in enumerate(resources, 1):
        source = resource.native_data.get("source", "")
        published = resource.published_at.strftime("%Y-%m-%d") if resource.published_at else "?"
        click.echo(f"\n{i}. [{published}] {resource.title}")
        if source:
            click.echo(f"   Source: {source}")
        if resource.url:
            click.echo(f"   {resource.url}")

    click.echo(f"\n{'-' * 60}")
    click.echo(f"{len(resources)} resources")


def _fail(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Research Feed - subscription sync and feed aggregation."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def serve(host: str | None, port: int | None, reload: bool, metrics: bool) -> None:
    """Start the relay API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    if metrics:
        get_metrics().start_server()
        click.echo(f"Metrics available on http://localhost:{settings.metrics_port}/metrics")

    click.echo(f"Starting relay API on {host}:{port}")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "research_feed.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
def health() -> None:
    """Check the document store and which upstreams are configured."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        settings = get_settings()
        results: dict[str, bool] = {}

        try:
            store = await create_document_store()
            await store.get("health/ping")
            await store.close()
            results["document_store"] = True
        except Exception as e:
            results["document_store"] = False
            logger.error("Document store health check failed", error=str(e))

        results["nyt_configured"] = bool(settings.nyt_api_keys)
        results["guardian_configured"] = bool(settings.guardian_api_keys)
        results["congress_configured"] = bool(settings.congress_api_keys)
        results["bluesky_configured"] = settings.bluesky_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        click.echo("-" * 40)

        if results["document_store"]:
            click.echo(click.style("Document store healthy!", fg="green"))
            sys.exit(0)
        click.echo(click.style("Document store unreachable!", fg="red"))
        sys.exit(1)

    asyncio.run(check())


@main.command()
@user_option
def feed(uid: str) -> None:
    """Run one aggregation pass and print the merged feed."""

    async def run():
        async with dashboard_session(uid) as dashboard:
            await dashboard.refresh()
            _print_feed(dashboard)

    asyncio.run(run())


@main.command()
@user_option
def subscriptions(uid: str) -> None:
    """List subscriptions."""

    async def run():
        async with dashboard_session(uid) as dashboard:
            if not dashboard.subscriptions:
                click.echo("No subscriptions.")
                return
            for sub in dashboard.subscriptions:
                state = "active" if sub.is_active else "paused"
                keywords = f"  keywords: {', '.join(sub.keywords)}" if sub.keywords else ""
                click.echo(f"  [{state}] {sub.url}{keywords}")

    asyncio.run(run())


@main.command()
@click.argument("url")
@user_option
@click.option("--name", default=None, help="Display name")
@click.option("--from-library", is_flag=True, help="Subscribe to a public library entry")
def subscribe(url: str, uid: str, name: str | None, from_library: bool) -> None:
    """Subscribe to a source URL."""

    async def run():
        async with dashboard_session(uid) as dashboard:
            if from_library:
                added = await dashboard.subscribe_from_library(url)
            else:
                added = await dashboard.add_subscription(url, name)
            await dashboard.wait_idle()
            click.echo(f"Subscribed to {url}" if added else f"Already subscribed to {url}")

    asyncio.run(run())


@main.command()
@click.argument("url")
@user_option
def unsubscribe(url: str, uid: str) -> None:
    """Remove a subscription."""

    async def run():
        async with dashboard_session(uid) as dashboard:
            removed = await dashboard.remove_subscription(url)
            await dashboard.wait_idle()
            click.echo(f"Unsubscribed from {url}" if removed else f"Not subscribed to {url}")

    asyncio.run(run())


@main.command()
@click.argument("url")
@user_option
def toggle(url: str, uid: str) -> None:
    """Pause or resume a subscription."""

    async def run():
        async with dashboard_session(uid) as dashboard:
            try:
                sub = await dashboard.toggle_subscription(url)
            except SubscriptionNotFoundError:
                _fail(f"Not subscribed to {url}")
            await dashboard.wait_idle()
            click.echo(f"{url} is now {'active' if sub.is_active else 'paused'}")

    asyncio.run(run())


@main.command()
@click.argument("url")
@click.argument("keywords", nargs=-1)
@user_option
def filters(url: str, keywords: tuple[str, ...], uid: str) -> None:
    """Replace the keyword filters of a subscription."""

    async def run():
        async with dashboard_session(uid) as dashboard:
            try:
                await dashboard.update_filters(url, list(keywords))
            except SubscriptionNotFoundError:
                _fail(f"Not subscribed to {url}")
            await dashboard.wait_idle()
            shown = ", ".join(keywords) if keywords else "(none)"
            click.echo(f"Filters for {url}: {shown}")

    asyncio.run(run())


@main.command()
@click.argument("url")
@user_option
@email_option
@click.option("--description", default="", help="Why this source is worth following")
def share(url: str, uid: str, email: str | None, description: str) -> None:
    """Share a source to the public library."""

    async def run():
        async with dashboard_session(uid, email) as dashboard:
            try:
                entry = await dashboard.share(url, description)
            except DuplicateEntryError:
                click.echo(f"Already in library: {url}")
                return
            click.echo(f"Shared {url} (id {entry.id})")

    asyncio.run(run())


@main.command()
def library() -> None:
    """List the public library."""
    from research_feed.library.service import LibraryService

    async def run():
        store = await create_document_store()
        try:
            entries = await LibraryService(store).refresh()
        finally:
            await store.close()

        if not entries:
            click.echo("Library is empty.")
            return
        for entry in entries:
            click.echo(f"\n{entry.id}  {entry.url}")
            if entry.description:
                click.echo(f"   {entry.description}")
            click.echo(f"   shared by {entry.shared_by or '?'} on {entry.shared_at:%Y-%m-%d}")

    asyncio.run(run())


@main.command()
@click.argument("entry_id")
@user_option
@email_option
def unshare(entry_id: str, uid: str, email: str | None) -> None:
    """Delete a public library entry."""

    async def run():
        async with dashboard_session(uid, email) as dashboard:
            await dashboard.delete_from_library(entry_id)
            click.echo(f"Removed {entry_id} from library")

    asyncio.run(run())


@main.command()
@click.argument("query")
@click.option("--repost", "repost_id", default=None, help="Repost the result with this id")
def social(query: str, repost_id: str | None) -> None:
    """Search social posts by keyword."""
    from research_feed.social.monitor import RepostError, SocialMonitor

    async def run():
        monitor = SocialMonitor()
        posts = await monitor.search(query)

        if not posts:
            click.echo("No posts found.")
            return

        for post in posts:
            click.echo(f"\n@{post.author.handle}: {post.content[:120]}")
            click.echo(f"   likes {post.likes} | reposts {post.reposts} | {post.url}")
            click.echo(f"   id: {post.id}")

        if repost_id:
            try:
                post = await monitor.repost(repost_id)
            except KeyError:
                _fail(f"No post {repost_id} in results")
            except AuthenticationRequiredError as e:
                _fail(str(e))
            except RepostError as e:
                _fail(str(e))
            click.echo(f"\nReposted {post.id} (now {post.reposts} reposts)")

    asyncio.run(run())


if __name__ == "__main__":
    main()
