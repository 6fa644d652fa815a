"""
main.py — Dependency Wiring (Composition Root)
------------------------------------------------
This file has ONE job: wire all the pieces together and run a command.

It does NOT contain any business logic. It just:
  1. Reads configuration from environment variables (and CLI overrides)
  2. Creates the shared httpx client and the concrete implementations
  3. Injects them into the classes that need them
  4. Calls the use case for the chosen subcommand
  5. Reports the result and exits

Dependency graph (what depends on what):
                         main.py  (wires everything)
                            │
              ┌─────────────┼──────────────┐
              ▼             ▼              ▼
    SyncApplicationService  │      ProjectsFileStorage
              │             │
              ▼             ▼
    GroupProjectCrawler  TraceStreamer ──► ConsoleTraceRenderer
              │             │
              ▼             ▼
    SubgroupResolver ──► GitLabClient
"""

from __future__ import annotations

import asyncio
import logging
import sys
import argparse
from dataclasses import replace
from pathlib import Path

import httpx
from rich.console import Console

# Application layer
from lab.application.crawl_service import SyncApplicationService
from lab.application.group_resolver import SubgroupResolver
from lab.application.orchestrator import GroupProjectCrawler
from lab.application.trace_streamer import POLL_INTERVAL, TraceStreamer

# Domain
from lab.config import LabConfig, load_config, projects_file_path
from lab.domain.entities import parse_group_ref
from lab.domain.errors import ConfigError, ForgeAPIError
from lab.domain.project_url import git_url_to_project

# Infrastructure layer
from lab.infrastructure.gitlab_client import GitLabClient
from lab.infrastructure.projects_file import ProjectsFileStorage
from lab.infrastructure.terminal import ConsoleTraceRenderer

log = logging.getLogger("lab")

EXIT_OK      = 0
EXIT_FAILED  = 1
EXIT_PARTIAL = 2


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def resolve_project(value: str, base_url: str) -> str | int:
    """Accept a numeric ID, a namespaced path, or a clone URL."""
    text = value.strip()
    if text.isdigit():
        return int(text)
    if "://" in text or text.startswith("git@"):
        path = git_url_to_project(text, base_url)
        if not path:
            raise ConfigError(f"cannot derive a project path from {value!r}")
        return path
    return text.strip("/")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

async def run_sync(config: LabConfig, args: argparse.Namespace, http: httpx.AsyncClient, console: Console) -> int:
    client   = GitLabClient(base_url=config.base_url, token=config.token, client=http)
    crawler  = GroupProjectCrawler(
        client         = client,
        resolver       = SubgroupResolver(client),
        max_concurrent = config.max_concurrent,
    )
    service  = SyncApplicationService(
        crawler = crawler,
        storage = ProjectsFileStorage(config.projects_file),
    )

    groups = [parse_group_ref(g) for g in args.group]
    with console.status("sync in process"):
        result = await service.execute(groups, sync_all=config.sync_all)

    if result.status == "success":
        log.info("✅ Synced %d projects in %.0fs", result.total_projects, result.elapsed_secs)
        return EXIT_OK
    if result.status == "partial":
        log.warning("⚠️  Synced %d projects in %.0fs, but %s", result.total_projects, result.elapsed_secs, result.error_message)
        return EXIT_PARTIAL
    log.error("❌ Sync failed: %s", result.error_message)
    return EXIT_FAILED


async def run_trace(config: LabConfig, args: argparse.Namespace, http: httpx.AsyncClient, console: Console) -> int:
    client   = GitLabClient(base_url=config.base_url, token=config.token, client=http)
    streamer = TraceStreamer(
        client     = client,
        renderer   = ConsoleTraceRenderer(console),
        interval   = args.interval,
        tail_lines = config.tail_lines,
    )
    project = resolve_project(args.project, config.base_url)

    job = await client.get_job(project, args.job_id)
    await streamer.stream_trace(project, job)
    log.info("Job %s is no longer running", job.name)
    return EXIT_OK


async def run_watch(config: LabConfig, args: argparse.Namespace, http: httpx.AsyncClient, console: Console) -> int:
    client   = GitLabClient(base_url=config.base_url, token=config.token, client=http)
    streamer = TraceStreamer(
        client     = client,
        renderer   = ConsoleTraceRenderer(console),
        interval   = args.interval,
        tail_lines = config.tail_lines,
    )
    project = resolve_project(args.project, config.base_url)

    jobs = await streamer.watch_pipeline(project, args.pipeline_id)
    failed = [j for j in jobs if j.status == "failed"]
    return EXIT_FAILED if failed else EXIT_OK


def run_projects(projects_file: Path, console: Console) -> int:
    storage = ProjectsFileStorage(projects_file)
    projects = storage.load()
    if not projects:
        log.warning("No projects in %s yet, run `lab sync` first", storage.location)
        return EXIT_FAILED
    for project in projects:
        console.print(project, markup=False, highlight=False)
    return EXIT_OK


COMMANDS = {
    "sync":  run_sync,
    "trace": run_trace,
    "watch": run_watch,
}


async def build_and_run(config: LabConfig, args: argparse.Namespace) -> int:
    """
    Creates the one httpx client every command shares and runs the command.
    The client is always closed, even if the command raised.
    """
    console = Console(highlight=False)
    http = httpx.AsyncClient()
    try:
        return await COMMANDS[args.command](config, args, http, console)
    finally:
        await http.aclose()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lab",
        description="Discover GitLab projects and follow running CI jobs",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="discover projects and store their paths")
    sync.add_argument(
        "-g", "--group",
        action  = "append",
        default = [],
        help    = "root group ID or path; repeatable. Without it, sync member projects",
    )
    sync.add_argument("--all", dest="sync_all", action="store_true", default=None, help="without --group: every visible project, not just memberships")
    sync.add_argument("--max-concurrent", type=int, default=None, help="parallel group listings")

    sub.add_parser("projects", help="print the stored project paths")

    trace = sub.add_parser("trace", help="follow one job's log")
    trace.add_argument("project", help="project ID, path or clone URL")
    trace.add_argument("job_id", type=int)

    watch = sub.add_parser("watch", help="follow every running job of a pipeline")
    watch.add_argument("project", help="project ID, path or clone URL")
    watch.add_argument("pipeline_id", type=int)

    for p in (trace, watch):
        p.add_argument("-n", "--tail", type=int, default=None, help="lines of history to show on attach")
        p.add_argument("--interval", type=float, default=POLL_INTERVAL, help=f"seconds between polls (default: {POLL_INTERVAL:g})")

    return parser


def apply_overrides(config: LabConfig, args: argparse.Namespace) -> LabConfig:
    """CLI flags win over environment variables."""
    overrides = {}
    if getattr(args, "sync_all", None):
        overrides["sync_all"] = True

    max_concurrent = getattr(args, "max_concurrent", None)
    if max_concurrent is not None:
        if max_concurrent < 1:
            raise ConfigError(f"--max-concurrent must be at least 1, got {max_concurrent}")
        overrides["max_concurrent"] = max_concurrent

    tail = getattr(args, "tail", None)
    if tail is not None:
        if tail < 0:
            raise ConfigError(f"--tail must not be negative, got {tail}")
        overrides["tail_lines"] = tail
    return replace(config, **overrides)


def cli(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        if args.command == "projects":
            return run_projects(projects_file_path(), Console(highlight=False))
        config = apply_overrides(load_config(), args)
        return asyncio.run(build_and_run(config, args))
    except ConfigError as exc:
        log.error("%s", exc)
        return EXIT_FAILED
    except ForgeAPIError as exc:
        log.error("%s", exc)
        return EXIT_FAILED
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(cli())
