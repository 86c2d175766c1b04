"""
Command-line interface for qi.

Provides commands for managing cached repositories and for running
scripts by name. Any unknown command name is treated as a script name:
``qi backup`` is ``qi run backup``.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from qi import __version__
from qi.core.exceptions import EXIT_GIT_ERROR, EXIT_NOT_FOUND, QiError
from qi.utils.logging_config import setup_logging


class ScriptGroup(click.Group):
    """Group that dispatches unknown command names to ``run``."""

    def resolve_command(self, ctx, args):
        cmd_name = click.utils.make_str(args[0])
        if self.get_command(ctx, cmd_name) is None and not cmd_name.startswith("-"):
            return "run", self.get_command(ctx, "run"), args
        return super().resolve_command(ctx, args)


def _exit_with_error(ctx, error: QiError):
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get("verbose"):
        import traceback
        traceback.print_exc()
    sys.exit(error.exit_code)


def _config(ctx):
    """Load configuration once per invocation."""
    if "config" not in ctx.obj:
        from qi.core.config import Config

        config = Config.load(ctx.obj.get("config_dir"))
        config.dry_run = ctx.obj.get("dry_run", False)
        config.verbose = config.verbose or ctx.obj.get("verbose", False)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def _router(ctx, select: Optional[int] = None):
    """Build the command router from the loaded configuration."""
    from qi.cache.git_handler import GitHandler
    from qi.cache.store import CacheStore
    from qi.registry.registry import RepositoryRegistry
    from qi.router import CommandRouter
    from qi.scripts.resolver import (
        ClickSelectionPrompt,
        FixedSelectionPrompt,
        NonInteractivePrompt,
    )

    config = _config(ctx)
    registry = RepositoryRegistry.load(
        config.registry_path, config.cache_path, config.cache.default_branch
    )
    cache = CacheStore(
        config.cache_path,
        git=GitHandler(config.cache),
        config=config.cache,
        dry_run=config.dry_run,
    )

    if select is not None:
        prompt = FixedSelectionPrompt([select])
    elif sys.stdin.isatty():
        prompt = ClickSelectionPrompt()
    else:
        prompt = NonInteractivePrompt()

    return CommandRouter(config, registry, cache, prompt)


@click.group(cls=ScriptGroup)
@click.version_option(version=__version__)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output"
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without changing the cache or running scripts"
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    help="Configuration directory (default: $QI_CONFIG_DIR or ~/.qi)"
)
@click.option(
    "--log-file",
    type=click.Path(),
    help="Path to log file"
)
@click.pass_context
def cli(ctx, verbose, dry_run, config_dir, log_file):
    """
    qi - run scripts from cached git repositories by name.

    Add repositories once, then run any of their scripts with
    'qi <script-name>'.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["dry_run"] = dry_run
    ctx.obj["config_dir"] = config_dir

    log_level = "DEBUG" if verbose else ("INFO" if dry_run else "WARNING")
    setup_logging(level=log_level, log_file=Path(log_file) if log_file else None)


@cli.command()
@click.argument("url")
@click.argument("name", required=False)
@click.option(
    "--branch", "-b",
    help="Branch to track (default: configured default branch)"
)
@click.pass_context
def add(ctx, url, name, branch):
    """
    Add a git repository to the cache.

    NAME defaults to the last path component of URL without '.git'.

    Examples:

        qi add https://github.com/user/scripts.git

        qi add git@github.com:user/tools.git devtools
    """
    try:
        router = _router(ctx)
        repository = router.add(url, name, branch)
    except QiError as e:
        _exit_with_error(ctx, e)

    prefix = "[DRY RUN] " if ctx.obj.get("dry_run") else ""
    click.echo(f"{prefix}Repository '{repository.name}' added ({repository.url}, branch {repository.branch})")


@cli.command()
@click.argument("name")
@click.option(
    "--yes", "-y",
    is_flag=True,
    help="Skip confirmation prompt"
)
@click.pass_context
def remove(ctx, name, yes):
    """Remove a repository and its working copy from the cache."""
    try:
        router = _router(ctx)
        repository = router.registry.get(name)

        if not yes:
            click.echo(f"Repository: {repository.name} ({repository.url})")
            if not click.confirm(f"Are you sure you want to remove repository '{name}'?"):
                click.echo("Cancelled")
                return

        router.remove(name)
    except QiError as e:
        _exit_with_error(ctx, e)

    if ctx.obj.get("dry_run"):
        click.echo(f"[DRY RUN] Repository '{name}' would be removed")
    else:
        click.echo(f"Repository '{name}' removed")


@cli.command()
@click.argument("name", required=False)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Stash local changes and reset to the remote branch"
)
@click.pass_context
def update(ctx, name, force):
    """
    Update cached repositories.

    Updates NAME, or every registered repository when NAME is omitted.
    Failures of individual repositories do not stop the others.
    """
    try:
        router = _router(ctx)
        if name is None and len(router.registry) == 0:
            click.echo("No repositories registered")
            click.echo("Use 'qi add <repository-url>' to add repositories")
            return
        summary = router.update(name, force=force)
    except QiError as e:
        _exit_with_error(ctx, e)

    click.echo("Update Results:")
    click.echo("=" * 40)
    for result in summary.results:
        mark = "✓" if result.success else "✗"
        click.echo(f"  {mark} {result.name}: {result.message}")
    click.echo()
    click.echo(f"Summary: {len(summary.succeeded)} updated, {len(summary.failed)} errors")

    if not summary.ok:
        sys.exit(EXIT_GIT_ERROR)


@cli.command(name="list")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["name", "full", "repo"]),
    default="name",
    help="Output format (default: name)"
)
@click.pass_context
def list_scripts(ctx, output_format):
    """List available scripts from all cached repositories."""
    try:
        index = _router(ctx).list_scripts()
    except QiError as e:
        _exit_with_error(ctx, e)

    if len(index) == 0:
        click.echo("No scripts found")
        click.echo("Use 'qi add <repository-url>' to add repositories")
        return

    if output_format == "full":
        for entry in index.entries():
            click.echo(f"{entry.script_name} ({entry.repository_name}: {entry.relative_path})")
    elif output_format == "repo":
        for repository_name, entries in index.by_repository().items():
            click.echo(f"{repository_name}:")
            for entry in entries:
                click.echo(f"  {entry.script_name} ({entry.relative_path})")
    else:
        for name in index.names():
            owners = ", ".join(e.repository_name for e in index.lookup(name))
            click.echo(f"{name}  [{owners}]")


@cli.command(name="list-repos")
@click.pass_context
def list_repos(ctx):
    """List registered repositories."""
    try:
        rows = _router(ctx).repositories()
    except QiError as e:
        _exit_with_error(ctx, e)

    if not rows:
        click.echo("No repositories registered")
        click.echo("Use 'qi add <repository-url>' to add repositories")
        return

    click.echo(f"{'Name':<20} {'Branch':<12} {'Scripts':>7}  URL")
    click.echo(f"{'----':<20} {'------':<12} {'-------':>7}  ---")
    for row in rows:
        scripts = str(row["script_count"]) if row["cached"] else "-"
        click.echo(f"{row['name']:<20} {row['branch']:<12} {scripts:>7}  {row['url']}")
    click.echo()
    click.echo(f"Total: {len(rows)} repository(ies)")


@cli.command()
@click.argument("name")
@click.pass_context
def info(ctx, name):
    """Show details and git status of a repository."""
    try:
        details = _router(ctx).repository_info(name)
    except QiError as e:
        _exit_with_error(ctx, e)

    rows = [
        ("Name", details["name"]),
        ("URL", details["url"]),
        ("Branch", details["branch"]),
        ("Path", details["local_path"]),
        ("Added", details["added_at"]),
        ("Cached", "yes" if details["cached"] else "no"),
    ]
    if details["cached"]:
        working_dir = {True: "Clean", False: "Modified"}.get(details.get("clean"), "unknown")
        rows += [
            ("Current Branch", details.get("current_branch") or "detached"),
            ("Last Commit", details.get("last_commit") or "unknown"),
            ("Working Dir", working_dir),
            ("Scripts", details.get("script_count", 0)),
        ]
    for label, value in rows:
        click.echo(f"{label + ':':<16} {value}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show cache statistics and consistency problems."""
    try:
        stats = _router(ctx).status()
    except QiError as e:
        _exit_with_error(ctx, e)

    click.echo("Cache Status:")
    click.echo("-" * 40)
    click.echo(f"  Cache dir:    {stats['cache_dir']}")
    click.echo(f"  Registered:   {stats['registered_count']}")
    click.echo(f"  Cached:       {stats['repository_count']}")
    click.echo(f"  Total size:   {stats['total_size_mb']:.2f} MB")

    if stats["issues"]:
        click.echo()
        click.echo(f"Found {len(stats['issues'])} issue(s):")
        for issue in stats["issues"]:
            click.echo(f"  - {issue}")
    else:
        click.echo()
        click.echo("No issues found")


@cli.command()
@click.option(
    "--init",
    "init_file",
    is_flag=True,
    help="Write a configuration file with the current settings"
)
@click.pass_context
def config(ctx, init_file):
    """Show the current configuration, or create the configuration file."""
    from qi.core.config import Config

    try:
        settings = _config(ctx)
    except QiError as e:
        _exit_with_error(ctx, e)

    if init_file:
        if settings.config_path.exists():
            click.echo(f"Configuration file already exists: {settings.config_path}")
            return
        Config.save_to_file(str(settings.config_path))
        click.echo(f"Configuration saved to: {settings.config_path}")
        return

    click.echo("qi Configuration:")
    click.echo("=" * 40)
    click.echo(f"  Config file:     {settings.config_path}")
    click.echo(f"  Cache dir:       {settings.cache.cache_dir}")
    click.echo(f"  Default branch:  {settings.cache.default_branch}")
    click.echo(f"  Git timeout:     {settings.cache.git_timeout}s")
    click.echo(f"  Script ext:      {settings.scripts.extension}")
    click.echo(f"  Search dir:      {settings.scripts.search_dir or '(whole repository)'}")
    click.echo(f"  Auto update:     {str(settings.auto_update).lower()}")
    click.echo(f"  Verbose:         {str(settings.verbose).lower()}")
    if not settings.config_path.exists():
        click.echo()
        click.echo("Configuration file not found. Run 'qi config --init' to create one.")


@cli.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
@click.option(
    "--select", "-s",
    type=int,
    help="Candidate number to use when several repositories provide the script"
)
@click.argument("script_name")
@click.argument("script_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx, select, script_name, script_args):
    """
    Run a script by name.

    Everything after SCRIPT_NAME is passed to the script.

    Examples:

        qi run backup --full

        qi backup --full
    """
    try:
        exit_code = _router(ctx, select).run(script_name, list(script_args))
    except QiError as e:
        if e.exit_code == EXIT_NOT_FOUND and getattr(e, "script_name", None):
            click.echo("Use 'qi list' to see available scripts", err=True)
        _exit_with_error(ctx, e)

    if exit_code < 0:
        exit_code = 128 - exit_code
    sys.exit(exit_code)


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
