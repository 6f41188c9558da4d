"""mull CLI: matters as markdown files, with links, a docket and a doctor.

Commands (all print JSON on stdout; errors are JSON on stderr, exit 1):
    mull init [NAME]                 write mull.toml + .mull/ dirs
    mull add TITLE [...]             create a matter
    mull show ID [--md]              print one matter
    mull list [--status ...]         list matters
    mull search QUERY                title/body substring search
    mull set ID... KEY VALUE         set a metadata field
    mull append ID TEXT              append to the body
    mull rm ID [--clean-refs]        delete a matter
    mull plan|done|drop ID           status shortcuts
    mull link ID TYPE ID...          relates | blocks | needs | parent
    mull unlink ID TYPE ID
    mull docket [add|rm|move]        ordered work queue
    mull doctor [--fix]              integrity check
    mull epics [--all]               epic summaries
    mull graph [ID] [--all]          dependency graph
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import IO, Any

import click

from mull.config import MullConfig, init_config, load_config
from mull.docket import Docket
from mull.doctor import audit
from mull.errors import MullError
from mull.links import link, remove_all_references, unlink
from mull.store import MatterStore
from mull.views import build_graph, docket_rows, epic_summaries, graph_ids_for, undocketed

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class CommandError(click.ClickException):
    """Renders a failure as {"error": ..., "kind": ...} on stderr."""

    def __init__(self, message: str, kind: str = "error") -> None:
        super().__init__(message)
        self.kind = kind

    @classmethod
    def wrap(cls, exc: Exception, prefix: str = "") -> CommandError:
        kind = exc.kind if isinstance(exc, MullError) else "io-error" if isinstance(exc, OSError) else "invalid"
        message = f"{prefix}: {exc}" if prefix else str(exc)
        return cls(message, kind)

    def show(self, file: IO[Any] | None = None) -> None:
        click.echo(json.dumps({"error": self.format_message(), "kind": self.kind}), err=True)


class _Group(click.Group):
    """Group that turns store errors into CommandError."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except (MullError, OSError, ValueError) as exc:
            raise CommandError.wrap(exc) from exc


@dataclass
class _State:
    root: str | None
    verbosity: int = 0

    @cached_property
    def cfg(self) -> MullConfig:
        return load_config(self.root)

    @cached_property
    def store(self) -> MatterStore:
        self.cfg.ensure_dirs()
        return MatterStore.from_config(self.cfg)

    @cached_property
    def docket(self) -> Docket:
        return Docket(self.cfg.docket_path)


def _emit(obj: Any) -> None:
    click.echo(json.dumps(obj, ensure_ascii=False))


def _setup_logging(verbosity: int, default_level: str) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.getLevelName(default_level)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(asctime)s %(name)s %(levelname)s %(message)s")


pass_state = click.make_pass_decorator(_State)

# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(cls=_Group)
@click.version_option(package_name="mull")
@click.option("--root", default=None, help="Project root (default: search upward for mull.toml, or $MULL_DIR)")
@click.option("-v", "--verbose", count=True, help="Log to stderr (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, root: str | None, verbose: int) -> None:
    """mull: track matters for solo projects."""
    state = _State(root=root, verbosity=verbose)
    ctx.obj = state
    if ctx.invoked_subcommand != "init":
        _setup_logging(verbose, state.cfg.log.level)


# ---------------------------------------------------------------------------
# mull init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "directory", default=".", show_default=True, help="Project root")
@pass_state
def init(state: _State, name: str | None, directory: str) -> None:
    """Create mull.toml and the .mull/ directories."""
    _setup_logging(state.verbosity, "WARNING")
    root_path = Path(directory).resolve()
    created = True
    try:
        config_path = init_config(root_path, name=name)
    except FileExistsError:
        config_path = root_path / "mull.toml"
        created = False
    cfg = load_config(root_path)
    cfg.ensure_dirs()
    _emit({
        "config": str(config_path),
        "created": created,
        "matters_dir": str(cfg.matters_dir),
        "docket": str(cfg.docket_path),
    })


# ---------------------------------------------------------------------------
# Matter CRUD
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title")
@click.option("--tag", "tags", multiple=True, help="Add a tag (repeatable, or comma-separated)")
@click.option("--status", default=None, help="Initial status")
@click.option("--effort", default=None, help="Effort estimate")
@click.option("--epic", default=None, help="Assign to an epic")
@click.option("--plan", default=None, help="Plan text")
@click.option("--body", default=None, help="Matter body")
@click.option("--relates", multiple=True, help="Link as relates to this matter (repeatable)")
@click.option("--blocks", multiple=True, help="Link as blocks this matter (repeatable)")
@click.option("--needs", multiple=True, help="Link as needs this matter (repeatable)")
@click.option("--parent", default=None, help="Parent matter ID")
@click.option("--docket", "to_docket", is_flag=True, help="Append the new matter to the docket")
@pass_state
def add(
    state: _State,
    title: str,
    tags: tuple[str, ...],
    status: str | None,
    effort: str | None,
    epic: str | None,
    plan: str | None,
    body: str | None,
    relates: tuple[str, ...],
    blocks: tuple[str, ...],
    needs: tuple[str, ...],
    parent: str | None,
    to_docket: bool,
) -> None:
    """Create a new matter."""
    meta: dict[str, Any] = {}
    if tags:
        meta["tags"] = ",".join(tags)
    for key, value in (("status", status), ("effort", effort), ("epic", epic), ("plan", plan)):
        if value:
            meta[key] = value

    store = state.store
    m = store.create(title, meta)

    try:
        if body:
            m = store.append_body(m.id, body)
        links = [
            *(("relates", t) for t in relates),
            *(("blocks", t) for t in blocks),
            *(("needs", t) for t in needs),
        ]
        if parent:
            links.append(("parent", parent))
        for rel_type, target in links:
            link(store, m.id, rel_type, target)
        if links:
            m = store.get(m.id)
        if to_docket:
            state.docket.add(m.id)
    except (MullError, OSError) as exc:
        raise CommandError.wrap(exc, f"matter {m.id} created but follow-up failed") from exc

    _emit(m.to_dict())


@cli.command()
@click.argument("matter_id")
@click.option("--md", is_flag=True, help="Print the raw markdown file instead of JSON")
@pass_state
def show(state: _State, matter_id: str, md: bool) -> None:
    """Show a matter by ID."""
    if md:
        click.echo(state.store.read_raw(matter_id), nl=False)
        return
    _emit(state.store.get(matter_id).to_dict())


@cli.command("list")
@click.option("--status", default=None)
@click.option("--tag", default=None)
@click.option("--effort", default=None)
@click.option("--epic", default=None)
@click.option("--active", is_flag=True, help="Exclude done and dropped matters")
@pass_state
def list_cmd(
    state: _State, status: str | None, tag: str | None, effort: str | None, epic: str | None, active: bool,
) -> None:
    """List matters, optionally filtered."""
    filters = {"status": status, "tag": tag, "effort": effort, "epic": epic}
    matters = state.store.list({k: v for k, v in filters.items() if v}, exclude_terminal=active)
    _emit([m.to_dict() for m in matters])


@cli.command()
@click.argument("query")
@pass_state
def search(state: _State, query: str) -> None:
    """Case-insensitive search over titles and bodies."""
    _emit([m.to_dict() for m in state.store.search(query)])


@cli.command("set")
@click.argument("args", nargs=-1, required=True)
@pass_state
def set_cmd(state: _State, args: tuple[str, ...]) -> None:
    """Set KEY to VALUE on one or more matters: set ID [ID...] KEY VALUE."""
    if len(args) < 3:
        raise click.UsageError("expected ID [ID...] KEY VALUE")
    *ids, key, value = args

    if len(ids) == 1:
        _emit(state.store.update(ids[0], key, value).to_dict())
        return

    results: list[dict[str, Any]] = []
    failures = 0
    for matter_id in ids:
        try:
            results.append(state.store.update(matter_id, key, value).to_dict())
        except (MullError, OSError) as exc:
            failures += 1
            results.append({"id": matter_id, "error": str(exc)})
    _emit(results)
    if failures:
        msg = f"errors on {failures} of {len(ids)} matters"
        raise CommandError(msg)


@cli.command()
@click.argument("matter_id")
@click.argument("text")
@pass_state
def append(state: _State, matter_id: str, text: str) -> None:
    """Append TEXT to a matter's body."""
    _emit(state.store.append_body(matter_id, text).to_dict())


@cli.command()
@click.argument("matter_id")
@click.option("--clean-refs", is_flag=True, help="Also strip references to this matter from every other matter")
@pass_state
def rm(state: _State, matter_id: str, clean_refs: bool) -> None:
    """Permanently delete a matter."""
    state.store.delete(matter_id)
    out: dict[str, Any] = {"deleted": matter_id}
    if clean_refs:
        out["cleaned"] = remove_all_references(state.store, matter_id)
    _emit(out)


def _set_status(state: _State, matter_id: str, status: str, *, undocket: bool = False) -> None:
    m = state.store.update(matter_id, "status", status)
    if undocket:
        state.docket.discard(matter_id)
    _emit(m.to_dict())


@cli.command()
@click.argument("matter_id")
@pass_state
def plan(state: _State, matter_id: str) -> None:
    """Mark a matter as planned."""
    _set_status(state, matter_id, "planned")


@cli.command()
@click.argument("matter_id")
@pass_state
def done(state: _State, matter_id: str) -> None:
    """Mark a matter as done and take it off the docket."""
    _set_status(state, matter_id, "done", undocket=True)


@cli.command()
@click.argument("matter_id")
@pass_state
def drop(state: _State, matter_id: str) -> None:
    """Mark a matter as dropped and take it off the docket."""
    _set_status(state, matter_id, "dropped", undocket=True)


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


@cli.command("link")
@click.argument("matter_id")
@click.argument("rel_type", metavar="TYPE")
@click.argument("targets", nargs=-1, required=True)
@pass_state
def link_cmd(state: _State, matter_id: str, rel_type: str, targets: tuple[str, ...]) -> None:
    """Create a relationship. TYPE is one of: relates, blocks, needs, parent."""
    results = []
    for target in targets:
        link(state.store, matter_id, rel_type, target)
        results.append({"from": matter_id, "type": rel_type, "to": target})
    _emit({"linked": results[0] if len(results) == 1 else results})


@cli.command("unlink")
@click.argument("matter_id")
@click.argument("rel_type", metavar="TYPE")
@click.argument("target")
@pass_state
def unlink_cmd(state: _State, matter_id: str, rel_type: str, target: str) -> None:
    """Remove a relationship between two matters."""
    unlink(state.store, matter_id, rel_type, target)
    _emit({"unlinked": {"from": matter_id, "type": rel_type, "to": target}})


# ---------------------------------------------------------------------------
# Docket
# ---------------------------------------------------------------------------


@cli.group(invoke_without_command=True)
@click.option("--invert", is_flag=True, help="Show matters NOT on the docket")
@click.option("--all", "show_all", is_flag=True, help="With --invert, include done and dropped matters")
@click.pass_context
def docket(ctx: click.Context, invert: bool, show_all: bool) -> None:
    """Show the prioritized work queue."""
    if ctx.invoked_subcommand is not None:
        return
    state: _State = ctx.obj
    if invert:
        _emit([m.to_dict() for m in undocketed(state.store, state.docket, include_terminal=show_all)])
        return
    _emit(docket_rows(state.store, state.docket))


@docket.command("add")
@click.argument("matter_id")
@click.option("--after", "after_id", default="", help="Insert after this ID")
@click.option("--note", default="", help="Annotation for the docket entry")
@pass_state
def docket_add(state: _State, matter_id: str, after_id: str, note: str) -> None:
    """Add a matter to the docket."""
    state.store.path_for(matter_id)
    state.docket.add(matter_id, after_id, note)
    _emit({"status": "added", "id": matter_id})


@docket.command("rm")
@click.argument("matter_id")
@pass_state
def docket_rm(state: _State, matter_id: str) -> None:
    """Remove a matter from the docket."""
    state.docket.remove(matter_id)
    _emit({"status": "removed", "id": matter_id})


@docket.command("move")
@click.argument("matter_id")
@click.option("--after", "after_id", required=True, help="Move to after this ID")
@pass_state
def docket_move(state: _State, matter_id: str, after_id: str) -> None:
    """Move a matter within the docket."""
    state.docket.move(matter_id, after_id)
    _emit({"status": "moved", "id": matter_id})


# ---------------------------------------------------------------------------
# Doctor / views
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--fix", is_flag=True, help="Repair issues automatically")
@pass_state
def doctor(state: _State, fix: bool) -> None:
    """Check for orphaned docket entries, dangling references and one-sided links."""
    report = audit(state.store, state.docket, fix=fix)
    _emit(report.to_dict())


@cli.command()
@click.option("--all", "show_all", is_flag=True, help="Include done and dropped matters in counts")
@pass_state
def epics(state: _State, show_all: bool) -> None:
    """List all epics with matter counts."""
    _emit(epic_summaries(state.store.list(), include_terminal=show_all))


@cli.command()
@click.argument("matter_id", required=False)
@click.option("--all", "-a", "show_all", is_flag=True, help="Graph every matter, not just the docket")
@pass_state
def graph(state: _State, matter_id: str | None, show_all: bool) -> None:
    """Dependency graph of the docket, of every matter, or around one matter."""
    if matter_id:
        ids = graph_ids_for(state.store, matter_id)
    elif show_all:
        ids = state.store.ids()
    else:
        ids = set(state.docket.ids())
    _emit(build_graph(state.store, ids))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
