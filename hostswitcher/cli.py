"""Command line front end: ``hostswitcher <command> ...``."""

import argparse
import logging
import sys

from . import __version__, system
from .app import HostSwitcher
from .errors import HostSwitcherError
from .models import FREQ_MANUAL, UPDATE_FREQUENCIES, format_time
from .settings import Settings

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _read_text(path):
    if path == "-":
        return sys.stdin.read()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        raise HostSwitcherError(f"Could not read {path}: {e}") from e


def _split_tags(value):
    return [t for t in (value or "").split(",") if t.strip()]


# ----------------------------- Hosts file ---------------------------------------
def cmd_show(app, args):
    sys.stdout.write(app.gateway.read())


def cmd_path(app, args):
    print(app.gateway.path)


def cmd_validate(app, args):
    app.gateway.validate(_read_text(args.file))
    print(f"{args.file}: OK")


def cmd_write(app, args):
    content = _read_text(args.file)
    if args.legacy:
        app.orchestrator.write_direct_legacy(content)
    else:
        app.orchestrator.write_direct(content)
    print(f"Wrote {app.gateway.path}")


def cmd_diff(app, args):
    for line in app.orchestrator.preview(_read_text(args.file)):
        print(line)


def cmd_restore_default(app, args):
    app.orchestrator.restore_default()
    print(f"Restored default hosts file at {app.gateway.path}")


def cmd_flush_dns(app, args):
    system.flush_dns()
    print("Successfully flushed DNS resolver cache.")


def cmd_check_admin(app, args):
    if system.is_admin():
        print("Running with Administrator privileges.")
        return 0
    print("Not running with Administrator privileges.")
    return 1


# ----------------------------- Configs ------------------------------------------
def cmd_config_list(app, args):
    for config in app.configs.all():
        marker = "*" if config.is_active else " "
        origin = f" <{config.remote_url}>" if config.remote_url else ""
        print(f"{marker} {config.id}  {config.name}{origin}")


def cmd_config_show(app, args):
    config = app.configs.get(args.id)
    print(f"# {config.name}: {config.description}")
    sys.stdout.write(config.content)


def cmd_config_create(app, args):
    config = app.configs.create(args.name, args.description, _read_text(args.file))
    print(config.id)


def cmd_config_update(app, args):
    config = app.configs.get(args.id)
    content = _read_text(args.file) if args.file else config.content
    app.configs.update(config.id, args.name or config.name,
                       config.description if args.description is None else args.description,
                       content)


def cmd_config_delete(app, args):
    app.configs.delete(args.id)


def cmd_config_apply(app, args):
    config = app.orchestrator.apply_config(args.id)
    print(f"Applied '{config.name}' to {app.gateway.path}")


# ----------------------------- Backups ------------------------------------------
def cmd_backup_list(app, args):
    for backup in app.backups.all():
        kind = "auto" if backup.is_automatic else "manual"
        tags = f" [{', '.join(backup.tags)}]" if backup.tags else ""
        print(f"{backup.id}  {format_time(backup.timestamp)}  {kind:6}  {backup.size:>8}  "
              f"{backup.description}{tags}")


def cmd_backup_create(app, args):
    backup = app.orchestrator.backup_now(args.description, _split_tags(args.tags))
    print(backup.id)


def cmd_backup_show(app, args):
    sys.stdout.write(app.backups.get(args.id).content)


def cmd_backup_delete(app, args):
    app.backups.delete(args.id)


def cmd_backup_tag(app, args):
    app.backups.update_tags(args.id, args.tags)


def cmd_backup_describe(app, args):
    app.backups.update_description(args.id, args.description)


def cmd_backup_restore(app, args):
    app.orchestrator.restore_from_backup(args.id)
    print(f"Restored backup {args.id}")


def cmd_backup_clear_auto(app, args):
    print(f"Removed {app.backups.clear_automatic()} automatic backups")


def cmd_backup_stats(app, args):
    for key, value in app.backups.stats().items():
        print(f"{key}: {value}")


# ----------------------------- Remote sources -----------------------------------
def cmd_remote_list(app, args):
    for source in app.sources.all():
        print(f"{source.id}  {source.name}  {source.url}  {source.update_freq}  {source.status}  "
              f"{format_time(source.last_updated_at)}")


def cmd_remote_add(app, args):
    print(app.sources.add(args.name, args.url, args.freq).id)


def cmd_remote_update(app, args):
    source = app.sources.get(args.id)
    app.sources.update(source.id, args.name or source.name, args.url or source.url,
                       args.freq or source.update_freq)


def cmd_remote_delete(app, args):
    app.orchestrator.remove_remote_source(args.id)


def cmd_remote_fetch(app, args):
    sys.stdout.write(app.engine.fetch(args.id))


def cmd_remote_apply(app, args):
    app.orchestrator.apply_remote(args.id)
    print(f"Applied remote source {args.id}")


def cmd_remote_update_all(app, args):
    results = app.orchestrator.update_all_remote()
    failed = {k: v for k, v in results.items() if v is not None}
    for source_id, error in failed.items():
        print(f"{source_id}: {error}", file=sys.stderr)
    print(f"Updated {len(results) - len(failed)} of {len(results)} remote sources")
    return 1 if failed else 0


def cmd_remote_import(app, args):
    print(app.engine.create_config_from_remote(args.id).id)


def cmd_remote_refresh(app, args):
    app.engine.update_config_from_remote(args.config_id)


# ----------------------------- Parser -------------------------------------------
def build_parser():
    parser = argparse.ArgumentParser(prog="hostswitcher",
                                     description="Manage hosts file profiles, remote lists and backups.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--data-dir", help="Directory holding configs, sources and backups "
                                           "(default: $HOSTSWITCHER_HOME or ~/.hosts-manager)")
    parser.add_argument("--hosts-path", help="Hosts file to manage instead of the system one")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                        help="Logging level (default from settings)")
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    def add(sub, name, func, help_text):
        p = sub.add_parser(name, help=help_text)
        p.set_defaults(func=func)
        return p

    add(commands, "show", cmd_show, "Print the live hosts file")
    add(commands, "path", cmd_path, "Print the hosts file path")
    add(commands, "validate", cmd_validate, "Check hosts syntax of FILE").add_argument("file")
    p = add(commands, "write", cmd_write, "Write FILE to the hosts file (backed up first)")
    p.add_argument("file")
    p.add_argument("--legacy", action="store_true", help="Encode using the legacy codepage")
    add(commands, "diff", cmd_diff, "Diff the hosts file against FILE").add_argument("file")
    add(commands, "restore-default", cmd_restore_default, "Write the stock hosts file")
    add(commands, "flush-dns", cmd_flush_dns, "Flush the DNS resolver cache")
    add(commands, "check-admin", cmd_check_admin, "Report whether we run elevated")

    config = commands.add_parser("config", help="Manage saved configs").add_subparsers(
        dest="action", metavar="action")
    config.required = True
    add(config, "list", cmd_config_list, "List configs (* marks the active one)")
    add(config, "show", cmd_config_show, "Print a config").add_argument("id")
    p = add(config, "create", cmd_config_create, "Create a config from FILE")
    p.add_argument("name")
    p.add_argument("file")
    p.add_argument("-d", "--description", default="")
    p = add(config, "update", cmd_config_update, "Update a config")
    p.add_argument("id")
    p.add_argument("--name")
    p.add_argument("--file")
    p.add_argument("-d", "--description")
    add(config, "delete", cmd_config_delete, "Delete an inactive config").add_argument("id")
    add(config, "apply", cmd_config_apply, "Apply a config to the hosts file").add_argument("id")

    backup = commands.add_parser("backup", help="Manage backups").add_subparsers(
        dest="action", metavar="action")
    backup.required = True
    add(backup, "list", cmd_backup_list, "List backups, newest first")
    p = add(backup, "create", cmd_backup_create, "Back up the hosts file now")
    p.add_argument("-d", "--description", default="")
    p.add_argument("-t", "--tags", help="Comma-separated tags")
    add(backup, "show", cmd_backup_show, "Print a backup").add_argument("id")
    add(backup, "delete", cmd_backup_delete, "Delete a manual backup").add_argument("id")
    p = add(backup, "tag", cmd_backup_tag, "Replace a backup's tags")
    p.add_argument("id")
    p.add_argument("tags", nargs="*")
    p = add(backup, "describe", cmd_backup_describe, "Replace a backup's description")
    p.add_argument("id")
    p.add_argument("description")
    add(backup, "restore", cmd_backup_restore, "Write a backup to the hosts file").add_argument("id")
    add(backup, "clear-auto", cmd_backup_clear_auto, "Delete every automatic backup")
    add(backup, "stats", cmd_backup_stats, "Backup counts and total size")

    remote = commands.add_parser("remote", help="Manage remote sources").add_subparsers(
        dest="action", metavar="action")
    remote.required = True
    add(remote, "list", cmd_remote_list, "List remote sources")
    p = add(remote, "add", cmd_remote_add, "Track a remote hosts list")
    p.add_argument("name")
    p.add_argument("url")
    p.add_argument("--freq", choices=UPDATE_FREQUENCIES, default=FREQ_MANUAL)
    p = add(remote, "update", cmd_remote_update, "Edit a remote source")
    p.add_argument("id")
    p.add_argument("--name")
    p.add_argument("--url")
    p.add_argument("--freq", choices=UPDATE_FREQUENCIES)
    add(remote, "delete", cmd_remote_delete, "Remove a source and its hosts region").add_argument("id")
    add(remote, "fetch", cmd_remote_fetch, "Download and print a source").add_argument("id")
    add(remote, "apply", cmd_remote_apply, "Merge a source into the hosts file").add_argument("id")
    add(remote, "update-all", cmd_remote_update_all, "Merge every source into the hosts file")
    add(remote, "import", cmd_remote_import, "Create a config from a source").add_argument("id")
    add(remote, "refresh", cmd_remote_refresh, "Re-fetch a remote config").add_argument("config_id")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.load(data_dir=args.data_dir)
        if args.hosts_path:
            settings.hosts_path = args.hosts_path
        logging.basicConfig(level=(args.log_level or settings.log_level).upper(),
                            format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        app = HostSwitcher(settings).init(run_startup=False)
        try:
            return args.func(app, args) or 0
        finally:
            app.shutdown()
    except HostSwitcherError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
