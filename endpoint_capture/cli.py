#!/usr/bin/env python3
"""Operator command line for persisted OpenAPI collections.

Commands work against a base directory of collections written by the capture
middleware: list, stats, export, merge, version and backup.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from .synthesis.collection_manager import CollectionManager
from .utils.formatting import filename_timestamp

console = Console()

DEFAULT_BASE_DIR = "./openapi-specs"


async def open_manager(base_dir: str, multi_file: bool = False) -> CollectionManager:
    """Create a manager over base_dir with every persisted collection loaded."""
    manager = CollectionManager(
        {
            "base_dir": base_dir,
            "single_file_mode": not multi_file,
            "default_collection_options": {"auto_save": False},
        },
    )
    await manager.initialize()
    return manager


def print_stats_table(stats: dict[str, Any]) -> None:
    table = Table(title="OpenAPI Collections")
    table.add_column("Collection", style="cyan")
    table.add_column("Title")
    table.add_column("Version")
    table.add_column("Paths", justify="right")
    table.add_column("Operations", justify="right")
    table.add_column("Tags", justify="right")

    for name, collection_stats in sorted(stats["collections"].items()):
        table.add_row(
            name,
            str(collection_stats["title"]),
            str(collection_stats["version"]),
            str(collection_stats["total_paths"]),
            str(collection_stats["total_operations"]),
            str(collection_stats["total_tags"]),
        )

    console.print(table)


async def cmd_list(args: argparse.Namespace) -> int:
    manager = await open_manager(args.base_dir, args.multi_file)
    if not manager.collections:
        console.print(f"[yellow]No collections found in {args.base_dir}[/yellow]")
        return 0

    console.print(f"[bold blue]Collections in {args.base_dir}[/bold blue]")
    for name, store in sorted(manager.collections.items()):
        stats = store.get_stats()
        console.print(
            f"  [cyan]{name}[/cyan]: {stats['total_operations']} operations, {stats['total_paths']} paths",
        )
    return 0


async def cmd_stats(args: argparse.Namespace) -> int:
    manager = await open_manager(args.base_dir, args.multi_file)
    stats = manager.get_all_stats()
    print_stats_table(stats)
    console.print(f"  Collections: {stats['total_collections']}")
    console.print(f"  Paths:       {stats['total_paths']}")
    console.print(f"  Operations:  {stats['total_operations']}")
    return 0


async def cmd_export(args: argparse.Namespace) -> int:
    manager = await open_manager(args.base_dir, args.multi_file)
    exports = await manager.export_all_collections(args.format)

    output = args.output or Path(f"openapi_export_{filename_timestamp()}.json")
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w") as f:
        json.dump(exports, f, indent=2, ensure_ascii=False)
        f.write("\n")

    console.print(f"[green]Exported {len(exports)} collections to {output}[/green]")
    return 0


async def cmd_merge(args: argparse.Namespace) -> int:
    manager = await open_manager(args.base_dir, args.multi_file)
    missing = [name for name in args.collections if name not in manager.collections]
    if missing:
        console.print(f"[red]Unknown collections: {', '.join(missing)}[/red]")
        return 1

    merged = await manager.merge_collections(
        args.collections,
        args.target,
        {"prefix_with_collection_name": args.prefix},
    )
    stats = merged.get_stats()
    console.print(f"[green]Merged {len(args.collections)} collections into {args.target}[/green]")
    console.print(f"  Paths:      {stats['total_paths']}")
    console.print(f"  Operations: {stats['total_operations']}")
    return 0


async def cmd_version(args: argparse.Namespace) -> int:
    manager = await open_manager(args.base_dir, args.multi_file)
    if not manager.collections:
        console.print(f"[yellow]No collections found in {args.base_dir}[/yellow]")
        return 1

    for name in sorted(manager.collections):
        path = await manager.create_version(name, args.version)
        console.print(f"  [green]{name}[/green]: {path}")
    console.print(f"[bold green]Version {args.version} created[/bold green]")
    return 0


async def cmd_backup(args: argparse.Namespace) -> int:
    manager = await open_manager(args.base_dir, args.multi_file)
    names = [args.collection] if args.collection else sorted(manager.collections)
    if args.collection and args.collection not in manager.collections:
        console.print(f"[red]Unknown collection: {args.collection}[/red]")
        return 1

    for name in names:
        path = await manager.create_backup(name)
        console.print(f"  [green]{name}[/green]: {path}")
    console.print(f"[bold green]Backed up {len(names)} collections[/bold green]")
    return 0


COMMANDS = {
    "list": cmd_list,
    "stats": cmd_stats,
    "export": cmd_export,
    "merge": cmd_merge,
    "version": cmd_version,
    "backup": cmd_backup,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="endpoint-capture",
        description="Manage OpenAPI collections generated from captured traffic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--base-dir",
        type=str,
        default=DEFAULT_BASE_DIR,
        help="Directory holding the collections",
    )
    parser.add_argument(
        "--multi-file",
        action="store_true",
        help="Collections use one directory each with timestamped snapshots",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List collections")
    subparsers.add_parser("stats", help="Show collection statistics")

    export_parser = subparsers.add_parser("export", help="Export all collections to one file")
    export_parser.add_argument("--format", choices=["json", "yaml"], default="json", help="Document format")
    export_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Output file (default: ./openapi_export_<timestamp>.json)",
    )

    merge_parser = subparsers.add_parser("merge", help="Merge collections into a new one")
    merge_parser.add_argument("target", help="Name of the merged collection")
    merge_parser.add_argument("collections", nargs="+", help="Collections to merge")
    merge_parser.add_argument(
        "--prefix",
        action="store_true",
        help="Prefix paths and tags with the source collection name",
    )

    version_parser = subparsers.add_parser("version", help="Snapshot every collection under a version")
    version_parser.add_argument("version", help="Version identifier, e.g. 1.2.0")

    backup_parser = subparsers.add_parser("backup", help="Back up collections")
    backup_parser.add_argument("collection", nargs="?", help="Collection to back up (default: all)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    return asyncio.run(COMMANDS[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
