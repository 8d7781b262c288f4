"""
Entry point for the content blueprint tool.

    python main.py export --name "Starter" --post-types post,page,book
    python main.py import https://example.com/starter.zip
    python main.py reset --yes --all
"""

import argparse
import os
import sys
from typing import Dict, List, Optional

from blueprints.blueprint_tool import DEFAULT_CONFIG_FILE, BlueprintTool
from blueprints.utils.errors import BlueprintError
from blueprints.utils.labels import parse_list_field

RESET_PROMPT = (
    "Delete schema-managed data, including posts, media, taxonomies, "
    "field groups and custom post types?"
)


def parse_min_plugins(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated ``NAME=VERSION`` arguments."""
    plugins: Dict[str, str] = {}
    for value in values or []:
        name, sep, version = value.partition("=")
        if not sep or not name.strip() or not version.strip():
            raise argparse.ArgumentTypeError(f"--min-plugin expects NAME=VERSION, got {value!r}")
        plugins[name.strip()] = version.strip()
    return plugins


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blueprints", description="Export and import content blueprints.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="JSON configuration file")
    parser.add_argument("--site", help="DuckDB site database")
    parser.add_argument("--uploads-dir", help="Folder holding uploaded media")
    parser.add_argument("--no-schema-provider", action="store_true", help="Run without the schema extension")
    parser.add_argument("--verbose", action="store_true", help="Print debug messages")
    commands = parser.add_subparsers(dest="command", required=True)

    export = commands.add_parser("export", help="Export the site to a blueprint zip")
    export.add_argument("--name", help="Blueprint name, also used for the zip name")
    export.add_argument("--description", help="Blueprint description")
    export.add_argument("--version", help="Blueprint version")
    export.add_argument("--min-version", help="Minimum host version required to import")
    export.add_argument(
        "--min-plugin",
        action="append",
        metavar="NAME=VERSION",
        help="Minimum extension version, repeatable",
    )
    export.add_argument("--post-types", help="Comma separated post types to export")
    export.add_argument("--options", help="Comma separated extra option names to export")
    export.add_argument("--theme", help="Theme stylesheet recorded in the manifest")
    export.add_argument("--theme-version", help="Theme version recorded in the manifest")
    export.add_argument("--output-dir", help="Folder the zip is copied to")
    export.add_argument("--open", action="store_true", help="Open the blueprint folder when done")

    imp = commands.add_parser("import", help="Import a blueprint zip, folder or URL")
    imp.add_argument("source", help="Path to a zip or folder, or an http(s) URL")

    reset = commands.add_parser("reset", help="Delete schema-managed content")
    reset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    reset.add_argument("--all", action="store_true", help="Delete every post and media file")
    return parser


def make_tool(args: argparse.Namespace) -> BlueprintTool:
    tool = BlueprintTool(config_file=args.config, verbose=args.verbose)
    # Command line flags win over environment and config file.
    if args.site:
        tool.config["site"]["database"] = args.site
    if args.uploads_dir:
        tool.config["site"]["uploads_dir"] = args.uploads_dir
        tool.config["import"]["upload_dir"] = os.path.join(args.uploads_dir, "blueprints")
    if args.no_schema_provider:
        tool.config["site"]["schema_provider"] = False
    return tool


def confirm(question: str) -> bool:
    answer = input(f"{question} [y/n] ")
    return answer.strip().lower() in ("y", "yes")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    tool = make_tool(args)

    try:
        if args.command == "export":
            try:
                min_plugins = parse_min_plugins(args.min_plugin)
            except argparse.ArgumentTypeError as e:
                parser.error(str(e))
            overrides = {
                "name": args.name,
                "description": args.description,
                "version": args.version,
                "min_version": args.min_version,
                "theme": args.theme,
                "theme_version": args.theme_version,
                "min_plugins": min_plugins,
            }
            tool.export(
                overrides,
                post_types=parse_list_field(args.post_types or ""),
                option_names=parse_list_field(args.options or ""),
                output_dir=args.output_dir,
                open_folder=args.open,
            )
        elif args.command == "import":
            report = tool.import_blueprint(args.source)
            if report.warnings:
                tool.log_message(f"Import finished with {len(report.warnings)} warnings.", "WARNING")
            tool.log_message("Import complete.", "SUCCESS")
        elif args.command == "reset":
            if not args.yes and not confirm(RESET_PROMPT):
                tool.log_message("Reset cancelled.")
                return 0
            tool.reset(delete_all=args.all)
            tool.log_message("Reset complete.", "SUCCESS")
    except BlueprintError as e:
        tool.log_message(str(e), "ERROR")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
