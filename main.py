#!/usr/bin/env python3
"""
Pagewright - AI content population for structured pages

Main entry point for Pagewright. Previews generation prompts, generates
content for stored objects and creates new objects from a prompt.
"""

import logging
import sys
import argparse
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from pagewright.config import StructureSettings, config
from pagewright.content import ContentStore, TypeRegistry
from pagewright.database import DatabaseManager
from pagewright.exceptions import PagewrightError
from pagewright.generator import ContentGenerator


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def build_generator(db: DatabaseManager, content_model: Optional[str] = None) -> ContentGenerator:
    """
    Wire the registry, store and generator for a connected database.

    Args:
        db: Connected database manager
        content_model: Path to the content model (defaults to config value)

    Returns:
        A ready ContentGenerator
    """
    settings = StructureSettings.from_config(config)
    registry = TypeRegistry.from_yaml(content_model or config.content_model_path, settings)
    store = ContentStore(registry, db)
    return ContentGenerator(store, settings=settings)


def print_object(generator: ContentGenerator, object_id: int) -> None:
    """Print a stored object and its related objects as YAML."""
    content_object = generator.store.get(object_id)
    if content_object is None:
        print(f"No object with ID {object_id}")
        return

    data = content_object.to_dict()
    for relation in content_object.get_relation_list():
        if relation.kind == "has_one":
            related = content_object.related(relation.name)
            if related is not None:
                data[relation.name] = related.to_dict()
        else:
            children = content_object.children(relation.name)
            if children:
                data[relation.name] = [child.to_dict() for child in children]

    print(yaml.safe_dump(_plain(data), sort_keys=False, allow_unicode=True))


def _plain(value):
    """Convert timestamps and other non-YAML values to strings."""
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def run_preview(generator: ContentGenerator, args) -> None:
    preview = generator.preview_prompt(
        args.type,
        prompt=args.prompt,
        structure_only=args.structure_only,
        mode=args.mode
    )
    print(preview.system_prompt)
    if preview.user_prompt:
        print("\n--- User prompt ---")
        print(preview.user_prompt)
    print(f"\n{preview.characters} characters, approximately {preview.estimated_tokens} tokens")


def run_generate(generator: ContentGenerator, args) -> None:
    content_object = generator.store.get(args.object_id)
    if content_object is None:
        raise PagewrightError(f"No object with ID {args.object_id}")

    generator.generate_and_populate(
        content_object,
        args.prompt,
        persist=not args.no_persist,
        replace_relations=True if args.replace else None
    )
    print(f"Populated {content_object.get_type()} ID {content_object.identity()}")


def run_create(generator: ContentGenerator, args) -> None:
    content_object = generator.store.create(args.type)
    generator.generate_and_populate(content_object, args.prompt)
    print(f"Created {content_object.get_type()} ID {content_object.identity()}")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Pagewright - AI content population for structured pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py preview --type BlogPage                     # Show the generation prompt for a type
  python main.py preview --type BlogPage --structure-only --mode compact
  python main.py create --type BlogPage --prompt "A post about composting"
  python main.py generate --object-id 1 --prompt "Add an FAQ section"
  python main.py show --object-id 1
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to the configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--database",
        type=str,
        help="Path to the DuckDB database (defaults to config value)"
    )

    parser.add_argument(
        "--content-model",
        type=str,
        help="Path to the YAML content model (defaults to config value)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Pagewright 0.1.0"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    preview = commands.add_parser("preview", help="Show the prompt that would be sent for a content type")
    preview.add_argument("--type", required=True, help="Content type name")
    preview.add_argument("--prompt", help="Optional user prompt to include")
    preview.add_argument("--structure-only", action="store_true", help="Only print the formatted structure")
    preview.add_argument("--mode", choices=["verbose", "compact"], help="Structure encoding")

    generate = commands.add_parser("generate", help="Generate content for a stored object")
    generate.add_argument("--object-id", type=int, required=True, help="ID of the object to populate")
    generate.add_argument("--prompt", required=True, help="What to generate")
    generate.add_argument("--no-persist", action="store_true", help="Do not persist the object itself")
    generate.add_argument("--replace", action="store_true", help="Replace existing related items and blocks")

    create = commands.add_parser("create", help="Create a new object and generate its content")
    create.add_argument("--type", required=True, help="Content type name")
    create.add_argument("--prompt", required=True, help="What to generate")

    show = commands.add_parser("show", help="Print a stored object")
    show.add_argument("--object-id", type=int, required=True, help="ID of the object to show")

    return parser.parse_args(argv)


def main():
    """Main entry point."""
    args = parse_arguments()

    if args.config:
        config.config_path = Path(args.config)
        config.reload()

    setup_logging()
    logging.info("Pagewright - AI content population for structured pages")

    try:
        with DatabaseManager(args.database or config.database_filename) as db:
            db.initialize_database()
            generator = build_generator(db, args.content_model)

            if args.command == "preview":
                run_preview(generator, args)
            elif args.command == "generate":
                run_generate(generator, args)
            elif args.command == "create":
                run_create(generator, args)
            elif args.command == "show":
                print_object(generator, args.object_id)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print("\nInterrupted.")

    except PagewrightError as e:
        logging.error(f"{args.command} failed: {e}")
        print(f"\n{args.command} failed: {e}")
        sys.exit(1)

    except (OSError, yaml.YAMLError, ValidationError) as e:
        logging.error(f"{args.command} failed, could not read input files: {e}")
        print(f"\n{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
