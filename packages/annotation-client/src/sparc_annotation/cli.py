"""Command-line access to a map annotation service.

Usage:
  sparc-annotation login
  sparc-annotation logout
  sparc-annotation items <resource>
  sparc-annotation features <resource> [<item> ...]
  sparc-annotation annotations <resource> <item>
  sparc-annotation annotation <annotation-id>
  sparc-annotation add <resource> <item> <comment> [--evidence URL ...]

Settings come from the environment (see sparc_annotation.config). The
session credential is kept in ANNOTATION_CREDENTIALS_PATH, so ``login``
once and later commands reuse the session until it expires.

Results are printed as JSON. The exit status is 1 when the service returns
an error result.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import BaseModel

from sparc_annotation.config import AnnotationSettings
from sparc_annotation.models import ErrorResult, UserAnnotation
from sparc_annotation.service import AnnotationService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sparc-annotation", description="Query and annotate SPARC maps."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log each request")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("login", help="authenticate and store a session")
    commands.add_parser("logout", help="end the stored session")

    items = commands.add_parser("items", help="list annotated item ids")
    items.add_argument("resource")

    features = commands.add_parser("features", help="list drawn features")
    features.add_argument("resource")
    features.add_argument("items", nargs="*")

    annotations = commands.add_parser("annotations", help="list annotations of an item")
    annotations.add_argument("resource")
    annotations.add_argument("item")

    annotation = commands.add_parser("annotation", help="show one annotation")
    annotation.add_argument("annotation_id")

    add = commands.add_parser("add", help="add an annotation to an item")
    add.add_argument("resource")
    add.add_argument("item")
    add.add_argument("comment")
    add.add_argument("--evidence", action="append", default=[], metavar="URL")

    return parser


async def run_command(service: AnnotationService, args: argparse.Namespace) -> Any:
    """Dispatch one parsed command to the service and return its result."""
    match args.command:
        case "login":
            return await service.authenticate()
        case "logout":
            return await service.unauthenticate()
        case "items":
            return await service.annotated_item_ids(args.resource)
        case "features":
            return await service.drawn_features(args.resource, args.items or None)
        case "annotations":
            return await service.item_annotations(args.resource, args.item)
        case "annotation":
            return await service.annotation(args.annotation_id)
        case "add":
            user = await service.authenticate()
            if isinstance(user, ErrorResult):
                return user
            return await service.add_annotation(
                UserAnnotation(
                    resource=args.resource,
                    item=args.item,
                    comment=args.comment,
                    evidence=args.evidence,
                )
            )
    raise ValueError(f"Unknown command '{args.command}'")


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", exclude_none=True)
    if isinstance(result, list):
        return [_to_jsonable(entry) for entry in result]
    return result


async def _main(args: argparse.Namespace, settings: AnnotationSettings) -> int:
    async with settings.create_service() as service:
        result = await run_command(service, args)
    print(json.dumps(_to_jsonable(result), indent=2))
    return 1 if isinstance(result, ErrorResult) else 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint — parse arguments, load settings, run one command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = AnnotationSettings.from_env()
    except ValueError as e:
        logger.error(str(e))
        return 2

    return asyncio.run(_main(args, settings))


if __name__ == "__main__":
    sys.exit(main())
