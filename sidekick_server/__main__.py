"""CLI entry point for sidekick-server.

Usage:
    python -m sidekick_server serve [--port PORT]
    python -m sidekick_server generate --prompt TEXT [--width W --height H]
    python -m sidekick_server replace --doc-url URL (--image-url URL | --prompt TEXT)
        [--placeholder TEXT] [--width-pt PT] [--height-pt PT]

``replace --prompt`` generates the image first and then swaps it in, the
same round trip the editor plugin performs.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from sidekick_server.config import Settings, get_settings
from sidekick_server.credentials import GoogleServiceAccountProvider, ImsCredentialProvider
from sidekick_server.exceptions import SidekickError
from sidekick_server.firefly import FireflyClient
from sidekick_server.logging import configure_logging
from sidekick_server.replace import DEFAULT_PLACEHOLDER, ImageReplacer, ReplaceRequest


def _firefly_client(settings: Settings) -> FireflyClient:
    return FireflyClient(
        credentials=ImsCredentialProvider(settings),
        api_key=settings.firefly_client_id,
        timeout=settings.firefly_timeout,
    )


def _image_replacer(settings: Settings) -> ImageReplacer:
    return ImageReplacer(
        credentials=GoogleServiceAccountProvider(settings),
        timeout=settings.google_timeout,
    )


async def _generate(prompt: str, size: dict[str, int] | None) -> str:
    client = _firefly_client(get_settings())
    try:
        result = await client.generate(prompt, size)
    finally:
        await client.close()
    return result.image_url


def _size(args: argparse.Namespace) -> dict[str, int] | None:
    if args.width and args.height:
        return {"width": args.width, "height": args.height}
    return None


async def cmd_generate(args: argparse.Namespace) -> int:
    """Generate an image and print its URL."""
    try:
        image_url = await _generate(args.prompt, _size(args))
    except SidekickError as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1
    print(image_url)
    return 0


async def cmd_replace(args: argparse.Namespace) -> int:
    """Replace the placeholder (or first image) in a Google Doc or Sheet."""
    settings = get_settings()
    try:
        image_url = args.image_url
        if image_url is None:
            print("Generating image...")
            image_url = await _generate(args.prompt, None)
            print(f"Generated: {image_url}")

        replacer = _image_replacer(settings)
        result = await replacer.replace(
            ReplaceRequest(
                doc_url=args.doc_url,
                image_url=image_url,
                placeholder=args.placeholder,
                width_pt=args.width_pt,
                height_pt=args.height_pt,
                document_id=args.document_id,
            )
        )
    except SidekickError as e:
        print(f"Replace failed: {e}", file=sys.stderr)
        return 1

    output = {"replaced": result.replaced, "type": result.type}
    if result.mode:
        output["mode"] = result.mode
    print(json.dumps(output))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sidekick_server.main:app",
        host=args.host,
        port=args.port or settings.port,
        reload=not settings.is_production,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sidekick-server",
        description="Generate images with Firefly and swap them into Google Docs and Sheets",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: PORT setting)")
    serve_parser.set_defaults(func=cmd_serve)

    generate_parser = subparsers.add_parser("generate", help="Generate an image from a prompt")
    generate_parser.add_argument("--prompt", required=True, help="Text prompt")
    generate_parser.add_argument("--width", type=int, default=None, help="Image width in pixels")
    generate_parser.add_argument("--height", type=int, default=None, help="Image height in pixels")
    generate_parser.set_defaults(func=cmd_generate)

    replace_parser = subparsers.add_parser(
        "replace",
        help="Replace a placeholder or the first image in a Google Doc or Sheet",
    )
    replace_parser.add_argument("--doc-url", required=True, help="Google Docs or Sheets URL")
    source = replace_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--image-url", default=None, help="URL of the image to insert")
    source.add_argument("--prompt", default=None, help="Generate the image from this prompt first")
    replace_parser.add_argument(
        "--placeholder",
        default=DEFAULT_PLACEHOLDER,
        help=f"Text to replace (default: {DEFAULT_PLACEHOLDER})",
    )
    replace_parser.add_argument("--width-pt", type=float, default=200.0, help="Image width in points")
    replace_parser.add_argument("--height-pt", type=float, default=200.0, help="Image height in points")
    replace_parser.add_argument("--document-id", default=None, help="Document id if not in the URL")
    replace_parser.set_defaults(func=cmd_replace)

    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(is_production=settings.is_production, log_level=settings.log_level)

    if args.func is cmd_serve:
        return cmd_serve(args)
    result: int = asyncio.run(args.func(args))
    return result


if __name__ == "__main__":
    sys.exit(main())
