"""Plotline launcher: play a script in the terminal, check it, or serve the API."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def _read_script(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        sys.exit(f"Cannot read {path}: {e.strerror}")


def _print_lines(lines) -> None:
    for line in lines:
        if line.sender == "system":
            print(f"[{line.text}]")
        elif line.type == "image":
            print(f"(image: {line.text})")
        elif line.sender == "narrator":
            print(line.text)


async def _play(path: Path) -> int:
    from plotline.config import build_semantic_matcher, get_config
    from plotline.session import Session, Status

    config = get_config()
    session = Session(_read_script(path), semantic_matcher=build_semantic_matcher(config), config=config)
    _print_lines(session.advance())

    while session.status == Status.WAITING:
        try:
            text = input("> ")
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        if text.strip() == "/undo":
            _print_lines(session.jump_back())
            continue
        before = len(session.history)
        result = await session.submit(text)
        if not result.matched:
            print("Nothing happens.")
            continue
        _print_lines(session.history[before + 1:])
        if session.variables.snapshot():
            print(f"  ({', '.join(session.variables.format_for_display())})")

    if session.status == Status.ERROR:
        return 1
    print("THE END")
    return 0


def _check(path: Path) -> int:
    from plotline.parser import parse_into_schema
    from plotline.scene_map import construct_scene_map, find_problems

    schema = parse_into_schema(_read_script(path))
    scene_map = construct_scene_map(schema)
    for label, idx in scene_map.items():
        print(f"@{label:<20} {idx}")
    problems = find_problems(schema, scene_map)
    for problem in problems:
        print(f"warning: {problem}")
    return 1 if problems else 0


def main():
    parser = argparse.ArgumentParser(description="Plotline interactive narrative engine")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Play a script in the terminal")
    play.add_argument("script", type=Path)

    check = sub.add_parser("check", help="Print the scene map and authoring problems")
    check.add_argument("script", type=Path)

    serve = sub.add_parser("serve", help="Serve the HTTP API")
    serve.add_argument("--host", default=HOST)
    serve.add_argument("--port", type=int, default=int(PORT))
    serve.add_argument("--reload", action="store_true")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "play":
        sys.exit(asyncio.run(_play(args.script)))
    if args.command == "check":
        sys.exit(_check(args.script))

    import uvicorn

    print(f"Starting API on http://localhost:{args.port} ...")
    uvicorn.run("plotline.app:create_app", factory=True, host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
