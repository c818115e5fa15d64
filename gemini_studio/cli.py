from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from .config import load_config
from .credentials import CredentialProvider, EnvironmentCredentialProvider, PromptCredentialProvider
from .encoding import decode_data_uri
from .logging_utils import RunLogger, configure_logging, create_logger
from .panels import ImageSourcePanel, VideoGeneratorPanel
from .studio import Studio, Tab


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gemini-studio",
        description="Edit images, generate images and animate images with the Gemini API",
    )
    parser.add_argument("--config", type=Path, help="YAML or JSON(C) config file")
    parser.add_argument("--log-level", default="INFO", help="Console log level (DEBUG, INFO, WARN, ERROR)")
    parser.add_argument("--logfile", type=Path, help="Append console log lines to this file")
    parser.add_argument("--ask-key", action="store_true", help="Prompt for the API key instead of reading the environment")

    sub = parser.add_subparsers(dest="command", required=True)

    edit = sub.add_parser(Tab.EDIT.value, help="Edit an image with a text instruction")
    generate = sub.add_parser(Tab.GENERATE.value, help="Generate an image from text")
    video = sub.add_parser(Tab.VIDEO.value, help="Generate a short video from an image and text")

    for command in (edit, generate, video):
        command.add_argument("prompt", help="Text prompt")
        command.add_argument("-o", "--output", type=Path, help="Save the result to this path")
    for command in (edit, video):
        source = command.add_mutually_exclusive_group()
        source.add_argument("--image", type=Path, help="Local source image")
        source.add_argument("--image-url", help="Remote source image (defaults to the configured sample)")
    return parser.parse_args(argv)


def _export(studio: Studio, uri: str, path: Path) -> int:
    if uri.startswith("data:"):
        data, _ = decode_data_uri(uri)
    else:
        data = studio.media.read(uri)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)


def _prepare_source(panel: ImageSourcePanel, args: argparse.Namespace, studio: Studio) -> bool:
    if args.image is not None:
        return panel.load_file(args.image)
    return panel.mount(args.image_url or studio.config.initial_image_url)


def _run(studio: Studio, args: argparse.Namespace, run_log: RunLogger) -> int:
    tab = Tab(args.command)
    panel = studio.open(tab, load_initial_image=False)
    step = tab.value

    if isinstance(panel, ImageSourcePanel):
        with run_log.stage(step, "source image") as outcome:
            outcome.ok = _prepare_source(panel, args, studio)
        if not outcome.ok:
            run_log.log(step, panel.state.error or "Could not load the source image", level="ERROR")
            return 1

    if isinstance(panel, VideoGeneratorPanel):
        if not panel.credential_selected and not panel.select_credential():
            run_log.log(step, panel.state.error or "No API key selected", level="ERROR")
            return 1
        panel.progress_listener = run_log.progress(step)

    with run_log.stage(step, "request") as outcome:
        outcome.ok = panel.submit(args.prompt)
    if not outcome.ok or panel.state.result is None:
        run_log.log(step, panel.state.error or "No result", level="ERROR")
        return 1

    uri = panel.state.result
    if args.output is not None:
        size = _export(studio, uri, args.output)
        run_log.log(step, f"Saved {size} bytes to {args.output}")
    elif uri.startswith("data:"):
        run_log.log(step, f"Result ready ({len(uri)} character data URI); pass --output to keep it")
    else:
        run_log.log(step, f"Result ready at {uri} until the session ends; pass --output to keep it")
    return 0


def _credentials(args: argparse.Namespace, run_log: RunLogger) -> CredentialProvider:
    if args.ask_key:
        return PromptCredentialProvider(console=run_log.console)
    return EnvironmentCredentialProvider()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    load_dotenv(find_dotenv(usecwd=True))
    configure_logging(args.log_level)
    run_log = create_logger(args.log_level, args.logfile)
    try:
        config = load_config(args.config)
        with Studio(config, _credentials(args, run_log)) as studio:
            return _run(studio, args, run_log)
    except KeyboardInterrupt:
        run_log.log("studio", "Interrupted", level="WARN")
        return 130
    except (OSError, ValueError) as exc:
        run_log.log("studio", f"error: {exc}", level="ERROR")
        return 2
    finally:
        run_log.close()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
