import argparse
import json
import logging
import os
import sys

from autoHTMLillustrator.config import config, get_bool, get_int
from autoHTMLillustrator import cache
from autoHTMLillustrator.errors import IllustratorError
from autoHTMLillustrator.logging_utils import configure_logging

DEFAULT_CONFIG_FILE = os.path.expanduser("~/.autoHTMLillustrator.conf")


def build_parser():
    parser = argparse.ArgumentParser(description="Insert fitting images into HTML blog posts")
    parser.add_argument("input", nargs="?", help="HTML file to illustrate, '-' reads from stdin")
    parser.add_argument("--config-file", help="Path to configuration file. Defaults to ~/.autoHTMLillustrator.conf", default=None)
    parser.add_argument("-d", "--debug", help="Debug level (0: no debug, 1: basic debug, 2: detailed debug)", type=int, choices=[0, 1, 2], default=1)
    parser.add_argument("-o", "--output", help="Write the illustrated HTML to this file instead of stdout", default=None)
    parser.add_argument("--ai", help="Use the AI analysis to find image positions", action="store_true")
    parser.add_argument("--optimize", help="Download and resize images into the local image directory", action="store_true")
    parser.add_argument("--fallback-to-gen", help="Generate images when no search provider has results", action="store_true")
    parser.add_argument("--analyze-only", help="Only print the analysis as JSON", action="store_true")
    parser.add_argument("--sections-json", help="Write the list of inserted sections to this JSON file", default=None)
    parser.add_argument("--no-cache", action="store_true", help="Disable on-disk cache for AI calls")
    parser.add_argument("--serve", action="store_true", help="Start the HTTP API instead of processing a file")
    parser.add_argument("--host", default=None, help="Host for --serve")
    parser.add_argument("--port", type=int, default=None, help="Port for --serve")
    return parser


def load_config(config_file):
    # An explicitly named file must exist; the default one is optional
    if config_file:
        if not config.read(config_file):
            raise FileNotFoundError(f"Config file not found: '{config_file}'")
    elif config.read(DEFAULT_CONFIG_FILE):
        logging.debug("Loaded configuration from %s", DEFAULT_CONFIG_FILE)


def setup_cache(no_cache):
    enabled = get_bool("CACHE", "enabled", True)
    ttl_seconds = get_int("CACHE", "ttl_seconds", 24 * 60 * 60)
    cache_dir = config.get("CACHE", "dir", fallback="").strip() or None
    # CLI --no-cache disables regardless of config
    cache.configure(enabled=(enabled and not no_cache), ttl_seconds=ttl_seconds, base_dir=cache_dir)
    logging.debug("Cache configured: enabled=%s, ttl=%ss, dir=%s", str(enabled and not no_cache), ttl_seconds,
                  cache_dir or "~/.autoHTMLillustrator/cache")


def read_input(source):
    if source == "-":
        return sys.stdin.read()
    with open(source, "r", encoding="utf-8") as f:
        return f.read()


def write_output(text, target):
    if target:
        with open(target, "w", encoding="utf-8") as f:
            f.write(text)
        logging.info("Saved illustrated document to %s", target)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def serve(host, port):
    import uvicorn

    host = host or config.get("SERVER", "host", fallback="127.0.0.1")
    port = port or get_int("SERVER", "port", 3000)
    logging.info("Starting HTTP API on http://%s:%d", host, port)
    uvicorn.run("autoHTMLillustrator.http_api:app", host=host, port=port, log_level="info")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Map debug-Level to logging-level
    debug_levels = {0: logging.CRITICAL, 1: logging.INFO, 2: logging.DEBUG}
    configure_logging(
        level=debug_levels[args.debug],
        fmt='%(asctime)s - %(levelname)s ::: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    load_config(args.config_file)
    setup_cache(args.no_cache)

    if args.serve:
        serve(args.host, args.port)
        return 0

    if not args.input:
        parser.error("an input file (or '-') is required unless --serve is given")

    from autoHTMLillustrator.autoHTMLillustrator import autoHTMLillustrator

    content = read_input(args.input)
    illustrator = autoHTMLillustrator()

    try:
        if args.analyze_only:
            analysis = illustrator.analyze(content, use_ai=args.ai)
            write_output(json.dumps(analysis, indent=2, ensure_ascii=False), args.output)
            return 0

        result = illustrator.process(
            content,
            use_ai=args.ai,
            optimize=args.optimize,
            fallback_to_gen=args.fallback_to_gen,
        )
    except IllustratorError as e:
        logging.error("%s", e)
        return 1

    if "message" in result:
        logging.info(result["message"])
    else:
        stats = result["stats"]
        logging.info("Sections: %d, images: %d, skipped anchors: %d",
                     stats["totalSections"], stats["totalImages"], stats["skipped"])

    if args.sections_json:
        with open(args.sections_json, "w", encoding="utf-8") as f:
            json.dump({"title": result.get("title", ""), "sections": result["sections"], "stats": result["stats"]},
                      f, indent=2, ensure_ascii=False)
        logging.info("Saved section list to %s", args.sections_json)

    write_output(result["html"], args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
