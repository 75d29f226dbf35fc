import argparse
import json
import sys
from utils.logging import configure_from_config
from config import load_config
from utils.errors import ResponseParseError
from utils.unified_parser import ResponseParser, detect_response_format, is_marker_format_v2, get_batch_continuation_prompt
from utils.syntax_checker import validate_syntax
from utils.code_rewriter import rewrite_code

EXIT_OK = 0
EXIT_PARSE_ERROR = 2


def run_parse_mode(args, parser, logger):
    """Parse one saved response and print the result as JSON."""
    with open(args.response_file, "r", encoding="utf-8") as f:
        text = f.read()
    logger.info(f"Loaded response: {args.response_file} ({len(text)} chars)")

    if args.format_only:
        print(json.dumps({
            "format": detect_response_format(text),
            "markerV2": is_marker_format_v2(text),
        }, indent=2))
        return EXIT_OK

    if args.stream_status:
        status = parser.get_streaming_status(text)
        output = status.model_dump(mode="json")
        output["files"] = parser.extract_file_list(text)
        output["hasFiles"] = parser.has_files(text)
        print(json.dumps(output, indent=2))
        return EXIT_OK

    try:
        result = parser.parse(text)
    except ResponseParseError as e:
        logger.error(f"Parse failed ({e.category.value}): {e.message}")
        print(json.dumps({"error": e.to_dict()}, indent=2))
        return EXIT_PARSE_ERROR

    if args.rewrite:
        for path, content in list(result.files.items()):
            repaired = rewrite_code(content, path)
            if repaired.was_repaired:
                logger.info(f"Rewrote {path}: {', '.join(repaired.repairs_made)}")
                result.files[path] = repaired.content

    output = result.model_dump(mode="json", exclude_none=True)
    if args.validate:
        output["syntax"] = {
            path: [
                {
                    "type": issue.type,
                    "message": issue.message,
                    "line": issue.line,
                    "column": issue.column,
                    "fix": issue.fix,
                }
                for issue in validate_syntax(content, path)
            ]
            for path, content in result.files.items()
        }

    prompt = get_batch_continuation_prompt(result)
    if prompt:
        output["continuationPrompt"] = prompt

    print(json.dumps(output, indent=2))

    # Summary to the log so stdout stays machine-readable
    logger.info(f"Files: {len(result.files)}, truncated: {result.truncated}")
    for warning in result.warnings:
        logger.warning(f"  {warning}")
    return EXIT_OK


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="LLM Response Parser - Extract generated files from model output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Parse a saved response and print the file map as JSON
  python cli.py parse response.txt

  # Only detect the wire format
  python cli.py parse response.txt --format-only

  # Parse and run the syntax checks on every file
  python cli.py parse response.txt --validate

  # Show pending/streaming/complete files for a partial response
  python cli.py parse partial.txt --stream-status
        """
    )
    parser.add_argument("--config", help="Path to YAML config file", default=None)
    parser.add_argument("--log-level", help="Override log level (DEBUG, INFO, WARNING, ERROR)", default=None)

    subparsers = parser.add_subparsers(dest="command", required=True)
    parse_cmd = subparsers.add_parser("parse", help="Parse a saved model response")
    parse_cmd.add_argument("response_file", help="Path to the response text")
    parse_cmd.add_argument("--format-only", action="store_true",
                           help="Only print the detected format")
    parse_cmd.add_argument("--validate", action="store_true",
                           help="Run syntax checks on every extracted file")
    parse_cmd.add_argument("--stream-status", action="store_true",
                           help="Print streaming status instead of a full parse")
    parse_cmd.add_argument("--rewrite", action="store_true",
                           help="Apply rule-based code fixes to extracted files")

    args = parser.parse_args(argv)

    # Load config first
    cfg = load_config(args.config)

    # Configure logging from config (or override with CLI arg)
    log_config = cfg.logging.model_dump()
    if args.log_level:
        log_config["level"] = args.log_level
    logger = configure_from_config(log_config)

    response_parser = ResponseParser(cfg.parser)
    return run_parse_mode(args, response_parser, logger)


if __name__ == "__main__":
    sys.exit(main())
