#!/usr/bin/env python3
import argparse
import json
import logging
import sys

from caststream.asciinema import EventKind
from caststream.errors import CastError, MalformedRecordError
from caststream.reader import StreamReader


logger = logging.getLogger("caststream")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="caststream", description="Inspect asciinema v2 cast streams.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic log level (stderr)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    cat = sub.add_parser("cat", help="Write the recorded output to stdout")
    cat.add_argument("path")
    info = sub.add_parser("info", help="Print the cast header as JSON")
    info.add_argument("path")
    validate = sub.add_parser("validate", help="Decode every record and report a summary")
    validate.add_argument("path")
    return parser.parse_args(argv)


def cmd_cat(reader: StreamReader) -> int:
    for event in reader.events():
        if event.kind is EventKind.OUTPUT:
            sys.stdout.write(event.data)
    sys.stdout.flush()
    return 0


def cmd_info(reader: StreamReader) -> int:
    record = reader.next()
    print(json.dumps(record.header.to_dict(), indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def cmd_validate(reader: StreamReader, path: str) -> int:
    counts = {kind.value: 0 for kind in EventKind}
    last_time = 0.0
    for event in reader.events():
        if event.time < last_time:
            print(f"caststream: {path}: event time {event.time} goes backwards from {last_time}", file=sys.stderr)
            return 1
        last_time = event.time
        counts[event.kind.value] += 1
    summary = {
        "path": path,
        "width": reader.header.width,
        "height": reader.header.height,
        "events": sum(counts.values()),
        "by_kind": counts,
        "duration_sec": last_time,
    }
    print(json.dumps(summary, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="caststream: %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        handle = open(args.path, "rb")
    except OSError as exc:
        print(f"caststream: unable to open {args.path}: {exc}", file=sys.stderr)
        return 2

    with handle:
        reader = StreamReader(handle)
        try:
            if args.command == "cat":
                return cmd_cat(reader)
            if args.command == "info":
                return cmd_info(reader)
            return cmd_validate(reader, args.path)
        except MalformedRecordError as exc:
            print(f"caststream: {args.path}: malformed record: {exc}", file=sys.stderr)
            return 1
        except CastError as exc:
            logger.debug("decode failed", exc_info=True)
            print(f"caststream: {exc}", file=sys.stderr)
            return 2


if __name__ == "__main__":
    raise SystemExit(main())
