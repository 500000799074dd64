#!/usr/bin/env python3
"""
Travel Detector - Login Replay Tool

Replay a file of login events (one JSON object per line, in the same shape as
the POST /v1/ body) through the travel detector and print the response for
each login. Useful for backtesting threshold changes against exported logins.
"""

import sys
import json
import argparse
from pathlib import Path
from typing import Iterator, Optional, TextIO

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'src'))

from shared.identity import (
    TravelDetectionConfig,
    TravelDetectionError,
    build_ingestion_service,
    load_config,
)


def read_logins(stream: TextIO) -> Iterator[dict]:
    """Yield decoded login payloads, skipping blank lines."""
    for line_number, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError as e:
            print(f"Line {line_number}: invalid JSON ({e})", file=sys.stderr)


def build_config(args: argparse.Namespace) -> TravelDetectionConfig:
    config = TravelDetectionConfig.from_yaml(args.config) if args.config else load_config()
    overrides = config.to_dict()
    overrides['maxmind_license_key'] = config.maxmind_license_key
    if args.threshold is not None:
        overrides['suspicious_speed_kmh'] = args.threshold
    if args.store:
        overrides['store_backend'] = args.store
    if args.geo_db:
        overrides['maxmind_db_path'] = args.geo_db
    return TravelDetectionConfig.from_dict(overrides)


def replay(args: argparse.Namespace, stream: TextIO, out: Optional[TextIO] = None) -> int:
    out = out or sys.stdout
    service = build_ingestion_service(build_config(args))

    processed = suspicious = failed = 0
    for payload in read_logins(stream):
        try:
            assessment = service.ingest(payload)
        except TravelDetectionError as e:
            failed += 1
            print(f"{payload.get('event_uuid', '?')}: {e}", file=sys.stderr)
            continue

        processed += 1
        if assessment.is_suspicious:
            suspicious += 1
        elif args.suspicious_only:
            continue

        record = {'event_uuid': assessment.event.event_id, **assessment.to_response()}
        print(json.dumps(record), file=out)

    print(
        f"Processed {processed} logins: {suspicious} suspicious, {failed} failed",
        file=sys.stderr,
    )
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description='Replay login events through the travel detector')
    parser.add_argument('input', nargs='?', help='JSON-lines file of logins (default: stdin)')
    parser.add_argument('--config', help='YAML config file')
    parser.add_argument('--threshold', type=float, help='Suspicious speed threshold in km/h')
    parser.add_argument('--store', choices=['memory', 'sqlite', 'dynamodb'],
                        help='Login store backend (default: from config)')
    parser.add_argument('--geo-db', help='Path to GeoLite2-City database')
    parser.add_argument('--suspicious-only', action='store_true',
                        help='Only print logins with suspicious travel')

    args = parser.parse_args()

    if args.input:
        with open(args.input, 'r') as f:
            sys.exit(replay(args, f))
    sys.exit(replay(args, sys.stdin))


if __name__ == '__main__':
    main()
