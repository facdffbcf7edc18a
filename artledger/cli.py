#!/usr/bin/env python3
"""
Art Ledger CLI

Tools for operators and indexers working with a persisted event log:
  artledger keygen  - Create an operator signing key
  artledger replay  - Rebuild state from an event log and summarize it
  artledger verify  - Check every event signature in a log
  artledger show    - Print one asset as JSON

Usage:
  artledger keygen -o operator.pem
  artledger replay <events.json> [--administrator <id> | --config <file>]
  artledger verify <events.json> [--public-key <pem>]
  artledger show <events.json> <asset_id> [--administrator <id>]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import RegistryConfig
from .errors import RegistryError
from .events import EventSigner, generate_private_key_pem, load_events, verify_log
from .replay import replay


def _load_state(args):
    if args.config:
        config = RegistryConfig.from_file(args.config)
        administrator, fee_rate = config.administrator, config.platform_fee_rate
    else:
        administrator, fee_rate = args.administrator, args.fee_rate
    events = load_events(args.events)
    return replay(events, administrator, fee_rate), events


def cmd_keygen(args):
    """Write a new RSA signing key."""
    output_path = Path(args.output)
    if output_path.exists() and not args.force:
        print(f"Refusing to overwrite {output_path} (use --force)", file=sys.stderr)
        sys.exit(1)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(generate_private_key_pem())
    output_path.chmod(0o600)
    print(f"Private key saved to: {output_path}")

    if args.public:
        signer = EventSigner.from_file(output_path)
        Path(args.public).write_bytes(signer.public_key_pem)
        print(f"Public key saved to: {args.public}")


def cmd_replay(args):
    """Rebuild state from a log and print a summary."""
    state, events = _load_state(args)

    print(f"Events: {len(events)}")
    print(f"Platform fee rate: {state.fees.rate} ({state.fees.rate / 10:.1f}%)")
    print(f"Galleries: {len(state.galleries)}")
    for gallery in state.galleries.list():
        print(f"  {gallery.key}: {gallery.name} (curator {gallery.curator}, "
              f"{len(gallery.artwork_ids)} artworks)")
    print(f"Assets: {len(state.registry)}")
    for asset in state.registry.list():
        status = "for sale" if asset.for_sale else "not for sale"
        print(f"  #{asset.asset_id} {asset.title!r} owner={asset.owner} "
              f"price={asset.price} {status} rating={asset.average_rating}")


def cmd_verify(args):
    """Verify event signatures."""
    if args.public_key:
        public_key_pem = Path(args.public_key).read_bytes()
    else:
        with open(args.events) as f:
            data = json.load(f)
        if "public_key" not in data:
            print("No public key given and none recorded in the log", file=sys.stderr)
            sys.exit(1)
        public_key_pem = data["public_key"].encode("utf-8")

    events = load_events(args.events)
    failed = verify_log(events, public_key_pem)
    if failed:
        print(f"{len(failed)} of {len(events)} events failed verification: {failed}")
        sys.exit(1)
    print(f"All {len(events)} events verified")


def cmd_show(args):
    """Print one asset."""
    state, _ = _load_state(args)
    asset = state.registry.get(args.asset_id)
    data = asset.to_dict()
    data["reviews"] = [r.to_dict() for r in state.reviews.reviews(args.asset_id)]
    print(json.dumps(data, indent=2))


def _add_state_args(parser):
    parser.add_argument("events", help="Event log (events.json)")
    parser.add_argument("--administrator", default="admin", help="Administrator identity")
    parser.add_argument("--fee-rate", type=int, default=25,
                        help="Initial fee rate in tenths of a percent")
    parser.add_argument("--config", help="Registry config YAML (overrides the above)")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="artledger",
        description="Art Ledger - curated art listing registry",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Create an operator signing key")
    keygen_parser.add_argument("-o", "--output", required=True, help="Private key PEM file")
    keygen_parser.add_argument("--public", help="Also write the public key here")
    keygen_parser.add_argument("--force", action="store_true", help="Overwrite existing key")

    # replay command
    replay_parser = subparsers.add_parser("replay", help="Rebuild state from an event log")
    _add_state_args(replay_parser)

    # verify command
    verify_parser = subparsers.add_parser("verify", help="Verify event signatures")
    verify_parser.add_argument("events", help="Event log (events.json)")
    verify_parser.add_argument("--public-key", help="Operator public key PEM")

    # show command
    show_parser = subparsers.add_parser("show", help="Show one asset")
    _add_state_args(show_parser)
    show_parser.add_argument("asset_id", type=int, help="Asset id")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    try:
        if args.command == "keygen":
            cmd_keygen(args)
        elif args.command == "replay":
            cmd_replay(args)
        elif args.command == "verify":
            cmd_verify(args)
        elif args.command == "show":
            cmd_show(args)
        else:
            parser.print_help()
            sys.exit(1)
    except RegistryError as e:
        print(f"{e.kind}: {e.reason}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
