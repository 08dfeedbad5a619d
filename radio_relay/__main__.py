"""
Command line entry point.

Usage:
    python -m radio_relay serve [--host 0.0.0.0] [--port 3000]
    python -m radio_relay link http://station.example:8000/live --https
"""

import argparse
import sys

from radio_relay.links import sanitize_stream_url
from radio_relay.vars import EDGE_PROXY_PATH, HOST, PORT


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="radio_relay", description="Stream relay for internet radio"
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the relay server (default)")
    serve.add_argument("--host", default=HOST)
    serve.add_argument("--port", type=int, default=PORT)
    serve.add_argument("--log-level", default="info")

    link = sub.add_parser("link", help="Print the browser-facing URL for a stream")
    link.add_argument("url", help="Station stream URL")
    link.add_argument(
        "--force-proxy", action="store_true", help="Always route through the relay"
    )
    link.add_argument(
        "--https",
        action="store_true",
        help="The player page is served over https",
    )
    link.add_argument("--proxy-path", default=EDGE_PROXY_PATH)

    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve", *(argv or [])])
    return args


def serve(host: str, port: int, log_level: str = "info") -> None:
    import uvicorn

    uvicorn.run("radio_relay.server:app", host=host, port=port, log_level=log_level)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.command == "link":
        print(
            sanitize_stream_url(
                args.url,
                force_proxy=args.force_proxy,
                page_is_https=args.https,
                proxy_path=args.proxy_path,
            )
        )
        return 0
    serve(args.host, args.port, args.log_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())
