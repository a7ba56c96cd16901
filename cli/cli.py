# cli/cli.py
"""
Operator commands for the lead webhook: sign payloads, send test leads,
check health and bootstrap the leads table.
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx

from leadhook.client import LeadClient, build_signed_request
from leadhook.core.config import Settings
from leadhook.db.session import create_database_engine, create_tables
from leadhook.services.freshness import now_ms
from leadhook.services.signing import sign


def _supports_color() -> bool:
    """Check if terminal supports ANSI color codes."""
    if sys.platform == "win32":
        return os.getenv("TERM") == "xterm" or os.getenv("ANSICON") is not None
    return sys.stdout.isatty()


SUPPORTS_COLOR = _supports_color()

GREEN = '\033[92m' if SUPPORTS_COLOR else ''
RED = '\033[91m' if SUPPORTS_COLOR else ''
YELLOW = '\033[93m' if SUPPORTS_COLOR else ''
BLUE = '\033[94m' if SUPPORTS_COLOR else ''
RESET = '\033[0m' if SUPPORTS_COLOR else ''


def print_success(message: str):
    print(f"{GREEN}[✓]{RESET} {message}")


def print_error(message: str):
    print(f"{RED}[✗]{RESET} {message}")


def print_warning(message: str):
    print(f"{YELLOW}[!]{RESET} {message}")


def print_info(message: str):
    print(f"{BLUE}[i]{RESET} {message}")


def _secret(args: argparse.Namespace) -> Optional[str]:
    return args.secret or os.getenv("WEBHOOK_SECRET")


async def cmd_sign(args: argparse.Namespace) -> int:
    """Command: print signature headers for a body file."""
    secret = _secret(args)
    if not secret:
        print_error("No secret given (use --secret or WEBHOOK_SECRET)")
        return 1

    body = Path(args.file).read_bytes()
    timestamp = args.timestamp if args.timestamp is not None else now_ms()

    print(f"X-Signature: {sign(body, secret)}")
    print(f"X-Timestamp: {timestamp}")
    return 0


async def cmd_send(args: argparse.Namespace) -> int:
    """Command: send a signed test lead."""
    secret = _secret(args)
    api_key = args.api_key or os.getenv("LEADHOOK_API_KEY")
    if not secret or not api_key:
        print_error("Both --secret and --api-key are required (or WEBHOOK_SECRET / LEADHOOK_API_KEY)")
        return 1

    lead = {
        key: value
        for key, value in {
            "name": args.name,
            "email": args.email,
            "phone": args.phone,
            "city": args.city,
            "message": args.message,
            "source": args.source,
        }.items()
        if value
    }

    if args.dry_run:
        body, headers = build_signed_request(lead, api_key=api_key, secret=secret, origin=args.origin)
        for name, value in headers.items():
            print(f"{name}: {'[REDACTED]' if name == 'X-API-Key' else value}")
        print(body.decode("utf-8"))
        return 0

    client = LeadClient(args.api_url, api_key=api_key, webhook_secret=secret, origin=args.origin)
    print_info(f"Sending lead to {args.api_url}...")
    result = await client.send_lead(lead)

    if result.success:
        print_success(f"Lead created: {result.lead_id}")
        return 0

    print_error(f"Lead rejected ({result.status_code}): {result.error}")
    if result.message:
        print_error(f"  {result.message}")
    return 1


async def cmd_health(args: argparse.Namespace) -> int:
    """Command: query the health endpoint."""
    print_info("Checking API health...")
    try:
        async with httpx.AsyncClient(timeout=args.timeout) as client:
            response = await client.get(f"{args.api_url.rstrip('/')}/api/health")
    except httpx.RequestError as e:
        print_error(f"API unreachable: {e}")
        return 1

    data = response.json()
    for name, check in data.get("checks", {}).items():
        state = check.get("status", "unknown")
        line = f"{name}: {state}" + (f" ({check['message']})" if check.get("message") else "")
        if state == "healthy":
            print_success(line)
        elif state == "warning":
            print_warning(line)
        else:
            print_error(line)

    if data.get("status") == "healthy":
        print_success("API healthy")
        return 0
    print_error(f"API {data.get('status', 'unknown')}")
    return 1


async def cmd_init_db(args: argparse.Namespace) -> int:
    """Command: create the leads table."""
    engine = create_database_engine(Settings())
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()
    print_success("Leads table ready")
    return 0


COMMANDS: Dict[str, Callable] = {
    'sign': cmd_sign,
    'send': cmd_send,
    'health': cmd_health,
    'init-db': cmd_init_db,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Lead webhook CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    sign_parser = subparsers.add_parser('sign', help='Print signature headers for a body file')
    sign_parser.add_argument('file', help='File holding the exact request body')
    sign_parser.add_argument('--secret', help='Shared webhook secret')
    sign_parser.add_argument('--timestamp', type=int, help='Epoch milliseconds (default: now)')

    send_parser = subparsers.add_parser('send', help='Send a signed test lead')
    send_parser.add_argument('--api-url', default='http://localhost:8000', help='API URL')
    send_parser.add_argument('--api-key', help='API key')
    send_parser.add_argument('--secret', help='Shared webhook secret')
    send_parser.add_argument('--origin', help='Origin header to send')
    send_parser.add_argument('--name', required=True)
    send_parser.add_argument('--email')
    send_parser.add_argument('--phone')
    send_parser.add_argument('--city')
    send_parser.add_argument('--message')
    send_parser.add_argument('--source')
    send_parser.add_argument('--dry-run', action='store_true', help='Print the signed request instead of sending')

    health_parser = subparsers.add_parser('health', help='Check API health')
    health_parser.add_argument('--api-url', default='http://localhost:8000', help='API URL')
    health_parser.add_argument('--timeout', type=float, default=5.0)

    subparsers.add_parser('init-db', help='Create the leads table')

    return parser


def main(args: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    command_func = COMMANDS[parsed_args.command]

    try:
        return asyncio.run(command_func(parsed_args))
    except KeyboardInterrupt:
        print_error("\nInterrupted by user")
        return 130
    except Exception as e:
        print_error(f"Error executing command: {str(e)}")
        if os.getenv('DEBUG'):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
