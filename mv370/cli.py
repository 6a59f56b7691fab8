"""MV-370 gateway command-line interface.

With no arguments, prints every stored message as a JSON array (and
deletes the read ones on the gateway). With one JSON argument holding
``tel`` and ``text``, sends that message.
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from mv370.config import ConfigManager, Config, LogLevel
from mv370.core import Mv370Gateway, Message, GatewayError
from mv370.logging import CommunicationLogger

EXIT_OK = 0
EXIT_READ_FAILED = 1
EXIT_USAGE = 1
EXIT_BAD_JSON = 2
EXIT_CHECK_FAILED = 3
EXIT_SEND_FAILED = 4

EXAMPLES = """
Examples:
  %(prog)s
        to read messages
  %(prog)s '{"tel":"012345678","text":"The message"}'
        to send a message
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mv370",
        description="MV-370 GSM gateway - send and read SMS messages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EXAMPLES
    )

    parser.add_argument(
        'message',
        nargs='*',
        help='JSON object with "tel" and "text" fields to send; omit to read messages'
    )

    parser.add_argument(
        '--host',
        type=str,
        help='Gateway host and port (default: 192.168.100.251:23)'
    )

    parser.add_argument(
        '--user',
        type=str,
        help='Gateway username (default: voip)'
    )

    parser.add_argument(
        '--pass',
        dest='password',
        type=str,
        help='Gateway password (default: 1234)'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        help='Connect/read/write timeout in seconds (default: 10)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output on stderr'
    )

    parser.add_argument(
        '--config',
        type=str,
        metavar='PATH',
        help='Path to YAML config file (default: ./mv370.yaml or ~/.mv370/config.yaml)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        metavar='PATH',
        help='Also write session diagnostics to this file'
    )

    parser.add_argument(
        '--show-config',
        action='store_true',
        help='Show effective configuration with sources and exit'
    )

    return parser


def load_config(config_path: Optional[str]) -> Config:
    """Load configuration; an explicit path must load, the default search may fall back.

    Raises:
        Exception: Explicit config file missing, unreadable or invalid
    """
    if config_path:
        return ConfigManager.initialize(Path(config_path)).get_config()

    try:
        return ConfigManager.initialize().get_config()
    except Exception as e:
        print(f"Warning: Failed to load configuration: {e}", file=sys.stderr)
        print("Using defaults only", file=sys.stderr)
        return Config()


def create_logger(config: Config, debug: bool,
                  log_file: Optional[str]) -> Optional[CommunicationLogger]:
    """Build the diagnostic logger requested by flags and config, if any."""
    log_config = config.logging
    if not (debug or log_file or log_config.enabled):
        return None

    file_path = log_file or log_config.log_file_path
    if log_config.log_to_file and not file_path:
        log_dir = Path.home() / ".mv370" / "logs"
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = str(log_dir / f"session_{timestamp}.log")

    return CommunicationLogger(
        log_level=LogLevel.DEBUG if debug else log_config.level,
        enable_file=bool(file_path) and (log_config.log_to_file or bool(log_file)),
        enable_console=debug or log_config.log_to_console,
        log_file_path=file_path,
        max_file_size_mb=log_config.max_file_size_mb,
        backup_count=log_config.backup_count
    )


def send_message(gateway: Mv370Gateway, message: Message) -> int:
    try:
        gateway.send_sms(message.tel, message.text)
    except GatewayError as e:
        print(str(e), file=sys.stderr)
        return EXIT_SEND_FAILED
    return EXIT_OK


def read_messages(gateway: Mv370Gateway) -> int:
    result = gateway.read_sms()
    if not result.is_successful():
        print(str(result.error), file=sys.stderr)
        return EXIT_READ_FAILED

    print(json.dumps(result.to_list()))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.message) > 1:
        parser.print_usage(sys.stderr)
        print(EXAMPLES % {'prog': parser.prog}, file=sys.stderr)
        return EXIT_USAGE

    message = None
    if args.message:
        try:
            message = Message.from_json(args.message[0])
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            print(str(e), file=sys.stderr)
            return EXIT_BAD_JSON
        if not message.tel or not message.text:
            print("message needs non-empty 'tel' and 'text' fields", file=sys.stderr)
            return EXIT_BAD_JSON

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error: Failed to load configuration: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.show_config:
        try:
            shown = ConfigManager.instance().show_config()
        except RuntimeError:
            shown = config.mask_sensitive().to_dict()
        print(json.dumps(shown, indent=2))
        return EXIT_OK

    gateway_config = config.gateway
    logger = create_logger(config, args.debug, args.log_file)

    try:
        gateway = Mv370Gateway(
            host=args.host or gateway_config.host,
            username=args.user if args.user is not None else gateway_config.username,
            password=args.password if args.password is not None else gateway_config.password,
            timeout=args.timeout if args.timeout is not None else gateway_config.timeout,
            logger=logger
        )

        try:
            gateway.check()
        except GatewayError as e:
            print(str(e), file=sys.stderr)
            return EXIT_CHECK_FAILED

        if message is not None:
            return send_message(gateway, message)
        return read_messages(gateway)

    finally:
        if logger:
            logger.close()


if __name__ == '__main__':
    sys.exit(main())
