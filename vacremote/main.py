"""Console remote for the vacuum robot.

Reads one command per line from stdin and forwards it to the robot:

    c [ADDRESS]   connect (defaults to DEVICE_ADDRESS)
    d             disconnect
    v             toggle suction
    s N           set speed to N percent
    f|b|l|r       start driving forward/backward/left/right
    x             stop
    ?             show status
    q             quit
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from vacremote.client import RemoteClient
from vacremote.core.config import Settings, load_settings
from vacremote.protocol.commands import Direction

logger = logging.getLogger(__name__)

_DIRECTION_KEYS = {d.value.lower(): d for d in Direction}


def _status(client: RemoteClient) -> str:
    error = client.last_error.name if client.last_error else "-"
    return (
        f"connected={client.is_connected} vacuum={'on' if client.vacuum_on else 'off'} "
        f"speed={client.speed}% last_error={error}"
    )


def _parse_speed(args: list[str]) -> int | None:
    if len(args) != 1:
        return None
    try:
        return int(args[0])
    except ValueError:
        return None


def handle_line(client: RemoteClient, settings: Settings, line: str) -> bool:
    """Execute one console command.

    Args:
        client: Started remote client.
        settings: Application settings (for the default address).
        line: Raw input line.

    Returns:
        False when the user asked to quit, True otherwise.
    """
    parts = line.strip().split()
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "q":
        return False
    if cmd == "?":
        print(_status(client))
    elif cmd == "c":
        address = args[0] if args else settings.device_address
        if not address:
            print("No address given and DEVICE_ADDRESS is not set.")
            return True
        ok = client.connect(address).result()
        print("Connected." if ok else f"Connect failed: {client.last_error.name}")
    elif cmd == "d":
        client.disconnect().result()
        print("Disconnected.")
    elif cmd == "v":
        client.toggle_vacuum().result()
        print(_status(client))
    elif cmd == "s":
        speed = _parse_speed(args)
        if speed is None:
            print(__doc__)
            return True
        client.set_speed(speed).result()
        print(_status(client))
    elif cmd in _DIRECTION_KEYS:
        client.start_move(_DIRECTION_KEYS[cmd]).result()
    elif cmd == "x":
        client.stop_now().result()
    else:
        print(__doc__)
    return True


def main(argv: list[str] | None = None) -> int:
    """Run the console remote until EOF or 'q'."""
    parser = argparse.ArgumentParser(description="Console remote for the vacuum robot.")
    parser.add_argument("--env", type=Path, default=None, help="Path to .env file.")
    parser.add_argument("--config", type=Path, default=None, help="Path to YAML config.")
    parser.add_argument("--address", default=None, help="Connect to this address at startup.")
    args = parser.parse_args(argv)

    settings = load_settings(env_path=args.env, yaml_path=args.config)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    with RemoteClient.from_settings(settings) as client:
        address = args.address or settings.device_address
        if address:
            handle_line(client, settings, f"c {address}")
        print("Type ? for status, h for help, q to quit.")
        for line in sys.stdin:
            if not handle_line(client, settings, line):
                break
    logger.info("Remote closed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
