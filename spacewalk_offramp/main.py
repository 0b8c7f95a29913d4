from __future__ import annotations

import argparse
import sys

from spacewalk_offramp.config import TOKEN_CONFIG, get_token, load_settings
from spacewalk_offramp.runtime.app import run_main


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="spacewalk-offramp", description="Offramp a Spacewalk wrapped asset.")
    parser.add_argument("token", nargs="?", help="one of: " + ", ".join(TOKEN_CONFIG))
    parser.add_argument("--env-file", default=None, help="dotenv file with overrides")
    args = parser.parse_args(argv)

    token = get_token(args.token) if args.token else None
    if token is None:
        allowed = ", ".join(f'"{name}"' for name in TOKEN_CONFIG)
        print(f"ERROR: Please specify either one of the following tokens as an argument: {allowed}", file=sys.stderr)
        return 1

    run_main(load_settings(args.env_file), token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
