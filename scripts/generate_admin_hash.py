import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from coachdash.admin import hash_admin_key


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the ADMIN_CREATION_KEY_HASH setting")
    parser.add_argument(
        "admin_key",
        nargs="?",
        default=None,
        help="Admin creation key (prompted for when omitted so it stays out of shell history)",
    )
    return parser.parse_args()


def prompt_for_key() -> str:
    for _ in range(3):
        key = getpass.getpass("Admin key: ")
        confirm = getpass.getpass("Confirm admin key: ")
        if key != confirm:
            print("Keys do not match. Try again.", file=sys.stderr)
            continue
        if not key.strip():
            print("Admin key must not be empty.", file=sys.stderr)
            continue
        return key
    raise SystemExit("Failed to read an admin key after three attempts.")


def main() -> int:
    args = parse_args()
    admin_key = args.admin_key or prompt_for_key()

    print(f"ADMIN_CREATION_KEY_HASH={hash_admin_key(admin_key)}")
    print("Only the hash belongs in configuration; keep the key itself private.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
