import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fastsewa.config import load_settings
from fastsewa.credentials import TokenIssuer
from fastsewa.errors import DuplicateEmailError, ValidationFailedError
from fastsewa.store import AdminBootstrap, RecordStore
from fastsewa.users import UserDirectory
from fastsewa.validation import MIN_PASSWORD_LENGTH


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a FASTSEWA user account")
    parser.add_argument("username", help="Username for the account")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("--name", default=None, help="Full name stored in the profile")
    parser.add_argument("--admin", action="store_true", help="Grant the admin role")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (defaults to FASTSEWA_CONFIG)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    settings = load_settings(Path(args.config) if args.config else None)
    store = RecordStore(
        settings.data_dir,
        admin=AdminBootstrap(
            username=settings.admin_username,
            email=settings.admin_email,
            password=settings.admin_password,
        ),
    )
    store.initialize()
    directory = UserDirectory(store, TokenIssuer(settings.jwt_secret, algorithm=settings.jwt_algorithm))

    profile = {"name": args.name.strip()} if args.name else None
    try:
        user = directory.register(args.username.strip(), args.email.strip(), password, profile)
    except DuplicateEmailError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValidationFailedError as exc:
        for message in exc.messages:
            print(f"Error: {message}", file=sys.stderr)
        return 1

    if args.admin:
        user = directory.change_role(user.id, "admin")

    print(f"Created {user.role} #{user.id}: {user.username} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
