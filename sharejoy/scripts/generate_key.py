"""
Print a new Fernet key for STORAGE_ENCRYPTION_KEY:
  python -m sharejoy.scripts.generate_key
"""
import sys

from cryptography.fernet import Fernet


def main() -> int:
    print(Fernet.generate_key().decode("ascii"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
