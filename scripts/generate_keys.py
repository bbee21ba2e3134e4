"""Print fresh secrets for the .env file.

Usage:
  python scripts/generate_keys.py >> .env

ENCRYPTION_KEY salts the per-file key stored with every upload; changing it
later only affects files uploaded afterwards.
"""

import secrets


def main():
  print(f"SECRET_KEY={secrets.token_hex(32)}")
  print(f"ENCRYPTION_KEY={secrets.token_hex(32)}")
  print(f"WHATSAPP_VERIFY_TOKEN={secrets.token_urlsafe(24)}")


if __name__ == '__main__':
  main()
