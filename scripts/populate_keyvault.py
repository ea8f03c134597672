#!/usr/bin/env python3
"""
Populate Azure Key Vault with the service settings found in .env.
Usage:
  python scripts/populate_keyvault.py [--vault VAULT_NAME] [--user USER_NAME]

  --vault: Key Vault name (default: KEYVAULT_NAME from .env)
  --user:  Optional; create KEY-USER secrets for per-user overrides
"""
import argparse
import os
import sys
from pathlib import Path

from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient
from dotenv import dotenv_values, load_dotenv

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from column_governance.keyvault_loader import ENV_VARS, env_to_secret_name


def _find_env_file() -> Path | None:
    for base in (Path.cwd(), _root):
        env_path = base / ".env"
        if env_path.exists():
            return env_path
    return None


def main():
    env_path = _find_env_file()
    if env_path is not None:
        load_dotenv(env_path)

    parser = argparse.ArgumentParser(description="Populate Key Vault from .env")
    parser.add_argument("--vault", default=os.environ.get("KEYVAULT_NAME"), help="Key Vault name")
    parser.add_argument("--user", help="Create KEY-USER secrets for per-user overrides")
    args = parser.parse_args()

    if not args.vault:
        print("ERROR: Set KEYVAULT_NAME in .env or pass --vault", file=sys.stderr)
        sys.exit(1)
    if env_path is None:
        print("ERROR: .env not found", file=sys.stderr)
        sys.exit(1)

    values = dotenv_values(env_path)
    vars_to_set = [(key, values[key]) for key in ENV_VARS if values.get(key)]
    if not vars_to_set:
        print("No secrets to upload from .env")
        sys.exit(0)

    url = f"https://{args.vault}.vault.azure.net/"
    client = SecretClient(vault_url=url, credential=DefaultAzureCredential())

    suffix = f"-{args.user.upper()}" if args.user else ""
    failed = 0
    for key, value in vars_to_set:
        secret_name = f"{env_to_secret_name(key)}{suffix}"
        try:
            client.set_secret(secret_name, value)
            print(f"  {secret_name}")
        except AzureError as e:
            failed += 1
            print(f"  {secret_name}: FAILED - {e}", file=sys.stderr)

    print(f"Done. Uploaded {len(vars_to_set) - failed} secret(s) to {args.vault}")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
