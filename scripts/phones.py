#!/usr/bin/env python3
"""Manage the phone catalog from the command line.

Reads ``PHONESTORE_BASE_URL`` / ``PHONESTORE_COLLECTION`` (or the
``--base-url`` / ``--collection`` flags) and runs one operation through
the optimistic store, printing every state it publishes.

Examples::

    phones.py list
    phones.py add Acme "One Pro" 499
    phones.py update -NxY3... Acme "One Pro" 449
    phones.py remove -NxY3...

Exit code is 1 when the operation ends in a failure state.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pydantic import ValidationError  # noqa: E402

from phonestore import (  # noqa: E402
    CollectionState,
    Failure,
    PhoneForm,
    PhoneStore,
    PhoneStoreError,
    RestPhoneRepository,
    StoreConfig,
    Success,
)


def _format_state(state: CollectionState) -> str:
    if isinstance(state, Success):
        if not state.items:
            return "[success] No phones yet"
        lines = [f"[success] {len(state.items)} phone(s)"]
        lines.extend(f"  {p.id}  {p.brand} {p.model}  ${p.price:.2f}" for p in state.items)
        return "\n".join(lines)
    if isinstance(state, Failure):
        return f"[failure] {state.error}"
    return "[loading]"


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--base-url", help="Database root URL (default: $PHONESTORE_BASE_URL)")
    parser.add_argument("--collection", help="Collection name (default: phones)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List all phones")

    add = sub.add_parser("add", help="Add a phone")
    add.add_argument("brand")
    add.add_argument("model")
    add.add_argument("price")

    update = sub.add_parser("update", help="Edit a phone")
    update.add_argument("id")
    update.add_argument("brand")
    update.add_argument("model")
    update.add_argument("price")

    remove = sub.add_parser("remove", help="Delete a phone")
    remove.add_argument("id")

    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, str] = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.collection:
        overrides["collection"] = args.collection
    config = StoreConfig.from_env(**overrides)

    form: PhoneForm | None = None
    if args.command in ("add", "update"):
        form = PhoneForm(brand=args.brand, model=args.model, price=args.price)

    def render(state: CollectionState) -> None:
        print(_format_state(state))

    async with RestPhoneRepository(config) as repository:
        async with PhoneStore(repository, observers=[render]) as store:
            await store.wait_idle()
            if args.command == "add":
                assert form is not None  # noqa: S101
                await store.add(form.to_draft())
            elif args.command == "update":
                assert form is not None  # noqa: S101
                await store.update(form.to_phone(args.id))
            elif args.command == "remove":
                await store.remove(args.id)
            return 1 if store.has_error else 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except ValidationError as exc:
        print(f"Invalid input: {exc}", file=sys.stderr)
        return 2
    except PhoneStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
