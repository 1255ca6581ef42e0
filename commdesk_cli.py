#!/usr/bin/env python3
"""
commdesk - keep track of clients and commissions from the terminal.
Records live as JSON files in a ``Data`` folder next to the program.
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from colorama import init, Fore, Style

from commdesk.config import Settings, load_settings, setup_logging
from commdesk.errors import CommdeskError
from commdesk.models import (
    Client, Commission, PAYMENT_STATUSES, STATUSES, new_client_id,
    new_commission_id, now_iso,
)
from commdesk.repositories import ClientRepository, CommissionRepository, FileStorage
from commdesk.services import ClientService, CommissionService, DataService, ImageService

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

logger = logging.getLogger('commdesk.cli')


class Desk:
    """Wires the storage, repositories and services for one data root."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.storage = FileStorage(settings.data_root)
        self.storage.ensure_data_folders()
        self.client_service = ClientService(ClientRepository(self.storage))
        self.commission_service = CommissionService(CommissionRepository(self.storage))
        self.image_service = ImageService(self.storage)
        self.data_service = DataService(self.storage, settings.import_allowed)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _format_price(cents: int) -> str:
    return f"${cents // 100:,}.{cents % 100:02d}"


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------

def cmd_client_add(desk: Desk, args) -> None:
    stamp = now_iso()
    client = Client(
        id=args.id or new_client_id(),
        name=args.name,
        email=args.email or '',
        contact=args.contact or '',
        profile_image=args.profile_image,
        notes=args.notes,
        created_at=stamp,
        updated_at=stamp,
    )
    desk.client_service.create_client(client)
    print(f"{Fore.GREEN}Saved client {client.id}")


def cmd_client_show(desk: Desk, args) -> None:
    client = desk.client_service.get_client_by_id(args.id)
    if client is None:
        print(f"{Fore.YELLOW}No client with id {args.id}")
        return
    _print_json(client.to_dict())


def cmd_client_list(desk: Desk, args) -> None:
    clients = sorted(desk.client_service.get_all_clients(), key=lambda c: c.name.lower())
    if not clients:
        print(f"{Fore.YELLOW}No clients yet.")
        return
    for client in clients:
        print(f"{Fore.CYAN}{client.id}  {Fore.WHITE}{client.name}"
              f"{'  ' + client.email if client.email else ''}")
    print(f"{Fore.GREEN}{len(clients)} client(s)")


def cmd_client_delete(desk: Desk, args) -> None:
    if desk.client_service.delete_client(args.id):
        print(f"{Fore.GREEN}Deleted client {args.id}")
    else:
        print(f"{Fore.YELLOW}No client with id {args.id}; nothing to delete")


def cmd_commission_add(desk: Desk, args) -> None:
    stamp = now_iso()
    commission = Commission(
        id=args.id or new_commission_id(),
        client_id=args.client_id,
        client_name=args.client_name,
        title=args.title,
        description=args.description or '',
        price_cents=args.price_cents,
        payment_status=args.payment_status,
        status=args.status,
        created_at=stamp,
        updated_at=stamp,
        images=list(args.image or []),
    )
    stored = desk.commission_service.create_commission(commission)
    print(f"{Fore.GREEN}Saved commission {stored.id} ({stored.status})")


def cmd_commission_list(desk: Desk, args) -> None:
    commissions = desk.commission_service.get_commissions_by_status(args.status)
    if args.exact:
        commissions = [c for c in commissions if c.status == args.status]
    if args.json:
        _print_json([c.to_dict() for c in commissions])
        return
    if not commissions:
        print(f"{Fore.YELLOW}No commissions in {args.status}.")
        return
    for c in sorted(commissions, key=lambda c: c.created_at):
        print(f"{Fore.CYAN}{c.id}  {Fore.WHITE}{c.title}  {Fore.YELLOW}{c.client_name}  "
              f"{Fore.WHITE}{_format_price(c.price_cents)}  {c.payment_status}  [{c.status}]")
    print(f"{Fore.GREEN}{len(commissions)} commission(s)")


def cmd_commission_move(desk: Desk, args) -> None:
    moved = desk.commission_service.move_commission(args.id, args.from_status, args.to_status)
    print(f"{Fore.GREEN}Moved {moved.id} to {moved.status}")


def cmd_commission_delete(desk: Desk, args) -> None:
    path = desk.commission_service.delete_commission(args.id, args.status)
    print(f"{Fore.GREEN}Deleted {path}")


def cmd_commission_doctor(desk: Desk, args) -> int:
    duplicates: Dict[str, List[str]] = desk.commission_service.find_duplicates()
    if not duplicates:
        print(f"{Fore.GREEN}No duplicate commission files found.")
        return 0
    for cid, paths in sorted(duplicates.items()):
        print(f"{Fore.YELLOW}{cid} is stored {len(paths)} times:")
        for path in paths:
            print(f"  {Fore.WHITE}{path}")
    return 1


def cmd_image_add(desk: Desk, args) -> None:
    try:
        with open(args.file, 'rb') as fh:
            data = fh.read()
    except OSError as e:
        raise CommdeskError(f"Failed to read {args.file}: {e}") from e
    filename = args.filename or os.path.basename(args.file)
    ref = desk.image_service.save_commission_image(args.commission_id, args.client_name,
                                                   data, filename)
    print(ref)


def cmd_data_path(desk: Desk, args) -> None:
    print(desk.data_service.get_data_directory_path())


def cmd_data_export(desk: Desk, args) -> None:
    path = desk.data_service.export_all_data(args.dest)
    print(f"{Fore.GREEN}Data exported to {path}")


def cmd_data_import(desk: Desk, args) -> None:
    count = desk.data_service.import_data(args.source)
    print(f"{Fore.GREEN}Imported {count} file(s) from {args.source}")


def cmd_data_version(desk: Desk, args) -> None:
    print(desk.data_service.get_app_version())


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='commdesk',
        description='commdesk - client and commission tracker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  commdesk client add --name Alice --email alice@example.com
  commdesk commission add --client-id c1 --client-name Alice --title Portrait --price-cents 5000
  commdesk commission list pending
  commdesk commission move comm_1 pending completed
  commdesk data export ~/Desktop
        """
    )
    parser.add_argument(
        '--data-dir', '-d',
        help='Data directory (default: Data folder next to the program, or COMMDESK_DATA_DIR)'
    )
    parser.add_argument(
        '--log-level',
        help='Log level: DEBUG, INFO, WARNING, ERROR (default: WARNING, or COMMDESK_LOG_LEVEL)'
    )
    groups = parser.add_subparsers(dest='group', metavar='<command>')
    groups.required = True

    # client ---------------------------------------------------------------
    client = groups.add_parser('client', help='Manage clients')
    client_cmds = client.add_subparsers(dest='action', metavar='<action>')
    client_cmds.required = True

    p = client_cmds.add_parser('add', help='Create or replace a client')
    p.add_argument('--name', required=True)
    p.add_argument('--id', help='Client id (generated when omitted)')
    p.add_argument('--email', default='')
    p.add_argument('--contact', default='')
    p.add_argument('--profile-image', dest='profile_image')
    p.add_argument('--notes')
    p.set_defaults(func=cmd_client_add)

    p = client_cmds.add_parser('show', help='Show one client as JSON')
    p.add_argument('id')
    p.set_defaults(func=cmd_client_show)

    p = client_cmds.add_parser('list', help='List all clients')
    p.set_defaults(func=cmd_client_list)

    p = client_cmds.add_parser('delete', help='Delete a client')
    p.add_argument('id')
    p.set_defaults(func=cmd_client_delete)

    # commission -------------------------------------------------------------
    commission = groups.add_parser('commission', help='Manage commissions')
    comm_cmds = commission.add_subparsers(dest='action', metavar='<action>')
    comm_cmds.required = True

    p = comm_cmds.add_parser('add', help='Create or replace a commission')
    p.add_argument('--client-id', dest='client_id', required=True)
    p.add_argument('--client-name', dest='client_name', required=True)
    p.add_argument('--title', required=True)
    p.add_argument('--price-cents', dest='price_cents', type=int, required=True)
    p.add_argument('--id', help='Commission id (generated when omitted)')
    p.add_argument('--description', default='')
    p.add_argument('--payment-status', dest='payment_status', default='Not Paid',
                   choices=PAYMENT_STATUSES)
    p.add_argument('--status', default='pending', choices=STATUSES)
    p.add_argument('--image', action='append', metavar='PATH',
                   help='Image reference (repeatable)')
    p.set_defaults(func=cmd_commission_add)

    p = comm_cmds.add_parser('list', help='List commissions stored for a status')
    p.add_argument('status', choices=STATUSES)
    p.add_argument('--exact', action='store_true',
                   help='Only records whose status matches exactly')
    p.add_argument('--json', action='store_true', help='Print records as JSON')
    p.set_defaults(func=cmd_commission_list)

    p = comm_cmds.add_parser('move', help='Change the status of a commission')
    p.add_argument('id')
    p.add_argument('from_status', choices=STATUSES)
    p.add_argument('to_status', choices=STATUSES)
    p.set_defaults(func=cmd_commission_move)

    p = comm_cmds.add_parser('delete', help='Delete a commission')
    p.add_argument('id')
    p.add_argument('status', choices=STATUSES)
    p.set_defaults(func=cmd_commission_delete)

    p = comm_cmds.add_parser('doctor', help='Report commissions stored more than once')
    p.set_defaults(func=cmd_commission_doctor)

    # image ----------------------------------------------------------------
    image = groups.add_parser('image', help='Attach images')
    image_cmds = image.add_subparsers(dest='action', metavar='<action>')
    image_cmds.required = True

    p = image_cmds.add_parser('add', help='Store an image for a commission')
    p.add_argument('commission_id')
    p.add_argument('client_name')
    p.add_argument('file')
    p.add_argument('--filename', help='Stored file name (default: name of FILE)')
    p.set_defaults(func=cmd_image_add)

    # data -----------------------------------------------------------------
    data = groups.add_parser('data', help='Data directory maintenance')
    data_cmds = data.add_subparsers(dest='action', metavar='<action>')
    data_cmds.required = True

    p = data_cmds.add_parser('path', help='Print the data directory')
    p.set_defaults(func=cmd_data_path)

    p = data_cmds.add_parser('export', help='Write the data directory as a zip archive')
    p.add_argument('dest', help='Archive path or existing directory')
    p.set_defaults(func=cmd_data_export)

    p = data_cmds.add_parser('import', help='Copy a directory into the data directory')
    p.add_argument('source', help='Absolute path of the directory to import')
    p.set_defaults(func=cmd_data_import)

    p = data_cmds.add_parser('version', help='Print the application version')
    p.set_defaults(func=cmd_data_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(data_root=args.data_dir, log_level=args.log_level)
    setup_logging(settings.log_level)
    logger.debug("Using data directory %s", settings.data_root)

    try:
        desk = Desk(settings)
        code = args.func(desk, args)
    except CommdeskError as e:
        print(f"{Fore.RED}Error: {e}{Style.RESET_ALL}")
        return 1
    return code or 0


if __name__ == '__main__':
    sys.exit(main())
