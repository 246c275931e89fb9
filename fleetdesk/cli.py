"""Command line interface for FleetDesk.

    fleetdesk collections create --parent FD100001 --pilot --children 3
    fleetdesk collections dedup FD100002 FD100003 --export
    fleetdesk devices enroll ws001 ws002 --session
    fleetdesk registry clear --yes
"""

import argparse
import asyncio
import logging
import sys
from typing import Callable, List, Optional

from .collection_management import CollectionHierarchyEngine, HierarchyResult, MembershipDedupEngine
from .config import FleetSettings, load_settings
from .device_management import DeviceEnrollmentOrchestrator, DeviceEnrollmentResult, HostRegistry
from .directory import DirectoryService, JsonDirectoryService, validate_child_count, validate_collection_id
from .error_handling import EnvironmentFatalError, ErrorManager, FleetDeskError, InvalidInputError, NotFoundError
from .monitoring import MonitorManager
from .prompts import InputAborted, confirm, parse_yes_no, prompt_until_valid
from .utils.logging_config import configure_logging

logger = logging.getLogger("fleetdesk.cli")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_ITEM_FAILURES = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="fleetdesk",
        description="Build device collection hierarchies and enroll devices into the local host registry"
    )
    parser.add_argument("--settings", help="Path to the settings file (default: ~/.fleetdesk/settings.json)")
    parser.add_argument("--inventory", help="Path to the directory inventory file")
    parser.add_argument("--hosts-file", help="Path to the host registry file")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Console logging level"
    )
    commands = parser.add_subparsers(dest="area", required=True)

    collections = commands.add_parser("collections", help="Collection hierarchy and duplicate membership")
    collection_commands = collections.add_subparsers(dest="command", required=True)

    create = collection_commands.add_parser("create", help="Create pilot and child collections under a parent")
    create.add_argument("--parent", help="Parent collection ID (prompted if omitted)")
    create.add_argument("--pilot", dest="pilot", action="store_true", default=None,
                        help="Create a pilot collection")
    create.add_argument("--no-pilot", dest="pilot", action="store_false", help="Skip the pilot collection")
    create.add_argument("--children", help="Number of child collections (prompted if omitted)")
    create.add_argument("--no-input", action="store_true", help="Fail instead of prompting")

    dedup = collection_commands.add_parser("dedup", help="Find devices that are members of several collections")
    dedup.add_argument("collection_ids", nargs="+", help="Collection IDs to compare")
    dedup.add_argument("--export", action="store_true", help="Export snapshots and duplicates as CSV")

    devices = commands.add_parser("devices", help="Device enrollment")
    device_commands = devices.add_subparsers(dest="command", required=True)
    enroll = device_commands.add_parser("enroll", help="Resolve, probe and register devices")
    enroll.add_argument("names", nargs="*", help="Device short names")
    enroll.add_argument("--file", help="File with one device name per line")
    enroll.add_argument("--session", action="store_true", help="Open a remote session to each enrolled device")
    enroll.add_argument("--clear-registry", action="store_true", help="Clear the host registry first")
    enroll.add_argument("--pool-size", type=int, help="Number of devices processed concurrently")
    enroll.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    registry = commands.add_parser("registry", help="Host registry maintenance")
    registry_commands = registry.add_subparsers(dest="command", required=True)
    registry_commands.add_parser("list", help="Show registry entries")
    clear = registry_commands.add_parser("clear", help="Remove every registry entry")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    return parser.parse_args(argv)


def read_device_names(names: List[str], file_path: Optional[str]) -> List[str]:
    """Merge names from the command line and a names file, keeping order."""
    result = list(names)
    if file_path:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                for line in f:
                    name = line.split('#', 1)[0].strip()
                    if name:
                        result.append(name)
        except OSError as e:
            raise InvalidInputError(f"Cannot read device list {file_path}: {e}") from e
    return result


class FleetDeskApp:
    """Runs one command with its collaborators wired from settings."""

    def __init__(self, settings: FleetSettings,
                 directory_factory: Optional[Callable[[FleetSettings], DirectoryService]] = None,
                 input_func: Callable[[str], str] = input,
                 output: Callable[[str], None] = print):
        self.settings = settings
        self.monitor = MonitorManager()
        self.error_manager = ErrorManager(self.monitor)
        self._directory_factory = directory_factory or (lambda s: JsonDirectoryService(s.inventory_file))
        self._directory: Optional[DirectoryService] = None
        self.input_func = input_func
        self.output = output

    @property
    def directory(self) -> DirectoryService:
        if self._directory is None:
            self._directory = self._directory_factory(self.settings)
        return self._directory

    async def _ask_parent(self, initial: Optional[str], interactive: bool):
        candidate = initial
        while True:
            try:
                if candidate is None:
                    if not interactive:
                        raise InvalidInputError("A parent collection ID is required")
                    candidate = prompt_until_valid("Parent collection ID: ", validate_collection_id,
                                                   self.input_func, self.output)
                collection = await self.directory.get_collection(validate_collection_id(candidate))
                if collection is None:
                    raise NotFoundError(f"Collection {candidate} not found")
                return collection
            except (InvalidInputError, NotFoundError) as e:
                if not interactive:
                    raise
                self.output(f"  {e}")
                candidate = None

    def _ask_child_count(self, initial: Optional[str], interactive: bool) -> int:
        if initial is not None:
            try:
                return validate_child_count(initial)
            except InvalidInputError as e:
                if not interactive:
                    raise
                self.output(f"  {e}")
        elif not interactive:
            raise InvalidInputError("A child collection count is required")
        return prompt_until_valid("Number of child collections: ", validate_child_count,
                                  self.input_func, self.output)

    async def create_collections(self, args: argparse.Namespace) -> int:
        interactive = not args.no_input
        parent = await self._ask_parent(args.parent, interactive)
        want_pilot = args.pilot
        if want_pilot is None:
            want_pilot = prompt_until_valid("Create a pilot collection? [y/n] ", parse_yes_no,
                                            self.input_func, self.output) if interactive else False
        child_count = self._ask_child_count(args.children, interactive)

        engine = CollectionHierarchyEngine(self.directory, self.monitor, self.settings, self.error_manager)
        result = await engine.create_hierarchy(parent.id, want_pilot, child_count)
        self.print_hierarchy(result)
        return EXIT_ITEM_FAILURES if result.failures else EXIT_OK

    def print_hierarchy(self, result: HierarchyResult) -> None:
        self.output(f"Parent: {result.parent_name} ({result.parent_id}), {result.parent_device_count} devices")
        if result.pilot_id:
            self.output(f"Pilot collection: {result.pilot_id}")
        for collection_id in result.child_ids:
            self.output(f"Child collection: {collection_id}")
        for failure in result.failures:
            self.output(f"FAILED #{failure.index} {failure.name}: {failure.reason}")
        self.output(f"{result.created_count} collections created, {len(result.failures)} failed")

    async def dedup_collections(self, args: argparse.Namespace) -> int:
        engine = MembershipDedupEngine(self.directory, self.monitor, self.settings, self.error_manager)
        duplicates = await engine.snapshot_and_dedup(args.collection_ids, export=args.export)
        for snapshot in engine.last_snapshots:
            self.output(f"{snapshot.collection_id} {snapshot.collection_name}: {len(snapshot)} devices")
        if duplicates:
            self.output("Devices in more than one collection:")
            for record in duplicates:
                self.output(f"  {record.device_name}: {', '.join(record.collection_ids)}")
        else:
            self.output("No duplicate devices found")
        for path in engine.last_exports:
            self.output(f"Exported {path}")
        return EXIT_ITEM_FAILURES if engine.last_failures else EXIT_OK

    async def enroll_devices(self, args: argparse.Namespace) -> int:
        names = read_device_names(args.names, args.file)
        if not names:
            raise InvalidInputError("No device names given")

        if args.clear_registry and not self._clear_registry(args.yes):
            self.output("Registry left unchanged")

        orchestrator = DeviceEnrollmentOrchestrator.from_settings(
            self.directory, self.settings, self.monitor, self.error_manager
        )
        if args.pool_size:
            orchestrator.pool_size = max(1, args.pool_size)
        results = await orchestrator.run(names, open_session=args.session)
        self.print_enrollment(results)
        return EXIT_OK if all(r.registered for r in results) else EXIT_ITEM_FAILURES

    def print_enrollment(self, results: List[DeviceEnrollmentResult]) -> None:
        for result in results:
            if result.registered:
                channel = "healthy" if result.management_channel_healthy else "UNHEALTHY"
                self.output(f"{result.short_name}: {result.fqdn} {result.ip_address} registered, channel {channel}")
            else:
                self.output(f"{result.short_name}: FAILED ({result.error})")

    def _clear_registry(self, assume_yes: bool) -> bool:
        registry = HostRegistry(self.settings.hosts_file)
        if not assume_yes and not confirm(f"Remove every entry from {registry.hosts_file}?", self.input_func):
            return False
        registry.clear()
        self.output(f"Cleared {registry.hosts_file}")
        return True

    async def registry_command(self, args: argparse.Namespace) -> int:
        if args.command == "clear":
            if not self._clear_registry(args.yes):
                self.output("Registry left unchanged")
            return EXIT_OK
        for entry in HostRegistry(self.settings.hosts_file).entries():
            self.output(f"{entry.ip}\t{entry.short_name}")
        return EXIT_OK

    async def dispatch(self, args: argparse.Namespace) -> int:
        if args.area == "collections":
            if args.command == "create":
                return await self.create_collections(args)
            return await self.dedup_collections(args)
        if args.area == "devices":
            return await self.enroll_devices(args)
        return await self.registry_command(args)

    def print_summary(self) -> None:
        lines = self.error_manager.summary_lines()
        if lines:
            self.output("Problems:")
            for line in lines:
                self.output(f"  {line}")

    def print_partial_progress(self, partial) -> None:
        if isinstance(partial, HierarchyResult):
            self.output("Completed before the failure:")
            self.print_hierarchy(partial)
        elif isinstance(partial, list) and partial:
            self.output("Completed before the failure:")
            for item in partial:
                if isinstance(item, DeviceEnrollmentResult):
                    self.print_enrollment([item])
                else:
                    self.output(f"  snapshot {getattr(item, 'collection_id', item)}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line interface."""
    args = parse_args(argv)
    output = print

    try:
        settings = load_settings(args.settings, {
            'inventory_file': args.inventory,
            'hosts_file': args.hosts_file,
        })
    except InvalidInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    logging_settings = settings.logging.model_dump()
    if args.log_level:
        logging_settings['console_level'] = args.log_level
    configure_logging(logging_settings)

    app = FleetDeskApp(settings, output=output)
    try:
        code = asyncio.run(app.dispatch(args))
    except EnvironmentFatalError as e:
        logger.critical("Run aborted: %s", e)
        print(f"Fatal: {e}", file=sys.stderr)
        app.print_partial_progress(e.partial_progress)
        app.print_summary()
        return EXIT_FATAL
    except InputAborted as e:
        print(f"Aborted: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (InvalidInputError, NotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except FleetDeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        app.print_summary()
        return EXIT_FATAL
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        app.print_summary()
        return EXIT_FATAL

    app.print_summary()
    return code
