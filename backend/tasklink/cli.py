"""
Command-line front end.

  tasklink -d /dev/ttyUSB0 load prog.elf _start shell
  tasklink -d /dev/ttyUSB0 kill shell
  tasklink -d /dev/ttyUSB0 list
  tasklink -d /dev/ttyUSB0 log
  tasklink pack prog.elf _start [--flash -d /dev/ttyUSB0]
  tasklink symbols prog.elf
  tasklink inspect elf.dump
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .dump_store import DumpStore
from .elf_symbols import describe_image, iter_symbols, read_image, resolve_symbol
from .errors import FrameDecodeError, TaskLinkError
from .frames import decode_frame, decode_legacy_dump, encode_legacy_dump
from .logger import log_critical, log_elf, log_info, log_ok, log_warn
from .serial_transport import SerialTransport
from .session import LinkSession
from .settings import LoaderSettings
from .types import (
    AnyCommand,
    KillCommand,
    ListCommand,
    LoadCommand,
    LogAttachCommand,
    RelaunchCommand,
)


INTERACTIVE_COMMANDS = ("load", "kill", "relaunch", "list", "log")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tasklink",
        description="Load programs onto and control tasks on a serial-attached task supervisor.",
    )
    parser.add_argument("-d", "--device", help="Serial device, e.g. /dev/ttyUSB0")
    parser.add_argument("-b", "--baudrate", type=int, help="Baud rate (default 115200)")
    parser.add_argument("--config", type=Path, help="JSON settings file")
    parser.add_argument("--dump", help="Diagnostic dump path (default elf.dump)")
    parser.add_argument("--warmup", type=float, help="Seconds to wait after opening the port")
    parser.add_argument("--linger", type=float, help="Exit after this many seconds instead of waiting for Ctrl-C")

    sub = parser.add_subparsers(dest="command", required=True)

    load = sub.add_parser("load", help="Load an ELF image and start it")
    load.add_argument("file", type=Path)
    load.add_argument("symbol", help="Entry symbol name")
    load.add_argument("identifier", help="Task identifier (8 bytes on the wire)")

    kill = sub.add_parser("kill", help="Stop a task")
    kill.add_argument("identifier")

    relaunch = sub.add_parser("relaunch", help="Restart a task")
    relaunch.add_argument("identifier")

    sub.add_parser("list", help="List tasks")
    sub.add_parser("log", help="Attach to device output only")

    pack = sub.add_parser("pack", help="Write a load payload to the dump file and exit (with --flash but no --device, only the dump is written)")
    pack.add_argument("file", type=Path)
    pack.add_argument("symbol")
    pack.add_argument("--flash", action="store_true", help="Stream the dump to --device afterwards")

    symbols = sub.add_parser("symbols", help="Print an image's symbol table")
    symbols.add_argument("file", type=Path)

    inspect = sub.add_parser("inspect", help="Decode a dump file")
    inspect.add_argument("path", nargs="?", type=Path)

    return parser


def build_command(args: argparse.Namespace) -> AnyCommand:
    if args.command == "load":
        return LoadCommand(image_path=args.file, symbol_name=args.symbol, task_id=args.identifier)
    if args.command == "kill":
        return KillCommand(task_id=args.identifier)
    if args.command == "relaunch":
        return RelaunchCommand(task_id=args.identifier)
    if args.command == "list":
        return ListCommand()
    if args.command == "log":
        return LogAttachCommand()
    raise ValueError(f"{args.command} is not an interactive command")


def load_settings(args: argparse.Namespace) -> LoaderSettings:
    settings = LoaderSettings.from_file(args.config) if args.config else LoaderSettings()
    return settings.with_overrides(
        device=args.device,
        baud_rate=args.baudrate,
        dump_path=args.dump,
        warmup_delay=args.warmup,
    )


def report_ports() -> None:
    ports = SerialTransport.available_ports()
    if ports:
        log_info("Available serial ports", {"ports": ports})
    else:
        log_info("No serial ports found")


def run_interactive(args: argparse.Namespace, settings: LoaderSettings) -> int:
    if not settings.device:
        log_critical("No device given (use --device or the config file)")
        report_ports()
        return 2

    command = build_command(args)
    session = LinkSession(
        SerialTransport(settings.serial_config()),
        DumpStore(settings.dump_path),
    )
    frame = session.prepare(command)
    try:
        session.open(settings.device)
        session.install_signal_handlers()
        result = session.run(command, frame=frame, linger=args.linger)
    finally:
        session.close()
    return 0 if result.success else 1


def run_pack(args: argparse.Namespace, settings: LoaderSettings) -> int:
    image = read_image(args.file)
    info = describe_image(image.data)
    log_elf(f"Loaded {image.path}", {"size": image.size, **info.to_dict()})
    address = resolve_symbol(image.data, args.symbol)

    store = DumpStore(settings.dump_path)
    if not store.save(encode_legacy_dump(image.data, address)):
        return 1

    if not args.flash:
        return 0
    if not settings.device:
        log_warn("Can't flash: no device provided, dump written only")
        report_ports()
        return 0

    content = store.load()
    transport = SerialTransport(settings.serial_config())
    transport.connect(settings.device)
    try:
        log_info(f"Preparing to write {len(content)} bytes")
        written = transport.write_frame(content)
    finally:
        transport.disconnect()
    if written != len(content):
        log_critical(f"Flash incomplete: {written}/{len(content)} bytes")
        return 1
    log_ok(f"Flashed {written} bytes")
    return 0


def run_symbols(args: argparse.Namespace) -> int:
    image = read_image(args.file)
    for name, value in iter_symbols(image.data):
        if name:
            print(f"0x{value:016X}  {name}")
    return 0


def run_inspect(args: argparse.Namespace, settings: LoaderSettings) -> int:
    store = DumpStore(args.path or settings.dump_path)
    try:
        data = store.load()
    except OSError as e:
        log_critical(f"Cannot read {store.file_path}: {e}")
        return 1
    try:
        decoded = decode_frame(data)
    except FrameDecodeError:
        decoded = decode_legacy_dump(data)
    log_info(f"{store.file_path}", decoded.describe())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args)
    except (OSError, ValidationError) as e:
        log_critical(f"Invalid configuration: {e}")
        return 2

    try:
        if args.command in INTERACTIVE_COMMANDS:
            return run_interactive(args, settings)
        if args.command == "pack":
            return run_pack(args, settings)
        if args.command == "symbols":
            return run_symbols(args)
        return run_inspect(args, settings)
    except (TaskLinkError, ValueError) as e:
        log_critical(str(e))
        return 1
    except KeyboardInterrupt:
        log_info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
