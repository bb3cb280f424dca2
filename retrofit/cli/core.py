"""
cli/core.py - Command line interface

    retrofit create <id> --building '{"units_res": 40, ...}'
    retrofit run-all <id>
    retrofit run <id> energy --set ptac_units=18 [--no-cascade]
    retrofit status <id>
    retrofit plan [service] [--no-cascade]
    retrofit reset <id> [--from service]

Records are kept as JSON documents under the configured data directory.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
import argparse
import json
import logging

from retrofit.bootstrap.config import configure_logging, load_config
from retrofit.core.enums import ServiceName
from retrofit.core.record_store import JsonFileRecordStore
from retrofit.engine import CalculationEngine
from retrofit.errors import RetrofitError

logger = logging.getLogger("cli")


class OutputFormat(Enum):
    """Output format options."""
    TEXT = "text"
    JSON = "json"


@dataclass
class CLIContext:
    """Context for CLI operations."""
    engine: CalculationEngine
    output_format: OutputFormat = OutputFormat.JSON


@dataclass
class CommandResult:
    """Result of a CLI command execution."""

    success: bool = True
    message: str = ""
    data: Any = None
    error: Optional[str] = None
    exit_code: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "error": self.error,
        }


def parse_assignment(text: str) -> Dict[str, Any]:
    """
    Parse "field=value" into a (possibly nested) override dict.

    Values are read as JSON when they parse, otherwise kept as strings;
    dotted field names nest: "unit_breakdown.one_bed=10".
    """
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"Expected field=value, got {text!r}")
    path, raw = text.split("=", 1)
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw

    result: Dict[str, Any] = {}
    cursor = result
    parts = path.strip().split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
    return result


def merge_assignments(assignments: List[Dict[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for item in assignments:
        for key, value in item.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value
    return merged


# =============================================================================
# COMMANDS
# =============================================================================

class CLICommand(ABC):
    """Base class for CLI commands."""

    name: str = "command"
    description: str = "Base command"

    @abstractmethod
    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        pass

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        pass


def cascade_result(result) -> CommandResult:
    data = result.to_dict()
    if result.success:
        return CommandResult(
            message=f"Cascade {result.cascade_id} {result.status.value}: "
                    f"{', '.join(result.completed_services)}",
            data=data,
        )
    return CommandResult(
        success=False,
        message=f"Cascade {result.cascade_id} {result.status.value}",
        data=data,
        error=str(result.error),
        exit_code=1,
    )


class CreateCommand(CLICommand):
    name = "create"
    description = "Create a calculation from a building profile"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("calculation_id")
        parser.add_argument("--building", required=True, help="Building profile as JSON, or @path to a JSON file")

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        source = args.building
        if source.startswith("@"):
            with open(source[1:]) as f:
                building = json.load(f)
        else:
            building = json.loads(source)
        record = ctx.engine.create_calculation(building, calculation_id=args.calculation_id)
        return CommandResult(message=f"Created calculation {record.calculation_id}", data=record.to_dict())


class RunAllCommand(CLICommand):
    name = "run-all"
    description = "Run every service in dependency order"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("calculation_id")
        parser.add_argument("--actor", default=None)

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        return cascade_result(ctx.engine.execute_all(args.calculation_id, actor=args.actor))


class RunCommand(CLICommand):
    name = "run"
    description = "Run one service with optional overrides, cascading downstream"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("calculation_id")
        parser.add_argument("service", help=f"One of: {', '.join(ServiceName.values())}")
        parser.add_argument(
            "--set", dest="assignments", action="append", default=[],
            type=parse_assignment, metavar="FIELD=VALUE",
            help="Override a field (repeatable)",
        )
        parser.add_argument("--no-cascade", dest="cascade", action="store_false")
        parser.add_argument("--actor", default=None)
        parser.add_argument("--reason", default=None)

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        overrides = merge_assignments(args.assignments) or None
        result = ctx.engine.execute_service(
            args.calculation_id,
            args.service,
            overrides=overrides,
            cascade=args.cascade,
            actor=args.actor,
            reason=args.reason,
        )
        return cascade_result(result)


class StatusCommand(CLICommand):
    name = "status"
    description = "Show per-service version stamps"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("calculation_id")

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        status = ctx.engine.get_status(args.calculation_id)
        return CommandResult(
            message=f"Calculation {args.calculation_id}",
            data=status.to_dict() if ctx.output_format == OutputFormat.JSON else status.service_versions,
        )


class ShowCommand(CLICommand):
    name = "show"
    description = "Print the full calculation record"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("calculation_id")

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        record = ctx.engine.get_record(args.calculation_id)
        return CommandResult(message=f"Calculation {args.calculation_id}", data=record.to_dict())


class PlanCommand(CLICommand):
    name = "plan"
    description = "Show the services a run would execute"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("service", nargs="?", default=None)
        parser.add_argument("--no-cascade", dest="cascade", action="store_false")

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        plan = ctx.engine.plan(args.service, cascade=args.cascade)
        return CommandResult(message=" -> ".join(plan), data=plan.to_dict())


class ResetCommand(CLICommand):
    name = "reset"
    description = "Clear version stamps from a service downstream (or all)"

    def configure_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("calculation_id")
        parser.add_argument("--from", dest="from_service", default=None)

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        cleared = ctx.engine.reset(args.calculation_id, from_service=args.from_service)
        return CommandResult(message=f"Reset {len(cleared)} service(s)", data={"reset": cleared})


class ServicesCommand(CLICommand):
    name = "services"
    description = "Describe the registered services"

    def execute(self, ctx: CLIContext, args: argparse.Namespace) -> CommandResult:
        return CommandResult(message="Registered services", data=ctx.engine.registry.describe())


COMMANDS: List[CLICommand] = [
    CreateCommand(),
    RunAllCommand(),
    RunCommand(),
    StatusCommand(),
    ShowCommand(),
    PlanCommand(),
    ResetCommand(),
    ServicesCommand(),
]


# =============================================================================
# OUTPUT
# =============================================================================

def format_output(result: CommandResult, format: OutputFormat) -> str:
    """Format command result for display."""
    if format == OutputFormat.JSON:
        return json.dumps(result.to_dict(), indent=2, default=str)

    if not result.success:
        return f"{result.message}\nError: {result.error}"

    output = result.message
    if isinstance(result.data, dict) and result.data and not isinstance(next(iter(result.data.values())), (dict, list)):
        for k, v in result.data.items():
            output += f"\n  {k}: {v}"
    return output


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PTAC to PTHP retrofit calculation engine",
        prog="retrofit",
    )
    parser.add_argument("-c", "--config", help="Path to configuration file", default=None)
    parser.add_argument("--data-dir", help="Directory holding calculation records", default=None)
    parser.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.JSON.value,
        help="Output format",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    for command in COMMANDS:
        sub = subparsers.add_parser(command.name, help=command.description)
        command.configure_parser(sub)
        sub.set_defaults(handler=command)
    return parser


def cli_main(args: list = None) -> int:
    """
    CLI entry point.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parsed = build_parser().parse_args(args)

    config = load_config(parsed.config)
    if parsed.verbose:
        config.logging.level = "DEBUG"
    elif parsed.log_level:
        config.logging.level = parsed.log_level
    configure_logging(config.logging)

    store = JsonFileRecordStore(parsed.data_dir or config.storage.data_dir)
    ctx = CLIContext(
        engine=CalculationEngine(store=store, config=config.engine),
        output_format=OutputFormat(parsed.format),
    )

    try:
        result = parsed.handler.execute(ctx, parsed)
    except RetrofitError as e:
        result = CommandResult(success=False, message=type(e).__name__, data=e.to_dict(), error=str(e), exit_code=1)
    except (OSError, ValueError) as e:
        result = CommandResult(success=False, message="Invalid input", error=str(e), exit_code=1)

    print(format_output(result, ctx.output_format))
    return result.exit_code
