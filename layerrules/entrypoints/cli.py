"""Command-line front end for inspecting layer rules in a net description."""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List

from layerrules.data import NetState

from .loader import (
    FilterResult,
    NetDefinition,
    evaluate_net,
    load_net,
    resolve_state,
    validate_net,
)
from .utils import format_rules, phase_from_value


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


_DEF_PAD = 12


def _print_filter_table(result: FilterResult) -> None:
    headers = ["layer", "type", "active", "include", "exclude"]
    row_fmt = "{layer:>12} {layer_type:>12} {active:>12} {include:>12} {exclude:>12}"
    print(" ".join(h.rjust(_DEF_PAD) for h in headers))
    for decision in result.decisions:
        layer = decision.layer
        print(
            row_fmt.format(
                layer=layer.name,
                layer_type=layer.type,
                active="yes" if decision.active else "no",
                include=format_rules(layer.include),
                exclude=format_rules(layer.exclude),
            )
        )


def _print_state(state: NetState) -> None:
    stages = ",".join(sorted(state.stages)) or "-"
    print(f"State: phase={state.phase.name} level={state.level} stages={stages}")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _load(args: argparse.Namespace) -> tuple[NetDefinition, NetState]:
    net = load_net(args.net)
    phase = phase_from_value(args.phase) if args.phase else None
    state = resolve_state(net.state, phase=phase, level=args.level, stages=args.stage)
    print(f"Net: {net.name}")
    _print_state(state)
    return net, state


def _dump(args: argparse.Namespace, payload: Dict) -> None:
    if args.output:
        path = Path(args.output)
        path.write_text(str(payload))
        print(f"\nSaved raw result to {path}")


def _run_filter(args: argparse.Namespace) -> int:
    net, state = _load(args)
    result = evaluate_net(net, state)
    _print_filter_table(result)
    print(f"\nActive layers: {len(result.active_names)}/{len(result.decisions)}")
    _dump(args, result.to_dict())
    return 0


def _run_validate(args: argparse.Namespace) -> int:
    net, state = _load(args)
    report = validate_net(net, state)
    for name, layers in sorted(report.shared.items()):
        print(f"  shared '{name}': {', '.join(layers)}")
    if report.ok:
        print("OK")
    else:
        for error in report.errors:
            print(f"ERROR: {error}")
    _dump(args, report.to_dict())
    return 0 if report.ok else 1


# ---------------------------------------------------------------------------
# Command registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    help_text: str
    handler: Callable[[argparse.Namespace], int]


COMMANDS: Dict[str, CommandDefinition] = {
    "filter": CommandDefinition(
        name="filter",
        help_text="Show which layers are active under a net state",
        handler=_run_filter,
    ),
    "validate": CommandDefinition(
        name="validate",
        help_text="Check sequence alignment and shared param shapes",
        handler=_run_validate,
    ),
}


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def _attach_shared_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("net", type=str, help="Path to net YAML")
    parser.add_argument("--phase", type=str, choices=["TRAIN", "TEST", "train", "test"], help="Override net phase")
    parser.add_argument("--level", type=int, help="Override net level")
    parser.add_argument("--stage", action="append", help="Active stage (repeatable); replaces the net's stages")
    parser.add_argument("--output", type=str, help="Optional path to dump raw result dict")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="layerrules CLI")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    command_subparsers = parser.add_subparsers(dest="command", required=True)

    for key, definition in COMMANDS.items():
        command_parser = command_subparsers.add_parser(key, help=definition.help_text)
        _attach_shared_arguments(command_parser)
        command_parser.set_defaults(handler=definition.handler)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.error("No command handler registered")
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
