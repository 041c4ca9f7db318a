"""
Command-line interface for live-wire tracing.

Provides commands for replaying trace scripts, exporting cost maps and
writing a default configuration.
"""

import argparse
import sys

from livewire.config import load_config, save_default_config
from livewire.tracer import configure_tracer, get_tracer


def _add_trace_arguments(parser):
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )


def build_parser():
    parser = argparse.ArgumentParser(
        prog="livewire",
        description="Live-wire boundary tracing: edge-snapping selection from seed clicks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Replay a trace script on an image")
    run_parser.add_argument(
        "--image", "-i",
        required=True,
        help="Input image file",
    )
    run_parser.add_argument(
        "--script", "-s",
        required=True,
        help="JSON trace script with click/move/wait/reset events",
    )
    run_parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output directory",
    )
    run_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    run_parser.add_argument(
        "--debug",
        action="store_true",
        help="Write intermediate feature maps",
    )
    _add_trace_arguments(run_parser)
    run_parser.set_defaults(handler=handle_run)

    cost_parser = subparsers.add_parser("cost-map", help="Export the visualized cost field")
    cost_parser.add_argument(
        "--image", "-i",
        required=True,
        help="Input image file",
    )
    cost_parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output PNG path",
    )
    cost_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    _add_trace_arguments(cost_parser)
    cost_parser.set_defaults(handler=handle_cost_map)

    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="livewire_config.yaml",
        help="Output path for config file",
    )
    init_parser.set_defaults(handler=handle_init_config)

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.handler(args)


def _configure_from_args(args):
    """Command-line trace flags win over the config file's tracing section."""
    if args.trace:
        configure_tracer(
            enabled=True,
            level=args.trace_level,
            file_path=args.trace_file,
            json_output=args.trace_json,
        )
    elif args.config:
        get_tracer().apply(load_config(args.config).tracing)
    else:
        configure_tracer(enabled=False)
    return get_tracer()


def handle_run(args):
    """Handle the run command."""
    tracer = _configure_from_args(args)

    try:
        from livewire.pipeline import run_trace

        with tracer.span("cli_run", module="cli"):
            document = run_trace(
                image_path=args.image,
                script_path=args.script,
                out_dir=args.out,
                config_path=args.config,
                debug=args.debug,
            )

        boundary = document.boundary
        print("\nTrace replayed.")
        print(f"  Events processed: {document.events_processed}")
        print(f"  Segments frozen: {len(boundary.segments)}")
        print(f"  Boundary closed: {boundary.closed}")
        if document.selection_bbox:
            print(f"  Selection bbox: {document.selection_bbox}")
        print(f"\nOutputs saved to: {args.out}/")
        print("  - trace.json")
        print("  - overlay.png")
        if boundary.closed:
            print("  - mask.png")
        if document.selection_bbox:
            print("  - cutout.png")

        return 0 if boundary.closed else 2

    except Exception as e:
        tracer.event(f"Trace failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_cost_map(args):
    """Handle the cost-map command."""
    tracer = _configure_from_args(args)

    try:
        from livewire.pipeline import export_cost_map

        with tracer.span("cli_cost_map", module="cli"):
            visual = export_cost_map(args.image, args.out, config_path=args.config)

        print(f"Cost map ({visual.shape[1]}x{visual.shape[0]}) saved to: {args.out}")
        return 0

    except Exception as e:
        tracer.event(f"Cost map failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
