import argparse
from typing import List, Optional

from yolact_toolbox.__version__ import version


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments with 'command' field indicating selected subcommand.
    """

    parser = argparse.ArgumentParser(description="YOLACT Toolbox CLI")

    parser.add_argument(
        "--version",
        "-v",
        "-V",
        action="version",
        version=f"{version}",
    )

    # Add dest parameter to track which subcommand was selected
    subparsers = parser.add_subparsers(dest="command", help="subcommands")

    # Render subcommand parser
    render_parser = subparsers.add_parser(
        "render", help="postprocess saved network outputs and draw them"
    )

    render_parser.add_argument(
        "--outputs",
        "-o",
        type=str,
        required=True,
        help="Path to an .npz file with the raw network outputs, keyed by tensor name",
    )
    render_parser.add_argument(
        "--image",
        "-i",
        type=str,
        required=True,
        help="Path to the input image",
    )
    render_parser.add_argument(
        "--output",
        "-sp",
        type=str,
        default="output.jpg",
        help="Path to save the rendered image",
    )
    render_parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to a YAML or JSON postprocessing configuration file",
    )
    render_parser.add_argument(
        "--score-threshold",
        "--score_threshold",
        "-st",
        type=float,
        default=0.5,
        help="Minimum score of drawn detections",
    )
    render_parser.add_argument(
        "--batch-index",
        "--batch_index",
        "-b",
        type=int,
        default=0,
        help="Image of the output batch to process",
    )
    render_parser.add_argument(
        "--json",
        type=str,
        help="Path to save the detections as JSON",
    )
    render_parser.add_argument(
        "--dump-prototypes",
        "--dump_prototypes",
        type=str,
        help="Directory to save color-mapped prototype channels",
    )
    render_parser.add_argument(
        "--dump-prototypes-csv",
        "--dump_prototypes_csv",
        type=str,
        help="Directory to save each prototype channel as a CSV table",
    )
    render_parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )

    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    print(f"Selected command: {args.command}")
    print("All arguments:", vars(args))
