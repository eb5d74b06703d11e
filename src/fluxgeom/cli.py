"""Click CLI entry point for fluxgeom."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from fluxgeom import __version__
from fluxgeom.brep import HttpBrepProvider
from fluxgeom.builder import BuildOptions, SceneBuilder
from fluxgeom.errors import FluxGeomError
from fluxgeom.exporter import export_glb
from fluxgeom.parser import load_document
from fluxgeom.results import BuildResult
from fluxgeom.scene import SceneNode
from fluxgeom.warning_policy import WarningPolicy, describe_codes, parse_code_list


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    """Parse CLI warning options into a WarningPolicy, or None if unset."""
    if warn_as_error is None and suppress_warning is None:
        return None
    try:
        wae = parse_code_list(warn_as_error) if warn_as_error else frozenset()
        sup = parse_code_list(suppress_warning) if suppress_warning else frozenset()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    return WarningPolicy(warn_as_error=wae, suppress=sup)


def _default_output(input_file: Path) -> Path:
    stem = input_file.name
    for suffix in [".flux.json", ".json", ".yaml", ".yml"]:
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    return input_file.parent / f"{stem}.glb"


def _convert(
    input_file: Path,
    *,
    merge: bool,
    warning_policy: WarningPolicy | None,
    tessellation_url: str | None = None,
    token: str | None = None,
) -> BuildResult:
    provider = None
    if tessellation_url is not None:
        provider = HttpBrepProvider(tessellation_url, token)
    builder = SceneBuilder(
        provider, options=BuildOptions(merge_models=merge, warning_policy=warning_policy)
    )
    return builder.convert_sync(load_document(input_file))


def _render_tree(info: dict[str, Any], depth: int = 0) -> list[str]:
    label = info["type"]
    if info.get("name"):
        label += f" {info['name']!r}"
    if "geometry" in info:
        label += f" [{info['geometry']}, {info['vertices']} vertices]"
    if info.get("visible") is False:
        label += " (hidden)"
    lines = ["  " * depth + label]
    for child in info.get("children", []):
        lines.extend(_render_tree(child, depth + 1))
    return lines


def _inspection_payload(result: BuildResult) -> dict[str, Any]:
    root: SceneNode | None = result.get_object()
    payload: dict[str, Any] = {
        "tree": None if root is None else root.describe(),
        "vertices": 0 if root is None else root.count_vertices(),
        "errors": result.status.to_dict(),
        "objects": sorted(result.objects),
    }
    bounds = result.bounding_box()
    if bounds is not None:
        payload["bounding_box"] = {"min": bounds[0].tolist(), "max": bounds[1].tolist()}
    return payload


def render_text(payload: dict[str, Any]) -> str:
    lines: list[str] = []
    if payload["tree"] is None:
        lines.append("(empty scene)")
    else:
        lines.extend(_render_tree(payload["tree"]))
    lines.append(f"vertices: {payload['vertices']}")
    if "bounding_box" in payload:
        box = payload["bounding_box"]
        lines.append(
            "bounds: "
            + " .. ".join("(" + ", ".join(f"{v:.4g}" for v in box[k]) + ")" for k in ("min", "max"))
        )
    for kind, messages in payload["errors"].items():
        lines.append(f"error: {kind} ({', '.join(messages)})")
    return "\n".join(lines) + "\n"


_shared_options = [
    click.option(
        "--warn-as-error",
        "warn_as_error",
        type=str,
        default=None,
        help="Comma-separated W-codes to treat as errors (e.g. W01,W02). Codes: " + describe_codes() + ".",
    ),
    click.option(
        "--suppress-warning",
        "suppress_warning",
        type=str,
        default=None,
        help="Comma-separated W-codes to suppress (e.g. W03).",
    ),
    click.option(
        "--tessellation-url",
        type=str,
        default=None,
        help="Brep tessellation service endpoint.",
    ),
    click.option(
        "--token",
        type=str,
        default=None,
        help="Token sent to the tessellation service.",
    ),
]


def _with_shared_options(func):
    for option in reversed(_shared_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="fluxgeom")
def main() -> None:
    """fluxgeom: convert Flux JSON geometry into meshes, curves and points."""


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output GLB file path. Defaults to input name with .glb extension.",
)
@click.option(
    "--no-merge",
    is_flag=True,
    default=False,
    help="Keep every primitive as its own node.",
)
@_with_shared_options
def build(
    input_file: Path,
    output: Path | None,
    no_merge: bool = False,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
    tessellation_url: str | None = None,
    token: str | None = None,
) -> None:
    """Build a Flux JSON document and export it to GLB."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)
    if output is None:
        output = _default_output(input_file)

    try:
        result = _convert(
            input_file,
            merge=not no_merge,
            warning_policy=warning_policy,
            tessellation_url=tessellation_url,
            token=token,
        )
        export_glb(result.get_object(), output)
    except FluxGeomError as e:
        raise click.ClickException(str(e))

    if result.status.has_errors:
        click.echo(f"Invalid primitives: {result.get_error_summary()}", err=True)
    click.echo(f"Built: {output}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@click.option(
    "--no-merge",
    is_flag=True,
    default=False,
    help="Keep every primitive as its own node.",
)
@_with_shared_options
def inspect(
    input_file: Path,
    output_format: str = "text",
    no_merge: bool = False,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
    tessellation_url: str | None = None,
    token: str | None = None,
) -> None:
    """Show the scene tree and error report without exporting."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)
    try:
        result = _convert(
            input_file,
            merge=not no_merge,
            warning_policy=warning_policy,
            tessellation_url=tessellation_url,
            token=token,
        )
    except FluxGeomError as e:
        raise click.ClickException(str(e))

    payload = _inspection_payload(result)
    if output_format == "json":
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        click.echo(render_text(payload), nl=False)
