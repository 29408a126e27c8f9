"""Command line tools for generating and exporting Fermi surfaces."""
import os
import sys
import warnings
from collections import defaultdict
from glob import glob

import click
from click import option

from wienfermi.defaults import GRID_SIZE, KTOL

mode_type = click.Choice(["relation", "symmetry"], case_sensitive=False)
mesh_formats = (".obj", ".stl", ".ply", ".glb")

# define shared Fermi surface generation options
_generation_options = [
    option(
        "-d",
        "--directory",
        default=".",
        help="WIEN2k case directory",
        show_default=True,
    ),
    option("-c", "--case", "case_name", help="case name (default: from *.struct)"),
    option(
        "-m",
        "--mode",
        default="relation",
        type=mode_type,
        help="use the k-mesh relation table or expand k-points by symmetry",
        show_default=True,
    ),
    option(
        "-g",
        "--grid-size",
        default=GRID_SIZE,
        help="interpolated grid size (symmetry mode only)",
        show_default=True,
    ),
    option(
        "--tol",
        default=KTOL,
        help="k-point equivalence tolerance (symmetry mode only)",
        show_default=True,
    ),
    option(
        "--spin-orbit/--no-spin-orbit",
        default=True,
        help="read case.energyso rather than case.energy (symmetry mode only)",
        show_default=True,
    ),
    option(
        "-b",
        "--band",
        "bands",
        multiple=True,
        type=int,
        help="band to include, can be repeated (default: first crossing bands)",
    ),
]


def generation_options(func):
    for opt in reversed(_generation_options):
        func = opt(func)
    return func


@click.group(
    context_settings=dict(help_option_names=["-h", "--help"], max_content_width=120)
)
def cli():
    """wienfermi generates Fermi surfaces from WIEN2k calculations."""

    def _warning(message, *_, **__):
        click.echo("WARNING: {}\n".format(message))

    warnings.showwarning = _warning

    warnings.filterwarnings("ignore", category=UserWarning, module="pymatgen")


@cli.command()
@generation_options
@option(
    "--precision",
    default=4,
    help="number of decimal places in output",
    show_default=True,
)
def info(**kwargs):
    """Calculate information about the Fermi surface."""
    from tabulate import tabulate

    fs = _get_fermi_surface(**_generation_kwargs(kwargs))
    precision = kwargs["precision"]

    def bands_str(bands):
        return " ".join(str(b + 1) for b in bands) if bands else "none"

    click.echo("Fermi Surface Summary\n=====================\n")
    click.echo(f"  Case: {fs.case_name}")
    click.echo(f"  Fermi energy: {fs.fermi_energy:.{precision}f} eV")
    click.echo(f"  # bands: {fs.n_bands}")
    click.echo(f"  # irreducible k-points: {fs.n_irreducible}")
    click.echo(f"  # k-points: {fs.n_kpoints}")
    click.echo("  Grid: {} x {} x {}".format(*fs.grid_size))
    click.echo(f"  Crossing bands: {bands_str(fs.crossing_bands)}")

    if not fs.isosurfaces:
        click.echo("\nNo bands cross the Fermi level.")
        return

    title = "Isosurfaces"
    click.echo(f"\n{title}\n{len(title) * '~'}\n")

    colors = fs.band_colors
    table = defaultdict(list)
    for band_idx, isosurface in fs.isosurfaces.items():
        table["Band"].append(band_idx + 1)
        table["Color"].append(colors[band_idx])
        table["Vertices"].append(isosurface.vertex_count)
        table["Faces"].append(isosurface.n_faces)
        table["Area"].append(isosurface.get_area(fs.reciprocal_lattice))

    # format table
    table_str = tabulate(
        table,
        headers=table.keys(),
        numalign="right",
        stralign="center",
        floatfmt=f"#.{precision}g",
    )

    # indent table 2 spaces in
    table_str = "  " + table_str.replace("\n", "\n  ")
    click.echo(table_str)


@cli.command()
@generation_options
@click.argument("output_filename")
def export(output_filename, **kwargs):
    """Export the Fermi surface to a json or mesh file.

    Json files (optionally gzipped) contain the whole Fermi surface. Mesh formats
    (obj, stl, ply, glb) are written as one file per band.
    """
    lower = output_filename.lower()
    is_json = lower.endswith(".json") or lower.endswith(".json.gz")
    stem, ext = os.path.splitext(output_filename)

    if not is_json and ext.lower() not in mesh_formats:
        click.echo(
            "ERROR: Unsupported output format, use one of: .json, .json.gz, "
            + ", ".join(mesh_formats)
        )
        sys.exit(1)

    fs = _get_fermi_surface(**_generation_kwargs(kwargs))

    if is_json:
        from monty.serialization import dumpfn

        click.echo("Saving Fermi surface to {}".format(output_filename))
        dumpfn(fs, output_filename)
        return

    if not fs.isosurfaces:
        click.echo("No bands cross the Fermi level, nothing to export.")
        return

    for band_idx, isosurface in fs.isosurfaces.items():
        if isosurface.is_empty:
            warnings.warn(f"Band {band_idx + 1} has an empty isosurface, skipping.")
            continue

        filename = f"{stem}_band{band_idx + 1}{ext}"
        click.echo("Saving band {} to {}".format(band_idx + 1, filename))
        isosurface.to_trimesh(fs.reciprocal_lattice).export(filename)


def _generation_kwargs(kwargs):
    keys = ("directory", "case_name", "mode", "grid_size", "tol", "spin_orbit")
    generation_kwargs = {k: kwargs[k] for k in keys}
    generation_kwargs["bands"] = [b - 1 for b in kwargs["bands"]] or None
    return generation_kwargs


def find_case_name(directory):
    """Get the case name from the single structure file in a directory."""
    from wienfermi.io import extract_case_name

    struct_files = sorted(glob(os.path.join(directory, "*.struct")))
    if len(struct_files) != 1:
        click.echo(
            "ERROR: Expected one *.struct file in {}, found {}, use --case to set "
            "the case name".format(directory, len(struct_files))
        )
        sys.exit(1)

    return extract_case_name(struct_files[0])


def find_case_file(directory, case_name, extension):
    """Search for a WIEN2k file, which may be gzipped.

    Will look for case.extension or case.extension.gz files.
    """
    filename = os.path.join(directory, f"{case_name}.{extension}")
    for file in [filename, filename + ".gz"]:
        if os.path.exists(file):
            return file

    click.echo("ERROR: {} not found".format(filename))
    sys.exit(1)


def _get_fermi_surface(
    directory, case_name, mode, grid_size, tol, spin_orbit, bands
):
    """Common helper method to get Fermi surface"""
    from wienfermi.exceptions import ParseError
    from wienfermi.io import load_irreducible_data, load_relation_data, read_text
    from wienfermi.surface import FermiSurface

    if not case_name:
        case_name = find_case_name(directory)

    def read(extension):
        return read_text(find_case_file(directory, case_name, extension))

    try:
        if mode == "relation":
            data = load_relation_data(
                read("output1"), read("output2"), read("outputkgen"), case_name
            )
            return FermiSurface.from_relation_data(data, enabled_bands=bands)

        energy_extension = "energyso" if spin_orbit else "energy"
        data = load_irreducible_data(
            read("klist"),
            read(energy_extension),
            read("scf"),
            read("struct"),
            case_name=case_name,
            spin_orbit=spin_orbit,
        )
        return FermiSurface.from_irreducible_data(
            data, grid_size=grid_size, tol=tol, enabled_bands=bands
        )
    except ParseError as exc:
        click.echo("ERROR: {}".format(exc))
        sys.exit(1)
