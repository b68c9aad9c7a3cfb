"""Package a distribution directory into the layout the updater downloads from.

The output directory receives ``<version>/<name> <version>.zip`` with the
directory's contents at the archive root, plus the matching
``<name> <version>.xml`` manifest holding the archive's SHA-256 checksum.
"""

from __future__ import annotations

import argparse
import shutil
import sys
import xml.etree.ElementTree as ET
from pathlib import Path


def ensure_project_root_on_sys_path() -> Path:
    """Ensure the project root is importable when the script runs standalone."""

    project_root = Path(__file__).resolve().parent.parent
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)
    return project_root


ensure_project_root_on_sys_path()

from app.version import get_app_version
from services.update.constants import MANIFEST_CHECKSUM_ELEMENT, MANIFEST_EXTENSION
from services.update.hashing import calculate_sha256


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("name", help="Application name used in the package file names.")
    parser.add_argument(
        "--dist-dir",
        required=True,
        type=Path,
        help="Directory whose contents make up the installed application.",
    )
    parser.add_argument(
        "--output-dir",
        default=Path("publish"),
        type=Path,
        help="Directory that is served as the application's update address.",
    )
    parser.add_argument(
        "--version",
        default=None,
        help="Version to publish (defaults to the updater library version).",
    )
    return parser.parse_args()


def write_manifest(path: Path, checksum: str) -> None:
    root = ET.Element("Update")
    ET.SubElement(root, MANIFEST_CHECKSUM_ELEMENT).text = checksum
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)


def main() -> int:
    args = parse_args()
    dist_dir = args.dist_dir
    if not dist_dir.is_dir():
        raise SystemExit(f"Distribution directory not found: {dist_dir}")

    version = args.version or get_app_version()
    basename = f"{args.name} {version}"
    version_dir = args.output_dir / version
    version_dir.mkdir(parents=True, exist_ok=True)

    archive = Path(
        shutil.make_archive(str(version_dir / basename), "zip", root_dir=dist_dir)
    )
    checksum = calculate_sha256(archive)
    write_manifest(version_dir / f"{basename}{MANIFEST_EXTENSION}", checksum)
    print(f"Published {archive} ({checksum})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
