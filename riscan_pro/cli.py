"""
Command-line interface for inspecting RiSCAN Pro project geometry.

Usage:
    riscan-pro info project.yaml
    riscan-pro origin project.yaml SP01
    riscan-pro project project.yaml SP01 X Y Z
"""

import argparse
import logging
import sys
from typing import List, Optional

from .errors import RiscanError, UnknownScanPositionError
from .project import Project


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='riscan-pro',
        description='Inspect RiSCAN Pro project geometry and project points into photographs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # List scan positions, scans and images
    riscan-pro info project.yaml

    # Scanner position of SP01 in the global frame
    riscan-pro origin project.yaml SP01

    # Pixel of every SP01 image that depicts a global point
    riscan-pro project project.yaml SP01 -139.317 -239.330 -10.493
'''
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    info = subparsers.add_parser('info', help='Summarize a project')
    info.add_argument('config', type=str, help='Path to YAML project configuration')

    origin = subparsers.add_parser('origin', help='Global position of a scanner')
    origin.add_argument('config', type=str, help='Path to YAML project configuration')
    origin.add_argument('scan_position', type=str, help='Scan position name')

    project = subparsers.add_parser('project', help='Project a global point into images')
    project.add_argument('config', type=str, help='Path to YAML project configuration')
    project.add_argument('scan_position', type=str, help='Scan position name')
    project.add_argument('x', type=float)
    project.add_argument('y', type=float)
    project.add_argument('z', type=float)

    return parser


def _info(project: Project) -> None:
    print(f"Project: {project.name or '(unnamed)'}")
    if project.camera is not None:
        camera = project.camera
        print(f"Camera: {camera.name or '(unnamed)'} "
              f"{camera.image_width}x{camera.image_height} "
              f"fx={camera.fx:.3f} fy={camera.fy:.3f}")
    for scan_position in project.scan_positions():
        x, y, z = scan_position.origin()
        print(f"{scan_position.name}: origin ({x:.3f}, {y:.3f}, {z:.3f})")
        for scan in scan_position.scans():
            print(f"  scan  {scan.name}")
        for image in scan_position.images():
            print(f"  image {image.name}")


def _origin(project: Project, name: str) -> None:
    x, y, z = project.scan_position_origin(name)
    print(f"{x:.6f} {y:.6f} {z:.6f}")


def _project(project: Project, name: str, point: List[float]) -> bool:
    scan_position = project.scan_position(name)
    if scan_position is None:
        raise UnknownScanPositionError(name)

    hit = None
    for image in scan_position.images():
        pixel = project.project_point(point, name, image.name)
        if pixel is None:
            print(f"{image.name}: no projection")
        else:
            print(f"{image.name}: u={pixel[0]:.3f} v={pixel[1]:.3f}")
            if hit is None:
                hit = image.name

    if hit is None:
        print("No image covers this point")
        return False
    print(f"First hit: {hit}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        project = Project.from_yaml(args.config)

        if args.command == 'info':
            _info(project)
        elif args.command == 'origin':
            _origin(project, args.scan_position)
        elif args.command == 'project':
            if not _project(project, args.scan_position, [args.x, args.y, args.z]):
                return 2
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except UnknownScanPositionError as e:
        logger.error(str(e))
        return 1
    except RiscanError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
