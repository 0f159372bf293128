#!/usr/bin/env python3
"""
Voxel Tools Demo Script

This script demonstrates both tool pipelines by:
1. Creating a sphere in every supported pixel type (2D and 3D)
2. Comparing a binary and an antialiased sphere boundary
3. Equalizing a synthetic image, with and without a mask
4. Showing how an unsupported configuration is reported

Run with: python examples/demo.py [output_dir]
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_tools import (
    CREATE_SPHERE,
    EqualizeParameters,
    Grid,
    SphereParameters,
    create_sphere,
    histogram_equalize_image,
    read_grid,
    write_grid,
)


def demo_dispatch_matrix(output_dir: Path):
    """Create one sphere per (pixel type, dimension) cell."""
    print("\n=== Dispatch matrix ===")
    for key in CREATE_SPHERE.supported_keys():
        size = (32,) * key.dimension
        params = SphereParameters(extent=size, center=(16.0,) * key.dimension, radius=10)
        suffix = key.value_type.value
        path = output_dir / f"sphere_{key.dimension}d_{suffix}.mha"

        start = time.time()
        result = create_sphere(params, path, key.value_type, key.dimension)
        elapsed = time.time() - start

        if result.ok:
            inside = int(np.count_nonzero(result.value.data))
            print(f"  {str(key):24s} {inside:6d} voxels inside  ({elapsed * 1000:.1f} ms)")
        else:
            print(f"  {str(key):24s} FAILED: {result.error}")


def demo_antialiasing(output_dir: Path):
    """Compare the binary and supersampled boundary of a disk."""
    print("\n=== Binary vs. antialiased boundary ===")
    for factor in (1, 4):
        params = SphereParameters(
            extent=(64, 64),
            center=(31.5, 31.5),
            radius=20.3,
            inside_value=255,
            supersampling=factor
        )
        path = output_dir / f"disk_ss{factor}.png"
        result = create_sphere(params, path, "unsigned char", 2)
        if not result.ok:
            print(f"  supersampling {factor}: FAILED: {result.error}")
            continue

        data = result.value.data
        partial = int(np.count_nonzero((data > 0) & (data < 255)))
        area = data.sum() / 255.0
        print(f"  supersampling {factor}: area {area:8.1f} (exact {np.pi * 20.3 ** 2:8.1f}), "
              f"{partial} boundary voxels with partial values")


def demo_equalization(output_dir: Path):
    """Equalize a synthetic low-contrast image."""
    print("\n=== Histogram equalization ===")
    x, y = np.meshgrid(np.arange(128), np.arange(96), indexing="ij")
    image = (1000 + 40 * np.sin(x / 9.0) * np.cos(y / 13.0) + x).astype(np.int16)
    input_path = output_dir / "low_contrast.mha"
    write_grid(Grid(image, spacing=(0.8, 0.8)), input_path)

    mask = np.zeros_like(image, dtype=np.uint8)
    mask[32:96, 24:72] = 1
    mask_path = output_dir / "roi_mask.mha"
    write_grid(Grid(mask), mask_path)

    runs = [
        ("whole image", EqualizeParameters(input_path, output_dir / "equalized.mha")),
        ("within mask", EqualizeParameters(input_path, output_dir / "equalized_roi.mha", mask_path)),
    ]
    print(f"  input range: {image.min()} .. {image.max()}")
    for label, params in runs:
        result = histogram_equalize_image(params)
        if not result.ok:
            print(f"  {label}: FAILED: {result.error}")
            continue
        out = read_grid(params.output_path).value.data
        print(f"  {label}: output range {out.min()} .. {out.max()}, "
              f"std {image.std():.1f} -> {out.std():.1f}")


def demo_failures(output_dir: Path):
    """Show how failures are reported without producing output."""
    print("\n=== Failure reporting ===")
    params = SphereParameters(extent=(8, 8, 8, 8), center=(4, 4, 4, 4), radius=2)
    path = output_dir / "sphere_4d.mha"
    result = create_sphere(params, path, "short", 4)
    print(f"  4D sphere: {result.error} (file written: {path.exists()})")

    result = histogram_equalize_image(
        EqualizeParameters(output_dir / "does_not_exist.mha", output_dir / "never.mha")
    )
    print(f"  missing input: {result.error}")


def main():
    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("demo_output")
    output_dir.mkdir(parents=True, exist_ok=True)

    print("Voxel Tools Demo")
    print(f"Output directory: {output_dir.resolve()}")

    demo_dispatch_matrix(output_dir)
    demo_antialiasing(output_dir)
    demo_equalization(output_dir)
    demo_failures(output_dir)

    print("\nDone.")


if __name__ == "__main__":
    main()
