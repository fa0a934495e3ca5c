"""CLI script to build the single-file application archive.
Usage: python scripts/build_artifact.py [--out DIR] [--version VERSION]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `wala` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from wala.packaging import build_artifact


def main(out: str, version=None):
    target = build_artifact(out, version=version)
    print(f'Built {target}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--out', default=str(ROOT / 'dist'), help='Output directory')
    parser.add_argument('--version', default=None, help='Version recorded inside the archive')
    args = parser.parse_args()
    main(args.out, version=args.version)
