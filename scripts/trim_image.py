#!/usr/bin/env python3
"""Run the frame trim / crop / resize pipeline on a local image file.
Usage: python scripts/trim_image.py photo.png --max-size 2048 --out photo_out.png
"""
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from framebot.decisions import DEFAULT_MAX_SIZE, DEFAULT_TEMPLATE, DecisionConfig
from framebot.errors import FrameBotError
from framebot.pipeline import transform_bytes


def main(argv):
    import argparse
    p = argparse.ArgumentParser()
    p.add_argument('src', help='source image path')
    p.add_argument('--max-size', type=int, default=DEFAULT_MAX_SIZE, help='longest output side (pixels)')
    p.add_argument('--no-template', action='store_true', help='ignore the calibrated frame template')
    p.add_argument('--out', help='output path (default: next to the source, with the action suffix)')
    args = p.parse_args(argv[1:])

    src = Path(args.src)
    if not src.exists():
        print('Source not found', file=sys.stderr)
        return 2

    templates = () if args.no_template else (DEFAULT_TEMPLATE,)
    config = DecisionConfig(max_size=args.max_size, templates=templates)
    try:
        result = transform_bytes(src.read_bytes(), src.stem, decision_config=config)
    except FrameBotError as e:
        print(f'Failed: {e}', file=sys.stderr)
        return 1

    if result is None:
        print(f'{src.name}: no transform needed')
        return 0

    out = Path(args.out) if args.out else src.with_name(result.file_name)
    out.write_bytes(result.data)
    print(f'{result.label} {src.name} -> {out}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main(sys.argv))
