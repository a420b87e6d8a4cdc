#!/usr/bin/env python
"""
Batch Replay Script

Replays every frame log in a directory through a fresh tracking pipeline:
1. Load the frame log
2. Run stabilization, sampling and gesture recognition
3. Collect per-log summaries (detection, presence, events)

Usage:
    python scripts/replay_all.py --config configs/default.yaml --input_dir logs/
"""

import argparse
from pathlib import Path
import json
from tqdm import tqdm
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from handlidar.data.frame_log import FrameLogLoader
from handlidar.pipeline import HandTrackingPipeline, replay_log
from handlidar.utils.config import load_config
from handlidar.utils.logging_utils import setup_logging_from_config, get_logger

logger = get_logger(__name__)


def replay_file(path: Path, loader: FrameLogLoader, config) -> dict:
    """Replay a single frame log."""
    result = {
        'log': path.name,
        'success': False,
        'error': None
    }

    try:
        log = loader.load(path)
        pipeline = HandTrackingPipeline(config)
        result.update(replay_log(pipeline, log))
        result['success'] = True

    except (OSError, ValueError) as e:
        result['error'] = str(e)
        logger.error(f"Error replaying {path.name}: {e}")

    return result


def main():
    parser = argparse.ArgumentParser(description="Replay a directory of frame logs")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Configuration file"
    )
    parser.add_argument(
        "--input_dir",
        type=str,
        required=True,
        help="Directory containing .npz frame logs"
    )
    parser.add_argument(
        "--output",
        type=str,
        default="./outputs/replay_summary.json",
        help="Summary JSON path"
    )
    parser.add_argument(
        "--max_logs",
        type=int,
        default=None,
        help="Maximum logs to replay"
    )

    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging_from_config(config.logging, use_tqdm=True)

    paths = sorted(Path(args.input_dir).glob("*.npz"))
    if args.max_logs:
        paths = paths[:args.max_logs]

    loader = FrameLogLoader()
    all_results = []

    for path in tqdm(paths, desc="Replaying logs"):
        all_results.append(replay_file(path, loader, config))

    # Summary
    success_count = sum(1 for r in all_results if r['success'])
    event_count = sum(len(r.get('events', [])) for r in all_results)
    logger.info("Replay complete!")
    logger.info(f"Success: {success_count}/{len(all_results)}, events: {event_count}")

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(all_results, f, indent=2)
    logger.info(f"Summary saved to: {output_path}")


if __name__ == "__main__":
    main()
