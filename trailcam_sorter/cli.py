"""
Trail camera media sorter

Classifies each image or video in a directory with a vision-language model
and moves it into a subdirectory named after the verdict:

    _lowq/     every sampled frame was too blurry or dark to trust
    none/      no animal could be named confidently
    <animal>/  the animal that was detected

Videos showing several different animals are hardlinked into each matching
directory.

Usage:
    trailcam-sorter /path/to/camera/dump
    trailcam-sorter /path/to/camera/dump --model llava:13b --region "Northern Ontario"
    trailcam-sorter /path/to/camera/dump --openai-endpoint http://localhost:8000/v1 --model Qwen/Qwen2.5-VL-7B-Instruct
"""

import argparse
import os
import sys
import time

from trailcam_sorter.config import (DEFAULT_MAX_WIDTH, DEFAULT_MODEL, DEFAULT_REGION,
                                    DEFAULT_REQUEST_TIMEOUT_SECONDS, SorterConfig)
from trailcam_sorter.errors import SorterError
from trailcam_sorter.logging_config import configure_logging
from trailcam_sorter.sorter import MediaSorter, SortSummary
from trailcam_sorter.vision_clients import OllamaVisionClient, create_vision_client


def print_setup_instructions():
    """Print setup instructions for a local Ollama server."""
    print("\n📋 Setup Instructions:")
    print("1. Install Ollama:")
    print("   curl -fsSL https://ollama.com/install.sh | sh")
    print("\n2. Start Ollama service:")
    print("   ollama serve")
    print("\n3. Pull a vision model:")
    print("   ollama pull llava:latest")
    print("   # or try: ollama pull gemma3:12b")
    print("\n4. Make sure ffmpeg and ffprobe are on your PATH if you want to sort videos")
    print("\n5. Run this script")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sort trail camera images and videos by quality and animal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sort a card dump with the default local Ollama model
  trailcam-sorter /path/to/dcim

  # Use a different model and region
  trailcam-sorter /path/to/dcim --model llava:13b --region "the Scottish Highlands"

  # Use an OpenAI-compatible server (vLLM, OpenAI, ...)
  trailcam-sorter /path/to/dcim --openai-endpoint http://localhost:8000/v1 --model Qwen/Qwen2.5-VL-7B-Instruct

  # Check setup instructions
  trailcam-sorter --setup-help
        """
    )

    parser.add_argument(
        'media_dir',
        nargs='?',
        help='Directory of images/videos to sort'
    )
    parser.add_argument(
        '--model', '-m',
        default=DEFAULT_MODEL,
        help=f'Multimodal model to use (default: {DEFAULT_MODEL})'
    )
    parser.add_argument(
        '--max-width',
        type=int,
        default=DEFAULT_MAX_WIDTH,
        help=f'Maximum width of frames sent to the model (default: {DEFAULT_MAX_WIDTH})'
    )
    parser.add_argument(
        '--ollama-endpoint',
        default=os.getenv('OLLAMA_HOST'),
        help='Ollama endpoint URL (default: OLLAMA_HOST env var or http://localhost:11434)'
    )
    parser.add_argument(
        '--openai-endpoint',
        default=os.getenv('OPENAI_BASE_URL'),
        help='OpenAI-compatible endpoint URL; takes precedence over Ollama (default: OPENAI_BASE_URL env var)'
    )
    parser.add_argument(
        '--openai-key',
        default=os.getenv('OPENAI_API_KEY'),
        help='API key for the OpenAI-compatible endpoint (default: OPENAI_API_KEY env var)'
    )
    parser.add_argument(
        '--region',
        default=DEFAULT_REGION,
        help=f'Region to mention in the classification prompt (default: {DEFAULT_REGION})'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        help=f'Per-request timeout in seconds (default: {DEFAULT_REQUEST_TIMEOUT_SECONDS:.0f})'
    )
    parser.add_argument(
        '--skip-health-check',
        action='store_true',
        help='Do not check the model server before sorting'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log every retry and per-frame decision'
    )
    parser.add_argument(
        '--setup-help',
        action='store_true',
        help='Show setup instructions and exit'
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SorterConfig:
    return SorterConfig(
        media_dir=args.media_dir,
        model=args.model,
        max_width=args.max_width,
        region=args.region,
        ollama_endpoint=args.ollama_endpoint or None,
        openai_endpoint=args.openai_endpoint or None,
        openai_key=args.openai_key or None,
        request_timeout=args.timeout,
        check_health=not args.skip_health_check,
        verbose=args.verbose,
    )


def print_summary(summary: SortSummary, processing_time: float):
    print(f"\n🎉 Sorting complete!")
    print(f"✅ Sorted: {summary.sorted_files} files")
    for name in sorted(summary.destinations):
        print(f"   {name}: {summary.destinations[name]}")
    if summary.fanouts:
        print(f"🔗 Hardlinked into several directories: {summary.fanouts}")
    print(f"⏭️  Skipped: {summary.skipped}")
    print(f"❌ Failed: {len(summary.failed)}")
    if summary.sorted_files > 0:
        print(f"⏱️  Processing time: {processing_time:.1f}s ({processing_time/summary.sorted_files:.1f}s per file)")
    if summary.failed:
        print(f"\n⚠️  {len(summary.failed)} files were left in place. Check the log for error details.")


def main(argv=None) -> int:
    """Main sorting workflow."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.setup_help:
        print_setup_instructions()
        return 0

    if not args.media_dir:
        parser.print_help()
        return 1

    if not os.path.isdir(args.media_dir):
        print(f"❌ Error: Media directory does not exist: {args.media_dir}")
        return 1

    if args.max_width < 1:
        print("❌ Error: --max-width must be positive")
        return 1

    config = config_from_args(args)
    configure_logging(config.verbose)

    client = create_vision_client(config)

    if config.check_health:
        if not client.check_server_health():
            if isinstance(client, OllamaVisionClient):
                print("\n💡 It looks like the Ollama server is not running.")
                print_setup_instructions()
            return 1
        if isinstance(client, OllamaVisionClient) and not client.check_model_available():
            return 1

    sorter = MediaSorter(client, region=config.region, max_width=config.max_width)

    try:
        start_time = time.time()
        summary = sorter.sort_directory(config.media_dir)
        print_summary(summary, time.time() - start_time)
    except KeyboardInterrupt:
        print(f"\n⚠️  Process interrupted by user")
        return 1
    except SorterError as e:
        print(f"\n❌ Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
