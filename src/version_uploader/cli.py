"""Upload an APK/IPA build to the version-storage service in 5MB chunks.

Usage:
    version-uploader app-release.apk --app com.example.app --version 1.4.0 \\
        --version-code 42 --changelog "Fix login crash" --changelog "New icons"

Connection settings come from UPLOADER_* environment variables or a .env file.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from version_uploader.application.cancellation import CancellationToken
from version_uploader.application.dto import UploadBinaryCommand
from version_uploader.config import UploaderConfig, load_config
from version_uploader.domain.errors import ChunkUploadError, UploadError
from version_uploader.domain.upload import CommittedArtifact, Platform, UploadMetadata
from version_uploader.infrastructure.files import LocalBinaryFile
from version_uploader.main import build_reporter, build_transport, build_use_case

logger = logging.getLogger(__name__)


def _infer_platform(path: Path) -> Platform:
    return Platform.ANDROID if path.suffix.lower() == ".apk" else Platform.IOS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="version-uploader",
        description="Chunked upload of a mobile build to the version-storage service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("file", type=Path, help="Path to the .apk or .ipa file")
    parser.add_argument("--app", required=True, help="Target application identifier")
    parser.add_argument("--version", required=True, help="Semantic version, e.g. 1.2.3")
    parser.add_argument("--version-code", type=int, default=1)
    parser.add_argument(
        "--platform",
        choices=[p.value for p in Platform],
        help="Defaults to android for .apk and ios otherwise",
    )
    parser.add_argument("--mandatory", action="store_true", help="Force clients to update")
    parser.add_argument(
        "--changelog",
        action="append",
        default=[],
        help="Changelog entry (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


async def run_upload(
    args: argparse.Namespace,
    config: UploaderConfig,
    cancellation: Optional[CancellationToken] = None,
) -> CommittedArtifact:
    metadata = UploadMetadata(
        app_identifier=args.app,
        version=args.version,
        version_code=args.version_code,
        platform=Platform(args.platform) if args.platform else _infer_platform(args.file),
        is_mandatory=args.mandatory,
        changelog=tuple(args.changelog),
    )
    async with build_transport(config) as transport:
        use_case = build_use_case(config, transport=transport)
        with LocalBinaryFile(args.file) as source:
            return await use_case.execute(
                UploadBinaryCommand(
                    source=source,
                    metadata=metadata,
                    chunk_size=config.chunk_size_bytes,
                    reporter=build_reporter(config, metadata.target),
                    cancellation=cancellation,
                )
            )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config()
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    cancellation = CancellationToken()
    previous_handler = signal.signal(
        signal.SIGINT, lambda *_: cancellation.cancel("interrupted")
    )
    try:
        artifact = asyncio.run(run_upload(args, config, cancellation))
    except FileNotFoundError as exc:
        print(f"✗ {exc}", file=sys.stderr)
        return 1
    except ChunkUploadError as exc:
        print(
            f"✗ Upload failed at chunk {exc.index} after {exc.completed_chunks}/"
            f"{exc.total_chunks} chunks were committed: {exc.reason}",
            file=sys.stderr,
        )
        return 1
    except UploadError as exc:
        print(f"✗ Upload failed during {exc.phase}: {exc.reason}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print(
        f"✓ Uploaded version {artifact.version} for {artifact.platform} "
        f"({artifact.final_size / (1024 * 1024):.2f} MB)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
