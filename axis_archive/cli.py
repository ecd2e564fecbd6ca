"""Command-line interface for Axis-Archive."""

import sys
from pathlib import Path

from axis_archive.config import Config
from axis_archive.downloader import SiteDownloader
from axis_archive.errors import ArchiveError


def main(argv=None):
    """Main CLI entry point."""
    args = sys.argv[1:] if argv is None else argv
    config = Config()
    if args:
        config.site_url = args[0]

    # Validate configuration
    is_valid, error = config.validate()
    if not is_valid:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)

    downloader = SiteDownloader(config)

    try:
        result = downloader.run(config.site_url)
    except KeyboardInterrupt:
        downloader.context.cancel()
        print("\nDownload interrupted by user")
        sys.exit(1)
    except ArchiveError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    archive_path = output_dir / result.container_name
    archive_path.write_bytes(result.container_bytes)

    report = result.audit_report
    print(f"\n{'='*70}", flush=True)
    print("Archive Complete!", flush=True)
    print(f"{'='*70}", flush=True)
    print(f"Archive: {archive_path}", flush=True)
    print(f"Assets archived: {sum(1 for r in result.results if r.ok)}", flush=True)
    print(f"Assets failed: {sum(1 for r in result.results if not r.ok)}", flush=True)
    print(f"Audit issues: {report.issue_count}", flush=True)
    print(f"Time taken: {result.duration_seconds:.1f}s", flush=True)
    print(f"{'='*70}\n", flush=True)


if __name__ == "__main__":
    main()
