"""
storage.py - Object storage uploader for raw survey files
---------------------------------------------------------

Uploads the raw survey files to an S3-compatible object store (AWS S3,
MinIO, ...) using Boto3 managed transfers, which switch to multipart
uploads above the configured threshold.

Credentials, endpoint and bucket come from a `StorageConfig` passed to every
call; this module keeps no client or credentials at module level.

USAGE:
    ror-upload data/surveys                      # upload every res_deb file
    ror-upload data/surveys --prefix ROR/ --dry-run
"""

import argparse
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.client import Config

from ror_gazetteer.settings import StorageConfig

MB = 1024 * 1024


def make_client(config: StorageConfig):
    """Build an S3 client for the configured endpoint and credentials."""
    session = boto3.session.Session()
    return session.client(
        "s3",
        region_name=config.region,
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        aws_session_token=config.session_token,
        config=Config(signature_version="s3v4"),
    )


def select_upload_files(
    root: Path,
    pattern: str = "res_deb",
    exclude: Optional[str] = "stunicode"
) -> List[Path]:
    """
    Files under root whose name contains pattern and whose path below root
    does not contain exclude.

    Args:
        root (Path): Directory searched recursively
        pattern (str): Substring the file name must contain
        exclude (str, optional): Substring that disqualifies a path below root

    Returns:
        List[Path]: Matching files, sorted
    """
    root = Path(root)
    files = []
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if pattern not in path.name:
            continue
        if exclude and exclude in path.relative_to(root).as_posix():
            continue
        files.append(path)
    return files


def destination_key(path: Path, base: Path, prefix: str = "ROR/") -> str:
    """Object key for a local file: prefix + path relative to base."""
    relative = Path(path).relative_to(base).as_posix()
    return f"{prefix}{relative}"


def upload_file(local_path: Path, key: str, config: StorageConfig, client=None):
    """
    Upload one local file to `key` in the configured bucket.

    Args:
        local_path (Path): File to upload
        key (str): Destination object key
        config (StorageConfig): Bucket, credentials and transfer settings
        client: Optional pre-built S3 client
    """
    if client is None:
        client = make_client(config)

    transfer = TransferConfig(multipart_threshold=config.multipart_threshold_mb * MB)
    client.upload_file(str(local_path), config.bucket, key, Config=transfer)


def upload_files(
    pairs: Iterable[Tuple[Path, str]],
    config: StorageConfig,
    client=None
) -> List[str]:
    """
    Upload (local path, key) pairs, reusing one client.

    Returns:
        List[str]: Uploaded keys
    """
    if client is None:
        client = make_client(config)

    uploaded = []
    for local_path, key in pairs:
        upload_file(local_path, key, config, client=client)
        uploaded.append(key)
        print(f"  ✓ {local_path} → s3://{config.bucket}/{key}")

    return uploaded


def main(argv=None):
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        description="Upload raw ROR survey files to S3-compatible object storage",
        epilog="Credentials: AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN, "
               "AWS_DEFAULT_REGION, AWS_S3_ENDPOINT and ROR_BUCKET (environment or .env)"
    )
    parser.add_argument("root", type=Path, help="Directory holding the survey files")
    parser.add_argument("--prefix", default="ROR/", help="Key prefix (default: ROR/)")
    parser.add_argument("--pattern", default="res_deb", help="Path substring to upload")
    parser.add_argument("--exclude", default="stunicode", help="Path substring to skip")
    parser.add_argument("--dry-run", action="store_true", help="List uploads without sending")

    args = parser.parse_args(argv)

    if not args.root.is_dir():
        print(f"❌ ERROR: Directory not found: {args.root}")
        sys.exit(1)

    files = select_upload_files(args.root, args.pattern, args.exclude)
    base = args.root.parent
    pairs = [(path, destination_key(path, base, args.prefix)) for path in files]

    print(f"\nFound {len(pairs)} file(s) to upload")

    if args.dry_run:
        for path, key in pairs:
            print(f"  → {path} → {key}")
        return

    try:
        config = StorageConfig.from_env()
    except ValueError as e:
        print(f"❌ ERROR: {e}")
        sys.exit(1)

    upload_files(pairs, config)
    print(f"\n✓ Uploaded {len(pairs)} file(s) to {config.bucket}")


if __name__ == "__main__":
    main()
