#!/usr/bin/env python3
# CUI // SP-CTI
"""Model Downloader — stages a model's artifacts under a local model directory.

Each model lands in <model_dir>/<model_name>. A marker file
SUCCESS.<sha256 of the model spec> is written after a complete fetch; if the
marker is already present the fetch is skipped. Changing the spec (e.g. a
new storage URI) changes the marker name and forces a new fetch.

CLI: --model-dir <dir> --model-name <name> --uri <locator> [--config <yaml>] [--json]
     --model-dir <dir> --model-name <name> --remove
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Optional

from storage_agent.resilience.errors import StorageAgentError
from storage_agent.storage.credentials import load_config
from storage_agent.storage.fsutil import as_sha256, create, file_exists, remove_dir
from storage_agent.storage.registry import ProviderRegistry

logger = logging.getLogger("storage_agent.downloader")

SUCCESS_PREFIX = "SUCCESS."


class Downloader:
    """Downloads models through a shared ProviderRegistry."""

    def __init__(self, model_dir: str, registry: Optional[ProviderRegistry] = None):
        self.model_dir = model_dir
        self.registry = registry or ProviderRegistry()

    def model_path(self, model_name: str) -> str:
        return os.path.join(self.model_dir, model_name)

    def success_file(self, model_name: str, spec: Any) -> str:
        return os.path.join(self.model_path(model_name), SUCCESS_PREFIX + as_sha256(spec))

    def download_model(self, model_name: str, storage_uri: str, spec: Any = None) -> bool:
        """Fetch storage_uri into the model's directory.

        Args:
            model_name: Directory name under model_dir.
            storage_uri: Artifact locator (gs://, s3://, https://, http://).
            spec: Value identifying this model version; defaults to the URI.

        Returns:
            True if objects were fetched, False if the success marker was
            already present.
        """
        marker = self.success_file(model_name, storage_uri if spec is None else spec)
        if file_exists(marker):
            logger.info("Model %s already downloaded (%s), skipping", model_name, marker)
            return False

        provider, location = self.registry.get_provider_for_uri(storage_uri)
        dest = self.model_path(model_name)
        logger.info("Downloading model %s from %s into %s", model_name, storage_uri, dest)
        provider.fetch(location.bucket, location.path, dest)

        with create(marker):
            pass
        logger.info("Model %s downloaded, marker %s", model_name, os.path.basename(marker))
        return True

    def remove_model(self, model_name: str):
        """Delete the model's directory and everything in it."""
        path = self.model_path(model_name)
        remove_dir(path)
        logger.info("Removed model %s (%s)", model_name, path)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Storage Agent — download model artifacts from GCS, S3 or HTTP(S)"
    )
    parser.add_argument("--model-dir", required=True,
                        help="Local root directory for models")
    parser.add_argument("--model-name", required=True,
                        help="Model name (sub-directory of --model-dir)")
    parser.add_argument("--uri", type=str, default=None,
                        help="Artifact locator, e.g. s3://bucket/models/v1")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to storage_config.yaml")
    parser.add_argument("--remove", action="store_true",
                        help="Remove the model directory instead of downloading")
    parser.add_argument("--json", action="store_true",
                        help="JSON output")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    registry = ProviderRegistry(config=load_config(args.config))
    downloader = Downloader(args.model_dir, registry)

    try:
        if args.remove:
            downloader.remove_model(args.model_name)
            result = {"model": args.model_name, "action": "removed"}
        else:
            if not args.uri:
                parser.error("--uri is required unless --remove is given")
            fetched = downloader.download_model(args.model_name, args.uri)
            result = {
                "model": args.model_name,
                "uri": args.uri,
                "action": "downloaded" if fetched else "skipped",
                "path": downloader.model_path(args.model_name),
            }
    except (StorageAgentError, OSError) as exc:
        if args.json:
            print(json.dumps({"model": args.model_name, "error": str(exc),
                              "type": type(exc).__name__,
                              "retryable": getattr(exc, "retryable", False)}, indent=2))
        else:
            print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(f"[OK] {result['model']}: {result['action']}")


if __name__ == "__main__":
    main()
