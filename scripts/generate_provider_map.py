"""Regenerate docs/ai-provider-map.generated.{json,md} from the routing table."""

from __future__ import annotations

import argparse
from pathlib import Path

from genhub.config import get_settings
from genhub.shared.providers.provider_map import write_provider_map
from genhub.shared.providers.registry import build_default_registry


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--out-dir", type=Path, default=Path.cwd() / "docs")
    args = parser.parse_args()

    registry = build_default_registry(get_settings())
    for path in write_provider_map(registry, args.out_dir):
        print(f"Generated {path}")


if __name__ == "__main__":
    main()
