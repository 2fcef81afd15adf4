from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Set

import yaml

from .parser import ParserOptions


@dataclass
class ProjectConfig:
    options: ParserOptions
    write_pairs: Dict[Path, Path]
    watch_paths: Set[Path] = field(default_factory=set)


def load_config(path, base_path: Path = Path('.')) -> ProjectConfig:
    """
    Reads a YAML project file.

    `parse` lists {src, dst} pairs, `watch` lists extra glob patterns
    relative to `base_path` and `options` overrides the parser defaults.
    """
    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}

    if 'parse' not in cfg or not cfg['parse']:
        raise ValueError(f"{path}: 'parse' must list at least one {{src, dst}} entry")

    options = ParserOptions.from_dict(cfg.get('options') or {})
    write_pairs = {Path(to_write['src']): Path(to_write['dst']) for to_write in cfg['parse']}
    watch_paths = {watch_path for watch_path_str in cfg.get('watch') or [] for watch_path in base_path.glob(watch_path_str)}
    return ProjectConfig(options=options, write_pairs=write_pairs, watch_paths=watch_paths)
