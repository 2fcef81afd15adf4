import argparse
import logging
import sys
import time

import yaml

from .config import load_config
from .parser import Parser
from .watcher import run_watcher, trigger_reparse

CONFIG_ERRORS = (OSError, ValueError, KeyError, TypeError, yaml.YAMLError)


def main(argv=None):
    parser = argparse.ArgumentParser(
                        prog='slimparse',
                        description='Parses Slim templates into expression trees dumped as YAML',
                        epilog='Without --once, keeps watching the sources and re-parses on change')
    parser.add_argument('config')
    parser.add_argument('--once', action='store_true', help='parse every source once and exit')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debug messages')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')

    if args.once:
        try:
            cfg = load_config(args.config)
        except CONFIG_ERRORS as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        errors = trigger_reparse(cfg.write_pairs, Parser(cfg.options))
        for error in errors.values():
            print(error, file=sys.stderr)
        return 1 if errors else 0

    while True:
        try:
            cfg = load_config(args.config)
            run_watcher(cfg.write_pairs, cfg.watch_paths, Parser(cfg.options))
            return 0
        except CONFIG_ERRORS as e:
            print(f"Error: {e}")
            print("Please check your configuration and try again, attempting to reload in 3 seconds...")
            time.sleep(3)
            continue


if __name__ == '__main__':
    sys.exit(main())
