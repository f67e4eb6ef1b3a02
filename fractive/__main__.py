import argparse
import logging
import sys

from .build import BuildOptions, build
from .errors import ProjectError
from .watcher import run_watcher


def main(argv=None):
    parser = argparse.ArgumentParser(
                        prog='fractive',
                        description='Compiles a Fractive story project into a playable html file',
                        epilog='Example: python -m fractive compile ~/Stories/MyStory --verbose')
    parser.add_argument('command', choices=['compile', 'watch'])
    parser.add_argument('path', help='Story directory (containing fractive.yaml/fractive.json) or project file path')
    parser.add_argument('--dry-run', action='store_true', help="Log what would've been done, but don't touch any files")
    parser.add_argument('--verbose', action='store_true', help='Log more detailed build information')
    parser.add_argument('--debug', action='store_true', help='Log debugging information during the build')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if (args.verbose or args.debug) else logging.INFO,
                        format='%(asctime)s - %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')

    options = BuildOptions(dry_run=args.dry_run, verbose=args.verbose, debug=args.debug)
    try:
        if args.command == 'watch':
            run_watcher(args.path, options)
            return 0
        return 0 if build(args.path, options) else 1
    except ProjectError as e:
        logging.getLogger('fractive').error("Error: %s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
