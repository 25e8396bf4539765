#!/usr/bin/env python3
"""
Development server runner.

Usage: python run.py [BACKUP_SCRIPT]
"""
import os
import sys
from dirbackup import create_app


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    # A script given on the command line replaces BACKUP_SCRIPT from the environment
    overrides = {'BACKUP_SCRIPT': argv[0]} if argv else None
    app = create_app('development', overrides=overrides)

    port = int(os.environ.get('PORT', 5000))
    app.run(host=os.environ.get('HOST', '127.0.0.1'), port=port, debug=True)


if __name__ == '__main__':
    main()
