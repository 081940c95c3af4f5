# Copyright Red Hat
#
# stordiff/__main__.py - Storage differ command line entry point
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Entry point for ``python -m stordiff`` and the ``stordiff`` script.
"""
import sys

from stordiff.command import main


def run():
    """
    Run the stordiff command line tool and exit with its status.
    """
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    run()
