# Copyright Red Hat
#
# tests/__init__.py - Storage differ test package
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import logging

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)


class MockArgs(object):
    debug = None
    verbose = 0
    version = False
    config = None
    json = False
    quiet = True
    recursive = False
    symmetric = False
    color = "never"
    first = None
    second = None
    targets = []
    stordiff_config = None
