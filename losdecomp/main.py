#   This Python module is part of the LOSDecomp software package.
#
#   Copyright 2024 Geoscience Australia
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.
"""
This Python module defines executable run configuration for the LOSDecomp software
"""

import os
import argparse
import time
import warnings
from argparse import RawTextHelpFormatter

import losdecomp.constants as C
from losdecomp.constants import CLI_DESCRIPTION
from losdecomp import decompose
from losdecomp.core.logger import losdecomplogger as log, configure_stage_log, warn_with_traceback
from losdecomp.configuration import Configuration


def _params_from_conf(config_file):
    config_file = os.path.abspath(config_file)
    config = Configuration(config_file)
    return config.__dict__


def main(argv=None):

    start_time = time.time()

    parser = argparse.ArgumentParser(prog='losdecomp', description=CLI_DESCRIPTION, add_help=True,
                                     formatter_class=RawTextHelpFormatter)
    parser.add_argument('-v', '--verbosity', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Increase output verbosity")

    subparsers = parser.add_subparsers(dest='command')
    subparsers.required = True

    parser_decompose = subparsers.add_parser(
        C.DECOMPOSE, help='Unify, merge, reference and decompose LOS velocities.', add_help=True)
    parser_decompose.add_argument('-f', '--config_file', action="store", type=str, default=None,
                                  help="Pass configuration file", required=True)

    parser_across = subparsers.add_parser(
        C.ACROSS, help='<Optional> Stop after merging tracks across-track for inspection.',
        add_help=True)
    parser_across.add_argument('-f', '--config_file', action="store", type=str, default=None,
                               help="Pass configuration file", required=True)

    args = parser.parse_args(argv)

    params = _params_from_conf(args.config_file)

    configure_stage_log(args.verbosity, args.command, params[C.OUT_DIR])

    log.debug("Starting LOSDecomp")
    log.debug("Arguments supplied at command line: ")
    log.debug(args)

    if args.verbosity:
        log.setLevel(args.verbosity)
        log.info("Verbosity set to " + str(args.verbosity) + ".")
    if args.verbosity == 'DEBUG':
        warnings.showwarning = warn_with_traceback

    if args.command == C.DECOMPOSE:
        decompose.main(params)

    if args.command == C.ACROSS:
        decompose.across(params)

    log.info("--- Runtime = %s seconds ---" % (time.time() - start_time))


if __name__ == "__main__":
    main()
