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
This Python module contains functions to control LOSDecomp log outputs
"""
import sys
import logging
import warnings
import traceback
from datetime import datetime
from pathlib import Path


losdecomplogger = logging.getLogger('losdecomp')
formatter = logging.Formatter(
    "%(asctime)s %(module)s:%(lineno)d %(process)d %(levelname)s %(message)s",
    "%H:%M:%S"
)


def configure_stage_log(verbosity, step_name, log_dir='.', log_file_name='losdecomp.log.'):
    """
    Attach a stream handler and a time-stamped file handler to the
    package logger for one workflow step.

    :param str verbosity: Log level name, e.g. 'INFO'
    :param str step_name: Name of the step, used in the log file name
    :param str log_dir: Directory the log file is written to
    :param str log_file_name: Prefix of the log file name

    :return: path of the log file
    :rtype: Path
    """
    timestamp = datetime.now().isoformat()
    log_file = Path(log_dir).joinpath(log_file_name + step_name + '.' + timestamp)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(verbosity)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(verbosity)
    file_handler.setFormatter(formatter)

    losdecomplogger.setLevel(verbosity)
    losdecomplogger.addHandler(stream_handler)
    losdecomplogger.addHandler(file_handler)
    return log_file


def warn_with_traceback(message, category, filename, lineno, file=None, line=None):
    """
    Replacement for warnings.showwarning that prints the stack before the
    warning. Adapted from:
    http://stackoverflow.com/questions/22373927/get-traceback-of-warnings
    """
    log = file if hasattr(file, "write") else sys.stderr
    traceback.print_stack(file=log)
    log.write(warnings.formatwarning(message, category, filename, lineno, line))
