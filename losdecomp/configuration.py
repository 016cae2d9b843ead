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
This Python module contains utilities to validate user input parameters
parsed in a LOSDecomp configuration file.
"""
from configparser import ConfigParser
from pathlib import Path, PurePath
from typing import Union

import numpy as np

import losdecomp.constants as C
from losdecomp.default_parameters import LOSDECOMP_DEFAULT_CONFIGURATION
from losdecomp.core.shared import ConfigurationError


def set_parameter_value(data_type, input_value, default_value, required, input_name):
    """
    Converts a user-provided value into a final value, by applying data types and
    default values on the input.

    This function will raise an error if an input value is not given, but required.
    """
    if input_value is not None and len(input_value) < 1:
        input_value = None
        if required:
            msg = f"A required parameter is missing from the configuration file: {input_name}"
            raise ConfigurationError(msg)

    if input_value is not None:
        if str(data_type) in "path":
            return Path(input_value)
        try:
            return data_type(input_value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {input_name} supplied: {input_value}. "
                                     f"Expected {data_type.__name__}.") from e

    return default_value


def validate_parameter_value(input_name: str, input_value, min_value=None, max_value=None,
                             possible_values=None):
    """Validates that a supplied value sits within a range or set of allowed values."""

    if isinstance(input_value, PurePath):
        if not Path.exists(input_value):
            raise ConfigurationError(f"Given path: {input_value} does not exist.")

    if input_value is not None:
        if min_value is not None:
            if input_value < min_value:
                msg = f"Invalid value for {input_name} supplied: {input_value}. " \
                      f"Provide a value greater than or equal to {min_value}."
                raise ConfigurationError(msg)

        if max_value is not None:
            if input_value > max_value:
                msg = f"Invalid value for {input_name} supplied: {input_value}. " \
                      f"Provide a value less than or equal to {max_value}."
                raise ConfigurationError(msg)

    if possible_values is not None:
        if input_value not in possible_values:
            msg = f"Invalid value for {input_name} supplied: {input_value}. " \
                  f"Provide one of these values: {possible_values}."
            raise ConfigurationError(msg)
    return True


def parse_namelist(nml):
    """
    Parses name list file into a list of frame directories

    :param str nml: frame directory list

    :return: list of frame directories
    :rtype: list
    """
    with open(nml) as f_in:
        lines = [line.strip() for line in f_in]
    return [line for line in lines if line and not line.startswith('#')]


def npz_keys(path) -> set:
    """Names of the arrays stored in an npz file"""
    with np.load(path) as f:
        return set(f.files)


class Configuration:
    """
    The main configuration class for LOSDecomp, which allows access to the values of
    configurable properties.

    :param config_file_path: The path to the configuration text file to load

    :ivar outdir: The LOSDecomp output directory
    """
    outdir: str
    framelist: str

    # pylint: disable=too-many-branches

    def __init__(self, config_file_path: Union[str, Path]):
        # Promote config to path object
        if not isinstance(config_file_path, Path):
            config_file_path = Path(config_file_path)

        # Load config file
        parser = ConfigParser()
        parser.optionxform = str
        # mimic header to fulfil the requirement for configparser
        parser.read_string("[root]\n" + config_file_path.read_text("utf-8"))

        for key, value in parser["root"].items():
            self.__dict__[key] = value

        # Validate required parameters exist.
        required = {k for k, v in LOSDECOMP_DEFAULT_CONFIGURATION.items() if v['Required']}

        if not required.issubset(self.__dict__):
            raise ConfigurationError("Required configuration parameters: " + str(
                required.difference(self.__dict__)) + " are missing from input config file.")

        # make output path, if not provided will error
        Path(self.outdir).mkdir(exist_ok=True, parents=True)

        # handle control parameters
        for parameter_name, definition in LOSDECOMP_DEFAULT_CONFIGURATION.items():
            param_value = self.__dict__.get(parameter_name, '')

            self.__dict__[parameter_name] = set_parameter_value(
                definition["DataType"], param_value, definition["DefaultValue"],
                definition["Required"], parameter_name)
            validate_parameter_value(parameter_name, self.__dict__[parameter_name],
                                     definition["MinValue"], definition["MaxValue"],
                                     definition["PossibleValues"])

        self.validate()

        self.frame_dirs = parse_namelist(self.framelist)
        if not self.frame_dirs:
            raise ConfigurationError(f'No frame directories listed in {self.framelist}')

        # backward compatibility for string paths
        # pylint: disable=consider-using-dict-items
        for key in self.__dict__:
            if isinstance(self.__dict__[key], PurePath):
                self.__dict__[key] = str(self.__dict__[key])

    def validate(self):
        """
        Bespoke validation of parameter combinations.
        """
        if self.tie2gnss == C.POLYNOMIAL_REFERENCING and self.refpolyorder is None:
            raise ConfigurationError(f'Must set {C.REF_POLY_ORDER} if using a polynomial '
                                     f'for referencing')
        if self.tie2gnss == C.FILTER_REFERENCING and \
                (self.reffilterwindow is None or self.reffilterwindow % 2 != 1):
            raise ConfigurationError(f'Filter window size must be an odd number, '
                                     f'got {self.reffilterwindow}')

        needs_reference = self.tie2gnss != C.NO_REFERENCING or \
            self.decompmethod in C.NORTH_REFERENCED_METHODS
        if needs_reference and self.gnssfile is None:
            raise ConfigurationError(f'{C.GNSS_FILE} is required for {C.TIE_TO_GNSS}='
                                     f'{self.tie2gnss} and {C.DECOMP_METHOD}={self.decompmethod}')
        if self.gnssfile is not None:
            keys = npz_keys(self.gnssfile)
            if not {'x', 'y', 'E', 'N'}.issubset(keys):
                raise ConfigurationError(f'{self.gnssfile} must contain x, y, E and N')
            if self.gnssuncer and not {'sE', 'sN'}.issubset(keys):
                raise ConfigurationError('Propagation of GNSS uncertainties requested, but '
                                         f'{self.gnssfile} does not contain sE and sN')

        if self.platemotion and self.platemotionfile is None:
            raise ConfigurationError(f'{C.PLATE_MOTION_FILE} is required when '
                                     f'{C.PLATE_MOTION} is 1')

        if self.mergeacross and self.mergealong != C.MERGE_AND_COMBINE:
            raise ConfigurationError(f'{C.MERGE_ACROSS} requires along-track merging, '
                                     f'set {C.MERGE_ALONG} to 2')
