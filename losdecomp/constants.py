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
This Python module contains the constants used throughout LOSDecomp:
configuration keys, method codes and fixed geometry values.
"""
import re


__version__ = "0.2.0"
CLI_DESCRIPTION = """
LOSDecomp workflow:

    Step 1: unify frames onto a common grid
    Step 2: merge frames along-track
    Step 3: (optional) merge tracks across-track for inspection
    Step 4: (optional) remove plate motion bias
    Step 5: (optional) tie velocities to a GNSS velocity field
    Step 6: decompose into East, North and Up velocities

Use 'decompose' to run the full workflow, or 'across' to stop after the
across-track diagnostic merge.
"""

DECOMPOSE = 'decompose'
ACROSS = 'across'

# frame names look like 073D_12345_131313
FRAME_NAME_PATTERN = r'\d+[AD]_\d+_\d+'
frame_name_pattern = re.compile(FRAME_NAME_PATTERN)

ASCENDING = 'A'
DESCENDING = 'D'
PASS_DIRECTIONS = (ASCENDING, DESCENDING)

LOG_LEVEL = 'INFO'

# constants for lookups
#: STR; Name of the file listing one frame directory per line
FRAME_LIST = 'framelist'
#: STR; Name of directory for saving output products
OUT_DIR = 'outdir'
#: STR; Prefix for output file names
OUT_PREFIX = 'outprefix'

#: STR; File name fragments used to identify frame layers
ID_VEL = 'id_vel'
ID_VSTD = 'id_vstd'
ID_E = 'id_e'
ID_N = 'id_n'
ID_U = 'id_u'
ID_MASK = 'id_mask'

#: INT; Number of leading frame name characters forming the track id
TRACK_PREFIX_LEN = 'trackprefixlen'

#: BOOL (0/1); Apply the per-frame validity masks
USE_MASK = 'usemask'
#: INT; Block downsampling factor applied to frames before unification (0 = off)
DS_FACTOR = 'dsfactor'
#: STR (mean/median); Block downsampling statistic
DS_METHOD = 'dsmethod'

#: INT (0/1/2); Along-track merging, 0 = off, 1 = offsets only, 2 = offsets and merge
MERGE_ALONG = 'mergealong'
#: INT (0/1/2/3); Along-track offset function, 0 = mean, 1 = plane, 2 = median, 3 = mode
MERGE_ALONG_FUNC = 'mergealongfunc'
#: BOOL (0/1); Run the across-track diagnostic merge
MERGE_ACROSS = 'mergeacross'
#: FLOAT; Reference region used by the across-track decomposition (0 = grid limit)
REF_XMIN = 'ref_xmin'
REF_XMAX = 'ref_xmax'
REF_YMIN = 'ref_ymin'
REF_YMAX = 'ref_ymax'

#: BOOL (0/1); Remove a plate motion bias field
PLATE_MOTION = 'platemotion'
#: STR; npz file holding the plate motion bias field (x, y, E, N)
PLATE_MOTION_FILE = 'platemotionfile'

#: INT (0/1/2); GNSS referencing method, 0 = none, 1 = polynomial, 2 = filter
TIE_TO_GNSS = 'tie2gnss'
#: STR; npz file holding the GNSS velocity field (x, y, E, N, optional sE, sN)
GNSS_FILE = 'gnssfile'
#: BOOL (0/1); Use and propagate GNSS uncertainties
GNSS_UNCER = 'gnssuncer'
#: INT (1/2); Order of the referencing polynomial
REF_POLY_ORDER = 'refpolyorder'
#: INT; Odd window size of the referencing filter
REF_FILTER_WINDOW = 'reffilterwindow'

#: INT (0/1/2/3); Decomposition method
DECOMP_METHOD = 'decompmethod'
#: FLOAT; Condition number threshold for masking (0 = off)
COND_THRESHOLD = 'condthreshold'
#: FLOAT; Model variance threshold for masking (0 = off)
VAR_THRESHOLD = 'varthreshold'

#: INT; Number of workers (0 = serial)
PROCESSES = 'processes'
#: BOOL (0/1); Write the decomposed grids as geotiffs
SAVE_GEOTIFF = 'savegeotiff'

# derived key, set by Configuration
FRAME_DIRS = 'frame_dirs'

# along-track merge modes
MERGE_OFF = 0
MERGE_OFFSETS_ONLY = 1
MERGE_AND_COMBINE = 2

# along-track offset functions
MEAN_OFFSET = 0
PLANAR_OFFSET = 1
MEDIAN_OFFSET = 2
MODE_OFFSET = 3

MERGE_FUNC_NAMES = {
    MEAN_OFFSET: 'mean difference',
    PLANAR_OFFSET: 'best fitting plane',
    MEDIAN_OFFSET: 'median difference',
    MODE_OFFSET: 'modal difference',
}

# gnss referencing methods
NO_REFERENCING = 0
POLYNOMIAL_REFERENCING = 1
FILTER_REFERENCING = 2

# absolute velocity beyond which deramped pixels are excluded from referencing
GNSS_DERAMP_MASK_LIMIT = 10

# decomposition methods
REMOVE_NORTH = 0
ESTIMATE_NORTH = 1
EAST_NORTH_UP_TWO_STAGE = 2
ZERO_NORTH = 3

DECOMP_METHOD_NAMES = {
    REMOVE_NORTH: 'East and Up with reference North removed',
    ESTIMATE_NORTH: 'East, North and Up with reference North constraint',
    EAST_NORTH_UP_TWO_STAGE: 'East and combined North-Up, then split',
    ZERO_NORTH: 'East and Up with North assumed zero',
}
# methods that need a reference North velocity field
NORTH_REFERENCED_METHODS = (REMOVE_NORTH, ESTIMATE_NORTH, EAST_NORTH_UP_TWO_STAGE)

# standard deviation given to the reference North constraint when no
# reference uncertainties are supplied
DEFAULT_NORTH_SIGMA = 1.0

# canonical geometry for across-track merging (degrees)
AV_INC = 39.0
AV_AZ_ASC = -10.0
AV_AZ_DESC = -170.0

# output products
OUTPUT_TYPES = ['vE', 'vN', 'vU', 'var_vE', 'var_vN', 'var_vU', 'cond_mask', 'var_mask']
