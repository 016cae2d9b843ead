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
from os.path import dirname, join
import setuptools
from setuptools import setup
__version__ = "0.2.0"

HERE = dirname(__file__)

# Get requirements (and dev requirements for testing) from requirements
#  txt files.
with open(join(HERE, 'requirements.txt')) as f:
    requirements = [r for r in f.read().splitlines() if r]
with open(join(HERE, 'requirements-test.txt')) as f:
    test_requirements = [r for r in f.read().splitlines() if r]

readme = open(join(HERE, 'README.rst')).read()

setup(
    name='losdecomp',
    version=__version__,
    license="Apache Software License 2.0",
    description='A Python tool for merging InSAR line-of-sight velocities from multiple '
                'frames and decomposing them into East, North and Up velocities.',
    long_description=readme,
    author='Geoscience Australia InSAR team',
    author_email='insar@ga.gov.au',
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    entry_points={
          'console_scripts': [
              'losdecomp = losdecomp.main:main',
          ]
      },
    install_requires=requirements,
    extras_require={
        'test': test_requirements
    },
    python_requires='>=3.8',
    zip_safe=False,
    keywords='LOSDecomp, Python, InSAR, Geodesy, GNSS, Velocity decomposition',
    classifiers=[
        'Development Status :: 4 - Beta',
        "Operating System :: POSIX",
        "License :: OSI Approved :: Apache Software License",
        "Natural Language :: English",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Information Analysis"
    ],
)
