#!/usr/bin/env python
# -*- coding: utf-8 -*-
from setuptools import setup
import os
import io


version = {}
with io.open(os.path.join('lmnn_objective', '_version.py')) as fp:
  exec(fp.read(), version)

# Get the long description from README.rst
with io.open('README.rst', encoding='utf-8') as f:
  long_description = f.read()

setup(name='lmnn-objective',
      version=version['__version__'],
      description=('Incremental cost and gradient of Large Margin Nearest '
                   'Neighbor metric learning'),
      long_description=long_description,
      python_requires='>=3.6',
      license='MIT',
      classifiers=[
          'Development Status :: 4 - Beta',
          'License :: OSI Approved :: MIT License',
          'Programming Language :: Python :: 3',
          'Operating System :: OS Independent',
          'Intended Audience :: Science/Research',
          'Topic :: Scientific/Engineering'
      ],
      packages=['lmnn_objective'],
      install_requires=[
          'numpy',
          'scipy',
          'scikit-learn>=0.20.3',
      ],
      extras_require=dict(
          test=['pytest'],
          bench=['asv'],
      ),
      test_suite='test',
      keywords=[
          'Metric Learning',
          'Large Margin Nearest Neighbor',
          'Objective Function',
          'Stochastic Optimization'
      ])
