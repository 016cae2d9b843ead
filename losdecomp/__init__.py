# -*- coding: utf-8 -*-
"""
LOSDecomp
------------

Main package for LOSDecomp.
"""
