# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tracewizard/config.py
# DESCRIPTION:    Configuration of COBOL trace processing
# CREATED:        18.10.2026
#
# The contents of this file are subject to the MIT License
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
#
# Copyright (c) 2016 Timothy Slater
# All Rights Reserved.
#
# Contributor(s): Timothy Slater (original code)

"""tracewizard.config - Configuration of COBOL trace processing.

Example configuration section::

    [processor]
    top_level_nest = 00
    stack_trace_lookback = 1
    count_fetches = yes
"""

from __future__ import annotations

from firebird.base.config import BoolOption, Config, IntOption, StrOption


class ProcessorConfig(Config):
    """Configuration for `~tracewizard.execpath.CobolExecutionPathProcessor`.
    """
    def __init__(self, name: str='processor'):
        super().__init__(name)
        #: Nest token of top-level programmatic calls
        self.top_level_nest: StrOption = \
            StrOption('top_level_nest', "Nest token of top-level programmatic calls",
                      default='00')
        #: Number of preceding lines searched for frame owning a stack trace record
        self.stack_trace_lookback: IntOption = \
            IntOption('stack_trace_lookback',
                      "Number of preceding lines tried when no call contains stack trace line",
                      default=1)
        #: Whether fetch markers are counted
        self.count_fetches: BoolOption = \
            BoolOption('count_fetches', "Count fetches for SQL statements", default=True)
