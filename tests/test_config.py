# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tests/test_config.py
# DESCRIPTION:    Tests for tracewizard.config module
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

"""tracewizard-cobol - Tests for tracewizard.config module
"""

from configparser import ConfigParser

import pytest
from firebird.base.types import Error

from tracewizard.config import ProcessorConfig

# --- Test Functions ---

def test_01_defaults():
    """Tests default configuration values."""
    conf = ProcessorConfig()
    assert conf.name == 'processor'
    assert conf.top_level_nest.value == '00'
    assert conf.stack_trace_lookback.value == 1
    assert conf.count_fetches.value
    conf.validate()

def test_02_load_config():
    """Tests configuration loaded from ConfigParser."""
    parser = ConfigParser()
    parser.read_string("""[processor]
top_level_nest = 01
stack_trace_lookback = 3
count_fetches = no
""")
    conf = ProcessorConfig()
    conf.load_config(parser, 'processor')
    assert conf.top_level_nest.value == '01'
    assert conf.stack_trace_lookback.value == 3
    assert not conf.count_fetches.value

def test_03_named_section():
    """Tests configuration loaded from section with custom name."""
    parser = ConfigParser()
    parser.read_string("""[cobol]
top_level_nest = TOP
stack_trace_lookback = 0
count_fetches = yes
""")
    conf = ProcessorConfig('cobol')
    conf.load_config(parser, 'cobol')
    assert conf.name == 'cobol'
    assert conf.top_level_nest.value == 'TOP'
    assert conf.stack_trace_lookback.value == 0
    assert conf.count_fetches.value

def test_04_negative_lookback():
    """Tests that negative stack trace lookback is rejected."""
    conf = ProcessorConfig()
    with pytest.raises(ValueError, match="Negative numbers not allowed"):
        conf.stack_trace_lookback.value = -1
    assert conf.stack_trace_lookback.value == 1
    parser = ConfigParser()
    parser.read_string("""[processor]
stack_trace_lookback = -2
""")
    with pytest.raises(Error, match="Negative numbers not allowed"):
        conf.load_config(parser, 'processor')
    assert conf.stack_trace_lookback.value == 1
