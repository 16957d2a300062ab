# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tracewizard/types.py
# DESCRIPTION:    Common types for COBOL trace processing
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

"""tracewizard.types - Common types for COBOL trace processing.
"""

from __future__ import annotations

from enum import Enum, auto


class IdKind(Enum):
    """Kinds of objects that receive sequential IDs within a trace run.
    """
    STATEMENT = auto()
    PARAMETER = auto()
    ERROR = auto()
    FRAME = auto()

class IdAllocator:
    """Source of sequential IDs for one trace run.

    Every `.IdKind` has its own sequence that starts with 1. Instances are never
    shared between runs, so runs processed in parallel cannot collide.
    """
    def __init__(self):
        self.__next: dict[IdKind, int] = dict.fromkeys(IdKind, 1)
    def allocate(self, kind: IdKind) -> int:
        """Returns next ID for `kind`.
        """
        result = self.__next[kind]
        self.__next[kind] += 1
        return result
    def peek(self, kind: IdKind) -> int:
        """Returns ID that would be assigned by next `allocate()` call for `kind`.
        """
        return self.__next[kind]
