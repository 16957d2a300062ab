# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tracewizard/cursor.py
# DESCRIPTION:    Statements open on COBOL cursors
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

"""tracewizard.cursor - Statements open on COBOL cursors.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .sql import Statement
from .types import IdAllocator, IdKind

log = logging.getLogger(__name__)

class CursorTable:
    """Maps cursor numbers to statements currently open on them.

    Cursor without open statement holds a placeholder `~tracewizard.sql.Statement`
    (with empty text). Cursor 0 holds a placeholder from the beginning.

    Arguments:
        ids: ID allocator for the trace run (used for placeholders).
    """
    def __init__(self, ids: IdAllocator):
        self.__ids: IdAllocator = ids
        self.__slots: dict[int, Statement] = {0: self.__placeholder()}
    def __placeholder(self) -> Statement:
        return Statement(self.__ids.allocate(IdKind.STATEMENT))
    def __len__(self):
        return len(self.__slots)
    def __contains__(self, cursor: int):
        return cursor in self.__slots
    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self.__slots))
    def bind(self, cursor: int, statement: Statement) -> None:
        """Registers `statement` as open on `cursor`, replacing any previous one.
        """
        self.__slots[cursor] = statement
    def get(self, cursor: int) -> Statement:
        """Returns statement open on `cursor`.

        Cursor that was never bound gets a placeholder.
        """
        if (statement := self.__slots.get(cursor)) is None:
            log.warning("Cursor %d used before any statement was bound to it", cursor)
            statement = self.__slots[cursor] = self.__placeholder()
        return statement
    def disconnect(self, cursor: int) -> None:
        """Replaces statement open on `cursor` with a placeholder.
        """
        log.debug("Cursor %d disconnected", cursor)
        self.__slots[cursor] = self.__placeholder()
