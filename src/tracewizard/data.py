# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tracewizard/data.py
# DESCRIPTION:    Run context and call tree model
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

"""tracewizard.data - Run context and call tree model for COBOL trace processing.

This module holds everything a single trace run produces: the call frames of the
reconstructed execution path, the per-run ID allocator, externally supplied stack
trace records, statistics items and grouped SQL summaries. The `TraceData` instance
is shared between the processor and its callers; its lists are frozen when the
processor completes the run.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from firebird.base.collections import DataList

from .sql import Statement
from .types import IdAllocator


class CallType(Enum):
    """Kind of call frame.
    """
    NORMAL = 'Normal'
    CALL = 'Call'
    EXTERNAL = 'External'
    COBOL_SQL = 'CobolSql'
    SQL = 'Sql'

@dataclass
class StackTraceEntry:
    """Stack trace record parsed outside the engine.

    The processor only reads `line_number` and sets `parent` to the frame that owns
    the record.
    """
    #: Line number in trace where the record was emitted
    line_number: int
    #: Stack trace message
    message: str
    #: Owning `.CallFrame` (weakref.proxy), set by linkage
    parent: CallFrame | None = None

@dataclass
class StatisticItem:
    """Single named statistic produced by trace processing.
    """
    #: Statistic category, e.g. 'Execution Path'
    category: str
    #: Statistic label
    label: str
    #: Statistic value
    value: Any
    #: Object the statistic refers to (Statement or CallFrame)
    tag: Any = None

@dataclass
class SQLByWhere:
    """SQL statements grouped by WHERE clause.
    """
    where_clause: str
    call_count: int
    total_time: float
    has_error: bool

@dataclass
class SQLByFrom:
    """SQL statements grouped by FROM (target table) clause.
    """
    from_clause: str
    call_count: int
    total_time: float
    has_error: bool

class CallFrame:
    """Single node of reconstructed call tree.

    Parent owns its children. Child refers back to its parent through
    `weakref.proxy`, so the tree holds no strong reference cycles.
    """
    def __init__(self, frame_id: int, call_type: CallType, start_line: int, *,
                 function: str='', context: str='', nest: str | None=None,
                 indent: int | None=None):
        #: Frame ID (unique within trace run)
        self.id: int = frame_id
        #: Call kind
        self.type: CallType = call_type
        #: Context label
        self.context: str = context
        #: Line where the call starts
        self.start_line: int = start_line
        #: Nest token of programmatic calls
        self.nest: str | None = nest
        #: Cursor number of SQL calls
        self.indent: int | None = indent
        #: Function name or SQL statement text
        self.function: str = function
        #: Call duration
        self.duration: float = 0.0
        #: True if this call or any of its descendants failed
        self.has_error: bool = False
        #: Linked `~tracewizard.sql.Statement` (SQL calls only)
        self.statement: Statement | None = None
        #: Linked `.StackTraceEntry`
        self.stack_trace: StackTraceEntry | None = None
        #: Child calls in discovery order
        self.children: list[CallFrame] = []
        self.__stop_line: int = 0
        self.__parent: CallFrame | None = None
    def __repr__(self):
        return f"CallFrame(id={self.id}, type={self.type.name}, function={self.function!r}, " \
               f"start_line={self.start_line}, stop_line={self.__stop_line})"
    def add_child(self, child: CallFrame) -> None:
        """Appends `child` to children and makes this frame its parent.
        """
        child.__parent = weakref.proxy(self)
        self.children.append(child)
    def close(self, line_no: int) -> bool:
        """Sets stop line if it's not set yet.

        Returns:
            True if stop line was set by this call.
        """
        if self.__stop_line:
            return False
        self.__stop_line = line_no
        return True
    def contains_line(self, line_no: int) -> bool:
        """Returns True if closed frame spans `line_no`.
        """
        return bool(self.__stop_line) and self.start_line <= line_no <= self.__stop_line
    def ancestors(self) -> Iterator[CallFrame]:
        """Iterates over parent frames up to the root.
        """
        parent = self.__parent
        while parent is not None:
            yield parent
            parent = parent.parent
    def mark_error(self) -> None:
        """Flags this frame and all its ancestors as failed.
        """
        self.has_error = True
        for parent in self.ancestors():
            parent.has_error = True
    @property
    def parent(self) -> CallFrame | None:
        """Parent frame (weakref.proxy) or None for root frames.
        """
        return self.__parent
    @property
    def stop_line(self) -> int:
        """Line where the call ends, or 0 while the call is open.
        """
        return self.__stop_line
    @property
    def is_open(self) -> bool:
        """True while stop line is not set.
        """
        return not self.__stop_line
    @property
    def nesting_key(self) -> int | tuple[str, str]:
        """Cursor number for SQL calls, (nest, function) pair for other calls.
        """
        if self.indent is not None:
            return self.indent
        return (self.nest, self.function)

class TraceData:
    """Shared run context of single COBOL trace processing run.

    Arguments:
        stack_traces: Stack trace records found in the trace by an external parser.
    """
    def __init__(self, stack_traces: Iterable[StackTraceEntry]=()):
        #: ID allocator for this run
        self.ids: IdAllocator = IdAllocator()
        #: SQL statements in creation order
        self.statements: DataList[Statement] = DataList(type_spec=Statement, key_expr='item.id')
        #: All call frames in creation order
        self.all_calls: DataList[CallFrame] = DataList(type_spec=CallFrame, key_expr='item.id')
        #: Root call frames in discovery order
        self.execution_path: DataList[CallFrame] = DataList(type_spec=CallFrame, key_expr='item.id')
        #: Statistics
        self.statistics: DataList[StatisticItem] = DataList(type_spec=StatisticItem)
        #: Statements grouped by WHERE clause
        self.sql_by_where: DataList[SQLByWhere] = DataList(type_spec=SQLByWhere,
                                                           key_expr='item.where_clause')
        #: Statements grouped by FROM clause
        self.sql_by_from: DataList[SQLByFrom] = DataList(type_spec=SQLByFrom,
                                                         key_expr='item.from_clause')
        #: Maximum depth of call stack
        self.max_call_depth: int = 0
        #: Stack trace records
        self.stack_traces: list[StackTraceEntry] = list(stack_traces)
    def freeze(self) -> None:
        """Makes all lists read-only.
        """
        self.statements.freeze()
        self.all_calls.freeze()
        self.execution_path.freeze()
        self.statistics.freeze()
        self.sql_by_where.freeze()
        self.sql_by_from.freeze()
    def get_statistic(self, category: str, label: str) -> StatisticItem | None:
        """Returns statistic item with given category and label, or None.
        """
        return self.statistics.find(lambda item: item.category == category and item.label == label)
