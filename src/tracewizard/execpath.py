# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tracewizard/execpath.py
# DESCRIPTION:    Execution path reconstruction from COBOL traces
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

"""tracewizard.execpath - Execution path reconstruction from COBOL traces.

`CobolExecutionPathProcessor` reads trace lines one at a time and builds the call
tree of traced program together with catalog of executed SQL statements. SQL calls
have no explicit end markers, so their nesting is inferred from cursor numbers: SQL
call is closed by next execution on the same cursor, and never contains SQL calls
on lower or equal cursor number. Programmatic calls are matched by their nest token
and function name.

Each line is first classified by `classify_line()` into single `.TraceLine` that
carries the line kind and all captured values. Processor then dispatches on the
line kind.
"""

from __future__ import annotations

import logging
import re
import weakref
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto

from firebird.base.types import STOP, Error, Sentinel

from .config import ProcessorConfig
from .cursor import CursorTable
from .data import (CallFrame, CallType, SQLByFrom, SQLByWhere, StackTraceEntry, StatisticItem,
                   TraceData)
from .sql import SQLError, SQLType, Statement, parse_bind, parse_statement
from .types import IdKind

log = logging.getLogger(__name__)

#: Statistics category for call tree statistics
CATEGORY_EXECUTION_PATH = 'Execution Path'
#: Statistics category for SQL statement statistics
CATEGORY_SQL_STATEMENTS = 'SQL Statements'

PATTERN_LINE_VALID = re.compile(r'(CEX Stmt=)|(COM Stmt=)|(GETSTMT Stmt=)|(GETSTMT Stmt\(cached\)=)'
                                r'|(Bind position=\d+)|(Bind-\d+)|(Commit)|(Disconnect)'
                                r'|(Fetch)|(EPO error)|(ERR rtncd=)'
                                r'|(>>>\s+(start|resume))|(<<<\s+(end|reend))')
PATTERN_LINE_CURSOR = re.compile(r'^\d+:\d+:\d+.\d+\s*(\d+).*?#(\d+)')
PATTERN_NEW_STATEMENT = re.compile(r'^\d+:\d+:\d+.\d+\s*(\d+).*?#(\d+).*?(COM|CEX) Stmt=(.*)')
PATTERN_STATEMENT_RC = re.compile(r'RC=(-?\d+)\s+(?:COM|CEX) Stmt=')
PATTERN_STATEMENT_NAME = re.compile(r'GETSTMT Stmt(\(cached\)|)=(\w+)')
PATTERN_DISCONNECT = re.compile(r'#(\d+)\s+RC=\d+\s+Disconnect')
PATTERN_BIND_MARKER = re.compile(r'Bind(\sposition=|-)(\d+)')
PATTERN_BIND_POSITION = re.compile(r'Bind(\sposition=|-)(\d+), type=(\w+)')
PATTERN_FETCH = re.compile(r'RC=(-?\d+)\s+Fetch')
PATTERN_ERROR_POSITION = re.compile(r'EPO error pos=(\d+)')
PATTERN_ERROR = re.compile(r'ERR rtncd=(-?\d+) msg=(.*)')
PATTERN_CALL_START = re.compile(r'>>>\s+(start-ext|start|resume)\s+Nest=(\S+)\s+(\S+)')
PATTERN_CALL_END = re.compile(r'<<<\s+(end-ext|end|reend)\s+Nest=(\S+)\s+(\S+)'
                              r'(?:.*?\bDur=(\d+(?:\.\d*)?))?')


class LineKind(Enum):
    """Trace line category.
    """
    IGNORED = auto()
    NEW_STATEMENT = auto()
    DISCONNECT = auto()
    BIND = auto()
    FETCH = auto()
    ERROR_POSITION = auto()
    ERROR_MESSAGE = auto()
    CALL_START = auto()
    CALL_END = auto()
    OTHER = auto()

@dataclass(frozen=True)
class TraceLine:
    """Classified trace line with captured values.
    """
    #: Line category
    kind: LineKind
    #: Line text
    text: str
    #: Line counter written by COBOL runtime
    trace_line: int | None = None
    #: Cursor number
    cursor: int | None = None
    #: Bind position
    bind_position: int | None = None
    #: Statement name from GETSTMT line
    statement_name: str | None = None
    #: SQL statement text
    statement: str | None = None
    #: Return code
    return_code: int | None = None
    #: Call marker mode (start, start-ext, resume, end, end-ext, reend)
    mode: str | None = None
    #: Nest token
    nest: str | None = None
    #: Function name
    function: str | None = None
    #: Call duration
    duration: float | None = None
    #: SQL error position
    error_position: int | None = None
    #: SQL error message
    message: str | None = None

def classify_line(text: str) -> TraceLine:
    """Returns `.TraceLine` for single trace line.

    Cursor number, bind position and statement name are captured for all lines,
    including ignored ones, as they are needed when the line is looked at as the
    previous one.
    """
    values = {}
    if (match := PATTERN_LINE_CURSOR.match(text)) is not None:
        values['trace_line'] = int(match.group(1))
        values['cursor'] = int(match.group(2))
    if (match := PATTERN_BIND_POSITION.search(text)) is not None:
        values['bind_position'] = int(match.group(2))
    if (match := PATTERN_STATEMENT_NAME.search(text)) is not None:
        values['statement_name'] = match.group(2)
    #
    if PATTERN_LINE_VALID.search(text) is None:
        return TraceLine(LineKind.IGNORED, text, **values)
    if (match := PATTERN_NEW_STATEMENT.match(text)) is not None:
        values['trace_line'] = int(match.group(1))
        values['cursor'] = int(match.group(2))
        values['statement'] = match.group(4)
        if (rc_match := PATTERN_STATEMENT_RC.search(text)) is not None:
            values['return_code'] = int(rc_match.group(1))
        return TraceLine(LineKind.NEW_STATEMENT, text, **values)
    if (match := PATTERN_DISCONNECT.search(text)) is not None:
        values['cursor'] = int(match.group(1))
        return TraceLine(LineKind.DISCONNECT, text, **values)
    if PATTERN_BIND_MARKER.search(text) is not None:
        return TraceLine(LineKind.BIND, text, **values)
    if (match := PATTERN_FETCH.search(text)) is not None:
        values['return_code'] = int(match.group(1))
        return TraceLine(LineKind.FETCH, text, **values)
    if (match := PATTERN_ERROR_POSITION.search(text)) is not None:
        values['error_position'] = int(match.group(1))
        return TraceLine(LineKind.ERROR_POSITION, text, **values)
    if (match := PATTERN_ERROR.search(text)) is not None:
        values['return_code'] = int(match.group(1))
        values['message'] = match.group(2)
        return TraceLine(LineKind.ERROR_MESSAGE, text, **values)
    if (match := PATTERN_CALL_START.search(text)) is not None:
        return TraceLine(LineKind.CALL_START, text, mode=match.group(1), nest=match.group(2),
                         function=match.group(3), **values)
    if (match := PATTERN_CALL_END.search(text)) is not None:
        duration = match.group(4)
        return TraceLine(LineKind.CALL_END, text, mode=match.group(1), nest=match.group(2),
                         function=match.group(3),
                         duration=None if duration is None else float(duration), **values)
    return TraceLine(LineKind.OTHER, text, **values)

class CobolExecutionPathProcessor:
    """Builds call tree and SQL statement catalog from COBOL trace.

    Lifecycle of single trace run:

    1. `init()` binds processor to `~tracewizard.data.TraceData`.
    2. `process_line()` is called for every trace line in order.
    3. `complete()` links SQL calls to statements and stack traces to calls, and
       adds statistics.

    Alternatively, use `push()` or `parse()` that drive the lifecycle.

    Arguments:
        config: Processor configuration. Default configuration is used when not provided.
    """
    def __init__(self, config: ProcessorConfig | None=None):
        #: Processor configuration
        self.config: ProcessorConfig = ProcessorConfig() if config is None else config
        self.__data: TraceData | None = None
        self.__cursors: CursorTable | None = None
        self.__chain: list[CallFrame] = []
        self.__root_ids: set[int] = set()
        self.__pending: list[tuple[CallFrame, Statement]] = []
        self.__recorded: set[int] = set()
        self.__current: Statement | None = None
        self.__prev: TraceLine = TraceLine(LineKind.IGNORED, '')
        self.__line_no: int = 0
        self.__max_depth: int = 0
        self.__sql_exec_count: int = 0
        self.__completed: bool = False
        self.__handlers = {LineKind.NEW_STATEMENT: self.__on_new_statement,
                           LineKind.DISCONNECT: self.__on_disconnect,
                           LineKind.BIND: self.__on_bind,
                           LineKind.FETCH: self.__on_fetch,
                           LineKind.ERROR_POSITION: self.__on_error_position,
                           LineKind.ERROR_MESSAGE: self.__on_error_message,
                           LineKind.CALL_START: self.__on_call_start,
                           LineKind.CALL_END: self.__on_call_end,
                           LineKind.OTHER: self.__on_other}
    def __record(self, statement: Statement | None) -> None:
        if statement is not None and not statement.is_placeholder \
           and statement.id not in self.__recorded:
            self.__recorded.add(statement.id)
            self.__data.statements.append(statement)
    def __activate(self, statement: Statement) -> None:
        if statement is not self.__current:
            self.__record(self.__current)
            self.__current = statement
    def __statement_for(self, line: TraceLine) -> Statement | None:
        if line.cursor is not None and line.cursor in self.__cursors:
            return self.__cursors.get(line.cursor)
        return self.__current
    def __push(self, call: CallFrame) -> None:
        self.__chain.append(call)
        self.__max_depth = max(self.__max_depth, len(self.__chain))
    def __add_root(self, call: CallFrame) -> None:
        self.__root_ids.add(call.id)
        self.__data.execution_path.append(call)
    def __attach(self, call: CallFrame, line_no: int) -> None:
        chain = self.__chain
        if chain and chain[-1].nesting_key == call.nesting_key:
            chain.pop().close(line_no)
        if chain and chain[-1].type is CallType.COBOL_SQL:
            while chain and chain[-1].indent is not None and chain[-1].indent >= call.indent:
                chain.pop().close(line_no)
        if chain:
            chain[-1].add_child(call)
        else:
            self.__add_root(call)
        self.__push(call)
        self.__data.all_calls.append(call)
    def __adopt(self, call: CallFrame) -> None:
        if self.__chain and call.parent is None and call.id not in self.__root_ids:
            self.__chain[-1].add_child(call)
    def __add_sql_call(self, line: TraceLine, line_no: int, statement: Statement) -> None:
        self.__sql_exec_count += 1
        call = CallFrame(self.__data.ids.allocate(IdKind.FRAME), CallType.COBOL_SQL, line_no,
                         function=statement.text, indent=line.cursor,
                         context=f"Cursor: {line.cursor} Line Number: {line.trace_line}")
        self.__pending.append((call, statement))
        self.__attach(call, line_no)
        log.debug("SQL call %d on cursor %d at line %d", call.id, line.cursor, line_no)
    def __is_new_execution(self, line: TraceLine) -> bool:
        prev = self.__prev
        if line.cursor is None or prev.cursor is None:
            return False
        if line.cursor != prev.cursor:
            return True
        if line.bind_position is not None and prev.bind_position is not None:
            return line.bind_position == 1 or line.bind_position < prev.bind_position
        return False
    def __new_execution(self, line: TraceLine, line_no: int) -> None:
        statement = self.__cursors.get(line.cursor)
        log.debug("New execution on cursor %d at line %d", line.cursor, line_no)
        self.__activate(statement)
        statement.bind_values.clear()
        statement.line_number = line_no
        self.__add_sql_call(line, line_no, statement)
    def __on_new_statement(self, line: TraceLine, line_no: int) -> None:
        statement = parse_statement(line.statement, self.__data.ids)
        if self.__prev.statement_name is not None:
            statement.name = self.__prev.statement_name
        statement.cursor_number = line.cursor
        statement.return_code = line.return_code
        statement.cobol = True
        statement.context = f"Cursor: {line.cursor} Line Number: {line.trace_line}"
        statement.line_number = line_no
        self.__activate(statement)
        self.__cursors.bind(line.cursor, statement)
        self.__add_sql_call(line, line_no, statement)
    def __on_disconnect(self, line: TraceLine, line_no: int) -> None: # noqa: ARG002
        self.__cursors.disconnect(line.cursor)
    def __on_bind(self, line: TraceLine, line_no: int) -> None:
        bind = parse_bind(line.text, self.__data.ids, line_no)
        if self.__is_new_execution(line):
            self.__new_execution(line, line_no)
        elif self.__current is None:
            raise Error(f"Bind parameter without active statement (line {line_no}): {line.text}",
                        line_no=line_no, line=line.text)
        self.__current.bind_values.append(bind)
    def __on_fetch(self, line: TraceLine, line_no: int) -> None: # noqa: ARG002
        if self.config.count_fetches.value and (statement := self.__statement_for(line)) is not None:
            statement.fetch_count += 1
    def __on_error_position(self, line: TraceLine, line_no: int) -> None:
        if (statement := self.__statement_for(line)) is None:
            log.warning("SQL error position without active statement (line %d)", line_no)
            return
        statement.is_error = True
        statement.error = SQLError(self.__data.ids.allocate(IdKind.ERROR),
                                   position=line.error_position)
    def __on_error_message(self, line: TraceLine, line_no: int) -> None:
        if (statement := self.__statement_for(line)) is None:
            log.warning("SQL error without active statement (line %d)", line_no)
            return
        statement.is_error = True
        if statement.error is None:
            statement.error = SQLError(self.__data.ids.allocate(IdKind.ERROR))
        statement.error.return_code = line.return_code
        statement.error.message = line.message
    def __on_call_start(self, line: TraceLine, line_no: int) -> None:
        call = CallFrame(self.__data.ids.allocate(IdKind.FRAME),
                         CallType.EXTERNAL if line.mode == 'start-ext' else CallType.NORMAL,
                         line_no, function=line.function, nest=line.nest,
                         context=f"Nest: {line.nest}")
        if not self.__chain or line.nest == self.config.top_level_nest.value:
            self.__add_root(call)
        self.__push(call)
        self.__data.all_calls.append(call)
    def __on_call_end(self, line: TraceLine, line_no: int) -> None:
        key = (line.nest, line.function)
        if not any(call.nesting_key == key for call in self.__chain):
            raise Error(f"Unmatched end marker Nest={line.nest} {line.function} (line {line_no})",
                        nest=line.nest, function=line.function, line_no=line_no)
        call = self.__chain.pop()
        while call.nesting_key != key:
            call.close(line_no)
            self.__adopt(call)
            call = self.__chain.pop()
        call.close(line_no)
        if line.duration is not None:
            call.duration = line.duration
        if call.nest != self.config.top_level_nest.value:
            self.__adopt(call)
    def __on_other(self, line: TraceLine, line_no: int) -> None:
        if self.__is_new_execution(line):
            self.__new_execution(line, line_no)
    def __find_call_for_line(self, line_no: int) -> CallFrame | None:
        found = None
        for call in self.__data.all_calls:
            if call.contains_line(line_no):
                found = call
        return found
    def __link_statements(self) -> int:
        unresolved = 0
        for call, statement in self.__pending:
            linked = self.__data.statements.find(lambda s, line_no=call.start_line:
                                                 s.line_number == line_no)
            if linked is None and not statement.is_placeholder:
                linked = statement
            if linked is None:
                log.warning("No SQL statement found for call at line %d", call.start_line)
                unresolved += 1
                continue
            call.statement = linked
            linked.parent_call = call.parent
            call.duration = linked.duration
            if linked.is_error:
                call.mark_error()
        return unresolved
    def __link_stack_traces(self) -> int:
        unresolved = 0
        for entry in self.__data.stack_traces:
            call = None
            for offset in range(self.config.stack_trace_lookback.value + 1):
                if (call := self.__find_call_for_line(entry.line_number - offset)) is not None:
                    break
            if call is None:
                log.warning("No call found for stack trace at line %d", entry.line_number)
                unresolved += 1
                continue
            call.stack_trace = entry
            entry.parent = weakref.proxy(call)
            call.mark_error()
        return unresolved
    def __add_statistics(self, unresolved: int) -> None:
        data = self.__data
        data.max_call_depth = self.__max_depth
        add = data.statistics.append
        add(StatisticItem(CATEGORY_EXECUTION_PATH, 'Maximum Call Depth', self.__max_depth))
        add(StatisticItem(CATEGORY_EXECUTION_PATH, 'Total Calls', self.__sql_exec_count))
        add(StatisticItem(CATEGORY_EXECUTION_PATH, 'Errored Calls',
                          sum(1 for call in data.all_calls if call.has_error)))
        add(StatisticItem(CATEGORY_EXECUTION_PATH, 'Unresolved Links', unresolved))
        #
        by_where: dict[str, SQLByWhere] = {}
        by_from: dict[str, SQLByFrom] = {}
        for statement in data.statements:
            if statement.type is not SQLType.INSERT:
                if (group := by_where.get(statement.where_clause)) is None:
                    group = by_where[statement.where_clause] = \
                        SQLByWhere(statement.where_clause, 0, 0.0, False)
                group.call_count += 1
                group.total_time += statement.duration
                group.has_error = group.has_error or statement.is_error
            if statement.type in (SQLType.SELECT, SQLType.DELETE):
                if (group := by_from.get(statement.from_clause)) is None:
                    group = by_from[statement.from_clause] = \
                        SQLByFrom(statement.from_clause, 0, 0.0, False)
                group.call_count += 1
                group.total_time += statement.duration
                group.has_error = group.has_error or statement.is_error
        data.sql_by_where.extend(by_where.values())
        data.sql_by_from.extend(by_from.values())
        #
        add(StatisticItem(CATEGORY_SQL_STATEMENTS, 'Total Count', len(data.statements)))
        if len(data.statements) > 0:
            # Ties go to the statement created last
            longest = max(reversed(data.statements), key=lambda s: s.duration)
            add(StatisticItem(CATEGORY_SQL_STATEMENTS, 'Longest Execution', longest.duration,
                              longest))
            most_fetches = max(reversed(data.statements), key=lambda s: s.fetch_count)
            add(StatisticItem(CATEGORY_SQL_STATEMENTS, 'Most Fetches', most_fetches.fetch_count,
                              most_fetches))
    def init(self, data: TraceData) -> None:
        """Binds processor to run context and resets processing state.

        Arguments:
            data: Run context that receives processing results.
        """
        self.__data = data
        self.__cursors = CursorTable(data.ids)
        self.__chain.clear()
        self.__root_ids.clear()
        self.__pending.clear()
        self.__recorded.clear()
        self.__current = None
        self.__prev = TraceLine(LineKind.IGNORED, '')
        self.__line_no = 0
        self.__max_depth = 0
        self.__sql_exec_count = 0
        self.__completed = False
    def process_line(self, text: str, line_no: int) -> None:
        """Processes single trace line.

        Arguments:
            text: Trace line.
            line_no: 1-based line number. Lines must be passed in increasing order.

        Raises:
            firebird.base.types.Error: When processor is not initialized, line is out
                of order, bind line is malformed or end marker has no matching call.
        """
        if self.__data is None:
            raise Error("Processor is not initialized")
        if self.__completed:
            raise Error("Trace run is already completed")
        if line_no <= self.__line_no:
            raise Error(f"Line {line_no} is out of order (last line {self.__line_no})",
                        line_no=line_no)
        line = classify_line(text.rstrip('\r\n'))
        if line.kind is not LineKind.IGNORED:
            self.__handlers[line.kind](line, line_no)
        self.__line_no = line_no
        self.__prev = line
    def complete(self, data: TraceData | None=None) -> None:
        """Finishes trace run.

        Links SQL calls with statements and stack trace records with calls, propagates
        errors to ancestor calls, adds statistics and freezes lists in run context.

        Arguments:
            data: Run context passed to `init()` (optional).
        """
        if self.__data is None:
            raise Error("Processor is not initialized")
        if data is not None and data is not self.__data:
            raise Error("Run context differs from the one passed to init()")
        if self.__completed:
            raise Error("Trace run is already completed")
        self.__record(self.__current)
        # Calls left open by truncated trace still report to their caller
        while self.__chain:
            self.__adopt(self.__chain.pop())
        unresolved = self.__link_statements() + self.__link_stack_traces()
        self.__add_statistics(unresolved)
        self.__data.freeze()
        self.__completed = True
    def push(self, line: str | Sentinel) -> None:
        """Push interface.

        Lines are numbered from 1. Processor is bound to new `~tracewizard.data.TraceData`
        on first push when `init()` was not called.

        Arguments:
            line: Single trace line, or `~firebird.base.types.STOP` sentinel that
                  completes the trace run.
        """
        if self.__data is None:
            self.init(TraceData())
        if line is STOP:
            self.complete()
        else:
            self.process_line(line, self.__line_no + 1)
    def parse(self, lines: Iterable[str],
              stack_traces: Iterable[StackTraceEntry]=()) -> TraceData:
        """Processes whole trace.

        Arguments:
            lines: Iterable that returns trace lines.
            stack_traces: Stack trace records found in the trace.

        Returns:
            Completed run context.
        """
        data = TraceData(stack_traces)
        self.init(data)
        for line_no, line in enumerate(lines, 1):
            self.process_line(line, line_no)
        self.complete(data)
        return data
    @property
    def data(self) -> TraceData | None:
        """Run context the processor is bound to.
        """
        return self.__data
    @property
    def depth(self) -> int:
        """Current depth of call stack.
        """
        return len(self.__chain)
