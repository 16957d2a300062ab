# SPDX-FileCopyrightText: 2016-present Trace Wizard contributors
#
# SPDX-License-Identifier: MIT
#
# PROGRAM/MODULE: tracewizard-cobol
# FILE:           tracewizard/sql.py
# DESCRIPTION:    SQL statement and bind parameter parsing
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

"""tracewizard.sql - SQL statements and bind parameters captured from COBOL traces.

`Statement` derives statement type, WHERE and FROM clauses, referenced tables and
the content-hash SQL ID from statement text when it's created. The SQL ID uses the
same algorithm as Oracle's `SQL_ID`, so IDs can be compared with values reported
by the database and by other tools.

`parse_bind()` extracts single bind parameter from a bind line. Binds are written
in three layouts::

    Bind position=<n>, type=<type>, length=<n>, value=<value>
    Bind-<n>, type=<type>, length=<n>, value=<value>
    Bind-<n>, type=SQLPSPD, precision=<n>, scale=<n>, value=<value>
"""

from __future__ import annotations

import hashlib
import re
import struct
from dataclasses import dataclass
from enum import Enum

from firebird.base.types import Error

from .types import IdAllocator, IdKind

#: Digits used by SQL ID (base 32 without 'e', 'i', 'l' and 'o')
SQL_ID_ALPHABET = '0123456789abcdfghjkmnpqrstuvwxyz'
#: Number of digits in SQL ID
SQL_ID_LENGTH = 13

#: Bind type with precision/scale layout
BIND_TYPE_DECIMAL = 'SQLPSPD'

PATTERN_WHERE = re.compile(r' WHERE (.*?)(\bORDER\b|$)', re.IGNORECASE)
PATTERN_BIND_TYPE = re.compile(r'Bind(\sposition=|-)(\d+), type=(\w+)')
PATTERN_BIND_VALUE = re.compile(r'length=(\d+), value=(.*)')
PATTERN_BIND_DECIMAL_VALUE = re.compile(r'precision=(\d+), scale=(\d+), value=(.*)')


class SQLType(Enum):
    """SQL statement type.
    """
    SELECT = 'SELECT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    INSERT = 'INSERT'

# Order matters, first matching prefix wins.
_TYPE_PREFIXES = (SQLType.SELECT, SQLType.UPDATE, SQLType.DELETE, SQLType.INSERT)

_FROM_PATTERNS = {
    SQLType.SELECT: re.compile(r'\s+FROM\b\s*(.*?)\s*(\bWHERE\b|$)', re.IGNORECASE),
    SQLType.UPDATE: re.compile(r'UPDATE\s*(.*?)\s*(\bSET\b|$)', re.IGNORECASE),
    SQLType.INSERT: re.compile(r'INTO\s*(.*?)\s*(\bVALUES\b|\(|$)', re.IGNORECASE),
    SQLType.DELETE: re.compile(r'DELETE FROM\s*(.*?)\s*(\bWHERE\b|$)', re.IGNORECASE),
    }

def compute_sql_id(text: str) -> str:
    """Returns 13 character content-hash ID for SQL statement text.

    Text is encoded as ASCII (other characters are replaced with '?') and terminated
    with NUL byte. From MD5 digest of these bytes, the bytes 8-11 and 12-15 are read
    as two little-endian 32-bit words that form high and low half of 64-bit number.
    The number is then written as base-32 number with 13 digits.
    """
    digest = hashlib.md5((text + '\0').encode('ascii', errors='replace')).digest()
    msb, lsb = struct.unpack_from('<II', digest, 8)
    value = (msb << 32) | lsb
    return ''.join(SQL_ID_ALPHABET[(value >> (i * 5)) % 32]
                   for i in reversed(range(SQL_ID_LENGTH)))

@dataclass
class BoundParameter:
    """Value bound to SQL statement parameter.
    """
    #: Parameter ID (unique within trace run)
    id: int
    #: 1-based parameter position
    index: int
    #: Bind type tag, e.g. 'SQLPSTD'
    type_name: str
    #: Value length (not used by SQLPSPD binds)
    length: int | None = None
    #: Value precision (SQLPSPD binds only)
    precision: int | None = None
    #: Value scale (SQLPSPD binds only)
    scale: int | None = None
    #: Value as written in trace
    value: str = ''

@dataclass
class SQLError:
    """SQL error reported for a statement.
    """
    #: Error ID (unique within trace run)
    id: int
    #: Error position within statement text
    position: int | None = None
    #: Return code
    return_code: int | None = None
    #: Error message
    message: str | None = None

class Statement:
    """SQL statement executed on COBOL cursor.

    Statement type, clauses, tables and SQL ID are derived once from trimmed
    statement text when instance is created. Statement with empty text is a
    placeholder that marks a cursor without open statement.

    Arguments:
        statement_id: Statement ID (unique within trace run).
        text: SQL statement text.
    """
    def __init__(self, statement_id: int, text: str=''):
        #: Statement ID (unique within trace run)
        self.id: int = statement_id
        #: Trace line number of the latest execution
        self.line_number: int = 0
        #: Cursor number
        self.cursor_number: int = 0
        #: Statement name (from GETSTMT line)
        self.name: str | None = None
        #: Return code reported with statement
        self.return_code: int | None = None
        #: Execution time
        self.exec_time: float = 0.0
        #: Fetch time
        self.fetch_time: float = 0.0
        #: Number of fetches
        self.fetch_count: int = 0
        #: True if statement failed
        self.is_error: bool = False
        #: Error details
        self.error: SQLError | None = None
        #: True for statements from COBOL runtime
        self.cobol: bool = False
        #: Context label
        self.context: str = ''
        #: Bind values for the latest execution
        self.bind_values: list[BoundParameter] = []
        #: Parent of the call frame executing this statement (weakref.proxy)
        self.parent_call = None
        #
        self.__text: str = text.strip()
        self.__type: SQLType | None = None
        for sql_type in _TYPE_PREFIXES:
            if self.__text[:len(sql_type.value)].upper() == sql_type.value:
                self.__type = sql_type
                break
        if (match := PATTERN_WHERE.search(self.__text)) is not None:
            self.__where_clause: str = match.group(1).strip()
        else:
            self.__where_clause = ''
        self.__from_clause: str = ''
        self.__tables: list[str] = []
        if self.__type is not None:
            if (match := _FROM_PATTERNS[self.__type].search(self.__text)) is not None:
                self.__from_clause = match.group(1).strip()
            if self.__type is SQLType.SELECT:
                for part in self.__from_clause.split(','):
                    if words := part.split():
                        self.__tables.append(words[0])
            elif self.__from_clause:
                self.__tables.append(self.__from_clause)
        self.__sql_id: str = compute_sql_id(self.__text)
    def __str__(self):
        return self.__text
    def __repr__(self):
        return f"Statement(id={self.id}, sql_id={self.__sql_id!r}, text={self.__text!r})"
    @property
    def text(self) -> str:
        """Trimmed statement text.
        """
        return self.__text
    @property
    def type(self) -> SQLType | None:
        """Statement type, or None when text doesn't start with known keyword.
        """
        return self.__type
    @property
    def where_clause(self) -> str:
        """WHERE clause (empty string if there is none).
        """
        return self.__where_clause
    @property
    def from_clause(self) -> str:
        """FROM clause for SELECT/DELETE, target table for UPDATE/INSERT.
        """
        return self.__from_clause
    @property
    def tables(self) -> list[str]:
        """Names of referenced tables (aliases are discarded).
        """
        return self.__tables
    @property
    def sql_id(self) -> str:
        """Content-hash SQL ID.
        """
        return self.__sql_id
    @property
    def duration(self) -> float:
        """Total time (execution + fetch).
        """
        return self.exec_time + self.fetch_time
    @property
    def is_placeholder(self) -> bool:
        """True for placeholder without statement text.
        """
        return not self.__text

def parse_statement(text: str, ids: IdAllocator) -> Statement:
    """Returns new `.Statement` for SQL text with ID from `ids`.
    """
    return Statement(ids.allocate(IdKind.STATEMENT), text)

def parse_bind(line: str, ids: IdAllocator, line_no: int=0) -> BoundParameter:
    """Parses bind line.

    Arguments:
        line: Trace line with bind marker.
        ids: ID allocator for the trace run.
        line_no: Line number (used in error reports).

    Raises:
        firebird.base.types.Error: When bind line has unknown layout.
    """
    if (match := PATTERN_BIND_TYPE.search(line)) is None:
        raise Error(f"Bind marker expected (line {line_no}): {line}", line_no=line_no, line=line)
    index = int(match.group(2))
    type_name = match.group(3)
    if type_name == BIND_TYPE_DECIMAL:
        if (values := PATTERN_BIND_DECIMAL_VALUE.search(line, match.end())) is None:
            raise Error(f"Malformed bind parameter (line {line_no}): {line}",
                        line_no=line_no, line=line)
        return BoundParameter(ids.allocate(IdKind.PARAMETER), index, type_name,
                              precision=int(values.group(1)), scale=int(values.group(2)),
                              value=values.group(3))
    if (values := PATTERN_BIND_VALUE.search(line, match.end())) is None:
        raise Error(f"Malformed bind parameter (line {line_no}): {line}",
                    line_no=line_no, line=line)
    return BoundParameter(ids.allocate(IdKind.PARAMETER), index, type_name,
                          length=int(values.group(1)), value=values.group(2))
