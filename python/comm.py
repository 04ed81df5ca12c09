#!/usr/bin/env python3
"""
Name: comm
Description: select or reject lines common to two sorted files
Author: Mark-Jason Dominus (Original Perl Author)
License: public domain
"""

import sys
import os
import argparse
import queue
import threading
from collections import namedtuple

# Constants
EX_SUCCESS = 0
EX_FAILURE = 1
QUEUE_SIZE = 100
COLUMN_SEPARATOR = '\t'

program_name = os.path.basename(sys.argv[0])

# One merge result. Exactly one field is set; 'both' carries file2's text.
Row = namedtuple('Row', ['only1', 'only2', 'both'], defaults=(None, None, None))

# Closes a channel. Never equal to any line, including ''.
_CLOSED = object()


def read_lines(stream, name: str = '-'):
    """
    Yields the lines of an open text stream with the trailing run of
    carriage returns and newlines removed.

    A read error ends the sequence like end-of-file does: nothing partial
    is yielded, a diagnostic goes to stderr and the caller just sees the
    stream run out. A stream closed underneath us (the consumer has gone
    away) ends it silently.
    """
    try:
        for line in stream:
            yield line.rstrip('\r\n')
    except (OSError, ValueError) as e:
        if not getattr(stream, 'closed', False):
            print(f"{program_name}: {name}: read error: {e}", file=sys.stderr)


def compare_lines(a: str, b: str) -> int:
    """Ordinal (code point) comparison: negative, zero or positive."""
    return (a > b) - (a < b)


def compare_lines_folded(a: str, b: str) -> int:
    """Ordinal comparison of the case-folded lines."""
    return compare_lines(a.casefold(), b.casefold())


def _produce(iterable, channel):
    try:
        for item in iterable:
            channel.put(item)
    finally:
        channel.put(_CLOSED)


def _drain(channel):
    while True:
        item = channel.get()
        if item is _CLOSED:
            return
        yield item


def spawn(iterable, capacity: int = QUEUE_SIZE):
    """
    Runs 'iterable' on its own thread, feeding a bounded queue, and returns
    an iterator over the queue that ends when the producer is done.
    """
    channel = queue.Queue(maxsize=capacity)
    worker = threading.Thread(target=_produce, args=(iterable, channel), daemon=True)
    worker.start()
    return _drain(channel)


def _advance(lines):
    """Returns (True, next_line), or (False, None) once 'lines' is used up."""
    try:
        return True, next(lines)
    except StopIteration:
        return False, None


def classify(lines1, lines2, compare=compare_lines):
    """
    Merges two sorted line sequences into Rows.

    Only the current head of each side is held. Lines that compare equal
    are consumed together and reported once, with the text from the second
    sequence. Unsorted input is never rejected; it is merged by the same
    rule.
    """
    lines1, lines2 = iter(lines1), iter(lines2)
    ok1, line1 = _advance(lines1)
    ok2, line2 = _advance(lines2)

    while ok1 or ok2:
        if ok1 and ok2:
            order = compare(line1, line2)
            if order < 0:
                yield Row(only1=line1)
                ok1, line1 = _advance(lines1)
            elif order > 0:
                yield Row(only2=line2)
                ok2, line2 = _advance(lines2)
            else:
                yield Row(both=line2)
                ok1, line1 = _advance(lines1)
                ok2, line2 = _advance(lines2)
        elif ok1:
            yield Row(only1=line1)
            ok1, line1 = _advance(lines1)
        else:
            yield Row(only2=line2)
            ok2, line2 = _advance(lines2)


def merge_streams(stream1, stream2, compare=compare_lines, names=('-', '-'),
                  capacity: int = QUEUE_SIZE, threaded: bool = True):
    """
    Builds the whole pipeline and returns an iterator of Rows.

    With 'threaded' each input is read on its own thread and the merge runs
    on a third, all connected by queues of 'capacity' items. Without it the
    same generators are pulled directly by the caller. The rows come out in
    the same order either way.
    """
    lines1 = read_lines(stream1, names[0])
    lines2 = read_lines(stream2, names[1])

    if not threaded:
        return classify(lines1, lines2, compare)

    rows = classify(spawn(lines1, capacity), spawn(lines2, capacity), compare)
    return spawn(rows, capacity)


def format_row(row, show):
    """
    Renders a Row as tab-separated columns, dropping hidden columns' text
    but keeping their slots. Returns None if nothing would be printed.
    """
    fields = [text if text and shown else '' for text, shown in zip(row, show)]
    line = COLUMN_SEPARATOR.join(fields).rstrip(COLUMN_SEPARATOR)
    return line or None


def open_file_safely(filepath: str):
    """
    Opens a file for reading or returns the stdin stream.
    Performs checks for directories and handles file-not-found errors.
    """
    if filepath == '-':
        sys.stdin.reconfigure(errors='surrogateescape', newline='\n')
        return sys.stdin

    if os.path.isdir(filepath):
        print(f"{program_name}: '{filepath}' is a directory", file=sys.stderr)
        return None

    try:
        # Only '\n' ends a line; a '\r' before it is trimmed later.
        # Undecodable bytes ride through as surrogates and are written back as-is.
        return open(filepath, 'r', errors='surrogateescape', newline='\n')
    except OSError as e:
        print(f"{program_name}: Couldn't open file '{filepath}': {e.strerror}", file=sys.stderr)
        return None


def main():
    """Parses arguments and runs the line comparison logic."""
    parser = argparse.ArgumentParser(
        description="Select or reject lines common to two sorted files.",
        usage="%(prog)s [-123i] file1 file2"
    )
    parser.add_argument('-1', dest='suppress1', action='store_true', help='Suppress column 1 (lines unique to file1)')
    parser.add_argument('-2', dest='suppress2', action='store_true', help='Suppress column 2 (lines unique to file2)')
    parser.add_argument('-3', dest='suppress3', action='store_true', help='Suppress column 3 (lines common to both files)')
    parser.add_argument('-i', dest='ignore_case', action='store_true', help='Compare lines case-insensitively')
    parser.add_argument('file1', help='First file to compare, or - for stdin.')
    parser.add_argument('file2', help='Second file to compare, or - for stdin.')

    args = parser.parse_args()

    # show_col[i] is True if column i+1 should be printed.
    show_col = [not args.suppress1, not args.suppress2, not args.suppress3]

    if args.file1 == '-' and args.file2 == '-':
        parser.error("only one file argument may be stdin")

    f1 = open_file_safely(args.file1)
    if not f1:
        sys.exit(EX_FAILURE)

    f2 = open_file_safely(args.file2)
    if not f2:
        f1.close()
        sys.exit(EX_FAILURE)

    compare = compare_lines_folded if args.ignore_case else compare_lines
    sys.stdout.reconfigure(errors='surrogateescape')

    try:
        with f1, f2:
            rows = merge_streams(f1, f2, compare, names=(args.file1, args.file2))
            for row in rows:
                line = format_row(row, show_col)
                if line is not None:
                    print(line)
    except BrokenPipeError:
        # The reader went away (e.g. `comm a b | head`); stop quietly.
        sys.stderr.close()

    sys.exit(EX_SUCCESS)


if __name__ == "__main__":
    main()
