#!/usr/bin/env python3
"""
    plan2xl.py -- timetable PLAN to eXceL converter

    Reads a JSON export of a school timetable (days, time slots and the
    teacher resources booked in each slot) and writes a teacherwise
    occupancy grid to an Excel workbook: one row per teacher, one column
    per (day, slot) pair, occupied slots marked with 1 on a gray fill.

    Usage:
        python plan2xl.py convert stundenplan.json -o stundenplan2.xlsx
        python plan2xl.py gui [stundenplan.json]
        python plan2xl.py init-config

    Settings are read from plan2xl.ini (see 'init-config').
"""
from __future__ import annotations

import argparse
import configparser
import json
import logging
import sys
import time
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)

__version__ = '261019'    # plan2xl.py version YYMMDD

DEFAULT_CONFIG_FILE = 'plan2xl.ini'
FIRST_SLOT_COLUMN = 2     # column A holds the teacher names
FIRST_TEACHER_ROW = 3     # rows 1-2 hold the day and slot headers

DEFAULTS = {
    'APP': {
        'SHEET_TITLE': 'Stundenplan',
        'TEACHER_HEADER': 'Lehrkraft',
        'OUTPUT_FILE': 'stundenplan2.xlsx',
        'SLOT_WIDTH': '2.5',
        'LINES_PER_CHUNK': '500',
        'LOG_FILE': '',
        'VERBOSE': 'false',
    },
    'GUI': {
        'TITLE': 'Stundenplan JSON → Excel',
        'FONT': 'Consolas',
        'FONT_SIZE': '10',
        'WIDTH': '1000',
        'HEIGHT': '700',
    },
}


class TimetableFormatError(ValueError):
    """The JSON document does not have the shape of a timetable export."""


class Config:
    """Settings from plan2xl.ini layered over the built-in defaults."""

    def __init__(self, *filenames: Union[str, Path], **kwargs: Any) -> None:
        self._parser = configparser.ConfigParser(interpolation=None)
        self._parser.optionxform = str.upper    # keys are case-insensitive
        self._parser.read_dict(DEFAULTS)
        for filename in filenames:
            self.load(filename)
        # override with kwargs
        for key, value in kwargs.items():
            self.set(key, value)

    def load(self, filename: Union[str, Path]) -> bool:
        read = self._parser.read(filename, encoding='utf-8')
        return bool(read)

    def get(self, key: str, section: str = 'APP', default=None):
        return self._parser.get(section, key, fallback=default)

    def set(self, key: str, value, section: str = 'APP') -> None:
        if not self._parser.has_section(section):
            self._parser.add_section(section)
        self._parser.set(section, key, str(value))

    def getint(self, key: str, section: str = 'APP') -> int:
        return self._parser.getint(section, key)

    def getfloat(self, key: str, section: str = 'APP') -> float:
        return self._parser.getfloat(section, key)

    def getboolean(self, key: str, section: str = 'APP') -> bool:
        return self._parser.getboolean(section, key)

    @property
    def slot_width(self) -> float:
        return self.getfloat('SLOT_WIDTH')

    @property
    def lines_per_chunk(self) -> int:
        return self.getint('LINES_PER_CHUNK')

    def __repr__(self) -> str:
        return str({s: dict(self._parser[s]) for s in self._parser.sections()})


# ----------------------------------------------------------
# Timetable model
# ----------------------------------------------------------

def name_sort_key(name: str):
    """
        Dictionary order for short names: letters compare without case and
        accents first ('MÜL' sorts as 'MUL'), then accents, then lowercase
        before uppercase.
    """
    decomposed = unicodedata.normalize('NFKD', name)
    base = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), name.casefold(), name.swapcase())


@dataclass
class Resource:
    short_name: str
    occupied: List[bool] = field(default_factory=list)


@dataclass
class Day:
    label: str
    resources: List[Resource] = field(default_factory=list)

    def find(self, short_name: str) -> Optional[Resource]:
        """First resource booked under short_name on this day, if any."""
        for resource in self.resources:
            if resource.short_name == short_name:
                return resource
        return None


@dataclass
class Timetable:
    days: List[Day]
    slot_count: int

    def teachers(self) -> List[str]:
        """Distinct teacher short names over all days, sorted."""
        names = set()
        for day in self.days:
            for resource in day.resources:
                names.add(resource.short_name)
        return sorted(names, key=name_sort_key)

    def occupancy(self, teacher: str) -> List[Optional[int]]:
        """
            Row of grid values for one teacher, all days concatenated.

            A day without a resource for the teacher contributes slot_count
            zeros; otherwise each cell of the resource contributes 1 when
            occupied and None (blank) when free.
        """
        row: List[Optional[int]] = []
        for day in self.days:
            resource = day.find(teacher)
            if resource is None:
                row.extend([0] * self.slot_count)
                continue
            row.extend(1 if busy else None for busy in resource.occupied)
        return row


def _load_resource(entry: Dict) -> Resource:
    short_name = entry['resource']['shortName']
    if short_name is None:
        short_name = '?'
    occupied = [len(cell['gridEntries']) > 0 for cell in entry['cells']]
    return Resource(short_name=short_name, occupied=occupied)


def _load_day(entry: Dict) -> Day:
    label = entry['day']
    if label is None:
        label = '???'
    return Day(label=label, resources=[_load_resource(r) for r in entry['resources']])


def load_timetable(root: Dict) -> Timetable:
    """
        Build a Timetable from the decoded JSON document.

        Only the presence of 'days' is checked; any other missing key
        surfaces as the KeyError/TypeError of the lookup.
    """
    if not isinstance(root, dict) or 'days' not in root:
        raise TimetableFormatError("JSON enthält kein 'days'-Element.")

    days = [_load_day(d) for d in root['days']]
    return Timetable(days=days, slot_count=len(root['slots']))


def parse_timetable(text: str) -> Timetable:
    return load_timetable(json.loads(text))


def summarize(timetable: Timetable) -> Dict[str, int]:
    teachers = timetable.teachers()
    occupied = sum(
        1 for t in teachers for value in timetable.occupancy(t) if value == 1
    )
    return {
        'days': len(timetable.days),
        'slots': timetable.slot_count,
        'teachers': len(teachers),
        'occupied': occupied,
    }


# ----------------------------------------------------------
# Workbook writer
# ----------------------------------------------------------

class styles:
    """Excel style definitions."""
    GRAY_FILL = PatternFill(start_color="808080", end_color="808080", fill_type="solid")
    CENTER_ALIGN = Alignment(horizontal='center')
    THIN_BORDER = Border(left=Side(style='thin'), right=Side(style='thin'), top=Side(style='thin'), bottom=Side(style='thin'))
    BOLD_FONT = Font(bold=True)


def write_headers(ws: Worksheet, timetable: Timetable, teacher_header: str) -> None:
    """Day labels (merged over their slots) in row 1, slot numbers in row 2."""
    ws.cell(row=2, column=1).value = teacher_header

    col = FIRST_SLOT_COLUMN
    for day in timetable.days:
        day_start = col
        for slot in range(1, timetable.slot_count + 1):
            ws.cell(row=2, column=col).value = slot
            col += 1

        day_end = col - 1
        if day_end < day_start:
            continue    # no slots, nothing to label
        if day_end > day_start:
            ws.merge_cells(start_row=1, start_column=day_start, end_row=1, end_column=day_end)
        header = ws.cell(row=1, column=day_start)
        header.value = day.label
        header.alignment = styles.CENTER_ALIGN
        header.font = styles.BOLD_FONT


def write_teacher_rows(ws: Worksheet, timetable: Timetable) -> int:
    """Returns the number of teacher rows written."""
    row = FIRST_TEACHER_ROW
    for teacher in timetable.teachers():
        ws.cell(row=row, column=1).value = teacher
        for col, value in enumerate(timetable.occupancy(teacher), start=FIRST_SLOT_COLUMN):
            if value is None:
                continue
            cell = ws.cell(row=row, column=col)
            cell.value = value
            if value == 1:
                cell.fill = styles.GRAY_FILL
        row += 1

    return row - FIRST_TEACHER_ROW


def fit_column_width(ws: Worksheet, column: int) -> None:
    width = 0
    for (value,) in ws.iter_rows(min_col=column, max_col=column, values_only=True):
        if value is not None:
            width = max(width, len(str(value)))
    ws.column_dimensions[get_column_letter(column)].width = width + 2


def format_sheet(ws: Worksheet, timetable: Timetable, slot_width: float) -> None:
    fit_column_width(ws, 1)

    # used range: center everything and draw a thin grid
    for row in ws.iter_rows(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        for cell in row:
            cell.alignment = styles.CENTER_ALIGN
            cell.border = styles.THIN_BORDER

    last_slot_column = FIRST_SLOT_COLUMN + len(timetable.days) * timetable.slot_count - 1
    for col in range(FIRST_SLOT_COLUMN, last_slot_column + 1):
        ws.column_dimensions[get_column_letter(col)].width = slot_width


def build_workbook(timetable: Timetable, config: Optional[Config] = None) -> Workbook:
    """
    Render the timetable as a teacherwise occupancy grid.

    Args:
        timetable: the parsed timetable
        config: settings; built-in defaults when omitted

    Returns:
        openpyxl Workbook with a single worksheet
    """
    config = config or Config()

    workbook = openpyxl.Workbook()
    ws = workbook.active
    ws.title = config.get('SHEET_TITLE')

    write_headers(ws, timetable, config.get('TEACHER_HEADER'))
    teachers = write_teacher_rows(ws, timetable)
    format_sheet(ws, timetable, config.slot_width)

    logger.debug(f"Wrote {teachers} teachers x {len(timetable.days)} days to '{ws.title}'.")
    return workbook


def convert_text(text: str, config: Optional[Config] = None) -> Workbook:
    return build_workbook(parse_timetable(text), config)


def save_workbook(workbook: Workbook, path: Union[str, Path]) -> Path:
    path = Path(path)
    workbook.save(path)
    logger.debug(f"Saved workbook to '{path}'.")
    return path


# ----------------------------------------------------------
# File loading
# ----------------------------------------------------------

def read_chunks(path: Union[str, Path], lines_per_chunk: int = 500) -> Iterator[str]:
    """
        Yield the text of a UTF-8 file in blocks of lines_per_chunk lines.

        Lets a caller feed a large file into a widget a piece at a time.
    """
    if lines_per_chunk < 1:
        raise ValueError("lines_per_chunk must be positive")

    lines: List[str] = []
    with open(path, 'r', encoding='utf-8-sig') as f:
        for line in f:
            lines.append(line)
            if len(lines) >= lines_per_chunk:
                yield ''.join(lines)
                lines = []

    if lines:
        yield ''.join(lines)


# ----------------------------------------------------------
# Command line
# ----------------------------------------------------------

def setup_logging(config: Config, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose or config.getboolean('VERBOSE') else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = config.get('LOG_FILE')
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
        handlers.append(file_handler)
    logging.basicConfig(level=level, format='%(message)s', handlers=handlers, force=True)


def write_sample_config(filename: Union[str, Path]) -> None:
    config = configparser.ConfigParser(interpolation=None)
    config.optionxform = str.upper
    config.read_dict(DEFAULTS)
    with open(filename, 'w', encoding='utf-8') as f:
        f.write("; Configuration file for plan2xl.py\n")
        f.write("; You can modify the settings as needed.\n\n")
        config.write(f)
    logger.info(f"Default configuration written to '{filename}'. You can modify it as needed.")


def run_convert(args, config: Config) -> int:
    infile = Path(args.infile)
    outfile = args.outfile or config.get('OUTPUT_FILE')

    logger.info(f"Reading timetable from '{infile}'...")
    text = ''.join(read_chunks(infile, config.lines_per_chunk))
    if not text.strip():
        logger.error(f"'{infile}' is empty.")
        return 1

    timetable = parse_timetable(text)
    counts = summarize(timetable)
    logger.info(f"Days: {counts['days']}, slots: {counts['slots']}, "
                f"teachers: {counts['teachers']}, occupied: {counts['occupied']}")

    save_workbook(build_workbook(timetable, config), outfile)
    logger.info(f"Excel saved to '{outfile}'.")
    return 0


def run_gui(args, config: Config) -> int:
    # tkinter is only needed for the form
    from plan2xl_gui import App

    app = App(config)
    if args.infile:
        app.load_file(args.infile)
    app.mainloop()
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='plan2xl.py', description='Converts a JSON timetable export into a teacherwise Excel grid.')
    parser.add_argument('-i', '--config', action='store',
        help=f'configuration file; default is {DEFAULT_CONFIG_FILE}', default=DEFAULT_CONFIG_FILE)
    parser.add_argument('-v', '--version', action='store_true', help='display version information')
    parser.add_argument('-b', '--verbose', action='store_true', help='verbose output')

    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    cv_parser = subparsers.add_parser("convert", help="Convert a JSON timetable to Excel")
    cv_parser.add_argument("infile", type=str, help="JSON file containing the timetable")
    cv_parser.add_argument("-o", "--outfile", type=str, help="Excel file to write")

    gui_parser = subparsers.add_parser("gui", help="Open the converter window")
    gui_parser.add_argument("infile", type=str, nargs='?', help="JSON file to load on start")

    ic_parser = subparsers.add_parser("init-config", help="Write a sample configuration file")
    ic_parser.add_argument("-f", "--force", action="store_true", help="overwrite an existing file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"plan2xl.py: version {__version__}")
        return 0

    config = Config()
    try:
        found = config.load(args.config)
        setup_logging(config, args.verbose)
    except (configparser.Error, ValueError, OSError) as e:
        logging.basicConfig(level=logging.INFO, format='%(message)s', force=True)
        if args.command == 'init-config' and args.force:
            # a broken file is about to be replaced
            config, found = Config(), False
            logger.warning(f"Ignoring unreadable configuration '{args.config}': {e}")
        else:
            logger.error(f"Fehler in '{args.config}': {e}")
            return 1

    if found:
        logger.debug(f"Using configuration from {args.config}...")
    else:
        logger.debug(f"Configuration file '{args.config}' not found, using defaults.")

    start_time = time.time()

    if args.command == 'init-config':
        if Path(args.config).exists() and not args.force:
            logger.error(f"File {args.config} already exists. Use --force to overwrite.")
            return 1
        write_sample_config(args.config)
        return 0

    if args.command == 'gui':
        return run_gui(args, config)

    if args.command != 'convert':
        parser.print_help()
        return 0

    try:
        status = run_convert(args, config)
    except Exception as e:
        logger.error(f"Fehler: {e}")
        logger.debug("Conversion failed.", exc_info=True)
        return 1

    logger.debug("Finished processing in %.3f seconds." % (time.time() - start_time))
    return status


if __name__ == '__main__':
    sys.exit(main())
